# greenmarket/app.py
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from . import __version__
from .config import Config
from .database import Database
from .errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    InsufficientStock,
    InvalidStatusTransition,
    MarketError,
    NotFoundError,
    ProductUnavailable,
    ValidationError,
)
from .handlers import (
    admin_router,
    coupon_router,
    farmer_router,
    notification_router,
    order_router,
    realtime_router,
)
from .realtime.rooms import RoomManager

logger = logging.getLogger(__name__)

# Map exception types to HTTP status codes
ERROR_STATUS_CODES: dict[type, int] = {
    ValidationError: 400,
    ProductUnavailable: 400,
    InsufficientStock: 400,
    InvalidStatusTransition: 400,
    AuthenticationError: 401,
    AuthorizationError: 403,
    NotFoundError: 404,
    ConflictError: 409,
}

async def market_error_handler(request: Request, exc: MarketError) -> JSONResponse:
    """Map MarketError subclasses to their HTTP responses"""
    status_code = ERROR_STATUS_CODES.get(type(exc), 500)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}", exc_info=exc)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})
    return JSONResponse(
        status_code=status_code,
        content={"error": str(exc), "error_type": type(exc).__name__},
    )

async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
    )
    return JSONResponse(
        status_code=400,
        content={"error": problems or "Invalid request", "error_type": "ValidationError"},
    )

async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"{request.method} {request.url.path} failed: {exc}", exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})

def create_app(database: Optional[Database] = None) -> FastAPI:
    """Build the API; the database is opened and closed with the app lifespan"""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if not app.state.db.is_connected:
            Config.validate()
            await app.state.db.connect()
        try:
            yield
        finally:
            await app.state.db.close()

    app = FastAPI(title="Green Market API", version=__version__, lifespan=lifespan)
    app.state.db = database or Database()
    app.state.rooms = RoomManager()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[Config.FRONTEND_URL],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
    )

    app.add_exception_handler(MarketError, market_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)

    app.include_router(order_router)
    app.include_router(farmer_router)
    app.include_router(notification_router)
    app.include_router(coupon_router)
    app.include_router(admin_router)
    app.include_router(realtime_router)

    @app.get("/api/health")
    async def health_check():
        return {
            "status": "OK",
            "message": f"Green Market API v{__version__}",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "database": app.state.db.is_connected,
            "socketConnected": app.state.rooms.client_count,
        }

    return app
