# greenmarket/handlers/dependencies.py
from typing import Optional
from fastapi import Depends, Query
from fastapi.requests import HTTPConnection
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from ..config import Config
from ..errors import AuthenticationError, AuthorizationError
from ..models.user import CurrentUser, UserRole
from ..realtime.rooms import RoomManager
from ..services.coupon_service import CouponService
from ..services.notification_service import NotificationService
from ..services.notifier import Notifier
from ..services.order_service import OrderService
from ..services.product_service import ProductService
from ..utils.security import verify_access_token

bearer_scheme = HTTPBearer(auto_error=False)

def get_db(connection: HTTPConnection):
    return connection.app.state.db

def get_rooms(connection: HTTPConnection) -> RoomManager:
    return connection.app.state.rooms

def get_notifier(db=Depends(get_db), rooms: RoomManager = Depends(get_rooms)) -> Notifier:
    return Notifier(NotificationService(db), rooms)

def get_order_service(db=Depends(get_db), notifier: Notifier = Depends(get_notifier)) -> OrderService:
    return OrderService(db, notifier)

def get_coupon_service(db=Depends(get_db)) -> CouponService:
    return CouponService(db)

def get_product_service(db=Depends(get_db)) -> ProductService:
    return ProductService(db)

def get_notification_service(db=Depends(get_db)) -> NotificationService:
    return NotificationService(db)

async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> CurrentUser:
    """Identity of the bearer token, 401 without a valid one"""
    if credentials is None:
        raise AuthenticationError()
    user = verify_access_token(credentials.credentials)
    if user is None:
        raise AuthenticationError("Invalid or expired token")
    return user

def require_role(*roles: UserRole):
    """Dependency allowing only the given roles"""
    async def checker(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if user.role not in roles:
            raise AuthorizationError(f"Requires role: {', '.join(r.value for r in roles)}")
        return user
    return checker

def ensure_self_or_admin(user: CurrentUser, user_id: int):
    if user.user_id != user_id and not user.is_admin:
        raise AuthorizationError()

class Page:
    """limit/offset query parameters"""

    def __init__(
        self,
        limit: int = Query(default=Config.DEFAULT_PAGE_SIZE, ge=1, le=Config.MAX_PAGE_SIZE),
        offset: int = Query(default=0, ge=0),
    ):
        self.limit = limit
        self.offset = offset
