"""HTTP and websocket routers"""
from .admin_handlers import router as admin_router
from .coupon_handlers import router as coupon_router
from .farmer_handlers import router as farmer_router
from .notification_handlers import router as notification_router
from .order_handlers import router as order_router
from .realtime_handlers import router as realtime_router

__all__ = [
    'admin_router',
    'coupon_router',
    'farmer_router',
    'notification_router',
    'order_router',
    'realtime_router'
]
