# greenmarket/handlers/notification_handlers.py
from fastapi import APIRouter, Depends
from ..errors import AuthorizationError
from ..models.user import CurrentUser
from ..services.notification_service import NotificationService
from .dependencies import ensure_self_or_admin, get_current_user, get_notification_service

router = APIRouter(prefix="/api/notifications", tags=["notifications"])

@router.get("/user/{user_id}")
async def list_notifications(
    user_id: int,
    user: CurrentUser = Depends(get_current_user),
    notifications: NotificationService = Depends(get_notification_service),
):
    ensure_self_or_admin(user, user_id)
    return await notifications.get_user_notifications(user_id)

@router.get("/user/{user_id}/unread-count")
async def unread_count(
    user_id: int,
    user: CurrentUser = Depends(get_current_user),
    notifications: NotificationService = Depends(get_notification_service),
):
    ensure_self_or_admin(user, user_id)
    return {"unreadCount": await notifications.get_unread_count(user_id)}

@router.put("/user/{user_id}/read-all")
async def mark_all_read(
    user_id: int,
    user: CurrentUser = Depends(get_current_user),
    notifications: NotificationService = Depends(get_notification_service),
):
    if user.user_id != user_id:
        raise AuthorizationError()
    updated = await notifications.mark_all_read(user_id)
    return {"message": "All notifications marked as read", "updated": updated}

@router.put("/{notification_id}/read")
async def mark_read(
    notification_id: int,
    user: CurrentUser = Depends(get_current_user),
    notifications: NotificationService = Depends(get_notification_service),
):
    await notifications.mark_read(notification_id, user.user_id)
    return {"message": "Notification marked as read"}

@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: int,
    user: CurrentUser = Depends(get_current_user),
    notifications: NotificationService = Depends(get_notification_service),
):
    await notifications.delete(notification_id, user.user_id)
    return {"message": "Notification deleted successfully"}
