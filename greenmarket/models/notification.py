# greenmarket/models/notification.py
from typing import Optional
from pydantic import BaseModel
from .base import TimeStampedModel

class Notification(TimeStampedModel):
    """Message shown in a user's notification list"""
    notification_id: int
    user_id: int
    title: str
    message: str
    type: str = "order"
    link: Optional[str] = None
    is_read: bool = False

class NotificationDraft(BaseModel):
    """Notification not yet persisted"""
    user_id: int
    title: str
    message: str
    type: str = "order"
    link: Optional[str] = None
