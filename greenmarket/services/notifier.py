# greenmarket/services/notifier.py
import logging
from typing import Optional
from ..models.notification import NotificationDraft
from ..models.order import TrackingEvent
from ..realtime.rooms import ORDER_STATUS_UPDATE, RoomManager, order_room
from .notification_service import NotificationService

class Notifier:
    """Persists a notification and pushes the order event to its room"""

    def __init__(self, notifications: NotificationService, rooms: RoomManager):
        self.notifications = notifications
        self.rooms = rooms
        self.logger = logging.getLogger(__name__)

    async def notify(self, draft: NotificationDraft, event: Optional[TrackingEvent] = None):
        """Insert one row and emit one event; neither step raises"""
        await self.notifications.create(draft)

        if event is not None:
            await self.publish(event)

    async def publish(self, event: TrackingEvent) -> int:
        room = order_room(event.order_id)
        delivered = await self.rooms.emit(room, ORDER_STATUS_UPDATE, event.to_event())
        self.logger.debug(f"{ORDER_STATUS_UPDATE} for order {event.order_id} sent to {delivered} client(s)")
        return delivered
