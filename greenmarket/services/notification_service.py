# greenmarket/services/notification_service.py
import logging
from typing import Any, Dict, List, Optional
import asyncpg
from ..config import Config
from ..errors import AuthorizationError
from ..models.notification import Notification, NotificationDraft

class NotificationService:
    """Persisted notifications and their owner-only mutations"""

    def __init__(self, db):
        self.db = db
        self.logger = logging.getLogger(__name__)

    async def create(self, draft: NotificationDraft) -> Optional[Notification]:
        """Insert a notification, retrying before the row is dropped.

        Notifications are side effects of an already committed order
        change, so a failure here is logged and never raised.
        """
        attempts = Config.NOTIFICATION_RETRIES + 1
        for attempt in range(1, attempts + 1):
            try:
                async with self.db.pool.acquire() as conn:
                    row = await conn.fetchrow("""
                        INSERT INTO notifications (
                            user_id, title, message, type, link
                        ) VALUES ($1, $2, $3, $4, $5)
                        RETURNING *
                    """, draft.user_id, draft.title, draft.message, draft.type, draft.link)
                return Notification.model_validate(dict(row))
            except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
                self.logger.warning(
                    f"Notification insert for user {draft.user_id} failed "
                    f"(attempt {attempt}/{attempts}): {e}"
                )

        self.logger.error(f"Dropped notification '{draft.title}' for user {draft.user_id}")
        return None

    async def get_user_notifications(self, user_id: int) -> List[Dict[str, Any]]:
        """Latest notifications of a user"""
        async with self.db.pool.acquire() as conn:
            rows = await conn.fetch("""
                SELECT *
                FROM notifications
                WHERE user_id = $1
                ORDER BY created_at DESC
                LIMIT $2
            """, user_id, Config.NOTIFICATION_LIST_LIMIT)
            return [dict(r) for r in rows]

    async def get_unread_count(self, user_id: int) -> int:
        async with self.db.pool.acquire() as conn:
            return await conn.fetchval("""
                SELECT COUNT(*)
                FROM notifications
                WHERE user_id = $1 AND is_read = false
            """, user_id)

    async def mark_read(self, notification_id: int, user_id: int):
        """Mark one of the user's notifications as read"""
        async with self.db.pool.acquire() as conn:
            result = await conn.execute("""
                UPDATE notifications
                SET is_read = true
                WHERE notification_id = $1 AND user_id = $2
            """, notification_id, user_id)
        if result != "UPDATE 1":
            raise AuthorizationError()

    async def mark_all_read(self, user_id: int) -> int:
        async with self.db.pool.acquire() as conn:
            result = await conn.execute("""
                UPDATE notifications
                SET is_read = true
                WHERE user_id = $1 AND is_read = false
            """, user_id)
        return int(result.split()[-1])

    async def delete(self, notification_id: int, user_id: int):
        """Delete one of the user's notifications"""
        async with self.db.pool.acquire() as conn:
            result = await conn.execute("""
                DELETE FROM notifications
                WHERE notification_id = $1 AND user_id = $2
            """, notification_id, user_id)
        if result != "DELETE 1":
            raise AuthorizationError()
