# greenmarket/services/tracking_service.py
from typing import Any, Dict, List, Optional
from ..models.order import TrackingEvent

class TrackingService:
    """Append-only tracking history of orders"""

    def __init__(self, db):
        self.db = db

    async def add_event(self, conn, order_id: int, status: str,
                        location: Optional[str] = None,
                        description: Optional[str] = None) -> TrackingEvent:
        """Append a tracking event inside the caller's transaction"""
        row = await conn.fetchrow("""
            INSERT INTO order_tracking (
                order_id, status, location, description
            ) VALUES ($1, $2, $3, $4)
            RETURNING *
        """, order_id, status, location, description)
        return TrackingEvent.model_validate(dict(row))

    async def get_history(self, order_id: int, conn=None) -> List[Dict[str, Any]]:
        """Tracking events of an order, oldest first"""
        query = """
            SELECT *
            FROM order_tracking
            WHERE order_id = $1
            ORDER BY created_at ASC, tracking_event_id ASC
        """
        if conn is not None:
            rows = await conn.fetch(query, order_id)
        else:
            async with self.db.pool.acquire() as conn:
                rows = await conn.fetch(query, order_id)
        return [dict(r) for r in rows]
