# greenmarket/realtime/rooms.py
import asyncio
import logging
from collections import defaultdict
from typing import Any, Dict, Set
from fastapi import WebSocket

TRACK_ORDER = "trackOrder"
UNTRACK_ORDER = "untrackOrder"
ORDER_STATUS_UPDATE = "orderStatusUpdate"

def order_room(order_id: int) -> str:
    return f"order_{order_id}"

class RoomManager:
    """Tracks websocket clients and the order rooms they joined.

    Delivery is best-effort: a client that fails to receive is dropped
    and emit() never raises into the caller.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self.clients: Set[WebSocket] = set()
        self.rooms: Dict[str, Set[WebSocket]] = defaultdict(set)

    @property
    def client_count(self) -> int:
        return len(self.clients)

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self.clients.add(websocket)
        self.logger.info(f"Client connected ({self.client_count} online)")

    def disconnect(self, websocket: WebSocket):
        self.clients.discard(websocket)
        for room in list(self.rooms):
            self.leave(websocket, room)
        self.logger.info(f"Client disconnected ({self.client_count} online)")

    def join(self, websocket: WebSocket, room: str):
        self.rooms[room].add(websocket)
        self.logger.debug(f"Client joined {room} ({self.room_size(room)} watching)")

    def leave(self, websocket: WebSocket, room: str):
        members = self.rooms.get(room)
        if members is None:
            return
        members.discard(websocket)
        if not members:
            del self.rooms[room]

    def room_size(self, room: str) -> int:
        return len(self.rooms.get(room, ()))

    async def emit(self, room: str, event: str, data: Dict[str, Any]) -> int:
        """Send an event to every client in a room, returning how many got it"""
        members = list(self.rooms.get(room, ()))
        message = {"event": event, "data": data}
        results = await asyncio.gather(
            *(websocket.send_json(message) for websocket in members),
            return_exceptions=True
        )

        delivered = 0
        for websocket, result in zip(members, results):
            if isinstance(result, Exception):
                self.logger.warning(f"Dropping client from {room}: {result}")
                self.disconnect(websocket)
            else:
                delivered += 1
        return delivered
