# greenmarket/handlers/realtime_handlers.py
import json
import logging
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from ..realtime.rooms import TRACK_ORDER, UNTRACK_ORDER, RoomManager, order_room
from .dependencies import get_rooms

router = APIRouter(tags=["realtime"])
logger = logging.getLogger(__name__)

@router.websocket("/ws")
async def order_updates(websocket: WebSocket, rooms: RoomManager = Depends(get_rooms)):
    """Clients join order rooms and receive orderStatusUpdate events"""
    await rooms.connect(websocket)
    try:
        while True:
            try:
                message = json.loads(await websocket.receive_text())
            except (KeyError, ValueError):
                # binary frames carry no "text" key
                message = None

            event = message.get("event") if isinstance(message, dict) else None
            order_id = message.get("orderId") if isinstance(message, dict) else None
            if isinstance(order_id, str) and order_id.isdigit():
                order_id = int(order_id)

            valid_id = isinstance(order_id, int) and not isinstance(order_id, bool)
            if event not in (TRACK_ORDER, UNTRACK_ORDER) or not valid_id:
                await websocket.send_json({
                    "event": "error",
                    "data": {"message": "Expected {event: trackOrder|untrackOrder, orderId: int}"}
                })
                continue

            if event == TRACK_ORDER:
                rooms.join(websocket, order_room(order_id))
                logger.info(f"Client tracking order {order_id}")
            else:
                rooms.leave(websocket, order_room(order_id))

            await websocket.send_json({"event": event, "data": {"orderId": order_id}})
    except WebSocketDisconnect:
        pass
    finally:
        rooms.disconnect(websocket)
