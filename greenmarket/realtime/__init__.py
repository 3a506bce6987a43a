from .rooms import RoomManager, order_room

__all__ = ['RoomManager', 'order_room']
