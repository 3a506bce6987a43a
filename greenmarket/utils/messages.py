# greenmarket/utils/messages.py
from datetime import datetime
from decimal import Decimal
from typing import Optional
from ..models.notification import NotificationDraft
from ..models.order import OrderStatus
from .formatters import format_datetime, format_price

STATUS_LABELS = {
    OrderStatus.PENDING: "pending",
    OrderStatus.CONFIRMED: "confirmed",
    OrderStatus.PROCESSING: "being processed",
    OrderStatus.PACKED: "packed",
    OrderStatus.SHIPPED: "shipped",
    OrderStatus.OUT_FOR_DELIVERY: "out for delivery",
    OrderStatus.DELIVERED: "delivered",
    OrderStatus.CANCELLED: "cancelled",
}

class Messages:
    @staticmethod
    def order_link(order_id: int) -> str:
        return f"/order-tracking/{order_id}"

    @staticmethod
    def order_placed(user_id: int, order_id: int, order_number: str,
                     final_amount: Decimal) -> NotificationDraft:
        """Buyer notification for a new order"""
        return NotificationDraft(
            user_id=user_id,
            title="Order Placed",
            message=(
                f"Your order #{order_number} has been placed successfully. "
                f"Amount payable: {format_price(final_amount)}"
            ),
            type="order",
            link=Messages.order_link(order_id),
        )

    @staticmethod
    def status_changed(user_id: int, order_id: int, order_number: str,
                       status: OrderStatus,
                       changed_at: Optional[datetime] = None) -> NotificationDraft:
        """Buyer notification for a status change"""
        message = f"Your order #{order_number} is now {STATUS_LABELS[status]}"
        if changed_at is not None:
            message += f" (updated {format_datetime(changed_at)})"
        return NotificationDraft(
            user_id=user_id,
            title="Order Status Updated",
            message=message,
            type="order",
            link=Messages.order_link(order_id),
        )

    @staticmethod
    def new_farmer_order(farmer_id: int, order_id: int, order_number: str) -> NotificationDraft:
        """Farmer notification when one of their products is ordered"""
        return NotificationDraft(
            user_id=farmer_id,
            title="New Order Received",
            message=f"Order #{order_number} includes your products",
            type="order",
            link=f"/farmer/orders/{order_id}",
        )

    @staticmethod
    def tracking_description(status: OrderStatus) -> str:
        return f"Order status updated to {status.value}"
