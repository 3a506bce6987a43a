# greenmarket/models/order.py
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from ..errors import InvalidStatusTransition

class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    PACKED = "packed"
    SHIPPED = "shipped"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.DELIVERED, OrderStatus.CANCELLED)

    @property
    def is_buyer_cancellable(self) -> bool:
        return self in BUYER_CANCELLABLE

    def check_transition(self, target: "OrderStatus"):
        """Raise InvalidStatusTransition unless moving to target is allowed.

        Progress statuses only move forward (skipping is fine), cancellation
        is reachable from any non-terminal status, and delivered/cancelled
        never change again.
        """
        if self.is_terminal:
            raise InvalidStatusTransition(self.value, target.value, f"order is already {self.value}")
        if target == self:
            raise InvalidStatusTransition(self.value, target.value, "status unchanged")
        if target == OrderStatus.CANCELLED:
            return
        if STATUS_FLOW.index(target) < STATUS_FLOW.index(self):
            raise InvalidStatusTransition(self.value, target.value, "status cannot move backwards")

STATUS_FLOW = [
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
    OrderStatus.PACKED,
    OrderStatus.SHIPPED,
    OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED,
]

BUYER_CANCELLABLE = frozenset({OrderStatus.PENDING, OrderStatus.CONFIRMED})

class PaymentMethod(str, Enum):
    CASH_ON_DELIVERY = "COD"
    ONLINE = "online"
    UPI = "UPI"

class OrderItem(BaseModel):
    """Line item priced at the moment of purchase"""
    product_id: int
    farmer_id: int
    product_name: Optional[str] = None
    quantity: int
    price: Decimal

    @property
    def total_price(self) -> Decimal:
        return self.price * self.quantity

class TrackingEvent(BaseModel):
    """Append-only audit entry for an order"""
    order_id: int
    status: str
    location: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    def to_event(self) -> dict:
        """Payload pushed to the order's real-time room"""
        return {
            "orderId": self.order_id,
            "status": self.status,
            "location": self.location,
            "description": self.description,
            "timestamp": (self.created_at or datetime.now().astimezone()).isoformat(),
        }

# --- Request bodies ---

MAX_ID = 2_147_483_647
MAX_LINE_QUANTITY = 10_000

class OrderItemRequest(BaseModel):
    product_id: int = Field(alias="productId", gt=0, le=MAX_ID)
    quantity: int = Field(gt=0, le=MAX_LINE_QUANTITY)

    model_config = ConfigDict(populate_by_name=True)

class CreateOrderRequest(BaseModel):
    items: List[OrderItemRequest] = Field(min_length=1)
    delivery_address: str = Field(alias="deliveryAddress")
    delivery_instructions: Optional[str] = Field(default=None, alias="deliveryInstructions")
    payment_method: PaymentMethod = Field(default=PaymentMethod.CASH_ON_DELIVERY, alias="paymentMethod")
    coupon_code: Optional[str] = Field(default=None, alias="couponCode")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("delivery_address")
    @classmethod
    def address_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("delivery address is required")
        return value

    @field_validator("coupon_code")
    @classmethod
    def normalize_coupon(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip().upper()
        return value or None

class StatusUpdateRequest(BaseModel):
    status: OrderStatus
    location: Optional[str] = None
    description: Optional[str] = None

class CancelOrderRequest(BaseModel):
    reason: Optional[str] = None
