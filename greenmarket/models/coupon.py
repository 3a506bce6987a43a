# greenmarket/models/coupon.py
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, field_validator
from .base import TimeStampedModel

class DiscountType(str, Enum):
    """Coupon discount kinds"""
    PERCENTAGE = "percentage"
    FIXED = "fixed"

class Coupon(TimeStampedModel):
    """Coupon redeemable at checkout"""
    coupon_id: int
    code: str
    description: Optional[str] = None
    discount_type: DiscountType
    discount_value: Decimal  # percent or flat amount
    min_order_amount: Decimal = Decimal(0)
    max_discount: Optional[Decimal] = None  # percentage coupons only
    valid_from: Optional[datetime] = None
    valid_to: Optional[datetime] = None
    usage_limit: Optional[int] = None
    used_count: int = 0
    is_active: bool = True

    @property
    def is_exhausted(self) -> bool:
        return self.usage_limit is not None and self.used_count >= self.usage_limit

    def is_valid_at(self, moment: datetime) -> bool:
        if not self.is_active or self.is_exhausted:
            return False
        if self.valid_from and moment < self.valid_from:
            return False
        if self.valid_to and moment > self.valid_to:
            return False
        return True

class CouponCreate(BaseModel):
    code: str = Field(min_length=1, max_length=64)
    description: Optional[str] = None
    discount_type: DiscountType
    discount_value: Decimal = Field(gt=0)
    min_order_amount: Decimal = Field(default=Decimal(0), ge=0)
    max_discount: Optional[Decimal] = Field(default=None, gt=0)
    valid_from: Optional[datetime] = None
    valid_to: Optional[datetime] = None
    usage_limit: Optional[int] = Field(default=None, gt=0)

    @field_validator("code")
    @classmethod
    def normalize_code(cls, value: str) -> str:
        return value.strip().upper()

class CouponUpdate(BaseModel):
    is_active: bool

class CouponPreviewRequest(BaseModel):
    code: str = Field(min_length=1)
    subtotal: Decimal = Field(ge=0)
