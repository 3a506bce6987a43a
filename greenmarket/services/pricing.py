# greenmarket/services/pricing.py
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional
from ..config import Config
from ..models.coupon import Coupon, DiscountType
from ..models.order import OrderItem
from ..utils.formatters import to_money

@dataclass(frozen=True)
class PriceBreakdown:
    subtotal: Decimal
    delivery_charge: Decimal
    discount: Decimal
    final_amount: Decimal

def calculate_subtotal(items: Iterable[OrderItem]) -> Decimal:
    """Sum of line totals at the prices read from the catalog"""
    return to_money(sum((item.total_price for item in items), Decimal(0)))

def calculate_delivery_charge(subtotal: Decimal) -> Decimal:
    """Flat fee below the free delivery threshold"""
    if subtotal >= Config.FREE_DELIVERY_THRESHOLD:
        return Decimal("0.00")
    return to_money(Config.DELIVERY_FEE)

def calculate_coupon_discount(coupon: Coupon, subtotal: Decimal) -> Decimal:
    """Discount a coupon grants on a subtotal, zero below its minimum order"""
    if subtotal < (coupon.min_order_amount or Decimal(0)):
        return Decimal("0.00")

    if coupon.discount_type == DiscountType.PERCENTAGE:
        discount = subtotal * coupon.discount_value / Decimal(100)
        if coupon.max_discount:
            discount = min(discount, coupon.max_discount)
    else:
        # fixed coupons are not capped by the subtotal
        discount = coupon.discount_value

    return to_money(discount)

def price_order(items: Iterable[OrderItem], coupon_discount: Optional[Decimal] = None) -> PriceBreakdown:
    """Build the monetary breakdown of an order.

    The applied discount is clamped to subtotal + delivery charge, so the
    final amount never drops below zero and always equals
    subtotal + delivery_charge - discount.
    """
    subtotal = calculate_subtotal(items)
    delivery_charge = calculate_delivery_charge(subtotal)
    gross = subtotal + delivery_charge
    discount = min(to_money(coupon_discount or 0), gross)
    return PriceBreakdown(
        subtotal=subtotal,
        delivery_charge=delivery_charge,
        discount=discount,
        final_amount=gross - discount,
    )
