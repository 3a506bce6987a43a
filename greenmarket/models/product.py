# greenmarket/models/product.py
from decimal import Decimal
from typing import Optional
from .base import TimeStampedModel

class Product(TimeStampedModel):
    """Produce listed by a farmer"""
    product_id: int
    farmer_id: int
    category_id: Optional[int] = None
    product_name: str
    description: Optional[str] = None
    price: Decimal
    quantity: int = 0
    unit: str = "kg"
    total_sold: int = 0
    image_url: Optional[str] = None
    is_active: bool = True

    def can_supply(self, quantity: int) -> bool:
        return self.is_active and self.quantity >= quantity
