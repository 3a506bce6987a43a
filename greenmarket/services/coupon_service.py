# greenmarket/services/coupon_service.py
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional
import asyncpg
from ..errors import ConflictError, NotFoundError, ValidationError
from ..models.coupon import Coupon, CouponCreate
from .pricing import calculate_coupon_discount

class CouponService:
    """Coupon administration and redemption"""

    def __init__(self, db):
        self.db = db
        self.logger = logging.getLogger(__name__)

    async def create_coupon(self, data: CouponCreate) -> int:
        """Create a coupon"""
        if data.valid_from and data.valid_to and data.valid_to < data.valid_from:
            raise ValidationError("valid_to must not be earlier than valid_from")

        try:
            async with self.db.pool.acquire() as conn:
                coupon_id = await conn.fetchval("""
                    INSERT INTO coupons (
                        code, description, discount_type, discount_value,
                        min_order_amount, max_discount, valid_from, valid_to,
                        usage_limit
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                    RETURNING coupon_id
                """,
                    data.code,
                    data.description,
                    data.discount_type.value,
                    data.discount_value,
                    data.min_order_amount,
                    data.max_discount,
                    data.valid_from,
                    data.valid_to,
                    data.usage_limit
                )
        except asyncpg.UniqueViolationError:
            raise ConflictError(f"Coupon code already exists: {data.code}")

        self.logger.info(f"Coupon {data.code} created ({coupon_id})")
        return coupon_id

    async def get_coupons(self) -> List[Dict[str, Any]]:
        """All coupons, newest first"""
        async with self.db.pool.acquire() as conn:
            coupons = await conn.fetch("""
                SELECT *
                FROM coupons
                ORDER BY created_at DESC
            """)
            return [dict(c) for c in coupons]

    async def set_active(self, coupon_id: int, is_active: bool):
        """Enable or disable a coupon"""
        async with self.db.pool.acquire() as conn:
            result = await conn.execute("""
                UPDATE coupons
                SET is_active = $1, updated_at = NOW()
                WHERE coupon_id = $2
            """, is_active, coupon_id)
        if result != "UPDATE 1":
            raise NotFoundError("Coupon", coupon_id)

    async def find_redeemable(self, conn, code: str) -> Optional[Coupon]:
        """Active coupon within its validity window that still has uses left"""
        row = await conn.fetchrow("""
            SELECT *
            FROM coupons
            WHERE UPPER(code) = UPPER($1)
            AND is_active = true
            AND (valid_from IS NULL OR valid_from <= NOW())
            AND (valid_to IS NULL OR valid_to >= NOW())
            AND (usage_limit IS NULL OR used_count < usage_limit)
        """, code)
        return Coupon.model_validate(dict(row)) if row else None

    async def evaluate(self, conn, code: Optional[str], subtotal: Decimal) -> tuple[Optional[Coupon], Decimal]:
        """Coupon and the discount it grants; unknown or inapplicable codes give zero"""
        if not code:
            return None, Decimal("0.00")

        coupon = await self.find_redeemable(conn, code)
        if not coupon:
            self.logger.info(f"Coupon {code} not redeemable, ignoring")
            return None, Decimal("0.00")

        discount = calculate_coupon_discount(coupon, subtotal)
        if discount <= 0:
            self.logger.info(f"Coupon {code} below minimum order amount, ignoring")
            return None, Decimal("0.00")

        return coupon, discount

    async def redeem(self, conn, coupon: Coupon, order_id: int, user_id: int, discount: Decimal):
        """Consume one use of the coupon inside the caller's transaction"""
        result = await conn.execute("""
            UPDATE coupons
            SET used_count = used_count + 1, updated_at = NOW()
            WHERE coupon_id = $1
            AND is_active = true
            AND (usage_limit IS NULL OR used_count < usage_limit)
        """, coupon.coupon_id)

        if result != "UPDATE 1":
            raise ConflictError(f"Coupon {coupon.code} has reached its usage limit")

        await conn.execute("""
            INSERT INTO coupon_usage (
                coupon_id, order_id, user_id, discount_amount
            ) VALUES ($1, $2, $3, $4)
        """, coupon.coupon_id, order_id, user_id, discount)

    async def preview(self, code: str, subtotal: Decimal) -> Dict[str, Any]:
        """Check a code against a subtotal without redeeming it"""
        async with self.db.pool.acquire() as conn:
            row = await conn.fetchrow("""
                SELECT * FROM coupons WHERE UPPER(code) = UPPER($1)
            """, code)

        if not row:
            return {"valid": False, "error": "Invalid coupon code"}

        coupon = Coupon.model_validate(dict(row))
        if not coupon.is_valid_at(datetime.now(timezone.utc)):
            return {"valid": False, "error": "Coupon is expired or no longer available"}

        if subtotal < coupon.min_order_amount:
            return {
                "valid": False,
                "error": f"Minimum order amount for this coupon is {coupon.min_order_amount}"
            }

        discount = calculate_coupon_discount(coupon, subtotal)
        return {
            "valid": True,
            "couponId": coupon.coupon_id,
            "code": coupon.code,
            "discount": discount
        }
