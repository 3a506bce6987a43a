# greenmarket/services/product_service.py
import logging
from typing import Any, Dict, Iterable, List
from ..errors import InsufficientStock
from ..models.product import Product

class ProductService:
    """Catalog lookups and stock movements used by the order workflow"""

    def __init__(self, db):
        self.db = db
        self.logger = logging.getLogger(__name__)

    async def lock_products(self, conn, product_ids: Iterable[int]) -> Dict[int, Product]:
        """Lock the product rows for the rest of the caller's transaction.

        Rows are locked in id order so concurrent orders over the same
        products cannot deadlock.
        """
        rows = await conn.fetch("""
            SELECT *
            FROM products
            WHERE product_id = ANY($1::int[])
            ORDER BY product_id
            FOR UPDATE
        """, sorted(set(product_ids)))
        return {row['product_id']: Product.model_validate(dict(row)) for row in rows}

    async def reserve_stock(self, conn, product: Product, quantity: int):
        """Take quantity out of stock, failing if it is no longer there"""
        result = await conn.execute("""
            UPDATE products
            SET quantity = quantity - $1,
                total_sold = total_sold + $1,
                updated_at = CURRENT_TIMESTAMP
            WHERE product_id = $2 AND is_active = true AND quantity >= $1
        """, quantity, product.product_id)

        if result != "UPDATE 1":
            raise InsufficientStock(product.product_id, product.product_name, requested=quantity)

    async def restore_stock(self, conn, items: List[Dict[str, Any]]):
        """Put cancelled line items back on the shelf"""
        for item in items:
            await conn.execute("""
                UPDATE products
                SET quantity = quantity + $1,
                    total_sold = GREATEST(total_sold - $1, 0),
                    updated_at = CURRENT_TIMESTAMP
                WHERE product_id = $2
            """, item['quantity'], item['product_id'])
        self.logger.info(f"Restored stock for {len(items)} line item(s)")

    async def get_farmer_products(self, farmer_id: int) -> List[Dict[str, Any]]:
        """All products listed by a farmer"""
        async with self.db.pool.acquire() as conn:
            products = await conn.fetch("""
                SELECT p.*, c.category_name
                FROM products p
                LEFT JOIN categories c ON c.category_id = p.category_id
                WHERE p.farmer_id = $1
                ORDER BY p.created_at DESC
            """, farmer_id)
            return [dict(p) for p in products]

    async def get_farmer_dashboard(self, farmer_id: int) -> Dict[str, Any]:
        """Product count, sales and open orders for a farmer"""
        async with self.db.pool.acquire() as conn:
            total_products = await conn.fetchval("""
                SELECT COUNT(*) FROM products WHERE farmer_id = $1
            """, farmer_id)

            total_sales = await conn.fetchval("""
                SELECT COALESCE(SUM(oi.total_price), 0)
                FROM order_items oi
                JOIN orders o ON o.order_id = oi.order_id
                WHERE oi.farmer_id = $1 AND o.status <> 'cancelled'
            """, farmer_id)

            active_orders = await conn.fetchval("""
                SELECT COUNT(DISTINCT o.order_id)
                FROM orders o
                JOIN order_items oi ON o.order_id = oi.order_id
                WHERE oi.farmer_id = $1
                AND o.status NOT IN ('delivered', 'cancelled')
            """, farmer_id)

            return {
                "totalProducts": total_products,
                "totalSales": total_sales,
                "activeOrders": active_orders
            }
