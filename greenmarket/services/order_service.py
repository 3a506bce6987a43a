# greenmarket/services/order_service.py
import logging
from collections import OrderedDict
from datetime import date
from typing import Any, Dict, List, Optional
from ..config import Config
from ..errors import (
    AuthorizationError,
    ConflictError,
    InsufficientStock,
    InvalidStatusTransition,
    NotFoundError,
    ProductUnavailable,
)
from ..models.order import (
    CreateOrderRequest,
    OrderItem,
    OrderStatus,
    StatusUpdateRequest,
    TrackingEvent,
)
from ..models.user import CurrentUser
from ..utils.formatters import expected_delivery_date, generate_order_number, generate_tracking_id
from ..utils.messages import Messages
from .coupon_service import CouponService
from .notifier import Notifier
from .pricing import calculate_subtotal, price_order
from .product_service import ProductService
from .tracking_service import TrackingService

ITEMS_SUBQUERY = """
    (SELECT COALESCE(json_agg(json_build_object(
        'order_item_id', oi.order_item_id,
        'product_id', oi.product_id,
        'farmer_id', oi.farmer_id,
        'product_name', p.product_name,
        'image_url', p.image_url,
        'unit', p.unit,
        'quantity', oi.quantity,
        'price', oi.price,
        'total_price', oi.total_price
    ) ORDER BY oi.order_item_id), '[]'::json)
    FROM order_items oi
    JOIN products p ON p.product_id = oi.product_id
    WHERE oi.order_id = o.order_id {farmer_filter}
    ) as items
"""

class OrderService:
    """Order placement, status lifecycle and order read paths"""

    def __init__(self, db, notifier: Notifier):
        self.db = db
        self.notifier = notifier
        self.product_service = ProductService(db)
        self.coupon_service = CouponService(db)
        self.tracking_service = TrackingService(db)
        self.logger = logging.getLogger(__name__)

    # --- Order placement ---

    async def create_order(self, user_id: int, request: CreateOrderRequest) -> Dict[str, Any]:
        """Turn a cart into a priced order in a single transaction.

        Product rows are locked before validation and decremented
        conditionally, so when two checkouts race for the last unit only
        one commits; the other raises InsufficientStock and nothing of it
        is persisted.
        """
        requested = self._merge_lines(request)

        async with self.db.pool.acquire() as conn:
            async with conn.transaction():
                products = await self.product_service.lock_products(conn, requested.keys())

                lines: List[OrderItem] = []
                for product_id, quantity in requested.items():
                    product = products.get(product_id)
                    if not product or not product.is_active:
                        raise ProductUnavailable(product_id)
                    if not product.can_supply(quantity):
                        raise InsufficientStock(
                            product_id, product.product_name,
                            requested=quantity, available=product.quantity
                        )
                    lines.append(OrderItem(
                        product_id=product.product_id,
                        farmer_id=product.farmer_id,
                        product_name=product.product_name,
                        quantity=quantity,
                        price=product.price
                    ))

                subtotal = calculate_subtotal(lines)
                coupon, coupon_discount = await self.coupon_service.evaluate(
                    conn, request.coupon_code, subtotal
                )
                breakdown = price_order(lines, coupon_discount)

                order = await conn.fetchrow("""
                    INSERT INTO orders (
                        order_number, user_id, total_amount, delivery_charge,
                        discount, final_amount, coupon_code, status,
                        payment_method, delivery_address, delivery_instructions,
                        tracking_id, expected_delivery_date
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13)
                    RETURNING order_id, order_number, tracking_id
                """,
                    generate_order_number(),
                    user_id,
                    breakdown.subtotal,
                    breakdown.delivery_charge,
                    breakdown.discount,
                    breakdown.final_amount,
                    coupon.code if coupon else None,
                    OrderStatus.PENDING.value,
                    request.payment_method.value,
                    request.delivery_address,
                    request.delivery_instructions,
                    generate_tracking_id(),
                    expected_delivery_date()
                )
                order_id = order['order_id']

                if coupon:
                    await self.coupon_service.redeem(
                        conn, coupon, order_id, user_id, breakdown.discount
                    )

                for line in lines:
                    await conn.execute("""
                        INSERT INTO order_items (
                            order_id, product_id, farmer_id, quantity, price, total_price
                        ) VALUES ($1, $2, $3, $4, $5, $6)
                    """, order_id, line.product_id, line.farmer_id,
                         line.quantity, line.price, line.total_price)

                    await self.product_service.reserve_stock(conn, products[line.product_id], line.quantity)

                event = await self.tracking_service.add_event(
                    conn, order_id, "Order Placed",
                    Config.WAREHOUSE_LOCATION,
                    "Your order has been received and is being processed"
                )

        self.logger.info(
            f"Order {order['order_number']} placed by user {user_id}: "
            f"{len(lines)} item(s), final amount {breakdown.final_amount}"
        )

        await self.notifier.notify(
            Messages.order_placed(user_id, order_id, order['order_number'], breakdown.final_amount),
            event
        )
        for farmer_id in sorted({line.farmer_id for line in lines}):
            await self.notifier.notify(
                Messages.new_farmer_order(farmer_id, order_id, order['order_number'])
            )

        return {
            "message": "Order placed successfully",
            "orderId": order_id,
            "orderNumber": order['order_number'],
            "trackingId": order['tracking_id'],
            "subtotal": breakdown.subtotal,
            "deliveryCharge": breakdown.delivery_charge,
            "discount": breakdown.discount,
            "finalAmount": breakdown.final_amount
        }

    @staticmethod
    def _merge_lines(request: CreateOrderRequest) -> "OrderedDict[int, int]":
        """Sum quantities of repeated products, keeping cart order"""
        requested: "OrderedDict[int, int]" = OrderedDict()
        for item in request.items:
            requested[item.product_id] = requested.get(item.product_id, 0) + item.quantity
        return requested

    # --- Status lifecycle ---

    async def update_order_status(self, user: CurrentUser, order_id: int,
                                  update: StatusUpdateRequest) -> Dict[str, Any]:
        """Move an order to a new status on behalf of a farmer or admin"""
        async with self.db.pool.acquire() as conn:
            async with conn.transaction():
                order = await self._fetch_order_row(conn, order_id)

                if not user.is_admin:
                    if not user.is_farmer or not await self._farmer_has_items(conn, order_id, user.user_id):
                        raise AuthorizationError("Only the order's farmers or an admin can update its status")

                event = await self._transition(
                    conn, order, update.status,
                    location=update.location,
                    description=update.description
                )

        await self._announce(order, update.status, event)
        return {"message": "Order status updated successfully", "status": update.status.value}

    async def cancel_order(self, user: CurrentUser, order_id: int,
                           reason: Optional[str] = None) -> Dict[str, Any]:
        """Buyer cancellation, allowed only while pending or confirmed"""
        async with self.db.pool.acquire() as conn:
            async with conn.transaction():
                order = await self._fetch_order_row(conn, order_id)

                if order['user_id'] != user.user_id:
                    raise AuthorizationError()

                current = OrderStatus(order['status'])
                if not current.is_buyer_cancellable:
                    raise InvalidStatusTransition(
                        current.value, OrderStatus.CANCELLED.value,
                        "order cannot be cancelled at this stage"
                    )

                event = await self._transition(
                    conn, order, OrderStatus.CANCELLED,
                    description=reason or "Order cancelled by customer"
                )

        await self._announce(order, OrderStatus.CANCELLED, event)
        return {"message": "Order cancelled successfully"}

    async def _transition(self, conn, order, target: OrderStatus,
                          location: Optional[str] = None,
                          description: Optional[str] = None) -> TrackingEvent:
        """Apply a checked status change and append its tracking event"""
        current = OrderStatus(order['status'])
        current.check_transition(target)

        result = await conn.execute("""
            UPDATE orders
            SET status = $1, updated_at = CURRENT_TIMESTAMP
            WHERE order_id = $2 AND status = $3
        """, target.value, order['order_id'], current.value)

        if result != "UPDATE 1":
            raise ConflictError(f"Order {order['order_number']} was modified concurrently, retry")

        if target == OrderStatus.CANCELLED:
            items = await conn.fetch("""
                SELECT product_id, quantity
                FROM order_items
                WHERE order_id = $1
            """, order['order_id'])
            await self.product_service.restore_stock(conn, [dict(i) for i in items])

        event = await self.tracking_service.add_event(
            conn, order['order_id'], target.value,
            location or Config.DEFAULT_TRANSIT_LOCATION,
            description or Messages.tracking_description(target)
        )

        self.logger.info(f"Order {order['order_number']} moved {current.value} -> {target.value}")
        return event

    async def _announce(self, order, status: OrderStatus, event: TrackingEvent):
        await self.notifier.notify(
            Messages.status_changed(
                order['user_id'], order['order_id'], order['order_number'],
                status, event.created_at
            ),
            event
        )

    async def _fetch_order_row(self, conn, order_id: int):
        order = await conn.fetchrow("""
            SELECT order_id, order_number, user_id, status
            FROM orders
            WHERE order_id = $1
        """, order_id)
        if not order:
            raise NotFoundError("Order", order_id)
        return order

    async def _farmer_has_items(self, conn, order_id: int, farmer_id: int) -> bool:
        return await conn.fetchval("""
            SELECT EXISTS (
                SELECT 1 FROM order_items
                WHERE order_id = $1 AND farmer_id = $2
            )
        """, order_id, farmer_id)

    # --- Read paths ---

    async def get_order(self, order_id: int) -> Dict[str, Any]:
        """Full order with buyer, line items and tracking history"""
        async with self.db.pool.acquire() as conn:
            order = await conn.fetchrow(f"""
                SELECT o.*,
                    u.name as customer_name, u.email, u.phone,
                    {ITEMS_SUBQUERY.format(farmer_filter="")}
                FROM orders o
                JOIN users u ON u.user_id = o.user_id
                WHERE o.order_id = $1
            """, order_id)

            if not order:
                raise NotFoundError("Order", order_id)

            order = dict(order)
            order['tracking'] = await self.tracking_service.get_history(order_id, conn)
            return order

    async def get_order_for(self, user: CurrentUser, order_id: int) -> Dict[str, Any]:
        """Order detail visible to its buyer and to admins"""
        order = await self.get_order(order_id)
        if not user.is_admin and order['user_id'] != user.user_id:
            raise AuthorizationError()
        return order

    async def get_user_orders(self, user_id: int, limit: int, offset: int = 0) -> List[Dict[str, Any]]:
        """A buyer's orders, newest first"""
        async with self.db.pool.acquire() as conn:
            orders = await conn.fetch(f"""
                SELECT o.*,
                    (SELECT COUNT(*) FROM order_items WHERE order_id = o.order_id) as item_count,
                    {ITEMS_SUBQUERY.format(farmer_filter="")}
                FROM orders o
                WHERE o.user_id = $1
                ORDER BY o.order_date DESC, o.order_id DESC
                LIMIT $2 OFFSET $3
            """, user_id, limit, offset)
            return [dict(order) for order in orders]

    async def get_farmer_orders(self, farmer_id: int, limit: int, offset: int = 0) -> List[Dict[str, Any]]:
        """Orders holding the farmer's products, with only their line items"""
        async with self.db.pool.acquire() as conn:
            orders = await conn.fetch(f"""
                SELECT o.*,
                    u.name as customer_name, u.phone as customer_phone,
                    u.email as customer_email, u.address as customer_address,
                    {ITEMS_SUBQUERY.format(farmer_filter="AND oi.farmer_id = $1")}
                FROM orders o
                JOIN users u ON u.user_id = o.user_id
                WHERE EXISTS (
                    SELECT 1 FROM order_items
                    WHERE order_id = o.order_id AND farmer_id = $1
                )
                ORDER BY o.order_date DESC, o.order_id DESC
                LIMIT $2 OFFSET $3
            """, farmer_id, limit, offset)
            return [dict(order) for order in orders]

    async def search_orders(self, status: Optional[OrderStatus] = None,
                            start_date: Optional[date] = None,
                            end_date: Optional[date] = None,
                            limit: int = Config.DEFAULT_PAGE_SIZE,
                            offset: int = 0) -> List[Dict[str, Any]]:
        """All orders for admins, optionally filtered by status and date range"""
        query = """
            SELECT o.*, u.name as customer_name, u.email, u.phone,
                (SELECT COUNT(*) FROM order_items WHERE order_id = o.order_id) as item_count
            FROM orders o
            JOIN users u ON u.user_id = o.user_id
            WHERE 1=1
        """
        params = []
        param_index = 1

        if status:
            query += f" AND o.status = ${param_index}"
            params.append(status.value)
            param_index += 1

        if start_date:
            query += f" AND o.order_date::date >= ${param_index}"
            params.append(start_date)
            param_index += 1

        if end_date:
            query += f" AND o.order_date::date <= ${param_index}"
            params.append(end_date)
            param_index += 1

        query += " ORDER BY o.order_date DESC, o.order_id DESC"
        query += f" LIMIT ${param_index} OFFSET ${param_index + 1}"
        params.extend([limit, offset])

        async with self.db.pool.acquire() as conn:
            orders = await conn.fetch(query, *params)
            return [dict(order) for order in orders]

    async def get_stats(self) -> Dict[str, Any]:
        """Marketplace totals for the admin dashboard"""
        async with self.db.pool.acquire() as conn:
            totals = await conn.fetchrow("""
                SELECT
                    COUNT(*) as total_orders,
                    COALESCE(SUM(final_amount) FILTER (WHERE status <> 'cancelled'), 0) as revenue
                FROM orders
            """)

            by_status = await conn.fetch("""
                SELECT status, COUNT(*) as count
                FROM orders
                GROUP BY status
                ORDER BY status
            """)

            top_products = await conn.fetch("""
                SELECT product_id, product_name, total_sold, quantity
                FROM products
                WHERE is_active = true
                ORDER BY total_sold DESC
                LIMIT 10
            """)

            return {
                "totalOrders": totals['total_orders'],
                "totalRevenue": totals['revenue'],
                "ordersByStatus": [dict(s) for s in by_status],
                "topProducts": [dict(p) for p in top_products]
            }
