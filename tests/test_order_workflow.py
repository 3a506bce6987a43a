"""Order workflow tests against PostgreSQL (skipped without TEST_DATABASE_URL)."""

import asyncio
from decimal import Decimal

import pytest

from greenmarket.errors import (
    AuthorizationError,
    ConflictError,
    InsufficientStock,
    InvalidStatusTransition,
    ProductUnavailable,
)
from greenmarket.models.order import CreateOrderRequest, OrderStatus, StatusUpdateRequest
from greenmarket.models.user import CurrentUser, UserRole
from greenmarket.services.coupon_service import CouponService
from greenmarket.services.notification_service import NotificationService
from greenmarket.services.notifier import Notifier
from greenmarket.services.order_service import OrderService

from .conftest import RecordingRooms


@pytest.fixture
def rooms():
    return RecordingRooms()


@pytest.fixture
def orders(database, rooms):
    return OrderService(database, Notifier(NotificationService(database), rooms))


@pytest.fixture
async def parties(seed):
    buyer_id = await seed.user("Asha")
    other_buyer_id = await seed.user("Ravi")
    farmer_id = await seed.user("Meera", role="farmer")
    other_farmer_id = await seed.user("Kiran", role="farmer")
    return {
        "buyer": CurrentUser(user_id=buyer_id, role=UserRole.BUYER),
        "other_buyer": CurrentUser(user_id=other_buyer_id, role=UserRole.BUYER),
        "farmer": CurrentUser(user_id=farmer_id, role=UserRole.FARMER),
        "other_farmer": CurrentUser(user_id=other_farmer_id, role=UserRole.FARMER),
    }


def cart(*lines, coupon=None):
    return CreateOrderRequest(
        items=[{"productId": product_id, "quantity": quantity} for product_id, quantity in lines],
        deliveryAddress="12 Farm Lane",
        couponCode=coupon,
    )


async def stock(seed, product_id):
    return await seed.fetchval("SELECT quantity FROM products WHERE product_id = $1", product_id)


async def count(seed, table):
    return await seed.fetchval(f"SELECT COUNT(*) FROM {table}")


class TestCreateOrder:
    async def test_small_cart_pays_flat_delivery(self, orders, seed, parties):
        p1 = await seed.product(parties["farmer"].user_id, "Tomatoes", 100, 10)

        result = await orders.create_order(parties["buyer"].user_id, cart((p1, 3)))

        assert result["subtotal"] == Decimal("300.00")
        assert result["deliveryCharge"] == Decimal("50.00")
        assert result["finalAmount"] == Decimal("350.00")
        assert result["orderNumber"].startswith("GM")
        assert result["trackingId"].startswith("TRK")
        assert await stock(seed, p1) == 7
        assert await seed.fetchval("SELECT total_sold FROM products WHERE product_id = $1", p1) == 3

    async def test_free_delivery_over_threshold(self, orders, seed, parties):
        p1 = await seed.product(parties["farmer"].user_id, "Mangoes", 200, 10)

        result = await orders.create_order(parties["buyer"].user_id, cart((p1, 3)))

        assert result["deliveryCharge"] == Decimal("0.00")
        assert result["finalAmount"] == Decimal("600.00")

    async def test_fetched_items_sum_to_subtotal(self, orders, seed, parties):
        p1 = await seed.product(parties["farmer"].user_id, "Onions", "35.50", 20)
        p2 = await seed.product(parties["other_farmer"].user_id, "Garlic", "120.25", 5)

        result = await orders.create_order(parties["buyer"].user_id, cart((p1, 4), (p2, 2)))
        order = await orders.get_order(result["orderId"])

        assert len(order["items"]) == 2
        assert sum(Decimal(str(i["total_price"])) for i in order["items"]) == order["total_amount"]
        assert order["final_amount"] == (
            order["total_amount"] + order["delivery_charge"] - order["discount"]
        )
        assert [t["status"] for t in order["tracking"]] == ["Order Placed"]

    async def test_repeated_product_lines_are_merged(self, orders, seed, parties):
        p1 = await seed.product(parties["farmer"].user_id, "Okra", 10, 5)

        result = await orders.create_order(parties["buyer"].user_id, cart((p1, 2), (p1, 3)))
        order = await orders.get_order(result["orderId"])

        assert [i["quantity"] for i in order["items"]] == [5]
        assert await stock(seed, p1) == 0

    async def test_insufficient_stock_persists_nothing(self, orders, seed, parties):
        p1 = await seed.product(parties["farmer"].user_id, "Spinach", 40, 10)
        p2 = await seed.product(parties["farmer"].user_id, "Carrots", 30, 1)

        with pytest.raises(InsufficientStock, match="Carrots"):
            await orders.create_order(parties["buyer"].user_id, cart((p1, 2), (p2, 2)))

        assert await count(seed, "orders") == 0
        assert await count(seed, "order_items") == 0
        assert await stock(seed, p1) == 10

    async def test_inactive_and_missing_products(self, orders, seed, parties):
        hidden = await seed.product(parties["farmer"].user_id, "Beans", 40, 10, is_active=False)

        with pytest.raises(ProductUnavailable):
            await orders.create_order(parties["buyer"].user_id, cart((hidden, 1)))
        with pytest.raises(ProductUnavailable):
            await orders.create_order(parties["buyer"].user_id, cart((987654, 1)))

    async def test_buyer_and_farmers_are_notified(self, orders, seed, parties, rooms):
        p1 = await seed.product(parties["farmer"].user_id, "Chillies", 10, 10)

        result = await orders.create_order(parties["buyer"].user_id, cart((p1, 1)))

        buyer_notes = await NotificationService(orders.db).get_user_notifications(parties["buyer"].user_id)
        farmer_notes = await NotificationService(orders.db).get_user_notifications(parties["farmer"].user_id)
        assert buyer_notes[0]["link"] == f"/order-tracking/{result['orderId']}"
        assert buyer_notes[0]["title"] == "Order Placed"
        assert farmer_notes[0]["title"] == "New Order Received"
        assert rooms.emitted[0][0] == f"order_{result['orderId']}"


class TestStockRace:
    async def test_last_unit_sold_once(self, orders, seed, parties):
        p1 = await seed.product(parties["farmer"].user_id, "Pumpkin", 90, 1)

        results = await asyncio.gather(
            orders.create_order(parties["buyer"].user_id, cart((p1, 1))),
            orders.create_order(parties["other_buyer"].user_id, cart((p1, 1))),
            return_exceptions=True,
        )

        successes = [r for r in results if isinstance(r, dict)]
        failures = [r for r in results if isinstance(r, Exception)]
        assert len(successes) == 1
        assert len(failures) == 1
        assert isinstance(failures[0], InsufficientStock)
        assert await stock(seed, p1) == 0
        assert await count(seed, "orders") == 1


class TestCoupons:
    async def test_percentage_coupon_with_cap(self, orders, seed, parties):
        p1 = await seed.product(parties["farmer"].user_id, "Rice", 100, 50)
        await seed.coupon("HARVEST", "percentage", 20, max_discount=50)

        result = await orders.create_order(parties["buyer"].user_id, cart((p1, 4), coupon="harvest"))

        assert result["discount"] == Decimal("50.00")
        assert result["finalAmount"] == Decimal("400.00")
        assert await seed.fetchval("SELECT used_count FROM coupons WHERE code = 'HARVEST'") == 1
        assert await count(seed, "coupon_usage") == 1

    async def test_fixed_coupon_larger_than_order_floors_at_zero(self, orders, seed, parties):
        p1 = await seed.product(parties["farmer"].user_id, "Lemons", 20, 50)
        await seed.coupon("BIGGIFT", "fixed", 1000)

        result = await orders.create_order(parties["buyer"].user_id, cart((p1, 2), coupon="BIGGIFT"))

        assert result["subtotal"] == Decimal("40.00")
        assert result["discount"] == Decimal("90.00")
        assert result["finalAmount"] == Decimal("0.00")

    async def test_unknown_or_inapplicable_coupon_is_ignored(self, orders, seed, parties):
        p1 = await seed.product(parties["farmer"].user_id, "Wheat", 100, 50)
        await seed.coupon("BULK", "percentage", 10, min_order=1000)

        unknown = await orders.create_order(parties["buyer"].user_id, cart((p1, 1), coupon="NOPE"))
        too_small = await orders.create_order(parties["buyer"].user_id, cart((p1, 1), coupon="BULK"))

        assert unknown["discount"] == Decimal("0.00")
        assert too_small["discount"] == Decimal("0.00")
        assert await seed.fetchval("SELECT used_count FROM coupons WHERE code = 'BULK'") == 0

    async def test_single_use_coupon_redeemed_once(self, database, seed, parties):
        coupon_id = await seed.coupon("ONCE", "fixed", 10, usage_limit=1)
        coupons = CouponService(database)
        async with database.pool.acquire() as conn:
            coupon, discount = await coupons.evaluate(conn, "ONCE", Decimal("100"))
        assert discount == Decimal("10.00")

        async def attempt(user):
            async with database.pool.acquire() as conn:
                async with conn.transaction():
                    order_id = await conn.fetchval("""
                        INSERT INTO orders (order_number, user_id, total_amount, final_amount,
                                            delivery_address, tracking_id)
                        VALUES ($1, $2, 100, 90, 'x', $1)
                        RETURNING order_id
                    """, f"T{user.user_id}", user.user_id)
                    await coupons.redeem(conn, coupon, order_id, user.user_id, discount)

        results = await asyncio.gather(
            attempt(parties["buyer"]), attempt(parties["other_buyer"]), return_exceptions=True
        )

        assert sum(1 for r in results if r is None) == 1
        assert sum(1 for r in results if isinstance(r, ConflictError)) == 1
        assert await seed.fetchval("SELECT used_count FROM coupons WHERE coupon_id = $1", coupon_id) == 1
        assert await count(seed, "orders") == 1


class TestStatusLifecycle:
    async def test_farmer_ships_order(self, orders, seed, parties, rooms):
        p1 = await seed.product(parties["farmer"].user_id, "Potatoes", 25, 40)
        order_id = (await orders.create_order(parties["buyer"].user_id, cart((p1, 4))))["orderId"]
        rooms.emitted.clear()

        await orders.update_order_status(
            parties["farmer"], order_id, StatusUpdateRequest(status=OrderStatus.SHIPPED)
        )

        order = await orders.get_order(order_id)
        assert order["status"] == "shipped"
        assert [t["status"] for t in order["tracking"]] == ["Order Placed", "shipped"]
        assert order["tracking"][1]["location"] == "In Transit"
        assert len(rooms.emitted) == 1
        room, event, data = rooms.emitted[0]
        assert room == f"order_{order_id}"
        assert event == "orderStatusUpdate"
        assert data["status"] == "shipped"

    async def test_unrelated_farmer_rejected(self, orders, seed, parties):
        p1 = await seed.product(parties["farmer"].user_id, "Peas", 25, 40)
        order_id = (await orders.create_order(parties["buyer"].user_id, cart((p1, 1))))["orderId"]

        with pytest.raises(AuthorizationError):
            await orders.update_order_status(
                parties["other_farmer"], order_id, StatusUpdateRequest(status=OrderStatus.CONFIRMED)
            )

    async def test_backwards_move_rejected(self, orders, seed, parties):
        p1 = await seed.product(parties["farmer"].user_id, "Corn", 25, 40)
        order_id = (await orders.create_order(parties["buyer"].user_id, cart((p1, 1))))["orderId"]
        admin = CurrentUser(user_id=parties["buyer"].user_id, role=UserRole.ADMIN)

        await orders.update_order_status(admin, order_id, StatusUpdateRequest(status=OrderStatus.PACKED))
        with pytest.raises(InvalidStatusTransition):
            await orders.update_order_status(admin, order_id, StatusUpdateRequest(status=OrderStatus.CONFIRMED))

    async def test_operator_cancellation_restores_stock(self, orders, seed, parties):
        p1 = await seed.product(parties["farmer"].user_id, "Ginger", 25, 10)
        order_id = (await orders.create_order(parties["buyer"].user_id, cart((p1, 4))))["orderId"]
        await orders.update_order_status(parties["farmer"], order_id, StatusUpdateRequest(status=OrderStatus.SHIPPED))

        await orders.update_order_status(parties["farmer"], order_id, StatusUpdateRequest(status=OrderStatus.CANCELLED))

        assert await stock(seed, p1) == 10


class TestCancellation:
    async def test_cancel_restores_every_line(self, orders, seed, parties):
        p1 = await seed.product(parties["farmer"].user_id, "Apples", 80, 10)
        p2 = await seed.product(parties["other_farmer"].user_id, "Pears", 60, 6)
        order_id = (await orders.create_order(parties["buyer"].user_id, cart((p1, 3), (p2, 6))))["orderId"]

        await orders.cancel_order(parties["buyer"], order_id)

        order = await orders.get_order(order_id)
        assert order["status"] == "cancelled"
        assert await stock(seed, p1) == 10
        assert await stock(seed, p2) == 6
        assert await seed.fetchval("SELECT total_sold FROM products WHERE product_id = $1", p1) == 0
        assert order["tracking"][-1]["description"] == "Order cancelled by customer"

    async def test_recancel_is_a_state_error(self, orders, seed, parties):
        p1 = await seed.product(parties["farmer"].user_id, "Plums", 80, 10)
        order_id = (await orders.create_order(parties["buyer"].user_id, cart((p1, 3))))["orderId"]
        await orders.cancel_order(parties["buyer"], order_id)

        with pytest.raises(InvalidStatusTransition):
            await orders.cancel_order(parties["buyer"], order_id)
        assert await stock(seed, p1) == 10

    async def test_buyer_cannot_cancel_shipped_order(self, orders, seed, parties):
        p1 = await seed.product(parties["farmer"].user_id, "Figs", 80, 10)
        order_id = (await orders.create_order(parties["buyer"].user_id, cart((p1, 1))))["orderId"]
        await orders.update_order_status(parties["farmer"], order_id, StatusUpdateRequest(status=OrderStatus.SHIPPED))

        with pytest.raises(InvalidStatusTransition):
            await orders.cancel_order(parties["buyer"], order_id)

    async def test_only_owner_cancels(self, orders, seed, parties):
        p1 = await seed.product(parties["farmer"].user_id, "Dates", 80, 10)
        order_id = (await orders.create_order(parties["buyer"].user_id, cart((p1, 1))))["orderId"]

        with pytest.raises(AuthorizationError):
            await orders.cancel_order(parties["other_buyer"], order_id)


class TestQueries:
    async def test_farmer_sees_only_own_lines(self, orders, seed, parties):
        p1 = await seed.product(parties["farmer"].user_id, "Cabbage", 30, 10)
        p2 = await seed.product(parties["other_farmer"].user_id, "Cauliflower", 40, 10)
        await orders.create_order(parties["buyer"].user_id, cart((p1, 1), (p2, 1)))
        await orders.create_order(parties["buyer"].user_id, cart((p2, 2)))

        farmer_orders = await orders.get_farmer_orders(parties["farmer"].user_id, limit=20)

        assert len(farmer_orders) == 1
        assert [i["product_id"] for i in farmer_orders[0]["items"]] == [p1]

    async def test_buyer_listing_is_paginated(self, orders, seed, parties):
        p1 = await seed.product(parties["farmer"].user_id, "Beets", 30, 10)
        for _ in range(3):
            await orders.create_order(parties["buyer"].user_id, cart((p1, 1)))

        first = await orders.get_user_orders(parties["buyer"].user_id, limit=2, offset=0)
        rest = await orders.get_user_orders(parties["buyer"].user_id, limit=2, offset=2)

        assert len(first) == 2 and len(rest) == 1
        assert first[0]["item_count"] == 1
        assert not {o["order_id"] for o in first} & {o["order_id"] for o in rest}

    async def test_admin_search_by_status(self, orders, seed, parties):
        p1 = await seed.product(parties["farmer"].user_id, "Radish", 30, 10)
        first = (await orders.create_order(parties["buyer"].user_id, cart((p1, 1))))["orderId"]
        await orders.create_order(parties["buyer"].user_id, cart((p1, 1)))
        await orders.cancel_order(parties["buyer"], first)

        cancelled = await orders.search_orders(status=OrderStatus.CANCELLED)

        assert [o["order_id"] for o in cancelled] == [first]

    async def test_foreign_buyer_cannot_read_order(self, orders, seed, parties):
        p1 = await seed.product(parties["farmer"].user_id, "Leeks", 30, 10)
        order_id = (await orders.create_order(parties["buyer"].user_id, cart((p1, 1))))["orderId"]

        assert (await orders.get_order_for(parties["buyer"], order_id))["order_id"] == order_id
        with pytest.raises(AuthorizationError):
            await orders.get_order_for(parties["other_buyer"], order_id)
