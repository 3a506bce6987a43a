"""Pytest fixtures for greenmarket tests."""

import os
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from greenmarket.app import create_app
from greenmarket.config import Config
from greenmarket.database import Database
from greenmarket.models.user import UserRole
from greenmarket.realtime.rooms import RoomManager
from greenmarket.utils.security import generate_access_token

TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL")

@pytest.fixture(autouse=True)
def test_config(monkeypatch):
    """Deterministic settings for every test."""
    monkeypatch.setattr(Config, "SECRET_KEY", "test-secret")
    monkeypatch.setattr(Config, "FREE_DELIVERY_THRESHOLD", Decimal("500"))
    monkeypatch.setattr(Config, "DELIVERY_FEE", Decimal("50"))
    monkeypatch.setattr(Config, "NOTIFICATION_RETRIES", 2)


def auth_header(user_id: int, role: UserRole) -> dict:
    return {"Authorization": f"Bearer {generate_access_token(user_id, role)}"}


class ConnectedDatabase:
    """Stands in for a Database whose pool is already open."""

    is_connected = True
    pool = None

    async def close(self):
        pass


class RecordingRooms(RoomManager):
    """RoomManager that remembers every emitted event."""

    def __init__(self):
        super().__init__()
        self.emitted = []

    async def emit(self, room, event, data):
        self.emitted.append((room, event, data))
        return await super().emit(room, event, data)


@pytest.fixture
def app():
    return create_app(database=ConnectedDatabase())


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def buyer_headers():
    return auth_header(1, UserRole.BUYER)


@pytest.fixture
def farmer_headers():
    return auth_header(2, UserRole.FARMER)


@pytest.fixture
def admin_headers():
    return auth_header(3, UserRole.ADMIN)


# --- PostgreSQL backed fixtures ---


@pytest.fixture
async def database():
    """Migrated, emptied database; tests using it are skipped without TEST_DATABASE_URL."""
    if not TEST_DATABASE_URL:
        pytest.skip("TEST_DATABASE_URL not set")

    db = Database(TEST_DATABASE_URL)
    await db.connect()
    async with db.pool.acquire() as conn:
        await conn.execute("""
            TRUNCATE notifications, coupon_usage, order_tracking, order_items,
                     orders, coupons, products, categories, users
            RESTART IDENTITY CASCADE
        """)
    yield db
    await db.close()


@pytest.fixture
async def seed(database):
    """Helpers inserting users, products and coupons."""

    class Seed:
        async def user(self, name: str, role: str = "buyer") -> int:
            async with database.pool.acquire() as conn:
                return await conn.fetchval("""
                    INSERT INTO users (name, email, role, address)
                    VALUES ($1, $2, $3, 'Village Road 1')
                    RETURNING user_id
                """, name, f"{name.lower()}@example.com", role)

        async def product(self, farmer_id: int, name: str, price, quantity: int,
                          is_active: bool = True) -> int:
            async with database.pool.acquire() as conn:
                return await conn.fetchval("""
                    INSERT INTO products (farmer_id, product_name, price, quantity, is_active)
                    VALUES ($1, $2, $3, $4, $5)
                    RETURNING product_id
                """, farmer_id, name, Decimal(str(price)), quantity, is_active)

        async def coupon(self, code: str, discount_type: str, value, min_order=0,
                         max_discount=None, usage_limit=None) -> int:
            async with database.pool.acquire() as conn:
                return await conn.fetchval("""
                    INSERT INTO coupons (
                        code, discount_type, discount_value, min_order_amount,
                        max_discount, usage_limit
                    ) VALUES ($1, $2, $3, $4, $5, $6)
                    RETURNING coupon_id
                """, code, discount_type, Decimal(str(value)), Decimal(str(min_order)),
                    Decimal(str(max_discount)) if max_discount is not None else None,
                    usage_limit)

        async def fetchval(self, query: str, *args):
            async with database.pool.acquire() as conn:
                return await conn.fetchval(query, *args)

    return Seed()
