# greenmarket/utils/formatters.py
import secrets
import time
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
import pytz
from ..config import Config

CENT = Decimal("0.01")

def to_money(amount) -> Decimal:
    """Round to two decimal places"""
    return Decimal(str(amount)).quantize(CENT, rounding=ROUND_HALF_UP)

def format_price(amount: Decimal) -> str:
    """Format an amount for notification text"""
    return f"₹{amount:,.2f}"

def format_datetime(dt: datetime) -> str:
    """Format a timestamp in the configured time zone"""
    local_tz = pytz.timezone(Config.TIMEZONE)
    if dt.tzinfo is None:
        dt = pytz.utc.localize(dt)
    return dt.astimezone(local_tz).strftime("%Y-%m-%d %H:%M:%S")

def generate_order_number() -> str:
    """Human readable, time derived order number"""
    return f"GM{int(time.time() * 1000)}{secrets.randbelow(100):02d}"

def generate_tracking_id() -> str:
    return f"TRK{int(time.time() * 1000)}{secrets.randbelow(10000):04d}"

def expected_delivery_date(today: date | None = None) -> date:
    local_tz = pytz.timezone(Config.TIMEZONE)
    today = today or datetime.now(local_tz).date()
    return today + timedelta(days=Config.EXPECTED_DELIVERY_DAYS)
