# greenmarket/config.py
import os
import logging
from decimal import Decimal
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Base directory of the project
BASE_DIR = Path(__file__).resolve().parent.parent

class Config:
    """Configuration settings for the marketplace service"""

    # Database settings
    DATABASE_URL: str = os.getenv("DATABASE_URL", "")
    DB_POOL_MIN: int = int(os.getenv("DB_POOL_MIN", "2"))
    DB_POOL_MAX: int = int(os.getenv("DB_POOL_MAX", "10"))

    # Auth settings
    SECRET_KEY: str = os.getenv("SECRET_KEY", "")
    TOKEN_TTL_SECONDS: int = int(os.getenv("TOKEN_TTL_SECONDS", "86400"))

    # Order pricing
    FREE_DELIVERY_THRESHOLD: Decimal = Decimal(os.getenv("FREE_DELIVERY_THRESHOLD", "500"))
    DELIVERY_FEE: Decimal = Decimal(os.getenv("DELIVERY_FEE", "50"))
    EXPECTED_DELIVERY_DAYS: int = int(os.getenv("EXPECTED_DELIVERY_DAYS", "3"))

    # Tracking
    WAREHOUSE_LOCATION: str = os.getenv("WAREHOUSE_LOCATION", "Green Market Warehouse")
    DEFAULT_TRANSIT_LOCATION: str = os.getenv("DEFAULT_TRANSIT_LOCATION", "In Transit")

    # Notifications
    NOTIFICATION_RETRIES: int = int(os.getenv("NOTIFICATION_RETRIES", "2"))
    NOTIFICATION_LIST_LIMIT: int = 50

    # Pagination
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    # Server settings
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "5000"))
    FRONTEND_URL: str = os.getenv("FRONTEND_URL", "http://localhost:3000")

    # Other settings
    TIMEZONE: str = os.getenv("TZ", "Asia/Kolkata")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Paths
    LOG_DIR = BASE_DIR / "logs"

    @classmethod
    def validate(cls):
        """Fail fast on settings the service cannot start without"""
        if not cls.DATABASE_URL:
            raise ValueError("No DATABASE_URL set in environment")
        if not cls.SECRET_KEY:
            raise ValueError("No SECRET_KEY set in environment")

def setup_logging():
    """Configure logging settings"""
    Config.LOG_DIR.mkdir(exist_ok=True)
    log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    log_file = Config.LOG_DIR / "greenmarket.log"

    logging.basicConfig(
        level=getattr(logging, Config.LOG_LEVEL.upper(), logging.INFO),
        format=log_format,
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ]
    )
