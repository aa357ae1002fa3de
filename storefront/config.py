"""
Configuration management for the travel storefront cart and checkout.
Loads settings from environment variables and AWS Secrets Manager.
"""
import os
import json
import logging
from decimal import Decimal
from typing import Optional

import boto3

logger = logging.getLogger(__name__)


class Config:
    """Application configuration"""

    # Application settings
    APP_PORT: int = int(os.getenv("APP_PORT", "8000"))
    PROJECT_NAME: str = os.getenv("PROJECT_NAME", "travel-storefront")
    REGION: str = os.getenv("REGION", "ap-southeast-2")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Booking backend
    API_BASE_URL: str = os.getenv("API_BASE_URL", "http://localhost:5000/api")
    API_TIMEOUT_SECONDS: float = float(os.getenv("API_TIMEOUT_SECONDS", "30"))

    # Checkout settings
    CURRENCY: str = os.getenv("CURRENCY", "usd")
    TAX_RATE: Decimal = Decimal(os.getenv("TAX_RATE", "0.10"))
    PAYMENT_CONFIRMATION_DELAY_SECONDS: float = float(
        os.getenv("PAYMENT_CONFIRMATION_DELAY_SECONDS", "1.5")
    )
    DEFAULT_PAYMENT_METHOD: str = os.getenv("DEFAULT_PAYMENT_METHOD", "card")
    BOOKING_POLL_INTERVAL_SECONDS: float = float(os.getenv("BOOKING_POLL_INTERVAL_SECONDS", "10"))

    # Storage settings
    CART_STORAGE_KEY: str = os.getenv("CART_STORAGE_KEY", "cart")
    ACTIVITY_STORAGE_KEY: str = os.getenv("ACTIVITY_STORAGE_KEY", "userActivity")
    CART_TTL_SECONDS: int = int(os.getenv("CART_TTL_SECONDS", str(7 * 24 * 60 * 60)))  # 7 days default

    # Redis settings
    REDIS_HOST: str = os.getenv("REDIS_HOST", "localhost")
    REDIS_PORT: int = int(os.getenv("REDIS_PORT", "6379"))
    REDIS_AUTH_TOKEN: Optional[str] = os.getenv("REDIS_AUTH_TOKEN")
    REDIS_DB: int = int(os.getenv("REDIS_DB", "0"))
    REDIS_SSL: bool = os.getenv("REDIS_SSL", "false").lower() in ("1", "true", "yes")

    # Redis connection settings
    REDIS_SOCKET_CONNECT_TIMEOUT: int = 5
    REDIS_SOCKET_TIMEOUT: int = 5
    REDIS_RETRY_ON_TIMEOUT: bool = True
    REDIS_MAX_CONNECTIONS: int = 50

    @classmethod
    def tax_multiplier(cls) -> Decimal:
        return Decimal("1") + cls.TAX_RATE

    @classmethod
    def redis_url(cls) -> str:
        """Build the Redis connection URL from the current settings"""
        scheme = "rediss" if cls.REDIS_SSL else "redis"
        auth = f":{cls.REDIS_AUTH_TOKEN}@" if cls.REDIS_AUTH_TOKEN else ""
        return f"{scheme}://{auth}{cls.REDIS_HOST}:{cls.REDIS_PORT}/{cls.REDIS_DB}"

    @classmethod
    def load_redis_secrets(cls) -> None:
        """Load Redis authentication token from AWS Secrets Manager"""
        if cls.REDIS_AUTH_TOKEN:
            return  # Already loaded from environment

        secret_name = os.getenv("REDIS_SECRET_NAME")
        if not secret_name:
            return

        try:
            client = boto3.client("secretsmanager", region_name=cls.REGION)
            response = client.get_secret_value(SecretId=secret_name)
            secret_data = json.loads(response["SecretString"])

            cls.REDIS_AUTH_TOKEN = secret_data.get("auth_token")
            if "endpoint" in secret_data:
                cls.REDIS_HOST = secret_data["endpoint"]
        except Exception as e:
            # Continue without auth token (may fail on connection)
            logger.warning(f"Could not load Redis secrets from Secrets Manager: {e}")


# Load secrets at module import
Config.load_redis_secrets()
