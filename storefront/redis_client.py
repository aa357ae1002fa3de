"""
Redis client wrapper with connection pooling, retry logic, and error handling.
"""
import logging
import random
import time
from typing import Any, Callable, Optional

import redis
from redis.exceptions import (
    AuthenticationError,
    ConnectionError,
    RedisError,
    TimeoutError,
)

from storefront.config import Config
from storefront.exceptions import RedisConnectionError

logger = logging.getLogger(__name__)


class RedisClient:
    """Redis client with connection pooling and retry logic"""

    def __init__(self, url: Optional[str] = None):
        self.url = url or Config.redis_url()
        self.pool: Optional[redis.ConnectionPool] = None
        self.client: Optional[redis.Redis] = None
        self._connect()

    def _connect(self):
        """Initialize Redis connection pool"""
        options = {}
        if self.url.startswith("rediss://"):
            # ElastiCache uses self-signed certs
            options["ssl_cert_reqs"] = None

        try:
            self.pool = redis.ConnectionPool.from_url(
                self.url,
                max_connections=Config.REDIS_MAX_CONNECTIONS,
                socket_connect_timeout=Config.REDIS_SOCKET_CONNECT_TIMEOUT,
                socket_timeout=Config.REDIS_SOCKET_TIMEOUT,
                retry_on_timeout=Config.REDIS_RETRY_ON_TIMEOUT,
                decode_responses=True,
                **options
            )

            self.client = redis.Redis(connection_pool=self.pool)

            # Test connection
            self.client.ping()

        except (ConnectionError, AuthenticationError) as e:
            raise RedisConnectionError(f"Failed to connect to Redis: {e}")

    def _retry_with_backoff(
        self,
        func: Callable,
        max_retries: int = 3,
        initial_backoff: float = 0.1,
        max_backoff: float = 2.0
    ) -> Any:
        """
        Execute function with exponential backoff retry.

        Args:
            func: Function to execute
            max_retries: Maximum number of retry attempts
            initial_backoff: Initial backoff delay in seconds
            max_backoff: Maximum backoff delay in seconds

        Returns:
            Result of function execution

        Raises:
            RedisConnectionError: If all retries fail
        """
        backoff = initial_backoff

        for attempt in range(max_retries):
            try:
                return func()
            except (ConnectionError, TimeoutError) as e:
                if attempt == max_retries - 1:
                    raise RedisConnectionError(f"Redis operation failed after {max_retries} retries: {e}")

                # Exponential backoff with jitter
                jitter = random.uniform(0, backoff * 0.1)
                time.sleep(backoff + jitter)
                backoff = min(backoff * 2, max_backoff)

                try:
                    self._connect()
                except RedisConnectionError as reconnect_error:
                    logger.warning(f"Redis reconnect attempt {attempt + 1} failed: {reconnect_error}")

            except RedisError as e:
                # Non-retryable errors
                raise RedisConnectionError(f"Redis error: {e}")

    def get(self, key: str) -> Optional[str]:
        """Get value from Redis"""
        def _get():
            return self.client.get(key)
        return self._retry_with_backoff(_get)

    def set(self, key: str, value: Any, ex: Optional[int] = None) -> bool:
        """Set value in Redis with optional TTL"""
        def _set():
            return self.client.set(key, value, ex=ex)
        return self._retry_with_backoff(_set)

    def delete(self, *keys: str) -> int:
        """Delete one or more keys"""
        def _delete():
            return self.client.delete(*keys)
        return self._retry_with_backoff(_delete)

    def ping(self) -> bool:
        """Test Redis connection"""
        try:
            return bool(self.client.ping())
        except RedisError:
            return False

    def close(self):
        """Close connection pool"""
        if self.pool:
            self.pool.disconnect()


# Global Redis client instance
_redis_client: Optional[RedisClient] = None


def get_redis_client() -> RedisClient:
    """Get or create Redis client instance (singleton)"""
    global _redis_client
    if _redis_client is None:
        _redis_client = RedisClient()
    return _redis_client
