"""Storage backend tests."""
from unittest.mock import MagicMock, patch

import pytest
from redis.exceptions import ConnectionError, ResponseError

from storefront.exceptions import RedisConnectionError
from storefront.redis_client import RedisClient
from storefront.storage import MemoryStorage, RedisStorage


def test_memory_storage_roundtrip():
    storage = MemoryStorage()

    storage.set("cart", "[]")
    assert storage.get("cart") == "[]"

    storage.delete("cart")
    storage.delete("cart")
    assert storage.get("cart") is None


def test_redis_storage_writes_with_ttl():
    redis = MagicMock(spec=RedisClient)
    storage = RedisStorage(redis, ttl=3600)

    storage.set("cart:abc", "[]")
    storage.get("cart:abc")
    storage.delete("cart:abc")

    redis.set.assert_called_once_with("cart:abc", "[]", ex=3600)
    redis.get.assert_called_once_with("cart:abc")
    redis.delete.assert_called_once_with("cart:abc")


@pytest.fixture
def redis_client():
    """RedisClient with the connection step skipped"""
    with patch.object(RedisClient, "_connect"):
        client = RedisClient(url="redis://localhost:6379/0")
    client.client = MagicMock()
    return client


def test_redis_client_retries_connection_errors(redis_client):
    redis_client.client.get.side_effect = [ConnectionError("reset"), "[]"]

    with patch("storefront.redis_client.time.sleep") as sleep, \
            patch.object(RedisClient, "_connect") as reconnect:
        assert redis_client.get("cart") == "[]"

    sleep.assert_called_once()
    reconnect.assert_called_once()


def test_redis_client_gives_up_after_max_retries(redis_client):
    redis_client.client.set.side_effect = ConnectionError("down")

    with patch("storefront.redis_client.time.sleep"), patch.object(RedisClient, "_connect"):
        with pytest.raises(RedisConnectionError):
            redis_client.set("cart", "[]")

    assert redis_client.client.set.call_count == 3


def test_redis_client_does_not_retry_other_errors(redis_client):
    redis_client.client.delete.side_effect = ResponseError("WRONGTYPE")

    with pytest.raises(RedisConnectionError):
        redis_client.delete("cart")

    assert redis_client.client.delete.call_count == 1
