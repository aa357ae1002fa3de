"""
Key-value storage backends for persisted client state (cart, activity).
"""
from typing import Dict, Optional

from storefront.redis_client import RedisClient


class KeyValueStorage:
    """Minimal string key-value store, the shape of browser local storage"""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def ping(self) -> bool:
        return True


class MemoryStorage(KeyValueStorage):
    """Process-local storage"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class RedisStorage(KeyValueStorage):
    """Redis-backed storage; every write refreshes the key's TTL"""

    def __init__(self, redis: RedisClient, ttl: Optional[int] = None):
        self.redis = redis
        self.ttl = ttl

    def get(self, key: str) -> Optional[str]:
        return self.redis.get(key)

    def set(self, key: str, value: str) -> None:
        self.redis.set(key, value, ex=self.ttl)

    def delete(self, key: str) -> None:
        self.redis.delete(key)

    def ping(self) -> bool:
        return self.redis.ping()
