"""In-memory TTL cache for upstream responses."""
from typing import Optional, Any
from datetime import datetime, timedelta
from cashback.config import settings


class CacheService:
    """Process-local cache keyed by strings; entries expire after their TTL."""

    def __init__(self, ttl_seconds: Optional[int] = None, enabled: Optional[bool] = None):
        self.enabled = settings.enable_cache if enabled is None else enabled
        self.ttl_seconds = ttl_seconds or settings.cache_ttl_seconds
        self._cache: dict[str, tuple[Any, datetime]] = {}

    @staticmethod
    def make_key(prefix: str, *parts: Any) -> str:
        return ":".join([prefix, *(str(p).lower() for p in parts)])

    def get(self, key: str) -> Optional[Any]:
        if not self.enabled:
            return None

        entry = self._cache.get(key)
        if entry is None:
            return None

        value, expiry = entry
        if datetime.utcnow() >= expiry:
            del self._cache[key]
            return None

        return value

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None):
        if not self.enabled:
            return

        ttl = ttl_seconds or self.ttl_seconds
        self._cache[key] = (value, datetime.utcnow() + timedelta(seconds=ttl))

    def delete(self, key: str):
        self._cache.pop(key, None)

    def clear(self):
        self._cache.clear()
