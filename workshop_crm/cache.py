"""
Caching utilities for frequently read data.

Two layers:
- TTLCache: process-local map with per-entry expiry, owned by whoever creates it
- Cache: optional Redis JSON cache shared between workers, fail-open
"""

import json
import logging
import time
from threading import Lock
from typing import Any, Callable, Optional

import redis

from .config import REDIS_URL

logger = logging.getLogger(__name__)


def get_redis_client(redis_url: Optional[str] = None) -> Optional[redis.Redis]:
    """
    Create a Redis client from REDIS_URL, or return None when Redis is not configured
    """
    url = redis_url or REDIS_URL
    if not url:
        return None

    # Mask password in URL for logging
    if "@" in url:
        url_parts = url.split("@")
        protocol = url_parts[0].split(":")[0]
        masked_url = f"{protocol}:****@{url_parts[1]}"
    else:
        masked_url = "****"
    logger.info(f"📡 Using Redis URL connection: {masked_url}")

    client = redis.from_url(
        url,
        decode_responses=True,
        socket_connect_timeout=5,
        socket_timeout=5,
        retry_on_timeout=True,
        health_check_interval=30,
    )
    client.ping()
    logger.info("✅ Redis connected successfully via URL")
    return client


class Cache:
    """Redis cache wrapper with automatic serialization"""

    def __init__(self, client_factory: Callable[[], Optional[redis.Redis]] = get_redis_client):
        self._client_factory = client_factory
        self.redis_client = None
        self._unavailable = False

    def _get_client(self):
        """Lazy load Redis client"""
        if self.redis_client is None and not self._unavailable:
            try:
                self.redis_client = self._client_factory()
            except Exception as e:
                logger.warning(f"⚠️ Redis cache unavailable: {e}")
                self._unavailable = True
                return None
            if self.redis_client is None:
                self._unavailable = True
        return self.redis_client

    @property
    def available(self) -> bool:
        return self._get_client() is not None

    def get(self, key: str) -> Optional[Any]:
        client = self._get_client()
        if not client:
            return None

        try:
            value = client.get(key)
            if value:
                logger.debug(f"✅ Cache HIT: {key}")
                return json.loads(value)
            logger.debug(f"❌ Cache MISS: {key}")
            return None
        except Exception as e:
            logger.error(f"❌ Cache get error for {key}: {e}")
            return None

    def set(self, key: str, value: Any, ttl: int = 3600) -> bool:
        """Set value in cache with TTL (default 1 hour)"""
        client = self._get_client()
        if not client:
            return False

        try:
            client.setex(key, ttl, json.dumps(value))
            logger.debug(f"✅ Cache SET: {key} (TTL: {ttl}s)")
            return True
        except Exception as e:
            logger.error(f"❌ Cache set error for {key}: {e}")
            return False


class TTLCache:
    """
    In-process cache with a fixed time-to-live per entry.

    Expired entries are kept until purged so callers can still serve them as
    stale data when the source of truth is unreachable (see get_stale).
    """

    def __init__(
        self,
        ttl_seconds: float,
        max_entries: int = 10000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: dict[str, tuple[Any, float]] = {}
        self._lock = Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value if present and not expired"""
        with self._lock:
            item = self._entries.get(key)
        if item is None:
            return None
        value, stored_at = item
        if self._clock() - stored_at > self.ttl_seconds:
            return None
        return value

    def get_stale(self, key: str) -> Optional[Any]:
        """Return the cached value even if it has expired"""
        with self._lock:
            item = self._entries.get(key)
        return item[0] if item else None

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            if key not in self._entries and len(self._entries) >= self.max_entries:
                self._purge_expired_locked()
                if len(self._entries) >= self.max_entries:
                    oldest = min(self._entries, key=lambda k: self._entries[k][1])
                    del self._entries[oldest]
            self._entries[key] = (value, self._clock())

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def _purge_expired_locked(self) -> int:
        now = self._clock()
        expired = [k for k, (_, stored_at) in self._entries.items() if now - stored_at > self.ttl_seconds]
        for k in expired:
            del self._entries[k]
        if expired:
            logger.debug(f"🧹 Purged {len(expired)} expired cache entries")
        return len(expired)
