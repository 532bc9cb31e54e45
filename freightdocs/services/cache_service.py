"""
Cache Service for Aggregate Views.

Supports:
1. Redis (preferred for production, shared across workers)
2. In-memory fallback (for development/testing)

Only derived data is cached (the dashboard aggregate). Document
numbering never reads from the cache.

Usage:
    cache = get_cache()

    dashboard = await cache.get_dashboard()
    await cache.set_dashboard(payload)

    # After issuing documents or changing carriers
    await cache.invalidate_dashboard()
"""
import json
from typing import Any, Optional, Dict
from datetime import datetime, timedelta, timezone
from abc import ABC, abstractmethod
import asyncio
import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

from freightdocs.config import settings

logger = logging.getLogger(__name__)


class CacheBackend(ABC):
    """Abstract cache backend interface."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Get value from cache."""
        pass

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int = 3600) -> bool:
        """Set value in cache with TTL (seconds)."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete key from cache."""
        pass

    @abstractmethod
    async def clear_pattern(self, pattern: str) -> int:
        """Clear all keys matching pattern."""
        pass


class InMemoryCache(CacheBackend):
    """
    In-memory cache for development/fallback.

    Not shared between server processes; each worker invalidates only its
    own copy.
    """

    def __init__(self):
        self._cache: Dict[str, tuple[Any, datetime]] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[Any]:
        async with self._lock:
            if key in self._cache:
                value, expires_at = self._cache[key]
                if expires_at > datetime.now(timezone.utc):
                    return value
                del self._cache[key]
            return None

    async def set(self, key: str, value: Any, ttl: int = 3600) -> bool:
        async with self._lock:
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=ttl)
            self._cache[key] = (value, expires_at)
            return True

    async def delete(self, key: str) -> bool:
        async with self._lock:
            if key in self._cache:
                del self._cache[key]
                return True
            return False

    async def clear_pattern(self, pattern: str) -> int:
        """Clear keys matching pattern (simple prefix match)."""
        async with self._lock:
            prefix = pattern.rstrip('*')
            keys_to_delete = [k for k in self._cache.keys() if k.startswith(prefix)]
            for key in keys_to_delete:
                del self._cache[key]
            return len(keys_to_delete)


class RedisCache(CacheBackend):
    """
    Redis cache backend for production.

    Cache failures degrade to misses; they never fail a request.
    """

    def __init__(self, redis_url: str):
        self._redis_url = redis_url
        self._client = None

    def _get_client(self):
        if self._client is None:
            self._client = redis.from_url(self._redis_url, decode_responses=True)
        return self._client

    async def get(self, key: str) -> Optional[Any]:
        try:
            value = await self._get_client().get(key)
            if value:
                return json.loads(value)
            return None
        except RedisError as e:
            logger.warning("Redis get failed for %s: %s", key, e)
            return None

    async def set(self, key: str, value: Any, ttl: int = 3600) -> bool:
        try:
            await self._get_client().set(key, json.dumps(value, default=str), ex=ttl)
            return True
        except RedisError as e:
            logger.warning("Redis set failed for %s: %s", key, e)
            return False

    async def delete(self, key: str) -> bool:
        try:
            await self._get_client().delete(key)
            return True
        except RedisError as e:
            logger.warning("Redis delete failed for %s: %s", key, e)
            return False

    async def clear_pattern(self, pattern: str) -> int:
        try:
            client = self._get_client()
            cursor = 0
            deleted = 0
            while True:
                cursor, keys = await client.scan(cursor, match=pattern, count=100)
                if keys:
                    await client.delete(*keys)
                    deleted += len(keys)
                if cursor == 0:
                    break
            return deleted
        except RedisError as e:
            logger.warning("Redis clear failed for %s: %s", pattern, e)
            return 0


class CacheService:
    """
    Namespaced cache over a pluggable backend.

    Keys follow the format:

        {namespace}:{resource_type}:{identifier}

    Example:
        freightdocs:dashboard:summary
    """

    DASHBOARD_KEY = "dashboard:summary"

    def __init__(self, backend: CacheBackend, namespace: str = "freightdocs"):
        self._backend = backend
        self._namespace = namespace

    def _make_key(self, key: str) -> str:
        return f"{self._namespace}:{key}"

    async def get(self, key: str) -> Optional[Any]:
        return await self._backend.get(self._make_key(key))

    async def set(self, key: str, value: Any, ttl: int = 3600) -> bool:
        return await self._backend.set(self._make_key(key), value, ttl)

    async def delete(self, key: str) -> bool:
        return await self._backend.delete(self._make_key(key))

    async def clear_pattern(self, pattern: str) -> int:
        return await self._backend.clear_pattern(self._make_key(pattern))

    # ==================== Dashboard Cache ====================

    async def get_dashboard(self) -> Optional[dict]:
        if not settings.CACHE_ENABLED:
            return None
        return await self.get(self.DASHBOARD_KEY)

    async def set_dashboard(self, data: dict, ttl: Optional[int] = None) -> bool:
        if not settings.CACHE_ENABLED:
            return False
        ttl = ttl or settings.DASHBOARD_CACHE_TTL
        return await self.set(self.DASHBOARD_KEY, data, ttl)

    async def invalidate_dashboard(self) -> int:
        """Invalidate every dashboard entry."""
        return await self.clear_pattern("dashboard:*")

    async def on_documents_issued(self, document_type, documents) -> None:
        """DocumentIssuer hook: new documents change every dashboard count."""
        cleared = await self.invalidate_dashboard()
        logger.debug(
            "Dashboard cache invalidated after %d %s document(s) (%d key(s))",
            len(documents), getattr(document_type, "value", document_type), cleared
        )


# Singleton cache instance
_cache_instance: Optional[CacheService] = None


def get_cache() -> CacheService:
    """Get the cache service singleton."""
    global _cache_instance

    if _cache_instance is None:
        if settings.REDIS_URL and settings.CACHE_ENABLED:
            backend = RedisCache(settings.REDIS_URL)
            logger.info("Cache initialized with Redis backend")
        else:
            backend = InMemoryCache()
            logger.info("Cache initialized with in-memory backend")

        _cache_instance = CacheService(backend)

    return _cache_instance
