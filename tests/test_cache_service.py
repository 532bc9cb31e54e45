"""Tests for the dashboard cache."""
import pytest

from freightdocs.services.cache_service import CacheService, InMemoryCache


class TestCacheService:

    @pytest.mark.asyncio
    async def test_keys_are_namespaced(self):
        backend = InMemoryCache()
        cache = CacheService(backend, namespace="ns")
        await cache.set("dashboard:summary", {"crts": 1})

        assert await backend.get("ns:dashboard:summary") == {"crts": 1}
        assert await cache.get("dashboard:summary") == {"crts": 1}

    @pytest.mark.asyncio
    async def test_invalidate_dashboard(self, cache):
        await cache.set_dashboard({"counts": {"crts": 4}})
        await cache.set("carriers:list", [1, 2])

        assert await cache.invalidate_dashboard() == 1
        assert await cache.get_dashboard() is None
        assert await cache.get("carriers:list") == [1, 2]

    @pytest.mark.asyncio
    async def test_expired_entries_are_dropped(self, cache):
        await cache.set("dashboard:summary", {"crts": 4}, ttl=-1)
        assert await cache.get("dashboard:summary") is None

    @pytest.mark.asyncio
    async def test_issue_hook_clears_dashboard(self, cache):
        await cache.set_dashboard({"counts": {"crts": 4}})
        await cache.on_documents_issued("CRT", [object(), object()])
        assert await cache.get_dashboard() is None
