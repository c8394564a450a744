"""
Unit tests for CatalogCache.
"""

import pytest
from unittest.mock import AsyncMock

from prometheus_client import CollectorRegistry

from shared.errors import UpstreamUnavailableError
from shared.metrics import MetricsCollector
from service_proxy.app.caching.catalog_cache import CatalogCache


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TestCatalogCache:
    """Test cases for CatalogCache."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def cache(self, clock):
        return CatalogCache(60, clock=clock)

    @pytest.mark.asyncio
    async def test_application_is_read_through(self, cache, catalog_store, catalog_session):
        catalog_store.add_app("feature-x", current="v1")

        first = await cache.get_application(catalog_session, "feature-x")
        second = await cache.get_application(catalog_session, "feature-x")

        assert first == second
        assert first.current == "v1"
        assert catalog_store.calls["query_app"] == 1

    @pytest.mark.asyncio
    async def test_not_found_is_cached(self, cache, catalog_store, catalog_session):
        assert await cache.get_application(catalog_session, "missing") is None
        assert await cache.get_application(catalog_session, "missing") is None
        assert catalog_store.calls["query_app"] == 1

    @pytest.mark.asyncio
    async def test_entries_expire_after_ttl(self, cache, clock, catalog_store, catalog_session):
        catalog_store.add_app("feature-x")
        await cache.get_application(catalog_session, "feature-x")

        clock.now = 61
        await cache.get_application(catalog_session, "feature-x")
        assert catalog_store.calls["query_app"] == 2

    @pytest.mark.asyncio
    async def test_stale_value_served_within_ttl(self, cache, catalog_store, catalog_session):
        catalog_store.add_app("feature-x", current="v1")
        await cache.get_application(catalog_session, "feature-x")

        catalog_store.add_app("feature-x", current="v2")
        cached = await cache.get_application(catalog_session, "feature-x")
        assert cached.current == "v1"

    @pytest.mark.asyncio
    async def test_invalidate_application_forces_reload(self, cache, catalog_store, catalog_session):
        catalog_store.add_app("feature-x", current="v1")
        await cache.get_application(catalog_session, "feature-x")

        catalog_store.add_app("feature-x", current="v2")
        cache.invalidate_application("feature-x")
        reloaded = await cache.get_application(catalog_session, "feature-x")
        assert reloaded.current == "v2"

    @pytest.mark.asyncio
    async def test_versions_cached_per_application(self, cache, catalog_store, catalog_session):
        catalog_store.add_version("feature-x", "v1")
        catalog_store.add_version("feature-x", "v2")
        catalog_store.add_version("feature-y", "v9")

        versions = await cache.get_versions(catalog_session, "feature-x")
        assert [v.id for v in versions] == ["v2", "v1"]

        assert (await cache.get_version(catalog_session, "feature-x", "v1")).id == "v1"
        assert await cache.get_version(catalog_session, "feature-x", "v9") is None
        assert catalog_store.calls["query_versions"] == 1

    @pytest.mark.asyncio
    async def test_returned_list_does_not_alias_cache(self, cache, catalog_store, catalog_session):
        catalog_store.add_version("feature-x", "v1")

        versions = await cache.get_versions(catalog_session, "feature-x")
        versions.clear()
        assert len(await cache.get_versions(catalog_session, "feature-x")) == 1

    @pytest.mark.asyncio
    async def test_invalidate_versions(self, cache, catalog_store, catalog_session):
        catalog_store.add_version("feature-x", "v1")
        await cache.get_versions(catalog_session, "feature-x")

        catalog_store.add_version("feature-x", "v2")
        cache.invalidate_versions("feature-x")
        assert (await cache.get_version(catalog_session, "feature-x", "v2")) is not None

    @pytest.mark.asyncio
    async def test_store_failure_is_not_cached(self, cache):
        session = AsyncMock()
        session.query_app.side_effect = UpstreamUnavailableError("DB")

        with pytest.raises(UpstreamUnavailableError):
            await cache.get_application(session, "feature-x")
        assert "feature-x" not in cache.applications

    @pytest.mark.asyncio
    async def test_metrics_recorded(self, clock, catalog_store, catalog_session):
        registry = CollectorRegistry()
        metrics = MetricsCollector("proxy", registry)
        cache = CatalogCache(60, metrics=metrics, clock=clock)
        catalog_store.add_app("feature-x")

        await cache.get_application(catalog_session, "feature-x")
        await cache.get_application(catalog_session, "feature-x")
        cache.invalidate_application("feature-x")

        labels = {"cache_type": "application"}
        assert registry.get_sample_value("catalog_cache_misses_total", labels) == 1
        assert registry.get_sample_value("catalog_cache_hits_total", labels) == 1
        assert registry.get_sample_value("catalog_cache_invalidations_total", labels) == 1

    def test_cache_stats(self, cache):
        stats = cache.get_cache_stats()
        assert stats["ttl_seconds"] == 60
        assert stats["application"]["keys"] == 0
        assert stats["versions"]["keys"] == 0
