"""
Read-through cache in front of the catalog lookups used on every asset request.
"""

import time
from typing import Any, Callable, Dict, List, Optional, TYPE_CHECKING

from shared.logging import get_logger
from .ttl_cache import MISSING, TTLCache
from ..catalog.models import Application, Version

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from ..catalog.store import CatalogSession
    from shared.metrics import MetricsCollector


DEFAULT_CATALOG_TTL = 60

APPLICATION_CACHE = "application"
VERSIONS_CACHE = "versions"


class CatalogCache:
    """Process-local caches for application-by-id and versions-by-application.

    The store stays the source of truth. A cached ``None`` application means
    the store answered "no such row" within the TTL; an absent entry only
    means the store has to be asked. Store failures propagate and leave the
    cache untouched.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_CATALOG_TTL,
        *,
        metrics: Optional["MetricsCollector"] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.metrics = metrics
        self.logger = get_logger("proxy.catalog_cache")
        self.applications = TTLCache(ttl_seconds, clock=clock)
        self.versions = TTLCache(ttl_seconds, clock=clock)

    async def get_application(self, session: "CatalogSession", app_id: str) -> Optional[Application]:
        """Return the application record, or None when it does not exist."""
        cached = self.applications.get(app_id)
        if cached is not MISSING:
            self._record_access(APPLICATION_CACHE, hit=True)
            return cached

        self._record_access(APPLICATION_CACHE, hit=False)
        application = await session.query_app(app_id)
        self.applications.set(app_id, application)
        return application

    async def get_versions(self, session: "CatalogSession", app_id: str) -> List[Version]:
        """Return all versions of an application, newest first."""
        cached = self.versions.get(app_id)
        if cached is not MISSING:
            self._record_access(VERSIONS_CACHE, hit=True)
            return list(cached)

        self._record_access(VERSIONS_CACHE, hit=False)
        versions = await session.query_versions(app_id)
        self.versions.set(app_id, tuple(versions))
        return list(versions)

    async def get_version(self, session: "CatalogSession", app_id: str, version_id: str) -> Optional[Version]:
        """Find one version of an application in its cached version list."""
        for version in await self.get_versions(session, app_id):
            if version.id == version_id:
                return version
        return None

    def invalidate_application(self, app_id: str) -> None:
        self.applications.delete(app_id)
        self._record_invalidation(APPLICATION_CACHE, app_id)

    def invalidate_versions(self, app_id: str) -> None:
        self.versions.delete(app_id)
        self._record_invalidation(VERSIONS_CACHE, app_id)

    def get_cache_stats(self) -> Dict[str, Any]:
        """Get statistics for both caches."""
        return {
            "ttl_seconds": self.ttl_seconds,
            APPLICATION_CACHE: self.applications.stats(),
            VERSIONS_CACHE: self.versions.stats(),
        }

    def _record_access(self, cache_type: str, *, hit: bool) -> None:
        if not self.metrics:
            return
        metric = "catalog_cache_hits_total" if hit else "catalog_cache_misses_total"
        self.metrics.increment_counter(metric, cache_type=cache_type)

    def _record_invalidation(self, cache_type: str, app_id: str) -> None:
        self.logger.debug("Catalog cache invalidated", cache_type=cache_type, app_id=app_id)
        if self.metrics:
            self.metrics.increment_counter("catalog_cache_invalidations_total", cache_type=cache_type)
