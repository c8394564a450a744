"""
Proxy caching package.

Short-lived, process-local caches in front of the catalog. Entries expire
on a fixed TTL and every mutating handler invalidates explicitly.
"""

from .catalog_cache import CatalogCache, DEFAULT_CATALOG_TTL
from .ttl_cache import MISSING, TTLCache

__all__ = [
    "CatalogCache",
    "DEFAULT_CATALOG_TTL",
    "MISSING",
    "TTLCache",
]
