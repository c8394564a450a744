"""
Catalog package: records and the PostgreSQL store behind them.
"""

from .models import Application, ThirdPartyToken, User, Version
from .store import CatalogConflictError, CatalogError, CatalogSession, CatalogStore

__all__ = [
    "Application",
    "CatalogConflictError",
    "CatalogError",
    "CatalogSession",
    "CatalogStore",
    "ThirdPartyToken",
    "User",
    "Version",
]
