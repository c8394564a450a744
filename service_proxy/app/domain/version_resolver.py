"""
Resolution of version tokens, literal or symbolic, to concrete version ids.
"""

from typing import Optional, TYPE_CHECKING

from ..catalog.models import Application

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from ..caching.catalog_cache import CatalogCache
    from ..catalog.store import CatalogSession


CURRENT = "current"
PREVIOUS = "previous"
LATEST = "latest"

ALIASES = (CURRENT, PREVIOUS, LATEST)


def resolve_alias(application: Application, token: str) -> Optional[str]:
    """Map ``token`` to a candidate version id without consulting the catalog.

    ``current``, ``previous`` and ``latest`` read the matching field of the
    application; any other token is taken as a literal id. An alias whose
    field is unset yields None, never another alias.
    """
    if token == CURRENT:
        return application.current or None
    if token == PREVIOUS:
        return application.previous or None
    if token == LATEST:
        return application.latest or None
    return token or None


class VersionResolver:
    """Resolves version tokens and confirms the version exists for the application."""

    def __init__(self, cache: "CatalogCache"):
        self.cache = cache

    async def resolve(self, session: "CatalogSession", application: Application, token: str) -> Optional[str]:
        candidate = resolve_alias(application, token)
        if candidate is None:
            return None

        # Alias fields can point at a version that has since been deleted.
        version = await self.cache.get_version(session, application.id, candidate)
        if version is None:
            return None
        return version.id
