"""
Domain utilities for the proxy service.

Includes version resolution, request context dependencies, authentication
middleware and webhook processing: request handling helpers that do not
belong to adapters or transport-specific layers.
"""

from .auth_middleware import AuthMiddleware
from .github_events import GitHubEventHandler
from .version_resolver import VersionResolver, resolve_alias

__all__ = [
    "AuthMiddleware",
    "GitHubEventHandler",
    "VersionResolver",
    "resolve_alias",
]
