"""
Adapters package for the proxy service.

Contains client wrappers for external dependencies (object storage,
OAuth providers). These adapters encapsulate:

- Endpoints and request shapes
- Error handling that maps to shared or adapter-specific errors

Keep adapters thin and side-effect free outside of explicit calls.
"""

from .object_repository import ObjectRepository, ObjectRepositoryError, StoredObject
from .oauth_client import OAuthClient

__all__ = [
    "OAuthClient",
    "ObjectRepository",
    "ObjectRepositoryError",
    "StoredObject",
]
