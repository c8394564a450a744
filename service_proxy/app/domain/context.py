"""
Per-request context and the FastAPI dependencies that build it.

The service object is reached through ``request.app.state.proxy_service``;
dependencies never look up module-level state.
"""

from dataclasses import dataclass
from typing import AsyncIterator, Optional, TYPE_CHECKING

from fastapi import Depends, Request

from shared.errors import NotFoundError
from shared.logging import set_deployment_context
from ..catalog.models import Application, User
from ..catalog.store import CatalogSession

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from ..main import ProxyService


@dataclass
class RequestContext:
    """What a handler knows about the request after authentication and path resolution."""

    session: CatalogSession
    user: Optional[User] = None
    application: Optional[Application] = None
    version: Optional[str] = None


def get_service(request: Request) -> "ProxyService":
    return request.app.state.proxy_service


async def get_session(request: Request) -> AsyncIterator[CatalogSession]:
    """One catalog connection per request, released when the request ends."""
    async with get_service(request).catalog_store.session() as session:
        yield session


async def get_optional_user(
    request: Request,
    session: CatalogSession = Depends(get_session),
) -> Optional[User]:
    return await get_service(request).auth_middleware.authenticate_request(request, session)


async def get_required_user(
    request: Request,
    session: CatalogSession = Depends(get_session),
) -> User:
    return await get_service(request).auth_middleware.require_user(request, session)


async def get_application(
    request: Request,
    application: str,
    session: CatalogSession = Depends(get_session),
) -> Application:
    record = await get_service(request).catalog_cache.get_application(session, application)
    if record is None:
        raise NotFoundError(f"No application {application}")
    set_deployment_context(application=record.id)
    return record


async def get_version(
    request: Request,
    version: str,
    session: CatalogSession = Depends(get_session),
    application: Application = Depends(get_application),
) -> str:
    resolved = await get_service(request).version_resolver.resolve(session, application, version)
    if resolved is None:
        raise NotFoundError(f"No version {version} for {application.id}")
    set_deployment_context(version=resolved)
    return resolved


async def asset_context(
    session: CatalogSession = Depends(get_session),
    user: Optional[User] = Depends(get_optional_user),
    application: Application = Depends(get_application),
    version: str = Depends(get_version),
) -> RequestContext:
    """Context for static asset requests: authentication optional."""
    return RequestContext(session=session, user=user, application=application, version=version)


async def api_context(
    session: CatalogSession = Depends(get_session),
    user: User = Depends(get_required_user),
) -> RequestContext:
    return RequestContext(session=session, user=user)


async def api_application_context(
    session: CatalogSession = Depends(get_session),
    user: User = Depends(get_required_user),
    application: Application = Depends(get_application),
) -> RequestContext:
    return RequestContext(session=session, user=user, application=application)


async def api_version_context(
    session: CatalogSession = Depends(get_session),
    user: User = Depends(get_required_user),
    application: Application = Depends(get_application),
    version: str = Depends(get_version),
) -> RequestContext:
    return RequestContext(session=session, user=user, application=application, version=version)
