"""
Authentication middleware for the proxy.
"""

import re
from typing import Optional, TYPE_CHECKING

from fastapi import Request

from shared.logging import get_logger, set_user_context
from shared.errors import AuthenticationError
from ..auth.tokens import TokenAuthority
from ..catalog.models import User

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from ..catalog.store import CatalogSession


_BEARER = re.compile(r"^Bearer\s+(.+)$")


class AuthMiddleware:
    """Resolves bearer tokens on incoming requests to catalog users."""

    def __init__(self, tokens: TokenAuthority):
        self.tokens = tokens
        self.logger = get_logger("proxy.auth_middleware")

    async def authenticate_request(self, request: Request, session: "CatalogSession") -> Optional[User]:
        """Authenticate the request if it carries a bearer token.

        Requests without a bearer token are anonymous and yield None. A token
        that is present but invalid, or whose subject is unknown to the
        catalog, raises AuthenticationError.
        """
        auth_header = request.headers.get("Authorization")
        if not auth_header:
            return None

        match = _BEARER.match(auth_header)
        if not match:
            return None

        claims = self.tokens.verify(match.group(1).strip())
        user = await session.query_user(claims.subject)
        if user is None:
            self.logger.warning("Token subject not found in catalog", subject=claims.subject)
            raise AuthenticationError("Unknown user", details={"subject": claims.subject})

        set_user_context(user.id)
        return user

    async def require_user(self, request: Request, session: "CatalogSession") -> User:
        """Authenticate the request and fail when it is anonymous."""
        user = await self.authenticate_request(request, session)
        if user is None:
            raise AuthenticationError("Authorization header required")
        return user
