"""
Signing and verification of the proxy's own bearer tokens.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from shared.errors import AuthenticationError
from shared.logging import get_logger


ALGORITHM = "HS256"


@dataclass(frozen=True)
class TokenClaims:
    """Verified claims of a proxy-issued token."""

    subject: str
    claims: Dict[str, Any]


class TokenAuthority:
    """Issues and verifies HS256 JWTs bound to the configured issuer."""

    def __init__(self, key: Optional[str], issuer: str, *, ttl_seconds: Optional[int] = None) -> None:
        self.key = key
        self.issuer = issuer
        self.ttl_seconds = ttl_seconds
        self.logger = get_logger("proxy.auth.tokens")

    def issue(self, subject: str, **claims: Any) -> str:
        """Sign a token for ``subject`` carrying the extra ``claims``."""
        if not self.key:
            raise AuthenticationError("Token signing key is not configured")

        now = int(time.time())
        payload: Dict[str, Any] = {**claims, "sub": subject, "iss": self.issuer, "iat": now}
        if self.ttl_seconds:
            payload["exp"] = now + self.ttl_seconds
        return jwt.encode(payload, self.key, algorithm=ALGORITHM)

    def verify(self, token: str) -> TokenClaims:
        """Validate signature and issuer and return the claims."""
        if not self.key:
            raise AuthenticationError("Token signing key is not configured")

        try:
            claims = jwt.decode(
                token,
                self.key,
                algorithms=[ALGORITHM],
                issuer=self.issuer,
                options={"verify_aud": False},
            )
        except JWTError as exc:
            self.logger.info("JWT validation failed", error=str(exc))
            raise AuthenticationError("JWT validation failed", details={"error": str(exc)}) from exc

        subject = claims.get("sub")
        if not isinstance(subject, str) or not subject:
            raise AuthenticationError("JWT missing subject claim")

        return TokenClaims(subject=subject, claims=claims)
