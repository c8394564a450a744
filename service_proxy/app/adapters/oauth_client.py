"""
OAuth client for the GitHub and Slack login/installation flows.
"""

from typing import Any, Dict, Optional

import httpx

from shared.logging import get_logger
from shared.errors import AuthenticationError


GITHUB_AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
GITHUB_TOKEN_URL = "https://github.com/login/oauth/access_token"
GITHUB_USER_URL = "https://api.github.com/user"
SLACK_TOKEN_URL = "https://slack.com/api/oauth.access"
USER_AGENT = "Collaborne/collaborne-frontend-proxy"


class OAuthClient:
    """Exchanges authorization codes and reads the resulting identities."""

    def __init__(self, *, timeout: float = 10.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.logger = get_logger("proxy.oauth_client")
        self._client = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def exchange_code(self, token_url: str, client_id: str, client_secret: str, code: str) -> Dict[str, Any]:
        """Trade an authorization ``code`` for a token payload."""
        if not code:
            raise AuthenticationError("Missing authorization code")

        try:
            response = await self._client.post(
                token_url,
                params={
                    "client_id": client_id,
                    "client_secret": client_secret,
                    "code": code,
                },
            )
            response.raise_for_status()
            token = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            self.logger.error("OAuth code exchange failed", token_url=token_url, error=str(exc))
            raise AuthenticationError("OAuth code exchange failed", details={"error": str(exc)}) from exc

        # Both providers answer 200 with an error field on bad codes
        if not isinstance(token, dict) or token.get("error") or token.get("ok") is False or "access_token" not in token:
            error = token.get("error") if isinstance(token, dict) else "malformed response"
            self.logger.warning("OAuth provider rejected code", token_url=token_url, error=error)
            raise AuthenticationError("OAuth provider rejected code", details={"error": error})

        return token

    async def get_github_user(self, access_token: str) -> Dict[str, Any]:
        """Read the profile of the user a GitHub token belongs to."""
        try:
            response = await self._client.get(
                GITHUB_USER_URL,
                headers={"Authorization": f"token {access_token}"},
            )
            response.raise_for_status()
            user = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            self.logger.error("GitHub user lookup failed", error=str(exc))
            raise AuthenticationError("GitHub user lookup failed", details={"error": str(exc)}) from exc

        if not isinstance(user, dict) or not user.get("login"):
            raise AuthenticationError("GitHub user response missing login")
        return user
