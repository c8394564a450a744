"""
GitHub webhook ingestion: signature checks and branch lifecycle automation.
"""

from __future__ import annotations

import hashlib
import hmac
from typing import Any, Dict, Mapping, Optional, TYPE_CHECKING

from shared.errors import UnsupportedEventError, ValidationError
from shared.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from ..caching.catalog_cache import CatalogCache
    from ..catalog.store import CatalogSession


KNOWN_EVENTS = ("ping", "pull_request", "create", "delete", "status")


def verify_signature(secret: Optional[str], body: bytes, headers: Mapping[str, str]) -> None:
    """Check the HMAC GitHub attaches to deliveries.

    Skipped when no secret is configured. ``X-Hub-Signature-256`` is
    preferred; the legacy sha1 ``X-Hub-Signature`` is accepted otherwise.
    """
    if not secret:
        return

    signature = headers.get("X-Hub-Signature-256")
    digest = hashlib.sha256
    prefix = "sha256="
    if not signature:
        signature = headers.get("X-Hub-Signature")
        digest = hashlib.sha1
        prefix = "sha1="

    if not signature:
        raise ValidationError("Missing GitHub signature")

    expected = prefix + hmac.new(secret.encode("utf-8"), body, digest).hexdigest()
    if not hmac.compare_digest(expected, signature.strip()):
        raise ValidationError("Wrong GitHub signature")


class GitHubEventHandler:
    """Applies GitHub repository events to the catalog."""

    def __init__(self, cache: "CatalogCache", webhook_secret: Optional[str] = None):
        self.cache = cache
        self.webhook_secret = webhook_secret
        self.logger = get_logger("proxy.github_events")

    def verify(self, body: bytes, headers: Mapping[str, str]) -> None:
        verify_signature(self.webhook_secret, body, headers)

    async def handle(self, session: "CatalogSession", event: Optional[str], payload: Dict[str, Any]) -> None:
        """Dispatch one delivery; raises UnsupportedEventError for unknown types."""
        if event not in KNOWN_EVENTS:
            self.logger.warning("Unexpected GitHub event", github_event=event)
            raise UnsupportedEventError(event)

        if event == "ping":
            self.logger.info("GitHub ping received", zen=payload.get("zen"))
        elif event == "pull_request":
            self._log_pull_request(payload)
        elif event == "create":
            await self._on_create(session, payload)
        elif event == "delete":
            await self._on_delete(session, payload)
        else:
            self.logger.debug("GitHub status received", state=payload.get("state"), sha=payload.get("sha"))

    def _log_pull_request(self, payload: Dict[str, Any]) -> None:
        # Versions arrive through the API from the build system; nothing to store here.
        pr = payload.get("pull_request") or {}
        head = pr.get("head") or {}
        base = pr.get("base") or {}
        self.logger.info(
            "Pull request event",
            action=payload.get("action"),
            number=pr.get("number"),
            author=(pr.get("user") or {}).get("login"),
            head=head.get("ref"),
            base=base.get("ref"),
            merged=pr.get("merged"),
        )

    async def _on_create(self, session: "CatalogSession", payload: Dict[str, Any]) -> None:
        if payload.get("ref_type") != "branch":
            return

        ref = self._require(payload, "ref")
        owner = (payload.get("sender") or {}).get("login")
        if not owner:
            raise ValidationError("Missing sender login")

        self.logger.info("New branch", ref=ref, owner=owner)
        await session.create_app(ref, owner, autoupdate=True)
        self.cache.invalidate_application(ref)

    async def _on_delete(self, session: "CatalogSession", payload: Dict[str, Any]) -> None:
        if payload.get("ref_type") != "branch":
            return

        ref = self._require(payload, "ref")
        self.logger.info("Branch removed", ref=ref)
        await session.delete_app(ref)
        self.cache.invalidate_application(ref)
        self.cache.invalidate_versions(ref)

    @staticmethod
    def _require(payload: Dict[str, Any], field: str) -> str:
        value = payload.get(field)
        if not isinstance(value, str) or not value:
            raise ValidationError(f"Missing {field}")
        return value
