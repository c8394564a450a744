"""
Unit tests for GitHub webhook handling.
"""

import hashlib
import hmac

import pytest

from shared.errors import UnsupportedEventError, ValidationError
from service_proxy.app.caching.catalog_cache import CatalogCache
from service_proxy.app.domain.github_events import GitHubEventHandler, verify_signature


SECRET = "webhook-secret"
BODY = b'{"zen": "Keep it logically awesome."}'


def sign(body: bytes, digest=hashlib.sha256, prefix="sha256=") -> str:
    return prefix + hmac.new(SECRET.encode(), body, digest).hexdigest()


class TestVerifySignature:
    """Test cases for verify_signature."""

    def test_no_secret_skips_check(self):
        verify_signature(None, BODY, {})

    def test_valid_sha256_signature(self):
        verify_signature(SECRET, BODY, {"X-Hub-Signature-256": sign(BODY)})

    def test_valid_legacy_sha1_signature(self):
        verify_signature(SECRET, BODY, {"X-Hub-Signature": sign(BODY, hashlib.sha1, "sha1=")})

    def test_missing_signature(self):
        with pytest.raises(ValidationError, match="Missing"):
            verify_signature(SECRET, BODY, {})

    def test_wrong_signature(self):
        with pytest.raises(ValidationError, match="Wrong"):
            verify_signature(SECRET, BODY, {"X-Hub-Signature-256": sign(b"tampered")})


class TestGitHubEventHandler:
    """Test cases for GitHubEventHandler."""

    @pytest.fixture
    def cache(self):
        return CatalogCache(60)

    @pytest.fixture
    def handler(self, cache):
        return GitHubEventHandler(cache)

    @pytest.mark.asyncio
    async def test_ping(self, handler, catalog_session):
        await handler.handle(catalog_session, "ping", {"zen": "Design for failure."})

    @pytest.mark.asyncio
    async def test_branch_create_registers_application(self, handler, cache, catalog_store, catalog_session):
        # A cached "not found" must not hide the new application
        assert await cache.get_application(catalog_session, "feature-x") is None

        await handler.handle(catalog_session, "create", {
            "ref": "feature-x",
            "ref_type": "branch",
            "sender": {"login": "alice"},
        })

        application = await cache.get_application(catalog_session, "feature-x")
        assert application.owner == "alice"
        assert application.autoupdate is True
        assert application.current is None

    @pytest.mark.asyncio
    async def test_tag_create_is_ignored(self, handler, catalog_store, catalog_session):
        await handler.handle(catalog_session, "create", {
            "ref": "v1.0.0",
            "ref_type": "tag",
            "sender": {"login": "alice"},
        })
        assert catalog_store.apps == {}

    @pytest.mark.asyncio
    async def test_create_without_sender(self, handler, catalog_session):
        with pytest.raises(ValidationError):
            await handler.handle(catalog_session, "create", {"ref": "feature-x", "ref_type": "branch"})

    @pytest.mark.asyncio
    async def test_branch_delete_removes_application(self, handler, cache, catalog_store, catalog_session):
        catalog_store.add_app("feature-x", current="v1")
        catalog_store.add_version("feature-x", "v1")
        await cache.get_application(catalog_session, "feature-x")
        await cache.get_versions(catalog_session, "feature-x")

        await handler.handle(catalog_session, "delete", {"ref": "feature-x", "ref_type": "branch"})

        assert catalog_store.apps == {}
        assert catalog_store.versions == []
        assert await cache.get_application(catalog_session, "feature-x") is None
        assert await cache.get_versions(catalog_session, "feature-x") == []

    @pytest.mark.asyncio
    async def test_pull_request_and_status_are_accepted(self, handler, catalog_session):
        await handler.handle(catalog_session, "pull_request", {
            "action": "opened",
            "pull_request": {"number": 7, "head": {"ref": "feature-x"}, "base": {"ref": "main"}},
        })
        await handler.handle(catalog_session, "status", {"state": "success", "sha": "abc"})

    @pytest.mark.asyncio
    async def test_unknown_event(self, handler, catalog_session):
        with pytest.raises(UnsupportedEventError):
            await handler.handle(catalog_session, "issues", {})

    @pytest.mark.asyncio
    async def test_missing_event_type(self, handler, catalog_store, catalog_session):
        with pytest.raises(UnsupportedEventError):
            await handler.handle(catalog_session, None, {"ref": "feature-x", "ref_type": "branch"})
        assert catalog_store.apps == {}
