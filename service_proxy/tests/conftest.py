"""
Shared fixtures: an in-memory catalog standing in for PostgreSQL.
"""

from collections import Counter
from contextlib import asynccontextmanager
from dataclasses import replace
from typing import Dict, List, Optional, Tuple

import pytest

from shared.config import ServiceConfig
from service_proxy.app.catalog.models import Application, ThirdPartyToken, User, Version
from service_proxy.app.catalog.store import CatalogConflictError


class FakeCatalogSession:
    """Implements the CatalogSession surface over the owning FakeCatalogStore."""

    def __init__(self, store: "FakeCatalogStore"):
        self.store = store

    async def ping(self) -> None:
        self.store.calls["ping"] += 1

    async def query_user(self, user_id: str) -> Optional[User]:
        self.store.calls["query_user"] += 1
        return self.store.users.get(user_id)

    async def upsert_user(self, user: User) -> User:
        self.store.users[user.id] = user
        return user

    async def query_apps(self) -> List[Application]:
        self.store.calls["query_apps"] += 1
        return [self.store.apps[app_id] for app_id in sorted(self.store.apps)]

    async def query_app(self, app_id: str) -> Optional[Application]:
        self.store.calls["query_app"] += 1
        return self.store.apps.get(app_id)

    async def create_app(self, app_id: str, owner: str, autoupdate: bool = False) -> Application:
        if app_id in self.store.apps:
            raise CatalogConflictError(f"Application {app_id} already exists")
        application = Application(id=app_id, owner=owner, autoupdate=autoupdate)
        self.store.apps[app_id] = application
        return application

    async def delete_app(self, app_id: str) -> bool:
        self.store.versions = [v for v in self.store.versions if v.app != app_id]
        return self.store.apps.pop(app_id, None) is not None

    async def query_versions(self, app_id: str) -> List[Version]:
        self.store.calls["query_versions"] += 1
        versions = [v for v in self.store.versions if v.app == app_id]
        return sorted(versions, key=lambda v: v.seq, reverse=True)

    async def query_version(self, app_id: str, version_id: str) -> Optional[Version]:
        self.store.calls["query_version"] += 1
        for version in self.store.versions:
            if version.app == app_id and version.id == version_id:
                return version
        return None

    async def create_version(self, app_id: str, version_id: str, owner: str) -> Version:
        if await self.query_version(app_id, version_id) is not None:
            raise CatalogConflictError(f"Version {version_id} already exists for {app_id}")
        self.store.seq += 1
        version = Version(id=version_id, app=app_id, owner=owner, seq=self.store.seq)
        self.store.versions.append(version)
        if app_id in self.store.apps:
            self.store.apps[app_id] = replace(self.store.apps[app_id], latest=version_id)
        return version

    async def delete_version(self, app_id: str, version_id: str) -> bool:
        before = len(self.store.versions)
        self.store.versions = [
            v for v in self.store.versions if not (v.app == app_id and v.id == version_id)
        ]
        return len(self.store.versions) < before

    async def replace_version(self, app_id: str, previous_id: Optional[str], new_id: str) -> None:
        if app_id in self.store.apps:
            self.store.apps[app_id] = replace(self.store.apps[app_id], current=new_id, previous=previous_id)

    async def upsert_third_party_token(self, token: ThirdPartyToken) -> None:
        self.store.tokens[(token.provider, token.team_id)] = token


class FakeCatalogStore:
    """In-memory replacement for CatalogStore that counts lookups."""

    def __init__(self):
        self.users: Dict[str, User] = {}
        self.apps: Dict[str, Application] = {}
        self.versions: List[Version] = []
        self.tokens: Dict[Tuple[str, str], ThirdPartyToken] = {}
        self.calls: Counter = Counter()
        self.seq = 0

    def add_app(self, app_id: str, owner: str = "alice", **fields) -> Application:
        application = Application(id=app_id, owner=owner, **fields)
        self.apps[app_id] = application
        return application

    def add_version(self, app_id: str, version_id: str, owner: str = "alice") -> Version:
        self.seq += 1
        version = Version(id=version_id, app=app_id, owner=owner, seq=self.seq)
        self.versions.append(version)
        return version

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass

    @asynccontextmanager
    async def session(self):
        yield FakeCatalogSession(self)

    async def ping(self) -> bool:
        return True


@pytest.fixture
def catalog_store():
    return FakeCatalogStore()


@pytest.fixture
def catalog_session(catalog_store):
    return FakeCatalogSession(catalog_store)


@pytest.fixture
def proxy_config():
    """Configuration with every integration pointed at harmless values."""
    return ServiceConfig(
        service_name="proxy",
        env="test",
        log_level="warning",
        jwt_key="test-signing-key",
        jwt_issuer="test-issuer",
        s3_bucket="builds",
        s3_region="eu-west-1",
        github_client_id="gh-client",
        github_client_secret="gh-secret",
        github_webhook_secret=None,
        slack_client_id="slack-client",
        slack_client_secret="slack-secret",
    )
