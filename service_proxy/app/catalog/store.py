"""
PostgreSQL catalog of applications, versions, users and third-party tokens.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager, contextmanager
from typing import AsyncIterator, Iterator, List, Optional

import asyncpg

from shared.errors import ServiceError, UpstreamUnavailableError, ValidationError
from shared.logging import get_logger

from .models import Application, ThirdPartyToken, User, Version


_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        avatar TEXT,
        home TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS apps (
        id TEXT PRIMARY KEY,
        owner TEXT NOT NULL,
        "current" TEXT,
        previous TEXT,
        latest TEXT,
        autoupdate BOOLEAN NOT NULL DEFAULT FALSE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS versions (
        seq BIGSERIAL NOT NULL,
        id TEXT NOT NULL,
        app TEXT NOT NULL,
        owner TEXT NOT NULL,
        created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW(),
        PRIMARY KEY (app, id)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_versions_app_seq ON versions(app, seq DESC)",
    """
    CREATE TABLE IF NOT EXISTS third_party_tokens (
        provider TEXT NOT NULL,
        team_id TEXT NOT NULL,
        access_token TEXT NOT NULL,
        scope TEXT,
        bot_id TEXT,
        bot_access_token TEXT,
        updated_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW(),
        PRIMARY KEY (provider, team_id)
    )
    """,
)

_APP_COLUMNS = 'id, owner, "current", previous, latest, autoupdate'
_VERSION_COLUMNS = "seq, id, app, owner, created_at"

# Lost connections and server shutdowns (57P0x) mean the catalog is unreachable
_CONNECTION_ERRORS = (
    asyncpg.PostgresConnectionError,
    asyncpg.OperatorInterventionError,
    asyncpg.InterfaceError,
    OSError,
)


class CatalogError(ServiceError):
    """Raised when a catalog statement fails."""


class CatalogConflictError(ValidationError):
    """Raised when a catalog insert collides with an existing row."""


def _affected_rows(status: str) -> int:
    """Parse the row count from an asyncpg command status such as ``DELETE 3``."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (ValueError, AttributeError):
        return 0


class CatalogSession:
    """Catalog operations bound to one pooled connection.

    A session lives for exactly one request.
    """

    def __init__(self, connection: asyncpg.Connection) -> None:
        self._conn = connection
        self.logger = get_logger("proxy.catalog")

    @contextmanager
    def _statement(self, operation: str, conflict_message: Optional[str] = None) -> Iterator[None]:
        try:
            yield
        except asyncpg.UniqueViolationError as exc:
            if conflict_message is None:
                raise CatalogError(f"Catalog {operation} failed", details={"error": str(exc)}) from exc
            raise CatalogConflictError(conflict_message, details={"error": str(exc)}) from exc
        except _CONNECTION_ERRORS as exc:
            self.logger.error("Catalog connection lost", operation=operation, error=str(exc))
            raise UpstreamUnavailableError("DB") from exc
        except asyncpg.PostgresError as exc:
            self.logger.error("Catalog statement failed", operation=operation, error=str(exc))
            raise CatalogError(f"Catalog {operation} failed", details={"error": str(exc)}) from exc

    async def ping(self) -> None:
        with self._statement("ping"):
            await self._conn.fetchval("SELECT 1")

    # Users

    async def query_user(self, user_id: str) -> Optional[User]:
        with self._statement("query_user"):
            row = await self._conn.fetchrow("SELECT id, avatar, home FROM users WHERE id = $1", user_id)
        return User.from_record(row) if row else None

    async def upsert_user(self, user: User) -> User:
        with self._statement("upsert_user"):
            await self._conn.execute(
                """
                INSERT INTO users (id, avatar, home) VALUES ($1, $2, $3)
                ON CONFLICT (id) DO UPDATE SET avatar = EXCLUDED.avatar, home = EXCLUDED.home
                """,
                user.id, user.avatar, user.home,
            )
        return user

    # Applications

    async def query_apps(self) -> List[Application]:
        with self._statement("query_apps"):
            rows = await self._conn.fetch(f"SELECT {_APP_COLUMNS} FROM apps ORDER BY id")
        return [Application.from_record(row) for row in rows]

    async def query_app(self, app_id: str) -> Optional[Application]:
        with self._statement("query_app"):
            row = await self._conn.fetchrow(f"SELECT {_APP_COLUMNS} FROM apps WHERE id = $1", app_id)
        return Application.from_record(row) if row else None

    async def create_app(self, app_id: str, owner: str, autoupdate: bool = False) -> Application:
        with self._statement("create_app", f"Application {app_id} already exists"):
            await self._conn.execute(
                "INSERT INTO apps (id, owner, autoupdate) VALUES ($1, $2, $3)",
                app_id, owner, autoupdate,
            )
        self.logger.info("Application created", app_id=app_id, owner=owner, autoupdate=autoupdate)
        return Application(id=app_id, owner=owner, autoupdate=autoupdate)

    async def delete_app(self, app_id: str) -> bool:
        """Delete an application and all of its versions."""
        with self._statement("delete_app"):
            async with self._conn.transaction():
                await self._conn.execute("DELETE FROM versions WHERE app = $1", app_id)
                status = await self._conn.execute("DELETE FROM apps WHERE id = $1", app_id)
        deleted = _affected_rows(status) > 0
        self.logger.info("Application deleted", app_id=app_id, existed=deleted)
        return deleted

    # Versions

    async def query_versions(self, app_id: str) -> List[Version]:
        """List versions of an application, most recently created first."""
        with self._statement("query_versions"):
            rows = await self._conn.fetch(
                f"SELECT {_VERSION_COLUMNS} FROM versions WHERE app = $1 ORDER BY seq DESC",
                app_id,
            )
        return [Version.from_record(row) for row in rows]

    async def query_version(self, app_id: str, version_id: str) -> Optional[Version]:
        with self._statement("query_version"):
            row = await self._conn.fetchrow(
                f"SELECT {_VERSION_COLUMNS} FROM versions WHERE app = $1 AND id = $2",
                app_id, version_id,
            )
        return Version.from_record(row) if row else None

    async def create_version(self, app_id: str, version_id: str, owner: str) -> Version:
        """Register a version and make it the application's ``latest``."""
        with self._statement("create_version", f"Version {version_id} already exists for {app_id}"):
            async with self._conn.transaction():
                row = await self._conn.fetchrow(
                    f"INSERT INTO versions (id, app, owner) VALUES ($1, $2, $3) RETURNING {_VERSION_COLUMNS}",
                    version_id, app_id, owner,
                )
                await self._conn.execute("UPDATE apps SET latest = $1 WHERE id = $2", version_id, app_id)
        self.logger.info("Version created", app_id=app_id, version_id=version_id, owner=owner)
        return Version.from_record(row)

    async def delete_version(self, app_id: str, version_id: str) -> bool:
        with self._statement("delete_version"):
            status = await self._conn.execute(
                "DELETE FROM versions WHERE app = $1 AND id = $2",
                app_id, version_id,
            )
        return _affected_rows(status) > 0

    async def replace_version(self, app_id: str, previous_id: Optional[str], new_id: str) -> None:
        """Point ``current`` at ``new_id`` and ``previous`` at ``previous_id``."""
        with self._statement("replace_version"):
            await self._conn.execute(
                'UPDATE apps SET "current" = $1, previous = $2 WHERE id = $3',
                new_id, previous_id, app_id,
            )
        self.logger.info("Version promoted", app_id=app_id, current=new_id, previous=previous_id)

    # Third-party authorizations

    async def upsert_third_party_token(self, token: ThirdPartyToken) -> None:
        with self._statement("upsert_third_party_token"):
            await self._conn.execute(
                """
                INSERT INTO third_party_tokens (provider, team_id, access_token, scope, bot_id, bot_access_token)
                VALUES ($1, $2, $3, $4, $5, $6)
                ON CONFLICT (provider, team_id) DO UPDATE SET
                    access_token = EXCLUDED.access_token,
                    scope = EXCLUDED.scope,
                    bot_id = EXCLUDED.bot_id,
                    bot_access_token = EXCLUDED.bot_access_token,
                    updated_at = NOW()
                """,
                token.provider, token.team_id, token.access_token,
                token.scope, token.bot_id, token.bot_access_token,
            )


class CatalogStore:
    """Owns the asyncpg pool and hands out per-request sessions."""

    def __init__(
        self,
        dsn: str,
        *,
        min_size: int = 1,
        max_size: int = 10,
        ssl: bool = False,
    ) -> None:
        self.dsn = dsn
        self.min_size = min_size
        self.max_size = max_size
        self.ssl = ssl
        self.logger = get_logger("proxy.catalog_store")
        self.pool: Optional[asyncpg.Pool] = None
        self._pool_lock = asyncio.Lock()

    async def start(self) -> None:
        """Open the pool and create tables.

        A database that is down at boot is not fatal; the pool is opened on
        the first request instead and requests fail with 503 until then.
        """
        try:
            await self._ensure_pool()
        except UpstreamUnavailableError:
            self.logger.warning("Catalog unavailable at startup, deferring connection")

    async def stop(self) -> None:
        if self.pool is not None:
            await self.pool.close()
            self.pool = None
            self.logger.info("Catalog pool closed")

    async def _ensure_pool(self) -> asyncpg.Pool:
        if self.pool is not None:
            return self.pool

        # Concurrent first requests must share one pool
        async with self._pool_lock:
            if self.pool is not None:
                return self.pool

            try:
                pool = await asyncpg.create_pool(
                    self.dsn,
                    min_size=self.min_size,
                    max_size=self.max_size,
                    ssl="require" if self.ssl else None,
                )
            except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as exc:
                self.logger.error("Cannot connect to catalog", error=str(exc))
                raise UpstreamUnavailableError("DB") from exc

            try:
                async with pool.acquire() as conn:
                    for statement in _SCHEMA:
                        await conn.execute(statement)
            except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as exc:
                self.logger.error("Cannot create catalog schema", error=str(exc))
                await pool.close()
                raise UpstreamUnavailableError("DB") from exc

            self.pool = pool
            self.logger.info("Catalog pool started", min_size=self.min_size, max_size=self.max_size)
            return pool

    @asynccontextmanager
    async def session(self) -> AsyncIterator[CatalogSession]:
        """Acquire one connection for the duration of a request."""
        pool = await self._ensure_pool()
        try:
            connection = await pool.acquire()
        except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as exc:
            self.logger.error("Cannot acquire catalog connection", error=str(exc))
            raise UpstreamUnavailableError("DB") from exc

        try:
            yield CatalogSession(connection)
        finally:
            await pool.release(connection)

    async def ping(self) -> bool:
        """Return True when the catalog answers a trivial query."""
        try:
            async with self.session() as session:
                await session.ping()
            return True
        except Exception as exc:
            self.logger.warning("Catalog ping failed", error=str(exc))
            return False
