"""
Frontend proxy service: preview deployments served from object storage.
"""

import json
import time
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import Depends, Query, Request, Response
from fastapi.responses import FileResponse, JSONResponse, RedirectResponse
from pydantic import BaseModel

from shared.base_service import BaseService
from shared.config import ServiceConfig
from shared.errors import AuthenticationError, NotFoundError, ServiceError, ValidationError
from service_proxy.app.adapters.oauth_client import (
    GITHUB_AUTHORIZE_URL,
    GITHUB_TOKEN_URL,
    SLACK_TOKEN_URL,
    OAuthClient,
)
from service_proxy.app.adapters.object_repository import (
    ACCESS_DENIED,
    NOT_MODIFIED,
    ObjectRepository,
    ObjectRepositoryError,
    object_key,
)
from service_proxy.app.auth.tokens import TokenAuthority
from service_proxy.app.caching.catalog_cache import CatalogCache
from service_proxy.app.catalog.models import ThirdPartyToken, User
from service_proxy.app.catalog.store import CatalogSession, CatalogStore
from service_proxy.app.domain.auth_middleware import AuthMiddleware
from service_proxy.app.domain.context import (
    RequestContext,
    api_application_context,
    api_context,
    api_version_context,
    asset_context,
    get_session,
)
from service_proxy.app.domain.github_events import GitHubEventHandler
from service_proxy.app.domain.version_resolver import ALIASES, VersionResolver


DEFAULT_ASSET = "index.html"


class ApplicationCreateRequest(BaseModel):
    """Optional body of ``PUT /api/app/{application}``."""

    autoupdate: bool = False


class ProxyService(BaseService):
    """Proxy service implementation."""

    def __init__(self, config: Optional[ServiceConfig] = None):
        super().__init__("proxy", config)

        self.catalog_store = CatalogStore(
            self.config.database_url,
            min_size=self.config.database_pool_min_size,
            max_size=self.config.database_pool_max_size,
            ssl=self.config.is_production,
        )
        self.catalog_cache = CatalogCache(self.config.catalog_cache_ttl, metrics=self.metrics)
        self.version_resolver = VersionResolver(self.catalog_cache)
        self.token_authority = TokenAuthority(self.config.jwt_key, self.config.jwt_issuer)
        self.auth_middleware = AuthMiddleware(self.token_authority)
        self.object_repository = ObjectRepository(
            self.config.s3_bucket,
            region=self.config.s3_region,
            endpoint_url=self.config.s3_endpoint_url,
        )
        self.oauth_client = OAuthClient()
        self.github_events = GitHubEventHandler(self.catalog_cache, self.config.github_webhook_secret)
        self.app_dir = Path(self.config.app_dir).resolve()

        if not self.config.s3_bucket:
            self.logger.warning("No object storage bucket configured; asset requests will fail")
        if not self.config.jwt_key:
            self.logger.warning("No token signing key configured; API authentication will fail")

        self._setup_root_routes()
        self._setup_ui_routes()
        self._setup_app_routes()
        self._setup_api_routes()
        self._setup_github_routes()
        self._setup_slack_routes()

        # Expose service instance via app state for request dependencies
        self.app.state.proxy_service = self

    async def startup(self) -> None:
        await self.catalog_store.start()
        await self.object_repository.start()
        self.logger.info("Proxy started", port=self.config.port, bucket=self.config.s3_bucket)

    async def shutdown(self) -> None:
        await self.object_repository.close()
        await self.oauth_client.close()
        await self.catalog_store.stop()

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check proxy dependencies."""
        return {"database": "ok" if await self.catalog_store.ping() else "error"}

    def _health_details(self) -> Dict[str, Any]:
        return {"cache": self.catalog_cache.get_cache_stats()}

    def _setup_root_routes(self):
        @self.app.get("/", include_in_schema=False)
        async def root():
            return RedirectResponse("/ui/", status_code=302)

    def _setup_ui_routes(self):
        """Set up the login redirect and the static UI."""

        @self.app.get("/ui/login")
        async def ui_login():
            url = f"{GITHUB_AUTHORIZE_URL}?scope=user:email&client_id={self.config.github_client_id or ''}"
            return RedirectResponse(url, status_code=302)

        @self.app.get("/ui")
        @self.app.get("/ui/")
        async def ui_index():
            return self._ui_file(DEFAULT_ASSET)

        @self.app.get("/ui/{path:path}")
        async def ui_file(path: str):
            return self._ui_file(path or DEFAULT_ASSET)

    def _ui_file(self, path: str) -> FileResponse:
        target = (self.app_dir / path).resolve()
        try:
            target.relative_to(self.app_dir)
        except ValueError:
            raise NotFoundError(f"{path} is outside the UI directory")

        if not target.is_file():
            raise NotFoundError(f"No UI file {path}")
        return FileResponse(target)

    def _setup_app_routes(self):
        """Set up static asset routes for deployed versions."""

        @self.app.get("/app/{application}/{version}")
        async def get_default_asset(request: Request, ctx: RequestContext = Depends(asset_context)):
            return await self._serve_asset(request, ctx, DEFAULT_ASSET)

        @self.app.get("/app/{application}/{version}/{path:path}")
        async def get_asset(request: Request, path: str, ctx: RequestContext = Depends(asset_context)):
            return await self._serve_asset(request, ctx, path or DEFAULT_ASSET)

    async def _serve_asset(self, request: Request, ctx: RequestContext, path: str) -> Response:
        key = object_key(ctx.application.id, ctx.version, path)
        start = time.perf_counter()
        try:
            stored = await self.object_repository.get_object(key, request.headers)
        except ObjectRepositoryError as exc:
            self._record_object_fetch(exc.code, start)
            if exc.code == ACCESS_DENIED:
                return Response(status_code=403)
            if exc.code == NOT_MODIFIED:
                return Response(status_code=304)
            self.logger.error("Object fetch failed", key=key, code=exc.code, error=exc.message)
            raise ServiceError(f"Object storage error: {exc.code}", details={"key": key}) from exc

        self._record_object_fetch("ok", start)
        return Response(content=stored.body, status_code=200, headers=stored.headers)

    def _record_object_fetch(self, result: str, start: float) -> None:
        self.metrics.increment_counter("object_fetch_total", result=result)
        self.metrics.observe_histogram("object_fetch_duration_seconds", time.perf_counter() - start)

    def _setup_api_routes(self):
        """Set up the catalog API. Every route requires an authenticated user."""

        @self.app.get("/api/apps")
        async def list_apps(ctx: RequestContext = Depends(api_context)):
            applications = await ctx.session.query_apps()
            return [application.to_dict() for application in applications]

        @self.app.get("/api/app/{application}")
        async def get_app(ctx: RequestContext = Depends(api_application_context)):
            application = await ctx.session.query_app(ctx.application.id)
            if application is None:
                raise NotFoundError(f"No application {ctx.application.id}")
            return application.to_dict()

        @self.app.put("/api/app/{application}", status_code=201)
        async def create_app(
            application: str,
            body: Optional[ApplicationCreateRequest] = None,
            ctx: RequestContext = Depends(api_context),
        ):
            autoupdate = body.autoupdate if body else False
            created = await ctx.session.create_app(application, ctx.user.id, autoupdate=autoupdate)
            # A "no such application" answer may be cached for this id
            self.catalog_cache.invalidate_application(application)
            return {"id": created.id, "owner": created.owner, "autoupdate": created.autoupdate}

        @self.app.delete("/api/app/{application}", status_code=204)
        async def delete_app(ctx: RequestContext = Depends(api_application_context)):
            app_id = ctx.application.id
            await ctx.session.delete_app(app_id)
            self.catalog_cache.invalidate_application(app_id)
            self.catalog_cache.invalidate_versions(app_id)
            return Response(status_code=204)

        @self.app.get("/api/app/{application}/versions")
        async def list_versions(ctx: RequestContext = Depends(api_application_context)):
            versions = await ctx.session.query_versions(ctx.application.id)
            return [version.to_dict() for version in versions]

        @self.app.get("/api/app/{application}/version/{version}")
        async def get_version(ctx: RequestContext = Depends(api_version_context)):
            version = await ctx.session.query_version(ctx.application.id, ctx.version)
            if version is None:
                raise NotFoundError(f"No version {ctx.version} for {ctx.application.id}")
            return version.to_dict()

        @self.app.put("/api/app/{application}/version/{version}", status_code=201)
        async def create_version(version: str, ctx: RequestContext = Depends(api_application_context)):
            if version in ALIASES:
                raise ValidationError(f"{version} is reserved and cannot be used as a version id")

            application = ctx.application
            await ctx.session.create_version(application.id, version, ctx.user.id)
            # Creation also moves the application's "latest" pointer
            self.catalog_cache.invalidate_versions(application.id)
            self.catalog_cache.invalidate_application(application.id)

            if application.autoupdate:
                await ctx.session.replace_version(application.id, application.current, version)
                self.catalog_cache.invalidate_application(application.id)

            return {"id": version, "app": application.id}

        @self.app.delete("/api/app/{application}/version/{version}", status_code=204)
        async def delete_version(version: str, ctx: RequestContext = Depends(api_application_context)):
            application = ctx.application
            if version in (application.current, application.previous):
                raise ValidationError(f"{version} is still referenced by {application.id}")

            deleted = await ctx.session.delete_version(application.id, version)
            self.catalog_cache.invalidate_versions(application.id)
            if not deleted:
                raise NotFoundError(f"No version {version} for {application.id}")
            return Response(status_code=204)

        @self.app.post("/api/app/{application}/version/{version}/current", status_code=202)
        async def promote_version(ctx: RequestContext = Depends(api_version_context)):
            application = ctx.application
            if ctx.version == application.current:
                raise ValidationError(f"{ctx.version} is already current")

            await ctx.session.replace_version(application.id, application.current, ctx.version)
            self.catalog_cache.invalidate_application(application.id)
            self.metrics.record_business_event("version_promoted")
            return application.promote(ctx.version).to_dict()

    def _setup_github_routes(self):
        """Set up GitHub login and webhook routes."""

        @self.app.get("/github/oauth")
        async def github_oauth(
            code: str = Query(""),
            session: CatalogSession = Depends(get_session),
        ):
            if not self.config.github_client_id or not self.config.github_client_secret:
                raise AuthenticationError("GitHub OAuth is not configured")

            token = await self.oauth_client.exchange_code(
                GITHUB_TOKEN_URL,
                self.config.github_client_id,
                self.config.github_client_secret,
                code,
            )
            profile = await self.oauth_client.get_github_user(token["access_token"])
            user = User(id=profile["login"], avatar=profile.get("avatar_url"), home=profile.get("html_url"))
            await session.upsert_user(user)

            # Authorization is checked per API request; the token only proves identity.
            signed = self.token_authority.issue(user.id, avatar=user.avatar, home=user.home)
            self.logger.info("GitHub login", user_id=user.id)

            response = RedirectResponse("/ui/", status_code=302)
            response.set_cookie("token", signed, secure=self.config.is_production, samesite="lax")
            return response

        @self.app.post("/github/event")
        async def github_event(request: Request, session: CatalogSession = Depends(get_session)):
            body = await request.body()
            self.github_events.verify(body, request.headers)

            try:
                payload = json.loads(body) if body else {}
            except ValueError as exc:
                raise ValidationError("Invalid JSON payload") from exc
            if not isinstance(payload, dict):
                raise ValidationError("Invalid JSON payload")

            await self.github_events.handle(session, request.headers.get("X-GitHub-Event"), payload)
            return Response(status_code=200)

    def _setup_slack_routes(self):
        """Set up the Slack installation callback."""

        @self.app.get("/slack/oauth")
        async def slack_oauth(
            code: str = Query(""),
            session: CatalogSession = Depends(get_session),
        ):
            if not self.config.slack_client_id or not self.config.slack_client_secret:
                raise AuthenticationError("Slack OAuth is not configured")

            payload = await self.oauth_client.exchange_code(
                SLACK_TOKEN_URL,
                self.config.slack_client_id,
                self.config.slack_client_secret,
                code,
            )
            try:
                token = ThirdPartyToken.from_slack(payload)
            except ValueError as exc:
                raise ValidationError(str(exc)) from exc

            await session.upsert_third_party_token(token)
            self.logger.info("Slack workspace authorized", team_id=token.team_id)
            return Response(status_code=200)


def create_app(config: Optional[ServiceConfig] = None):
    """Create FastAPI application."""
    service = ProxyService(config)
    return service.app


if __name__ == "__main__":
    service = ProxyService()
    service.run()
