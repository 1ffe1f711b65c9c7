"""
Portal web service: login, registration and venue pages behind the access gateway.
"""

import os
from typing import Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import Response
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates

from shared.base_service import BaseService
from shared.config import PortalConfig
from .adapters.credential_store import CredentialStore, InMemoryCredentialStore, PostgresCredentialStore
from .auth.accounts import AccountService
from .auth.sessions import SessionVerifier
from .auth.tokens import SessionTokenCodec
from .domain.gateway import AccessGateway, ClientDisconnected, GatewayRejected, rejection_response
from .ratelimit.window import (
    ClientIdResolver,
    CounterStore,
    FixedWindowRateLimiter,
    InMemoryCounterStore,
    RedisCounterStore,
)
from .routes import build_accounts_router, register_api_fallback, register_page_routes

TEMPLATES_DIR = os.path.join(os.path.dirname(__file__), "templates")


class PortalService(BaseService):
    """Portal service implementation."""

    def __init__(
        self,
        config: Optional[PortalConfig] = None,
        *,
        credential_store: Optional[CredentialStore] = None,
        counter_store: Optional[CounterStore] = None,
    ):
        super().__init__("portal", config)

        if self.config.session_secret == "change-me" and self.config.env != "local":
            self.logger.warning("Default session secret in use outside local environment", env=self.config.env)

        self.credential_store = credential_store or self._build_credential_store()
        self.counter_store = counter_store or self._build_counter_store()

        self.codec = SessionTokenCodec(self.config.session_secret, self.config.session_ttl_seconds)
        self.rate_limiter = FixedWindowRateLimiter(
            self.counter_store,
            window_seconds=self.config.rate_limit_window_seconds,
            max_requests=self.config.rate_limit_max_requests,
        )
        self.verifier = SessionVerifier(
            self.codec,
            self.credential_store,
            cookie_name=self.config.session_cookie_name,
            lookup_timeout=self.config.store_timeout_seconds,
            metrics=self.metrics,
        )
        self.gateway = AccessGateway(
            self.rate_limiter,
            self.verifier,
            ClientIdResolver(trust_forwarded_for=self.config.trust_forwarded_for),
            metrics=self.metrics,
        )
        self.accounts = AccountService(self.credential_store, self.codec)
        self.templates = Jinja2Templates(directory=TEMPLATES_DIR)

        self._setup_gateway_handlers()
        self._setup_portal_routes()

        self.app.state.portal_service = self

    def _build_credential_store(self) -> CredentialStore:
        if self.config.credential_backend == "postgres":
            return PostgresCredentialStore(self.config.postgres_dsn)
        return InMemoryCredentialStore()

    def _build_counter_store(self) -> CounterStore:
        if self.config.rate_limit_backend == "redis":
            return RedisCounterStore(self.config.redis_url)
        return InMemoryCounterStore()

    async def _startup(self) -> None:
        await self.credential_store.connect()
        self.logger.info(
            "Portal started",
            credential_backend=self.config.credential_backend,
            rate_limit_backend=self.config.rate_limit_backend,
        )

    async def _shutdown(self) -> None:
        await self.credential_store.disconnect()
        await self.counter_store.close()

    async def _check_dependencies(self) -> Dict[str, str]:
        return {"credential_store": await self.credential_store.check_health()}

    def _setup_gateway_handlers(self):
        @self.app.exception_handler(GatewayRejected)
        async def gateway_rejected_handler(request: Request, exc: GatewayRejected):
            return rejection_response(exc.decision, exc.policy)

        @self.app.exception_handler(ClientDisconnected)
        async def client_disconnected_handler(request: Request, exc: ClientDisconnected):
            # Nobody is listening; close the exchange without rendering anything
            return Response(status_code=499)

    def _setup_portal_routes(self):
        self.app.include_router(
            build_accounts_router(self.accounts, self.gateway, self.templates, self.config)
        )
        register_page_routes(self.app, self.gateway, self.templates)
        register_api_fallback(self.app, self.gateway)

        if self.config.static_dir and os.path.isdir(self.config.static_dir):
            self.app.mount("/", StaticFiles(directory=self.config.static_dir), name="static")


def create_app(config: Optional[PortalConfig] = None, **kwargs) -> FastAPI:
    """Create FastAPI application."""
    service = PortalService(config, **kwargs)
    return service.app


if __name__ == "__main__":
    service = PortalService()
    service.run()
