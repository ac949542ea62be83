"""QRLogin: instance-based configuration and entry point for the QR exchange."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from ipaddress import ip_network
from typing import TYPE_CHECKING

from qrlogin.config import CookieConfig, EndpointPaths, QRLoginConfig, RateLimitConfig
from qrlogin.core.engine import (
    ClaimResult,
    GeneratedToken,
    QRTokenEngine,
    TokenStatus,
    VerifyResult,
)
from qrlogin.core.sessions import Identity, SessionIssuer
from qrlogin.core.store import InMemoryTokenStore, SQLTokenStore, TokenStore
from qrlogin.core.sweeper import ExpirySweeper
from qrlogin.db import create_engine, create_session_factory
from qrlogin.events import HookRegistry
from qrlogin.ratelimit import InMemoryStore, RateLimitStore

if TYPE_CHECKING:
    from fastapi import APIRouter


class QRLogin:
    """Main QRLogin instance: holds config, the token store and the engine.

    Args:
        database_url: Async database URL (e.g. postgresql+asyncpg://...). When
            omitted and no ``store`` is given, tokens live in process memory.
        store: A ready ``TokenStore``. Takes precedence over ``database_url``.
        session_issuer: Authenticates scanning devices and mints sessions for
            requesting devices. Required for verify over HTTP and for claims.
        token_ttl_minutes: Default QR token lifetime (1-60, default 5).
        session_creation_ttl: Handoff token lifetime in seconds (default 300).
        qr_code_size: Rendered QR image edge in pixels (128-512, default 256).
        server_url: Origin embedded in the QR payload. None = request origin.
        endpoints: Endpoint paths relative to the router prefix.
        cookie: CookieConfig or None. None = claim-session returns JSON only.
        rate_limit: RateLimitConfig or None to disable limiting.
        trust_proxy: Read X-Forwarded-For / X-Real-IP from any peer.
        trusted_proxies: CIDRs whose proxy headers are honoured.
        sweep_interval: Seconds between background sweeps.
        clock: Returns the current aware UTC time. For tests.
        rate_limit_store: Counter storage. Defaults to an in-memory store.
    """

    def __init__(
        self,
        database_url: str | None = None,
        *,
        store: TokenStore | None = None,
        session_issuer: SessionIssuer | None = None,
        token_ttl_minutes: int = 5,
        session_creation_ttl: int = 300,
        qr_code_size: int = 256,
        server_url: str | None = None,
        endpoints: EndpointPaths | None = None,
        cookie: CookieConfig | None = None,
        rate_limit: RateLimitConfig | None = RateLimitConfig(),
        trust_proxy: bool = False,
        trusted_proxies: list[str] | None = None,
        sweep_interval: float = 60.0,
        clock: Callable[[], datetime] | None = None,
        rate_limit_store: RateLimitStore | None = None,
    ) -> None:
        self._config = QRLoginConfig(
            token_ttl_minutes=token_ttl_minutes,
            session_creation_ttl_seconds=session_creation_ttl,
            qr_code_size=qr_code_size,
            server_url=server_url.rstrip("/") if server_url else None,
            endpoints=endpoints or EndpointPaths(),
            cookie=cookie,
            rate_limit=rate_limit,
            trust_proxy=trust_proxy,
            trusted_proxy_networks=tuple(ip_network(p, strict=False) for p in trusted_proxies or ()),
            sweep_interval_seconds=sweep_interval,
        )

        self._db_engine = None
        if store is None and database_url is not None:
            self._db_engine = create_engine(database_url)
            store = SQLTokenStore(create_session_factory(self._db_engine))
        self._store = store if store is not None else InMemoryTokenStore()

        self._session_issuer = session_issuer
        self._hooks = HookRegistry()
        self._engine = QRTokenEngine(
            self._store,
            session_issuer=session_issuer,
            config=self._config,
            hooks=self._hooks,
            clock=clock,
        )
        self._sweeper = ExpirySweeper(self._engine, self._config.sweep_interval_seconds)
        self._rate_limit_store = rate_limit_store or InMemoryStore()
        self._current_identity_dep = None

    @property
    def config(self) -> QRLoginConfig:
        """Read-only access to the internal config."""
        return self._config

    @property
    def hooks(self) -> HookRegistry:
        return self._hooks

    @property
    def engine(self) -> QRTokenEngine:
        return self._engine

    @property
    def store(self) -> TokenStore:
        return self._store

    @property
    def rate_limit_store(self) -> RateLimitStore:
        return self._rate_limit_store

    # ------ Event hooks ------

    def on(self, event_name: str):
        """Decorator to register an event hook.

        Usage:
            @qr.on("session_claimed")
            async def handle(event):
                print(event.user_id)
        """
        def decorator(fn):
            self._hooks.register(event_name, fn)
            return fn
        return decorator

    def add_hook(self, event_name: str, callback) -> None:
        """Register an event hook callback programmatically."""
        self._hooks.register(event_name, callback)

    # ------ Exchange operations ------

    async def generate(self, *, server_url: str | None = None, ttl_minutes: int | None = None) -> GeneratedToken:
        """Mint a QR token outside of HTTP (e.g. for a kiosk rendering its own image)."""
        url = server_url or self._config.server_url
        if url is None:
            raise ValueError("server_url is required when QRLogin has no server_url configured")
        return await self._engine.generate(server_url=url, ttl_minutes=ttl_minutes)

    async def verify(self, token_id: str, secret: str, identity: Identity) -> VerifyResult:
        return await self._engine.verify(token_id, secret, identity)

    async def poll_status(self, token_id: str) -> TokenStatus:
        return await self._engine.poll_status(token_id)

    async def claim_session(self, session_creation_token: str) -> ClaimResult:
        return await self._engine.claim_session(session_creation_token)

    async def sweep_expired(self) -> int:
        """Delete every expired or claimed token. Returns count deleted."""
        return await self._engine.sweep_expired()

    # ------ Background sweeper ------

    def start_sweeper(self) -> None:
        """Start the periodic expiry sweep on the running event loop."""
        self._sweeper.start()

    async def stop_sweeper(self) -> None:
        await self._sweeper.stop()

    # ------ FastAPI integration ------

    def fastapi_router(self, identity_dependency: Callable | None = None) -> APIRouter:
        """Create a FastAPI router with the four QR endpoints, bound to this instance.

        Mount under any prefix (e.g. ``/api/auth``). ``identity_dependency``
        replaces the built-in bearer/cookie authentication of the scanning
        device; it must return an ``Identity``.
        """
        from qrlogin.integrations.fastapi.router import create_qr_router

        identity_dep = identity_dependency or self.current_identity
        return create_qr_router(
            self._engine,
            self._config,
            self._hooks,
            identity_dep,
            rate_limit_store=self._rate_limit_store,
        )

    @property
    def current_identity(self):
        """FastAPI dependency: the authenticated scanning device.

        Usage:
            @app.get("/me")
            async def me(identity=Depends(qr.current_identity)):
                ...
        """
        if self._session_issuer is None:
            raise RuntimeError("current_identity requires a session_issuer")
        if self._current_identity_dep is None:
            from qrlogin.integrations.fastapi.deps import create_identity_dep

            self._current_identity_dep = create_identity_dep(self._session_issuer, self._config.cookie)
        return self._current_identity_dep

    # ------ Migrations ------

    async def migrate(self) -> None:
        """Run pending database migrations. Safe to call on every startup.

        Tracks state in the ``qrlogin_alembic_version`` table. No-op when
        the instance has no database.
        """
        if self._db_engine is None:
            return

        from pathlib import Path

        from alembic.config import Config

        config = Config()
        config.set_main_option(
            "script_location",
            str(Path(__file__).parent / "migrations"),
        )

        async with self._db_engine.begin() as conn:
            await conn.run_sync(self._run_upgrade, config)

    @staticmethod
    def _run_upgrade(connection, config) -> None:
        from alembic import command

        config.attributes["connection"] = connection
        command.upgrade(config, "head")

    # ------ Lifecycle ------

    async def dispose(self) -> None:
        """Stop the sweeper and dispose the database engine (for clean shutdown)."""
        await self._sweeper.stop()
        if self._db_engine is not None:
            await self._db_engine.dispose()
