"""Gateway process: wires the stores, dispatcher and routers onto one aiohttp app."""

from __future__ import annotations

import asyncio

import structlog
from aiohttp import web

from helium.accounts.admin import create_admin_guard
from helium.accounts.domains import DomainPool
from helium.accounts.hashing import PasswordHasher
from helium.accounts.store import AccountStore, InMemoryAccountStore
from helium.core.config import GatewayConfig, TuningConfig, get_config
from helium.server.channel import MessageChannelHandler
from helium.server.dispatch import create_dispatch_middleware
from helium.server.routes import ApplicationRoutes, error_middleware
from helium.server.tunnel import TunnelBackend, create_tunnel
from helium.sessions.store import InMemorySessionStore, SessionStore
from helium.streaming.encoder import StreamEncoder
from helium.streaming.provider import ChatProvider, create_chat_provider

logger = structlog.get_logger()


class Gateway:
    """Single-port gateway multiplexing tunnel, channel and application traffic."""

    def __init__(
        self,
        config: GatewayConfig,
        tuning: TuningConfig | None = None,
        *,
        sessions: SessionStore | None = None,
        accounts: AccountStore | None = None,
        tunnel: TunnelBackend | None = None,
        provider: ChatProvider | None = None,
        domains: DomainPool | None = None,
    ):
        self.config = config
        self.tuning = tuning or get_config()

        self.sessions = sessions or InMemorySessionStore(
            ttl=self.tuning.session_ttl,
            reclaim_interval=self.tuning.reclaim_interval,
        )
        self.accounts = accounts or InMemoryAccountStore(
            PasswordHasher(rounds=self.tuning.bcrypt_rounds)
        )
        self.tunnel = tunnel or create_tunnel(
            enabled=config.tunnel_enabled,
            prefix=config.tunnel_prefix,
            connect_timeout=self.tuning.upstream_timeout,
            ws_heartbeat=self.tuning.ws_heartbeat,
        )
        if provider is None:
            provider = create_chat_provider(config.openai_api_key, config.openai_model)
        self.encoder = StreamEncoder(provider, synthetic_delay=self.tuning.synthetic_delay)
        self.domains = domains or DomainPool()
        self.channel = MessageChannelHandler(self.sessions, heartbeat=self.tuning.ws_heartbeat)

        self._runner: web.AppRunner | None = None
        self._shutdown_event = asyncio.Event()

    def build_app(self) -> web.Application:
        """Create the aiohttp application.

        The session reclamation task and the tunnel client session follow the
        application's startup and cleanup signals.
        """
        app = web.Application(
            client_max_size=self.tuning.max_body_size,
            middlewares=[
                error_middleware,
                create_dispatch_middleware(self.tunnel, self.channel),
            ],
        )

        routes = ApplicationRoutes(
            sessions=self.sessions,
            accounts=self.accounts,
            encoder=self.encoder,
            domains=self.domains,
            admin=create_admin_guard(self.config.admin_password, self.config.admin_2fa_secret),
            login_failure_delay=self.tuning.login_failure_delay,
            metrics_enabled=self.config.metrics_enabled,
        )
        routes.register_routes(app)

        app.on_startup.append(self._on_startup)
        app.on_cleanup.append(self._on_cleanup)
        return app

    async def _on_startup(self, app: web.Application) -> None:
        await self.sessions.start()

    async def _on_cleanup(self, app: web.Application) -> None:
        await self.sessions.stop()
        await self.tunnel.close()

    async def start(self) -> None:
        """Bind the listening socket and start serving."""
        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()

        site = web.TCPSite(self._runner, self.config.host, self.config.port)
        await site.start()

        logger.info(
            "Gateway started",
            bind=self.config.bind,
            environment=self.config.environment,
            tunnel=self.config.tunnel_enabled,
            chat_mode=self.encoder.mode,
            admin=self.config.admin_configured,
            accounts=await self.accounts.count(),
            sessions=await self.sessions.count(),
        )

    async def stop(self) -> None:
        """Stop serving and release background work."""
        logger.info("Stopping gateway...")
        self._shutdown_event.set()

        if self._runner:
            await self._runner.cleanup()
            self._runner = None

        logger.info("Gateway stopped")

    async def wait_closed(self) -> None:
        await self._shutdown_event.wait()
