"""Application router: heartbeat, visit logging, accounts, admin login and chat."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import structlog
from aiohttp import web
from aiohttp.typedefs import Handler

from helium.accounts.admin import AdminGuard
from helium.accounts.domains import DomainPool
from helium.accounts.store import AccountStore
from helium.core.errors import AccountError
from helium.observability.metrics import HEARTBEATS, generate_metrics, get_content_type
from helium.protocol.messages import SESSION_HEADER, is_valid_session_id
from helium.sessions.store import SessionStore
from helium.streaming.encoder import StreamEncoder
from helium.streaming.sse import stream_events

logger = structlog.get_logger()

ADMIN_NOT_CONFIGURED = (
    "Admin access not configured. "
    "Please set ADMIN_PASSWORD and ADMIN_2FA_SECRET environment variables."
)


async def read_json_object(request: web.Request) -> dict[str, Any]:
    """Return the JSON body if it is an object, otherwise an empty dict."""
    if not request.body_exists:
        return {}
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return {}
    return body if isinstance(body, dict) else {}


def _string_field(body: dict[str, Any], name: str) -> str | None:
    value = body.get(name)
    return value if isinstance(value, str) and value else None


@web.middleware
async def error_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Answer unhandled handler exceptions with a generic 500."""
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except Exception:
        logger.exception("Unhandled error", method=request.method, path=request.path)
        return web.json_response({"error": "Internal server error"}, status=500)


class ApplicationRoutes:
    """Handlers for the gateway's plain HTTP API."""

    def __init__(
        self,
        sessions: SessionStore,
        accounts: AccountStore,
        encoder: StreamEncoder,
        domains: DomainPool,
        admin: AdminGuard | None = None,
        login_failure_delay: float = 2.0,
        metrics_enabled: bool = True,
    ):
        self._sessions = sessions
        self._accounts = accounts
        self._encoder = encoder
        self._domains = domains
        self._admin = admin
        self._login_failure_delay = login_failure_delay
        self._metrics_enabled = metrics_enabled

    def register_routes(self, app: web.Application) -> None:
        app.router.add_post("/heartbeat", self.heartbeat)
        app.router.add_post("/log", self.log_visit)
        app.router.add_post("/login", self.admin_login)
        app.router.add_post("/acc/create-account", self.create_account)
        app.router.add_post("/acc/login", self.account_login)
        app.router.add_post("/acc/get-referral-stats", self.referral_stats)
        app.router.add_post("/acc/generate-domain", self.generate_domain)
        app.router.add_get("/get-links", self.get_links)
        app.router.add_post("/gpt", self.chat)
        app.router.add_post("/gpt/", self.chat)
        app.router.add_get("/health", self.health)
        if self._metrics_enabled:
            app.router.add_get("/metrics", self.metrics)

    async def _fail_slowly(self) -> None:
        if self._login_failure_delay > 0:
            await asyncio.sleep(self._login_failure_delay)

    async def heartbeat(self, request: web.Request) -> web.Response:
        session_id = request.headers.get(SESSION_HEADER)
        if not session_id:
            return web.json_response({"error": "Session ID required"}, status=400)

        await self._sessions.touch(session_id)
        HEARTBEATS.labels(source="http").inc()
        return web.json_response({"status": "ok"})

    async def log_visit(self, request: web.Request) -> web.Response:
        session_id = request.headers.get(SESSION_HEADER)
        if not session_id:
            return web.json_response({"error": "Session ID required"}, status=400)

        body = await read_json_object(request)
        url = _string_field(body, "url")
        if url is None:
            return web.json_response({"error": "Valid URL required"}, status=400)

        logger.info("Session visit", session_id=session_id, url=url)
        return web.json_response({"status": "logged"})

    async def admin_login(self, request: web.Request) -> web.Response:
        if self._admin is None:
            logger.warning("Admin login attempted but admin credentials are not configured")
            return web.json_response(
                {"success": False, "message": ADMIN_NOT_CONFIGURED}, status=503
            )

        body = await read_json_object(request)
        password = _string_field(body, "password")
        token = _string_field(body, "token")
        if password is None or token is None:
            return web.json_response(
                {"success": False, "message": "Password and 2FA token are required"},
                status=400,
            )

        result = self._admin.check(password, token)
        if not result.allowed:
            logger.warning("Admin login failed", peer=request.remote, reason=result.reason)
            await self._fail_slowly()
            return web.json_response({"success": False, "message": result.reason}, status=401)

        logger.info("Admin login", peer=request.remote)
        return web.json_response({"success": True, "message": "Admin login successful"})

    async def create_account(self, request: web.Request) -> web.Response:
        body = await read_json_object(request)
        username = _string_field(body, "username")
        password = _string_field(body, "password")
        if username is None or password is None:
            return web.json_response(
                {"error": "Username and password are required"}, status=400
            )

        try:
            await self._accounts.create(username, password)
        except AccountError as e:
            return web.json_response({"error": str(e)}, status=e.status)

        return web.json_response({"message": "Account created successfully"})

    async def account_login(self, request: web.Request) -> web.Response:
        body = await read_json_object(request)
        username = _string_field(body, "username")
        password = _string_field(body, "password")
        if username is None or password is None:
            return web.json_response(
                {"error": "Username and password are required"}, status=400
            )

        if not await self._accounts.authenticate(username, password):
            logger.info("Account login failed", username=username)
            await self._fail_slowly()
            return web.json_response({"error": "Invalid credentials"}, status=401)

        return web.json_response({"message": "Login successful"})

    async def referral_stats(self, request: web.Request) -> web.Response:
        body = await read_json_object(request)
        username = _string_field(body, "username")
        if username is None:
            return web.json_response({"error": "Username is required"}, status=400)

        try:
            account = await self._accounts.get(username)
        except AccountError as e:
            return web.json_response({"error": str(e)}, status=e.status)

        return web.json_response(
            {
                "referredCount": account.referred_count,
                "perkStatus": account.perk_status,
                "referralLinks": [],
                "generatedDomains": account.generated_domain_count,
                "generatedLinks": [],
            }
        )

    async def generate_domain(self, request: web.Request) -> web.Response:
        body = await read_json_object(request)
        username = _string_field(body, "username")
        if username is None:
            return web.json_response({"error": "Username is required"}, status=400)

        try:
            generated = await self._accounts.increment_generated_domains(username)
        except AccountError as e:
            return web.json_response({"error": str(e)}, status=e.status)

        domain = self._domains.pick(generated)
        logger.info("Domain generated", username=username, domain=domain, count=generated)
        return web.json_response({"domain": domain, "generatedCount": generated})

    async def get_links(self, request: web.Request) -> web.Response:
        return web.json_response(self._domains.domains)

    async def chat(self, request: web.Request) -> web.StreamResponse:
        session_id = request.headers.get(SESSION_HEADER)
        if not session_id:
            return web.json_response({"error": "Unauthorized - Please log in"}, status=401)
        if not is_valid_session_id(session_id):
            return web.json_response({"error": "Invalid session format"}, status=401)

        body = await read_json_object(request)
        prompt = body.get("newMessage")
        logger.debug("Chat request", session_id=session_id, mode=self._encoder.mode)
        return await stream_events(request, self._encoder.events(prompt))

    async def health(self, request: web.Request) -> web.Response:
        return web.json_response({"status": "healthy"})

    async def metrics(self, request: web.Request) -> web.Response:
        return web.Response(
            body=generate_metrics(),
            headers={"Content-Type": get_content_type()},
        )
