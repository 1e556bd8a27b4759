"""Tunnel subsystem adapters.

The dispatcher only needs two operations from a tunnel backend: a pure
``should_route`` probe and ``route_request``, which takes full ownership of
the request (plain HTTP or WebSocket upgrade) once called.

``BareTunnel`` is a minimal forwarder: the absolute target URL travels in the
``X-Bare-URL`` header, plain requests are relayed with httpx and upgrades are
bridged to an upstream WebSocket opened with ``websockets``.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import Protocol

import httpx
import structlog
import websockets
from aiohttp import WSMsgType, web
from yarl import URL

logger = structlog.get_logger()

BARE_URL_HEADER = "X-Bare-URL"

HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailers",
        "transfer-encoding",
        "upgrade",
    }
)

_SKIP_REQUEST_HEADERS = HOP_BY_HOP_HEADERS | {
    "host",
    "content-length",
    BARE_URL_HEADER.lower(),
}
_SKIP_UPGRADE_HEADERS = _SKIP_REQUEST_HEADERS | {
    "user-agent",
    "sec-websocket-key",
    "sec-websocket-version",
    "sec-websocket-extensions",
    "sec-websocket-protocol",
    "sec-websocket-accept",
}
_SKIP_RESPONSE_HEADERS = HOP_BY_HOP_HEADERS | {"content-length"}

_HTTP_SCHEMES = frozenset({"http", "https"})
_WS_SCHEMES = {"ws": "ws", "wss": "wss", "http": "ws", "https": "wss"}


def is_websocket_upgrade(request: web.BaseRequest) -> bool:
    """Check if the request asks to upgrade the connection to a WebSocket."""
    return (
        request.method == "GET"
        and request.headers.get("Upgrade", "").lower() == "websocket"
    )


def _filter_headers(items, skip: frozenset[str]) -> list[tuple[str, str]]:
    return [(key, value) for key, value in items if key.lower() not in skip]


class TunnelBackend(Protocol):
    def should_route(self, request: web.BaseRequest) -> bool: ...

    async def route_request(self, request: web.Request) -> web.StreamResponse: ...

    async def close(self) -> None: ...


class DisabledTunnel:
    """Tunnel backend that never claims traffic."""

    def should_route(self, request: web.BaseRequest) -> bool:
        return False

    async def route_request(self, request: web.Request) -> web.StreamResponse:
        raise web.HTTPNotFound()

    async def close(self) -> None:
        return None


class BareTunnel:
    """Forwards requests under a path prefix to the URL named in ``X-Bare-URL``."""

    def __init__(
        self,
        prefix: str = "/bare/",
        connect_timeout: float = 30.0,
        ws_heartbeat: float = 30.0,
        chunk_size: int = 65536,
    ):
        if not prefix.startswith("/"):
            raise ValueError(f"Tunnel prefix must start with '/': {prefix!r}")
        self.prefix = prefix if prefix.endswith("/") else f"{prefix}/"
        self._connect_timeout = connect_timeout
        self._ws_heartbeat = ws_heartbeat
        self._chunk_size = chunk_size
        self._http_client: httpx.AsyncClient | None = None

    def should_route(self, request: web.BaseRequest) -> bool:
        return request.path.startswith(self.prefix)

    async def close(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            # Redirects go back to the client untouched.
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(None, connect=self._connect_timeout),
                follow_redirects=False,
            )
        return self._http_client

    def _target_url(self, request: web.BaseRequest) -> URL | None:
        raw = request.headers.get(BARE_URL_HEADER)
        if not raw:
            return None
        try:
            url = URL(raw)
        except ValueError:
            return None
        if not url.is_absolute() or not url.host:
            return None
        return url

    async def route_request(self, request: web.Request) -> web.StreamResponse:
        target = self._target_url(request)

        if is_websocket_upgrade(request):
            if target is None or target.scheme not in _WS_SCHEMES:
                return _bad_target()
            return await self._route_websocket(request, target.with_scheme(_WS_SCHEMES[target.scheme]))

        if target is None or target.scheme not in _HTTP_SCHEMES:
            return _bad_target()
        return await self._route_http(request, target)

    async def _route_http(self, request: web.Request, target: URL) -> web.StreamResponse:
        client = self._get_http_client()
        upstream_request = client.build_request(
            method=request.method,
            url=str(target),
            headers=_filter_headers(request.headers.items(), _SKIP_REQUEST_HEADERS),
            content=request.content.iter_chunked(self._chunk_size) if request.body_exists else None,
        )

        try:
            upstream = await client.send(upstream_request, stream=True)
        except httpx.RequestError as e:
            logger.warning("Tunnel upstream unreachable", target=str(target), error=str(e))
            return web.json_response({"error": "Upstream unreachable"}, status=502)

        try:
            response = web.StreamResponse(
                status=upstream.status_code,
                reason=upstream.reason_phrase or None,
            )
            for key, value in _filter_headers(upstream.headers.multi_items(), _SKIP_RESPONSE_HEADERS):
                response.headers.add(key, value)
            await response.prepare(request)

            try:
                async for chunk in upstream.aiter_raw(self._chunk_size):
                    await response.write(chunk)
                await response.write_eof()
            except (httpx.HTTPError, ConnectionResetError) as e:
                logger.debug("Tunnel stream interrupted", target=str(target), error=str(e))
        finally:
            await upstream.aclose()

        logger.debug(
            "Tunnel request",
            method=request.method,
            target=str(target),
            status=upstream.status_code,
        )
        return response

    async def _route_websocket(self, request: web.Request, target: URL) -> web.StreamResponse:
        subprotocols = [
            p.strip()
            for p in request.headers.get("Sec-WebSocket-Protocol", "").split(",")
            if p.strip()
        ]

        try:
            upstream = await websockets.connect(
                str(target),
                additional_headers=_filter_headers(request.headers.items(), _SKIP_UPGRADE_HEADERS),
                user_agent_header=request.headers.get("User-Agent"),
                subprotocols=subprotocols or None,
                open_timeout=self._connect_timeout,
                ping_interval=self._ws_heartbeat,
            )
        except (OSError, asyncio.TimeoutError, websockets.InvalidHandshake, websockets.InvalidURI) as e:
            logger.warning("Tunnel WebSocket upstream unreachable", target=str(target), error=str(e))
            return web.json_response({"error": "Upstream unreachable"}, status=502)

        ws = web.WebSocketResponse(
            heartbeat=self._ws_heartbeat,
            protocols=[upstream.subprotocol] if upstream.subprotocol else (),
        )
        try:
            await ws.prepare(request)
        except web.HTTPException:
            await upstream.close()
            raise

        logger.info("Tunnel WebSocket opened", target=str(target), peer=request.remote)

        to_upstream = asyncio.create_task(self._forward_to_upstream(ws, upstream))
        to_client = asyncio.create_task(self._forward_to_client(upstream, ws))
        try:
            await asyncio.wait({to_upstream, to_client}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (to_upstream, to_client):
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
            with contextlib.suppress(Exception):
                await upstream.close()
            with contextlib.suppress(Exception):
                await ws.close()
            logger.info("Tunnel WebSocket closed", target=str(target))

        return ws

    async def _forward_to_upstream(self, ws: web.WebSocketResponse, upstream) -> None:
        try:
            async for msg in ws:
                if msg.type in (WSMsgType.TEXT, WSMsgType.BINARY):
                    await upstream.send(msg.data)
                elif msg.type == WSMsgType.ERROR:
                    logger.debug("Tunnel client WebSocket error", error=str(ws.exception()))
                    break
        except websockets.ConnectionClosed:
            pass

    async def _forward_to_client(self, upstream, ws: web.WebSocketResponse) -> None:
        try:
            async for message in upstream:
                if isinstance(message, str):
                    await ws.send_str(message)
                else:
                    await ws.send_bytes(message)
        except websockets.ConnectionClosed as e:
            logger.debug("Tunnel upstream WebSocket closed", code=e.rcvd.code if e.rcvd else None)
        except ConnectionResetError as e:
            logger.debug("Tunnel client went away", error=str(e))


def _bad_target() -> web.Response:
    return web.json_response(
        {"error": f"Missing or invalid {BARE_URL_HEADER} header"},
        status=400,
    )


def create_tunnel(
    enabled: bool,
    prefix: str = "/bare/",
    connect_timeout: float = 30.0,
    ws_heartbeat: float = 30.0,
) -> TunnelBackend:
    if not enabled:
        return DisabledTunnel()
    return BareTunnel(prefix=prefix, connect_timeout=connect_timeout, ws_heartbeat=ws_heartbeat)
