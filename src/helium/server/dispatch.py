"""Upgrade dispatch.

Every inbound request is classified exactly once and handed to exactly one
of the tunnel subsystem, the message channel or the application router.
"""

from __future__ import annotations

from enum import Enum
from typing import Protocol, assert_never

import structlog
from aiohttp import web
from aiohttp.typedefs import Handler

from helium.observability.metrics import DISPATCH_DECISIONS
from helium.server.tunnel import TunnelBackend, is_websocket_upgrade

logger = structlog.get_logger()


class Route(Enum):
    TUNNEL = "tunnel"
    CHANNEL = "channel"
    APPLICATION = "application"


class ChannelEndpoint(Protocol):
    async def handle(self, request: web.Request) -> web.StreamResponse: ...


def classify(request: web.BaseRequest, tunnel: TunnelBackend) -> Route:
    """Decide which subsystem owns ``request``.

    Tunnel traffic wins over everything, including WebSocket upgrades under
    the tunnel prefix. Any other upgrade belongs to the message channel.
    """
    if tunnel.should_route(request):
        return Route.TUNNEL
    if is_websocket_upgrade(request):
        return Route.CHANNEL
    return Route.APPLICATION


def create_dispatch_middleware(tunnel: TunnelBackend, channel: ChannelEndpoint):
    """Build the middleware that routes each request to its owner."""

    @web.middleware
    async def dispatch_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
        route = classify(request, tunnel)
        DISPATCH_DECISIONS.labels(route=route.value).inc()

        match route:
            case Route.TUNNEL:
                return await tunnel.route_request(request)
            case Route.CHANNEL:
                logger.debug("Channel upgrade", path=request.path, peer=request.remote)
                return await channel.handle(request)
            case Route.APPLICATION:
                return await handler(request)
            case _:
                assert_never(route)

    return dispatch_middleware
