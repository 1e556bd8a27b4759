"""Gateway server: dispatch, message channel, tunnel and application routes."""

from helium.server.channel import ChannelState, MessageChannelHandler
from helium.server.dispatch import Route, classify, create_dispatch_middleware
from helium.server.gateway import Gateway
from helium.server.routes import ApplicationRoutes, error_middleware
from helium.server.tunnel import (
    BareTunnel,
    DisabledTunnel,
    TunnelBackend,
    create_tunnel,
    is_websocket_upgrade,
)

__all__ = [
    "ApplicationRoutes",
    "BareTunnel",
    "ChannelState",
    "DisabledTunnel",
    "Gateway",
    "MessageChannelHandler",
    "Route",
    "TunnelBackend",
    "classify",
    "create_dispatch_middleware",
    "create_tunnel",
    "error_middleware",
    "is_websocket_upgrade",
]
