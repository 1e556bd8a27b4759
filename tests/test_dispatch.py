"""Tests for upgrade dispatch."""

from __future__ import annotations

import pytest
from aiohttp import web
from aiohttp.test_utils import make_mocked_request

from helium.server.dispatch import Route, classify, create_dispatch_middleware
from helium.server.tunnel import BareTunnel, DisabledTunnel

UPGRADE_HEADERS = {"Upgrade": "websocket"}


class RecordingTunnel(BareTunnel):
    """Tunnel that answers locally and records what it was given."""

    def __init__(self):
        super().__init__(prefix="/bare/")
        self.seen: list[str] = []

    async def route_request(self, request):
        self.seen.append(request.path)
        return web.Response(text="tunnel")


class RecordingChannel:
    def __init__(self):
        self.seen: list[str] = []

    async def handle(self, request):
        self.seen.append(request.path)
        return web.Response(text="channel")


class TestClassify:
    """Tests for the pure routing decision."""

    def test_tunnel_prefix(self):
        request = make_mocked_request("POST", "/bare/v1/")
        assert classify(request, BareTunnel()) is Route.TUNNEL

    def test_prefix_without_trailing_slash_is_application(self):
        """Only paths below the prefix belong to the tunnel."""
        request = make_mocked_request("GET", "/bare")
        assert classify(request, BareTunnel()) is Route.APPLICATION

    def test_tunnel_wins_over_upgrade(self):
        """Upgrades under the tunnel prefix belong to the tunnel."""
        request = make_mocked_request("GET", "/bare/ws", headers=UPGRADE_HEADERS)
        assert classify(request, BareTunnel()) is Route.TUNNEL

    def test_channel_upgrade(self):
        request = make_mocked_request("GET", "/", headers=UPGRADE_HEADERS)
        assert classify(request, BareTunnel()) is Route.CHANNEL

    def test_upgrade_header_case_insensitive(self):
        request = make_mocked_request("GET", "/", headers={"Upgrade": "WebSocket"})
        assert classify(request, BareTunnel()) is Route.CHANNEL

    def test_non_get_upgrade_is_application(self):
        request = make_mocked_request("POST", "/", headers=UPGRADE_HEADERS)
        assert classify(request, BareTunnel()) is Route.APPLICATION

    def test_other_upgrade_is_application(self):
        request = make_mocked_request("GET", "/", headers={"Upgrade": "h2c"})
        assert classify(request, BareTunnel()) is Route.APPLICATION

    def test_application(self):
        request = make_mocked_request("POST", "/heartbeat")
        assert classify(request, BareTunnel()) is Route.APPLICATION

    def test_similar_prefix_is_not_tunnel(self):
        request = make_mocked_request("GET", "/barely")
        assert classify(request, BareTunnel()) is Route.APPLICATION

    def test_custom_prefix(self):
        tunnel = BareTunnel(prefix="/tunnel")
        assert classify(make_mocked_request("GET", "/tunnel/x"), tunnel) is Route.TUNNEL
        assert classify(make_mocked_request("GET", "/bare/x"), tunnel) is Route.APPLICATION

    def test_disabled_tunnel(self):
        tunnel = DisabledTunnel()
        assert classify(make_mocked_request("GET", "/bare/x"), tunnel) is Route.APPLICATION
        request = make_mocked_request("GET", "/bare/x", headers=UPGRADE_HEADERS)
        assert classify(request, tunnel) is Route.CHANNEL

    def test_invalid_prefix(self):
        with pytest.raises(ValueError):
            BareTunnel(prefix="bare/")


class TestDispatchMiddleware:
    """Each request reaches exactly one of tunnel, channel and application."""

    @pytest.fixture
    def parts(self):
        tunnel = RecordingTunnel()
        channel = RecordingChannel()
        seen: list[str] = []

        async def application(request):
            seen.append(request.path)
            return web.Response(text="application")

        app = web.Application(middlewares=[create_dispatch_middleware(tunnel, channel)])
        app.router.add_get("/", application)
        app.router.add_get("/bare/thing", application)
        return app, tunnel, channel, seen

    @pytest.mark.asyncio
    async def test_application_request(self, aiohttp_client, parts):
        app, tunnel, channel, seen = parts
        client = await aiohttp_client(app)

        resp = await client.get("/")
        assert await resp.text() == "application"
        assert seen == ["/"]
        assert tunnel.seen == []
        assert channel.seen == []

    @pytest.mark.asyncio
    async def test_tunnel_request_skips_application_route(self, aiohttp_client, parts):
        """A registered application route under the tunnel prefix is never invoked."""
        app, tunnel, channel, seen = parts
        client = await aiohttp_client(app)

        resp = await client.get("/bare/thing")
        assert await resp.text() == "tunnel"
        assert tunnel.seen == ["/bare/thing"]
        assert seen == []
        assert channel.seen == []

    @pytest.mark.asyncio
    async def test_tunnel_request_for_unregistered_path(self, aiohttp_client, parts):
        app, tunnel, _, _ = parts
        client = await aiohttp_client(app)

        resp = await client.post("/bare/v1/anything")
        assert resp.status == 200
        assert tunnel.seen == ["/bare/v1/anything"]

    @pytest.mark.asyncio
    async def test_channel_request(self, aiohttp_client, parts):
        app, tunnel, channel, seen = parts
        client = await aiohttp_client(app)

        resp = await client.get("/", headers=UPGRADE_HEADERS)
        assert await resp.text() == "channel"
        assert channel.seen == ["/"]
        assert seen == []
        assert tunnel.seen == []

    @pytest.mark.asyncio
    async def test_unmatched_application_request(self, aiohttp_client, parts):
        app, tunnel, channel, _ = parts
        client = await aiohttp_client(app)

        resp = await client.get("/missing")
        assert resp.status == 404
        assert tunnel.seen == []
        assert channel.seen == []
