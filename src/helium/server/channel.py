"""Bidirectional message channel over WebSocket."""

from __future__ import annotations

from enum import Enum

import structlog
from aiohttp import WSMsgType, web
from pydantic import BaseModel

from helium.core.errors import ValidationError
from helium.observability.metrics import ACTIVE_CHANNELS, CHANNEL_MESSAGES, HEARTBEATS
from helium.protocol.messages import (
    INVALID_FORMAT,
    ErrorReply,
    HeartbeatAck,
    HeartbeatMessage,
    encode_reply,
    parse_channel_message,
)
from helium.sessions.store import SessionStore

logger = structlog.get_logger()


class ChannelState(Enum):
    OPEN = "open"
    CLOSED = "closed"


class MessageChannelHandler:
    """Answers heartbeat messages on upgraded connections.

    A connection stays open across any number of malformed or unknown
    messages; only the peer closing or a transport failure ends it.
    """

    def __init__(self, sessions: SessionStore, heartbeat: float | None = 30.0):
        self._sessions = sessions
        self._heartbeat = heartbeat

    async def handle_message(self, data: str | bytes) -> BaseModel:
        """Process one payload and return the reply to send back."""
        try:
            message = parse_channel_message(data)
        except ValidationError as e:
            CHANNEL_MESSAGES.labels(outcome="error").inc()
            return ErrorReply(error=str(e))

        if isinstance(message, HeartbeatMessage):
            await self._sessions.touch(message.session_id)
            HEARTBEATS.labels(source="channel").inc()
            CHANNEL_MESSAGES.labels(outcome="ack").inc()
            return HeartbeatAck()

        CHANNEL_MESSAGES.labels(outcome="error").inc()
        return ErrorReply(error=INVALID_FORMAT)

    async def handle(self, request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse(heartbeat=self._heartbeat)
        await ws.prepare(request)

        state = ChannelState.OPEN
        ACTIVE_CHANNELS.inc()
        logger.info("Channel opened", peer=request.remote)

        try:
            while state is ChannelState.OPEN:
                msg = await ws.receive()

                if msg.type == WSMsgType.TEXT:
                    reply = await self.handle_message(msg.data)
                elif msg.type == WSMsgType.BINARY:
                    CHANNEL_MESSAGES.labels(outcome="error").inc()
                    reply = ErrorReply(error=INVALID_FORMAT)
                else:
                    if msg.type == WSMsgType.ERROR:
                        logger.warning("Channel transport error", error=str(ws.exception()))
                    state = ChannelState.CLOSED
                    continue

                try:
                    await ws.send_str(encode_reply(reply))
                except ConnectionResetError as e:
                    logger.warning("Failed to send channel reply", error=str(e))
                    state = ChannelState.CLOSED
        finally:
            ACTIVE_CHANNELS.dec()
            logger.info("Channel closed", peer=request.remote)

        return ws
