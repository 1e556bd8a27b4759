"""Server-sent event delivery over aiohttp."""

from __future__ import annotations

from collections.abc import AsyncGenerator

import structlog
from aiohttp import web

from helium.core.errors import TransportError
from helium.protocol.messages import StreamEvent, encode_event, is_terminal

logger = structlog.get_logger()

SSE_HEADERS = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


async def _write_event(
    request: web.Request, response: web.StreamResponse, event: StreamEvent
) -> None:
    transport = request.transport
    if transport is None or transport.is_closing():
        raise TransportError("Client disconnected")
    try:
        await response.write(encode_event(event))
    except ConnectionResetError as e:
        raise TransportError("Client disconnected") from e


async def stream_events(
    request: web.Request, events: AsyncGenerator[StreamEvent, None]
) -> web.StreamResponse:
    """Write ``events`` to the client as a text/event-stream response.

    Writing stops after the first terminal event. If the client goes away,
    the event source is closed and nothing further is written.
    """
    response = web.StreamResponse(status=200, headers=SSE_HEADERS)
    await response.prepare(request)

    try:
        try:
            async for event in events:
                await _write_event(request, response, event)
                if is_terminal(event):
                    break
        finally:
            await events.aclose()
        await response.write_eof()
    except TransportError:
        logger.info("Client disconnected mid-stream", path=request.path)
    except ConnectionResetError:
        logger.debug("Connection reset before end of stream", path=request.path)

    return response
