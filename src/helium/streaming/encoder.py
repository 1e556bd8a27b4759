"""Chat stream encoder.

Turns a prompt into a sequence of stream events: zero or more live
fragments followed by exactly one terminal event. Fragments come from the
configured chat provider (relay mode) or from a fixed acknowledgment
template (synthetic mode) when no provider is configured.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator
from contextlib import aclosing

import structlog

from helium.observability.metrics import STREAM_EVENTS
from helium.protocol.messages import EndEvent, ErrorEvent, LiveEvent, StreamEvent
from helium.streaming.provider import ChatProvider

logger = structlog.get_logger()

NO_MESSAGE = "No message provided"
UPSTREAM_FAILED = "An error occurred with the GPT service"

SYNTHETIC_TEMPLATE = (
    'I received your message: "{prompt}". This is a sample response from the GPT service. '
    "The actual GPT integration requires API keys and proper configuration."
)


def synthetic_fragments(prompt: str) -> list[str]:
    """Split the synthetic reply for ``prompt`` into space-terminated words."""
    return [f"{word} " for word in SYNTHETIC_TEMPLATE.format(prompt=prompt).split(" ")]


class StreamEncoder:
    """Produces framed chat events for a single prompt."""

    def __init__(self, provider: ChatProvider | None = None, synthetic_delay: float = 0.1):
        self._provider = provider
        self._synthetic_delay = synthetic_delay

    @property
    def mode(self) -> str:
        return "synthetic" if self._provider is None else "relay"

    async def events(self, prompt: object) -> AsyncGenerator[StreamEvent, None]:
        """Yield the events for ``prompt``.

        Closing this iterator early also closes the upstream fragment stream.
        """
        mode = self.mode
        async with aclosing(self._produce(prompt)) as produced:
            async for event in produced:
                STREAM_EVENTS.labels(mode=mode, type=event.type).inc()
                yield event

    async def _produce(self, prompt: object) -> AsyncGenerator[StreamEvent, None]:
        if not isinstance(prompt, str) or not prompt:
            yield ErrorEvent(data=NO_MESSAGE)
            return

        if self._provider is None:
            for fragment in synthetic_fragments(prompt):
                yield LiveEvent(data=fragment)
                await asyncio.sleep(self._synthetic_delay)
            yield EndEvent()
            return

        error: str | None = None
        try:
            async with aclosing(self._provider.stream(prompt)) as fragments:
                async for fragment in fragments:
                    if fragment:
                        yield LiveEvent(data=fragment)
        except Exception as e:
            logger.error("Chat upstream error", error=str(e))
            error = str(e) or UPSTREAM_FAILED

        if error is None:
            yield EndEvent()
        else:
            yield ErrorEvent(data=error)
