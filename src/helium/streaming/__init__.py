"""Chat streaming: providers, event encoding and SSE delivery."""

from helium.streaming.encoder import (
    SYNTHETIC_TEMPLATE,
    StreamEncoder,
    synthetic_fragments,
)
from helium.streaming.provider import (
    ChatProvider,
    OpenAIChatProvider,
    create_chat_provider,
)
from helium.streaming.sse import SSE_HEADERS, stream_events

__all__ = [
    "SSE_HEADERS",
    "SYNTHETIC_TEMPLATE",
    "ChatProvider",
    "OpenAIChatProvider",
    "StreamEncoder",
    "create_chat_provider",
    "stream_events",
    "synthetic_fragments",
]
