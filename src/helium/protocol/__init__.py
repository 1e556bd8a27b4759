"""Stream event and channel message definitions."""

from helium.protocol.messages import (
    END_RESULT,
    SESSION_HEADER,
    ChannelMessage,
    EndEvent,
    ErrorEvent,
    ErrorReply,
    HeartbeatAck,
    HeartbeatMessage,
    LiveEvent,
    StreamEvent,
    encode_event,
    encode_reply,
    is_terminal,
    is_valid_session_id,
    parse_channel_message,
)

__all__ = [
    "END_RESULT",
    "SESSION_HEADER",
    "ChannelMessage",
    "EndEvent",
    "ErrorEvent",
    "ErrorReply",
    "HeartbeatAck",
    "HeartbeatMessage",
    "LiveEvent",
    "StreamEvent",
    "encode_event",
    "encode_reply",
    "is_terminal",
    "is_valid_session_id",
    "parse_channel_message",
]
