"""Wire message definitions for the chat event stream and the message channel."""

from __future__ import annotations

import json
import re
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from helium.core.errors import ValidationError

SESSION_HEADER = "X-Session-Id"
SSE_DATA_PREFIX = "data: "
END_RESULT = json.dumps({"success": True})

# UUID (any version) or a 9-12 digit numeric identifier
SESSION_ID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$|^[0-9]{9,12}$",
    re.IGNORECASE,
)

INVALID_FORMAT = "Invalid message format"
UNKNOWN_TYPE = "Unknown message type"
INVALID_SESSION_ID = "Invalid session ID"


def is_valid_session_id(session_id: str | None) -> bool:
    """Check a session identifier against the accepted format."""
    return bool(session_id) and SESSION_ID_PATTERN.match(session_id) is not None


class LiveEvent(BaseModel):
    """One incremental text fragment."""

    type: Literal["live"] = "live"
    data: str


class EndEvent(BaseModel):
    """Successful end of stream."""

    type: Literal["end"] = "end"
    data: str = END_RESULT


class ErrorEvent(BaseModel):
    """Failed end of stream."""

    type: Literal["error"] = "error"
    data: str


StreamEvent = LiveEvent | EndEvent | ErrorEvent


def is_terminal(event: StreamEvent) -> bool:
    """Return True for events that end a stream."""
    return not isinstance(event, LiveEvent)


def encode_event(event: StreamEvent) -> bytes:
    """Frame a stream event as a server-sent event."""
    payload = json.dumps(event.model_dump())
    return f"{SSE_DATA_PREFIX}{payload}\n\n".encode()


class HeartbeatMessage(BaseModel):
    """Client heartbeat carrying its session identifier."""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["heartbeat"] = "heartbeat"
    session_id: str = Field(alias="sessionId", min_length=1)


class HeartbeatAck(BaseModel):
    type: Literal["heartbeat_ack"] = "heartbeat_ack"
    status: Literal["ok"] = "ok"


class ErrorReply(BaseModel):
    error: str


ChannelMessage = HeartbeatMessage

MESSAGE_TYPES: dict[str, type[BaseModel]] = {
    "heartbeat": HeartbeatMessage,
}

_TYPE_ERRORS = {
    "heartbeat": INVALID_SESSION_ID,
}


def parse_channel_message(data: str | bytes) -> ChannelMessage:
    """Decode and validate a channel message.

    Raises:
        ValidationError: If the payload is not a JSON object, carries an unknown
            type, or does not match the shape of its type.
    """
    try:
        raw: Any = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValidationError(INVALID_FORMAT) from e

    if not isinstance(raw, dict):
        raise ValidationError(INVALID_FORMAT)

    msg_type = raw.get("type")
    if not isinstance(msg_type, str) or msg_type not in MESSAGE_TYPES:
        raise ValidationError(UNKNOWN_TYPE)

    try:
        return MESSAGE_TYPES[msg_type].model_validate(raw)
    except PydanticValidationError as e:
        raise ValidationError(_TYPE_ERRORS.get(msg_type, INVALID_FORMAT)) from e


def encode_reply(reply: BaseModel) -> str:
    """Serialize a channel reply as a JSON text frame."""
    return reply.model_dump_json()
