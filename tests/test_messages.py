"""Tests for stream event framing and channel message parsing."""

from __future__ import annotations

import json

import pytest

from helium.core.errors import ValidationError
from helium.protocol.messages import (
    END_RESULT,
    EndEvent,
    ErrorEvent,
    ErrorReply,
    HeartbeatAck,
    HeartbeatMessage,
    LiveEvent,
    encode_event,
    encode_reply,
    is_terminal,
    is_valid_session_id,
    parse_channel_message,
)


class TestStreamEvents:
    """Tests for SSE framing of stream events."""

    def test_live_event_frame(self):
        assert encode_event(LiveEvent(data="Hello ")) == b'data: {"type": "live", "data": "Hello "}\n\n'

    def test_end_event_carries_json_string(self):
        """The end payload is the JSON text of a success object, not an object."""
        frame = encode_event(EndEvent())
        assert frame.startswith(b"data: ")
        assert frame.endswith(b"\n\n")

        payload = json.loads(frame[len(b"data: "):].decode())
        assert payload == {"type": "end", "data": END_RESULT}
        assert json.loads(payload["data"]) == {"success": True}

    def test_error_event_frame(self):
        payload = json.loads(encode_event(ErrorEvent(data="boom"))[6:])
        assert payload == {"type": "error", "data": "boom"}

    def test_non_ascii_is_escaped(self):
        frame = encode_event(LiveEvent(data="héllo"))
        assert frame == b'data: {"type": "live", "data": "h\\u00e9llo"}\n\n'

    def test_terminal_events(self):
        assert is_terminal(LiveEvent(data="x")) is False
        assert is_terminal(EndEvent()) is True
        assert is_terminal(ErrorEvent(data="x")) is True


class TestSessionIdFormat:
    """Tests for session identifier format checks."""

    @pytest.mark.parametrize(
        "session_id",
        [
            "123e4567-e89b-12d3-a456-426614174000",
            "123E4567-E89B-12D3-A456-426614174000",
            "123456789",
            "123456789012",
        ],
    )
    def test_valid(self, session_id):
        assert is_valid_session_id(session_id) is True

    @pytest.mark.parametrize(
        "session_id",
        [
            None,
            "",
            "12345678",
            "1234567890123",
            "abc-123",
            "123e4567-e89b-12d3-a456-42661417400",
            "123e4567e89b12d3a456426614174000",
        ],
    )
    def test_invalid(self, session_id):
        assert is_valid_session_id(session_id) is False


class TestParseChannelMessage:
    """Tests for channel message validation."""

    def test_heartbeat(self):
        message = parse_channel_message('{"type": "heartbeat", "sessionId": "abc-123"}')
        assert isinstance(message, HeartbeatMessage)
        assert message.session_id == "abc-123"

    def test_heartbeat_from_bytes(self):
        message = parse_channel_message(b'{"type": "heartbeat", "sessionId": "s1"}')
        assert message.session_id == "s1"

    def test_heartbeat_without_session_id(self):
        with pytest.raises(ValidationError, match="Invalid session ID"):
            parse_channel_message('{"type": "heartbeat"}')

    def test_heartbeat_with_empty_session_id(self):
        with pytest.raises(ValidationError, match="Invalid session ID"):
            parse_channel_message('{"type": "heartbeat", "sessionId": ""}')

    def test_heartbeat_with_non_string_session_id(self):
        with pytest.raises(ValidationError, match="Invalid session ID"):
            parse_channel_message('{"type": "heartbeat", "sessionId": 42}')

    def test_unknown_type(self):
        with pytest.raises(ValidationError, match="Unknown message type"):
            parse_channel_message('{"type": "unknown"}')

    def test_missing_type(self):
        with pytest.raises(ValidationError, match="Unknown message type"):
            parse_channel_message('{"sessionId": "abc"}')

    @pytest.mark.parametrize("payload", ["not json", "[1, 2]", '"heartbeat"', "null", b"\xff\xfe"])
    def test_invalid_format(self, payload):
        with pytest.raises(ValidationError, match="Invalid message format"):
            parse_channel_message(payload)


class TestReplies:
    """Tests for channel reply encoding."""

    def test_heartbeat_ack(self):
        assert json.loads(encode_reply(HeartbeatAck())) == {"type": "heartbeat_ack", "status": "ok"}

    def test_error_reply(self):
        assert json.loads(encode_reply(ErrorReply(error="Unknown message type"))) == {
            "error": "Unknown message type"
        }
