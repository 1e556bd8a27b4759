"""Prometheus metrics for the gateway."""

from helium.observability.metrics import (
    ACTIVE_CHANNELS,
    ACTIVE_SESSIONS,
    CHANNEL_MESSAGES,
    DISPATCH_DECISIONS,
    HEARTBEATS,
    SESSIONS_RECLAIMED,
    STREAM_EVENTS,
    generate_metrics,
    get_content_type,
)

__all__ = [
    "ACTIVE_CHANNELS",
    "ACTIVE_SESSIONS",
    "CHANNEL_MESSAGES",
    "DISPATCH_DECISIONS",
    "HEARTBEATS",
    "SESSIONS_RECLAIMED",
    "STREAM_EVENTS",
    "generate_metrics",
    "get_content_type",
]
