"""Client session tracking."""

from helium.sessions.store import (
    DEFAULT_RECLAIM_INTERVAL,
    DEFAULT_SESSION_TTL,
    InMemorySessionStore,
    Session,
    SessionStore,
)

__all__ = [
    "DEFAULT_RECLAIM_INTERVAL",
    "DEFAULT_SESSION_TTL",
    "InMemorySessionStore",
    "Session",
    "SessionStore",
]
