"""Session storage with periodic expiration sweeps.

Sessions are keyed by a client-asserted identifier and refreshed by
heartbeats. Nothing binds an identifier to an identity; a client that
knows another client's identifier can refresh that session.
"""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass

import structlog

from helium.observability.metrics import ACTIVE_SESSIONS, SESSIONS_RECLAIMED

logger = structlog.get_logger()

DEFAULT_SESSION_TTL = 24 * 60 * 60
DEFAULT_RECLAIM_INTERVAL = 30 * 60


@dataclass
class Session:
    """Heartbeat state for one client session."""

    session_id: str
    last_seen: float
    expires_at: float

    def is_expired(self, now: float | None = None) -> bool:
        """Check if the session is eligible for reclamation."""
        if now is None:
            now = time.time()
        return self.expires_at < now


class SessionStore(ABC):
    """Mapping from session identifier to last-seen/expiry metadata.

    Implementations must allow ``touch`` and ``reclaim`` to run concurrently
    from any number of handlers: a touch lands either before or after a
    given sweep, never in between.
    """

    @abstractmethod
    async def touch(self, session_id: str, now: float | None = None) -> Session:
        """Create or refresh the session for ``session_id``."""

    @abstractmethod
    async def reclaim(self, now: float | None = None) -> int:
        """Remove every session with ``expires_at < now`` and return the count."""

    @abstractmethod
    async def get(self, session_id: str) -> Session | None:
        """Return the stored session, expired or not."""

    @abstractmethod
    async def count(self) -> int:
        """Return the number of stored sessions."""

    async def start(self) -> None:
        """Start background work owned by the store."""

    async def stop(self) -> None:
        """Stop background work owned by the store."""


class InMemorySessionStore(SessionStore):
    """In-memory session storage with a timed reclamation task.

    All reads and writes go through a single asyncio lock.
    """

    def __init__(
        self,
        ttl: float = DEFAULT_SESSION_TTL,
        reclaim_interval: float = DEFAULT_RECLAIM_INTERVAL,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the store.

        Args:
            ttl: Session lifetime after the last heartbeat in seconds (default 24 hours)
            reclaim_interval: How often to sweep expired sessions in seconds (default 30 min)
            clock: Source of the current epoch time
        """
        self._sessions: dict[str, Session] = {}
        self._ttl = ttl
        self._reclaim_interval = reclaim_interval
        self._clock = clock
        self._reclaim_task: asyncio.Task | None = None
        self._lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._reclaim_task is not None and not self._reclaim_task.done()

    async def start(self) -> None:
        """Start the background reclamation task."""
        if self._reclaim_task is None:
            self._reclaim_task = asyncio.create_task(self._reclaim_loop())
            logger.debug("Session reclamation started", interval=self._reclaim_interval)

    async def stop(self) -> None:
        """Stop the background reclamation task."""
        if self._reclaim_task:
            self._reclaim_task.cancel()
            try:
                await self._reclaim_task
            except asyncio.CancelledError:
                pass
            self._reclaim_task = None

    async def touch(self, session_id: str, now: float | None = None) -> Session:
        if now is None:
            now = self._clock()

        session = Session(
            session_id=session_id,
            last_seen=now,
            expires_at=now + self._ttl,
        )

        async with self._lock:
            self._sessions[session_id] = session
            ACTIVE_SESSIONS.set(len(self._sessions))

        return session

    async def reclaim(self, now: float | None = None) -> int:
        if now is None:
            now = self._clock()

        async with self._lock:
            expired_ids = [
                sid for sid, session in self._sessions.items()
                if session.is_expired(now)
            ]
            for sid in expired_ids:
                del self._sessions[sid]
            ACTIVE_SESSIONS.set(len(self._sessions))

        if expired_ids:
            SESSIONS_RECLAIMED.inc(len(expired_ids))
        return len(expired_ids)

    async def get(self, session_id: str) -> Session | None:
        async with self._lock:
            return self._sessions.get(session_id)

    async def count(self) -> int:
        async with self._lock:
            return len(self._sessions)

    async def _reclaim_loop(self) -> None:
        """Background task to remove expired sessions."""
        while True:
            try:
                await asyncio.sleep(self._reclaim_interval)
                removed = await self.reclaim()
                if removed:
                    logger.info("Cleaned up expired sessions", count=removed)
            except asyncio.CancelledError:
                break
