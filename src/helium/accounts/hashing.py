"""bcrypt password hashing.

bcrypt is deliberately slow, so hashing and verification run in a worker
thread to keep the event loop responsive.
"""

from __future__ import annotations

import asyncio

import bcrypt

DEFAULT_ROUNDS = 12
MAX_PASSWORD_BYTES = 72


class PasswordHasher:
    """One-way password hashing with a configurable cost factor.

    The dummy hash used for absent accounts is computed here so that the
    first unknown-user check costs one verification, like every later one.
    """

    def __init__(self, rounds: int = DEFAULT_ROUNDS) -> None:
        self.rounds = rounds
        self._dummy_hash = self.hash_sync("helium-absent-account")

    def hash_sync(self, password: str) -> str:
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("ascii")

    def verify_sync(self, password: str, hashed: str) -> bool:
        try:
            return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("ascii"))
        except ValueError:
            return False

    async def hash(self, password: str) -> str:
        """Hash a password with a fresh salt."""
        return await asyncio.to_thread(self.hash_sync, password)

    async def verify(self, password: str, hashed: str) -> bool:
        """Recompute the hash of ``password`` and compare it with ``hashed``."""
        return await asyncio.to_thread(self.verify_sync, password, hashed)

    async def verify_absent(self, password: str) -> bool:
        """Spend the same work as ``verify`` for an account that does not exist.

        Always returns False.
        """
        await self.verify(password, self._dummy_hash)
        return False
