"""Volatile account storage.

Accounts live for the lifetime of the process. Counter updates are
read-modify-write operations done under the store lock so concurrent
requests for the same user never lose an increment.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace

import structlog

from helium.accounts.hashing import MAX_PASSWORD_BYTES, PasswordHasher
from helium.core.errors import AccountExistsError, AccountNotFoundError, PasswordPolicyError

logger = structlog.get_logger()

MIN_PASSWORD_LENGTH = 8
MIN_PASSWORD_DIGITS = 2


def check_password_policy(password: str) -> None:
    """Raise PasswordPolicyError if ``password`` is too weak for an account."""
    if len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordPolicyError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
        )
    if sum(ch.isdigit() for ch in password) < MIN_PASSWORD_DIGITS:
        raise PasswordPolicyError(f"Password must contain at least {MIN_PASSWORD_DIGITS} numbers")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise PasswordPolicyError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes long")


@dataclass
class Account:
    username: str
    password_hash: str
    referred_count: int = 0
    perk_status: int = 0
    generated_domain_count: int = 0


class AccountStore(ABC):
    """Account persistence with atomic per-user counter updates."""

    @abstractmethod
    async def create(self, username: str, password: str) -> Account:
        """Create an account.

        Raises:
            AccountExistsError: If the username is taken.
            PasswordPolicyError: If the password is too weak.
        """

    @abstractmethod
    async def authenticate(self, username: str, password: str) -> bool:
        """Check credentials. Unknown users cost the same as wrong passwords."""

    @abstractmethod
    async def get(self, username: str) -> Account:
        """Return a snapshot of the account.

        Raises:
            AccountNotFoundError: If the user does not exist.
        """

    @abstractmethod
    async def increment_generated_domains(self, username: str) -> int:
        """Atomically bump the generated-domain counter and return the new value.

        Raises:
            AccountNotFoundError: If the user does not exist.
        """

    @abstractmethod
    async def count(self) -> int:
        """Return the number of accounts."""


class InMemoryAccountStore(AccountStore):
    """Accounts held in a dict guarded by an asyncio lock."""

    def __init__(self, hasher: PasswordHasher | None = None):
        self._hasher = hasher or PasswordHasher()
        self._accounts: dict[str, Account] = {}
        self._lock = asyncio.Lock()

    async def create(self, username: str, password: str) -> Account:
        async with self._lock:
            if username in self._accounts:
                raise AccountExistsError(username)

        check_password_policy(password)
        password_hash = await self._hasher.hash(password)

        async with self._lock:
            # Re-check: another request may have created it while hashing.
            if username in self._accounts:
                raise AccountExistsError(username)
            account = Account(username=username, password_hash=password_hash)
            self._accounts[username] = account

        logger.info("Account created", username=username)
        return replace(account)

    async def authenticate(self, username: str, password: str) -> bool:
        async with self._lock:
            account = self._accounts.get(username)
            password_hash = account.password_hash if account else None

        if password_hash is None:
            return await self._hasher.verify_absent(password)
        return await self._hasher.verify(password, password_hash)

    async def get(self, username: str) -> Account:
        async with self._lock:
            account = self._accounts.get(username)
            if account is None:
                raise AccountNotFoundError(username)
            return replace(account)

    async def increment_generated_domains(self, username: str) -> int:
        async with self._lock:
            account = self._accounts.get(username)
            if account is None:
                raise AccountNotFoundError(username)
            account.generated_domain_count += 1
            return account.generated_domain_count

    async def count(self) -> int:
        async with self._lock:
            return len(self._accounts)
