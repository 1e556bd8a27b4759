"""Accounts, admin credentials and proxy domain allocation."""

from helium.accounts.admin import AdminCheckResult, AdminGuard, create_admin_guard
from helium.accounts.domains import DEFAULT_DOMAINS, DomainPool
from helium.accounts.hashing import PasswordHasher
from helium.accounts.store import (
    Account,
    AccountStore,
    InMemoryAccountStore,
    check_password_policy,
)

__all__ = [
    "DEFAULT_DOMAINS",
    "Account",
    "AccountStore",
    "AdminCheckResult",
    "AdminGuard",
    "DomainPool",
    "InMemoryAccountStore",
    "PasswordHasher",
    "check_password_policy",
    "create_admin_guard",
]
