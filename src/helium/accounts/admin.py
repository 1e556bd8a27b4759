from __future__ import annotations

import secrets
from dataclasses import dataclass


@dataclass
class AdminCheckResult:
    allowed: bool
    reason: str


class AdminGuard:
    def __init__(self, password: str, token: str) -> None:
        self._password = password
        self._token = token

    def check(self, password: str, token: str) -> AdminCheckResult:
        # Both comparisons always run so the failing field cannot be timed.
        password_ok = secrets.compare_digest(password.encode("utf-8"), self._password.encode("utf-8"))
        token_ok = secrets.compare_digest(token.encode("utf-8"), self._token.encode("utf-8"))

        if not password_ok:
            return AdminCheckResult(allowed=False, reason="Invalid credentials")
        if not token_ok:
            return AdminCheckResult(allowed=False, reason="Invalid 2FA token")
        return AdminCheckResult(allowed=True, reason="Authenticated")


def create_admin_guard(password: str | None, token: str | None) -> AdminGuard | None:
    if not (password and token):
        return None
    return AdminGuard(password=password, token=token)
