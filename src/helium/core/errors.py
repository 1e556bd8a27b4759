"""Error types shared by the gateway components."""

from __future__ import annotations


class GatewayError(Exception):
    """Base class for gateway errors."""


class ValidationError(GatewayError):
    """Client input failed validation.

    Covers missing or malformed session identifiers, empty prompts and
    malformed channel payloads. Always answered locally with an error
    response; connection and session state are left untouched.
    """


class UpstreamError(GatewayError):
    """The chat-completion provider failed while producing fragments."""


class TransportError(GatewayError):
    """The client connection went away or the socket failed."""


class AccountError(GatewayError):
    """Account operation rejected. ``status`` is the HTTP status to answer with."""

    status = 400


class AccountExistsError(AccountError):
    def __init__(self, username: str) -> None:
        super().__init__("Username already exists")
        self.username = username


class AccountNotFoundError(AccountError):
    status = 404

    def __init__(self, username: str) -> None:
        super().__init__("User not found")
        self.username = username


class PasswordPolicyError(AccountError):
    """Password does not meet the account password policy."""
