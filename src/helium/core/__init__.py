"""Core."""

from .config import (
    GatewayConfig,
    TuningConfig,
    clear_config,
    get_config,
    load_config_from_file,
)
from .errors import (
    AccountError,
    AccountExistsError,
    AccountNotFoundError,
    GatewayError,
    PasswordPolicyError,
    TransportError,
    UpstreamError,
    ValidationError,
)

__all__ = [
    "AccountError",
    "AccountExistsError",
    "AccountNotFoundError",
    "GatewayConfig",
    "GatewayError",
    "PasswordPolicyError",
    "TransportError",
    "TuningConfig",
    "UpstreamError",
    "ValidationError",
    "clear_config",
    "get_config",
    "load_config_from_file",
]
