"""Configuration types with environment variable support.

Tuning settings can be configured via environment variables with the HELIUM_ prefix.
Example: HELIUM_SESSION_TTL=3600 shortens session lifetime to one hour.
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def load_config_from_file(path: str | Path) -> dict[str, Any]:
    """Load configuration from a YAML or TOML file.

    Args:
        path: Path to the configuration file (.yaml, .yml, or .toml)

    Returns:
        Configuration dictionary

    Raises:
        FileNotFoundError: If the config file doesn't exist
        ValueError: If the config file has encoding errors, invalid syntax, or unsupported format
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ValueError(f"Config file encoding error in {path}: {e}") from e

    try:
        if path.suffix in (".yaml", ".yml"):
            return yaml.safe_load(content) or {}
        elif path.suffix == ".toml":
            return tomllib.loads(content)
        else:
            raise ValueError(f"Unsupported config format: {path.suffix}")
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML in {path}: {e}") from e


class GatewayConfig(BaseModel):
    """Gateway process configuration."""

    host: str = "0.0.0.0"
    port: int = Field(default=5000, ge=1, le=65535)
    environment: Literal["development", "production"] = "development"
    tunnel_enabled: bool = Field(
        default=True,
        description="Route traffic under tunnel_prefix to the tunnel subsystem.",
    )
    tunnel_prefix: str = Field(
        default="/bare/",
        description="Path prefix identifying tunnel traffic.",
    )
    admin_password: str | None = Field(
        default=None,
        repr=False,
        description="Admin password. Admin login is disabled unless both secrets are set.",
    )
    admin_2fa_secret: str | None = Field(
        default=None,
        repr=False,
        description="Admin second-factor token.",
    )
    openai_api_key: str | None = Field(
        default=None,
        repr=False,
        description="OpenAI API key. Chat falls back to synthetic replies when unset.",
    )
    openai_model: str = Field(
        default="gpt-4",
        description="Chat completion model used in relay mode.",
    )
    metrics_enabled: bool = Field(
        default=True,
        description="Expose Prometheus metrics at /metrics.",
    )

    @property
    def admin_configured(self) -> bool:
        return bool(self.admin_password and self.admin_2fa_secret)

    @property
    def bind(self) -> str:
        return f"{self.host}:{self.port}"


class TuningConfig(BaseSettings):
    """Runtime tuning configuration.

    All settings can be overridden via environment variables:
    - HELIUM_SESSION_TTL: Session lifetime after the last heartbeat (seconds)
    - HELIUM_RECLAIM_INTERVAL: Expired session sweep interval (seconds)
    - HELIUM_SYNTHETIC_DELAY: Delay between synthetic chat fragments (seconds)
    - HELIUM_LOGIN_FAILURE_DELAY: Fixed delay on failed logins (seconds)
    - HELIUM_BCRYPT_ROUNDS: bcrypt cost factor
    - etc.
    """

    model_config = SettingsConfigDict(
        env_prefix="HELIUM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    session_ttl: float = Field(
        default=24 * 60 * 60,
        gt=0,
        description="Session lifetime after the last heartbeat (seconds). Default 24h.",
    )
    reclaim_interval: float = Field(
        default=30 * 60,
        gt=0,
        description="Expired session sweep interval (seconds). Default 30 minutes.",
    )
    synthetic_delay: float = Field(
        default=0.1,
        ge=0.0,
        description="Delay between synthetic chat fragments (seconds).",
    )
    login_failure_delay: float = Field(
        default=2.0,
        ge=0.0,
        description="Fixed delay applied to every failed login (seconds).",
    )
    bcrypt_rounds: int = Field(
        default=12,
        ge=4,
        le=31,
        description="bcrypt cost factor for account passwords.",
    )
    ws_heartbeat: float = Field(
        default=30.0,
        description="WebSocket ping interval for channel and tunnel sockets (seconds).",
    )
    upstream_timeout: float = Field(
        default=30.0,
        description="Connect timeout for tunnel upstream requests (seconds).",
    )
    max_body_size: int = Field(
        default=16 * 1024 * 1024,
        description="Maximum HTTP request body size (bytes). Default 16MB.",
    )

    def to_env_dict(self) -> dict[str, str]:
        """Export current configuration as environment variable dictionary."""
        return {
            f"HELIUM_{name.upper()}": str(value)
            for name, value in self.model_dump().items()
        }


_config: TuningConfig | None = None


def get_config() -> TuningConfig:
    """Get the global tuning configuration instance.

    The instance is created once and cached for the lifetime of the process.
    To reload config (e.g., in tests), call clear_config() first.
    """
    global _config
    if _config is None:
        _config = TuningConfig()
    return _config


def clear_config() -> None:
    """Clear the cached configuration.

    Call this to force reloading of environment variables on next get_config() call.
    Useful for testing.
    """
    global _config
    _config = None
