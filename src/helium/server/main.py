"""Helium Gateway - Main entry point."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import click
import structlog
from dotenv import load_dotenv
from pydantic import ValidationError as PydanticValidationError
from rich.console import Console

from helium.core.config import GatewayConfig, get_config, load_config_from_file
from helium.server.gateway import Gateway

console = Console()

BANNER = """
██╗  ██╗███████╗██╗     ██╗██╗   ██╗███╗   ███╗
██║  ██║██╔════╝██║     ██║██║   ██║████╗ ████║
███████║█████╗  ██║     ██║██║   ██║██╔████╔██║
██╔══██║██╔══╝  ██║     ██║██║   ██║██║╚██╔╝██║
██║  ██║███████╗███████╗██║╚██████╔╝██║ ╚═╝ ██║
╚═╝  ╚═╝╚══════╝╚══════╝╚═╝ ╚═════╝ ╚═╝     ╚═╝
                    GATEWAY
"""


def configure_logging(log_level: str, environment: str) -> None:
    """Configure structlog; production emits JSON lines, development is human readable."""
    if environment == "production":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper())
        ),
    )


def build_config(config_file: str | None, **overrides: Any) -> GatewayConfig:
    """Merge file settings with command-line values; explicit values win."""
    values: dict[str, Any] = {}
    if config_file:
        values.update(load_config_from_file(config_file))
    values.update({key: value for key, value in overrides.items() if value is not None})
    return GatewayConfig(**values)


@click.command()
@click.option("--host", help="Bind host (default: 0.0.0.0)")
@click.option("--port", "-p", type=int, envvar="PORT", help="Bind port (default: 5000)")
@click.option(
    "--env",
    "environment",
    type=click.Choice(["development", "production"]),
    envvar=["HELIUM_ENV", "NODE_ENV"],
    help="Runtime environment (default: development)",
)
@click.option(
    "--tunnel-prefix",
    help="Path prefix routed to the tunnel subsystem (default: /bare/)",
)
@click.option(
    "--no-tunnel",
    is_flag=True,
    default=False,
    help="Disable the tunnel subsystem",
)
@click.option(
    "--admin-password",
    envvar="ADMIN_PASSWORD",
    help="Admin password (admin login needs this and --admin-2fa-secret)",
)
@click.option(
    "--admin-2fa-secret",
    envvar="ADMIN_2FA_SECRET",
    help="Admin second-factor token",
)
@click.option(
    "--openai-api-key",
    envvar="OPENAI_API_KEY",
    help="OpenAI API key (chat uses synthetic replies when unset)",
)
@click.option("--openai-model", help="Chat completion model (default: gpt-4)")
@click.option(
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False),
    help="YAML or TOML file with gateway settings",
)
@click.option(
    "--no-metrics",
    is_flag=True,
    default=False,
    help="Do not expose /metrics",
)
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"]),
    default="info",
    help="Log level (default: info)",
)
def main(
    host: str | None,
    port: int | None,
    environment: str | None,
    tunnel_prefix: str | None,
    no_tunnel: bool,
    admin_password: str | None,
    admin_2fa_secret: str | None,
    openai_api_key: str | None,
    openai_model: str | None,
    config_file: str | None,
    no_metrics: bool,
    log_level: str,
):
    console.print(BANNER, style="cyan")

    try:
        config = build_config(
            config_file,
            host=host,
            port=port,
            environment=environment,
            tunnel_prefix=tunnel_prefix,
            tunnel_enabled=False if no_tunnel else None,
            admin_password=admin_password,
            admin_2fa_secret=admin_2fa_secret,
            openai_api_key=openai_api_key,
            openai_model=openai_model,
            metrics_enabled=False if no_metrics else None,
        )
    except (ValueError, PydanticValidationError) as e:
        raise click.ClickException(str(e)) from e

    configure_logging(log_level, config.environment)

    console.print(f"Starting gateway on {config.bind} ({config.environment})...", style="yellow")
    if config.tunnel_enabled:
        console.print(f"Tunnel: enabled at {config.tunnel_prefix}", style="dim")
    else:
        console.print("Tunnel: disabled", style="dim")
    if config.openai_api_key:
        console.print(f"Chat: relaying to OpenAI ({config.openai_model})", style="green")
    else:
        console.print("Chat: synthetic replies (set OPENAI_API_KEY to enable)", style="dim")
    if config.admin_configured:
        console.print("Admin login: enabled", style="green")
    else:
        console.print(
            "Admin login: disabled (set ADMIN_PASSWORD and ADMIN_2FA_SECRET to enable)",
            style="dim",
        )
    if config.metrics_enabled:
        console.print("Metrics: /metrics", style="dim")

    asyncio.run(run_server(config))


async def run_server(config: GatewayConfig):
    """Run the gateway until interrupted."""
    gateway = Gateway(config, get_config())

    try:
        await gateway.start()
        console.print("Gateway started, press Ctrl+C to stop", style="green")

        await gateway.wait_closed()
    except KeyboardInterrupt:
        console.print("\nShutting down...", style="yellow")
    finally:
        await gateway.stop()


def cli() -> None:
    """Console script entry point: load ``.env`` before click reads the environment."""
    load_dotenv()
    main()


if __name__ == "__main__":
    cli()
