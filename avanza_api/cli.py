"""CLI entry point for the Avanza API client."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Any

import typer
from loguru import logger
from rich.console import Console

from avanza_api.client import AvanzaClient
from avanza_api.core.config import AvanzaConfig, load_config
from avanza_api.errors import AvanzaError
from avanza_api.models import Credentials

app = typer.Typer(
    name="avanza-api",
    help="Unofficial Avanza client - REST calls and real-time push data",
)

console = Console()


def setup_logging(log_dir: Path, verbose: bool = False) -> None:
    """Configure loguru logging.

    Args:
        log_dir: Directory for log files
        verbose: Enable verbose debug logging
    """
    # Remove default handler
    logger.remove()

    log_level = "DEBUG" if verbose else "INFO"
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan> - "
        "<level>{message}</level>",
        level=log_level,
    )

    log_dir.mkdir(parents=True, exist_ok=True)
    logger.add(
        log_dir / "avanza_{time}.log",
        rotation="1 day",
        retention="7 days",
        level="DEBUG",
    )


def resolve_credentials(config: AvanzaConfig) -> Credentials:
    """Build credentials from configuration, prompting for anything missing."""
    username = config.username or typer.prompt("Username")
    if config.password is not None:
        password = config.password.get_secret_value()
    else:
        password = typer.prompt("Password", hide_input=True)
    totp_secret = config.totp_secret.get_secret_value() if config.totp_secret else None
    return Credentials(username=username, password=password, totp_secret=totp_secret)


def build_client(config: AvanzaConfig) -> AvanzaClient:
    return AvanzaClient(config)


@app.command()
def stream(
    channel: str = typer.Argument(..., help="Push channel, e.g. quotes or orderdepths"),
    ids: list[str] = typer.Argument(..., help="Orderbook or account id(s)"),
    duration: float = typer.Option(
        0.0, "--duration", "-d", help="Seconds to stream before exiting (0 streams forever)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Authenticate and print pushed messages for a channel."""
    config = load_config()
    setup_logging(config.log_dir, verbose)
    credentials = resolve_credentials(config)

    try:
        asyncio.run(run_stream(config, credentials, channel, ids, duration))
    except KeyboardInterrupt:
        logger.info("Stream interrupted")
    except AvanzaError as exc:
        logger.error("Streaming failed: {}", exc)
        raise typer.Exit(code=1) from exc


async def run_stream(
    config: AvanzaConfig,
    credentials: Credentials,
    channel: str,
    ids: list[str],
    duration: float,
) -> None:
    """Stream push messages asynchronously."""
    async with build_client(config) as client:
        await client.authenticate(credentials)

        def _print(data: Any) -> None:
            console.print_json(data=data)

        target: str | list[str] = ids[0] if len(ids) == 1 else ids
        unsubscribe = client.subscribe(channel, target, _print)
        logger.info("Streaming /{}/{} - press Ctrl-C to stop", channel, ",".join(ids))
        try:
            if duration > 0:
                await asyncio.sleep(duration)
            else:
                await asyncio.Event().wait()
        finally:
            unsubscribe()


@app.command()
def call(
    path: str = typer.Argument(..., help="API path, e.g. /_api/account/positions"),
    method: str = typer.Option("GET", "--method", "-X", help="HTTP method"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Authenticate and print the JSON body of an API call."""
    config = load_config()
    setup_logging(config.log_dir, verbose)
    credentials = resolve_credentials(config)

    try:
        body = asyncio.run(run_call(config, credentials, method, path))
    except AvanzaError as exc:
        logger.error("Call failed: {}", exc)
        raise typer.Exit(code=1) from exc
    console.print_json(data=body)


async def run_call(
    config: AvanzaConfig, credentials: Credentials, method: str, path: str
) -> Any:
    async with build_client(config) as client:
        await client.authenticate(credentials)
        return await client.call(method, path)


if __name__ == "__main__":
    app()
