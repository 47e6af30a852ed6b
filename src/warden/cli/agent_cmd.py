"""CLI command for running the presence heartbeat.

Usage:
    warden agent
    warden agent --instance-id api-1 --interval 30
    warden agent --retry --log-level debug
"""

from __future__ import annotations

import asyncio
import logging

import typer

from warden.cli.common import invalid_store_url, load_settings
from warden.config import FailurePolicy, Settings
from warden.context import CoordinationContext
from warden.errors import StoreUnavailableError
from warden.observability.logging import configure_logging

logger = logging.getLogger(__name__)

app = typer.Typer(help="Run the presence heartbeat for this instance")


async def _run_agent(settings: Settings) -> None:
    async with CoordinationContext.from_settings(settings) as ctx:
        await ctx.heartbeat().run()


@app.callback(invoke_without_command=True)
def agent(
    instance_id: str | None = typer.Option(
        None,
        "--instance-id",
        "-i",
        help="Instance ID to register (default: hostname plus random suffix)",
    ),
    interval: int | None = typer.Option(
        None,
        "--interval",
        help="Seconds between heartbeats",
    ),
    retry: bool = typer.Option(
        False,
        "--retry",
        help="Keep running when the store fails instead of exiting",
    ),
    log_level: str = typer.Option(
        "info",
        "--log-level",
        "-l",
        help="Log level: debug, info, warning, error",
    ),
    json_logs: bool = typer.Option(
        True,
        "--json-logs/--console-logs",
        help="Emit JSON or human-readable logs",
    ),
) -> None:
    """Register this instance and prune stale ones until interrupted.

    Exits with code 1 when the store fails, unless --retry is given.
    """
    overrides: dict[str, object] = {}
    if instance_id:
        overrides["instance_id"] = instance_id
    if interval:
        overrides["heartbeat_interval"] = interval
    if retry:
        overrides["loop_failure_policy"] = FailurePolicy.RETRY

    settings = load_settings(**overrides)
    configure_logging(json_format=json_logs, level=log_level)

    try:
        asyncio.run(_run_agent(settings))
    except StoreUnavailableError as e:
        typer.echo(f"Store unavailable: {e}", err=True)
        raise typer.Exit(code=1) from e
    except ValueError as e:
        raise invalid_store_url(e) from e
    except KeyboardInterrupt:
        logger.info("Presence heartbeat stopped")
