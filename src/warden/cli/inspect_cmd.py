"""CLI commands for inspecting coordination state.

Usage:
    warden instances
    warden instances --max-lifetime 120 --format json
    warden lock-holder trash_cleanup
    warden check
"""

from __future__ import annotations

import asyncio
import json

import typer
from rich.console import Console
from rich.table import Table

from warden.cli.common import invalid_store_url, load_settings
from warden.config import Settings
from warden.context import CoordinationContext
from warden.distributed.presence import PresenceRecord
from warden.errors import StoreUnavailableError


async def _live_instances(settings: Settings, max_lifetime: int) -> list[PresenceRecord]:
    async with CoordinationContext.from_settings(settings) as ctx:
        return await ctx.presence.live_instances(max_lifetime)


async def _lock_holder(settings: Settings, name: str) -> str | None:
    async with CoordinationContext.from_settings(settings) as ctx:
        return await ctx.lease.current_holder(name)


async def _ping(settings: Settings) -> bool:
    async with CoordinationContext.from_settings(settings) as ctx:
        return await ctx.store.ping()


def instances(
    max_lifetime: int | None = typer.Option(
        None,
        "--max-lifetime",
        "-m",
        help="Seconds since last heartbeat for an instance to count as live",
    ),
    output_format: str = typer.Option(
        "text",
        "--format",
        "-f",
        help="Output format: text, json",
    ),
) -> None:
    """List live instances and their last heartbeat."""
    settings = load_settings()
    lifetime = max_lifetime or settings.presence_max_lifetime
    console = Console()

    try:
        records = asyncio.run(_live_instances(settings, lifetime))
    except StoreUnavailableError as e:
        console.print(f"[red]Store unavailable:[/red] {e}")
        raise typer.Exit(code=1) from e
    except ValueError as e:
        raise invalid_store_url(e) from e

    if output_format == "json":
        payload = [
            {"instance_id": r.instance_id, "last_seen": r.last_seen.isoformat()} for r in records
        ]
        typer.echo(json.dumps(payload, indent=2))
        return

    if not records:
        console.print("[yellow]No live instances[/yellow]")
        return

    table = Table(title="Live instances")
    table.add_column("Instance")
    table.add_column("Last heartbeat (UTC)")
    for record in records:
        table.add_row(record.instance_id, record.last_seen.strftime("%Y-%m-%d %H:%M:%S"))
    console.print(table)


def lock_holder(
    name: str = typer.Argument(..., help="Worker lease name, e.g. trash_cleanup"),
) -> None:
    """Print the instance holding a worker lease."""
    settings = load_settings()

    try:
        holder = asyncio.run(_lock_holder(settings, name))
    except StoreUnavailableError as e:
        typer.echo(f"Store unavailable: {e}", err=True)
        raise typer.Exit(code=1) from e
    except ValueError as e:
        raise invalid_store_url(e) from e

    if holder is None:
        typer.echo(f"Lease '{name}' is free")
        raise typer.Exit(code=3)
    typer.echo(holder)


def check() -> None:
    """Check that the store is reachable."""
    settings = load_settings()

    try:
        reachable = asyncio.run(_ping(settings))
    except ValueError as e:
        raise invalid_store_url(e) from e

    if reachable:
        typer.echo(f"{settings.store_type} OK")
        return

    typer.echo(f"{settings.store_type} unreachable", err=True)
    raise typer.Exit(code=1)
