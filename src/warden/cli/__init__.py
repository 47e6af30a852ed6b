"""CLI commands for warden.

Provides command-line interface using Typer:
- warden agent: Run the presence heartbeat for this instance
- warden instances: List live instances
- warden lock-holder: Show who holds a worker lease
- warden check: Ping the store

Usage:
    warden --help
    warden agent --instance-id api-1
    warden instances --format json
    warden lock-holder trash_cleanup
"""

import typer

from warden.cli.agent_cmd import app as agent_app
from warden.cli.inspect_cmd import check, instances, lock_holder

# Main CLI application
app = typer.Typer(
    name="warden",
    help="warden: distributed coordination for multi-instance services",
    no_args_is_help=True,
)

# Add subcommands
app.add_typer(agent_app, name="agent")
app.command("instances")(instances)
app.command("lock-holder")(lock_holder)
app.command("check")(check)


@app.callback()
def callback() -> None:
    """warden: distributed coordination for multi-instance services."""
    pass


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
