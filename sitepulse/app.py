# ==============================================================================
# SitePulse CLI
# ==============================================================================
"""
Command-line interface for the SitePulse analytics pipeline.

Usage:
    sitepulse --help
    sitepulse serve
    sitepulse analytics
    sitepulse config show
    sitepulse outbox list
    sitepulse outbox replay
    sitepulse outbox clear -y
    sitepulse replay visit.jsonl
"""

# ==============================================================================
# App Configuration
# ==============================================================================
# Set consistent terminal width for help output formatting
import os

import typer

if "COLUMNS" not in os.environ:
    os.environ["COLUMNS"] = "115"

app = typer.Typer(
    name="sitepulse",
    help="SitePulse behavioral analytics pipeline CLI",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Serve command is imported from sitepulse.cli.server
from sitepulse.cli.server import serve

app.command("serve")(serve)

# Analytics command is imported from sitepulse.cli.analytics
from sitepulse.cli.analytics import show_analytics

app.command("analytics")(show_analytics)

config_app = typer.Typer(
    help="Configuration management",
    no_args_is_help=True,
)
app.add_typer(config_app, name="config")

# Register config commands from cli.config module
from sitepulse.cli.config import config_show

config_app.command("show")(config_show)

outbox_app = typer.Typer(
    help="Undelivered batch operations",
    no_args_is_help=True,
)
app.add_typer(outbox_app, name="outbox")

# Register outbox commands from cli.outbox module
from sitepulse.cli.outbox import outbox_clear, outbox_list, outbox_replay

outbox_app.command("list")(outbox_list)
outbox_app.command("replay")(outbox_replay)
outbox_app.command("clear")(outbox_clear)

# Replay command is imported from sitepulse.cli.replay
from sitepulse.cli.replay import replay

app.command("replay")(replay)


# ==============================================================================
# Entry Point
# ==============================================================================


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
