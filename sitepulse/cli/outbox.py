# ==============================================================================
# Outbox Commands
# ==============================================================================
"""
Commands for inspecting and resending batches that failed delivery.

The outbox lives in Valkey, so these commands see batches left behind by any
collector that shares the same Valkey instance and key prefix.
"""

import json
from datetime import datetime, timezone
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from sitepulse.cli.shared import C, I, get_outbox_cache, get_transport
from sitepulse.collector.outbox import Outbox
from sitepulse.utils.config import get_settings


def _open_outbox() -> Outbox:
    settings = get_settings()
    return Outbox(
        get_outbox_cache(settings),
        key_prefix=settings.outbox.key_prefix,
        max_batches=settings.outbox.max_batches,
    )


def _stored_at(key: str) -> str:
    millis = key.rsplit(":", 1)[-1].split("-", 1)[0]
    try:
        return datetime.fromtimestamp(int(millis) / 1000, tz=timezone.utc).strftime(
            "%Y-%m-%d %H:%M:%S"
        )
    except ValueError:
        return "?"


# ==============================================================================
# Commands
# ==============================================================================


def outbox_list(
    json_output: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """List stored batches, oldest first."""
    entries = _open_outbox().entries()

    if json_output:
        print(
            json.dumps(
                [
                    {
                        "key": e.key,
                        "session_id": e.session_id,
                        "events": e.event_count,
                        "stored_at": _stored_at(e.key),
                    }
                    for e in entries
                ],
                indent=2,
            )
        )
        return

    if not entries:
        print(f"\n{C.BRIGHT_GREEN}{I.CHECK} Outbox is empty{C.RESET}\n")
        return

    console = Console()
    table = Table(title="Undelivered Batches", show_header=True, header_style="bold")
    table.add_column("Stored (UTC)")
    table.add_column("Session")
    table.add_column("Events", justify="right")

    for entry in entries:
        table.add_row(_stored_at(entry.key), entry.session_id, f"{entry.event_count:,}")

    print()
    console.print(table)
    total = sum(e.event_count for e in entries)
    print(f"  {C.BOLD}Total:{C.RESET} {len(entries)} batches, {total:,} events")
    print()


def outbox_replay() -> None:
    """Resend stored batches to the configured endpoint.

    Delivered batches are removed; failed ones stay for a later replay.
    """
    settings = get_settings()
    outbox = _open_outbox()
    transport = get_transport(settings)
    try:
        result = outbox.replay(transport)
    finally:
        transport.close()

    if result.failed:
        print(
            f"{C.BRIGHT_YELLOW}{I.WARN} Replayed {result.sent} batches, "
            f"{result.failed} still undelivered{C.RESET}"
        )
        raise typer.Exit(1)
    print(f"{C.BRIGHT_GREEN}{I.CHECK} Replayed {result.sent} batches{C.RESET}")


def outbox_clear(
    confirm: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt")] = False,
) -> None:
    """Delete every stored batch."""
    if not confirm:
        typer.confirm("Discard all undelivered batches?", abort=True)
    removed = _open_outbox().clear()
    print(f"{C.BRIGHT_GREEN}{I.CHECK} Removed {removed} batches{C.RESET}")
