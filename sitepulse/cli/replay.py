# ==============================================================================
# Replay Command
# ==============================================================================
"""
Replays a recorded visit (JSON lines of signals and track calls) through a
collector and buffer into the configured ingestion endpoint.

Useful for generating demo traffic against a local server.
"""

from pathlib import Path
from typing import Annotated

import typer

from sitepulse.base import SIGNAL_PAGEHIDE
from sitepulse.cli.server import configure_logging
from sitepulse.cli.shared import C, I, get_outbox_cache, get_transport
from sitepulse.collector.hosts import LocalSignalHost
from sitepulse.collector.replay import ReplayError, replay_lines
from sitepulse.collector.tracker import create_collector
from sitepulse.infrastructure.cache import MemoryCache
from sitepulse.utils.config import get_settings

DEFAULT_USER_AGENT = "Mozilla/5.0 (X11; Linux x86_64) SitePulseReplay/1.0"


def replay(
    file: Annotated[Path, typer.Argument(help="JSON-lines recording", exists=True, dir_okay=False)],
    user_agent: Annotated[
        str, typer.Option("--user-agent", help="User agent reported by the replayed visit")
    ] = DEFAULT_USER_AGENT,
    referrer: Annotated[str, typer.Option("--referrer", help="Referrer of the visit")] = "",
    url: Annotated[str, typer.Option("--url", help="Landing page URL")] = "/",
    durable: Annotated[
        bool,
        typer.Option("--durable/--no-durable", help="Keep device id and outbox in Valkey"),
    ] = False,
) -> None:
    """Replay a recorded visit into the analytics server.

    Each replay is a fresh session. Undelivered batches go to the outbox
    (Valkey with --durable, otherwise kept in memory and lost on exit).

    Examples:
        sitepulse replay visit.jsonl
        sitepulse replay visit.jsonl --user-agent "iPhone" --durable
    """
    settings = get_settings()
    configure_logging(settings.log_level)

    transport = get_transport(settings)
    persistent = get_outbox_cache(settings) if durable else MemoryCache()
    collector = create_collector(transport, MemoryCache(), persistent, settings=settings)
    host = LocalSignalHost(user_agent=user_agent, referrer=referrer, url=url)
    collector.install(host)
    collector.buffer.start()

    try:
        with file.open() as f:
            stats = replay_lines(collector, host, f)
        host.wait_idle()
    except ReplayError as e:
        print(f"{C.BRIGHT_RED}{I.CROSS} {e}{C.RESET}")
        collector.close()
        transport.close()
        raise typer.Exit(1)

    host.dispatch(SIGNAL_PAGEHIDE)
    transport.close()

    print(
        f"{C.BRIGHT_GREEN}{I.CHECK} Replayed {stats.signals} signals and {stats.calls} calls "
        f"for session {collector.session_id}{C.RESET}"
    )
