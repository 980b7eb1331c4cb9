# ==============================================================================
# Config Commands
# ==============================================================================
"""
Configuration commands for the SitePulse CLI.
"""

import json
from typing import Annotated

import typer

from sitepulse.cli.shared import C
from sitepulse.utils.config import get_settings


# ==============================================================================
# Commands
# ==============================================================================


def config_show(
    json_output: Annotated[
        bool, typer.Option("--json", "-j", help="Output configuration as JSON")
    ] = False,
) -> None:
    """Display current configuration (includes secrets in JSON mode)."""
    settings = get_settings()

    if json_output:
        config = {
            "server": {
                "host": settings.server.host,
                "port": settings.server.port,
                "cors_origins": settings.server.cors_origins,
            },
            "store": settings.store.model_dump(),
            "collector": settings.collector.model_dump(),
            "outbox": settings.outbox.model_dump(),
            "valkey": {
                "host": settings.valkey.host,
                "port": settings.valkey.port,
                "db": settings.valkey.db,
                "ssl_enabled": settings.valkey.ssl,
                "password": settings.valkey.password,
            },
            "debug": settings.debug,
            "log_level": settings.log_level,
        }
        print(json.dumps(config, indent=2))
        return

    store = settings.store
    collector = settings.collector
    retention = (
        f"{store.session_retention_hours:g} h idle"
        if store.session_retention_hours
        else "kept for process lifetime"
    )

    print()
    print(f"{C.BOLD}Configuration{C.RESET}")
    print()

    print(f"{C.CYAN}Server{C.RESET}")
    print(f"  URL:        {C.WHITE}{settings.server.base_url}{C.RESET}")
    print(f"  CORS:       {C.WHITE}{', '.join(settings.server.cors_origins)}{C.RESET}")
    print(f"  Debug:      {C.WHITE}{settings.debug}{C.RESET}")
    print(f"  Log level:  {C.WHITE}{settings.log_level}{C.RESET}")
    print()

    print(f"{C.CYAN}Store{C.RESET}")
    print(f"  Max events: {C.WHITE}{store.max_events:,}{C.RESET}")
    print(f"  Retention:  {C.WHITE}{store.retention_hours:g} h{C.RESET}")
    print(f"  Sessions:   {C.WHITE}{retention}{C.RESET}")
    print(f"  Active:     {C.WHITE}last {store.activity_window_minutes} min{C.RESET}")
    print()

    print(f"{C.CYAN}Collector{C.RESET}")
    print(f"  Endpoint:   {C.WHITE}{collector.endpoint}{C.RESET}")
    print(
        f"  Batching:   {C.WHITE}{collector.batch_size} events / "
        f"{collector.flush_interval_seconds:g} s{C.RESET}"
    )
    print(f"  Sampling:   {C.WHITE}{collector.sampling_rate:.0%}{C.RESET}")
    print(f"  Device id:  {C.WHITE}{'enabled' if collector.device_id_enabled else 'disabled'}{C.RESET}")
    print(f"  Retry:      {C.WHITE}{'enabled' if collector.retry_enabled else 'disabled'}{C.RESET}")
    print()

    print(f"{C.CYAN}Outbox{C.RESET}")
    print(f"  Valkey:     {C.WHITE}{settings.valkey.host}:{settings.valkey.port}/{settings.valkey.db}{C.RESET}")
    print(f"  Capacity:   {C.WHITE}{settings.outbox.max_batches} batches{C.RESET}")
    print()
