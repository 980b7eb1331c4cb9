# ==============================================================================
# Serve Command
# ==============================================================================
"""
Runs the analytics API in the foreground with uvicorn.
"""

import logging
from typing import Annotated, Optional

import typer

from sitepulse.cli.shared import C, I
from sitepulse.utils.config import get_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str) -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


def serve(
    host: Annotated[Optional[str], typer.Option("--host", "-h", help="Bind address")] = None,
    port: Annotated[Optional[int], typer.Option("--port", "-p", help="Bind port")] = None,
    reload: Annotated[bool, typer.Option("--reload", help="Restart on code changes")] = False,
) -> None:
    """Start the analytics API server.

    State is held in memory and lost when the server stops.

    Examples:
        sitepulse serve
        sitepulse serve --port 9000
    """
    import uvicorn

    settings = get_settings()
    configure_logging(settings.log_level)

    bind_host = host or settings.server.host
    bind_port = port or settings.server.port
    print(f"{C.BRIGHT_GREEN}{I.CHECK} SitePulse API on http://{bind_host}:{bind_port}{C.RESET}")

    uvicorn.run(
        "sitepulse.server.main:create_app",
        factory=True,
        host=bind_host,
        port=bind_port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )
