# ==============================================================================
# CLI Commands Module
# ==============================================================================
"""
CLI commands for the SitePulse analytics pipeline.

Commands are organized into separate modules for maintainability:
- shared.py: Common utilities, constants, and helpers
- analytics.py: Live metrics dashboard
- config.py: Configuration display
- outbox.py: Undelivered batch management
- server.py: API server
- replay.py: Recorded visit replay
"""

from sitepulse.cli.shared import (
    # Constants
    BOX_WIDTH,
    # Classes
    Box,
    Colors,
    Icons,
    # Aliases
    B,
    C,
    I,
    # Factories
    get_outbox_cache,
    get_transport,
)

__all__ = [
    "BOX_WIDTH",
    "B",
    "Box",
    "C",
    "Colors",
    "I",
    "Icons",
    "get_outbox_cache",
    "get_transport",
]
