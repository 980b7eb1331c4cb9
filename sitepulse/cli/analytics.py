# ==============================================================================
# Analytics Command
# ==============================================================================
"""
Analytics command for the SitePulse CLI.

Fetches the live metrics snapshot from a running server and renders it as a
dashboard-style box.
"""

import json
from typing import Annotated, Optional

import requests
import typer

from sitepulse.cli.shared import (
    BOX_WIDTH,
    C,
    I,
    _box_bottom,
    _box_header,
    _box_line,
    _empty_line,
    _section_header,
)
from sitepulse.utils.config import get_settings


def _format_duration(ms: float) -> str:
    seconds = int(ms // 1000)
    minutes, seconds = divmod(seconds, 60)
    return f"{minutes}m {seconds:02d}s"


def _bar(count: int, peak: int, width: int = 30) -> str:
    if peak <= 0:
        return ""
    return "█" * max(1 if count else 0, round(count / peak * width))


# ==============================================================================
# Commands
# ==============================================================================


def show_analytics(
    json_output: Annotated[
        bool, typer.Option("--json", "-j", help="Output as JSON for scripting")
    ] = False,
    url: Annotated[
        Optional[str], typer.Option("--url", "-u", help="Server base URL (default from settings)")
    ] = None,
) -> None:
    """Show real-time visitor metrics.

    Displays visitors, engagement, top pages and buttons, device mix and the
    last 24 hours of traffic, as computed by the running server.

    Examples:
        sitepulse analytics          # Formatted dashboard
        sitepulse analytics --json   # JSON output for scripting
    """
    settings = get_settings()
    base_url = url or settings.server.base_url

    try:
        response = requests.get(f"{base_url}/analytics/metrics", timeout=10)
        response.raise_for_status()
        metrics = response.json()
    except requests.exceptions.RequestException as e:
        if json_output:
            print(json.dumps({"error": f"Metrics unavailable: {e}"}))
        else:
            print(f"\n{C.BRIGHT_RED}{I.CROSS} Metrics unavailable from {base_url}: {e}{C.RESET}\n")
        raise typer.Exit(1)

    if json_output:
        print(json.dumps(metrics, indent=2))
        return

    W = BOX_WIDTH

    print()
    print(_box_header("SITEPULSE ANALYTICS", W))
    print(_empty_line(W))

    rows = [
        ("Total Visitors", f"{metrics['totalVisitors']:,}"),
        ("Active Visitors (30m)", f"{metrics['activeVisitors']:,}"),
        ("Page Views", f"{metrics['totalPageViews']:,}"),
        ("Avg Session Duration", _format_duration(metrics["avgSessionDuration"])),
        ("Avg Clicks / Session", f"{metrics['avgClicksPerSession']:.1f}"),
        ("Conversion Rate", f"{metrics['conversionRate'] * 100:.1f}%"),
    ]
    for label, value in rows:
        print(_box_line(f"  {label:<30}{C.WHITE}{value:>20}{C.RESET}", W))
    print(_empty_line(W))

    print(_section_header("Top Pages", I.PAGE, W))
    if not metrics["topPages"]:
        print(_box_line(f"  {C.DIM}No page views yet{C.RESET}", W))
    for entry in metrics["topPages"]:
        print(_box_line(f"  {entry['page'][:40]:<40}{entry['views']:>10,}", W))

    print(_section_header("Top Buttons", I.BULLET, W))
    if not metrics["topButtons"]:
        print(_box_line(f"  {C.DIM}No button clicks yet{C.RESET}", W))
    for entry in metrics["topButtons"]:
        print(_box_line(f"  {entry['name'][:40]:<40}{entry['clicks']:>10,}", W))

    devices = metrics["deviceBreakdown"]
    print(_section_header("Devices", I.CIRCLE, W))
    row = f"  Mobile {devices['mobile']:>6,}    Tablet {devices['tablet']:>6,}    Desktop {devices['desktop']:>6,}"
    print(_box_line(row, W))

    print(_section_header("Last 24 Hours", I.CLOCK, W))
    hourly = metrics["hourlyData"]
    peak = max((bucket["events"] for bucket in hourly), default=0)
    for bucket in hourly:
        bar = _bar(bucket["events"], peak)
        print(_box_line(f"  {bucket['hour']}  {C.BRIGHT_CYAN}{bar:<30}{C.RESET} {bucket['events']:>8,}", W))

    print(_empty_line(W))
    print(_box_line(f"  {C.DIM}Updated {metrics['lastUpdated']}{C.RESET}", W))
    print(_box_bottom(W))
    print()
