# ==============================================================================
# Client-Side Collector
# ==============================================================================
"""
Client-side half of the pipeline.

- EventCollector: turns page signals and explicit calls into events
- EventBuffer: batches events and delivers them off the caller's thread
- Outbox: durable storage for batches that failed delivery
- LocalSignalHost: in-process host for replays and demos
"""

from sitepulse.collector.buffer import EventBuffer
from sitepulse.collector.elements import ElementInfo, element_identifier
from sitepulse.collector.hosts import LocalSignalHost
from sitepulse.collector.outbox import Outbox, OutboxEntry, ReplayResult
from sitepulse.collector.tracker import EventCollector, compute_scroll_depth, create_collector

__all__ = [
    "ElementInfo",
    "EventBuffer",
    "EventCollector",
    "LocalSignalHost",
    "Outbox",
    "OutboxEntry",
    "ReplayResult",
    "compute_scroll_depth",
    "create_collector",
    "element_identifier",
]
