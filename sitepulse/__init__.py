# ==============================================================================
# SitePulse
# ==============================================================================
"""
Behavioral analytics pipeline for a marketing website.

- sitepulse.collector: client-side sessionization, batching and delivery
- sitepulse.server: ingestion, in-memory store and real-time metrics API
- sitepulse.app: command-line interface
"""
