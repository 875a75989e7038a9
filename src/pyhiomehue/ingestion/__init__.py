"""Ingestion layer.

This package contains adapters that receive messages from the Hiome bus
(current and legacy topic schemes) and emit typed events.
"""

__all__: list[str] = []
