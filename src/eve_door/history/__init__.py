"""History module: durable store and per-session aggregator.

Example:
    from pathlib import Path

    from eve_door.history import HistoryAggregator, HistoryStore

    store = HistoryStore("Eve door", Path("/data/eve-door"))
    history = HistoryAggregator(store)
    history.record(contact=False)
    await history.close()
"""

from eve_door.history.types import (
    CONTACT_CLOSED,
    CONTACT_OPEN,
    HistoryAggregate,
    HistoryBackend,
    HistoryEntry,
    contact_code,
)
from eve_door.history.aggregator import HistoryAggregator  # noqa: I001
from eve_door.history.store import HistoryStore

__all__ = [
    "CONTACT_CLOSED",
    "CONTACT_OPEN",
    "HistoryAggregate",
    "HistoryAggregator",
    "HistoryBackend",
    "HistoryEntry",
    "HistoryStore",
    "contact_code",
]
