"""History type definitions and the store protocol.

Types defined here:
- HistoryEntry: one timestamped contact observation
- HistoryAggregate: read-only snapshot of the aggregated history
- HistoryBackend: Protocol for durable history stores
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from eve_door.drivers.types import DeviceProxy

# Contact codes of the Eve history record format (inverse of stateValue)
CONTACT_CLOSED = 0
CONTACT_OPEN = 1


def contact_code(contact: bool) -> int:
    """Encode a BooleanState ``stateValue`` for a history entry.

    Example:
        >>> contact_code(True)   # closed
        0
        >>> contact_code(False)  # open
        1
    """
    return CONTACT_CLOSED if contact else CONTACT_OPEN


@dataclass(frozen=True)
class HistoryEntry:
    """A single history observation.

    Attributes:
        time: Unix time in whole seconds.
        contact: 0 when the door closed, 1 when it opened.
    """

    time: int
    contact: int

    @property
    def is_open(self) -> bool:
        """Whether the entry records an opening."""
        return self.contact == CONTACT_OPEN


@dataclass(frozen=True)
class HistoryAggregate:
    """Snapshot of the derived history counters and entry log.

    Attributes:
        times_opened: Number of openings counted since the last reset.
        last_event: Unix time of the most recent contact change, or None.
        entries: All entries in creation order.
    """

    times_opened: int
    last_event: int | None
    entries: tuple[HistoryEntry, ...]

    @property
    def entry_count(self) -> int:
        """Number of entries."""
        return len(self.entries)

    def to_dict(self) -> dict[str, object]:
        """JSON-ready representation used by the tools and the CLI."""
        return {
            "times_opened": self.times_opened,
            "last_event": self.last_event,
            "entry_count": self.entry_count,
            "entries": [
                {"time": entry.time, "contact": entry.contact}
                for entry in self.entries
            ],
        }


class HistoryBackend(Protocol):  # pragma: no cover
    """Protocol for the durable history store.

    Business context: The aggregator is the in-session system of record;
    the backend provides best-effort durability so counters survive a
    host restart. A failing backend must never stop the simulation.
    """

    @property
    def times_opened(self) -> int:
        """Openings counted by the store."""
        ...

    @property
    def last_event(self) -> int | None:
        """Unix time of the last contact change, or None."""
        ...

    @property
    def entries(self) -> list[HistoryEntry]:
        """Stored entries in creation order."""
        ...

    def now(self) -> int:
        """Current store time in whole Unix seconds."""
        ...

    def add_entry(self, entry: HistoryEntry) -> None:
        """Append an entry.

        Raises:
            RuntimeError: If the store is closed.
        """
        ...

    def add_to_times_opened(self) -> None:
        """Increment the openings counter."""
        ...

    def set_last_event(self) -> None:
        """Stamp ``last_event`` with :meth:`now`."""
        ...

    def reset_total(self) -> None:
        """Reset the openings counter."""
        ...

    def log_history(self, force: bool = False) -> None:
        """Log the stored history (every entry when forced or debugging)."""
        ...

    def auto_pilot(self, device: DeviceProxy) -> None:
        """Bind the store to the device whose history it records."""
        ...

    def snapshot(self) -> Any:
        """Copy the current history for a later write (non-blocking)."""
        ...

    def write_snapshot(self, snapshot: Any) -> Any:
        """Write a copy from :meth:`snapshot` to durable storage (blocking)."""
        ...

    def flush(self) -> Any:
        """Snapshot and write the history (blocking)."""
        ...

    async def close(self) -> None:
        """Write the final snapshot and close the store."""
        ...
