"""History aggregator: derived counters and entry log for one session.

The aggregator is the system of record for the running session. Every tick
feeds it once through :meth:`HistoryAggregator.record`; it advances its
in-memory aggregate and forwards the same updates to the durable store on a
best-effort basis. Store failures are logged and never stop the aggregate.

It also exposes the aggregate to the device as the read-only ``eveHistory``
cluster and services non-blocking snapshot requests from command handlers.

Example:
    store = HistoryStore("Eve door", data_dir)
    history = HistoryAggregator(store)
    history.attach(door)

    history.record(contact=False)  # door opened
    history.aggregate.times_opened  # 1

    history.request_flush()  # returns immediately
    await history.close()  # awaits the flush, closes the store once
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from eve_door.drivers.clusters import ClusterId
from eve_door.history.types import (
    HistoryAggregate,
    HistoryBackend,
    HistoryEntry,
    contact_code,
)
from eve_door.observability import StructuredLogger, get_logger

if TYPE_CHECKING:
    from eve_door.drivers.types import DeviceProxy

__all__ = ["HistoryAggregator"]


class HistoryAggregator:
    """Append-only history log with derived counters.

    Attributes:
        flush_requests: Number of snapshot requests received.
    """

    def __init__(
        self,
        store: HistoryBackend,
        *,
        log: StructuredLogger | None = None,
    ) -> None:
        """Create an aggregator seeded from what the store already holds.

        Args:
            store: Durable backend receiving every update.
            log: Logger; defaults to this module's logger.
        """
        self._store = store
        self._log = log or get_logger(__name__)

        self._times_opened = store.times_opened
        self._last_event = store.last_event
        self._entries: list[HistoryEntry] = list(store.entries)

        self._pending: set[asyncio.Task[None]] = set()
        self._closed = False
        self.flush_requests = 0

    @property
    def store(self) -> HistoryBackend:
        """The durable store this aggregator writes through."""
        return self._store

    @property
    def closed(self) -> bool:
        """True once :meth:`close` has run."""
        return self._closed

    @property
    def aggregate(self) -> HistoryAggregate:
        """Snapshot of the current counters and entries."""
        return HistoryAggregate(
            times_opened=self._times_opened,
            last_event=self._last_event,
            entries=tuple(self._entries),
        )

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record(self, contact: bool) -> HistoryEntry:
        """Record one contact change.

        Counts an opening when ``contact`` is False, stamps the last event
        and appends an entry. The in-memory aggregate always advances; a
        failing store is logged at ERROR.

        Args:
            contact: New BooleanState value (True = closed).

        Returns:
            The appended entry.

        Raises:
            RuntimeError: If the aggregator is closed.
        """
        if self._closed:
            raise RuntimeError("Cannot record to a closed history aggregator")

        now = self._store.now()
        entry = HistoryEntry(time=now, contact=contact_code(contact))

        if not contact:
            self._times_opened += 1
        self._last_event = now
        self._entries.append(entry)

        try:
            if not contact:
                self._store.add_to_times_opened()
            self._store.set_last_event()
            self._store.add_entry(entry)
        except Exception as e:
            self._log.error(
                "History store write failed",
                error=str(e),
                time=entry.time,
                contact=entry.contact,
            )
        return entry

    def _on_reset_total(self, value: Any, _old: Any) -> None:
        self._times_opened = 0
        self._log.info("Times opened reset by controller", reset_total=value)
        try:
            self._store.reset_total()
        except Exception as e:
            self._log.error("History store reset failed", error=str(e))

    # ------------------------------------------------------------------
    # Device exposure
    # ------------------------------------------------------------------

    def cluster_attributes(self) -> dict[str, Any]:
        """Read-only values of the ``eveHistory`` cluster."""
        return {
            "timesOpened": self._times_opened,
            "lastEvent": self._last_event,
            "historyEntries": len(self._entries),
        }

    def attach(self, device: DeviceProxy) -> None:
        """Expose the aggregate on ``device`` and hand the device to the store.

        Adds the ``eveHistory`` cluster, computed on read, with a single
        writable ``resetTotal`` attribute. Writing it resets the openings
        counter as the Eve app does.
        """
        device.add_derived_cluster_server(
            ClusterId.EVE_HISTORY,
            self.cluster_attributes,
            writable={"resetTotal": 0},
        )
        device.subscribe_attribute(
            ClusterId.EVE_HISTORY, "resetTotal", self._on_reset_total
        )
        self._store.auto_pilot(device)

    # ------------------------------------------------------------------
    # Snapshots and teardown
    # ------------------------------------------------------------------

    def request_flush(self) -> asyncio.Task[None] | None:
        """Log the history and schedule a snapshot write without blocking.

        The history is copied on the event loop and only the file write
        runs in a worker thread. The task is tracked so
        :meth:`close` can await it before closing the store.

        Returns:
            The scheduled task, or None when closed.

        Raises:
            RuntimeError: If called outside a running event loop.
        """
        self.flush_requests += 1
        if self._closed:
            self._log.debug("Flush requested after close, ignored")
            return None

        self._store.log_history(False)
        task = asyncio.get_running_loop().create_task(self._flush())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _flush(self) -> None:
        try:
            tree = self._store.snapshot()
            await asyncio.to_thread(self._store.write_snapshot, tree)
        except Exception as e:
            self._log.error("History snapshot failed", error=str(e))

    async def drain(self) -> None:
        """Wait for every pending snapshot write to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending))

    async def close(self) -> None:
        """Await pending snapshots, then close the store exactly once.

        Close failures are logged, not raised. Later calls do nothing.
        """
        if self._closed:
            return
        self._closed = True
        await self.drain()
        try:
            await self._store.close()
        except Exception as e:
            self._log.error("Failed to close history store", error=str(e))
