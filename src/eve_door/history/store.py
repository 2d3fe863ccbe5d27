"""ASDF-backed history store for the virtual door.

The store keeps the history in memory and writes complete snapshots to a
single ASDF file per device, ``<data_dir>/<slug>.history.asdf``. A store
opened on an existing file restores its counters and entries, so the
openings count survives a host restart.

Tree layout::

    meta:      {name, device, serial_number, written_at}
    counters:  {times_opened, last_event, reset_total}
    entries:   {time: int64[n], contact: uint8[n]}
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

import asdf
import numpy as np

from eve_door.drivers.clusters import ClusterId
from eve_door.history.types import HistoryEntry
from eve_door.observability import StructuredLogger, get_logger

if TYPE_CHECKING:
    from eve_door.drivers.types import DeviceProxy

__all__ = ["HistoryStore", "HISTORY_FILE_SUFFIX"]

HISTORY_FILE_SUFFIX = ".history.asdf"

# Slug length cap for safe filenames
MAX_NAME_SLUG_LENGTH = 40


class HistoryStore:
    """Durable, append-only history of one door.

    Example:
        store = HistoryStore("Eve door", Path("/data/eve-door"), debug=True)
        store.add_to_times_opened()
        store.set_last_event()
        store.add_entry(HistoryEntry(time=store.now(), contact=1))
        await store.close()  # writes eve_door.history.asdf
    """

    def __init__(
        self,
        name: str,
        data_dir: Path | str,
        *,
        debug: bool = False,
        log: StructuredLogger | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Open the store, restoring any previously written history.

        Args:
            name: Device name; determines the file name.
            data_dir: Directory for the ASDF file. Created if missing.
            debug: Log every entry in :meth:`log_history`.
            log: Logger; defaults to this module's logger.
            clock: Wall-clock source in Unix seconds (injectable for tests).

        Raises:
            OSError: If ``data_dir`` cannot be created.
        """
        self.name = name
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.debug = debug
        self._log = log or get_logger(__name__)
        self._clock = clock

        self._entries: list[HistoryEntry] = []
        self._times_opened = 0
        self._last_event: int | None = None
        self._reset_total: int | None = None
        self._device_key: str | None = None
        self._serial_number: str | None = None
        self._closed = False

        if self.path.exists():
            self._load()

        self._log.info(
            "History store opened",
            path=str(self.path),
            entries=len(self._entries),
            times_opened=self._times_opened,
        )

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def path(self) -> Path:
        """Location of the ASDF history file."""
        slug = self.name.lower().replace(" ", "_")[:MAX_NAME_SLUG_LENGTH]
        return self.data_dir / f"{slug}{HISTORY_FILE_SUFFIX}"

    @property
    def times_opened(self) -> int:
        """Openings counted since the last reset."""
        return self._times_opened

    @property
    def last_event(self) -> int | None:
        """Unix time of the last contact change, or None."""
        return self._last_event

    @property
    def reset_total_time(self) -> int | None:
        """Unix time of the last counter reset, or None."""
        return self._reset_total

    @property
    def entries(self) -> list[HistoryEntry]:
        """Stored entries in creation order (copy)."""
        return list(self._entries)

    @property
    def is_closed(self) -> bool:
        """True once :meth:`close` has been called."""
        return self._closed

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def now(self) -> int:
        """Current time in whole Unix seconds."""
        return int(self._clock())

    def add_entry(self, entry: HistoryEntry) -> None:
        """Append an entry.

        Raises:
            RuntimeError: If the store is closed.
        """
        self._check_open("add entry")
        self._entries.append(entry)

    def add_to_times_opened(self) -> None:
        """Increment the openings counter.

        Raises:
            RuntimeError: If the store is closed.
        """
        self._check_open("count opening")
        self._times_opened += 1

    def set_last_event(self) -> None:
        """Stamp the last event time with :meth:`now`.

        Raises:
            RuntimeError: If the store is closed.
        """
        self._check_open("set last event")
        self._last_event = self.now()

    def reset_total(self) -> None:
        """Reset the openings counter and remember when it happened."""
        self._check_open("reset total")
        self._times_opened = 0
        self._reset_total = self.now()
        self._log.info("History total reset", reset_total=self._reset_total)

    def _check_open(self, action: str) -> None:
        if self._closed:
            raise RuntimeError(f"Cannot {action}: history store is closed")

    # ------------------------------------------------------------------
    # Device binding and reporting
    # ------------------------------------------------------------------

    def auto_pilot(self, device: DeviceProxy) -> None:
        """Bind the store to the device whose history it records.

        The device's storage key and serial number are written into the
        file metadata so a history file can be matched to its device.
        """
        self._device_key = device.unique_storage_key
        try:
            self._serial_number = str(
                device.get_attribute(ClusterId.BASIC_INFORMATION, "serialNumber")
            )
        except KeyError:
            self._serial_number = None
        self._log.debug(
            "History auto pilot bound",
            device=self._device_key,
            serial_number=self._serial_number,
        )

    def log_history(self, force: bool = False) -> None:
        """Log a history summary, plus every entry when debugging or forced."""
        self._log.info(
            "History",
            name=self.name,
            entries=len(self._entries),
            times_opened=self._times_opened,
            last_event=self._last_event,
        )
        if not (self.debug or force):
            return
        for index, entry in enumerate(self._entries):
            self._log.info(
                "History entry",
                index=index,
                time=datetime.fromtimestamp(entry.time, tz=UTC).isoformat(),
                contact=entry.contact,
            )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _build_asdf_tree(self) -> dict[str, Any]:
        """Assemble the ASDF tree from one copy of the in-memory history.

        The tree owns its arrays, so later appends do not change it.
        """
        entries = list(self._entries)
        return {
            "meta": {
                "name": self.name,
                "device": self._device_key,
                "serial_number": self._serial_number,
                "written_at": datetime.now(UTC).isoformat(),
            },
            "counters": {
                "times_opened": self._times_opened,
                "last_event": self._last_event,
                "reset_total": self._reset_total,
            },
            "entries": {
                "time": np.array([e.time for e in entries], dtype=np.int64),
                "contact": np.array([e.contact for e in entries], dtype=np.uint8),
            },
        }

    def _write_tree(self, tree: dict[str, Any]) -> Path:
        af = asdf.AsdfFile(tree)
        af.write_to(self.path)
        self._log.debug("History written", path=str(self.path))
        return self.path

    def _load(self) -> None:
        """Restore counters and entries from an existing history file.

        An unreadable or inconsistent file is logged and ignored; it is
        overwritten by the next snapshot.
        """
        try:
            with asdf.open(self.path) as af:
                counters = af.tree["counters"]
                times = np.array(af.tree["entries"]["time"], dtype=np.int64)
                contacts = np.array(af.tree["entries"]["contact"], dtype=np.uint8)
                times_opened = int(counters["times_opened"])
                last_event = counters.get("last_event")
                reset_total = counters.get("reset_total")
            entries = [
                HistoryEntry(time=int(t), contact=int(c))
                for t, c in zip(times, contacts, strict=True)
            ]
        except Exception as e:
            self._log.warning(
                "Could not restore history file", path=str(self.path), error=str(e)
            )
            return

        self._times_opened = times_opened
        self._last_event = int(last_event) if last_event is not None else None
        self._reset_total = int(reset_total) if reset_total is not None else None
        self._entries = entries

    def snapshot(self) -> dict[str, Any]:
        """Copy the current history into a tree for :meth:`write_snapshot`.

        Cheap; call it on the thread that records entries.

        Raises:
            RuntimeError: If the store is closed.
        """
        self._check_open("snapshot")
        return self._build_asdf_tree()

    def write_snapshot(self, tree: dict[str, Any]) -> Path:
        """Write a tree from :meth:`snapshot` to the history file (blocking).

        Returns:
            Path of the written file.

        Raises:
            OSError: If the file cannot be written.
        """
        return self._write_tree(tree)

    def flush(self) -> Path:
        """Snapshot and write the current history (blocking).

        Returns:
            Path of the written file.

        Raises:
            RuntimeError: If the store is closed.
            OSError: If the file cannot be written.
        """
        return self.write_snapshot(self.snapshot())

    async def close(self) -> Path | None:
        """Write the final snapshot in a worker thread and close the store.

        Returns:
            Path of the written file, or None if already closed.

        Raises:
            OSError: If the final write fails (the store is closed anyway).
        """
        if self._closed:
            return None
        tree = self._build_asdf_tree()
        self._closed = True
        path = await asyncio.to_thread(self._write_tree, tree)
        self._log.info("History store closed", path=str(path))
        return path

    def __repr__(self) -> str:
        """Short representation with path and entry count."""
        return f"HistoryStore(path={str(self.path)!r}, entries={len(self._entries)})"
