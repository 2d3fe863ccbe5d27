"""Test helpers for eve-door.

- ManualClock: virtual time for the tick timer
- RecordingStore: in-memory HistoryBackend that records calls and can fail

Example:
    from tests.helpers import ManualClock

    clock = ManualClock()
    timer = IntervalTimer(60.1, tick, sleep=clock.sleep)
    timer.start()
    await clock.advance(60.1 * 3)  # three ticks
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

from eve_door.history.types import HistoryEntry

# Event loop iterations allowed for woken tasks to run to their next await
SETTLE_ITERATIONS = 20


async def settle() -> None:
    """Let every ready task run until it blocks again."""
    for _ in range(SETTLE_ITERATIONS):
        await asyncio.sleep(0)


class ManualClock:
    """Virtual clock driving code that sleeps through an injected function.

    ``sleep`` parks the caller on a future with a deadline. ``advance``
    moves time forward, waking each due sleeper in deadline order and
    letting it run before the next one is considered.
    """

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self._waiters: list[tuple[float, int, asyncio.Future[None]]] = []
        self._seq = 0
        self.sleep_calls = 0

    @property
    def sleepers(self) -> int:
        """Number of callers currently parked in :meth:`sleep`."""
        return sum(1 for _, _, fut in self._waiters if not fut.done())

    async def sleep(self, seconds: float) -> None:
        """Park until the clock has advanced by ``seconds``."""
        self.sleep_calls += 1
        self._seq += 1
        fut: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiters.append((self.now + seconds, self._seq, fut))
        await fut

    async def advance(self, seconds: float) -> None:
        """Move time forward by ``seconds``, running every due sleeper."""
        target = self.now + seconds
        await settle()
        while True:
            self._waiters = [w for w in self._waiters if not w[2].done()]
            due = [w for w in self._waiters if w[0] <= target + 1e-9]
            if not due:
                break
            waiter = min(due, key=lambda w: (w[0], w[1]))
            self._waiters.remove(waiter)
            self.now = max(self.now, waiter[0])
            waiter[2].set_result(None)
            await settle()
        self.now = target


class RecordingStore:
    """HistoryBackend double keeping everything in memory.

    Attributes:
        fail_writes: Make add_entry/add_to_times_opened/set_last_event raise.
        fail_close: Make close raise OSError.
        close_calls: Number of close() calls.
        flush_calls: Number of snapshot writes.
        written: Entries of each written snapshot.
        log_history_calls: ``force`` argument of each log_history() call.
    """

    def __init__(
        self,
        name: str = "Eve door",
        data_dir: Path | str | None = None,
        *,
        debug: bool = False,
        log: Any = None,
        start_time: int = 1_700_000_000,
    ) -> None:
        self.name = name
        self.data_dir = data_dir
        self.debug = debug
        self.time = start_time
        self.times_opened = 0
        self.last_event: int | None = None
        self.entries: list[HistoryEntry] = []
        self.device: Any = None
        self.reset_calls = 0

        self.fail_writes = False
        self.fail_close = False
        self.close_calls = 0
        self.flush_calls = 0
        self.written: list[list[HistoryEntry]] = []
        self.log_history_calls: list[bool] = []

    def now(self) -> int:
        return self.time

    def _check(self) -> None:
        if self.fail_writes:
            raise OSError("disk full")

    def add_entry(self, entry: HistoryEntry) -> None:
        self._check()
        self.entries.append(entry)

    def add_to_times_opened(self) -> None:
        self._check()
        self.times_opened += 1

    def set_last_event(self) -> None:
        self._check()
        self.last_event = self.time

    def reset_total(self) -> None:
        self.reset_calls += 1
        self.times_opened = 0

    def log_history(self, force: bool = False) -> None:
        self.log_history_calls.append(force)

    def auto_pilot(self, device: Any) -> None:
        self.device = device

    def snapshot(self) -> list[HistoryEntry]:
        return list(self.entries)

    def write_snapshot(self, snapshot: list[HistoryEntry]) -> None:
        self.flush_calls += 1
        self.written.append(snapshot)

    def flush(self) -> None:
        self.write_snapshot(self.snapshot())

    async def close(self) -> None:
        self.close_calls += 1
        if self.fail_close:
            raise OSError("close failed")


def store_factory(created: list[RecordingStore]):
    """History factory for EveDoorPlatform appending each store to ``created``."""

    def factory(name: str, data_dir: Path, **kwargs: Any) -> RecordingStore:
        store = RecordingStore(name, data_dir, debug=kwargs.get("debug", False))
        created.append(store)
        return store

    return factory
