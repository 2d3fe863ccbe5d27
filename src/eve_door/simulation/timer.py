"""Owned, cancellable recurring timer for the simulation tick.

IntervalTimer runs one asyncio task that sleeps for a period and then
awaits the callback, forever, until cancelled. Because the callback is
awaited before the next sleep begins, invocations are strictly serialized;
a slow callback delays the next one rather than overlapping it.

Cancellation is synchronous: once :meth:`IntervalTimer.cancel` returns no
new invocation will start, however far the clock advances. A callback that
is already running is allowed to finish and can be awaited with
:meth:`IntervalTimer.wait_closed`.

Example:
    timer = IntervalTimer(60.1, engine.tick, name="eve-door-tick")
    timer.start()
    ...
    timer.cancel()
    await timer.wait_closed()
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

from eve_door.observability import StructuredLogger, get_logger

__all__ = ["IntervalTimer", "SleepFunc"]

#: Coroutine function used to wait for one period (``asyncio.sleep`` by default).
SleepFunc = Callable[[float], Awaitable[None]]


class IntervalTimer:
    """Recurring timer with a single owner and synchronous cancellation."""

    def __init__(
        self,
        period_s: float,
        callback: Callable[[], Awaitable[None]],
        *,
        sleep: SleepFunc = asyncio.sleep,
        name: str = "interval-timer",
        log: StructuredLogger | None = None,
    ) -> None:
        """Create an unarmed timer.

        Args:
            period_s: Seconds between the end of one invocation and the
                start of the next. Must be positive.
            callback: Coroutine function invoked every period.
            sleep: Coroutine function awaited for each period; tests inject
                a manual clock here.
            name: Task name, for debugging.
            log: Logger; defaults to this module's logger.

        Raises:
            ValueError: If ``period_s`` is not positive.
        """
        if period_s <= 0:
            raise ValueError(f"Timer period must be positive, got {period_s}")
        self.period_s = period_s
        self._callback = callback
        self._sleep = sleep
        self._name = name
        self._log = log or get_logger(__name__)

        self._task: asyncio.Task[None] | None = None
        self._cancelled = False
        self._in_callback = False
        self.fired = 0

    @property
    def armed(self) -> bool:
        """True between :meth:`start` and :meth:`cancel`."""
        return self._task is not None and not self._cancelled

    def start(self) -> None:
        """Arm the timer on the running event loop.

        Raises:
            RuntimeError: If already started, or called without a running loop.
        """
        if self._task is not None:
            raise RuntimeError("Timer already started")
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=self._name
        )

    def cancel(self) -> None:
        """Stop the timer. Idempotent, and safe before :meth:`start`.

        The task is cancelled only while sleeping; an in-flight callback
        completes and the loop then exits on the cancelled flag.
        """
        if self._cancelled:
            return
        self._cancelled = True
        if self._task is not None and not self._in_callback:
            self._task.cancel()

    async def wait_closed(self) -> None:
        """Wait until the timer task (and any in-flight callback) has ended.

        The timer task's own cancellation is absorbed; cancelling the
        caller still raises CancelledError in the caller.
        """
        if self._task is None:
            return
        await asyncio.wait({self._task})

    async def _run(self) -> None:
        while not self._cancelled:
            await self._sleep(self.period_s)
            if self._cancelled:
                break
            self._in_callback = True
            try:
                self.fired += 1
                await self._callback()
            except Exception:
                self._log.exception("Timer callback failed", timer=self._name)
            finally:
                self._in_callback = False
