"""Simulation engine: the periodic tick of the virtual door.

Every tick flips the contact, feeds the history aggregator, charges the
battery by one step and recomputes the coarse charge level. All reads and
writes go through the device proxy, so the endpoint's attributes are the
single copy of the sensor state.

Battery model:
    ``batPercentRemaining`` is in half-percent units (0-200). Each tick adds
    10; once another step would take the value past 200 it wraps back to 10.
    Starting from 150 the sequence is 160, 170, 180, 190, 10, 20, ...

    The charge level thresholds apply to the raw attribute value:

    ========  =====================
    Level     batPercentRemaining
    ========  =====================
    OK        >= 40
    WARNING   >= 20 and < 40
    CRITICAL  < 20
    ========  =====================
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING

from eve_door.drivers.clusters import BatChargeLevel, ClusterId
from eve_door.observability import LogContext, StructuredLogger, get_logger

if TYPE_CHECKING:
    from eve_door.drivers.types import DeviceProxy
    from eve_door.history.aggregator import HistoryAggregator

__all__ = [
    "BATTERY_STEP",
    "BATTERY_WRAP_LIMIT",
    "SensorState",
    "SimulationEngine",
    "charge_level_for",
    "next_battery_percent",
]

BATTERY_STEP = 10
BATTERY_WRAP_LIMIT = 200

# Charge level thresholds on the raw attribute value
OK_THRESHOLD = 40
WARNING_THRESHOLD = 20


def next_battery_percent(percent: int) -> int:
    """Battery value after one tick.

    Args:
        percent: Current ``batPercentRemaining``.

    Returns:
        ``percent + 10``, or 10 when ``percent + 20`` exceeds 200.
    """
    if percent + 2 * BATTERY_STEP > BATTERY_WRAP_LIMIT:
        return BATTERY_STEP
    return percent + BATTERY_STEP


def charge_level_for(percent: int) -> BatChargeLevel:
    """Coarse charge level for a ``batPercentRemaining`` value."""
    if percent >= OK_THRESHOLD:
        return BatChargeLevel.OK
    if percent >= WARNING_THRESHOLD:
        return BatChargeLevel.WARNING
    return BatChargeLevel.CRITICAL


@dataclass(frozen=True)
class SensorState:
    """Point-in-time view of the simulated sensor.

    Attributes:
        contact: True when closed, False when open.
        battery_percent: Raw ``batPercentRemaining`` (half-percent units).
        charge_level: Threshold level of ``battery_percent``.
    """

    contact: bool
    battery_percent: int
    charge_level: BatChargeLevel

    def to_dict(self) -> dict[str, object]:
        """JSON-friendly representation."""
        return {
            "contact": self.contact,
            "battery_percent": self.battery_percent,
            "charge_level": self.charge_level.name,
        }


class SimulationEngine:
    """Runs ticks against one device and one history aggregator.

    The engine holds optional handles: after :meth:`detach` (or when built
    without a device) a tick is a logged no-op. Ticks are serialized by a
    lock; one that arrives while another is running is dropped.

    Example:
        engine = SimulationEngine(door, history)
        await engine.tick()
        engine.state.contact  # False, the door opened
    """

    def __init__(
        self,
        device: DeviceProxy | None,
        history: HistoryAggregator | None,
        log: StructuredLogger | None = None,
    ) -> None:
        self.device = device
        self.history = history
        self._log = log or get_logger(__name__)
        self._lock = asyncio.Lock()
        self.ticks = 0
        self.dropped_ticks = 0

    @property
    def running(self) -> bool:
        """True while a tick is in progress."""
        return self._lock.locked()

    @property
    def state(self) -> SensorState | None:
        """Current sensor state read from the device, or None without one."""
        if self.device is None:
            return None
        percent = int(
            self.device.get_attribute(ClusterId.POWER_SOURCE, "batPercentRemaining")
        )
        return SensorState(
            contact=bool(
                self.device.get_attribute(ClusterId.BOOLEAN_STATE, "stateValue")
            ),
            battery_percent=percent,
            charge_level=BatChargeLevel(
                self.device.get_attribute(ClusterId.POWER_SOURCE, "batChargeLevel")
            ),
        )

    def detach(self) -> None:
        """Drop the device and history handles; later ticks do nothing."""
        self.device = None
        self.history = None

    async def tick(self) -> None:
        """Advance the simulation by one period.

        Failures, including a write or event the device rejects, are logged
        at ERROR and end the tick early. Attribute writes already made stay
        made; the history aggregate is only advanced as a whole.
        """
        device, history = self.device, self.history
        if device is None or history is None:
            self._log.debug("Tick skipped, no device")
            return
        if self._lock.locked():
            self.dropped_ticks += 1
            self._log.debug("Tick dropped, previous tick still running")
            return

        async with self._lock:
            self.ticks += 1
            with LogContext(tick=self.ticks):
                try:
                    await self._step(device, history)
                except Exception as e:
                    self._log.error("Tick failed", error=str(e))

    async def _step(self, device: DeviceProxy, history: HistoryAggregator) -> None:
        contact = not device.get_attribute(ClusterId.BOOLEAN_STATE, "stateValue")
        await _write(device, ClusterId.BOOLEAN_STATE, "stateValue", contact)
        if not await device.trigger_event(
            ClusterId.BOOLEAN_STATE, "stateChange", {"stateValue": contact}
        ):
            raise RuntimeError("Device rejected booleanState.stateChange event")
        history.record(contact)
        self._log.info(f"Set contact to {str(contact).lower()}")

        percent = next_battery_percent(
            int(device.get_attribute(ClusterId.POWER_SOURCE, "batPercentRemaining"))
        )
        await _write(device, ClusterId.POWER_SOURCE, "batPercentRemaining", percent)

        level = charge_level_for(percent)
        await _write(device, ClusterId.POWER_SOURCE, "batChargeLevel", level)
        self._log.debug("Battery updated", percent=percent, charge_level=level.name)


async def _write(
    device: DeviceProxy, cluster: ClusterId, name: str, value: object
) -> None:
    """Write one attribute, raising when the device does not store it."""
    if not await device.set_attribute(cluster, name, value):
        raise RuntimeError(f"Device rejected write of {cluster.behavior_name}.{name}")
