"""Lifecycle controller of the Eve Door plugin.

EveDoorPlatform wires the virtual door, its history and the simulation
timer together and walks them through the host's plugin lifecycle::

    UNINITIALIZED --start--> STARTED --configure--> CONFIGURED
          |                     |                       |
          |                     +--------shutdown-------+
          |                                 |
       (no-op)                      SHUTTING_DOWN --> TERMINATED

The host consumes the controller through the :class:`PlatformLifecycle`
protocol and hands it a :class:`~eve_door.host.Host` by injection.

Example:
    host = LocalHost(HostConfig(data_dir=Path("/tmp/eve")))
    platform = initialize_plugin(host, PlatformConfig(debug=True))
    await platform.start("boot")
    await platform.configure()
    ...
    await platform.shutdown("stop")
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any, Protocol

from eve_door.config import PlatformConfig
from eve_door.drivers.clusters import BatChargeLevel, DeviceType
from eve_door.drivers.endpoint import VirtualEndpoint
from eve_door.history.aggregator import HistoryAggregator
from eve_door.history.store import HistoryStore
from eve_door.history.types import HistoryBackend
from eve_door.host import Host, IncompatibleHostError, version_satisfies
from eve_door.observability import StructuredLogger, get_logger
from eve_door.simulation.engine import SimulationEngine
from eve_door.simulation.timer import IntervalTimer, SleepFunc

__all__ = [
    "DEVICE_NAME",
    "EveDoorPlatform",
    "LifecycleState",
    "MINIMUM_HOST_VERSION",
    "PlatformLifecycle",
    "TICK_INTERVAL_S",
    "initialize_plugin",
]

MINIMUM_HOST_VERSION = "3.3.0"

# 60 s workload period plus a 100 ms guard
TICK_INTERVAL_S = 60.1

# Device identity as shipped by Eve Systems
DEVICE_NAME = "Eve door"
SERIAL_NUMBER = "0x88030475"
VENDOR_ID = 4874
VENDOR_NAME = "Eve Systems"
PRODUCT_ID = 77
PRODUCT_NAME = "Eve Door 20EBN9901"
SOFTWARE_VERSION = 1144
SOFTWARE_VERSION_STRING = "1.2.8"

# Initial battery
BATTERY_PERCENT = 75
BATTERY_VOLTAGE_MV = 3000
BATTERY_TYPE = "CR2450"
BATTERY_QUANTITY = 1

#: Builds the history store: ``factory(name, data_dir, debug=..., log=...)``.
HistoryFactory = Callable[..., HistoryBackend]


class LifecycleState(Enum):
    """Lifecycle states of the platform."""

    UNINITIALIZED = "uninitialized"
    STARTED = "started"
    CONFIGURED = "configured"
    SHUTTING_DOWN = "shutting_down"
    TERMINATED = "terminated"


class PlatformLifecycle(Protocol):  # pragma: no cover
    """Capability interface the host drives a plugin through."""

    async def start(self, reason: str | None = None) -> None:
        """Build and register devices."""
        ...

    async def configure(self) -> None:
        """Begin periodic work."""
        ...

    async def shutdown(self, reason: str | None = None) -> None:
        """Stop periodic work and release resources."""
        ...


class EveDoorPlatform:
    """Accessory platform simulating one Eve Door contact sensor.

    The door, history, engine and timer handles are None outside the
    STARTED and CONFIGURED states; operations needing them treat the
    absent case as a no-op.
    """

    def __init__(
        self,
        host: Host,
        config: PlatformConfig | None = None,
        log: StructuredLogger | None = None,
        *,
        sleep: SleepFunc = asyncio.sleep,
        history_factory: HistoryFactory = HistoryStore,
    ) -> None:
        """Validate the host and create an unstarted platform.

        Args:
            host: Bridging host the platform registers its device with.
            config: Plugin options; defaults to :class:`PlatformConfig`.
            log: Logger shared with the engine and history; defaults to
                ``eve_door.platform``.
            sleep: Sleep used by the tick timer (tests pass a manual clock).
            history_factory: Builds the history store.

        Raises:
            IncompatibleHostError: If the host is older than
                MINIMUM_HOST_VERSION.
        """
        if not version_satisfies(host.version, MINIMUM_HOST_VERSION):
            raise IncompatibleHostError(
                f'This plugin requires host version >= "{MINIMUM_HOST_VERSION}". '
                f"Please update the host from {host.version} to the latest version."
            )

        self.host = host
        self.config = config or PlatformConfig()
        self._log = log or get_logger(__name__)
        self._sleep = sleep
        self._history_factory = history_factory

        self._state = LifecycleState.UNINITIALIZED
        self._door: VirtualEndpoint | None = None
        self._history: HistoryAggregator | None = None
        self._engine: SimulationEngine | None = None
        self._timer: IntervalTimer | None = None

        self._log.info("Initializing platform: %s", self.config.name)

    # ------------------------------------------------------------------
    # Handles
    # ------------------------------------------------------------------

    @property
    def state(self) -> LifecycleState:
        """Current lifecycle state."""
        return self._state

    @property
    def door(self) -> VirtualEndpoint | None:
        """The simulated door, while started."""
        return self._door

    @property
    def history(self) -> HistoryAggregator | None:
        """The history aggregator, while started."""
        return self._history

    @property
    def engine(self) -> SimulationEngine | None:
        """The simulation engine, while started."""
        return self._engine

    @property
    def timer(self) -> IntervalTimer | None:
        """The tick timer, while configured."""
        return self._timer

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, reason: str | None = None) -> None:
        """Create the history and the door, and register the door.

        Args:
            reason: Why the host is starting the plugin, for the log.

        Raises:
            RuntimeError: If the platform was already started.
            Exception: Whatever host registration raises; the history is
                closed before it propagates.
        """
        self._log.info("onStart called with reason: %s", reason or "none")
        if self._state is not LifecycleState.UNINITIALIZED:
            raise RuntimeError(
                f"Cannot start platform in state {self._state.value}"
            )

        store = self._history_factory(
            DEVICE_NAME,
            self.host.data_directory,
            debug=self.config.debug,
        )
        history = HistoryAggregator(store, log=self._log)
        door = self._build_door()
        history.attach(door)

        try:
            await self.host.register_device(self.config.name, door)
        except Exception:
            await history.close()
            raise

        door.add_command_handler("identify", self._on_identify)
        door.add_command_handler("triggerEffect", self._on_trigger_effect)

        self._door = door
        self._history = history
        self._engine = SimulationEngine(door, history, log=self._log)
        self._state = LifecycleState.STARTED

    def _build_door(self) -> VirtualEndpoint:
        door = VirtualEndpoint(
            [DeviceType.CONTACT_SENSOR, DeviceType.POWER_SOURCE],
            unique_storage_key=DEVICE_NAME,
            mode="server" if self.host.bridge_mode == "bridge" else None,
            debug=self.config.debug,
        )
        door.create_default_identify_cluster_server()
        door.create_default_basic_information_cluster_server(
            DEVICE_NAME,
            SERIAL_NUMBER,
            VENDOR_ID,
            VENDOR_NAME,
            PRODUCT_ID,
            PRODUCT_NAME,
            SOFTWARE_VERSION,
            SOFTWARE_VERSION_STRING,
        )
        door.create_default_boolean_state_cluster_server(True)
        door.create_default_power_source_replaceable_battery_cluster_server(
            BATTERY_PERCENT,
            BatChargeLevel.OK,
            BATTERY_VOLTAGE_MV,
            BATTERY_TYPE,
            BATTERY_QUANTITY,
        )
        return door

    async def configure(self) -> None:
        """Arm the recurring simulation tick.

        Without a door (not started, or shut down) this only logs. A second
        call while the timer is armed logs a warning and changes nothing.
        """
        self._log.info("onConfigure called")
        if self._door is None or self._engine is None:
            self._log.info("No device to simulate, tick not armed")
            return
        if self._timer is not None:
            self._log.warning("Tick already armed")
            return

        self._timer = IntervalTimer(
            TICK_INTERVAL_S,
            self._engine.tick,
            sleep=self._sleep,
            name="eve-door-tick",
            log=self._log,
        )
        self._timer.start()
        self._state = LifecycleState.CONFIGURED

    async def shutdown(self, reason: str | None = None) -> None:
        """Stop the tick, close the history and optionally unregister.

        Once this returns no tick runs again. Closing the history always
        happens, even if stopping the timer failed; close failures are
        logged. Safe to call before start, and a no-op once shutdown has
        begun.

        Args:
            reason: Why the host is stopping the plugin, for the log.
        """
        self._log.info("onShutdown called with reason: %s", reason or "none")
        if self._state in (
            LifecycleState.UNINITIALIZED,
            LifecycleState.SHUTTING_DOWN,
            LifecycleState.TERMINATED,
        ):
            return
        self._state = LifecycleState.SHUTTING_DOWN

        timer, history, engine = self._timer, self._history, self._engine
        self._timer = None
        try:
            async with contextlib.AsyncExitStack() as stack:
                if history is not None:
                    stack.push_async_callback(self._close_history, history)
                if timer is not None:
                    timer.cancel()
                    await timer.wait_closed()
        finally:
            if engine is not None:
                engine.detach()
            self._engine = None
            self._history = None
            self._door = None
            self._state = LifecycleState.TERMINATED

        if self.config.unregister_on_shutdown:
            try:
                await self.host.unregister_all_devices(self.config.name)
            except Exception as e:
                self._log.error("Failed to unregister devices", error=str(e))

    async def _close_history(self, history: HistoryAggregator) -> None:
        try:
            await history.close()
        except Exception as e:
            self._log.error("Failed to close history", error=str(e))

    # ------------------------------------------------------------------
    # Command handlers
    # ------------------------------------------------------------------

    async def _on_identify(self, request: Mapping[str, Any]) -> None:
        self._log.info(
            f"Command identify called identifyTime {request.get('identifyTime')}"
        )
        if self._history is not None:
            self._history.request_flush()

    async def _on_trigger_effect(self, request: Mapping[str, Any]) -> None:
        self._log.info(
            f"Command triggerEffect called effect {request.get('effectIdentifier')} "
            f"variant {request.get('effectVariant')}"
        )
        if self._history is not None:
            self._history.request_flush()

    def __repr__(self) -> str:
        """Short representation with name and state."""
        return f"EveDoorPlatform(name={self.config.name!r}, state={self._state.value})"


def initialize_plugin(
    host: Host,
    config: PlatformConfig | Mapping[str, Any] | None = None,
    log: StructuredLogger | None = None,
) -> EveDoorPlatform:
    """Plugin entry point called by the host.

    Args:
        host: The bridging host.
        config: Plugin options, as a PlatformConfig or the host's JSON
            mapping.
        log: Logger provided by the host.

    Returns:
        A new, unstarted platform.

    Raises:
        IncompatibleHostError: If the host is too old.
    """
    if config is not None and not isinstance(config, PlatformConfig):
        config = PlatformConfig.from_mapping(config)
    return EveDoorPlatform(host, config, log)
