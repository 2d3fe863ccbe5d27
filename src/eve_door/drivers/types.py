"""Device proxy type definitions and protocols.

The simulation core never owns the device representation. It reads and
writes named attributes, emits events and installs command handlers
through the narrow :class:`DeviceProxy` protocol defined here. Keeping the
protocol in its own module lets the engine, the history aggregator and the
endpoint implementation import it without circular imports.

Example:
    from eve_door.drivers.clusters import ClusterId
    from eve_door.drivers.types import DeviceProxy

    async def flip(device: DeviceProxy) -> bool:
        contact = not device.get_attribute(ClusterId.BOOLEAN_STATE, "stateValue")
        await device.set_attribute(ClusterId.BOOLEAN_STATE, "stateValue", contact)
        return contact
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Protocol

from eve_door.drivers.clusters import BatChargeLevel, ClusterId

#: Async handler invoked with the command request fields.
CommandHandler = Callable[[Mapping[str, Any]], Awaitable[None]]

#: Called as ``listener(new_value, old_value)`` after an attribute write.
AttributeListener = Callable[[Any, Any], None]

#: Returns the current values of a derived (computed on read) cluster.
ClusterProvider = Callable[[], Mapping[str, Any]]


class DeviceProxy(Protocol):  # pragma: no cover
    """Protocol for the simulated device as seen by the simulation core.

    A DeviceProxy is the attribute/event/command surface of one endpoint.
    The lifecycle controller builds it at start, the simulation engine
    mutates it every tick, and the host observes it.

    Business context: The bridging host owns the wire representation of
    devices. The core only needs get/set of named attributes, event
    emission and command dispatch, so anything satisfying this protocol
    (the in-process VirtualEndpoint, or an adapter to a real host) can
    carry the simulated door.
    """

    #: Stable key the host persists the device under.
    unique_storage_key: str

    @property
    def behaviors(self) -> list[str]:
        """Names of the cluster servers the device supports, in order added."""
        ...

    def get_attribute(self, cluster: ClusterId, name: str) -> Any:
        """Read an attribute value.

        Args:
            cluster: Cluster holding the attribute.
            name: Attribute name, e.g. ``"stateValue"``.

        Returns:
            The current value.

        Raises:
            KeyError: If the cluster or attribute does not exist.
        """
        ...

    async def set_attribute(self, cluster: ClusterId, name: str, value: Any) -> bool:
        """Write an attribute value.

        Args:
            cluster: Cluster holding the attribute.
            name: Attribute name.
            value: New value.

        Returns:
            True when written, False when the cluster or attribute is
            missing or read-only.
        """
        ...

    async def trigger_event(
        self, cluster: ClusterId, name: str, payload: Mapping[str, Any]
    ) -> bool:
        """Emit a cluster event to observers.

        Returns:
            True when emitted, False when the cluster is missing.
        """
        ...

    def add_command_handler(self, command: str, handler: CommandHandler) -> None:
        """Install the async handler for a host-invoked command."""
        ...

    async def execute_command_handler(
        self, command: str, request: Mapping[str, Any]
    ) -> None:
        """Invoke the handler registered for ``command``.

        Raises:
            KeyError: If no handler is registered.
        """
        ...

    def subscribe_attribute(
        self, cluster: ClusterId, name: str, listener: AttributeListener
    ) -> None:
        """Call ``listener`` after every successful write of the attribute."""
        ...

    def add_derived_cluster_server(
        self,
        cluster: ClusterId,
        provider: ClusterProvider,
        writable: Mapping[str, Any] | None = None,
    ) -> None:
        """Add a cluster whose attributes are computed on read.

        Args:
            cluster: Cluster id to register.
            provider: Returns the read-only attribute values.
            writable: Initial values of attributes observers may write.
        """
        ...

    def create_default_identify_cluster_server(self, identify_time: int = 0) -> None:
        """Add the Identify cluster."""
        ...

    def create_default_basic_information_cluster_server(
        self,
        device_name: str,
        serial_number: str,
        vendor_id: int,
        vendor_name: str,
        product_id: int,
        product_name: str,
        software_version: int = 1,
        software_version_string: str = "1.0.0",
    ) -> None:
        """Add the (bridged) Basic Information cluster."""
        ...

    def create_default_boolean_state_cluster_server(self, contact: bool = True) -> None:
        """Add the Boolean State cluster with the initial contact value."""
        ...

    def create_default_power_source_replaceable_battery_cluster_server(
        self,
        bat_percent_remaining: int = 100,
        bat_charge_level: BatChargeLevel = BatChargeLevel.OK,
        bat_voltage: int = 1500,
        bat_replacement_description: str = "Battery type",
        bat_quantity: int = 1,
    ) -> None:
        """Add the Power Source cluster for a replaceable battery.

        Args:
            bat_percent_remaining: Remaining charge in percent (0-100).
                Stored in the attribute in half-percent units.
            bat_charge_level: Initial coarse charge level.
            bat_voltage: Battery voltage in mV.
            bat_replacement_description: Battery type, e.g. ``"CR2450"``.
            bat_quantity: Number of batteries.
        """
        ...
