"""In-process device endpoint for the virtual door.

VirtualEndpoint is the concrete :class:`~eve_door.drivers.types.DeviceProxy`
used when the door runs inside :class:`~eve_door.host.LocalHost`. It keeps
cluster attributes in memory, records emitted events, dispatches host
commands and supports derived clusters whose values are computed on read
(the Eve history cluster).

Example:
    from eve_door.drivers import ClusterId, DeviceType, VirtualEndpoint

    door = VirtualEndpoint(
        [DeviceType.CONTACT_SENSOR, DeviceType.POWER_SOURCE],
        unique_storage_key="Eve door",
    )
    door.create_default_boolean_state_cluster_server(True)
    await door.set_attribute(ClusterId.BOOLEAN_STATE, "stateValue", False)
    door.behaviors  # ['descriptor', 'booleanState']
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from eve_door.drivers.clusters import (
    BatChargeLevel,
    BatReplaceability,
    ClusterId,
    DeviceType,
    IdentifyType,
)
from eve_door.drivers.types import (
    AttributeListener,
    ClusterProvider,
    CommandHandler,
)
from eve_door.observability import StructuredLogger, get_logger

__all__ = [
    "ClusterServer",
    "EmittedEvent",
    "VirtualEndpoint",
]

# PowerSource batPercentRemaining is expressed in half-percent units
_MAX_BAT_PERCENT_REMAINING = 200


@dataclass
class ClusterServer:
    """Attribute storage for one cluster on the endpoint.

    Attributes:
        cluster: Cluster id.
        attributes: Stored (writable) attribute values.
        provider: Optional callable supplying read-only computed values.
    """

    cluster: ClusterId
    attributes: dict[str, Any] = field(default_factory=dict)
    provider: ClusterProvider | None = None

    def read_all(self) -> dict[str, Any]:
        """Return stored values overlaid with the provider's values."""
        values = dict(self.attributes)
        if self.provider is not None:
            values.update(self.provider())
        return values

    def is_derived(self, name: str) -> bool:
        """Whether ``name`` is supplied by the provider (read-only)."""
        return self.provider is not None and name in self.provider()


@dataclass(frozen=True)
class EmittedEvent:
    """An event triggered on the endpoint."""

    cluster: ClusterId
    name: str
    payload: dict[str, Any]
    time: datetime


class VirtualEndpoint:
    """Memory-backed endpoint implementing the DeviceProxy protocol.

    The descriptor cluster is always present; other clusters are added by
    the ``create_default_*`` builders and ``add_derived_cluster_server``.

    Note:
        Not thread-safe. All calls are expected from the event loop that
        drives the simulation.
    """

    def __init__(
        self,
        device_types: list[DeviceType],
        *,
        unique_storage_key: str,
        mode: str | None = None,
        debug: bool = False,
        log: StructuredLogger | None = None,
    ) -> None:
        """Create the endpoint with its descriptor cluster.

        Args:
            device_types: Device types composed on this endpoint.
            unique_storage_key: Stable key the host persists the device under.
            mode: ``"server"`` when the device runs as its own server node
                (host in bridge mode), otherwise None.
            debug: Log every attribute write at DEBUG.
            log: Logger; defaults to this module's logger.
        """
        self.device_types = list(device_types)
        self.unique_storage_key = unique_storage_key
        self.mode = mode
        self.debug = debug
        self._log = log or get_logger(__name__)

        self._clusters: dict[ClusterId, ClusterServer] = {}
        self._listeners: dict[tuple[ClusterId, str], list[AttributeListener]] = {}
        self._command_handlers: dict[str, CommandHandler] = {}
        self._events: list[EmittedEvent] = []

        self._add_cluster(
            ClusterId.DESCRIPTOR,
            {"deviceTypeList": [dt.code for dt in self.device_types]},
        )

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def behaviors(self) -> list[str]:
        """Behavior names of the supported clusters, in the order added."""
        return [cluster.behavior_name for cluster in self._clusters]

    @property
    def events(self) -> list[EmittedEvent]:
        """Events emitted so far (copy)."""
        return list(self._events)

    @property
    def serial_number(self) -> str | None:
        """Serial number from the basic information cluster, if present."""
        server = self._clusters.get(ClusterId.BASIC_INFORMATION)
        if server is None:
            return None
        return server.attributes.get("serialNumber")

    def has_cluster(self, cluster: ClusterId) -> bool:
        """Whether the cluster server exists on this endpoint."""
        return cluster in self._clusters

    def snapshot(self) -> dict[str, dict[str, Any]]:
        """All attribute values keyed by behavior name."""
        return {
            cluster.behavior_name: server.read_all()
            for cluster, server in self._clusters.items()
        }

    # ------------------------------------------------------------------
    # Attribute access
    # ------------------------------------------------------------------

    def get_attribute(self, cluster: ClusterId, name: str) -> Any:
        """Read an attribute value.

        Raises:
            KeyError: If the cluster or attribute does not exist.
        """
        server = self._clusters.get(cluster)
        if server is None:
            raise KeyError(f"Cluster {cluster.name} not present on endpoint")
        values = server.read_all()
        if name not in values:
            raise KeyError(f"Attribute {name} not present on cluster {cluster.name}")
        return values[name]

    async def set_attribute(self, cluster: ClusterId, name: str, value: Any) -> bool:
        """Write an attribute and notify its subscribers.

        Returns:
            True when written. False (with a warning) when the cluster or
            attribute does not exist or the attribute is derived.
        """
        server = self._clusters.get(cluster)
        if server is None or (
            name not in server.attributes and not server.is_derived(name)
        ):
            self._log.warning(
                "setAttribute on unknown attribute",
                cluster=cluster.name,
                attribute=name,
            )
            return False
        if server.is_derived(name):
            self._log.warning(
                "setAttribute on read-only attribute",
                cluster=cluster.name,
                attribute=name,
            )
            return False

        old_value = server.attributes[name]
        server.attributes[name] = value
        if self.debug:
            self._log.debug(
                "Attribute written",
                cluster=cluster.name,
                attribute=name,
                value=value,
            )

        for listener in self._listeners.get((cluster, name), []):
            try:
                listener(value, old_value)
            except Exception as e:
                self._log.error(
                    "Attribute listener failed",
                    cluster=cluster.name,
                    attribute=name,
                    error=str(e),
                )
        return True

    def subscribe_attribute(
        self, cluster: ClusterId, name: str, listener: AttributeListener
    ) -> None:
        """Call ``listener(new, old)`` after each successful write."""
        self._listeners.setdefault((cluster, name), []).append(listener)

    # ------------------------------------------------------------------
    # Events and commands
    # ------------------------------------------------------------------

    async def trigger_event(
        self, cluster: ClusterId, name: str, payload: Mapping[str, Any]
    ) -> bool:
        """Record an event emitted on one of the endpoint's clusters."""
        if cluster not in self._clusters:
            self._log.warning("triggerEvent on unknown cluster", cluster=cluster.name)
            return False
        self._events.append(
            EmittedEvent(
                cluster=cluster,
                name=name,
                payload=dict(payload),
                time=datetime.now(UTC),
            )
        )
        return True

    def add_command_handler(self, command: str, handler: CommandHandler) -> None:
        """Register the handler for ``command``, replacing any previous one."""
        self._command_handlers[command] = handler

    async def execute_command_handler(
        self, command: str, request: Mapping[str, Any]
    ) -> None:
        """Dispatch a host command to its handler.

        Raises:
            KeyError: If no handler is registered for ``command``.
        """
        handler = self._command_handlers.get(command)
        if handler is None:
            raise KeyError(f"No handler registered for command {command}")
        await handler(request)

    # ------------------------------------------------------------------
    # Cluster builders
    # ------------------------------------------------------------------

    def _add_cluster(
        self,
        cluster: ClusterId,
        attributes: dict[str, Any],
        provider: ClusterProvider | None = None,
    ) -> None:
        if cluster in self._clusters:
            raise RuntimeError(f"Cluster {cluster.name} already present on endpoint")
        self._clusters[cluster] = ClusterServer(cluster, attributes, provider)

    def add_derived_cluster_server(
        self,
        cluster: ClusterId,
        provider: ClusterProvider,
        writable: Mapping[str, Any] | None = None,
    ) -> None:
        """Add a cluster whose values come from ``provider`` on every read."""
        self._add_cluster(cluster, dict(writable or {}), provider)

    def create_default_identify_cluster_server(self, identify_time: int = 0) -> None:
        """Add the Identify cluster."""
        self._add_cluster(
            ClusterId.IDENTIFY,
            {"identifyTime": identify_time, "identifyType": IdentifyType.NONE},
        )

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
        """Add the Basic Information cluster with device identification."""
        self._add_cluster(
            ClusterId.BASIC_INFORMATION,
            {
                "nodeLabel": device_name,
                "serialNumber": serial_number,
                "uniqueId": f"{self.unique_storage_key}-{serial_number}",
                "vendorId": vendor_id,
                "vendorName": vendor_name,
                "productId": product_id,
                "productName": product_name,
                "softwareVersion": software_version,
                "softwareVersionString": software_version_string,
                "reachable": True,
            },
        )

    def create_default_boolean_state_cluster_server(self, contact: bool = True) -> None:
        """Add the Boolean State cluster (True = contact closed)."""
        self._add_cluster(ClusterId.BOOLEAN_STATE, {"stateValue": contact})

    def create_default_power_source_replaceable_battery_cluster_server(
        self,
        bat_percent_remaining: int = 100,
        bat_charge_level: BatChargeLevel = BatChargeLevel.OK,
        bat_voltage: int = 1500,
        bat_replacement_description: str = "Battery type",
        bat_quantity: int = 1,
    ) -> None:
        """Add the Power Source cluster for a replaceable battery.

        ``bat_percent_remaining`` is given in percent and stored in
        half-percent units clamped to [0, 200].
        """
        self._add_cluster(
            ClusterId.POWER_SOURCE,
            {
                "status": 1,  # active
                "order": 0,
                "description": "Primary battery",
                "batVoltage": bat_voltage,
                "batPercentRemaining": min(
                    max(bat_percent_remaining * 2, 0), _MAX_BAT_PERCENT_REMAINING
                ),
                "batChargeLevel": bat_charge_level,
                "batReplacementNeeded": False,
                "batReplaceability": BatReplaceability.USER_REPLACEABLE,
                "batReplacementDescription": bat_replacement_description,
                "batQuantity": bat_quantity,
            },
        )

    def __repr__(self) -> str:
        """Short representation with storage key and behaviors."""
        return (
            f"VirtualEndpoint(key={self.unique_storage_key!r}, "
            f"behaviors={self.behaviors})"
        )
