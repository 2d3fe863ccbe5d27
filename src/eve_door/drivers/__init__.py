"""Device proxy layer for the simulated door.

- ClusterId, DeviceType and the attribute enumerations (clusters.py)
- DeviceProxy: Protocol the simulation core programs against (types.py)
- VirtualEndpoint: in-memory DeviceProxy implementation (endpoint.py)

Example:
    from eve_door.drivers import ClusterId, DeviceType, VirtualEndpoint

    door = VirtualEndpoint([DeviceType.CONTACT_SENSOR], unique_storage_key="door")
    door.create_default_boolean_state_cluster_server(True)
    door.get_attribute(ClusterId.BOOLEAN_STATE, "stateValue")  # True
"""

# Import order: types first (avoid circular imports), then implementations
from eve_door.drivers.clusters import (
    BatChargeLevel,
    BatReplaceability,
    ClusterId,
    DeviceType,
    EffectIdentifier,
    EffectVariant,
    IdentifyType,
)
from eve_door.drivers.types import (
    AttributeListener,
    ClusterProvider,
    CommandHandler,
    DeviceProxy,
)
from eve_door.drivers.endpoint import (  # noqa: I001
    ClusterServer,
    EmittedEvent,
    VirtualEndpoint,
)

__all__ = [
    # Enumerations
    "BatChargeLevel",
    "BatReplaceability",
    "ClusterId",
    "DeviceType",
    "EffectIdentifier",
    "EffectVariant",
    "IdentifyType",
    # Protocols and callables
    "AttributeListener",
    "ClusterProvider",
    "CommandHandler",
    "DeviceProxy",
    # Implementation
    "ClusterServer",
    "EmittedEvent",
    "VirtualEndpoint",
]
