"""Cluster identifiers and enumerations used by the virtual door.

Values follow the Matter application cluster specification so that the
attributes written by the simulation read the same as those a real
bridging host would expose.
"""

from __future__ import annotations

from enum import Enum, IntEnum


class ClusterId(IntEnum):
    """Cluster ids of the behaviors the door endpoint can carry."""

    IDENTIFY = 0x0003
    DESCRIPTOR = 0x001D
    BASIC_INFORMATION = 0x0028
    POWER_SOURCE = 0x002F
    BOOLEAN_STATE = 0x0045
    EVE_HISTORY = 0x130AFC01  # Eve Systems manufacturer-specific

    @property
    def behavior_name(self) -> str:
        """Behavior key under which the cluster server is registered."""
        return _BEHAVIOR_NAMES[self]


_BEHAVIOR_NAMES = {
    ClusterId.IDENTIFY: "identify",
    ClusterId.DESCRIPTOR: "descriptor",
    ClusterId.BASIC_INFORMATION: "basicInformation",
    ClusterId.POWER_SOURCE: "powerSource",
    ClusterId.BOOLEAN_STATE: "booleanState",
    ClusterId.EVE_HISTORY: "eveHistory",
}


class DeviceType(Enum):
    """Device types composed on the door endpoint (name, Matter code)."""

    CONTACT_SENSOR = ("contactSensor", 0x0015)
    POWER_SOURCE = ("powerSource", 0x0011)

    @property
    def code(self) -> int:
        """Matter device type code."""
        return self.value[1]


class BatChargeLevel(IntEnum):
    """PowerSource ``batChargeLevel`` attribute values."""

    OK = 0
    WARNING = 1
    CRITICAL = 2


class BatReplaceability(IntEnum):
    """PowerSource ``batReplaceability`` attribute values."""

    UNSPECIFIED = 0
    NOT_REPLACEABLE = 1
    USER_REPLACEABLE = 2
    FACTORY_REPLACEABLE = 3


class EffectIdentifier(IntEnum):
    """Identify cluster ``triggerEffect`` effect identifiers."""

    BLINK = 0x00
    BREATHE = 0x01
    OKAY = 0x02
    CHANNEL_CHANGE = 0x0B
    FINISH_EFFECT = 0xFE
    STOP_EFFECT = 0xFF


class EffectVariant(IntEnum):
    """Identify cluster ``triggerEffect`` effect variants."""

    DEFAULT = 0x00


class IdentifyType(IntEnum):
    """Identify cluster ``identifyType`` attribute values."""

    NONE = 0
    LIGHT_OUTPUT = 1
    VISIBLE_INDICATOR = 2
    AUDIBLE_BEEP = 3
    DISPLAY = 4
    ACTUATOR = 5
