"""Platform and host configuration.

The platform reads the same options the bridging host stores for the plugin
(camelCase JSON). ``PlatformConfig.from_mapping`` accepts both that form and
snake_case keys, so a config file written by the host loads unchanged.

Example config file::

    {
        "name": "matterbridge-eve-door",
        "type": "AccessoryPlatform",
        "debug": false,
        "unregisterOnShutdown": false
    }
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

__all__ = [
    "DEFAULT_HOST_VERSION",
    "DEFAULT_PLATFORM_NAME",
    "HostConfig",
    "PlatformConfig",
    "PlatformType",
    "load_config",
]

DEFAULT_PLATFORM_NAME = "matterbridge-eve-door"

# Version reported by LocalHost when none is configured
DEFAULT_HOST_VERSION = "3.3.0"


class PlatformType(str, Enum):
    """Deployment mode of the plugin inside the host."""

    ACCESSORY = "AccessoryPlatform"  # one device, fixed shape
    DYNAMIC = "DynamicPlatform"  # devices created at runtime


def _default_data_dir() -> Path:
    """Default directory for history files.

    Returns:
        Path to ~/.eve-door/data. It may not exist yet; the history store
        creates it on open.
    """
    return Path.home() / ".eve-door" / "data"


@dataclass
class PlatformConfig:
    """Options of one plugin instance.

    Attributes:
        name: Plugin name, logged at construction.
        type: Deployment mode.
        debug: Verbose history logging (every entry on each flush).
        unregister_on_shutdown: Remove all devices from the host on shutdown.
    """

    name: str = DEFAULT_PLATFORM_NAME
    type: PlatformType = PlatformType.ACCESSORY
    debug: bool = False
    unregister_on_shutdown: bool = False

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> PlatformConfig:
        """Build a config from host JSON (camelCase) or snake_case keys.

        Unknown keys are ignored.

        Raises:
            ValueError: If ``type`` is not a known platform type.
        """
        unregister = data.get(
            "unregisterOnShutdown", data.get("unregister_on_shutdown", False)
        )
        try:
            platform_type = PlatformType(data.get("type", PlatformType.ACCESSORY))
        except ValueError:
            raise ValueError(
                f"Unknown platform type {data.get('type')!r}, expected one of "
                f"{[t.value for t in PlatformType]}"
            ) from None
        return cls(
            name=str(data.get("name", DEFAULT_PLATFORM_NAME)),
            type=platform_type,
            debug=bool(data.get("debug", False)),
            unregister_on_shutdown=bool(unregister),
        )

    def to_dict(self) -> dict[str, Any]:
        """Host JSON form (camelCase keys)."""
        return {
            "name": self.name,
            "type": self.type.value,
            "debug": self.debug,
            "unregisterOnShutdown": self.unregister_on_shutdown,
        }


@dataclass
class HostConfig:
    """Settings of the in-process host.

    Attributes:
        version: Host version reported to the platform.
        data_dir: Directory for plugin data (history files).
        bridge_mode: ``"bridge"`` or ``"childbridge"``.
    """

    version: str = DEFAULT_HOST_VERSION
    data_dir: Path = field(default_factory=_default_data_dir)
    bridge_mode: str = "bridge"


def load_config(path: Path | str) -> PlatformConfig:
    """Read a platform config JSON file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is not a JSON object or has a bad ``type``.
    """
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a JSON object")
    return PlatformConfig.from_mapping(data)
