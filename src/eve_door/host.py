"""Bridging host interface and in-process implementation.

The platform never subclasses anything the host provides. It receives a
:class:`Host` by injection and calls back into it to register and
unregister its device. :class:`LocalHost` is the in-process host used by
the MCP server, the CLI and the tests.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from eve_door.config import HostConfig
from eve_door.observability import StructuredLogger, get_logger

if TYPE_CHECKING:
    from eve_door.drivers.types import DeviceProxy

__all__ = [
    "Host",
    "IncompatibleHostError",
    "LocalHost",
    "parse_version",
    "version_satisfies",
]

_VERSION_RE = re.compile(r"^\s*v?(\d+)\.(\d+)\.(\d+)(?:[-+].*)?\s*$")


class IncompatibleHostError(RuntimeError):
    """The host is older than the minimum version the plugin supports."""


def parse_version(version: str) -> tuple[int, int, int]:
    """Numeric ``(major, minor, patch)`` of a semantic version string.

    Pre-release and build suffixes (``-dev.1``, ``+build``) are dropped.

    Raises:
        ValueError: If the string is not ``major.minor.patch``.
    """
    match = _VERSION_RE.match(version)
    if match is None:
        raise ValueError(f"Invalid version string: {version!r}")
    major, minor, patch = (int(part) for part in match.groups())
    return major, minor, patch


def version_satisfies(version: str, minimum: str) -> bool:
    """Whether ``version`` is at least ``minimum``. Unparseable is False."""
    try:
        return parse_version(version) >= parse_version(minimum)
    except ValueError:
        return False


class Host(Protocol):  # pragma: no cover
    """What the platform needs from the bridging host."""

    @property
    def version(self) -> str:
        """Host version string, e.g. ``"3.3.0"``."""
        ...

    @property
    def data_directory(self) -> Path:
        """Directory where plugins keep their data."""
        ...

    @property
    def bridge_mode(self) -> str:
        """``"bridge"`` or ``"childbridge"``."""
        ...

    async def register_device(self, plugin: str, device: DeviceProxy) -> None:
        """Expose ``device`` on behalf of ``plugin``."""
        ...

    async def unregister_all_devices(self, plugin: str) -> None:
        """Remove every device ``plugin`` registered."""
        ...


class LocalHost:
    """In-process host keeping a registry of devices per plugin.

    Example:
        host = LocalHost(HostConfig(data_dir=tmp_path))
        platform = EveDoorPlatform(host, PlatformConfig())
        await platform.start()
        host.devices("matterbridge-eve-door")  # [VirtualEndpoint(...)]
    """

    def __init__(
        self,
        config: HostConfig | None = None,
        log: StructuredLogger | None = None,
    ) -> None:
        self.config = config or HostConfig()
        self._log = log or get_logger(__name__)
        self._devices: dict[str, list[DeviceProxy]] = {}

    @property
    def version(self) -> str:
        """Configured host version."""
        return self.config.version

    @property
    def data_directory(self) -> Path:
        """Configured data directory."""
        return Path(self.config.data_dir)

    @property
    def bridge_mode(self) -> str:
        """Configured bridge mode."""
        return self.config.bridge_mode

    def devices(self, plugin: str) -> list[DeviceProxy]:
        """Devices currently registered by ``plugin`` (copy)."""
        return list(self._devices.get(plugin, []))

    async def register_device(self, plugin: str, device: DeviceProxy) -> None:
        """Add ``device`` to the plugin's registry.

        Raises:
            ValueError: If a device with the same storage key is registered.
        """
        registered = self._devices.setdefault(plugin, [])
        if any(
            d.unique_storage_key == device.unique_storage_key for d in registered
        ):
            raise ValueError(
                f"Device {device.unique_storage_key!r} already registered "
                f"by {plugin}"
            )
        registered.append(device)
        self._log.info(
            "Device registered", plugin=plugin, device=device.unique_storage_key
        )

    async def unregister_all_devices(self, plugin: str) -> None:
        """Remove every device of ``plugin``."""
        removed = self._devices.pop(plugin, [])
        self._log.info("Devices unregistered", plugin=plugin, count=len(removed))
