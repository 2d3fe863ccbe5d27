"""Pytest configuration and fixtures for eve-door tests.

Fixtures here build the pieces most tests share: an in-process host rooted
at ``tmp_path``, a manual clock for the tick timer, a recording history
store, and a MagicMock logger standing in for the host-provided logger.
"""

from unittest.mock import MagicMock

import pytest

from eve_door.config import HostConfig, PlatformConfig
from eve_door.drivers import BatChargeLevel, DeviceType, VirtualEndpoint
from eve_door.host import LocalHost
from eve_door.observability import reset_logging
from tests.helpers import ManualClock, RecordingStore


@pytest.fixture(autouse=True)
def _reset_logging():
    """Drop handlers installed by a test so the next one starts clean."""
    yield
    reset_logging()


@pytest.fixture
def mock_log() -> MagicMock:
    """Logger double, like the host-provided logger of a real bridge.

    Returns:
        MagicMock: Records info/debug/warning/error calls.
    """
    return MagicMock()


@pytest.fixture
def host(tmp_path) -> LocalHost:
    """LocalHost at the minimum supported version, data under tmp_path."""
    return LocalHost(HostConfig(version="3.3.0", data_dir=tmp_path / "data"))


@pytest.fixture
def platform_config() -> PlatformConfig:
    """Default platform options."""
    return PlatformConfig()


@pytest.fixture
def clock() -> ManualClock:
    """Virtual clock whose ``sleep`` only returns when advanced."""
    return ManualClock()


@pytest.fixture
def store() -> RecordingStore:
    """In-memory history store recording every call."""
    return RecordingStore()


@pytest.fixture
def door() -> VirtualEndpoint:
    """Door endpoint carrying the clusters the tick reads and writes.

    Contact starts closed, battery at 75 % (150 half-percent), Ok.
    """
    endpoint = VirtualEndpoint(
        [DeviceType.CONTACT_SENSOR, DeviceType.POWER_SOURCE],
        unique_storage_key="Eve door",
    )
    endpoint.create_default_basic_information_cluster_server(
        "Eve door", "0x88030475", 4874, "Eve Systems", 77, "Eve Door 20EBN9901"
    )
    endpoint.create_default_boolean_state_cluster_server(True)
    endpoint.create_default_power_source_replaceable_battery_cluster_server(
        75, BatChargeLevel.OK, 3000, "CR2450", 1
    )
    return endpoint
