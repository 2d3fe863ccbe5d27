"""Tests for eve_door.server."""

import contextlib
import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from mcp.server import Server

from eve_door import server
from eve_door.config import HostConfig, PlatformConfig
from eve_door.host import IncompatibleHostError, LocalHost
from eve_door.platform import EveDoorPlatform


class TestCreateServer:
    """create_server()."""

    def test_returns_named_server(self, host: LocalHost) -> None:
        """Verifies the server is an MCP Server named eve-door."""
        platform = EveDoorPlatform(host, PlatformConfig(), MagicMock())

        mcp_server = server.create_server(platform)

        assert isinstance(mcp_server, Server)
        assert mcp_server.name == "eve-door"


class TestArgs:
    """parse_args() and configs_from_args()."""

    def test_defaults(self) -> None:
        """Verifies default flags."""
        args = server.parse_args([])

        assert args.config is None
        assert args.data_dir is None
        assert args.host_version == "3.3.0"
        assert args.bridge_mode == "bridge"
        assert args.debug is False

    def test_flags_override_file(self, tmp_path: Path) -> None:
        """Verifies command-line flags win over the config file.

        Arrangement:
        1. Config file with debug false and a custom name.

        Action:
        Parse --config, --debug, --unregister-on-shutdown and --data-dir.

        Assertion Strategy:
        - Name from the file, debug and unregister from flags.
        - Host data dir from --data-dir.
        """
        path = tmp_path / "eve.json"
        path.write_text(json.dumps({"name": "door", "debug": False}))
        args = server.parse_args(
            [
                "--config",
                str(path),
                "--debug",
                "--unregister-on-shutdown",
                "--data-dir",
                str(tmp_path / "data"),
                "--bridge-mode",
                "childbridge",
            ]
        )

        host_config, platform_config = server.configs_from_args(args)

        assert platform_config.name == "door"
        assert platform_config.debug is True
        assert platform_config.unregister_on_shutdown is True
        assert host_config.data_dir == tmp_path / "data"
        assert host_config.bridge_mode == "childbridge"

    def test_bad_bridge_mode_exits(self) -> None:
        """Verifies argparse rejects unknown bridge modes."""
        with pytest.raises(SystemExit):
            server.parse_args(["--bridge-mode", "mesh"])


class TestRunServer:
    """run_server() lifecycle around the stdio transport."""

    @pytest.mark.asyncio
    async def test_platform_started_and_shut_down(self, tmp_path: Path) -> None:
        """Verifies the platform runs for the server's lifetime.

        Arrangement:
        1. stdio_server patched to yield dummy streams.
        2. create_server patched to a mock whose run() returns at once.

        Action:
        await run_server().

        Assertion Strategy:
        - run() awaited once.
        - History file written, so the platform shut down cleanly.
        """

        @contextlib.asynccontextmanager
        async def fake_stdio():
            yield MagicMock(), MagicMock()

        mock_server = MagicMock()
        mock_server.run = AsyncMock()

        with (
            patch.object(server, "stdio_server", fake_stdio),
            patch.object(server, "create_server", return_value=mock_server),
        ):
            await server.run_server(HostConfig(data_dir=tmp_path), PlatformConfig())

        mock_server.run.assert_awaited_once()
        assert (tmp_path / "eve_door.history.asdf").exists()

    @pytest.mark.asyncio
    async def test_shutdown_runs_when_transport_fails(self, tmp_path: Path) -> None:
        """Verifies the platform shuts down even if the server raises."""
        mock_server = MagicMock()
        mock_server.run = AsyncMock(side_effect=RuntimeError("stdin closed"))

        @contextlib.asynccontextmanager
        async def fake_stdio():
            yield MagicMock(), MagicMock()

        with (
            patch.object(server, "stdio_server", fake_stdio),
            patch.object(server, "create_server", return_value=mock_server),
            pytest.raises(RuntimeError, match="stdin closed"),
        ):
            await server.run_server(HostConfig(data_dir=tmp_path), PlatformConfig())

        assert (tmp_path / "eve_door.history.asdf").exists()

    @pytest.mark.asyncio
    async def test_old_host_rejected(self, tmp_path: Path) -> None:
        """Verifies an incompatible host version aborts before serving."""
        with pytest.raises(IncompatibleHostError):
            await server.run_server(
                HostConfig(version="1.5.0", data_dir=tmp_path), PlatformConfig()
            )


class TestMain:
    """main()."""

    def test_main_runs_server(self, tmp_path: Path) -> None:
        """Verifies main() configures logging and runs run_server."""
        with (
            patch.object(server, "run_server") as run_server,
            patch.object(server.asyncio, "run") as run,
            patch.object(server, "configure_logging") as configure_logging,
        ):
            server.main(["--data-dir", str(tmp_path), "--json-logs"])

        run.assert_called_once()
        host_config, platform_config = run_server.call_args.args
        assert host_config.data_dir == tmp_path
        assert platform_config == PlatformConfig()
        assert configure_logging.call_args.kwargs["json_format"] is True
