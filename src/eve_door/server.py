"""MCP Server entry point for the virtual Eve door."""

import argparse
import asyncio
import logging
from pathlib import Path

from mcp.server import Server
from mcp.server.stdio import stdio_server

from eve_door.config import (
    DEFAULT_HOST_VERSION,
    HostConfig,
    PlatformConfig,
    load_config,
)
from eve_door.host import LocalHost
from eve_door.observability import configure_logging, get_logger
from eve_door.platform import EveDoorPlatform, initialize_plugin
from eve_door.tools import door

logger = get_logger(__name__)

SERVER_NAME = "eve-door"


def create_server(platform: EveDoorPlatform) -> Server:
    """Create the MCP server exposing the door tools.

    Args:
        platform: Platform the tools act on. Its lifecycle is managed by
            the caller.

    Returns:
        Configured MCP Server instance with the door tools registered.
    """
    server = Server(SERVER_NAME)
    door.register(server, platform)
    return server


async def run_server(host_config: HostConfig, platform_config: PlatformConfig) -> None:
    """Run the door and serve MCP over stdio until stdin closes.

    Starts and configures the platform, then runs the MCP protocol. The
    platform is always shut down on exit.

    Args:
        host_config: Settings of the in-process host.
        platform_config: Plugin options.

    Raises:
        IncompatibleHostError: If ``host_config.version`` is too old.
    """
    host = LocalHost(host_config)
    platform = initialize_plugin(host, platform_config)
    server = create_server(platform)

    try:
        await platform.start("server")
        await platform.configure()
        async with stdio_server() as (read_stream, write_stream):
            await server.run(
                read_stream,
                write_stream,
                server.create_initialization_options(),
            )
    finally:
        await platform.shutdown("server stopped")
        logger.info("Platform shut down")


def build_parser() -> argparse.ArgumentParser:
    """Argument parser for the server options (shared with the CLI)."""
    parser = argparse.ArgumentParser(
        description="Eve Door MCP Server - simulated contact sensor with history"
    )
    add_server_arguments(parser)
    return parser


def add_server_arguments(parser: argparse.ArgumentParser) -> None:
    """Add the host and platform options to ``parser``."""
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Platform config JSON file (host format, camelCase keys)",
    )
    parser.add_argument(
        "--data-dir",
        type=str,
        default=None,
        help="Directory to store the history file (default: ~/.eve-door/data)",
    )
    parser.add_argument(
        "--host-version",
        type=str,
        default=DEFAULT_HOST_VERSION,
        help=f"Host version reported to the plugin (default: {DEFAULT_HOST_VERSION})",
    )
    parser.add_argument(
        "--bridge-mode",
        type=str,
        choices=["bridge", "childbridge"],
        default="bridge",
        help="Host bridge mode (default: bridge)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Verbose history logging and DEBUG log level",
    )
    parser.add_argument(
        "--unregister-on-shutdown",
        action="store_true",
        help="Unregister all devices from the host on shutdown",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Write logs as JSON lines",
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments for the server.

    Args:
        argv: Arguments to parse (default: ``sys.argv[1:]``).

    Raises:
        SystemExit: On invalid arguments or --help.
    """
    return build_parser().parse_args(argv)


def configs_from_args(args: argparse.Namespace) -> tuple[HostConfig, PlatformConfig]:
    """Build host and platform configs; command line flags override the file.

    Raises:
        FileNotFoundError: If ``--config`` names a missing file.
        ValueError: If the config file is invalid.
    """
    platform_config = load_config(args.config) if args.config else PlatformConfig()
    if args.debug:
        platform_config.debug = True
    if args.unregister_on_shutdown:
        platform_config.unregister_on_shutdown = True

    host_config = HostConfig(version=args.host_version, bridge_mode=args.bridge_mode)
    if args.data_dir:
        host_config.data_dir = Path(args.data_dir)
    return host_config, platform_config


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the eve-door MCP server.

    Example:
        >>> # "command": "python", "args": ["-m", "eve_door.server"]
        >>> main(["--data-dir", "/data/eve-door"])
    """
    args = parse_args(argv)
    configure_logging(
        level=logging.DEBUG if args.debug else logging.INFO,
        json_format=args.json_logs,
        force=True,
    )
    host_config, platform_config = configs_from_args(args)

    logger.info(
        "Starting MCP server",
        data_dir=str(host_config.data_dir),
        host_version=host_config.version,
    )
    asyncio.run(run_server(host_config, platform_config))


if __name__ == "__main__":  # pragma: no cover
    main()
