"""CLI entry point for eve-door.

Provides the ``eve-door`` console script with subcommands:

- ``serve``: Run the MCP server (default if no subcommand)
- ``simulate``: Run N ticks back to back and print the history as JSON

Usage::

    # Run MCP server (same as python -m eve_door.server)
    eve-door
    eve-door serve --data-dir /data/eve-door

    # Ten ticks without waiting for the timer
    eve-door simulate --ticks 10 --data-dir /tmp/eve
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any

from eve_door.config import HostConfig, PlatformConfig
from eve_door.host import LocalHost
from eve_door.observability import configure_logging
from eve_door.platform import initialize_plugin
from eve_door.server import add_server_arguments, configs_from_args
from eve_door.server import main as server_main

PROG_NAME = "eve-door"


async def run_simulation(
    host_config: HostConfig,
    platform_config: PlatformConfig,
    ticks: int,
) -> dict[str, Any]:
    """Start the door, run ``ticks`` ticks directly and shut down.

    Args:
        host_config: Settings of the in-process host.
        platform_config: Plugin options.
        ticks: Number of ticks to run.

    Returns:
        ``{"ticks", "sensor", "history"}`` as JSON-ready values.

    Raises:
        ValueError: If ``ticks`` is negative.
        IncompatibleHostError: If the host version is too old.
    """
    if ticks < 0:
        raise ValueError(f"ticks must be >= 0, got {ticks}")

    platform = initialize_plugin(LocalHost(host_config), platform_config)
    await platform.start("simulate")
    try:
        engine, history = platform.engine, platform.history
        assert engine is not None and history is not None
        for _ in range(ticks):
            await engine.tick()
        sensor = engine.state
        return {
            "ticks": engine.ticks,
            "sensor": sensor.to_dict() if sensor is not None else None,
            "history": history.aggregate.to_dict(),
        }
    finally:
        await platform.shutdown("simulation finished")


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point for eve-door.

    Returns:
        Exit code 0 for success, non-zero for errors.

    Raises:
        SystemExit: On --help or argument parsing errors.
    """
    argv = list(sys.argv[1:] if argv is None else argv)

    parser = argparse.ArgumentParser(
        prog=PROG_NAME,
        description="Eve Door - simulated contact sensor with battery and history",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    simulate_parser = subparsers.add_parser(
        "simulate",
        help="Run ticks back to back and print the history as JSON",
    )
    simulate_parser.add_argument(
        "--ticks",
        type=int,
        default=10,
        help="Number of ticks to run (default: 10)",
    )
    add_server_arguments(simulate_parser)

    # Serve subcommand (pass-through to server.main())
    subparsers.add_parser(
        "serve",
        help="Run MCP server (default if no subcommand)",
        add_help=False,
    )

    if argv and argv[0] == "simulate":
        args = parser.parse_args(argv)
        configure_logging(
            level=logging.DEBUG if args.debug else logging.WARNING,
            json_format=args.json_logs,
            force=True,
        )
        host_config, platform_config = configs_from_args(args)
        try:
            result = asyncio.run(
                run_simulation(host_config, platform_config, args.ticks)
            )
        except (ValueError, RuntimeError) as e:
            sys.stderr.write(f"{PROG_NAME}: error: {e}\n")
            return 1
        sys.stdout.write(json.dumps(result, indent=2) + "\n")
        return 0

    # Default or "serve": delegate to server.main()
    if argv and argv[0] == "serve":
        argv = argv[1:]

    server_main(argv)
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
