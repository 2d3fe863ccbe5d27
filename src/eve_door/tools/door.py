"""MCP Tools for the virtual Eve door.

Lets an MCP client inspect the simulated door and its history and invoke
the host commands the door answers to (identify, triggerEffect).
"""

import json
from typing import Any

from mcp.server import Server
from mcp.types import TextContent, Tool

from eve_door.drivers.clusters import EffectIdentifier, EffectVariant
from eve_door.observability import get_logger
from eve_door.platform import EveDoorPlatform

logger = get_logger(__name__)


# Tool definitions
TOOLS = [
    Tool(
        name="get_door_state",
        description="Get the simulated door's lifecycle state, contact and battery",
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    Tool(
        name="get_door_history",
        description="Get the door history: times opened, last event and entries",
        inputSchema={
            "type": "object",
            "properties": {
                "limit": {
                    "type": "integer",
                    "description": "Return only the most recent N entries",
                    "minimum": 0,
                },
            },
            "required": [],
        },
    ),
    Tool(
        name="identify_door",
        description="Send the Identify command to the door (logs, snapshots history)",
        inputSchema={
            "type": "object",
            "properties": {
                "identify_time": {
                    "type": "integer",
                    "description": "Identify duration in seconds",
                    "default": 5,
                    "minimum": 0,
                },
            },
            "required": [],
        },
    ),
    Tool(
        name="trigger_door_effect",
        description="Send the Identify triggerEffect command to the door",
        inputSchema={
            "type": "object",
            "properties": {
                "effect": {
                    "type": "string",
                    "enum": [e.name.lower() for e in EffectIdentifier],
                    "description": "Effect identifier",
                    "default": "blink",
                },
                "variant": {
                    "type": "integer",
                    "description": "Effect variant",
                    "default": int(EffectVariant.DEFAULT),
                },
            },
            "required": [],
        },
    ),
]


def register(server: Server, platform: EveDoorPlatform) -> None:
    """Register door tools with the MCP server.

    Args:
        server: MCP Server instance, not yet running.
        platform: Platform whose door the tools act on.

    Example:
        >>> server = Server("eve-door")
        >>> register(server, platform)
    """

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        """Return the list of available door tools."""
        return TOOLS

    @server.call_tool()
    async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
        """Route tool calls to the door implementations.

        Args:
            name: Tool name from TOOLS.
            arguments: Arguments matching the tool's inputSchema.

        Returns:
            Single TextContent with a JSON result or an error message.
        """
        if name == "get_door_state":
            return await _get_door_state(platform)
        elif name == "get_door_history":
            return await _get_door_history(platform, arguments.get("limit"))
        elif name == "identify_door":
            return await _identify_door(platform, arguments.get("identify_time", 5))
        elif name == "trigger_door_effect":
            return await _trigger_door_effect(
                platform,
                arguments.get("effect", "blink"),
                arguments.get("variant", int(EffectVariant.DEFAULT)),
            )
        else:
            return [TextContent(type="text", text=f"Unknown tool: {name}")]


def _text(result: dict[str, Any]) -> list[TextContent]:
    return [TextContent(type="text", text=json.dumps(result, indent=2))]


async def _get_door_state(platform: EveDoorPlatform) -> list[TextContent]:
    """Report lifecycle state, sensor state and tick counters.

    Returns:
        JSON ``{"lifecycle", "sensor", "ticks", "armed"}``; ``sensor`` is
        null while the platform is not started.
    """
    try:
        engine = platform.engine
        sensor = engine.state if engine is not None else None
        result = {
            "lifecycle": platform.state.value,
            "sensor": sensor.to_dict() if sensor is not None else None,
            "ticks": engine.ticks if engine is not None else 0,
            "armed": platform.timer is not None and platform.timer.armed,
        }
        return _text(result)
    except Exception as e:
        logger.error("Error reading door state", error=str(e))
        return [TextContent(type="text", text=f"Error reading door state: {e}")]


async def _get_door_history(
    platform: EveDoorPlatform, limit: int | None
) -> list[TextContent]:
    """Report the history aggregate.

    Args:
        platform: The platform.
        limit: Keep only the most recent ``limit`` entries (None = all).
    """
    history = platform.history
    if history is None:
        return [TextContent(type="text", text="Door not started, no history")]

    result: dict[str, Any] = history.aggregate.to_dict()
    if limit is not None:
        result["entries"] = result["entries"][-limit:] if limit > 0 else []
    result["flush_requests"] = history.flush_requests
    return _text(result)


async def _identify_door(
    platform: EveDoorPlatform, identify_time: int
) -> list[TextContent]:
    """Run the door's identify command handler."""
    door = platform.door
    if door is None:
        return [TextContent(type="text", text="Door not started")]
    try:
        await door.execute_command_handler(
            "identify", {"identifyTime": int(identify_time)}
        )
    except Exception as e:
        logger.error("Error identifying door", error=str(e))
        return [TextContent(type="text", text=f"Error identifying door: {e}")]
    return _text({"command": "identify", "identify_time": int(identify_time)})


async def _trigger_door_effect(
    platform: EveDoorPlatform, effect: str, variant: int
) -> list[TextContent]:
    """Run the door's triggerEffect command handler."""
    door = platform.door
    if door is None:
        return [TextContent(type="text", text="Door not started")]

    try:
        effect_id = EffectIdentifier[effect.upper()]
    except KeyError:
        valid = [e.name.lower() for e in EffectIdentifier]
        return [
            TextContent(
                type="text", text=f"Invalid effect: {effect}. Valid effects: {valid}"
            )
        ]

    try:
        await door.execute_command_handler(
            "triggerEffect",
            {"effectIdentifier": int(effect_id), "effectVariant": int(variant)},
        )
    except Exception as e:
        logger.error("Error triggering door effect", error=str(e))
        return [TextContent(type="text", text=f"Error triggering door effect: {e}")]
    return _text(
        {
            "command": "triggerEffect",
            "effect": effect_id.name.lower(),
            "variant": int(variant),
        }
    )
