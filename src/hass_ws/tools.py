"""WebSocket tools for agent/automation clients.

Thin adapters over HomeAssistantSession: validate arguments, call the
session, and shape the answer as text content. This is the layer that
turns session errors into readable failures; the session itself never
swallows them.

Architecture:
- ToolDefinition: name, description, pydantic input model, handler
- ToolRegistry: name -> definition, dispatches call(name, arguments)
- ToolResult: success/output/error, rendered as text content

Usage:
    session = HomeAssistantSession.from_env()
    registry = create_websocket_tool_registry(session)

    result = await registry.call("fireEvent", {"event_type": "my_event"})
    print(result.to_content())
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from .errors import (
    AuthenticationError,
    CommandTimeoutError,
    ConnectionClosed,
    ConnectionFailedError,
    HassWsError,
    RemoteError,
)
from .session import HomeAssistantSession

logger = logging.getLogger(__name__)


@dataclass
class ToolResult:
    """Result from a tool execution.

    Attributes:
        success: Whether the tool executed successfully
        output: JSON-serialisable output
        error: Error message if success is False
    """

    success: bool = True
    output: Any = None
    error: str | None = None

    def to_content(self) -> list[dict[str, Any]]:
        """Render as a single pretty-printed text content item."""
        body = self.output if self.success else {"success": False, "error": self.error}
        return [{"type": "text", "text": json.dumps(body, indent=2, default=str)}]


ToolHandler = Callable[[HomeAssistantSession, Any], Awaitable[Any]]


@dataclass
class ToolDefinition:
    """Definition of a session-backed tool.

    Attributes:
        name: Unique identifier for the tool
        description: Human-readable description for the LLM
        input_model: Pydantic model validating the arguments
        handler: Async function (session, validated input) -> output or ToolResult
    """

    name: str
    description: str
    input_model: type[BaseModel]
    handler: ToolHandler

    def __post_init__(self) -> None:
        """Validate the tool definition."""
        if not self.name:
            raise ValueError("Tool name cannot be empty")
        if not self.description:
            raise ValueError("Tool description cannot be empty")
        if not callable(self.handler):
            raise ValueError("Tool handler must be callable")

    @property
    def parameters(self) -> dict[str, Any]:
        """JSON Schema for the tool's input."""
        return self.input_model.model_json_schema()


def describe_error(error: HassWsError, session: HomeAssistantSession) -> str:
    """Turn a session error into a message for the tool caller."""
    if isinstance(error, AuthenticationError):
        return (
            f"Authentication failed: {error}. "
            "Please check your HA_TOKEN environment variable."
        )
    if isinstance(error, ConnectionFailedError):
        return (
            f"{error}. Please check if Home Assistant is running and accessible "
            f"at {session.config.url}."
        )
    if isinstance(error, RemoteError):
        return f"Home Assistant rejected the request: {error}"
    if isinstance(error, CommandTimeoutError):
        return f"Timed out waiting for Home Assistant: {error}"
    if isinstance(error, ConnectionClosed):
        return f"Connection to Home Assistant was lost: {error}"
    return str(error)


class ToolRegistry:
    """Registry of tools bound to one session."""

    def __init__(self, session: HomeAssistantSession) -> None:
        self._session = session
        self._tools: dict[str, ToolDefinition] = {}

    def register(self, tool: ToolDefinition) -> None:
        """Register a tool.

        Raises:
            ValueError: If a tool with the same name is already registered
        """
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' already registered")
        self._tools[tool.name] = tool
        logger.debug(f"Registered tool: {tool.name}")

    def get(self, name: str) -> ToolDefinition | None:
        return self._tools.get(name)

    def list_tools(self) -> list[ToolDefinition]:
        return list(self._tools.values())

    def list_names(self) -> list[str]:
        return list(self._tools.keys())

    @property
    def count(self) -> int:
        """Number of registered tools."""
        return len(self._tools)

    async def call(self, name: str, arguments: dict[str, Any] | None = None) -> ToolResult:
        """Validate arguments and run a tool.

        Never raises for unknown tools, invalid arguments or session
        errors; those come back as failed results.
        """
        tool = self._tools.get(name)
        if tool is None:
            return ToolResult(success=False, error=f"Unknown tool: {name}")

        try:
            args = tool.input_model.model_validate(arguments or {})
        except ValidationError as e:
            return ToolResult(success=False, error=f"Invalid arguments for {name}: {e}")

        try:
            output = await tool.handler(self._session, args)
        except HassWsError as e:
            logger.error(f"Tool '{name}' failed: {e}")
            return ToolResult(success=False, error=describe_error(e, self._session))
        if isinstance(output, ToolResult):
            return output
        return ToolResult(success=True, output=output)


# =============================================================================
# Tool inputs
# =============================================================================


class NoInput(BaseModel):
    """Tools that take no arguments."""

    pass


class SubscribeToEventsInput(BaseModel):
    event_type: str | None = Field(
        default=None, description="Type of event to subscribe to (optional)"
    )
    duration: float = Field(
        default=5.0, ge=0, le=300, description="Seconds to collect events before unsubscribing"
    )


class EntityStateInput(BaseModel):
    entity_id: str = Field(min_length=1, description="Entity to look up (e.g. light.kitchen)")


class FireEventInput(BaseModel):
    event_type: str = Field(min_length=1, description="Type of event to fire")
    event_data: dict[str, Any] | None = Field(
        default=None, description="Data to include with the event"
    )


# =============================================================================
# Handlers
# =============================================================================


async def connect_websocket(session: HomeAssistantSession, args: NoInput) -> dict[str, Any]:
    await session.connect()
    return {
        "success": True,
        "message": "Connected to Home Assistant WebSocket API",
        "ha_version": session.ha_version,
    }


async def subscribe_to_events(
    session: HomeAssistantSession, args: SubscribeToEventsInput
) -> dict[str, Any]:
    """Collect events for a fixed window, then unsubscribe."""
    events: list[dict[str, Any]] = []
    unsubscribe = await session.subscribe_events(events.append, args.event_type)
    try:
        await asyncio.sleep(args.duration)
    finally:
        await unsubscribe()
    return {"events": events}


async def fire_event(session: HomeAssistantSession, args: FireEventInput) -> dict[str, Any]:
    await session.fire_event(args.event_type, args.event_data)
    return {"success": True, "message": f"Event {args.event_type} fired successfully"}


async def check_config(session: HomeAssistantSession, args: NoInput) -> dict[str, Any]:
    result = await session.validate_config() or {}
    return {"success": True, "valid": result.get("result") == "valid", **result}


async def get_ha_config(session: HomeAssistantSession, args: NoInput) -> Any:
    return await session.get_config()


async def get_available_services(session: HomeAssistantSession, args: NoInput) -> Any:
    return await session.get_services()


async def get_all_entity_states(session: HomeAssistantSession, args: NoInput) -> Any:
    return await session.get_all_states()


async def get_entity_state(session: HomeAssistantSession, args: EntityStateInput) -> Any:
    state = await session.get_state(args.entity_id)
    if state is None:
        return ToolResult(success=False, error=f"Entity {args.entity_id} not found")
    return state


WEBSOCKET_TOOLS: list[ToolDefinition] = [
    ToolDefinition(
        name="connectWebSocket",
        description="Connects to the Home Assistant WebSocket API",
        input_model=NoInput,
        handler=connect_websocket,
    ),
    ToolDefinition(
        name="subscribeToEvents",
        description="Subscribes to Home Assistant events via WebSocket",
        input_model=SubscribeToEventsInput,
        handler=subscribe_to_events,
    ),
    ToolDefinition(
        name="fireEvent",
        description="Fires a custom event in Home Assistant via WebSocket",
        input_model=FireEventInput,
        handler=fire_event,
    ),
    ToolDefinition(
        name="checkConfig",
        description="Checks the Home Assistant configuration for errors",
        input_model=NoInput,
        handler=check_config,
    ),
    ToolDefinition(
        name="getHaConfig",
        description="Retrieves the Home Assistant configuration via WebSocket",
        input_model=NoInput,
        handler=get_ha_config,
    ),
    ToolDefinition(
        name="getAvailableServices",
        description="Retrieves all available services from Home Assistant via WebSocket",
        input_model=NoInput,
        handler=get_available_services,
    ),
    ToolDefinition(
        name="getAllEntityStates",
        description="Retrieves all entity states from Home Assistant via WebSocket",
        input_model=NoInput,
        handler=get_all_entity_states,
    ),
    ToolDefinition(
        name="getEntityState",
        description="Retrieves the state of one entity from Home Assistant via WebSocket",
        input_model=EntityStateInput,
        handler=get_entity_state,
    ),
]


def create_websocket_tool_registry(session: HomeAssistantSession) -> ToolRegistry:
    """Create a registry holding every WebSocket tool, bound to `session`."""
    registry = ToolRegistry(session)
    for tool in WEBSOCKET_TOOLS:
        registry.register(tool)
    return registry
