"""Wire message models for the Home Assistant WebSocket API.

Outgoing commands carry a numeric `id`; the upstream echoes it on the
matching result. Push events reuse the id of the subscribe command that
created them.

Example (command round trip):
    -> {"id": 1, "type": "get_config"}
    <- {"id": 1, "type": "result", "success": true, "result": {...}}

Example (push event):
    <- {"id": 7, "type": "event", "event": {"event_type": "state_changed", ...}}
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class MessageType(str, Enum):
    """Frame types exchanged with the upstream."""

    # Handshake
    AUTH_REQUIRED = "auth_required"
    AUTH = "auth"
    AUTH_OK = "auth_ok"
    AUTH_INVALID = "auth_invalid"

    # Responses
    RESULT = "result"
    PONG = "pong"

    # Server push
    EVENT = "event"


class CommandType(str, Enum):
    """Command kinds the session issues."""

    GET_STATES = "get_states"
    GET_CONFIG = "get_config"
    GET_SERVICES = "get_services"
    CALL_SERVICE = "call_service"
    SUBSCRIBE_EVENTS = "subscribe_events"
    SUBSCRIBE_TRIGGER = "subscribe_trigger"
    UNSUBSCRIBE_EVENTS = "unsubscribe_events"
    FIRE_EVENT = "fire_event"
    CHECK_CONFIG = "core/check_config"
    PING = "ping"


class Command(BaseModel):
    """An outgoing command frame.

    Extra keyword fields are carried verbatim next to `type`, matching the
    flat layout the upstream expects. The `id` is assigned by the
    correlator just before sending.
    """

    model_config = ConfigDict(extra="allow")

    type: str
    id: int | None = None

    @classmethod
    def create(cls, command_type: str | CommandType, **fields: Any) -> Command:
        """Factory that drops fields whose value is None."""
        kind = command_type.value if isinstance(command_type, CommandType) else command_type
        return cls(type=kind, **{k: v for k, v in fields.items() if v is not None})

    def with_id(self, message_id: int) -> Command:
        """Return a copy stamped with a correlation id."""
        return self.model_copy(update={"id": message_id})

    def to_frame(self) -> dict[str, Any]:
        """Serialise to the dict sent on the wire."""
        return self.model_dump(exclude_none=True)

    # Convenience factories for common commands
    @classmethod
    def call_service(
        cls,
        domain: str,
        service: str,
        service_data: dict[str, Any] | None = None,
        target: dict[str, Any] | None = None,
    ) -> Command:
        """Create a call_service command."""
        return cls.create(
            CommandType.CALL_SERVICE,
            domain=domain,
            service=service,
            service_data=service_data,
            target=target,
        )

    @classmethod
    def subscribe_events(cls, event_type: str | None = None) -> Command:
        """Create a subscribe_events command (all events when event_type is None)."""
        return cls.create(CommandType.SUBSCRIBE_EVENTS, event_type=event_type)

    @classmethod
    def subscribe_trigger(cls, trigger: dict[str, Any] | list[dict[str, Any]]) -> Command:
        """Create a subscribe_trigger command."""
        return cls.create(CommandType.SUBSCRIBE_TRIGGER, trigger=trigger)

    @classmethod
    def unsubscribe_events(cls, subscription: int) -> Command:
        """Create the cancellation command for a subscription."""
        return cls.create(CommandType.UNSUBSCRIBE_EVENTS, subscription=subscription)

    @classmethod
    def fire_event(cls, event_type: str, event_data: dict[str, Any] | None = None) -> Command:
        """Create a fire_event command."""
        return cls.create(CommandType.FIRE_EVENT, event_type=event_type, event_data=event_data)


class ResultError(BaseModel):
    """Error object attached to a failed result."""

    model_config = ConfigDict(extra="allow")

    code: str | None = None
    message: str = "Unknown error"


class ResultMessage(BaseModel):
    """Response to a command, matched by `id`.

    A `pong` frame is treated as a successful result with no payload.
    """

    model_config = ConfigDict(extra="allow")

    id: int
    type: str = MessageType.RESULT.value
    success: bool = True
    result: Any = None
    error: ResultError | None = None

    def is_error(self) -> bool:
        """Check if the upstream reported failure."""
        return not self.success


class EventMessage(BaseModel):
    """Push frame routed to a subscription by `id`."""

    model_config = ConfigDict(extra="allow")

    id: int
    type: str = MessageType.EVENT.value
    event: dict[str, Any] = Field(default_factory=dict)


class AuthMessage(BaseModel):
    """Handshake frame (auth_required / auth_ok / auth_invalid)."""

    model_config = ConfigDict(extra="allow")

    type: str
    ha_version: str | None = None
    message: str | None = None

    @property
    def accepted(self) -> bool:
        return self.type == MessageType.AUTH_OK.value

    @property
    def rejected(self) -> bool:
        return self.type == MessageType.AUTH_INVALID.value


def auth_frame(access_token: str) -> dict[str, Any]:
    """Build the client half of the handshake."""
    return {"type": MessageType.AUTH.value, "access_token": access_token}


def parse_frame(frame: dict[str, Any]) -> ResultMessage | EventMessage | AuthMessage | None:
    """Classify an inbound frame.

    Returns None for frames that are not understood (missing or
    non-numeric id on a result/event, unknown type); the caller logs and
    drops those.
    """
    frame_type = frame.get("type")
    try:
        if frame_type == MessageType.EVENT.value:
            return EventMessage.model_validate(frame)
        if frame_type == MessageType.RESULT.value:
            return ResultMessage.model_validate(frame)
        if frame_type == MessageType.PONG.value:
            return ResultMessage(id=frame["id"], type=MessageType.PONG.value)
        if frame_type in (
            MessageType.AUTH_REQUIRED.value,
            MessageType.AUTH_OK.value,
            MessageType.AUTH_INVALID.value,
        ):
            return AuthMessage.model_validate(frame)
    except (KeyError, ValidationError):
        return None
    return None
