"""Home Assistant WebSocket protocol layer.

Defines the frames that cross the single upstream connection:
- Commands: client -> upstream requests carrying a numeric id
- Results: upstream responses echoing that id
- Events: upstream pushes tagged with a subscription id
- Auth: the one-time handshake frames
"""

from .messages import (
    AuthMessage,
    Command,
    CommandType,
    EventMessage,
    MessageType,
    ResultError,
    ResultMessage,
    auth_frame,
    parse_frame,
)

__all__ = [
    "AuthMessage",
    "Command",
    "CommandType",
    "EventMessage",
    "MessageType",
    "ResultError",
    "ResultMessage",
    "auth_frame",
    "parse_frame",
]
