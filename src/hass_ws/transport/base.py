"""Frame transport abstraction.

The connection layer never touches sockets directly. It talks to a
FrameTransport that moves whole JSON objects:
- open/close: lifecycle of the underlying channel
- send: write one frame
- frames: async iterator of inbound frames, ending when the channel closes

Framing is one JSON object per message. Anything else is logged and
dropped here, before it reaches the demultiplexer.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class FrameTransport(Protocol):
    """Protocol for the low-level frame sender/receiver."""

    @property
    def is_open(self) -> bool:
        """Check if the channel is open."""
        ...

    async def open(self) -> None:
        """Open the channel.

        Raises:
            ConnectionFailedError: If the endpoint cannot be reached
        """
        ...

    async def send(self, frame: dict[str, Any]) -> None:
        """Write a single frame.

        Raises:
            ConnectionClosed: If the channel closed underneath the caller
        """
        ...

    def frames(self) -> AsyncIterator[dict[str, Any]]:
        """Yield inbound frames in arrival order until the channel closes."""
        ...

    async def close(self) -> None:
        """Close the channel. Safe to call more than once."""
        ...


def encode_frame(frame: dict[str, Any]) -> str:
    """Serialise one frame for the wire."""
    return json.dumps(frame)


def decode_frame(message: str | bytes) -> dict[str, Any] | None:
    """Decode one wire message into a frame.

    Returns None (after logging) when the message is not exactly one JSON
    object.
    """
    if isinstance(message, bytes):
        message = message.decode("utf-8", errors="replace")

    try:
        data = json.loads(message)
    except json.JSONDecodeError as e:
        logger.warning(f"Dropping undecodable frame: {e} (message: {message[:100]})")
        return None

    if not isinstance(data, dict):
        logger.warning(f"Dropping non-object frame of type {type(data).__name__}")
        return None
    return data
