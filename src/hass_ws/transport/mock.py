"""In-memory frame transport for testing.

Plays the upstream side of the protocol: answers the auth handshake,
records every frame sent, and can auto-answer commands with canned
results. Push frames are injected by the test.

Usage:
    transport = MockFrameTransport()
    transport.set_result("get_config", {"version": "2024.1"})

    session = HomeAssistantSession(config, transport=transport)
    assert await session.get_config() == {"version": "2024.1"}
    assert transport.commands[0]["type"] == "get_config"
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Any

from ..errors import ConnectionClosed
from ..protocol import MessageType


class MockFrameTransport:
    """FrameTransport with no I/O."""

    def __init__(
        self,
        *,
        accept_token: str | None = None,
        ha_version: str = "2024.1.0",
        fail_open: Exception | None = None,
        open_delay: float = 0.0,
    ) -> None:
        """
        Args:
            accept_token: Only this token authenticates (any token when None)
            ha_version: Version reported in auth_ok
            fail_open: Exception raised by open() (e.g. ConnectionFailedError)
            open_delay: Seconds open() sleeps before completing
        """
        self.accept_token = accept_token
        self.ha_version = ha_version
        self.fail_open = fail_open
        self.open_delay = open_delay

        self.sent: list[dict[str, Any]] = []
        self.open_count = 0
        self._open = False
        self._inbound: asyncio.Queue[dict[str, Any] | None] = asyncio.Queue()
        self._responses: dict[str, dict[str, Any]] = {}

    @property
    def is_open(self) -> bool:
        return self._open

    @property
    def commands(self) -> list[dict[str, Any]]:
        """Frames sent after the handshake."""
        return [f for f in self.sent if f.get("type") != MessageType.AUTH.value]

    @property
    def auth_attempts(self) -> int:
        """Number of auth frames received."""
        return sum(1 for f in self.sent if f.get("type") == MessageType.AUTH.value)

    def set_result(self, command_type: str, result: Any = None) -> None:
        """Auto-answer `command_type` with a successful result."""
        self._responses[command_type] = {"success": True, "result": result}

    def set_error(self, command_type: str, code: str, message: str) -> None:
        """Auto-answer `command_type` with a failed result."""
        self._responses[command_type] = {
            "success": False,
            "error": {"code": code, "message": message},
        }

    def inject(self, frame: dict[str, Any]) -> None:
        """Deliver a frame as if the upstream had sent it."""
        self._inbound.put_nowait(frame)

    def push_result(self, message_id: int, result: Any = None) -> None:
        """Deliver a successful result for `message_id`."""
        self.inject({"id": message_id, "type": "result", "success": True, "result": result})

    def push_event(self, subscription_id: int, event: dict[str, Any]) -> None:
        """Deliver a push event for `subscription_id`."""
        self.inject({"id": subscription_id, "type": "event", "event": event})

    def drop(self) -> None:
        """Simulate the upstream closing the connection."""
        self._open = False
        self._inbound.put_nowait(None)

    async def open(self) -> None:
        self.open_count += 1
        if self.open_delay:
            await asyncio.sleep(self.open_delay)
        if self.fail_open is not None:
            raise self.fail_open
        self._inbound = asyncio.Queue()
        self._open = True
        self.inject({"type": MessageType.AUTH_REQUIRED.value, "ha_version": self.ha_version})

    async def send(self, frame: dict[str, Any]) -> None:
        if not self._open:
            raise ConnectionClosed("Mock transport closed")
        self.sent.append(frame)

        if frame.get("type") == MessageType.AUTH.value:
            self._answer_auth(frame.get("access_token"))
            return

        if frame.get("type") == "ping":
            self.inject({"id": frame["id"], "type": MessageType.PONG.value})
            return

        canned = self._responses.get(frame.get("type", ""))
        if canned is not None:
            self.inject({"id": frame["id"], "type": MessageType.RESULT.value, **canned})

    def _answer_auth(self, token: str | None) -> None:
        if self.accept_token is None or token == self.accept_token:
            self.inject({"type": MessageType.AUTH_OK.value, "ha_version": self.ha_version})
        else:
            self.inject(
                {"type": MessageType.AUTH_INVALID.value, "message": "Invalid access token"}
            )

    async def frames(self) -> AsyncIterator[dict[str, Any]]:
        queue = self._inbound
        while True:
            frame = await queue.get()
            if frame is None:
                return
            yield frame

    async def close(self) -> None:
        if self._open:
            self._open = False
            self._inbound.put_nowait(None)
