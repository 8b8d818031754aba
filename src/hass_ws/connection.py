"""Authenticated connection to the Home Assistant WebSocket API.

Owns the single upstream channel:
- connect(): open + auth handshake, de-duplicated across concurrent callers
- send(): serialised writes, only while authenticated
- a background reader that hands every inbound frame, in arrival order,
  to exactly one frame handler
- close(): tears the channel down and reports ConnectionClosed to the
  close handler (the session uses it to fail pending work)

State machine:
    disconnected -> connecting -> authenticated -> disconnected
    connecting -> disconnected (handshake failure)
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Callable
from enum import Enum
from typing import Any

from .errors import (
    AuthenticationError,
    ConnectionClosed,
    ConnectionFailedError,
    HassWsError,
    NotConnectedError,
)
from .protocol import AuthMessage, MessageType, auth_frame, parse_frame
from .transport import FrameTransport

logger = logging.getLogger(__name__)

FrameHandler = Callable[[dict[str, Any]], None]
CloseHandler = Callable[[HassWsError], None]


class ConnectionState(str, Enum):
    """Connection state machine."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AUTHENTICATED = "authenticated"


class Connection:
    """Single authenticated channel over a FrameTransport."""

    def __init__(
        self,
        transport: FrameTransport,
        access_token: str,
        *,
        connect_timeout: float | None = 10.0,
    ) -> None:
        self._transport = transport
        self._access_token = access_token
        self.connect_timeout = connect_timeout

        self._state = ConnectionState.DISCONNECTED
        self._connect_task: asyncio.Task[None] | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._frames: AsyncIterator[dict[str, Any]] | None = None
        self._send_lock = asyncio.Lock()

        self._on_frame: FrameHandler | None = None
        self._on_close: CloseHandler | None = None

        # Reported by the upstream in auth_ok
        self.ha_version: str | None = None

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._state

    @property
    def is_authenticated(self) -> bool:
        """Check if frames can be sent."""
        return self._state == ConnectionState.AUTHENTICATED

    def set_frame_handler(self, handler: FrameHandler) -> None:
        """Register the single demultiplexing callback for inbound frames."""
        self._on_frame = handler

    def set_close_handler(self, handler: CloseHandler) -> None:
        """Register the callback told about connection loss."""
        self._on_close = handler

    async def connect(self) -> None:
        """Open and authenticate the channel.

        No-op when already authenticated. Concurrent callers during an
        in-flight attempt all await that one attempt and see its outcome.

        Raises:
            ConnectionFailedError: If the endpoint is unreachable
            AuthenticationError: If the access token is rejected
        """
        if self._state == ConnectionState.AUTHENTICATED:
            return

        if self._connect_task is None:
            self._connect_task = asyncio.create_task(self._establish())

        task = self._connect_task
        try:
            await asyncio.shield(task)
        finally:
            if task.done() and self._connect_task is task:
                self._connect_task = None

    async def _establish(self) -> None:
        self._state = ConnectionState.CONNECTING
        try:
            await asyncio.wait_for(self._handshake(), timeout=self.connect_timeout)
        except BaseException as e:
            self._state = ConnectionState.DISCONNECTED
            self._frames = None
            await self._transport.close()
            if isinstance(e, TimeoutError):
                raise ConnectionFailedError(
                    f"Handshake timed out after {self.connect_timeout}s"
                ) from e
            if isinstance(e, Exception) and not isinstance(e, HassWsError):
                raise ConnectionFailedError(f"Failed to connect: {e}") from e
            raise

        self._state = ConnectionState.AUTHENTICATED
        self._reader_task = asyncio.create_task(self._read_loop())
        logger.info(f"Connected to Home Assistant {self.ha_version or '(unknown version)'}")

    async def _handshake(self) -> None:
        await self._transport.open()
        self._frames = aiter(self._transport.frames())

        greeting = parse_frame(await self._next_frame())
        if not isinstance(greeting, AuthMessage) or greeting.type != MessageType.AUTH_REQUIRED:
            raise ConnectionFailedError("Upstream did not request authentication")

        await self._transport.send(auth_frame(self._access_token))

        reply = parse_frame(await self._next_frame())
        if isinstance(reply, AuthMessage) and reply.accepted:
            self.ha_version = reply.ha_version
            return
        if isinstance(reply, AuthMessage) and reply.rejected:
            raise AuthenticationError(reply.message or "Invalid access token")
        raise ConnectionFailedError("Unexpected reply to authentication")

    async def _next_frame(self) -> dict[str, Any]:
        assert self._frames is not None
        try:
            return await anext(self._frames)
        except StopAsyncIteration:
            raise ConnectionFailedError("Connection closed during handshake") from None

    async def send(self, frame: dict[str, Any]) -> None:
        """Send one frame. Writes never interleave.

        Raises:
            NotConnectedError: If the connection is not authenticated
        """
        if self._state != ConnectionState.AUTHENTICATED:
            raise NotConnectedError(f"Cannot send while {self._state.value}")

        async with self._send_lock:
            logger.debug(f"-> {frame.get('type')} id={frame.get('id')}")
            await self._transport.send(frame)

    async def _read_loop(self) -> None:
        """Background task delivering inbound frames to the frame handler."""
        assert self._frames is not None
        try:
            async for frame in self._frames:
                self._dispatch(frame)
        except Exception as e:
            logger.error(f"Read loop error: {e}")
            reason = ConnectionClosed(f"Transport error: {e}")
        else:
            reason = ConnectionClosed("Connection closed by upstream")

        # Reached only when the upstream went away; close() cancels this task
        if self._reader_task is asyncio.current_task():
            self._reader_task = None
            logger.warning(f"Connection lost: {reason}")
            await self._shutdown(reason)

    def _dispatch(self, frame: dict[str, Any]) -> None:
        logger.debug(f"<- {frame.get('type')} id={frame.get('id')}")
        if self._on_frame is None:
            logger.warning(f"No frame handler, dropping {frame.get('type')} frame")
            return
        try:
            self._on_frame(frame)
        except Exception:
            logger.exception(f"Frame handler failed on {frame.get('type')} frame")

    async def close(self) -> None:
        """Close the channel and report ConnectionClosed to the close handler."""
        connect_task, self._connect_task = self._connect_task, None
        if connect_task is not None and not connect_task.done():
            connect_task.cancel()
            with contextlib.suppress(asyncio.CancelledError, HassWsError):
                await connect_task

        if self._state == ConnectionState.DISCONNECTED:
            return

        reader, self._reader_task = self._reader_task, None
        if reader is not None:
            reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reader

        await self._shutdown(ConnectionClosed("Connection closed"))

    async def _shutdown(self, reason: HassWsError) -> None:
        # Fail this connection's work before yielding; a caller may
        # reconnect while the transport is still closing.
        self._state = ConnectionState.DISCONNECTED
        self._frames = None
        if self._on_close is not None:
            self._on_close(reason)
        await self._transport.close()
        logger.info("Disconnected from Home Assistant")
