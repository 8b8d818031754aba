"""WebSocket frame transport.

Real network transport built on the `websockets` client. Protocol-level
pings keep the connection alive; a missed pong closes the socket, which
ends the frame iterator.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosed as WebSocketClosed
from websockets.exceptions import InvalidHandshake, InvalidURI

from ..errors import ConnectionClosed, ConnectionFailedError, NotConnectedError
from .base import decode_frame, encode_frame

logger = logging.getLogger(__name__)


class WebSocketFrameTransport:
    """FrameTransport over a single client WebSocket."""

    def __init__(
        self,
        url: str,
        *,
        ping_interval: float | None = 30.0,
        ping_timeout: float | None = 10.0,
        open_timeout: float | None = 10.0,
    ) -> None:
        self.url = url
        self.ping_interval = ping_interval
        self.ping_timeout = ping_timeout
        self.open_timeout = open_timeout
        self._ws: Any = None  # websockets ClientConnection

    @property
    def is_open(self) -> bool:
        """Check if the socket is open."""
        return self._ws is not None

    async def open(self) -> None:
        """Open the WebSocket."""
        try:
            self._ws = await websockets.connect(
                self.url,
                ping_interval=self.ping_interval,
                ping_timeout=self.ping_timeout,
                open_timeout=self.open_timeout,
                # get_states responses on large installs exceed the 1 MiB default
                max_size=None,
            )
        except (OSError, TimeoutError, InvalidURI, InvalidHandshake) as e:
            raise ConnectionFailedError(f"Cannot connect to {self.url}: {e}") from e
        logger.debug(f"WebSocket opened: {self.url}")

    async def send(self, frame: dict[str, Any]) -> None:
        """Send one frame as a text message."""
        if self._ws is None:
            raise NotConnectedError("WebSocket not open")
        try:
            await self._ws.send(encode_frame(frame))
        except WebSocketClosed as e:
            raise ConnectionClosed(f"WebSocket closed: {e}") from e

    async def frames(self) -> AsyncIterator[dict[str, Any]]:
        """Yield decoded frames until the socket closes."""
        if self._ws is None:
            raise NotConnectedError("WebSocket not open")

        try:
            async for message in self._ws:
                frame = decode_frame(message)
                if frame is not None:
                    yield frame
        except WebSocketClosed as e:
            logger.info(f"WebSocket closed by peer: {e}")

    async def close(self) -> None:
        """Close the WebSocket."""
        if self._ws is not None:
            ws, self._ws = self._ws, None
            await ws.close()
            logger.debug(f"WebSocket closed: {self.url}")
