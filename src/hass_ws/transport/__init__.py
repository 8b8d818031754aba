"""Transport layer.

The session talks to the upstream through a FrameTransport:
- WebSocketFrameTransport - real socket via the `websockets` client
- MockFrameTransport - in-memory upstream for tests and embedding
"""

from .base import FrameTransport, decode_frame, encode_frame
from .mock import MockFrameTransport
from .websocket import WebSocketFrameTransport

__all__ = [
    "FrameTransport",
    "MockFrameTransport",
    "WebSocketFrameTransport",
    "decode_frame",
    "encode_frame",
]
