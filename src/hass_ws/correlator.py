"""Request/response correlation over the shared connection.

Each call() stamps its command with a fresh integer id, parks a future
under that id, and waits. The demultiplexer hands result frames to
resolve(); the matching future is completed and the entry removed.
Frames with no matching entry (late answers after a timeout, stray ids)
are logged and dropped.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from .errors import CommandTimeoutError, HassWsError, RemoteError
from .protocol import Command, ResultMessage

logger = logging.getLogger(__name__)

FrameSender = Callable[[dict[str, Any]], Awaitable[None]]


@dataclass
class PendingRequest:
    """A command waiting for its single response."""

    id: int
    command_type: str
    future: asyncio.Future[Any]
    created_at: float = field(default_factory=lambda: asyncio.get_running_loop().time())


class Correlator:
    """Matches inbound results to in-flight commands by id."""

    def __init__(self, send: FrameSender, *, default_timeout: float | None = None) -> None:
        """
        Args:
            send: Coroutine that writes one frame to the connection
            default_timeout: Seconds to wait when call() gets no timeout
        """
        self._send = send
        self.default_timeout = default_timeout
        self._ids = itertools.count(1)
        self._pending: dict[int, PendingRequest] = {}

    @property
    def pending_count(self) -> int:
        """Number of commands awaiting a response."""
        return len(self._pending)

    def is_pending(self, message_id: int) -> bool:
        return message_id in self._pending

    def allocate_id(self) -> int:
        """Reserve the next correlation id."""
        return next(self._ids)

    async def call(
        self,
        command: Command,
        *,
        timeout: float | None = None,
        message_id: int | None = None,
    ) -> Any:
        """Send a command and wait for its result payload.

        Args:
            command: Command to send (its id is assigned here)
            timeout: Seconds to wait; falls back to default_timeout
            message_id: Id reserved earlier with allocate_id()

        Returns:
            The `result` field of the successful response

        Raises:
            RemoteError: If the upstream reports failure
            ConnectionClosed: If the connection closes while waiting
            CommandTimeoutError: If the timeout expires
            NotConnectedError: If the connection is not authenticated
        """
        if message_id is None:
            message_id = self.allocate_id()
        if message_id in self._pending:
            raise RuntimeError(f"Correlation id {message_id} is already pending")

        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._pending[message_id] = PendingRequest(
            id=message_id, command_type=command.type, future=future
        )

        try:
            await self._send(command.with_id(message_id).to_frame())

            wait = self.default_timeout if timeout is None else timeout
            try:
                return await asyncio.wait_for(future, timeout=wait)
            except TimeoutError:
                # wait_for cancelled the future; a late answer is now unmatched
                raise CommandTimeoutError(
                    f"No response to {command.type} (id={message_id}) within {wait}s"
                ) from None
        finally:
            self._pending.pop(message_id, None)

    def resolve(self, message: ResultMessage) -> bool:
        """Complete the pending request matching `message.id`.

        Returns:
            True if a pending request was resolved, False if unmatched
        """
        pending = self._pending.pop(message.id, None)
        if pending is None:
            logger.warning(f"Dropping result for unknown id {message.id}")
            return False

        if pending.future.done():
            return False

        if message.is_error():
            error = message.error
            pending.future.set_exception(
                RemoteError(
                    error.code if error else None,
                    error.message if error else "Unknown error",
                    error.model_dump() if error else None,
                )
            )
        else:
            pending.future.set_result(message.result)
        return True

    def fail_all(self, error: HassWsError) -> int:
        """Fail every pending request with `error`.

        Returns:
            Number of requests failed
        """
        pending = list(self._pending.values())
        self._pending.clear()
        for request in pending:
            if not request.future.done():
                request.future.set_exception(error)
        if pending:
            logger.info(f"Failed {len(pending)} pending request(s): {error}")
        return len(pending)
