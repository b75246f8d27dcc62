"""Client connection — per-client state and outbound queue.

A connection is registered as soon as the transport opens and starts in
``AWAITING_SYNC``.  Answering the client's ``sync`` moves it to ``SYNCED``,
where it stays until the transport closes.

Outbound frames go through an ``asyncio.Queue`` drained by a sender task,
so neither the sync handler nor a broadcast ever waits on a slow client.
Frames are sent in the order they were enqueued.
"""

from __future__ import annotations

import asyncio
import enum
from typing import TYPE_CHECKING, Protocol

from websockets.exceptions import ConnectionClosed

from modsync.observability.collector import SyncCollector

if TYPE_CHECKING:
    from modsync._types import ClientID


class FrameSink(Protocol):
    """The part of a WebSocket connection a ``Connection`` writes to."""

    async def send(self, message: str) -> None: ...


class ConnectionState(enum.Enum):
    AWAITING_SYNC = "awaiting_sync"
    SYNCED = "synced"


class Connection:
    """A connected client.

    Args:
        client_id: Unique identifier for this connection.
        websocket: Transport to write frames to.
        maxsize: Outbound queue bound (0 = unbounded).
        collector: Where send failures are reported.

    """

    __slots__ = (
        "_closed", "_collector", "_queue", "_sender", "client_id", "state", "websocket",
    )

    def __init__(
        self,
        client_id: ClientID,
        websocket: FrameSink,
        maxsize: int = 0,
        collector: SyncCollector | None = None,
    ) -> None:
        self.client_id = client_id
        self.websocket = websocket
        self.state = ConnectionState.AWAITING_SYNC
        self._queue: asyncio.Queue[str] = asyncio.Queue(maxsize=maxsize)
        self._sender: asyncio.Task[None] | None = None
        self._closed = False
        self._collector = collector if collector is not None else SyncCollector()

    def __repr__(self) -> str:
        return f"Connection({self.client_id!r}, {self.state.value})"

    @property
    def is_synced(self) -> bool:
        return self.state is ConnectionState.SYNCED

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        """Frames enqueued but not yet handed to the transport."""
        return self._queue.qsize()

    def mark_synced(self) -> None:
        self.state = ConnectionState.SYNCED

    def deliver(self, frame: str) -> bool:
        """Enqueue a frame without blocking.

        Returns:
            False if the connection is closed or its queue is full.

        """
        if self._closed:
            return False
        try:
            self._queue.put_nowait(frame)
        except asyncio.QueueFull:
            return False
        return True

    def start(self) -> asyncio.Task[None]:
        """Spawn the sender task (idempotent)."""
        if self._sender is None:
            self._sender = asyncio.create_task(
                self._send_loop(), name=f"modsync-send-{self.client_id}",
            )
        return self._sender

    def close(self) -> None:
        """Stop accepting frames and cancel the sender."""
        self._closed = True
        if self._sender is not None and not self._sender.done():
            self._sender.cancel()

    async def _send_loop(self) -> None:
        try:
            while True:
                frame = await self._queue.get()
                await self.websocket.send(frame)
        except ConnectionClosed:
            self._closed = True
        except asyncio.CancelledError:
            return
        except Exception as exc:
            # Nothing drains the queue once this task ends.
            self._closed = True
            self._collector.report(f"Send to {self.client_id} failed: {exc!r}")
