"""Control channel — applies the build process's message stream.

Messages are handled strictly in arrival order.  ``newModule`` only stages
records; ``removedModules`` is the commit marker:

    1. acknowledge upstream, so the build can start preparing the next batch
    2. merge the pending batch and drop the removed names
    3. make sure the client listener is up
    4. broadcast the batch if it changed anything
    5. leave the pending batch empty

A line that cannot be parsed, or a message type this server does not know,
is reported and skipped.  End of stream is a normal shutdown.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Protocol, assert_never

from modsync._errors import ProtocolError
from modsync.control.messages import (
    ConfigMessage,
    NewModuleMessage,
    RemovedModulesMessage,
    UnknownMessage,
    encode_ack,
    parse_control_line,
)
from modsync.observability.collector import SyncCollector

if TYPE_CHECKING:
    from modsync.control.messages import ControlMessage
    from modsync.modules.table import Batch, ModuleTable, PendingBatch
    from modsync.server.broadcaster import Broadcaster
    from modsync.server.lifecycle import ServerLifecycle


class AckSink(Protocol):
    """Upstream write side: where commit acknowledgements go."""

    async def send_ack(self) -> None: ...


class StreamAckSink:
    """Writes ``confirmNewModuleData`` lines to an asyncio stream."""

    __slots__ = ("_writer",)

    def __init__(self, writer: asyncio.StreamWriter) -> None:
        self._writer = writer

    async def send_ack(self) -> None:
        self._writer.write(encode_ack())
        await self._writer.drain()


class ControlChannel:
    """Single writer of the module table.

    Args:
        table: The authoritative module table.
        pending: Staging area for the batch in progress.
        lifecycle: Listener lifecycle, started on the first commit.
        broadcaster: Pushes each commit's delta to synced clients.
        ack: Upstream acknowledgement sink.
        collector: Event and diagnostic sink.

    """

    def __init__(
        self,
        table: ModuleTable,
        pending: PendingBatch,
        lifecycle: ServerLifecycle,
        broadcaster: Broadcaster,
        ack: AckSink,
        collector: SyncCollector | None = None,
    ) -> None:
        self._table = table
        self._pending = pending
        self._lifecycle = lifecycle
        self._broadcaster = broadcaster
        self._ack = ack
        self._collector = collector if collector is not None else SyncCollector()
        self._commits = 0

    @property
    def commits(self) -> int:
        """Number of commit markers processed."""
        return self._commits

    async def run(self, reader: asyncio.StreamReader) -> None:
        """Consume lines until the upstream closes its side."""
        while True:
            try:
                line = await reader.readline()
            except ValueError as exc:
                # Line longer than the reader limit; the stream drops it.
                self._collector.record_rejected("malformed", "", str(exc))
                continue
            if not line:
                self._collector.report("Control channel closed, shutting down")
                return
            await self.handle_line(line)

    async def handle_line(self, line: str | bytes) -> None:
        """Parse and apply one line.  Never raises for bad input."""
        if not line.strip():
            return
        try:
            message = parse_control_line(line)
        except ProtocolError as exc:
            text = line.decode("utf-8", "replace") if isinstance(line, bytes) else line
            self._collector.record_rejected("malformed", text, str(exc))
            return
        await self.handle_message(message)

    async def handle_message(self, message: ControlMessage) -> None:
        match message:
            case ConfigMessage(config=config):
                self._lifecycle.configure(config)
            case NewModuleMessage(record=record):
                self._pending.add(record)
            case RemovedModulesMessage(names=names):
                await self._commit(names)
            case UnknownMessage(type=msg_type, raw=raw):
                self._collector.record_rejected("unknown_type", str(dict(raw)), msg_type)
            case _:
                assert_never(message)

    async def _commit(self, removed: tuple[str, ...]) -> Batch:
        t0 = time.perf_counter()
        try:
            await self._ack.send_ack()
        except OSError as exc:
            self._collector.report(f"Could not acknowledge commit upstream: {exc}")

        batch = self._table.commit(self._pending, removed)
        self._commits += 1

        await self._lifecycle.ensure_started()

        notified = 0
        if not batch.is_empty:
            notified = self._broadcaster.broadcast(batch)

        self._collector.record_commit(
            added=len(batch.new_module_data),
            removed=len(batch.removed_modules),
            table_size=len(self._table),
            clients_notified=notified,
            duration_ms=(time.perf_counter() - t0) * 1000,
        )
        return batch
