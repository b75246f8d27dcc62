"""modsync application — wires the control channel to the client server.

``SyncService`` owns one module table and hands it explicitly to every
component that reads or writes it.  ``run`` is the process entry point: it
opens the control pipe, consumes it until the build process goes away, and
returns exit status 0.
"""

from __future__ import annotations

import asyncio
import os
import socket
import stat
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from modsync._errors import ConfigError
from modsync.config_loader import load_config
from modsync.control.channel import ControlChannel, StreamAckSink
from modsync.modules.table import ModuleTable, PendingBatch
from modsync.observability.collector import SyncCollector
from modsync.observability.log import EventLog
from modsync.server.broadcaster import Broadcaster
from modsync.server.lifecycle import ServerLifecycle

if TYPE_CHECKING:
    from modsync.config import RuntimeConfig
    from modsync.control.channel import AckSink

# Module payloads carry full transformed source; one line can be large.
_LINE_LIMIT = 64 * 1024 * 1024


class SyncService:
    """One module table plus everything that reads and writes it.

    Args:
        config: Process-level options.
        ack: Upstream acknowledgement sink.
        collector: Event and diagnostic sink (created from *config* if omitted).

    """

    def __init__(
        self,
        config: RuntimeConfig,
        ack: AckSink,
        collector: SyncCollector | None = None,
    ) -> None:
        self.config = config
        self.collector = collector if collector is not None else SyncCollector(
            EventLog(config.max_events), quiet=config.quiet,
        )
        self.table = ModuleTable()
        self.pending = PendingBatch()
        self.lifecycle = ServerLifecycle(
            self.table, config.default_server, self.collector,
        )
        self.broadcaster = Broadcaster(self.lifecycle)
        self.channel = ControlChannel(
            self.table,
            self.pending,
            self.lifecycle,
            self.broadcaster,
            ack,
            self.collector,
        )

    async def serve(self, reader: asyncio.StreamReader) -> int:
        """Consume the control stream, then shut the listener down."""
        try:
            await self.channel.run(reader)
        finally:
            await self.lifecycle.close()
        return 0


async def open_control_streams(
    config: RuntimeConfig,
) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    """Open the control channel as an asyncio reader/writer pair.

    The build tool hands over a socket pair on ``control_fd``; a plain pipe
    (or stdin/stdout with ``stdio``) is handled as two one-way pipes.

    """
    if not config.stdio:
        try:
            mode = os.fstat(config.control_fd).st_mode
        except OSError as exc:
            msg = f"control fd {config.control_fd} is not open (use --stdio?)"
            raise ConfigError(msg) from exc
        if stat.S_ISSOCK(mode):
            sock = socket.socket(fileno=config.control_fd)
            return await asyncio.open_connection(sock=sock, limit=_LINE_LIMIT)

    if config.stdio:
        read_file = sys.stdin.buffer
        write_file = sys.stdout.buffer
    else:
        read_file = os.fdopen(config.control_fd, "rb", buffering=0)
        write_file = os.fdopen(os.dup(config.control_fd), "wb", buffering=0)

    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader(limit=_LINE_LIMIT)
    await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), read_file)
    transport, protocol = await loop.connect_write_pipe(
        asyncio.streams.FlowControlMixin, write_file,
    )
    writer = asyncio.StreamWriter(transport, protocol, reader, loop)
    return reader, writer


async def run_service(config: RuntimeConfig) -> int:
    """Run one sync service against the configured control channel."""
    reader, writer = await open_control_streams(config)
    service = SyncService(config, StreamAckSink(writer))
    try:
        return await service.serve(reader)
    finally:
        writer.close()


def run(root: str | Path = ".", **kwargs: object) -> int:
    """Start the sync service and block until the build process exits.

    Args:
        root: Directory searched for ``modsync.yaml`` / ``modsync.toml``.
        **kwargs: Override RuntimeConfig fields.

    Returns:
        Process exit status (0 on upstream end-of-stream).

    """
    config = load_config(Path(root), **kwargs)
    return asyncio.run(run_service(config))
