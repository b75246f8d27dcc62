"""Shared test fixtures for modsync."""

from __future__ import annotations

import asyncio
import io
from typing import Any

import pytest
from websockets.exceptions import ConnectionClosed

from modsync.config import RuntimeConfig, ServerConfig
from modsync.modules.table import ModuleRecord, ModuleTable, PendingBatch
from modsync.observability.collector import SyncCollector
from modsync.observability.log import EventLog


class FakeWebSocket:
    """Records frames sent to it; raises ConnectionClosed once closed."""

    def __init__(self) -> None:
        self.sent: list[str] = []
        self.closed = False

    async def send(self, message: str) -> None:
        if self.closed:
            raise ConnectionClosed(None, None)
        self.sent.append(message)


class RecordingAck:
    """Ack sink that snapshots the table at the moment of each ack."""

    def __init__(self, table: ModuleTable | None = None) -> None:
        self.table = table
        self.acks = 0
        self.seen: list[dict[str, str]] = []

    async def send_ack(self) -> None:
        self.acks += 1
        if self.table is not None:
            self.seen.append(self.table.hashes())


def record(name: str, module_hash: str, **payload: Any) -> ModuleRecord:
    """Create a ModuleRecord the way the build process would describe it."""
    return ModuleRecord(name=name, hash=module_hash, payload={"hash": module_hash, **payload})


async def flush(rounds: int = 5) -> None:
    """Let pending tasks (connection senders) run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def stderr() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def collector(stderr: io.StringIO) -> SyncCollector:
    """A collector writing diagnostics to an in-memory stream."""
    return SyncCollector(EventLog(), stream=stderr)


@pytest.fixture
def table() -> ModuleTable:
    return ModuleTable()


@pytest.fixture
def pending() -> PendingBatch:
    return PendingBatch()


@pytest.fixture
def local_server() -> ServerConfig:
    """Loopback listen parameters on an OS-assigned port."""
    return ServerConfig(hostname="127.0.0.1", port=0)


@pytest.fixture
def runtime_config(tmp_path) -> RuntimeConfig:  # type: ignore[no-untyped-def]
    return RuntimeConfig(root=tmp_path, hostname="127.0.0.1", port=0, quiet=True)
