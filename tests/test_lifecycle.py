"""Tests for modsync.server.lifecycle — listener start-once and sync handling."""

from __future__ import annotations

import io
import json
import socket

import pytest

from modsync._errors import ListenerError
from modsync.config import ServerConfig
from modsync.modules.table import ModuleTable
from modsync.observability.collector import SyncCollector
from modsync.observability.events import ClientConnection, ClientSynced, ListenerEvent
from modsync.server.connection import Connection
from modsync.server.lifecycle import ServerLifecycle
from tests.conftest import FakeWebSocket, flush, record


def _frames(ws: FakeWebSocket) -> list[dict]:
    return [json.loads(f) for f in ws.sent]


def _sync(view: object) -> str:
    return json.dumps({"event": "sync", "data": view})


class TestEnsureStarted:
    """ensure_started — binds exactly once."""

    @pytest.mark.asyncio
    async def test_three_calls_one_listener(
        self, table: ModuleTable, local_server: ServerConfig, collector: SyncCollector,
    ) -> None:
        lifecycle = ServerLifecycle(table, local_server, collector)
        first = await lifecycle.ensure_started()
        second = await lifecycle.ensure_started()
        third = await lifecycle.ensure_started()

        assert first is not None
        assert first is second is third
        started = [e for e in collector.log.query(event_type=ListenerEvent) if e.kind == "started"]
        assert len(started) == 1
        await lifecycle.close()

    @pytest.mark.asyncio
    async def test_bound_address_resolves_port_zero(
        self, table: ModuleTable, local_server: ServerConfig, collector: SyncCollector,
    ) -> None:
        lifecycle = ServerLifecycle(table, local_server, collector)
        await lifecycle.ensure_started()
        host, port = lifecycle.bound_address
        assert host == "127.0.0.1"
        assert port > 0
        await lifecycle.close()

    @pytest.mark.asyncio
    async def test_bound_address_before_start(self, table: ModuleTable) -> None:
        with pytest.raises(ListenerError):
            ServerLifecycle(table).bound_address  # noqa: B018

    @pytest.mark.asyncio
    async def test_bind_failure_reported_then_retried(
        self, table: ModuleTable, collector: SyncCollector, stderr: io.StringIO,
    ) -> None:
        blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        blocker.bind(("127.0.0.1", 0))
        blocker.listen()
        taken_port = blocker.getsockname()[1]
        try:
            lifecycle = ServerLifecycle(table, ServerConfig("127.0.0.1", taken_port), collector)
            assert await lifecycle.ensure_started() is None
            assert not lifecycle.is_started
            assert "Could not listen" in stderr.getvalue()

            lifecycle.configure(ServerConfig("127.0.0.1", 0))
            assert await lifecycle.ensure_started() is not None
            assert lifecycle.is_started
            await lifecycle.close()
        finally:
            blocker.close()

    @pytest.mark.asyncio
    async def test_configure_after_start_has_no_effect(
        self, table: ModuleTable, local_server: ServerConfig, collector: SyncCollector,
        stderr: io.StringIO,
    ) -> None:
        lifecycle = ServerLifecycle(table, local_server, collector)
        server = await lifecycle.ensure_started()
        address = lifecycle.bound_address

        lifecycle.configure(ServerConfig("127.0.0.1", 1))

        assert await lifecycle.ensure_started() is server
        assert lifecycle.bound_address == address
        assert "Ignoring new listen address" in stderr.getvalue()
        await lifecycle.close()

    @pytest.mark.asyncio
    async def test_close_is_idempotent(
        self, table: ModuleTable, local_server: ServerConfig, collector: SyncCollector,
    ) -> None:
        lifecycle = ServerLifecycle(table, local_server, collector)
        await lifecycle.ensure_started()
        await lifecycle.close()
        await lifecycle.close()
        assert not lifecycle.is_started


class TestRegistry:
    """register / unregister."""

    @pytest.mark.asyncio
    async def test_register_and_unregister(self, table: ModuleTable, collector: SyncCollector) -> None:
        lifecycle = ServerLifecycle(table, collector=collector)
        conn = Connection("c1", FakeWebSocket())
        lifecycle.register(conn)
        assert lifecycle.connection_count == 1

        lifecycle.unregister(conn)
        lifecycle.unregister(conn)  # second call is a no-op

        assert lifecycle.connection_count == 0
        assert conn.closed
        kinds = [e.kind for e in collector.log.query(event_type=ClientConnection)]
        assert sorted(kinds) == ["connect", "disconnect"]

    @pytest.mark.asyncio
    async def test_synced_connections(self, table: ModuleTable) -> None:
        lifecycle = ServerLifecycle(table)
        a = Connection("a", FakeWebSocket())
        b = Connection("b", FakeWebSocket())
        lifecycle.register(a)
        lifecycle.register(b)
        b.mark_synced()
        assert lifecycle.synced_connections() == (b,)


class TestClientFrames:
    """handle_client_frame — the per-connection sync protocol."""

    @pytest.fixture
    def lifecycle(self, collector: SyncCollector) -> ServerLifecycle:
        table = ModuleTable([record("x", "h1", payload="foo")])
        return ServerLifecycle(table, collector=collector)

    async def _connect(self, lifecycle: ServerLifecycle) -> tuple[Connection, FakeWebSocket]:
        ws = FakeWebSocket()
        conn = Connection("c1", ws)
        lifecycle.register(conn)
        conn.start()
        return conn, ws

    @pytest.mark.asyncio
    async def test_empty_view_gets_confirm_then_modules(self, lifecycle: ServerLifecycle) -> None:
        conn, ws = await self._connect(lifecycle)
        lifecycle.handle_client_frame(conn, _sync({}))
        await flush()

        assert _frames(ws) == [
            {"event": "syncConfirm", "data": None},
            {
                "event": "newModules",
                "data": {
                    "newModuleData": {"x": {"hash": "h1", "payload": "foo"}},
                    "removedModules": [],
                },
            },
        ]
        assert conn.is_synced
        await lifecycle.close()

    @pytest.mark.asyncio
    async def test_current_view_gets_confirm_only(self, lifecycle: ServerLifecycle) -> None:
        conn, ws = await self._connect(lifecycle)
        lifecycle.handle_client_frame(conn, _sync({"x": {"hash": "h1"}}))
        await flush()

        assert _frames(ws) == [{"event": "syncConfirm", "data": None}]
        assert conn.is_synced
        await lifecycle.close()

    @pytest.mark.asyncio
    async def test_stale_names_removed(self, lifecycle: ServerLifecycle) -> None:
        conn, ws = await self._connect(lifecycle)
        lifecycle.handle_client_frame(conn, _sync({"x": {"hash": "h1"}, "y": {"hash": "h9"}}))
        await flush()

        assert _frames(ws)[1]["data"] == {"newModuleData": {}, "removedModules": ["y"]}
        await lifecycle.close()

    @pytest.mark.asyncio
    async def test_sync_recorded(self, lifecycle: ServerLifecycle, collector: SyncCollector) -> None:
        conn, _ = await self._connect(lifecycle)
        lifecycle.handle_client_frame(conn, _sync({}))
        [event] = collector.log.query(event_type=ClientSynced)
        assert event.client_id == "c1"
        assert event.modules_sent == 1
        await lifecycle.close()

    @pytest.mark.asyncio
    async def test_resync_is_idempotent(self, lifecycle: ServerLifecycle) -> None:
        conn, ws = await self._connect(lifecycle)
        lifecycle.handle_client_frame(conn, _sync({}))
        lifecycle.handle_client_frame(conn, _sync({}))
        await flush()

        frames = _frames(ws)
        assert frames[:2] == frames[2:]
        await lifecycle.close()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "frame",
        [
            "not json",
            json.dumps({"data": {}}),
            json.dumps({"event": "sync", "data": [1]}),
            '{"event": "sync", "data": ' + "[" * 200_000,
            '{"event": "sync", "data": {"x": ' + "1" * 5000 + "}}",
        ],
        ids=["not-json", "no-event", "non-object-view", "deep-nesting", "huge-int"],
    )
    async def test_bad_frames_ignored(self, lifecycle: ServerLifecycle, frame: str) -> None:
        conn, ws = await self._connect(lifecycle)
        lifecycle.handle_client_frame(conn, frame)
        await flush()

        assert ws.sent == []
        assert not conn.is_synced
        assert lifecycle.connection_count == 1
        await lifecycle.close()

    @pytest.mark.asyncio
    async def test_unknown_event_reported(
        self, lifecycle: ServerLifecycle, stderr: io.StringIO,
    ) -> None:
        conn, ws = await self._connect(lifecycle)
        lifecycle.handle_client_frame(conn, json.dumps({"event": "hello"}))
        await flush()

        assert ws.sent == []
        assert "Unknown client event 'hello'" in stderr.getvalue()
        await lifecycle.close()
