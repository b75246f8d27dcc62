"""Server lifecycle — the single client-facing listener and its connections.

The listener is brought up lazily on the first commit and never twice.
Each accepted WebSocket becomes a ``Connection`` that is registered at
once, answers the client's ``sync`` with a reconciliation against the
module table, and is deregistered when the transport closes.
"""

from __future__ import annotations

import asyncio
import uuid
from typing import TYPE_CHECKING

from websockets.asyncio.server import serve
from websockets.exceptions import ConnectionClosed

from modsync._errors import ConfigError, ListenerError, ProtocolError
from modsync.config import ServerConfig
from modsync.modules.sync import client_view_from_wire, reconcile
from modsync.observability.collector import SyncCollector
from modsync.server.connection import Connection
from modsync.server.protocol import (
    NEW_MODULES,
    SYNC,
    SYNC_CONFIRM,
    decode_event,
    encode_event,
)

if TYPE_CHECKING:
    from websockets.asyncio.server import Server, ServerConnection

    from modsync.modules.table import ModuleTable


class ServerLifecycle:
    """Owns at most one listening endpoint and the live-connection registry.

    Args:
        table: The module table sync requests are reconciled against.
        config: Listen parameters used until ``configure`` supplies others.
        collector: Event and diagnostic sink.

    """

    def __init__(
        self,
        table: ModuleTable,
        config: ServerConfig | None = None,
        collector: SyncCollector | None = None,
    ) -> None:
        self._table = table
        self._config = config if config is not None else ServerConfig()
        self._collector = collector if collector is not None else SyncCollector()
        self._server: Server | None = None
        self._start_lock = asyncio.Lock()
        self._connections: dict[str, Connection] = {}

    # ----- Configuration -----

    @property
    def config(self) -> ServerConfig:
        return self._config

    def configure(self, config: ServerConfig) -> None:
        """Store listen parameters.  No effect on an already bound listener."""
        if self._server is not None and config != self._config:
            self._collector.report(
                f"Ignoring new listen address {config.url}; already serving"
            )
        self._config = config

    # ----- Listener -----

    @property
    def is_started(self) -> bool:
        return self._server is not None

    @property
    def bound_address(self) -> tuple[str, int]:
        """The ``(host, port)`` actually bound, resolving port ``0``.

        Raises:
            ListenerError: If the listener is not running.

        """
        if self._server is None:
            msg = "listener is not running"
            raise ListenerError(msg)
        for sock in self._server.sockets:
            host, port = sock.getsockname()[:2]
            return host, port
        msg = "listener has no bound sockets"
        raise ListenerError(msg)

    async def ensure_started(self) -> Server | None:
        """Bind the listener on first call; later calls return the same server.

        A bind failure is reported and leaves the lifecycle unstarted, so
        the next call tries again.

        Returns:
            The running server, or ``None`` if binding failed.

        """
        if self._server is not None:
            return self._server
        async with self._start_lock:
            if self._server is not None:
                return self._server
            config = self._config
            try:
                self._server = await serve(
                    self._handle_connection,
                    config.hostname,
                    config.port,
                    ssl=config.ssl_context(),
                )
            except (OSError, ConfigError) as exc:
                self._collector.record_listener("failed", config.url, str(exc))
                return None
            host, port = self.bound_address
            self._collector.record_listener("started", f"{config.scheme}://{host}:{port}")
            return self._server

    async def close(self) -> None:
        """Close every connection and stop the listener."""
        for conn in self.connections():
            self.unregister(conn)
        server = self._server
        if server is None:
            return
        self._server = None
        server.close()
        await server.wait_closed()
        self._collector.record_listener("closed", self._config.url)

    # ----- Registry -----

    def register(self, conn: Connection) -> None:
        self._connections[conn.client_id] = conn
        self._collector.record_connection(conn.client_id, "connect")

    def unregister(self, conn: Connection) -> None:
        """Remove a connection (safe to call more than once)."""
        conn.close()
        if self._connections.pop(conn.client_id, None) is not None:
            self._collector.record_connection(conn.client_id, "disconnect")

    def connections(self) -> tuple[Connection, ...]:
        """Snapshot of all registered connections."""
        return tuple(self._connections.values())

    def synced_connections(self) -> tuple[Connection, ...]:
        return tuple(c for c in self._connections.values() if c.is_synced)

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    # ----- Per-connection protocol -----

    def handle_client_frame(self, conn: Connection, frame: str | bytes) -> None:
        """Dispatch one inbound frame.  Bad frames are reported and dropped."""
        try:
            event = decode_event(frame)
        except ProtocolError as exc:
            self._collector.report(f"Bad frame from {conn.client_id}: {exc}")
            return

        if event.event != SYNC:
            self._collector.report(f"Unknown client event {event.event!r} from {conn.client_id}")
            return

        try:
            view = client_view_from_wire(event.data)
        except ProtocolError as exc:
            self._collector.report(f"Bad sync from {conn.client_id}: {exc}")
            return

        # Reconcile, enqueue and flip state without yielding to the loop, so
        # a broadcast can only land before this sync (and is then covered by
        # the reconciliation) or after it (and is then delivered).
        result = reconcile(view, self._table)
        conn.deliver(encode_event(SYNC_CONFIRM))
        if not result.is_empty:
            conn.deliver(encode_event(NEW_MODULES, result.to_wire()))
        conn.mark_synced()
        self._collector.record_sync(
            conn.client_id,
            modules_sent=len(result.new_module_data),
            modules_removed=len(result.removed_modules),
        )

    async def _handle_connection(self, websocket: ServerConnection) -> None:
        conn = Connection(
            client_id=f"c-{uuid.uuid4().hex[:8]}",
            websocket=websocket,
            collector=self._collector,
        )
        self.register(conn)
        conn.start()
        try:
            async for frame in websocket:
                self.handle_client_frame(conn, frame)
        except ConnectionClosed:
            pass
        finally:
            self.unregister(conn)
