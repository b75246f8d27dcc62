"""Broadcaster — pushes each committed batch to every synced client.

The batch is encoded once and the identical frame is enqueued on every
synced connection.  There is no per-connection diffing here; that only
happens at sync time.  Delivery is fire-and-forget: a connection that has
gone away is deregistered and the rest still get the frame.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from modsync.server.protocol import NEW_MODULES, encode_event

if TYPE_CHECKING:
    from modsync.modules.table import Batch
    from modsync.server.lifecycle import ServerLifecycle


class Broadcaster:
    """Delivers commit deltas to the lifecycle's synced connections.

    Connections still awaiting their sync are skipped: their sync reads the
    table after this commit, so the reconciliation already covers the batch.

    """

    __slots__ = ("_lifecycle",)

    def __init__(self, lifecycle: ServerLifecycle) -> None:
        self._lifecycle = lifecycle

    def broadcast(self, batch: Batch) -> int:
        """Enqueue *batch* as a ``newModules`` event on every synced connection.

        Returns:
            Number of connections that accepted the frame.

        """
        if batch.is_empty:
            return 0

        frame = encode_event(NEW_MODULES, batch.to_wire())
        count = 0
        for conn in self._lifecycle.synced_connections():
            if conn.deliver(frame):
                count += 1
            elif conn.closed:
                self._lifecycle.unregister(conn)
        return count
