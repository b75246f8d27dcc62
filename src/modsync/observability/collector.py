"""Sync collector — single entry point for events and diagnostics.

Components record structured events through the collector, which stores
them in an ``EventLog`` and, unless quiet, prints a one-line summary to
stderr.

Thread Safety:
    The collector delegates to ``EventLog`` which is internally locked.

"""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal

from modsync.observability.events import (
    BatchCommitted,
    ClientConnection,
    ClientSynced,
    ListenerEvent,
    MessageRejected,
    now_ns,
)
from modsync.observability.log import EventLog
from modsync.observability.report import report

if TYPE_CHECKING:
    from typing import TextIO

# Rejected lines are stored truncated; a module payload can be megabytes.
_MAX_LINE_CHARS = 200


class SyncCollector:
    """Unified event collector for the sync service.

    Args:
        log: The EventLog to store events in.
        quiet: Suppress stderr diagnostics (events are still recorded).
        stream: Diagnostic stream; defaults to ``sys.stderr``.

    """

    __slots__ = ("_log", "_quiet", "_stream")

    def __init__(
        self,
        log: EventLog | None = None,
        *,
        quiet: bool = False,
        stream: TextIO | None = None,
    ) -> None:
        self._log = log if log is not None else EventLog()
        self._quiet = quiet
        self._stream = stream

    @property
    def log(self) -> EventLog:
        """The underlying event log."""
        return self._log

    def report(self, message: str) -> None:
        """Print a diagnostic line unless quiet."""
        if not self._quiet:
            report(message, stream=self._stream)

    # ----- Control channel -----

    def record_commit(
        self,
        *,
        added: int,
        removed: int,
        table_size: int,
        clients_notified: int = 0,
        duration_ms: float = 0.0,
    ) -> None:
        self._log.append(
            BatchCommitted(
                added=added,
                removed=removed,
                table_size=table_size,
                clients_notified=clients_notified,
                duration_ms=duration_ms,
                timestamp_ns=now_ns(),
            )
        )
        if added or removed:
            self.report(
                f"Emitting updates: {added} changed, {removed} removed "
                f"-> {clients_notified} client(s)"
            )

    def record_rejected(
        self,
        reason: Literal["malformed", "unknown_type"],
        line: str,
        detail: str = "",
    ) -> None:
        self._log.append(
            MessageRejected(
                reason=reason,
                line=line[:_MAX_LINE_CHARS],
                timestamp_ns=now_ns(),
            )
        )
        if reason == "unknown_type":
            self.report(f"Unknown message type {detail!r}")
        else:
            self.report(f"Skipping malformed control message: {detail}")

    # ----- Clients -----

    def record_connection(
        self, client_id: str, kind: Literal["connect", "disconnect"],
    ) -> None:
        self._log.append(
            ClientConnection(client_id=client_id, kind=kind, timestamp_ns=now_ns())
        )

    def record_sync(
        self, client_id: str, *, modules_sent: int, modules_removed: int,
    ) -> None:
        self._log.append(
            ClientSynced(
                client_id=client_id,
                modules_sent=modules_sent,
                modules_removed=modules_removed,
                timestamp_ns=now_ns(),
            )
        )
        self.report(
            f"User connected, syncing ({client_id}: "
            f"{modules_sent} sent, {modules_removed} removed)"
        )

    # ----- Listener -----

    def record_listener(
        self,
        kind: Literal["started", "failed", "closed"],
        address: str,
        detail: str = "",
    ) -> None:
        self._log.append(
            ListenerEvent(kind=kind, address=address, detail=detail, timestamp_ns=now_ns())
        )
        if kind == "started":
            self.report(f"Listening on {address}")
        elif kind == "failed":
            self.report(f"Could not listen on {address}: {detail}")
        else:
            self.report(f"Listener on {address} closed")
