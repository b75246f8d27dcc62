"""Observability — structured events and stderr diagnostics.

All events are frozen dataclasses with monotonic nanosecond timestamps,
stored in a bounded ``EventLog`` through a ``SyncCollector``.

Quick Start:
    >>> from modsync.observability import EventLog, SyncCollector
    >>> collector = SyncCollector(EventLog(), quiet=True)
    >>> collector.record_connection("c1", "connect")
    >>> len(collector.log)
    1

"""

from modsync.observability.collector import SyncCollector
from modsync.observability.events import (
    BatchCommitted,
    ClientConnection,
    ClientSynced,
    ListenerEvent,
    MessageRejected,
    SyncEvent,
    now_ns,
)
from modsync.observability.log import EventLog
from modsync.observability.report import bytes_to_size, report

__all__ = [
    "BatchCommitted",
    "ClientConnection",
    "ClientSynced",
    "EventLog",
    "ListenerEvent",
    "MessageRejected",
    "SyncCollector",
    "SyncEvent",
    "bytes_to_size",
    "now_ns",
    "report",
]
