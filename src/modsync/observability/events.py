"""Event model for sync-service observability.

Defines event types for the control channel, client connections and the
listener.

All events are frozen dataclasses with:
- ``timestamp_ns``: Monotonic nanosecond timestamp
- Descriptive fields for the specific event type

Thread Safety:
    All events are frozen (immutable) and safe to share across threads.

"""

import time
from dataclasses import dataclass
from typing import Literal, TypeAlias


# ---------------------------------------------------------------------------
# Control channel events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class BatchCommitted:
    """A batch was merged into the module table.

    Attributes:
        added: Number of new or changed modules in the batch.
        removed: Number of removed module names in the batch.
        table_size: Module count after the commit.
        clients_notified: Connections that accepted the broadcast.
        duration_ms: Time from receiving the commit marker to broadcast.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    added: int
    removed: int
    table_size: int
    clients_notified: int
    duration_ms: float
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class MessageRejected:
    """A control line was skipped.

    Attributes:
        reason: Why the line was skipped.
        line: The offending line, truncated.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    reason: Literal["malformed", "unknown_type"]
    line: str
    timestamp_ns: int


# ---------------------------------------------------------------------------
# Client events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ClientConnection:
    """A client connection opened or closed."""

    client_id: str
    kind: Literal["connect", "disconnect"]
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class ClientSynced:
    """A client completed its sync exchange.

    Attributes:
        client_id: Connection identifier.
        modules_sent: Records sent in the correction.
        modules_removed: Names the client was told to drop.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    client_id: str
    modules_sent: int
    modules_removed: int
    timestamp_ns: int


# ---------------------------------------------------------------------------
# Listener events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ListenerEvent:
    """The client-facing listener changed state."""

    kind: Literal["started", "failed", "closed"]
    address: str
    detail: str
    timestamp_ns: int


# ---------------------------------------------------------------------------
# Union type
# ---------------------------------------------------------------------------

SyncEvent: TypeAlias = (
    BatchCommitted
    | MessageRejected
    | ClientConnection
    | ClientSynced
    | ListenerEvent
)


def now_ns() -> int:
    """Return the current monotonic clock value in nanoseconds."""
    return time.monotonic_ns()
