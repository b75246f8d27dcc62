"""Client-facing server — listener lifecycle, connections and broadcast."""

from modsync.server.broadcaster import Broadcaster
from modsync.server.connection import Connection, ConnectionState
from modsync.server.lifecycle import ServerLifecycle
from modsync.server.protocol import (
    NEW_MODULES,
    SYNC,
    SYNC_CONFIRM,
    ClientEvent,
    decode_event,
    encode_event,
)

__all__ = [
    "NEW_MODULES",
    "SYNC",
    "SYNC_CONFIRM",
    "Broadcaster",
    "ClientEvent",
    "Connection",
    "ConnectionState",
    "ServerLifecycle",
    "decode_event",
    "encode_event",
]
