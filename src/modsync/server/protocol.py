"""Client event envelope — one JSON text frame per event.

Each WebSocket message is ``{"event": <name>, "data": <payload>}``.

Client -> server:
    ``sync``        data = ``{name: {"hash": ...}, ...}``, the client's view.

Server -> client:
    ``syncConfirm`` data = ``null``, always sent in answer to ``sync``.
    ``newModules``  data = ``{"newModuleData": {...}, "removedModules": [...]}``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from modsync._errors import ProtocolError

SYNC = "sync"
SYNC_CONFIRM = "syncConfirm"
NEW_MODULES = "newModules"


@dataclass(frozen=True, slots=True)
class ClientEvent:
    """A decoded client event."""

    event: str
    data: Any = None


def encode_event(event: str, data: Any = None) -> str:
    """Serialize an outbound event to a text frame."""
    return json.dumps({"event": event, "data": data}, separators=(",", ":"))


def decode_event(frame: str | bytes) -> ClientEvent:
    """Parse an inbound frame.

    Raises:
        ProtocolError: If the frame is not a JSON object with a string ``event``.

    """
    try:
        obj = json.loads(frame)
    except (ValueError, RecursionError) as exc:
        msg = f"client frame is not valid JSON: {exc}"
        raise ProtocolError(msg) from exc
    if not isinstance(obj, dict) or not isinstance(obj.get("event"), str):
        msg = "client frame must be an object with a string 'event'"
        raise ProtocolError(msg)
    return ClientEvent(event=obj["event"], data=obj.get("data"))
