"""Control wire format — newline-delimited JSON between build process and server.

Inbound (build process -> server), one object per line with a ``type`` tag::

    {"type": "config", "hostname": "localhost", "port": 3123, "tlsoptions": null}
    {"type": "newModule", "name": "src/a.js", "data": {"hash": "...", ...}}
    {"type": "removedModules", "removedModules": ["src/old.js"]}

Outbound (server -> build process), once per ``removedModules``::

    {"type": "confirmNewModuleData"}

Parsing produces a closed set of message classes.  A well-formed line with a
``type`` this server does not know becomes an ``UnknownMessage`` rather than
an error, so the channel can report it and move on.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, TypeAlias

from modsync._errors import ConfigError, ProtocolError
from modsync.config import ServerConfig, TLSMaterial
from modsync.modules.table import ModuleRecord

ACK_TYPE = "confirmNewModuleData"


@dataclass(frozen=True, slots=True)
class ConfigMessage:
    """Listen parameters for the client-facing endpoint."""

    config: ServerConfig


@dataclass(frozen=True, slots=True)
class NewModuleMessage:
    """One module record for the pending batch."""

    record: ModuleRecord

    @property
    def name(self) -> str:
        return self.record.name


@dataclass(frozen=True, slots=True)
class RemovedModulesMessage:
    """Commit marker carrying the names removed in this batch."""

    names: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class UnknownMessage:
    """A well-formed message with an unrecognized ``type``."""

    type: str
    raw: Mapping[str, Any] = field(default_factory=dict, compare=False, hash=False)


ControlMessage: TypeAlias = ConfigMessage | NewModuleMessage | RemovedModulesMessage | UnknownMessage


def parse_control_line(line: str | bytes) -> ControlMessage:
    """Parse one control line.

    Raises:
        ProtocolError: If the line is not a JSON object, has no string
            ``type``, or a known type is missing required fields.

    """
    try:
        obj = json.loads(line)
    except (ValueError, RecursionError) as exc:
        # ValueError covers bad JSON, bad UTF-8 and oversized int literals.
        msg = f"not valid JSON: {exc}"
        raise ProtocolError(msg) from exc

    if not isinstance(obj, dict):
        msg = f"expected a JSON object, got {type(obj).__name__}"
        raise ProtocolError(msg)

    msg_type = obj.get("type")
    if not isinstance(msg_type, str):
        msg = "message has no string 'type'"
        raise ProtocolError(msg)

    if msg_type == "config":
        return ConfigMessage(config=_parse_config(obj))
    if msg_type == "newModule":
        return NewModuleMessage(record=ModuleRecord.from_wire(obj.get("name"), obj.get("data")))
    if msg_type == "removedModules":
        return RemovedModulesMessage(names=_parse_names(obj.get("removedModules")))
    return UnknownMessage(type=msg_type, raw=obj)


def encode_ack() -> bytes:
    """The acknowledgement line sent upstream for each commit marker."""
    return (json.dumps({"type": ACK_TYPE}) + "\n").encode("utf-8")


def _parse_config(obj: Mapping[str, Any]) -> ServerConfig:
    hostname = obj.get("hostname")
    if hostname is None:
        hostname = "localhost"
    elif not isinstance(hostname, str):
        msg = f"config.hostname must be a string, got {hostname!r}"
        raise ProtocolError(msg)

    port = obj.get("port")
    if isinstance(port, str) and port.isascii() and port.isdigit() and len(port) <= 5:
        port = int(port)
    if not isinstance(port, int) or isinstance(port, bool):
        msg = f"config.port must be an integer, got {port!r}"
        raise ProtocolError(msg)

    try:
        return ServerConfig(hostname=hostname, port=port, tls=_parse_tls(obj.get("tlsoptions")))
    except ConfigError as exc:
        raise ProtocolError(str(exc)) from exc


def _parse_tls(value: object) -> TLSMaterial | None:
    if value is None:
        return None
    if not isinstance(value, Mapping):
        msg = "config.tlsoptions must be an object"
        raise ProtocolError(msg)
    cert = value.get("cert")
    key = value.get("key")
    if not isinstance(cert, str) or not isinstance(key, str):
        msg = "config.tlsoptions needs string 'cert' and 'key'"
        raise ProtocolError(msg)
    passphrase = value.get("passphrase")
    if passphrase is not None and not isinstance(passphrase, str):
        msg = "config.tlsoptions.passphrase must be a string"
        raise ProtocolError(msg)
    return TLSMaterial(cert=cert, key=key, passphrase=passphrase)


def _parse_names(value: object) -> tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list) or not all(isinstance(n, str) for n in value):
        msg = "removedModules must be a list of strings"
        raise ProtocolError(msg)
    return tuple(value)
