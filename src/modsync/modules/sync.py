"""Sync engine — reconciles a client's claimed view with the module table.

A client that connects (or reconnects) sends the ``name -> {hash}`` map it
believes is current.  ``reconcile`` returns the minimal correction: every
committed record the client lacks or holds at a different hash, and every
name the client holds that the table no longer has.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, TypeAlias

from modsync._errors import ProtocolError
from modsync.modules.table import Batch, ModuleTable

if TYPE_CHECKING:
    from modsync._types import ClientView, ModuleHash, ModuleName

# The correction sent to one client has the same shape as a commit delta.
SyncResult: TypeAlias = Batch


def reconcile(client_view: ClientView, table: ModuleTable) -> SyncResult:
    """Compute the correction a client must apply to match *table*.

    Pure function of its inputs.  The caller is responsible for passing a
    table that is not mid-commit; on the control loop that always holds.

    """
    new_module_data = {
        name: record
        for name, record in table.snapshot().items()
        if name not in client_view or client_view[name] != record.hash
    }
    removed = tuple(name for name in client_view if name not in table)
    return Batch(new_module_data=new_module_data, removed_modules=removed)


def client_view_from_wire(payload: object) -> dict[ModuleName, ModuleHash | None]:
    """Normalize a ``sync`` event payload into ``name -> hash``.

    Accepts ``{name: {"hash": h, ...}}`` as the client library sends it, and
    ``{name: h}`` as a shorthand.  An entry without a usable hash maps to
    ``None``, which never equals a committed hash, so that module is resent.

    Raises:
        ProtocolError: If the payload is neither empty nor an object.

    """
    if payload is None:
        return {}
    if not isinstance(payload, Mapping):
        msg = f"sync payload must be an object, got {type(payload).__name__}"
        raise ProtocolError(msg)

    view: dict[ModuleName, ModuleHash | None] = {}
    for name, entry in payload.items():
        if isinstance(entry, Mapping):
            value = entry.get("hash")
        else:
            value = entry
        view[str(name)] = value if isinstance(value, str) else None
    return view
