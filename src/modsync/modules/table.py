"""Module table — the authoritative name -> record mapping and its staging area.

The build process reports module records one at a time into a
``PendingBatch``.  A commit marker moves the whole batch into the
``ModuleTable`` in one synchronous step, so a reader running on the same
event loop only ever sees the state before or after a commit, never a
partially merged one.

Thread Safety:
    Neither class is locked.  Both are confined to the event loop that
    runs the control channel; readers (sync requests) run on the same loop.

"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from modsync._errors import ProtocolError

if TYPE_CHECKING:
    from modsync._types import ModuleHash, ModuleName


@dataclass(frozen=True, slots=True)
class ModuleRecord:
    """One committed (or pending) module.

    Attributes:
        name: Module identity.
        hash: Change-detection key; two records are equivalent iff hashes match.
        payload: The opaque data mapping from the build process, sent to
            clients verbatim.  Never compared.

    """

    name: str
    hash: str
    payload: Mapping[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @classmethod
    def from_wire(cls, name: object, data: object) -> ModuleRecord:
        """Build a record from a ``newModule`` message's ``name`` and ``data``.

        Raises:
            ProtocolError: If the name is not a non-empty string or the data
                is not an object with a string ``hash``.

        """
        if not isinstance(name, str) or not name:
            msg = f"module name must be a non-empty string, got {name!r}"
            raise ProtocolError(msg)
        if not isinstance(data, Mapping):
            msg = f"module {name!r}: data must be an object"
            raise ProtocolError(msg)
        module_hash = data.get("hash")
        if not isinstance(module_hash, str):
            msg = f"module {name!r}: data.hash must be a string"
            raise ProtocolError(msg)
        return cls(name=name, hash=module_hash, payload=dict(data))

    def to_wire(self) -> dict[str, Any]:
        """Return the data object sent to clients (always carries ``hash``)."""
        return {**self.payload, "hash": self.hash}


@dataclass(frozen=True, slots=True)
class Batch:
    """The delta of one commit, or the correction computed for one client.

    Attributes:
        new_module_data: Records that were added or changed, by name.
        removed_modules: Names that no longer exist.

    """

    new_module_data: Mapping[str, ModuleRecord] = field(default_factory=dict)
    removed_modules: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        """True when there is nothing to add and nothing to remove."""
        return not self.new_module_data and not self.removed_modules

    def to_wire(self) -> dict[str, Any]:
        """Return the ``newModules`` event payload."""
        return {
            "newModuleData": {
                name: record.to_wire() for name, record in self.new_module_data.items()
            },
            "removedModules": list(self.removed_modules),
        }


class PendingBatch:
    """Records reported since the last commit.

    Last write wins when the same name is reported more than once.
    """

    __slots__ = ("_records",)

    def __init__(self) -> None:
        self._records: dict[str, ModuleRecord] = {}

    def add(self, record: ModuleRecord) -> None:
        self._records[record.name] = record

    @property
    def is_empty(self) -> bool:
        return not self._records

    def records(self) -> dict[str, ModuleRecord]:
        """Snapshot of the pending records (a copy)."""
        return dict(self._records)

    def clear(self) -> None:
        self._records.clear()

    def drain(self) -> dict[str, ModuleRecord]:
        """Return the pending records and empty the batch."""
        records = self._records
        self._records = {}
        return records

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, name: object) -> bool:
        return name in self._records


class ModuleTable:
    """Authoritative mapping of module name to its latest committed record.

    Only the control channel mutates the table, through ``commit``.
    ``merge`` and ``remove`` are exposed for tests and tooling.

    """

    __slots__ = ("_records",)

    def __init__(self, records: Iterable[ModuleRecord] = ()) -> None:
        self._records: dict[str, ModuleRecord] = {r.name: r for r in records}

    def get(self, name: ModuleName) -> ModuleRecord | None:
        return self._records.get(name)

    def names(self) -> frozenset[str]:
        return frozenset(self._records)

    def hashes(self) -> dict[ModuleName, ModuleHash]:
        """Return ``name -> hash`` for every committed module."""
        return {name: record.hash for name, record in self._records.items()}

    def snapshot(self) -> Mapping[str, ModuleRecord]:
        """Read-only copy of the table as of now."""
        return MappingProxyType(dict(self._records))

    def merge(self, records: Mapping[str, ModuleRecord]) -> None:
        self._records.update(records)

    def remove(self, names: Iterable[str]) -> None:
        # Names the table never held are ignored.
        for name in names:
            self._records.pop(name, None)

    def commit(self, pending: PendingBatch, removed: Iterable[str]) -> Batch:
        """Merge *pending*, drop *removed*, and empty *pending* in one step.

        Removal is applied after the merge, so a name that is both reported
        and removed in the same batch ends up absent.

        Returns:
            The committed delta, carrying the pre-merge snapshot of *pending*.

        """
        records = pending.drain()
        removed_names = tuple(dict.fromkeys(removed))
        self.merge(records)
        self.remove(removed_names)
        return Batch(new_module_data=records, removed_modules=removed_names)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, name: object) -> bool:
        return name in self._records

    def __iter__(self):  # type: ignore[no-untyped-def]
        return iter(self._records)

