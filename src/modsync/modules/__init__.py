"""Module data layer — the authoritative table, staging and reconciliation."""

from modsync.modules.sync import SyncResult, client_view_from_wire, reconcile
from modsync.modules.table import Batch, ModuleRecord, ModuleTable, PendingBatch

__all__ = [
    "Batch",
    "ModuleRecord",
    "ModuleTable",
    "PendingBatch",
    "SyncResult",
    "client_view_from_wire",
    "reconcile",
]
