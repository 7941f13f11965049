"""Stateful services: the store, imports and sync."""

from .importer import ActivityImportService, ImportResult
from .reconciler import ReconcileResult, SkipCounts, import_records, is_duplicate, merge_history, sort_history
from .store import TrainingStore
from .sync import SyncAction, SyncCoordinator, SyncResult, SyncState, SyncStatus

__all__ = [
    "ActivityImportService",
    "ImportResult",
    "ReconcileResult",
    "SkipCounts",
    "import_records",
    "is_duplicate",
    "merge_history",
    "sort_history",
    "TrainingStore",
    "SyncAction",
    "SyncCoordinator",
    "SyncResult",
    "SyncState",
    "SyncStatus",
]
