"""Pydantic schemas for records, snapshots and sync results."""
from idea_sync.schemas.record_schemas import (
    Collection,
    SyncRecord,
    NoteRecord,
    TaskRecord,
    DeletedTaskRecord,
    CategoryRecord,
    ChatSessionRecord,
    ChatMessageRecord,
    TombstoneRecord,
    RECORD_TYPES,
)
from idea_sync.schemas.snapshot_schemas import Snapshot, SnapshotData
from idea_sync.schemas.sync_schemas import (
    CollectionMergeStats,
    MergeReport,
    SyncResult,
    SyncStatusResponse,
    CredentialsUpdate,
)

__all__ = [
    "Collection",
    "SyncRecord",
    "NoteRecord",
    "TaskRecord",
    "DeletedTaskRecord",
    "CategoryRecord",
    "ChatSessionRecord",
    "ChatMessageRecord",
    "TombstoneRecord",
    "RECORD_TYPES",
    "Snapshot",
    "SnapshotData",
    "CollectionMergeStats",
    "MergeReport",
    "SyncResult",
    "SyncStatusResponse",
    "CredentialsUpdate",
]
