"""Sync result and status schemas."""
from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class CollectionMergeStats(BaseModel):
    """Outcome counts for one collection."""
    inserted: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0  # Untracked (no uuid) or suppressed by a tombstone
    failed: int = 0
    deleted: int = 0  # Purged by a remote tombstone


class MergeReport(BaseModel):
    """Outcome of merging one snapshot into the local store."""
    collections: Dict[str, CollectionMergeStats] = Field(default_factory=dict)
    errors: List[str] = Field(default_factory=list)

    def stats(self, collection: str) -> CollectionMergeStats:
        if collection not in self.collections:
            self.collections[collection] = CollectionMergeStats()
        return self.collections[collection]

    @property
    def changed(self) -> int:
        return sum(s.inserted + s.updated + s.deleted for s in self.collections.values())

    @property
    def failed(self) -> int:
        return sum(s.failed for s in self.collections.values())


SyncStatus = Literal["success", "failed", "skipped"]


class SyncResult(BaseModel):
    """Outcome of one sync cycle."""
    status: SyncStatus
    reason: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    remote_found: bool = False
    remote_corrupt: bool = False
    attempts: int = 0
    merge: Optional[MergeReport] = None
    uploaded_counts: Dict[str, int] = Field(default_factory=dict)


class SyncStatusResponse(BaseModel):
    """Schema for GET /sync/status."""
    is_syncing: bool
    last_sync_at: Optional[datetime] = None
    last_result: Optional[SyncResult] = None


class CredentialsUpdate(BaseModel):
    """Schema for storing Google OAuth tokens."""
    access_token: str = Field(..., min_length=1)
    refresh_token: Optional[str] = None
    expiry: Optional[datetime] = None
