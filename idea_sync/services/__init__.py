"""Service layer: record store, merge, transport and sync orchestration."""
from idea_sync.services.record_store import RecordStore
from idea_sync.services.merge import MergeEngine
from idea_sync.services.drive_transport import GoogleDriveTransport, RemoteFile
from idea_sync.services.credentials import StoredTokenCredentialProvider
from idea_sync.services.usage import SupabaseUsageReporter
from idea_sync.services.sync_manager import SyncManager

__all__ = [
    "RecordStore",
    "MergeEngine",
    "GoogleDriveTransport",
    "RemoteFile",
    "StoredTokenCredentialProvider",
    "SupabaseUsageReporter",
    "SyncManager",
]
