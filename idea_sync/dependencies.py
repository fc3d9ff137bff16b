"""FastAPI dependencies resolving the services built at startup."""
from fastapi import Request

from idea_sync.services.credentials import StoredTokenCredentialProvider
from idea_sync.services.record_store import RecordStore
from idea_sync.services.sync_manager import SyncManager


def get_store(request: Request) -> RecordStore:
    return request.app.state.store


def get_sync_manager(request: Request) -> SyncManager:
    return request.app.state.sync_manager


def get_credentials(request: Request) -> StoredTokenCredentialProvider:
    return request.app.state.credentials
