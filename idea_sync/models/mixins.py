"""Identity columns shared by every synced collection."""
from sqlalchemy import Column, Integer, String, DateTime


class SyncIdentityMixin:
    """
    Envelope columns carried by all six synced collections.

    - id: storage-local key, assigned by SQLite on insert (never synced as identity)
    - uuid: cross-device identity, unique per collection (NULL for legacy rows)
    - updated_at: merge clock, bumped on every local mutation
    """

    # Local keys are never reused after a purge; originalId relies on it
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    uuid = Column(String(36), unique=True, index=True, nullable=True)
    updated_at = Column(DateTime, nullable=True, index=True)
