"""Local key/value settings and deletion tombstones (never synced as records)."""
from sqlalchemy import Column, Integer, String, DateTime, Text, UniqueConstraint

from idea_sync.database import Base


class Setting(Base):
    """Key/value store for device-local state (tokens, sync metadata)."""

    __tablename__ = "settings"

    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=True)

    def __repr__(self):
        return f"<Setting {self.key}>"


class Tombstone(Base):
    """Marker left behind when a record is purged, so the purge can propagate."""

    __tablename__ = "tombstones"
    __table_args__ = (UniqueConstraint("collection", "uuid", name="uq_tombstone_collection_uuid"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    collection = Column(String(50), nullable=False)
    uuid = Column(String(36), nullable=False, index=True)
    deleted_at = Column(DateTime, nullable=False, index=True)

    def __repr__(self):
        return f"<Tombstone {self.collection}:{self.uuid}>"
