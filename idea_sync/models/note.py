"""Note model for voice and text captures."""
from sqlalchemy import Column, String, DateTime, Text

from idea_sync.database import Base
from idea_sync.models.mixins import SyncIdentityMixin


class Note(SyncIdentityMixin, Base):
    """Note captured by voice or text."""

    __tablename__ = "notes"

    title = Column(String(500), nullable=False)
    content = Column(Text, nullable=False)
    category = Column(String(255), nullable=False, index=True)
    date = Column(DateTime, nullable=False, index=True)
    transcription_status = Column(String(20), nullable=True)  # pending, completed, failed

    def __repr__(self):
        return f"<Note {self.title[:50]}>"
