"""Task and DeletedTask models."""
from sqlalchemy import Column, String, Boolean, DateTime, Text

from idea_sync.database import Base
from idea_sync.models.mixins import SyncIdentityMixin


class Task(SyncIdentityMixin, Base):
    """Task model."""

    __tablename__ = "tasks"

    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    completed = Column(Boolean, default=False, nullable=False, index=True)
    date = Column(DateTime, nullable=True, index=True)
    time = Column(String(20), nullable=True)  # "HH:MM" as typed by the user
    priority = Column(String(10), default="medium", nullable=False)
    category = Column(String(255), nullable=False)
    completed_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<Task {self.title[:50]}>"


class DeletedTask(SyncIdentityMixin, Base):
    """Soft-deleted task, kept in the trash until restored or purged."""

    __tablename__ = "deleted_tasks"

    original_id = Column(String(64), nullable=False, index=True)  # Local key of the task it came from
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    completed = Column(Boolean, default=False, nullable=False)
    date = Column(DateTime, nullable=True)
    time = Column(String(20), nullable=True)
    priority = Column(String(10), default="medium", nullable=False)
    category = Column(String(255), nullable=False)
    deleted_at = Column(DateTime, nullable=False, index=True)
    completed_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<DeletedTask {self.title[:50]}>"
