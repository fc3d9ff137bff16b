"""Category model for note/task classification."""
from sqlalchemy import Column, String, Integer, DateTime, JSON

from idea_sync.database import Base
from idea_sync.models.mixins import SyncIdentityMixin


class Category(SyncIdentityMixin, Base):
    """Category created by the user or suggested by the AI categorizer."""

    __tablename__ = "categories"

    name = Column(String(255), nullable=False, index=True)
    type = Column(String(10), nullable=False)  # note, task, both
    created_by = Column(String(10), nullable=False)  # user, ai
    keywords = Column(JSON, default=list, nullable=False)
    color = Column(String(32), nullable=True)
    icon = Column(String(50), nullable=True)
    count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, nullable=False)

    def __repr__(self):
        return f"<Category {self.name}>"
