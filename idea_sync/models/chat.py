"""Chat session and message models."""
from sqlalchemy import Column, String, DateTime, Text

from idea_sync.database import Base
from idea_sync.models.mixins import SyncIdentityMixin


class ChatSession(SyncIdentityMixin, Base):
    """Conversation with the assistant."""

    __tablename__ = "chat_sessions"

    title = Column(String(500), nullable=True)  # Generated from the first message
    created_at = Column(DateTime, nullable=False, index=True)

    def __repr__(self):
        return f"<ChatSession {self.title or self.uuid}>"


class ChatMessage(SyncIdentityMixin, Base):
    """Single message within a chat session."""

    __tablename__ = "chat_messages"

    session_id = Column(String(64), nullable=False, index=True)
    role = Column(String(20), nullable=False)  # user, assistant
    content = Column(Text, nullable=False)
    timestamp = Column(DateTime, nullable=False, index=True)

    def __repr__(self):
        return f"<ChatMessage {self.role}: {self.content[:30]}>"
