"""Database models."""
from idea_sync.models.note import Note
from idea_sync.models.task import Task, DeletedTask
from idea_sync.models.category import Category
from idea_sync.models.chat import ChatSession, ChatMessage
from idea_sync.models.setting import Setting, Tombstone

__all__ = [
    "Note",
    "Task",
    "DeletedTask",
    "Category",
    "ChatSession",
    "ChatMessage",
    "Setting",
    "Tombstone",
]
