"""API Routers."""
from idea_sync.routers import records, tasks, sync

__all__ = ["records", "tasks", "sync"]
