"""Task soft delete (trash) and restore."""
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends

from idea_sync.dependencies import get_store
from idea_sync.services.record_store import RecordStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/tasks/{local_key}/trash")
async def trash_task(local_key: int, store: RecordStore = Depends(get_store)) -> Dict[str, Any]:
    """Move a task to the trash; returns the new deleted-task record."""
    trashed = await store.trash_task(local_key)
    return trashed.to_wire()


@router.post("/deleted-tasks/{local_key}/restore")
async def restore_task(local_key: int, store: RecordStore = Depends(get_store)) -> Dict[str, Any]:
    """Restore a deleted task; returns the recreated task record."""
    task = await store.restore_task(local_key)
    return task.to_wire()
