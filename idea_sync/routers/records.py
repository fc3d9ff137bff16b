"""Generic record CRUD across the synced collections."""
import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Body, Depends, Request

from idea_sync.core.errors import NotFoundError
from idea_sync.core.middleware import get_request_id
from idea_sync.core.responses import MessageResponse
from idea_sync.dependencies import get_store
from idea_sync.services.record_store import RecordStore, resolve_collection

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/{collection}", response_model=List[Dict[str, Any]])
async def list_records(collection: str, store: RecordStore = Depends(get_store)):
    """List every record of a collection, ordered by local key."""
    records = await store.all(resolve_collection(collection))
    return [record.to_wire() for record in records]


@router.post("/{collection}", status_code=201)
async def create_record(
    collection: str,
    data: Dict[str, Any] = Body(...),
    store: RecordStore = Depends(get_store),
) -> Dict[str, Any]:
    """
    Create a record.

    The local key is always assigned by the store. A uuid is generated when
    the payload carries none, and ``updatedAt`` defaults to now.
    """
    data.pop("id", None)
    record = await store.insert(resolve_collection(collection), data)
    logger.info(f"Created {collection} record {record.id} ({record.uuid})")
    return record.to_wire()


@router.get("/{collection}/uuid/{uuid}")
async def get_record_by_uuid(
    collection: str,
    uuid: str,
    store: RecordStore = Depends(get_store),
) -> Dict[str, Any]:
    """Look up a record by its cross-device identifier."""
    record = await store.find_by_uuid(resolve_collection(collection), uuid)
    if record is None:
        raise NotFoundError(resource="record", identifier=uuid)
    return record.to_wire()


@router.get("/{collection}/{local_key}")
async def get_record(
    collection: str,
    local_key: int,
    store: RecordStore = Depends(get_store),
) -> Dict[str, Any]:
    """Get a single record by local key."""
    record = await store.get(resolve_collection(collection), local_key)
    return record.to_wire()


@router.patch("/{collection}/{local_key}")
async def update_record(
    collection: str,
    local_key: int,
    patch: Dict[str, Any] = Body(...),
    store: RecordStore = Depends(get_store),
) -> Dict[str, Any]:
    """Partially update a record. ``id`` and ``uuid`` in the body are ignored."""
    record = await store.update(resolve_collection(collection), local_key, patch)
    return record.to_wire()


@router.delete("/{collection}/{local_key}", response_model=MessageResponse)
async def delete_record(
    collection: str,
    local_key: int,
    request: Request,
    store: RecordStore = Depends(get_store),
):
    """Permanently delete a record; a tombstone propagates the deletion on next sync."""
    resolved = resolve_collection(collection)
    await store.delete(resolved, local_key)
    return MessageResponse(
        message=f"Deleted {resolved.value} record {local_key}",
        request_id=get_request_id(request),
    )
