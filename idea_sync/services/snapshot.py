"""Snapshot encoding/decoding and export of the local store."""
import json
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from idea_sync.core.errors import CorruptSnapshotError
from idea_sync.schemas.record_schemas import Collection, TombstoneRecord
from idea_sync.schemas.snapshot_schemas import Snapshot
from idea_sync.services.record_store import RecordStore
from idea_sync.utils.timestamps import format_timestamp, utcnow


def encode_snapshot(
    data: Dict[str, List[Dict[str, Any]]],
    version: str,
    exported_at: Optional[datetime] = None,
) -> bytes:
    """
    Serialize exported collections into the backup file format.

    Args:
        data: wire-format records keyed by snapshot key (``notes``, ``chatSessions``, ...)
        version: snapshot format version
        exported_at: export time, defaults to now

    Returns:
        UTF-8 encoded JSON document
    """
    document = {
        "version": version,
        "lastSync": format_timestamp(exported_at or utcnow()),
        "data": data,
    }
    return json.dumps(document, indent=2, ensure_ascii=False).encode("utf-8")


def decode_snapshot(raw: bytes) -> Snapshot:
    """
    Parse a downloaded backup file.

    Raises:
        CorruptSnapshotError: payload is not UTF-8 JSON or does not match the schema
    """
    try:
        document = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise CorruptSnapshotError(f"Snapshot is not valid JSON: {exc}") from exc

    if not isinstance(document, dict):
        raise CorruptSnapshotError("Snapshot root must be a JSON object")

    try:
        return Snapshot.model_validate(document)
    except PydanticValidationError as exc:
        details = [f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in exc.errors()]
        raise CorruptSnapshotError("Snapshot does not match the expected schema", details=details) from exc


async def export_collections(store: RecordStore) -> Dict[str, List[Dict[str, Any]]]:
    """Read the full store into wire-format collections, tombstones included."""
    data: Dict[str, List[Dict[str, Any]]] = {}
    for collection in Collection:
        records = await store.all(collection)
        data[collection.snapshot_key] = [record.to_wire() for record in records]

    tombstones: List[TombstoneRecord] = await store.tombstones()
    data["tombstones"] = [t.to_wire() for t in tombstones]
    return data
