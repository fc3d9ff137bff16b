"""Snapshot encoding, decoding and export tests."""
import json
from datetime import datetime

import pytest

from idea_sync.core.errors import CorruptSnapshotError, ErrorCode
from idea_sync.schemas.record_schemas import Collection
from idea_sync.services.snapshot import decode_snapshot, encode_snapshot, export_collections
from idea_sync.utils.timestamps import format_timestamp, parse_timestamp
from tests.sync_helpers import note_payload, snapshot_document, task_payload


def test_timestamps_use_millisecond_z_format():
    assert format_timestamp(datetime(2024, 1, 2, 3, 4, 5, 678901)) == "2024-01-02T03:04:05.678Z"
    assert parse_timestamp("2024-01-02T03:04:05.678Z") == datetime(2024, 1, 2, 3, 4, 5, 678000)
    assert parse_timestamp("2024-01-01") == datetime(2024, 1, 1)
    assert parse_timestamp(1704067200000) == datetime(2024, 1, 1)
    assert parse_timestamp("not a date") is None
    assert parse_timestamp(None) is None


def test_encode_snapshot_layout():
    raw = encode_snapshot(
        {"notes": [], "tasks": [task_payload(uuid="t1")]},
        version="1.0.0",
        exported_at=datetime(2024, 1, 2, 12, 0),
    )

    document = json.loads(raw.decode("utf-8"))
    assert document["version"] == "1.0.0"
    assert document["lastSync"] == "2024-01-02T12:00:00.000Z"
    assert document["data"]["tasks"][0]["uuid"] == "t1"


def test_decode_snapshot_tolerates_missing_and_null_collections():
    document = snapshot_document(notes=[note_payload(uuid="n1")])
    document["data"]["tasks"] = None

    snapshot = decode_snapshot(json.dumps(document).encode("utf-8"))

    assert snapshot.version == "1.0.0"
    assert snapshot.last_sync == datetime(2024, 1, 2, 12, 0)
    assert snapshot.data.records(Collection.TASKS) == []
    assert snapshot.counts()["notes"] == 1
    assert snapshot.counts()["chat_messages"] == 0


@pytest.mark.parametrize("raw", [
    b"{not json",
    b"\xff\xfe\x00garbage",
    b"[1, 2, 3]",
    json.dumps({"data": {}}).encode("utf-8"),
    json.dumps({"version": "1.0.0", "data": {"notes": "oops"}}).encode("utf-8"),
])
def test_decode_snapshot_rejects_corrupt_payloads(raw):
    with pytest.raises(CorruptSnapshotError) as exc_info:
        decode_snapshot(raw)
    assert exc_info.value.code == ErrorCode.SNAPSHOT_CORRUPT


@pytest.mark.asyncio
async def test_export_collections_uses_wire_format(store):
    await store.insert(Collection.TASKS, task_payload(uuid="t1", updated_at="2024-01-01", completedAt="2024-01-01T10:00:00Z"))
    note = await store.insert(Collection.NOTES, note_payload(uuid="n1", updated_at="2024-01-01"))
    await store.delete(Collection.NOTES, note.id)

    data = await export_collections(store)

    assert set(data) == {
        "notes", "tasks", "deletedTasks", "categories", "chatSessions", "chatMessages", "tombstones",
    }
    (task,) = data["tasks"]
    assert task["uuid"] == "t1"
    assert task["updatedAt"] == "2024-01-01T00:00:00.000Z"
    assert task["completedAt"] == "2024-01-01T10:00:00.000Z"
    assert isinstance(task["id"], int)
    assert data["notes"] == []
    assert data["tombstones"][0]["uuid"] == "n1"
    assert data["tombstones"][0]["collection"] == "notes"

    # Exported data must survive a round trip through the file format
    snapshot = decode_snapshot(encode_snapshot(data, "1.0.0"))
    assert snapshot.data.tasks[0]["title"] == "Buy milk"
