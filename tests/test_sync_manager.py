"""Sync orchestrator tests: full cycles, single-flight, failure handling."""
import asyncio
from datetime import timedelta

import pytest

from idea_sync.schemas.record_schemas import Collection
from idea_sync.services.sync_manager import LAST_SYNC_KEY, SyncManager
from idea_sync.utils.timestamps import format_timestamp, utcnow
from tests.sync_helpers import (
    FakeCredentials,
    FakeTransport,
    FakeUsageReporter,
    note_payload,
    snapshot_bytes,
    task_payload,
)


def make_manager(store, settings, transport, credentials=None, usage_reporter=None):
    return SyncManager(
        store,
        credentials or FakeCredentials(),
        transport_factory=lambda token: transport,
        usage_reporter=usage_reporter,
        settings=settings,
    )


@pytest.mark.asyncio
async def test_end_to_end_sync_merges_then_uploads(store, settings):
    await store.insert(Collection.TASKS, task_payload(uuid="t1", title="Buy milk", updated_at="2024-01-01"))
    transport = FakeTransport(snapshot_bytes(
        tasks=[task_payload(uuid="t1", title="Buy milk and eggs", updated_at="2024-01-02")],
        notes=[note_payload(uuid="n1", title="Idea", updated_at="2024-01-01")],
    ))
    reporter = FakeUsageReporter()
    manager = make_manager(store, settings, transport, usage_reporter=reporter)

    result = await manager.sync()

    assert result.status == "success"
    assert result.remote_found is True
    assert result.attempts == 1

    task = await store.find_by_uuid(Collection.TASKS, "t1")
    assert task.title == "Buy milk and eggs"
    notes = await store.all(Collection.NOTES)
    assert [n.uuid for n in notes] == ["n1"]

    uploaded = transport.last_upload()
    assert uploaded["version"] == settings.snapshot_version
    assert [t["title"] for t in uploaded["data"]["tasks"]] == ["Buy milk and eggs"]
    assert [n["uuid"] for n in uploaded["data"]["notes"]] == ["n1"]

    assert await store.get_setting(LAST_SYNC_KEY) is not None
    assert await manager.last_sync_at() is not None
    assert reporter.reports == [result.uploaded_counts]
    assert reporter.reports[0]["tasks"] == 1
    assert reporter.reports[0]["notes"] == 1


@pytest.mark.asyncio
async def test_first_sync_creates_remote_file(store, settings):
    await store.insert(Collection.NOTES, note_payload(uuid="n1"))
    transport = FakeTransport(content=None)
    manager = make_manager(store, settings, transport)

    result = await manager.sync()

    assert result.status == "success"
    assert result.remote_found is False
    assert transport.download_calls == 0
    assert transport.upload_calls == 1
    assert transport.last_upload()["data"]["notes"][0]["uuid"] == "n1"


@pytest.mark.asyncio
async def test_second_sync_is_stable(store, settings):
    transport = FakeTransport(snapshot_bytes(notes=[note_payload(uuid="n1", updated_at="2024-01-01")]))
    manager = make_manager(store, settings, transport)

    await manager.sync()
    second = await manager.sync()

    assert second.status == "success"
    assert second.merge.changed == 0
    assert await store.count(Collection.NOTES) == 1


@pytest.mark.asyncio
async def test_concurrent_sync_calls_are_single_flight(store, settings):
    transport = FakeTransport(snapshot_bytes(notes=[note_payload(uuid="n1", updated_at="2024-01-01")]))
    transport.download_gate = asyncio.Event()
    manager = make_manager(store, settings, transport)

    first = asyncio.create_task(manager.sync())
    await transport.download_started.wait()
    assert manager.is_syncing is True

    second = await manager.sync()
    assert second.status == "skipped"
    assert second.reason == "already_syncing"

    transport.download_gate.set()
    result = await first

    assert result.status == "success"
    assert transport.download_calls == 1
    assert transport.upload_calls == 1
    assert manager.is_syncing is False


@pytest.mark.asyncio
async def test_guard_is_set_before_first_await(store, settings):
    manager = make_manager(store, settings, FakeTransport())

    first = manager.sync()
    second = manager.sync()
    results = await asyncio.gather(first, second)

    assert sorted(r.status for r in results) == ["skipped", "success"]


@pytest.mark.asyncio
async def test_no_credential_skips_without_transport(store, settings):
    created = []

    def factory(token):
        created.append(token)
        return FakeTransport()

    manager = SyncManager(store, FakeCredentials(token=None), transport_factory=factory, settings=settings)

    result = await manager.sync()

    assert result.status == "skipped"
    assert result.reason == "no_credentials"
    assert created == []
    assert await store.get_setting(LAST_SYNC_KEY) is None
    assert manager.is_syncing is False


@pytest.mark.asyncio
@pytest.mark.parametrize("stage", ["find", "download", "upload"])
async def test_transport_failure_leaves_metadata_untouched(store, settings, stage):
    await store.set_setting(LAST_SYNC_KEY, "2024-01-01T00:00:00.000Z")
    transport = FakeTransport(snapshot_bytes(notes=[]), fail_on=stage)
    reporter = FakeUsageReporter()
    manager = make_manager(store, settings, transport, usage_reporter=reporter)

    result = await manager.sync()

    assert result.status == "failed"
    assert "Failed to" in result.error
    assert result.error_code == "drive_service_failed"
    assert manager.last_result is result
    assert manager.is_syncing is False
    assert await store.get_setting(LAST_SYNC_KEY) == "2024-01-01T00:00:00.000Z"
    assert reporter.reports == []


@pytest.mark.asyncio
async def test_corrupt_remote_snapshot_is_replaced(store, settings):
    await store.insert(Collection.TASKS, task_payload(uuid="t1"))
    transport = FakeTransport(b"{this is not json")
    manager = make_manager(store, settings, transport)

    result = await manager.sync()

    assert result.status == "success"
    assert result.remote_corrupt is True
    assert result.merge is None
    assert transport.last_upload()["data"]["tasks"][0]["uuid"] == "t1"


@pytest.mark.asyncio
async def test_usage_reporter_failure_does_not_fail_sync(store, settings):
    transport = FakeTransport(content=None)
    reporter = FakeUsageReporter(fail=True)
    manager = make_manager(store, settings, transport, usage_reporter=reporter)

    result = await manager.sync()

    assert result.status == "success"
    assert len(reporter.reports) == 1
    assert await store.get_setting(LAST_SYNC_KEY) is not None


@pytest.mark.asyncio
async def test_remote_conflict_triggers_remerge(store, settings):
    transport = FakeTransport(snapshot_bytes(notes=[note_payload(uuid="n1", updated_at="2024-01-01")]), conflicts=1)
    manager = make_manager(store, settings, transport)

    result = await manager.sync()

    assert result.status == "success"
    assert result.attempts == 2
    assert transport.download_calls == 2
    assert transport.upload_calls == 2
    assert len(transport.uploads) == 1


@pytest.mark.asyncio
async def test_remote_conflict_gives_up_after_retries(store, settings):
    transport = FakeTransport(snapshot_bytes(notes=[]), conflicts=5)
    manager = make_manager(store, settings, transport)

    result = await manager.sync()

    assert result.status == "failed"
    assert "changed since download" in result.error
    assert transport.upload_calls == settings.sync_conflict_retries + 1
    assert transport.uploads == []
    assert await store.get_setting(LAST_SYNC_KEY) is None


@pytest.mark.asyncio
async def test_timeout_releases_guard(store, settings):
    settings.sync_timeout_seconds = 0.05
    transport = FakeTransport(snapshot_bytes(notes=[]))
    transport.download_gate = asyncio.Event()  # never set
    states = []
    manager = make_manager(store, settings, transport)
    manager.subscribe(states.append)

    result = await manager.sync()

    assert result.status == "failed"
    assert "timed out" in result.error
    assert result.error_code == "external_timeout"
    assert manager.is_syncing is False
    assert states == [True, False]
    assert transport.upload_calls == 0


@pytest.mark.asyncio
async def test_cancellation_releases_guard(store, settings):
    transport = FakeTransport(snapshot_bytes(notes=[]))
    transport.download_gate = asyncio.Event()
    manager = make_manager(store, settings, transport)

    task = asyncio.create_task(manager.sync())
    await transport.download_started.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert manager.is_syncing is False


@pytest.mark.asyncio
async def test_listeners_and_unsubscribe(store, settings):
    manager = make_manager(store, settings, FakeTransport())
    seen = []
    other = []

    def broken_listener(is_syncing):
        raise RuntimeError("listener bug")

    unsubscribe = manager.subscribe(seen.append)
    manager.subscribe(broken_listener)
    manager.subscribe(other.append)

    await manager.sync()
    assert seen == [True, False]
    assert other == [True, False]

    unsubscribe()
    unsubscribe()
    await manager.sync()

    assert seen == [True, False]
    assert other == [True, False, True, False]


@pytest.mark.asyncio
async def test_expired_tombstones_are_pruned_before_export(store, settings):
    old = utcnow() - timedelta(days=settings.tombstone_retention_days + 1)
    await store.put_tombstone(Collection.NOTES, "ancient", old)
    await store.put_tombstone(Collection.NOTES, "recent", utcnow())
    transport = FakeTransport(content=None)
    manager = make_manager(store, settings, transport)

    await manager.sync()

    uploaded = [t["uuid"] for t in transport.last_upload()["data"]["tombstones"]]
    assert uploaded == ["recent"]


@pytest.mark.asyncio
async def test_deletion_propagates_between_devices(tmp_path, settings):
    from idea_sync.config import Settings
    from idea_sync.database import close_db, create_engine, create_session_factory, init_db
    from idea_sync.services.record_store import RecordStore

    remote = FakeTransport(content=None)
    engines = []
    stores = []
    for name in ("device-a", "device-b"):
        device_settings = Settings(
            _env_file=None,
            database_url=f"sqlite+aiosqlite:///{tmp_path / name}.db",
            sync_timeout_seconds=5.0,
        )
        engine = create_engine(device_settings)
        await init_db(engine)
        engines.append(engine)
        stores.append(RecordStore(create_session_factory(engine)))
    store_a, store_b = stores

    try:
        note = await store_a.insert(Collection.NOTES, note_payload(uuid="n1", updated_at="2024-01-01"))
        await make_manager(store_a, settings, remote).sync()
        await make_manager(store_b, settings, remote).sync()
        assert await store_b.find_by_uuid(Collection.NOTES, "n1") is not None

        await store_a.delete(Collection.NOTES, note.id)
        await make_manager(store_a, settings, remote).sync()
        await make_manager(store_b, settings, remote).sync()

        assert await store_b.find_by_uuid(Collection.NOTES, "n1") is None
        # And device A does not get it back
        await make_manager(store_a, settings, remote).sync()
        assert await store_a.find_by_uuid(Collection.NOTES, "n1") is None
    finally:
        for engine in engines:
            await close_db(engine)


@pytest.mark.asyncio
async def test_last_sync_at_reads_metadata(store, settings):
    manager = make_manager(store, settings, FakeTransport())
    assert await manager.last_sync_at() is None

    stamp = utcnow()
    await store.set_setting(LAST_SYNC_KEY, format_timestamp(stamp))
    assert await manager.last_sync_at() == stamp
