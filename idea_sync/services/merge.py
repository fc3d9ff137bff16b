"""Merge engine: reconcile a remote snapshot into the local record store.

Last-write-wins per record, keyed by ``uuid``:

- remote record without a uuid: skipped (untracked)
- uuid unknown locally: inserted with a fresh local key, unless a local
  tombstone is at least as new as the record
- remote ``updatedAt`` strictly newer than local: local fields overwritten
- otherwise (same age or older): local copy kept

A missing ``updatedAt`` is the oldest possible clock. Merge writes copy the
remote clock verbatim and never bump it, which keeps repeated merges of the
same snapshot idempotent.
"""
import logging
from typing import Any, Dict, Mapping, Tuple

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError

from idea_sync.core.errors import APIError, ConflictError, ErrorCode, ValidationError
from idea_sync.schemas.record_schemas import Collection, TombstoneRecord
from idea_sync.schemas.snapshot_schemas import Snapshot
from idea_sync.schemas.sync_schemas import MergeReport
from idea_sync.services.record_store import RecordStore
from idea_sync.utils.timestamps import merge_clock

logger = logging.getLogger(__name__)

INSERTED = "inserted"
UPDATED = "updated"
UNCHANGED = "unchanged"
SKIPPED = "skipped"
DELETED = "deleted"

# Failures isolated to a single record
_RECORD_ERRORS = (APIError, SQLAlchemyError)


class MergeEngine:
    """Stateless reconciler; all side effects go through the record store."""

    def __init__(self, store: RecordStore):
        self.store = store

    async def merge_snapshot(self, snapshot: Snapshot) -> MergeReport:
        """Merge every collection of ``snapshot``; one bad record never stops the rest."""
        report = MergeReport()

        for remote in snapshot.data.tombstones:
            try:
                collection, outcome = await self.merge_tombstone(remote)
            except _RECORD_ERRORS as exc:
                report.stats("tombstones").failed += 1
                report.errors.append(f"tombstones: {exc}")
                logger.warning(f"Skipping malformed tombstone: {exc}")
                continue
            if outcome == DELETED:
                report.stats(collection.value).deleted += 1

        for collection in Collection:
            stats = report.stats(collection.value)
            for remote in snapshot.data.records(collection):
                try:
                    outcome = await self.merge_record(collection, remote)
                except _RECORD_ERRORS as exc:
                    stats.failed += 1
                    report.errors.append(f"{collection.value}/{_uuid_of(remote)}: {exc}")
                    logger.warning(f"Failed to merge {collection.value} record {_uuid_of(remote)}: {exc}")
                    continue
                setattr(stats, outcome, getattr(stats, outcome) + 1)

        logger.info(f"Merge finished: {report.changed} changes, {report.failed} failures")
        return report

    async def merge_record(self, collection: Collection, remote: Mapping[str, Any]) -> str:
        """Apply one remote record; returns the outcome name."""
        if not isinstance(remote, Mapping):
            raise ValidationError(
                message=f"{collection.value} entry is not an object",
                code=ErrorCode.VALIDATION_INVALID_VALUE,
            )

        uuid = remote.get("uuid")
        if not uuid:
            return SKIPPED
        if not isinstance(uuid, str):
            raise ValidationError(message="uuid must be a string", param="uuid",
                                  code=ErrorCode.VALIDATION_INVALID_VALUE)

        remote_clock = merge_clock(remote.get("updatedAt"))
        local = await self.store.find_by_uuid(collection, uuid)

        if local is None:
            tombstone = await self.store.find_tombstone(collection, uuid)
            if tombstone is not None and remote_clock <= tombstone.deleted_at:
                return SKIPPED
            try:
                await self.store.insert(collection, _without(remote, "id"), touch=False)
                return INSERTED
            except ConflictError as exc:
                if exc.code != ErrorCode.CONFLICT_DUPLICATE_UUID:
                    raise
                # Created locally after the lookup
                local = await self.store.find_by_uuid(collection, uuid)
                if local is None:
                    raise

        if remote_clock > merge_clock(local.updated_at):
            # The store re-checks the clock in the write itself
            merged = await self.store.update(
                collection, local.id, _without(remote, "id", "uuid"),
                touch=False, only_if_older_than=remote_clock,
            )
            return UPDATED if merged is not None else UNCHANGED

        return UNCHANGED

    async def merge_tombstone(self, remote: Mapping[str, Any]) -> Tuple[Collection, str]:
        """Record a remote tombstone and purge the local copy if it is older."""
        try:
            tombstone = TombstoneRecord.model_validate(remote)
        except PydanticValidationError as exc:
            raise ValidationError(
                message="Invalid tombstone",
                code=ErrorCode.VALIDATION_INVALID_VALUE,
                details=[e["msg"] for e in exc.errors()],
            ) from exc

        await self.store.put_tombstone(tombstone.collection, tombstone.uuid, tombstone.deleted_at)

        local = await self.store.find_by_uuid(tombstone.collection, tombstone.uuid)
        if local is not None and tombstone.deleted_at > merge_clock(local.updated_at):
            purged = await self.store.delete(
                tombstone.collection, local.id,
                deleted_at=tombstone.deleted_at, only_if_older_than=tombstone.deleted_at,
            )
            if purged:
                return tombstone.collection, DELETED
        return tombstone.collection, UNCHANGED


def _without(remote: Mapping[str, Any], *keys: str) -> Dict[str, Any]:
    return {k: v for k, v in remote.items() if k not in keys}


def _uuid_of(remote: Any) -> str:
    if isinstance(remote, Mapping):
        return str(remote.get("uuid") or "<no uuid>")
    return "<invalid>"
