"""Local record store for the six synced collections.

Every public coroutine opens its own session and commits before returning, so
a caller never observes a buffered write.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Type, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from idea_sync.core.errors import ConflictError, ErrorCode, NotFoundError, ValidationError
from idea_sync.models import (
    Category,
    ChatMessage,
    ChatSession,
    DeletedTask,
    Note,
    Setting,
    Task,
    Tombstone,
)
from idea_sync.schemas.record_schemas import (
    RECORD_TYPES,
    Collection,
    DeletedTaskRecord,
    SyncRecord,
    TaskRecord,
    TombstoneRecord,
)
from idea_sync.utils.timestamps import new_uuid, utcnow

logger = logging.getLogger(__name__)

ORM_MODELS: Dict[Collection, Type] = {
    Collection.NOTES: Note,
    Collection.TASKS: Task,
    Collection.DELETED_TASKS: DeletedTask,
    Collection.CATEGORIES: Category,
    Collection.CHAT_SESSIONS: ChatSession,
    Collection.CHAT_MESSAGES: ChatMessage,
}

# Task fields carried over when moving between tasks and deleted_tasks
_TASK_FIELDS = ("title", "description", "completed", "date", "time", "priority", "category", "completed_at")

RecordInput = Union[SyncRecord, Mapping[str, Any]]


def resolve_collection(collection: Union[Collection, str]) -> Collection:
    """Accept a Collection, its table name, or its snapshot key."""
    if isinstance(collection, Collection):
        return collection
    for candidate in Collection:
        if collection in (candidate.value, candidate.snapshot_key):
            return candidate
    raise ValidationError(
        message=f"Unknown collection '{collection}'",
        param="collection",
        code=ErrorCode.VALIDATION_UNKNOWN_COLLECTION,
    )


def _validate(record_cls: Type[SyncRecord], data: Dict[str, Any]) -> SyncRecord:
    """Validate record data, translating pydantic errors into ValidationError."""
    try:
        return record_cls.model_validate(data)
    except PydanticValidationError as exc:
        errors = exc.errors()
        missing = [".".join(str(p) for p in e["loc"]) for e in errors if e["type"] == "missing"]
        details = [f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in errors]
        raise ValidationError(
            message=f"Invalid {record_cls.collection.value} record",
            param=missing[0] if missing else None,
            code=ErrorCode.VALIDATION_MISSING_FIELD if missing else ErrorCode.VALIDATION_INVALID_VALUE,
            details=details,
        ) from exc


def _older_than(model: Type, clock: datetime):
    """Row filter: merge clock missing or strictly before ``clock``."""
    return or_(model.updated_at.is_(None), model.updated_at < clock)


class RecordStore:
    """Collection-scoped CRUD, uuid lookup, tombstones and device-local settings."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    # -- Records --

    async def insert(
        self,
        collection: Union[Collection, str],
        record: RecordInput,
        touch: bool = True,
    ) -> SyncRecord:
        """
        Insert a record.

        Assigns a local key (unless one is supplied) and a uuid when absent.
        With ``touch`` a missing ``updatedAt`` is stamped with the current time;
        merge inserts pass ``touch=False`` so the remote clock is kept as-is.

        Raises:
            ValidationError: required payload fields missing or invalid
            ConflictError: the uuid (or local key) already exists in the collection
        """
        collection = resolve_collection(collection)
        record_cls = RECORD_TYPES[collection]
        if isinstance(record, SyncRecord):
            data = record.model_dump()
        else:
            data = record_cls.normalize_keys(dict(record))

        if not data.get("uuid"):
            data["uuid"] = new_uuid()
        if touch and data.get("updated_at") is None:
            data["updated_at"] = utcnow()

        validated = _validate(record_cls, data)
        row = ORM_MODELS[collection](**validated.payload())
        if validated.id is not None:
            row.id = validated.id

        async with self._session_factory() as session:
            session.add(row)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise ConflictError(
                    f"{collection.value} record with uuid '{validated.uuid}' already exists",
                    code=ErrorCode.CONFLICT_DUPLICATE_UUID,
                    param="uuid",
                ) from exc

        return record_cls.model_validate(row)

    async def update(
        self,
        collection: Union[Collection, str],
        local_key: int,
        patch: RecordInput,
        touch: bool = True,
        only_if_older_than: Optional[datetime] = None,
    ) -> Optional[SyncRecord]:
        """
        Merge ``patch`` into the record stored under ``local_key``.

        Identity fields (``id``, ``uuid``) in the patch are ignored. With
        ``touch`` the merge clock is bumped unless the patch carries its own.

        With ``only_if_older_than`` the write is conditional: it only lands
        while the stored ``updated_at`` is missing or older than that clock,
        checked in the same statement as the write. Returns None when the
        stored record is already as new or newer.

        Raises:
            NotFoundError: no record under ``local_key``
            ValidationError: the patched record is invalid
        """
        collection = resolve_collection(collection)
        record_cls = RECORD_TYPES[collection]
        model = ORM_MODELS[collection]

        if isinstance(patch, SyncRecord):
            changes = patch.model_dump(exclude_unset=True)
        else:
            changes = record_cls.normalize_keys(dict(patch))
        changes.pop("id", None)
        changes.pop("uuid", None)
        if touch and "updated_at" not in changes:
            changes["updated_at"] = utcnow()

        async with self._session_factory() as session:
            row = await session.get(model, local_key)
            if row is None:
                raise NotFoundError("record", str(local_key))

            current = record_cls.model_validate(row)
            merged = _validate(record_cls, {**current.model_dump(), **changes})

            if only_if_older_than is None:
                for name, value in merged.payload().items():
                    setattr(row, name, value)
                await session.commit()
                return record_cls.model_validate(row)

            result = await session.execute(
                update(model)
                .where(model.id == local_key, _older_than(model, only_if_older_than))
                .values(**merged.payload())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                await session.rollback()
                logger.info(f"Kept newer local {collection.value} record {local_key}")
                return None
            await session.commit()

        return merged

    async def get(self, collection: Union[Collection, str], local_key: int) -> SyncRecord:
        """Get a record by local key or raise NotFoundError."""
        collection = resolve_collection(collection)
        async with self._session_factory() as session:
            row = await session.get(ORM_MODELS[collection], local_key)
            if row is None:
                raise NotFoundError("record", str(local_key))
            return RECORD_TYPES[collection].model_validate(row)

    async def find_by_uuid(self, collection: Union[Collection, str], uuid: str) -> Optional[SyncRecord]:
        """Look up a record through the uuid index."""
        collection = resolve_collection(collection)
        model = ORM_MODELS[collection]
        async with self._session_factory() as session:
            result = await session.execute(select(model).where(model.uuid == uuid))
            row = result.scalar_one_or_none()
            if row is None:
                return None
            return RECORD_TYPES[collection].model_validate(row)

    async def all(self, collection: Union[Collection, str]) -> List[SyncRecord]:
        """Every record of a collection, ordered by local key."""
        collection = resolve_collection(collection)
        model = ORM_MODELS[collection]
        record_cls = RECORD_TYPES[collection]
        async with self._session_factory() as session:
            result = await session.execute(select(model).order_by(model.id))
            return [record_cls.model_validate(row) for row in result.scalars().all()]

    async def count(self, collection: Union[Collection, str]) -> int:
        collection = resolve_collection(collection)
        async with self._session_factory() as session:
            result = await session.execute(select(func.count()).select_from(ORM_MODELS[collection]))
            return result.scalar() or 0

    async def delete(
        self,
        collection: Union[Collection, str],
        local_key: int,
        deleted_at: Optional[datetime] = None,
        only_if_older_than: Optional[datetime] = None,
    ) -> bool:
        """
        Permanently purge a record and leave a tombstone for its uuid.

        ``deleted_at`` defaults to now; merge passes the remote tombstone time.
        With ``only_if_older_than`` the purge only happens while the stored
        ``updated_at`` is missing or older than that clock. Returns whether the
        record was purged.
        """
        collection = resolve_collection(collection)
        model = ORM_MODELS[collection]
        async with self._session_factory() as session:
            row = await session.get(model, local_key)
            if row is None:
                raise NotFoundError("record", str(local_key))
            uuid = row.uuid

            stmt = delete(model).where(model.id == local_key)
            if only_if_older_than is not None:
                stmt = stmt.where(_older_than(model, only_if_older_than))
            result = await session.execute(stmt.execution_options(synchronize_session=False))
            if result.rowcount == 0:
                await session.rollback()
                logger.info(f"Kept newer local {collection.value} record {local_key}")
                return False

            if uuid:
                await self._put_tombstone(session, collection, uuid, deleted_at or utcnow())
            await session.commit()
        logger.info(f"Purged {collection.value} record {local_key}")
        return True

    # -- Soft delete --

    async def trash_task(self, local_key: int) -> DeletedTaskRecord:
        """Move a task into deleted_tasks, keeping its local key as ``originalId``."""
        now = utcnow()
        async with self._session_factory() as session:
            task = await session.get(Task, local_key)
            if task is None:
                raise NotFoundError("task", str(local_key))

            trashed = DeletedTask(
                uuid=new_uuid(),
                updated_at=now,
                original_id=str(task.id),
                deleted_at=now,
                **{name: getattr(task, name) for name in _TASK_FIELDS},
            )
            session.add(trashed)
            if task.uuid:
                await self._put_tombstone(session, Collection.TASKS, task.uuid, now)
            await session.delete(task)
            await session.commit()

        logger.info(f"Moved task {local_key} to trash as deleted task {trashed.id}")
        return DeletedTaskRecord.model_validate(trashed)

    async def restore_task(self, local_key: int) -> TaskRecord:
        """Move a deleted task back into tasks as a new task."""
        now = utcnow()
        async with self._session_factory() as session:
            trashed = await session.get(DeletedTask, local_key)
            if trashed is None:
                raise NotFoundError("deleted_task", str(local_key))

            task = Task(
                uuid=new_uuid(),
                updated_at=now,
                **{name: getattr(trashed, name) for name in _TASK_FIELDS},
            )
            session.add(task)
            if trashed.uuid:
                await self._put_tombstone(session, Collection.DELETED_TASKS, trashed.uuid, now)
            await session.delete(trashed)
            await session.commit()

        logger.info(f"Restored deleted task {local_key} as task {task.id}")
        return TaskRecord.model_validate(task)

    # -- Tombstones --

    async def tombstones(self) -> List[TombstoneRecord]:
        async with self._session_factory() as session:
            result = await session.execute(select(Tombstone).order_by(Tombstone.id))
            return [
                TombstoneRecord(collection=t.collection, uuid=t.uuid, deleted_at=t.deleted_at)
                for t in result.scalars().all()
            ]

    async def find_tombstone(self, collection: Union[Collection, str], uuid: str) -> Optional[TombstoneRecord]:
        collection = resolve_collection(collection)
        async with self._session_factory() as session:
            row = await self._get_tombstone(session, collection, uuid)
            if row is None:
                return None
            return TombstoneRecord(collection=row.collection, uuid=row.uuid, deleted_at=row.deleted_at)

    async def put_tombstone(self, collection: Union[Collection, str], uuid: str, deleted_at: datetime) -> None:
        """Record a tombstone, keeping the newest deletion time for the uuid."""
        collection = resolve_collection(collection)
        async with self._session_factory() as session:
            await self._put_tombstone(session, collection, uuid, deleted_at)
            await session.commit()

    async def prune_tombstones(self, older_than: datetime) -> int:
        """Drop tombstones whose deletion time is before ``older_than``."""
        async with self._session_factory() as session:
            result = await session.execute(delete(Tombstone).where(Tombstone.deleted_at < older_than))
            await session.commit()
            return result.rowcount or 0

    async def _get_tombstone(self, session: AsyncSession, collection: Collection, uuid: str) -> Optional[Tombstone]:
        result = await session.execute(
            select(Tombstone).where(Tombstone.collection == collection.value, Tombstone.uuid == uuid)
        )
        return result.scalar_one_or_none()

    async def _put_tombstone(self, session: AsyncSession, collection: Collection, uuid: str, deleted_at: datetime):
        existing = await self._get_tombstone(session, collection, uuid)
        if existing is None:
            session.add(Tombstone(collection=collection.value, uuid=uuid, deleted_at=deleted_at))
        elif deleted_at > existing.deleted_at:
            existing.deleted_at = deleted_at

    # -- Device-local settings --

    async def get_setting(self, key: str) -> Optional[str]:
        async with self._session_factory() as session:
            row = await session.get(Setting, key)
            return row.value if row is not None else None

    async def set_setting(self, key: str, value: Optional[str]) -> None:
        async with self._session_factory() as session:
            row = await session.get(Setting, key)
            if row is None:
                session.add(Setting(key=key, value=value))
            else:
                row.value = value
            await session.commit()

    async def delete_setting(self, key: str) -> None:
        async with self._session_factory() as session:
            await session.execute(delete(Setting).where(Setting.key == key))
            await session.commit()

    # -- Maintenance --

    async def backfill_identity(self) -> int:
        """Give legacy rows (created before sync existed) a uuid and a merge clock."""
        fixed = 0
        now = utcnow()
        async with self._session_factory() as session:
            for collection, model in ORM_MODELS.items():
                result = await session.execute(
                    select(model).where(or_(model.uuid.is_(None), model.updated_at.is_(None)))
                )
                for row in result.scalars().all():
                    if not row.uuid:
                        row.uuid = new_uuid()
                    if row.updated_at is None:
                        row.updated_at = now
                    fixed += 1
            await session.commit()

        if fixed:
            logger.info(f"Backfilled identity on {fixed} legacy records")
        return fixed
