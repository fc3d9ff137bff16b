"""Record Pydantic schemas: one tagged variant per synced collection.

All variants share the identity envelope (``id``, ``uuid``, ``updatedAt``) and
serialize with camelCase keys, which is the shape stored in the remote snapshot.
"""
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, ClassVar, Dict, List, Literal, Optional, Type

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    field_validator,
)
from pydantic.alias_generators import to_camel

from idea_sync.utils.timestamps import format_timestamp, parse_timestamp, to_utc_naive


class Collection(str, Enum):
    """The six mutable collections that take part in sync."""

    NOTES = "notes"
    TASKS = "tasks"
    DELETED_TASKS = "deleted_tasks"
    CATEGORIES = "categories"
    CHAT_SESSIONS = "chat_sessions"
    CHAT_MESSAGES = "chat_messages"

    @property
    def snapshot_key(self) -> str:
        """Key of this collection inside the snapshot's ``data`` object."""
        return to_camel(self.value)


# Datetimes are normalized to naive UTC and written as toISOString()-style strings
Timestamp = Annotated[
    datetime,
    AfterValidator(to_utc_naive),
    PlainSerializer(format_timestamp, return_type=str, when_used="json"),
]

# Merge clock: malformed values degrade to "missing" instead of failing the record
Clock = Annotated[
    Optional[datetime],
    BeforeValidator(parse_timestamp),
    PlainSerializer(
        lambda v: format_timestamp(v) if v is not None else None,
        return_type=Optional[str],
        when_used="json",
    ),
]

Priority = Literal["low", "medium", "high"]


class SyncRecord(BaseModel):
    """Identity envelope shared by every record variant."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        extra="ignore",
    )

    collection: ClassVar["Collection"]

    id: Optional[int] = None  # Storage-local key, unstable across devices
    uuid: Optional[str] = None
    updated_at: Clock = None

    @classmethod
    def field_name(cls, key: str) -> Optional[str]:
        """Resolve a wire key (camelCase) or attribute name to the field name."""
        if key in cls.model_fields:
            return key
        for name, info in cls.model_fields.items():
            if info.alias == key:
                return name
        return None

    @classmethod
    def normalize_keys(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        """Map wire keys to field names, dropping keys the variant doesn't know."""
        normalized = {}
        for key, value in data.items():
            name = cls.field_name(key)
            if name is not None:
                normalized[name] = value
        return normalized

    def payload(self) -> Dict[str, Any]:
        """Field values without the storage-local key, ready for the ORM."""
        return self.model_dump(exclude={"id"})

    def to_wire(self) -> Dict[str, Any]:
        """JSON-ready camelCase representation used in snapshots and API responses."""
        return self.model_dump(mode="json", by_alias=True)


class NoteRecord(SyncRecord):
    """Note captured by voice or text."""

    collection: ClassVar[Collection] = Collection.NOTES

    title: str
    content: str
    category: str
    date: Timestamp
    transcription_status: Optional[Literal["pending", "completed", "failed"]] = None


class TaskRecord(SyncRecord):
    """Task."""

    collection: ClassVar[Collection] = Collection.TASKS

    title: str
    description: Optional[str] = None
    completed: bool
    date: Optional[Timestamp] = None
    time: Optional[str] = None
    priority: Priority
    category: str
    completed_at: Optional[Timestamp] = None


class DeletedTaskRecord(SyncRecord):
    """Task moved to the trash, keeping the local key of the task it came from."""

    collection: ClassVar[Collection] = Collection.DELETED_TASKS

    original_id: str
    title: str
    description: Optional[str] = None
    completed: bool
    date: Optional[Timestamp] = None
    time: Optional[str] = None
    priority: Priority
    category: str
    deleted_at: Timestamp
    completed_at: Optional[Timestamp] = None

    @field_validator("original_id", mode="before")
    @classmethod
    def _coerce_original_id(cls, value: Any) -> Any:
        # Older clients wrote the numeric local key
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(int(value))
        return value


class CategoryRecord(SyncRecord):
    """Category created by the user or the AI categorizer."""

    collection: ClassVar[Collection] = Collection.CATEGORIES

    name: str
    type: Literal["note", "task", "both"]
    created_by: Literal["user", "ai"]
    keywords: List[str]
    color: Optional[str] = None
    icon: Optional[str] = None
    count: int
    created_at: Timestamp


class ChatSessionRecord(SyncRecord):
    """Conversation with the assistant."""

    collection: ClassVar[Collection] = Collection.CHAT_SESSIONS

    created_at: Timestamp
    title: Optional[str] = None


class ChatMessageRecord(SyncRecord):
    """Single chat message."""

    collection: ClassVar[Collection] = Collection.CHAT_MESSAGES

    session_id: str
    role: Literal["user", "assistant"]
    content: str
    timestamp: Timestamp

    @field_validator("session_id", mode="before")
    @classmethod
    def _coerce_session_id(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(int(value))
        return value


RECORD_TYPES: Dict[Collection, Type[SyncRecord]] = {
    Collection.NOTES: NoteRecord,
    Collection.TASKS: TaskRecord,
    Collection.DELETED_TASKS: DeletedTaskRecord,
    Collection.CATEGORIES: CategoryRecord,
    Collection.CHAT_SESSIONS: ChatSessionRecord,
    Collection.CHAT_MESSAGES: ChatMessageRecord,
}


class TombstoneRecord(BaseModel):
    """Marker for a purged record, exchanged alongside the collections."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    collection: Collection
    uuid: str = Field(..., min_length=1)
    deleted_at: Timestamp

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
