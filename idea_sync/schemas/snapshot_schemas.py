"""Remote snapshot schema (the JSON document stored in Google Drive)."""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from idea_sync.schemas.record_schemas import Collection
from idea_sync.utils.timestamps import parse_timestamp


class SnapshotData(BaseModel):
    """
    Full exported state.

    Records stay as raw dicts here so that one malformed record is rejected on
    its own during merge instead of invalidating the whole snapshot.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    notes: List[Dict[str, Any]] = Field(default_factory=list)
    tasks: List[Dict[str, Any]] = Field(default_factory=list)
    categories: List[Dict[str, Any]] = Field(default_factory=list)
    chat_sessions: List[Dict[str, Any]] = Field(default_factory=list)
    chat_messages: List[Dict[str, Any]] = Field(default_factory=list)
    deleted_tasks: List[Dict[str, Any]] = Field(default_factory=list)
    tombstones: List[Dict[str, Any]] = Field(default_factory=list)

    @field_validator("*", mode="before")
    @classmethod
    def _null_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    def records(self, collection: Collection) -> List[Dict[str, Any]]:
        """Raw records of one collection."""
        return getattr(self, collection.value)


class Snapshot(BaseModel):
    """Envelope written to the backup file: ``{version, lastSync, data}``."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    version: str
    last_sync: Optional[datetime] = None
    data: SnapshotData = Field(default_factory=SnapshotData)

    @field_validator("last_sync", mode="before")
    @classmethod
    def _lenient_last_sync(cls, value: Any) -> Any:
        return parse_timestamp(value)

    def counts(self) -> Dict[str, int]:
        """Number of records per collection."""
        return {c.value: len(self.data.records(c)) for c in Collection}
