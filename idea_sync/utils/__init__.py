"""Utility functions."""
from idea_sync.utils.timestamps import (
    new_uuid,
    utcnow,
    parse_timestamp,
    format_timestamp,
    merge_clock,
)
from idea_sync.utils.encryption import EncryptionService

__all__ = [
    "new_uuid",
    "utcnow",
    "parse_timestamp",
    "format_timestamp",
    "merge_clock",
    "EncryptionService",
]
