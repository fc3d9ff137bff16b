"""Identity and merge-clock helpers.

Every synced record carries a ``uuid`` generated once on the device that created
it and an ``updatedAt`` timestamp used as a logical clock. Timestamps are kept as
naive UTC datetimes locally and written as ``YYYY-MM-DDTHH:MM:SS.mmmZ`` on the
wire, the same shape a browser's ``Date.toISOString()`` produces.
"""
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

# Clock value for records without a usable updatedAt: loses to everything
OLDEST = datetime.min


def new_uuid() -> str:
    """Generate a new cross-device record identifier."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Current time as a naive UTC datetime, truncated to milliseconds like the wire format."""
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def to_utc_naive(value: datetime) -> datetime:
    """Normalize an aware datetime to naive UTC; naive values are assumed UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a wire timestamp into a naive UTC datetime.

    Accepts datetimes, ISO-8601 strings (with or without ``Z``) and epoch
    milliseconds. Returns None for missing or unparseable values.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return to_utc_naive(value)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return to_utc_naive(datetime.fromtimestamp(value / 1000, tz=timezone.utc))
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z") or text.endswith("z"):
            text = text[:-1] + "+00:00"
        try:
            return to_utc_naive(datetime.fromisoformat(text))
        except ValueError:
            return None
    return None


def format_timestamp(value: datetime) -> str:
    """Format a datetime the way JavaScript's toISOString() does."""
    return to_utc_naive(value).isoformat(timespec="milliseconds") + "Z"


def merge_clock(value: Any) -> datetime:
    """Comparable clock value; missing or malformed timestamps are the oldest."""
    parsed = parse_timestamp(value)
    return parsed if parsed is not None else OLDEST
