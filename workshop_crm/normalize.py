"""
Storage-boundary normalisation.

Documents coming from the booking flow carry ids either as plain strings or as
{"$oid": ...} wrappers, and dates as ISO strings, {"$date": ...} wrappers or
epoch milliseconds. These helpers turn them into canonical str / naive-UTC
datetime values before any business logic sees them.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Current time as a naive UTC datetime (the form stored in the database)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def normalize_id(value: Any) -> str:
    """Return the canonical string form of a document id"""
    if value is None:
        return ""
    if isinstance(value, dict):
        if "$oid" in value:
            return str(value["$oid"])
        return ""
    return str(value)


def _to_naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def normalize_datetime(value: Any) -> Optional[datetime]:
    """
    Convert any supported date representation to a naive UTC datetime.

    Returns None for missing or unparseable values; never raises.
    """
    if value is None or value == "":
        return None

    if isinstance(value, dict):
        if "$date" not in value:
            return None
        inner = value["$date"]
        if isinstance(inner, dict) and "$numberLong" in inner:
            inner = int(inner["$numberLong"])
        return normalize_datetime(inner)

    if isinstance(value, datetime):
        return _to_naive_utc(value)

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc).replace(tzinfo=None)
        except (OverflowError, OSError, ValueError):
            return None

    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return _to_naive_utc(datetime.fromisoformat(text))
        except ValueError:
            logger.debug(f"Unparseable datetime value: {value!r}")
            return None

    return None


def as_text(value: Any, placeholder: str = "Unknown") -> str:
    """Return value as a stripped string, or the placeholder when empty"""
    if value is None:
        return placeholder
    text = str(value).strip()
    return text or placeholder
