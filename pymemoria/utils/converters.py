"""
Converters module - Data conversion helpers for PyMemoria.
"""

import json
from datetime import datetime, timezone
from typing import Any, Optional


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_db_timestamp(dt: datetime) -> datetime:
    """Convert a datetime to the naive UTC form stored in DuckDB TIMESTAMP columns."""
    return ensure_utc(dt).replace(tzinfo=None)


def load_json_column(value: Any, default: Any) -> Any:
    """Decode a DuckDB JSON column, which may come back as str or as a Python object."""
    if value is None:
        return default
    if isinstance(value, str):
        return json.loads(value)
    return value


def format_timestamp(dt: Optional[datetime]) -> str:
    """
    Format a datetime as ``dd/mm/yy - H:MM AM/PM UTC``.

    Args:
        dt: Datetime to format (naive values are treated as UTC)

    Returns:
        Human-readable UTC timestamp, or "No timestamp" if dt is None
    """
    if dt is None:
        return "No timestamp"

    dt = ensure_utc(dt)
    hour = dt.hour % 12 or 12
    ampm = "PM" if dt.hour >= 12 else "AM"
    return f"{dt:%d/%m/%y} - {hour}:{dt:%M} {ampm} UTC"
