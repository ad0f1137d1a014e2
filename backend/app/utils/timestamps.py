"""Timestamp helpers shared by models, the store and the simulator."""

from __future__ import annotations

from datetime import UTC, datetime


def utcnow() -> datetime:
    """Return the current UTC time as a naive datetime, the form stored in the database."""

    return datetime.now(UTC).replace(tzinfo=None)


def serialize_timestamp(value: datetime | None) -> str | None:
    if value is None:
        return None
    timestamp = value.isoformat()
    if timestamp.endswith("+00:00"):
        return timestamp.replace("+00:00", "Z")
    if not timestamp.endswith("Z"):
        return f"{timestamp}Z"
    return timestamp
