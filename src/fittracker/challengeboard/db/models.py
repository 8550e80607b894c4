"""Shared SQLAlchemy ORM base and column helpers.

Every feature module declares its tables against ``Base`` so that
``Database.create_tables`` can create them in one pass.
"""

import json
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def generate_uuid() -> str:
    """Generate a UUID string for primary keys."""
    return str(uuid4())


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_iso(value: datetime) -> str:
    """Serialize a datetime as a fixed-width UTC ISO-8601 string.

    Naive datetimes are taken to be UTC. The fixed width keeps stored
    timestamps comparable as plain strings in SQL.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_iso(value: Optional[str]) -> Optional[datetime]:
    """Parse a stored ISO-8601 timestamp."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def now_iso() -> str:
    """Current UTC time as a stored timestamp string."""
    return to_iso(utc_now())


def load_json(value: Optional[str], default: Any = None) -> Any:
    """Decode a JSON text column."""
    if value:
        return json.loads(value)
    return default


def dump_json(value: Any) -> Optional[str]:
    """Encode a value for a JSON text column."""
    if value is None:
        return None
    return json.dumps(value, sort_keys=True)
