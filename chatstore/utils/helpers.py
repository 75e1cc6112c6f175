"""General helper functions used across the application."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from .error_handler import InvalidArgumentError


def utc_now_iso() -> str:
    """Return the current UTC time as a fixed-width ISO 8601 string.

    Microsecond precision and a trailing ``Z`` keep every value the same
    length, so comparing two timestamps as strings gives the same answer
    as comparing them as datetimes.
    """
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def new_id() -> str:
    """Return a random (version 4) UUID string."""
    return str(uuid.uuid4())


def require_user_id(user_id: str | None) -> str:
    """Return ``user_id`` or raise when it is missing or blank."""
    if not user_id or not user_id.strip():
        raise InvalidArgumentError("userId is required")
    return user_id
