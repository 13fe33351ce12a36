"""Timestamp helpers for store rows and realtime payloads."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any


class TimestampError(ValueError):
    """Raised when a timestamp is missing, malformed or not timezone-aware."""


def parse_timestamp(value: Any) -> datetime:
    if value is None or value == "":
        raise TimestampError("timestamp missing")
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError as exc:
            raise TimestampError(f"timestamp {value!r} is not ISO-8601 compatible") from exc
    else:
        raise TimestampError(f"unsupported timestamp type {type(value).__name__}")
    if dt.tzinfo is None:
        raise TimestampError("timestamp must include timezone information")
    return dt.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
