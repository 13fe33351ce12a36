"""Display formatting for prices and bid timestamps."""

from __future__ import annotations

from datetime import datetime

CURRENCY_SUFFIX = "원"


def format_price(amount: int) -> str:
    return f"{amount:,}{CURRENCY_SUFFIX}"


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'s' if count > 1 else ''} ago"


def format_relative_time(timestamp: datetime, now: datetime) -> str:
    seconds = int((now - timestamp).total_seconds())
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24
    if days > 0:
        return _plural(days, "day")
    if hours > 0:
        return _plural(hours, "hour")
    if minutes > 0:
        return _plural(minutes, "minute")
    if seconds > 10:
        return f"{seconds} seconds ago"
    return "just now"
