"""Unit tests for price and relative-time formatting."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from bidflow.auction.formatting import format_price, format_relative_time

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


def test_format_price_uses_separators_and_won_suffix():
    assert format_price(1_550_000) == "1,550,000원"
    assert format_price(0) == "0원"


@pytest.mark.parametrize(
    ("delta", "expected"),
    [
        (timedelta(seconds=5), "just now"),
        (timedelta(seconds=10), "just now"),
        (timedelta(seconds=42), "42 seconds ago"),
        (timedelta(minutes=1), "1 minute ago"),
        (timedelta(minutes=12), "12 minutes ago"),
        (timedelta(hours=1), "1 hour ago"),
        (timedelta(hours=5), "5 hours ago"),
        (timedelta(days=1), "1 day ago"),
        (timedelta(days=3), "3 days ago"),
    ],
)
def test_format_relative_time(delta, expected):
    assert format_relative_time(NOW - delta, NOW) == expected
