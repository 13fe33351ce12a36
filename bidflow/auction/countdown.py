"""Countdown derivation for auction deadlines.

The countdown is display-only. An auction's status flips to ended when the
store says so; a skewed client clock can only make the label read "Ended"
early, never block or accept a bid.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import AsyncIterator, Callable

ENDED_LABEL = "Ended"
DEFAULT_ENDING_SOON_THRESHOLD = timedelta(minutes=30)


@dataclass(frozen=True)
class Countdown:
    remaining: timedelta
    label: str
    ended: bool
    ending_soon: bool


def remaining(ends_at: datetime, now: datetime) -> timedelta:
    return max(ends_at - now, timedelta(0))


def format_time_remaining(left: timedelta) -> str:
    if left <= timedelta(0):
        return ENDED_LABEL
    total_seconds = int(left.total_seconds())
    hours, rest = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rest, 60)
    if hours > 0:
        return f"{hours}h {minutes}m"
    if minutes > 0:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"


def derive_countdown(
    ends_at: datetime,
    now: datetime,
    *,
    ending_soon_threshold: timedelta = DEFAULT_ENDING_SOON_THRESHOLD,
) -> Countdown:
    left = remaining(ends_at, now)
    ended = left <= timedelta(0)
    return Countdown(
        remaining=left,
        label=format_time_remaining(left),
        ended=ended,
        ending_soon=not ended and left <= ending_soon_threshold,
    )


async def countdown_ticks(
    ends_at: datetime,
    *,
    clock: Callable[[], datetime],
    interval: float = 1.0,
    ending_soon_threshold: timedelta = DEFAULT_ENDING_SOON_THRESHOLD,
) -> AsyncIterator[Countdown]:
    """Yield a fresh countdown every ``interval`` seconds until it reads Ended."""
    while True:
        countdown = derive_countdown(
            ends_at, clock(), ending_soon_threshold=ending_soon_threshold
        )
        yield countdown
        if countdown.ended:
            return
        await asyncio.sleep(interval)
