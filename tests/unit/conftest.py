"""Shared fixtures for the unit tests."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from bidflow.auction.models import Auction, AuctionStatus, Bid
from bidflow.storage.in_memory import InMemoryAuctionStore

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def auction_factory():
    def build(**overrides) -> Auction:
        fields = {
            "id": "auc_1",
            "title": "Vintage Leica M3 Camera",
            "description": "A pristine condition Leica M3 from 1954.",
            "start_price": 1_500_000,
            "current_price": 1_500_000,
            "min_increment": 50_000,
            "ends_at": NOW + timedelta(hours=24),
            "status": AuctionStatus.ACTIVE,
        }
        fields.update(overrides)
        return Auction(**fields)

    return build


@pytest.fixture
def bid_factory():
    def build(amount: int, *, bid_id: str | None = None, seconds: int = 0, **overrides) -> Bid:
        fields = {
            "id": bid_id or f"bid_{amount}",
            "auction_id": "auc_1",
            "bidder_name": "ShutterBug",
            "amount": amount,
            "created_at": NOW + timedelta(seconds=seconds),
        }
        fields.update(overrides)
        return Bid(**fields)

    return build


@pytest.fixture
def store(clock, auction_factory) -> InMemoryAuctionStore:
    store = InMemoryAuctionStore(clock=clock)
    store.add_auction(auction_factory())
    return store


async def settle(rounds: int = 20) -> None:
    """Let queued callbacks and consumer tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def run_pending():
    return settle
