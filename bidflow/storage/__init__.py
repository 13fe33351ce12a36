"""Auction store contract and backend factory."""

from __future__ import annotations

from typing import Any, AsyncIterator, Protocol

from ..auction.models import Auction, Bid, NewBid
from ..config import ClientConfig
from .errors import AuctionNotFound, StoreError, StoreRejection
from .in_memory import InMemoryAuctionStore
from .postgres import PostgresAuctionStore

__all__ = [
    "AuctionNotFound",
    "AuctionStore",
    "InMemoryAuctionStore",
    "PostgresAuctionStore",
    "StoreError",
    "StoreRejection",
    "Subscription",
    "build_store",
]


class Subscription(Protocol):
    auction_id: str

    def __aiter__(self) -> AsyncIterator[dict[str, Any]]: ...

    async def close(self) -> None: ...


class AuctionStore(Protocol):
    async def get_auction(self, auction_id: str) -> Auction:
        """Return the auction or raise AuctionNotFound."""
        ...

    async def list_bids(self, auction_id: str, limit: int) -> list[Bid]:
        """Most recent bids first."""
        ...

    async def list_active_auctions(self) -> list[Auction]:
        """Active auctions, soonest deadline first."""
        ...

    async def insert_bid(self, new_bid: NewBid) -> Bid:
        """Accept the bid or raise StoreRejection."""
        ...

    async def subscribe(self, auction_id: str) -> Subscription: ...

    async def close(self) -> None: ...


def build_store(config: ClientConfig) -> AuctionStore:
    backend = config.store.backend
    options = dict(config.store.options)
    if backend == "in_memory":
        return InMemoryAuctionStore()
    if backend == "postgres":
        return PostgresAuctionStore(**options)
    raise ValueError(f"unknown store backend {backend}")
