"""In-memory auction store with per-store serialized bid acceptance."""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections import defaultdict
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable

from ..auction.models import Auction, AuctionStatus, Bid, NewBid
from ..transport.timestamps import utcnow
from ..validation.bid_rules import check_bid, rejection_message
from .errors import AuctionNotFound, StoreRejection
from .subscription import QueueSubscription

logger = logging.getLogger(__name__)


class InMemoryAuctionStore:
    def __init__(self, *, clock: Callable[[], datetime] | None = None) -> None:
        self._auctions: dict[str, Auction] = {}
        self._bids: dict[str, list[Bid]] = defaultdict(list)
        self._subscribers: dict[str, list[QueueSubscription]] = defaultdict(list)
        self._lock = asyncio.Lock()
        self._clock = clock or utcnow

    # Seeding helpers (synchronous, no events)

    def add_auction(self, auction: Auction) -> Auction:
        self._auctions[auction.id] = auction
        return auction

    def add_bid(self, bid: Bid) -> Bid:
        if bid.auction_id not in self._auctions:
            raise AuctionNotFound(bid.auction_id)
        self._bids[bid.auction_id].append(bid)
        return bid

    # Queries

    async def get_auction(self, auction_id: str) -> Auction:
        async with self._lock:
            try:
                return self._auctions[auction_id]
            except KeyError as exc:
                raise AuctionNotFound(auction_id) from exc

    async def list_bids(self, auction_id: str, limit: int) -> list[Bid]:
        async with self._lock:
            # newest commit first among equal timestamps
            history = sorted(
                reversed(self._bids.get(auction_id, [])),
                key=lambda bid: bid.created_at,
                reverse=True,
            )
            return history[:limit]

    async def list_active_auctions(self) -> list[Auction]:
        async with self._lock:
            active = [a for a in self._auctions.values() if a.status is AuctionStatus.ACTIVE]
            return sorted(active, key=lambda auction: auction.ends_at)

    # Commands

    async def create_auction(self, record: dict[str, Any]) -> Auction:
        payload = {"id": uuid.uuid4().hex, "status": "active", **record}
        payload.setdefault("current_price", payload.get("start_price"))
        payload.setdefault("created_at", self._clock())
        auction = Auction.from_record(payload)
        async with self._lock:
            self._auctions[auction.id] = auction
        return auction

    async def insert_bid(self, new_bid: NewBid) -> Bid:
        async with self._lock:
            auction = self._auctions.get(new_bid.auction_id)
            if auction is None:
                raise StoreRejection(f"auction {new_bid.auction_id} not found", code="not_found")
            now = self._clock()
            if not auction.is_ended and now >= auction.ends_at:
                auction = self._end(auction)
            rejection = check_bid(auction, new_bid.amount)
            if rejection is not None:
                raise StoreRejection(rejection_message(rejection), code=rejection.kind.value)
            bid = Bid(
                id=uuid.uuid4().hex,
                auction_id=auction.id,
                bidder_name=new_bid.bidder_name,
                amount=new_bid.amount,
                created_at=now,
            )
            updated = auction.with_price(bid.amount)
            self._bids[auction.id].append(bid)
            self._auctions[auction.id] = updated
            self._publish(auction.id, "bid_accepted", bid.to_record())
            self._publish(auction.id, "auction_updated", updated.to_record())
            return bid

    async def end_auction(self, auction_id: str) -> Auction:
        async with self._lock:
            try:
                auction = self._auctions[auction_id]
            except KeyError as exc:
                raise AuctionNotFound(auction_id) from exc
            if auction.is_ended:
                return auction
            return self._end(auction)

    async def close_expired(self) -> list[Auction]:
        async with self._lock:
            now = self._clock()
            expired = [
                auction
                for auction in self._auctions.values()
                if not auction.is_ended and now >= auction.ends_at
            ]
            return [self._end(auction) for auction in expired]

    def _end(self, auction: Auction) -> Auction:
        ended = replace(auction, status=AuctionStatus.ENDED)
        self._auctions[auction.id] = ended
        logger.info("auction %s ended at price %s", auction.id, ended.current_price)
        self._publish(auction.id, "auction_updated", ended.to_record())
        return ended

    # Realtime

    async def subscribe(self, auction_id: str) -> QueueSubscription:
        subscription = QueueSubscription(auction_id, on_close=self._unsubscribe)
        self._subscribers[auction_id].append(subscription)
        return subscription

    def _unsubscribe(self, subscription: QueueSubscription) -> None:
        subscribers = self._subscribers.get(subscription.auction_id, [])
        if subscription in subscribers:
            subscribers.remove(subscription)

    def _publish(self, auction_id: str, event_type: str, record: dict[str, Any]) -> None:
        envelope = {"type": event_type, "auction_id": auction_id, "record": record}
        for subscription in list(self._subscribers.get(auction_id, [])):
            subscription.push(envelope)

    async def close(self) -> None:
        for subscriptions in list(self._subscribers.values()):
            for subscription in list(subscriptions):
                await subscription.close()
