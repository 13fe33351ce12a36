"""Authoritative events pushed by the auction store."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from ..auction.models import Auction, Bid


@dataclass(frozen=True)
class BidAccepted:
    bid: Bid

    @property
    def auction_id(self) -> str:
        return self.bid.auction_id


@dataclass(frozen=True)
class AuctionUpdated:
    auction: Auction

    @property
    def auction_id(self) -> str:
        return self.auction.id


AuctionEvent = Union[BidAccepted, AuctionUpdated]
