"""View state objects owned by a mounted view and its coordinator."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from ..auction.models import Auction, Bid
from ..bidding.projection import (
    DEFAULT_HISTORY_LIMIT,
    BidState,
    Pending,
    confirmed_of,
    displayed_bids,
    displayed_price,
)


class ViewErrorKind(str, Enum):
    FETCH_FAILED = "fetch_failed"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class ViewError:
    kind: ViewErrorKind
    message: str

    @property
    def retryable(self) -> bool:
        return self.kind is ViewErrorKind.FETCH_FAILED

    @classmethod
    def fetch_failed(cls, message: str = "Failed to load auction") -> "ViewError":
        return cls(ViewErrorKind.FETCH_FAILED, message)

    @classmethod
    def not_found(cls, message: str = "Auction not found") -> "ViewError":
        return cls(ViewErrorKind.NOT_FOUND, message)


@dataclass
class AuctionView:
    auction_id: str
    history_limit: int = DEFAULT_HISTORY_LIMIT
    state: BidState | None = None
    loading: bool = False
    error: ViewError | None = None
    notification: str | None = None

    @property
    def auction(self) -> Auction | None:
        if self.state is None:
            return None
        return confirmed_of(self.state).auction

    @property
    def pending(self) -> bool:
        return isinstance(self.state, Pending)

    @property
    def displayed_price(self) -> int | None:
        if self.state is None:
            return None
        return displayed_price(self.state)

    @property
    def displayed_bids(self) -> list[Bid]:
        if self.state is None:
            return []
        return displayed_bids(self.state, self.history_limit)

    def take_notification(self) -> str | None:
        message, self.notification = self.notification, None
        return message


@dataclass
class FeedState:
    auctions: list[Auction] = field(default_factory=list)
    loading: bool = False
    error: ViewError | None = None
