"""Bid rejection taxonomy shared by the coordinator and the views."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ..auction.formatting import format_price


class RejectionKind(str, Enum):
    TOO_LOW = "too_low"
    AUCTION_ENDED = "auction_ended"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class BidRejection:
    kind: RejectionKind
    minimum_required: int | None = None
    message: str = ""

    @classmethod
    def too_low(cls, minimum: int | None, message: str = "") -> "BidRejection":
        return cls(RejectionKind.TOO_LOW, minimum_required=minimum, message=message)

    @classmethod
    def auction_ended(cls, message: str = "") -> "BidRejection":
        return cls(RejectionKind.AUCTION_ENDED, message=message)

    @classmethod
    def unknown(cls, message: str = "") -> "BidRejection":
        return cls(RejectionKind.UNKNOWN, message=message)


def notification_text(rejection: BidRejection) -> str:
    if rejection.kind is RejectionKind.TOO_LOW:
        if rejection.minimum_required is None:
            return "Bid too low - minimum is unknown"
        return f"Bid too low - minimum is {format_price(rejection.minimum_required)}"
    if rejection.kind is RejectionKind.AUCTION_ENDED:
        return "Auction has ended"
    return "Failed to place bid. Please try again."
