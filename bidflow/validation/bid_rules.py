"""Bid acceptance rules enforced by the auction store.

The client mirrors them for display (minimum bid, rejection messages); the
store alone decides acceptance and raises the price.
"""

from __future__ import annotations

from ..auction.models import Auction
from ..bidding.errors import BidRejection, RejectionKind

TOO_LOW_MESSAGE = "Bid too low: minimum is {minimum}"
ENDED_MESSAGE = "Cannot bid on ended auction"


def check_bid(auction: Auction, amount: int) -> BidRejection | None:
    if auction.is_ended:
        return BidRejection.auction_ended(ENDED_MESSAGE)
    minimum = auction.minimum_bid
    if amount < minimum:
        return BidRejection.too_low(minimum, TOO_LOW_MESSAGE.format(minimum=minimum))
    return None


def rejection_message(rejection: BidRejection) -> str:
    if rejection.message:
        return rejection.message
    if rejection.kind is RejectionKind.TOO_LOW:
        return TOO_LOW_MESSAGE.format(minimum=rejection.minimum_required)
    if rejection.kind is RejectionKind.AUCTION_ENDED:
        return ENDED_MESSAGE
    return "bid rejected"
