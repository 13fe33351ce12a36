"""Optimistic bid state for one auction view.

The state is either ``Confirmed`` (authoritative auction plus recent bids) or
``Pending`` (a local optimistic bid shown on top of a confirmed baseline).
Every change goes through one of the transition functions below; none of them
mutate their inputs.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Union

from ..auction.models import Auction, Bid

DEFAULT_HISTORY_LIMIT = 5


class ReconcilePolicy(str, Enum):
    ANY_BID = "any_bid"
    COVERING_BID = "covering_bid"


@dataclass(frozen=True)
class Confirmed:
    auction: Auction
    bids: tuple[Bid, ...] = ()


@dataclass(frozen=True)
class Pending:
    optimistic: Bid
    baseline: Confirmed
    submission_id: str


BidState = Union[Confirmed, Pending]


def confirmed_of(state: BidState) -> Confirmed:
    return state.baseline if isinstance(state, Pending) else state


def begin_submission(state: BidState, optimistic: Bid, submission_id: str) -> Pending:
    # A newer submission replaces the projection but keeps the authoritative baseline.
    return Pending(optimistic=optimistic, baseline=confirmed_of(state), submission_id=submission_id)


def reject_submission(state: BidState, submission_id: str) -> BidState:
    if isinstance(state, Pending) and state.submission_id == submission_id:
        return state.baseline
    return state


def _is_stale(confirmed: Confirmed, bid: Bid) -> bool:
    if any(known.id == bid.id for known in confirmed.bids):
        return True
    newest = confirmed.bids[0] if confirmed.bids else None
    return newest is not None and bid.created_at < newest.created_at


def apply_bid_accepted(
    state: BidState,
    bid: Bid,
    *,
    limit: int = DEFAULT_HISTORY_LIMIT,
    policy: ReconcilePolicy = ReconcilePolicy.ANY_BID,
) -> BidState:
    confirmed = confirmed_of(state)
    if _is_stale(confirmed, bid):
        return state
    updated = Confirmed(
        auction=confirmed.auction.with_price(bid.amount),
        bids=((bid,) + confirmed.bids)[:limit],
    )
    if (
        isinstance(state, Pending)
        and policy is ReconcilePolicy.COVERING_BID
        and bid.amount < state.optimistic.amount
    ):
        return replace(state, baseline=updated)
    return updated


def apply_auction_updated(
    state: BidState,
    auction: Auction,
    *,
    policy: ReconcilePolicy = ReconcilePolicy.ANY_BID,
) -> BidState:
    updated = Confirmed(auction=auction, bids=confirmed_of(state).bids)
    if (
        isinstance(state, Pending)
        and policy is ReconcilePolicy.COVERING_BID
        and not auction.is_ended
        and auction.current_price < state.optimistic.amount
    ):
        return replace(state, baseline=updated)
    return updated


def displayed_price(state: BidState) -> int:
    if isinstance(state, Pending):
        return state.optimistic.amount
    return state.auction.current_price


def displayed_bids(state: BidState, limit: int = DEFAULT_HISTORY_LIMIT) -> list[Bid]:
    if isinstance(state, Pending):
        return [state.optimistic, *state.baseline.bids][:limit]
    return list(state.bids[:limit])
