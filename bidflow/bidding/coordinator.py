"""Client-side bid coordinator: optimistic submission, rollback, reconciliation."""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, Union

from ..auction.models import Auction, Bid, NewBid
from ..events.models import AuctionEvent, AuctionUpdated, BidAccepted
from ..storage import AuctionStore
from ..storage.errors import StoreRejection
from ..transport.timestamps import utcnow
from ..views.state import AuctionView
from .classifier import MessageRejectionClassifier, RejectionClassifier
from .errors import BidRejection, notification_text
from .projection import (
    Confirmed,
    ReconcilePolicy,
    apply_auction_updated,
    apply_bid_accepted,
    begin_submission,
    confirmed_of,
    reject_submission,
)

logger = logging.getLogger(__name__)

DEFAULT_SUBMISSION_TIMEOUT_MS = 10_000


@dataclass(frozen=True)
class Accepted:
    bid: Bid


@dataclass(frozen=True)
class Rejected:
    reason: BidRejection


BidOutcome = Union[Accepted, Rejected]


def _log_late_result(request: asyncio.Future) -> None:
    if request.cancelled():
        return
    exc = request.exception()
    if exc is not None:
        logger.info("late bid submission resolved with error: %s", exc)
    else:
        logger.info("late bid submission accepted by store: %s", request.result().id)


class ClientBidCoordinator:
    """Owns the bid state of one auction view.

    ``submit`` installs an optimistic projection before its first await and
    resolves it on rejection; ``reconcile`` folds authoritative store events
    into the view. Nothing else writes ``view.state``.
    """

    def __init__(
        self,
        store: AuctionStore,
        view: AuctionView,
        *,
        bidder_name: str = "Anonymous",
        submission_timeout_ms: int = DEFAULT_SUBMISSION_TIMEOUT_MS,
        classifier: RejectionClassifier | None = None,
        policy: ReconcilePolicy = ReconcilePolicy.ANY_BID,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._view = view
        self._bidder_name = bidder_name
        self._timeout = submission_timeout_ms / 1000
        self._classifier = classifier or MessageRejectionClassifier()
        self._policy = policy
        self._clock = clock or utcnow
        self._latest_submission: str | None = None

    @property
    def view(self) -> AuctionView:
        return self._view

    def load(self, auction: Auction, bids: Iterable[Bid]) -> None:
        self._view.state = Confirmed(
            auction=auction, bids=tuple(bids)[: self._view.history_limit]
        )

    async def submit(self, auction_id: str, amount: int) -> BidOutcome:
        if auction_id != self._view.auction_id:
            raise ValueError(f"coordinator is bound to auction {self._view.auction_id}")
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValueError("amount must be a positive integer")
        if self._view.state is None:
            raise ValueError("auction state is not loaded")

        submission_id = uuid.uuid4().hex
        optimistic = Bid(
            id=f"optimistic-{submission_id}",
            auction_id=auction_id,
            bidder_name=self._bidder_name,
            amount=amount,
            created_at=self._clock(),
        )
        self._view.state = begin_submission(self._view.state, optimistic, submission_id)
        self._latest_submission = submission_id
        self._view.notification = None
        logger.info("submitting bid auction=%s amount=%s submission=%s", auction_id, amount, submission_id)

        request = asyncio.ensure_future(
            self._store.insert_bid(NewBid(auction_id, self._bidder_name, amount))
        )
        try:
            bid = await asyncio.wait_for(asyncio.shield(request), timeout=self._timeout)
        except StoreRejection as exc:
            reason = self._classifier.classify(exc, fallback_minimum=self._current_minimum())
            logger.info("bid rejected auction=%s amount=%s reason=%s", auction_id, amount, reason.kind.value)
            return self._rollback(submission_id, reason)
        except asyncio.TimeoutError:
            logger.warning(
                "bid submission timed out after %.1fs auction=%s amount=%s",
                self._timeout,
                auction_id,
                amount,
            )
            request.add_done_callback(_log_late_result)
            return self._rollback(submission_id, BidRejection.unknown("bid submission timed out"))
        except Exception as exc:
            logger.error(f"Bid submission failed for auction {auction_id}: {exc}", exc_info=True)
            return self._rollback(submission_id, BidRejection.unknown(str(exc)))

        logger.info("bid accepted auction=%s amount=%s bid=%s", auction_id, amount, bid.id)
        return Accepted(bid)

    def reconcile(self, event: AuctionEvent) -> None:
        if event.auction_id != self._view.auction_id:
            return
        state = self._view.state
        if state is None:
            logger.debug("dropping %s before auction %s is loaded", type(event).__name__, event.auction_id)
            return
        if isinstance(event, BidAccepted):
            self._view.state = apply_bid_accepted(
                state, event.bid, limit=self._view.history_limit, policy=self._policy
            )
        elif isinstance(event, AuctionUpdated):
            self._view.state = apply_auction_updated(state, event.auction, policy=self._policy)

    def _current_minimum(self) -> int | None:
        if self._view.state is None:
            return None
        return confirmed_of(self._view.state).auction.minimum_bid

    def _rollback(self, submission_id: str, reason: BidRejection) -> Rejected:
        if self._view.state is not None:
            self._view.state = reject_submission(self._view.state, submission_id)
        if submission_id == self._latest_submission:
            self._view.notification = notification_text(reason)
        else:
            logger.debug("superseded submission %s resolved as %s", submission_id, reason.kind.value)
        return Rejected(reason)
