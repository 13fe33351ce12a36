"""Auction detail session: state, subscription and coordinator for one mounted view."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import AsyncIterator, Callable

from ..auction.countdown import Countdown, countdown_ticks, derive_countdown
from ..bidding.classifier import RejectionClassifier, build_classifier
from ..bidding.coordinator import BidOutcome, ClientBidCoordinator
from ..bidding.projection import ReconcilePolicy
from ..config import ClientConfig
from ..events.handler import EventReconciler
from ..storage import AuctionStore, Subscription
from ..storage.errors import AuctionNotFound
from ..transport.timestamps import utcnow
from .state import AuctionView, ViewError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DetailSettings:
    bidder_name: str = "Anonymous"
    submission_timeout_ms: int = 10_000
    history_limit: int = 5
    classifier: str = "message"
    policy: ReconcilePolicy = ReconcilePolicy.ANY_BID
    ending_soon_threshold: timedelta = timedelta(minutes=30)
    tick_interval: float = 1.0

    @classmethod
    def from_config(cls, config: ClientConfig) -> "DetailSettings":
        return cls(
            bidder_name=config.bidding.bidder_name,
            submission_timeout_ms=config.bidding.submission_timeout_ms,
            history_limit=config.detail.bid_history_limit,
            classifier=config.bidding.rejection_classifier,
            policy=ReconcilePolicy(config.bidding.reconcile_policy),
            ending_soon_threshold=config.countdown.ending_soon_threshold,
            tick_interval=config.countdown.tick_ms / 1000,
        )


class AuctionDetailSession:
    def __init__(
        self,
        store: AuctionStore,
        auction_id: str,
        settings: DetailSettings | None = None,
        *,
        classifier: RejectionClassifier | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._settings = settings or DetailSettings()
        self._clock = clock or utcnow
        self.view = AuctionView(auction_id, history_limit=self._settings.history_limit)
        self.coordinator = ClientBidCoordinator(
            store,
            self.view,
            bidder_name=self._settings.bidder_name,
            submission_timeout_ms=self._settings.submission_timeout_ms,
            classifier=classifier or build_classifier(self._settings.classifier),
            policy=self._settings.policy,
            clock=self._clock,
        )
        self._reconciler = EventReconciler(self.coordinator, auction_id)
        self._subscription: Subscription | None = None
        self._consumer: asyncio.Task | None = None

    @property
    def settings(self) -> DetailSettings:
        return self._settings

    @property
    def auction_id(self) -> str:
        return self.view.auction_id

    @property
    def mounted(self) -> bool:
        return self._subscription is not None

    async def mount(self) -> AuctionView:
        # Subscribe before the initial fetch so no event falls into the gap;
        # events queued meanwhile are deduplicated against the fetched history.
        try:
            self._subscription = await self._store.subscribe(self.auction_id)
        except Exception as exc:
            logger.error(f"Subscription failed for auction {self.auction_id}: {exc}", exc_info=True)
            self.view.error = ViewError.fetch_failed("Live updates unavailable")
            return self.view
        await self.refetch()
        self._consumer = asyncio.create_task(self._consume(self._subscription))
        return self.view

    async def _consume(self, subscription: Subscription) -> None:
        await self._reconciler.run(subscription)
        if self._subscription is subscription:
            logger.warning("event stream for auction %s ended while mounted", self.auction_id)
            self._subscription = None
            self.view.error = ViewError.fetch_failed("Live updates unavailable")

    async def refetch(self) -> AuctionView:
        self.view.loading = True
        self.view.error = None
        try:
            auction = await self._store.get_auction(self.auction_id)
            bids = await self._store.list_bids(self.auction_id, self._settings.history_limit)
        except AuctionNotFound:
            logger.info("auction %s not found", self.auction_id)
            self.view.state = None
            self.view.error = ViewError.not_found()
        except Exception as exc:
            logger.error(f"Error fetching auction detail {self.auction_id}: {exc}", exc_info=True)
            self.view.error = ViewError.fetch_failed()
        else:
            self._reconciler.guard.remember(bid.id for bid in bids)
            self.coordinator.load(auction, bids)
        finally:
            self.view.loading = False
        return self.view

    async def retry(self) -> AuctionView:
        if not self.mounted:
            return await self.mount()
        return await self.refetch()

    async def submit(self, amount: int) -> BidOutcome:
        return await self.coordinator.submit(self.auction_id, amount)

    def countdown(self) -> Countdown | None:
        auction = self.view.auction
        if auction is None:
            return None
        return derive_countdown(
            auction.ends_at,
            self._clock(),
            ending_soon_threshold=self._settings.ending_soon_threshold,
        )

    async def ticks(self) -> AsyncIterator[Countdown]:
        """Countdown updates for the loaded auction until it reads Ended."""
        auction = self.view.auction
        if auction is None:
            return
        async for countdown in countdown_ticks(
            auction.ends_at,
            clock=self._clock,
            interval=self._settings.tick_interval,
            ending_soon_threshold=self._settings.ending_soon_threshold,
        ):
            yield countdown

    async def unmount(self) -> None:
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            await subscription.close()
        if self._consumer is not None:
            self._consumer.cancel()
            try:
                await self._consumer
            except asyncio.CancelledError:
                pass
            self._consumer = None
        logger.info("auction %s view unmounted", self.auction_id)
