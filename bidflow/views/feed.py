"""Active auction feed."""

from __future__ import annotations

import logging

from ..storage import AuctionStore
from .state import FeedState, ViewError

logger = logging.getLogger(__name__)


class AuctionFeed:
    def __init__(self, store: AuctionStore) -> None:
        self._store = store
        self.state = FeedState()

    async def refresh(self) -> FeedState:
        self.state.loading = True
        self.state.error = None
        try:
            self.state.auctions = await self._store.list_active_auctions()
        except Exception as exc:
            logger.error(f"Error fetching auctions: {exc}", exc_info=True)
            self.state.error = ViewError.fetch_failed("Failed to load auctions")
        finally:
            self.state.loading = False
        return self.state
