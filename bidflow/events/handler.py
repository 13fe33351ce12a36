"""Realtime event decoding and in-order reconciliation into a view."""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Mapping, Protocol

from ..auction.models import Auction, Bid
from ..validation.validator import get_schema_registry
from .anti_replay import BidReplayGuard
from .models import AuctionEvent, AuctionUpdated, BidAccepted

logger = logging.getLogger(__name__)

EVENT_RECORD_SCHEMA = {
    "bid_accepted": "bid",
    "auction_updated": "auction",
}

# Hosted realtime "postgres changes" payloads: (table, eventType) -> envelope type
CHANGE_EVENT_MAP = {
    ("bids", "INSERT"): "bid_accepted",
    ("auctions", "UPDATE"): "auction_updated",
}


class EventSink(Protocol):
    def reconcile(self, event: AuctionEvent) -> None: ...


def normalize_envelope(payload: Mapping[str, Any]) -> dict[str, Any]:
    if "eventType" in payload:
        key = (payload.get("table"), payload.get("eventType"))
        event_type = CHANGE_EVENT_MAP.get(key)
        if event_type is None:
            raise ValueError(f"unsupported change event {key}")
        record = payload.get("new") or payload.get("record")
        return {"type": event_type, "record": record}
    return dict(payload)


def decode_event(payload: Mapping[str, Any]) -> AuctionEvent:
    if not isinstance(payload, Mapping):
        raise ValueError("event payload must be an object")
    envelope = normalize_envelope(payload)
    registry = get_schema_registry()
    registry.validate("event", envelope)
    event_type = envelope["type"]
    record = envelope["record"]
    registry.validate(EVENT_RECORD_SCHEMA[event_type], record)
    if event_type == "bid_accepted":
        return BidAccepted(Bid.from_record(record))
    return AuctionUpdated(Auction.from_record(record))


class EventReconciler:
    """Apply one auction's event stream to a coordinator, strictly in arrival order."""

    def __init__(
        self,
        sink: EventSink,
        auction_id: str,
        guard: BidReplayGuard | None = None,
    ) -> None:
        self._sink = sink
        self._auction_id = auction_id
        self.guard = guard or BidReplayGuard()

    def handle(self, payload: Mapping[str, Any]) -> AuctionEvent | None:
        try:
            event = decode_event(payload)
        except ValueError as exc:
            logger.warning("skipping undecodable event for auction %s: %s", self._auction_id, exc)
            return None
        if event.auction_id != self._auction_id:
            return None
        if isinstance(event, BidAccepted) and not self.guard.first_delivery(event.bid.id):
            logger.debug("bid %s already reconciled", event.bid.id)
            return None
        self._sink.reconcile(event)
        return event

    async def run(self, events: AsyncIterator[Mapping[str, Any]]) -> None:
        async for payload in events:
            self.handle(payload)
        logger.info("event stream for auction %s closed", self._auction_id)
