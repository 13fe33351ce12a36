"""Unit tests for realtime event decoding and reconciliation."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from bidflow.events.anti_replay import BidReplayGuard
from bidflow.events.handler import EventReconciler, decode_event
from bidflow.events.models import AuctionUpdated, BidAccepted
from bidflow.storage.subscription import QueueSubscription


def _bid_envelope(bid) -> dict:
    return {"type": "bid_accepted", "auction_id": bid.auction_id, "record": bid.to_record()}


def _auction_envelope(auction) -> dict:
    return {"type": "auction_updated", "auction_id": auction.id, "record": auction.to_record()}


class TestDecodeEvent:
    def test_bid_accepted_envelope(self, bid_factory):
        bid = bid_factory(1_600_000)

        event = decode_event(_bid_envelope(bid))

        assert event == BidAccepted(bid)

    def test_auction_updated_envelope(self, auction_factory):
        auction = auction_factory(current_price=1_600_000)

        event = decode_event(_auction_envelope(auction))

        assert isinstance(event, AuctionUpdated)
        assert event.auction == auction

    def test_postgres_changes_payload(self, bid_factory):
        bid = bid_factory(1_600_000)
        payload = {
            "schema": "public",
            "table": "bids",
            "eventType": "INSERT",
            "new": bid.to_record(),
        }

        assert decode_event(payload) == BidAccepted(bid)

    def test_unsupported_change_rejected(self, bid_factory):
        payload = {"table": "bids", "eventType": "DELETE", "old": {}}

        with pytest.raises(ValueError):
            decode_event(payload)

    @pytest.mark.parametrize(
        "payload",
        [
            {"type": "bid_accepted"},
            {"type": "bid_removed", "record": {}},
            {"type": "bid_accepted", "record": {"id": "b1", "auction_id": "auc_1"}},
            {"type": "auction_updated", "record": {"id": "auc_1", "status": "paused"}},
        ],
    )
    def test_invalid_payloads(self, payload):
        with pytest.raises(ValueError):
            decode_event(payload)


class TestEventReconciler:
    def test_applies_events_in_arrival_order(self, bid_factory, auction_factory):
        sink = MagicMock()
        reconciler = EventReconciler(sink, "auc_1")
        first, second = bid_factory(1_550_000, seconds=1), bid_factory(1_600_000, seconds=2)
        auction = auction_factory(current_price=1_600_000)

        for payload in (_bid_envelope(first), _bid_envelope(second), _auction_envelope(auction)):
            reconciler.handle(payload)

        applied = [call.args[0] for call in sink.reconcile.call_args_list]
        assert applied == [BidAccepted(first), BidAccepted(second), AuctionUpdated(auction)]

    def test_redelivered_bid_applied_once(self, bid_factory):
        sink = MagicMock()
        reconciler = EventReconciler(sink, "auc_1")
        payload = _bid_envelope(bid_factory(1_550_000))

        reconciler.handle(payload)
        reconciler.handle(payload)

        sink.reconcile.assert_called_once()

    def test_known_bids_are_skipped(self, bid_factory):
        sink = MagicMock()
        reconciler = EventReconciler(sink, "auc_1", guard=BidReplayGuard(["bid_1550000"]))

        assert reconciler.handle(_bid_envelope(bid_factory(1_550_000))) is None
        sink.reconcile.assert_not_called()

    def test_other_auction_ignored(self, bid_factory):
        sink = MagicMock()
        reconciler = EventReconciler(sink, "auc_1")

        reconciler.handle(_bid_envelope(bid_factory(1_550_000, auction_id="auc_2")))

        sink.reconcile.assert_not_called()

    def test_undecodable_payload_is_skipped(self, bid_factory):
        sink = MagicMock()
        reconciler = EventReconciler(sink, "auc_1")

        assert reconciler.handle({"type": "garbage"}) is None
        reconciler.handle(_bid_envelope(bid_factory(1_550_000)))

        sink.reconcile.assert_called_once()

    @pytest.mark.asyncio
    async def test_run_drains_subscription_until_closed(self, bid_factory):
        sink = MagicMock()
        reconciler = EventReconciler(sink, "auc_1")
        subscription = QueueSubscription("auc_1")
        subscription.push(_bid_envelope(bid_factory(1_550_000, seconds=1)))
        subscription.push(_bid_envelope(bid_factory(1_600_000, seconds=2)))
        await subscription.close()

        await reconciler.run(subscription)

        assert [call.args[0].bid.amount for call in sink.reconcile.call_args_list] == [
            1_550_000,
            1_600_000,
        ]


def test_replay_guard_requires_id():
    with pytest.raises(ValueError):
        BidReplayGuard().first_delivery("")


def test_schema_registry_lists_and_rejects_unknown():
    from bidflow.validation.validator import get_schema_registry

    registry = get_schema_registry()

    assert {"auction", "bid", "event"} <= set(registry.names)
    with pytest.raises(ValueError):
        registry.validate("lot", {})
