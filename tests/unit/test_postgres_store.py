"""Unit tests for the Postgres store that need no database."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import orjson
import pytest

from bidflow.bidding.classifier import CodeRejectionClassifier
from bidflow.bidding.errors import RejectionKind
from bidflow.storage.errors import StoreError
from bidflow.storage.postgres import _SCHEMA, EVENT_CHANNEL, PostgresAuctionStore, rejection_from_error
from bidflow.storage.subscription import QueueSubscription


class TriggerError(Exception):
    """Stand-in for the asyncpg error raised by the bid trigger."""

    def __init__(self, message: str, sqlstate: str) -> None:
        super().__init__(message)
        self.message = message
        self.sqlstate = sqlstate


@pytest.fixture
def pg_store() -> PostgresAuctionStore:
    return PostgresAuctionStore(dsn="postgresql://bidflow@localhost/bidflow")


def _attach(store: PostgresAuctionStore, auction_id: str) -> QueueSubscription:
    subscription = QueueSubscription(auction_id, on_close=store._unsubscribe)
    store._subscribers[auction_id].append(subscription)
    return subscription


def test_requires_connection_details():
    with pytest.raises(ValueError):
        PostgresAuctionStore()


@pytest.mark.parametrize(
    "message, sqlstate, kind, minimum",
    [
        ("Bid too low: minimum is 1550000", "BF001", RejectionKind.TOO_LOW, 1_550_000),
        ("Cannot bid on ended auction", "BF002", RejectionKind.AUCTION_ENDED, None),
        ("Auction auc_9 not found", "BF003", RejectionKind.UNKNOWN, None),
    ],
)
def test_trigger_errors_classify(message, sqlstate, kind, minimum):
    rejection = rejection_from_error(TriggerError(message, sqlstate))

    assert rejection.message == message
    assert rejection.code == sqlstate
    classified = CodeRejectionClassifier().classify(rejection)
    assert classified.kind is kind
    assert classified.minimum_required == minimum


def _notify(store: PostgresAuctionStore, **envelope) -> None:
    store._on_notify(None, 4242, EVENT_CHANNEL, orjson.dumps(envelope).decode())


def test_notify_triggers_send_ids_not_rows():
    assert "row_to_json" not in _SCHEMA
    assert "'id', NEW.id" in _SCHEMA


@pytest.mark.asyncio
async def test_notifications_load_rows_in_commit_order(pg_store, bid_factory, auction_factory, run_pending):
    bid_record = bid_factory(1_550_000, bid_id="b1").to_record()
    auction_record = auction_factory(current_price=1_550_000).to_record()
    rows = {("bid_accepted", "b1"): bid_record, ("auction_updated", "auc_1"): auction_record}
    pg_store._load_record = AsyncMock(side_effect=lambda event_type, row_id: rows[(event_type, row_id)])
    ours = _attach(pg_store, "auc_1")

    _notify(pg_store, type="bid_accepted", auction_id="auc_1", id="b1")
    _notify(pg_store, type="auction_updated", auction_id="auc_1", id="auc_1")
    _notify(pg_store, type="bid_accepted", auction_id="auc_2", id="b9")
    pg_store._on_notify(None, 4242, EVENT_CHANNEL, "{not json")
    pg_store._on_notify(None, 4242, EVENT_CHANNEL, "[1, 2]")
    await run_pending()
    await pg_store.close()

    assert [payload async for payload in ours] == [
        {"type": "bid_accepted", "auction_id": "auc_1", "record": bid_record},
        {"type": "auction_updated", "auction_id": "auc_1", "record": auction_record},
    ]
    assert [call.args for call in pg_store._load_record.await_args_list] == [
        ("bid_accepted", "b1"),
        ("auction_updated", "auc_1"),
    ]


@pytest.mark.asyncio
async def test_unloadable_rows_are_skipped(pg_store, bid_factory, run_pending):
    record = bid_factory(1_600_000, bid_id="b3").to_record()
    pg_store._load_record = AsyncMock(side_effect=[None, StoreError("query failed"), record])
    subscription = _attach(pg_store, "auc_1")

    for bid_id in ("b1", "b2", "b3"):
        _notify(pg_store, type="bid_accepted", auction_id="auc_1", id=bid_id)
    await run_pending()
    await pg_store.close()

    assert [payload["record"] async for payload in subscription] == [record]


@pytest.mark.asyncio
async def test_listener_termination_ends_subscriptions(pg_store, run_pending):
    connection = MagicMock()
    pg_store._listener = connection
    subscription = _attach(pg_store, "auc_1")

    pg_store._on_listener_terminated(connection)
    await run_pending()

    assert pg_store._listener is None
    assert subscription.closed
    assert [payload async for payload in subscription] == []
    assert pg_store._subscribers["auc_1"] == []
