"""Postgres auction store leveraging asyncpg, with LISTEN/NOTIFY realtime."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Any

import asyncpg
import orjson

from ..auction.models import Auction, Bid, NewBid
from .errors import AuctionNotFound, StoreError, StoreRejection
from .subscription import QueueSubscription

logger = logging.getLogger(__name__)

EVENT_CHANNEL = "bidflow_events"

_ROW_QUERIES = {
    "bid_accepted": "SELECT * FROM bids WHERE id=$1",
    "auction_updated": "SELECT * FROM auctions WHERE id=$1",
}

_SCHEMA = """
CREATE TABLE IF NOT EXISTS auctions (
    id TEXT PRIMARY KEY DEFAULT md5(random()::text || clock_timestamp()::text),
    title TEXT NOT NULL DEFAULT '',
    description TEXT NOT NULL DEFAULT '',
    start_price BIGINT NOT NULL CHECK (start_price >= 0),
    current_price BIGINT NOT NULL,
    min_increment BIGINT NOT NULL CHECK (min_increment > 0),
    image_url TEXT,
    ends_at TIMESTAMPTZ NOT NULL,
    status TEXT NOT NULL DEFAULT 'active' CHECK (status IN ('active', 'ended')),
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE TABLE IF NOT EXISTS bids (
    id TEXT PRIMARY KEY DEFAULT md5(random()::text || clock_timestamp()::text),
    auction_id TEXT NOT NULL REFERENCES auctions(id),
    bidder_name TEXT NOT NULL DEFAULT 'Anonymous',
    amount BIGINT NOT NULL CHECK (amount > 0),
    created_at TIMESTAMPTZ NOT NULL DEFAULT clock_timestamp()
);
CREATE INDEX IF NOT EXISTS idx_bids_auction_created ON bids (auction_id, created_at DESC);
CREATE INDEX IF NOT EXISTS idx_auctions_status_ends ON auctions (status, ends_at);

CREATE OR REPLACE FUNCTION bidflow_accept_bid() RETURNS trigger AS $$
DECLARE
    target auctions%ROWTYPE;
    minimum BIGINT;
BEGIN
    SELECT * INTO target FROM auctions WHERE id = NEW.auction_id FOR UPDATE;
    IF NOT FOUND THEN
        RAISE EXCEPTION 'Auction % not found', NEW.auction_id USING ERRCODE = 'BF003';
    END IF;
    IF target.status = 'ended' OR target.ends_at <= NOW() THEN
        RAISE EXCEPTION 'Cannot bid on ended auction' USING ERRCODE = 'BF002';
    END IF;
    minimum := target.current_price + target.min_increment;
    IF NEW.amount < minimum THEN
        RAISE EXCEPTION 'Bid too low: minimum is %', minimum USING ERRCODE = 'BF001';
    END IF;
    NEW.created_at := clock_timestamp();
    UPDATE auctions SET current_price = NEW.amount WHERE id = NEW.auction_id;
    RETURN NEW;
END;
$$ LANGUAGE plpgsql;

CREATE OR REPLACE FUNCTION bidflow_notify_bid() RETURNS trigger AS $$
BEGIN
    PERFORM pg_notify('bidflow_events', json_build_object(
        'type', 'bid_accepted', 'auction_id', NEW.auction_id, 'id', NEW.id
    )::text);
    RETURN NEW;
END;
$$ LANGUAGE plpgsql;

CREATE OR REPLACE FUNCTION bidflow_notify_auction() RETURNS trigger AS $$
BEGIN
    PERFORM pg_notify('bidflow_events', json_build_object(
        'type', 'auction_updated', 'auction_id', NEW.id, 'id', NEW.id
    )::text);
    RETURN NEW;
END;
$$ LANGUAGE plpgsql;

DROP TRIGGER IF EXISTS bids_accept ON bids;
CREATE TRIGGER bids_accept BEFORE INSERT ON bids
    FOR EACH ROW EXECUTE FUNCTION bidflow_accept_bid();
DROP TRIGGER IF EXISTS bids_notify ON bids;
CREATE TRIGGER bids_notify AFTER INSERT ON bids
    FOR EACH ROW EXECUTE FUNCTION bidflow_notify_bid();
DROP TRIGGER IF EXISTS auctions_notify ON auctions;
CREATE TRIGGER auctions_notify AFTER UPDATE ON auctions
    FOR EACH ROW EXECUTE FUNCTION bidflow_notify_auction();
"""


def rejection_from_error(exc: Exception) -> StoreRejection:
    message = getattr(exc, "message", None) or str(exc)
    return StoreRejection(message, code=getattr(exc, "sqlstate", None))


class PostgresAuctionStore:
    def __init__(
        self,
        *,
        dsn: str | None = None,
        manage_schema: bool = True,
        **connect_kwargs: Any,
    ) -> None:
        if not dsn and not connect_kwargs:
            raise ValueError("postgres connection details missing")
        self._dsn = dsn
        self._connect_kwargs = connect_kwargs
        self._manage_schema = manage_schema
        self._pool: asyncpg.Pool | None = None
        self._listener: asyncpg.Connection | None = None
        self._subscribers: dict[str, list[QueueSubscription]] = defaultdict(list)
        self._notifications: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self._drainer: asyncio.Future | None = None

    def _decode(self, value: Any) -> dict[str, Any]:
        if isinstance(value, (bytes, bytearray)):
            value = value.decode()
        if isinstance(value, str):
            return orjson.loads(value)
        return value

    async def _ensure_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            try:
                self._pool = await asyncpg.create_pool(dsn=self._dsn, **self._connect_kwargs)
                if self._manage_schema:
                    async with self._pool.acquire() as conn:
                        await conn.execute(_SCHEMA)
            except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as exc:
                self._pool = None
                raise StoreError(f"postgres unavailable: {exc}") from exc
        return self._pool

    async def _fetch(self, query: str, *args: Any) -> list[asyncpg.Record]:
        pool = await self._ensure_pool()
        try:
            async with pool.acquire() as conn:
                return await conn.fetch(query, *args)
        except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as exc:
            raise StoreError(f"query failed: {exc}") from exc

    # Queries

    async def get_auction(self, auction_id: str) -> Auction:
        rows = await self._fetch("SELECT * FROM auctions WHERE id=$1", auction_id)
        if not rows:
            raise AuctionNotFound(auction_id)
        return Auction.from_record(dict(rows[0]))

    async def list_bids(self, auction_id: str, limit: int) -> list[Bid]:
        rows = await self._fetch(
            "SELECT * FROM bids WHERE auction_id=$1 ORDER BY created_at DESC LIMIT $2",
            auction_id,
            limit,
        )
        return [Bid.from_record(dict(row)) for row in rows]

    async def list_active_auctions(self) -> list[Auction]:
        rows = await self._fetch(
            "SELECT * FROM auctions WHERE status='active' ORDER BY ends_at ASC"
        )
        return [Auction.from_record(dict(row)) for row in rows]

    # Commands

    async def create_auction(self, record: dict[str, Any]) -> Auction:
        rows = await self._fetch(
            """INSERT INTO auctions(title, description, start_price, current_price,
                                    min_increment, image_url, ends_at)
               VALUES($1, $2, $3, $4, $5, $6, $7) RETURNING *""",
            record.get("title", ""),
            record.get("description", ""),
            int(record["start_price"]),
            int(record.get("current_price", record["start_price"])),
            int(record["min_increment"]),
            record.get("image_url"),
            record["ends_at"],
        )
        return Auction.from_record(dict(rows[0]))

    async def insert_bid(self, new_bid: NewBid) -> Bid:
        pool = await self._ensure_pool()
        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(
                    """INSERT INTO bids(auction_id, bidder_name, amount)
                       VALUES($1, $2, $3) RETURNING *""",
                    new_bid.auction_id,
                    new_bid.bidder_name,
                    new_bid.amount,
                )
        except asyncpg.PostgresError as exc:
            raise rejection_from_error(exc) from exc
        except (OSError, asyncpg.InterfaceError) as exc:
            raise StoreError(f"bid insert failed: {exc}") from exc
        return Bid.from_record(dict(row))

    async def end_auction(self, auction_id: str) -> Auction:
        rows = await self._fetch(
            "UPDATE auctions SET status='ended' WHERE id=$1 RETURNING *", auction_id
        )
        if not rows:
            raise AuctionNotFound(auction_id)
        return Auction.from_record(dict(rows[0]))

    async def close_expired(self) -> list[Auction]:
        rows = await self._fetch(
            """UPDATE auctions SET status='ended'
               WHERE status='active' AND ends_at <= NOW() RETURNING *"""
        )
        return [Auction.from_record(dict(row)) for row in rows]

    # Realtime
    #
    # Notifications carry only {type, auction_id, id}; rows are loaded here so
    # a large auction row never overflows the NOTIFY payload limit. A single
    # drain task loads them in notification order, which is commit order.

    async def _ensure_listener(self) -> None:
        if self._listener is not None:
            return
        await self._ensure_pool()
        try:
            self._listener = await asyncpg.connect(dsn=self._dsn, **self._connect_kwargs)
            await self._listener.add_listener(EVENT_CHANNEL, self._on_notify)
            self._listener.add_termination_listener(self._on_listener_terminated)
        except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as exc:
            self._listener = None
            raise StoreError(f"realtime listener unavailable: {exc}") from exc
        logger.info("listening on %s", EVENT_CHANNEL)

    def _on_notify(self, connection: Any, pid: int, channel: str, payload: str) -> None:
        try:
            envelope = self._decode(payload)
        except orjson.JSONDecodeError:
            logger.warning("discarding malformed notification on %s", channel)
            return
        if not isinstance(envelope, dict) or envelope.get("type") not in _ROW_QUERIES:
            logger.warning("discarding unexpected notification on %s", channel)
            return
        if not self._subscribers.get(envelope.get("auction_id")):
            return
        self._notifications.put_nowait(envelope)
        if self._drainer is None or self._drainer.done():
            self._drainer = asyncio.ensure_future(self._drain())

    async def _drain(self) -> None:
        while not self._notifications.empty():
            envelope = self._notifications.get_nowait()
            try:
                record = await self._load_record(envelope["type"], envelope.get("id"))
            except (StoreError, ValueError) as exc:
                logger.error(f"Dropping {envelope['type']} for auction {envelope.get('auction_id')}: {exc}")
                continue
            if record is None:
                logger.warning("row %s for %s no longer exists", envelope.get("id"), envelope["type"])
                continue
            event = {"type": envelope["type"], "auction_id": envelope["auction_id"], "record": record}
            for subscription in list(self._subscribers.get(envelope["auction_id"], [])):
                subscription.push(event)

    async def _load_record(self, event_type: str, row_id: Any) -> dict[str, Any] | None:
        rows = await self._fetch(_ROW_QUERIES[event_type], row_id)
        if not rows:
            return None
        if event_type == "bid_accepted":
            return Bid.from_record(dict(rows[0])).to_record()
        return Auction.from_record(dict(rows[0])).to_record()

    def _on_listener_terminated(self, connection: Any) -> None:
        logger.warning("realtime listener connection on %s terminated", EVENT_CHANNEL)
        self._listener = None
        subscriptions = [sub for subs in self._subscribers.values() for sub in subs]
        if subscriptions:
            asyncio.ensure_future(self._close_subscriptions(subscriptions))

    async def _close_subscriptions(self, subscriptions: list[QueueSubscription]) -> None:
        for subscription in subscriptions:
            await subscription.close()

    async def subscribe(self, auction_id: str) -> QueueSubscription:
        await self._ensure_listener()
        subscription = QueueSubscription(auction_id, on_close=self._unsubscribe)
        self._subscribers[auction_id].append(subscription)
        return subscription

    def _unsubscribe(self, subscription: QueueSubscription) -> None:
        subscribers = self._subscribers.get(subscription.auction_id, [])
        if subscription in subscribers:
            subscribers.remove(subscription)

    async def close(self) -> None:
        if self._drainer is not None:
            self._drainer.cancel()
            try:
                await self._drainer
            except asyncio.CancelledError:
                pass
            self._drainer = None
        await self._close_subscriptions(
            [sub for subs in list(self._subscribers.values()) for sub in subs]
        )
        if self._listener is not None:
            await self._listener.remove_listener(EVENT_CHANNEL, self._on_notify)
            await self._listener.close()
            self._listener = None
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
