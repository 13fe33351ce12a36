"""Auction and bid records as seen by the client."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Mapping

from ..transport.timestamps import format_timestamp, parse_timestamp


class AuctionStatus(str, Enum):
    ACTIVE = "active"
    ENDED = "ended"


def _require(record: Mapping[str, Any], key: str) -> Any:
    try:
        return record[key]
    except KeyError as exc:
        raise ValueError(f"record missing field {key}") from exc


def _as_int(record: Mapping[str, Any], key: str) -> int:
    value = _require(record, key)
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"field {key} is not an integer: {value!r}") from exc


@dataclass(frozen=True)
class Auction:
    id: str
    title: str
    description: str
    start_price: int
    current_price: int
    min_increment: int
    ends_at: datetime
    status: AuctionStatus = AuctionStatus.ACTIVE
    image_url: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Auction":
        created_at = record.get("created_at")
        min_increment = _as_int(record, "min_increment")
        if min_increment <= 0:
            raise ValueError("min_increment must be positive")
        return cls(
            id=str(_require(record, "id")),
            title=str(record.get("title") or ""),
            description=str(record.get("description") or ""),
            start_price=_as_int(record, "start_price"),
            current_price=_as_int(record, "current_price"),
            min_increment=min_increment,
            ends_at=parse_timestamp(_require(record, "ends_at")),
            status=AuctionStatus(_require(record, "status")),
            image_url=record.get("image_url"),
            created_at=parse_timestamp(created_at) if created_at else None,
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "start_price": self.start_price,
            "current_price": self.current_price,
            "min_increment": self.min_increment,
            "image_url": self.image_url,
            "ends_at": format_timestamp(self.ends_at),
            "status": self.status.value,
            "created_at": format_timestamp(self.created_at) if self.created_at else None,
        }

    @property
    def minimum_bid(self) -> int:
        return self.current_price + self.min_increment

    @property
    def is_ended(self) -> bool:
        return self.status is AuctionStatus.ENDED

    def with_price(self, amount: int) -> "Auction":
        return replace(self, current_price=amount)


@dataclass(frozen=True)
class Bid:
    id: str
    auction_id: str
    bidder_name: str
    amount: int
    created_at: datetime

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Bid":
        return cls(
            id=str(_require(record, "id")),
            auction_id=str(_require(record, "auction_id")),
            bidder_name=str(record.get("bidder_name") or "Anonymous"),
            amount=_as_int(record, "amount"),
            created_at=parse_timestamp(_require(record, "created_at")),
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "auction_id": self.auction_id,
            "bidder_name": self.bidder_name,
            "amount": self.amount,
            "created_at": format_timestamp(self.created_at),
        }


@dataclass(frozen=True)
class NewBid:
    auction_id: str
    bidder_name: str
    amount: int

    def to_record(self) -> dict[str, Any]:
        return {
            "auction_id": self.auction_id,
            "bidder_name": self.bidder_name,
            "amount": self.amount,
        }
