"""Replay guard so a redelivered bid is reconciled at most once."""

from __future__ import annotations

from typing import Iterable


class BidReplayGuard:
    def __init__(self, known: Iterable[str] = ()) -> None:
        self._seen: set[str] = set(known)

    def remember(self, bid_ids: Iterable[str]) -> None:
        self._seen.update(bid_ids)

    def first_delivery(self, bid_id: str) -> bool:
        if not bid_id:
            raise ValueError("bid id missing")
        if bid_id in self._seen:
            return False
        self._seen.add(bid_id)
        return True
