"""Map store rejections onto the bid rejection taxonomy."""

from __future__ import annotations

import re
from typing import Protocol

from ..storage.errors import StoreRejection
from .errors import BidRejection

_MINIMUM_PATTERN = re.compile(r"minimum is (\d+)")

TOO_LOW_CODES = frozenset({"too_low", "BF001"})
ENDED_CODES = frozenset({"auction_ended", "BF002"})


class RejectionClassifier(Protocol):
    def classify(
        self, rejection: StoreRejection, *, fallback_minimum: int | None = None
    ) -> BidRejection: ...


def _parse_minimum(message: str) -> int | None:
    match = _MINIMUM_PATTERN.search(message)
    return int(match.group(1)) if match else None


class MessageRejectionClassifier:
    """Substring matching on the store's message text."""

    def classify(
        self, rejection: StoreRejection, *, fallback_minimum: int | None = None
    ) -> BidRejection:
        message = rejection.message or ""
        if "Bid too low" in message:
            minimum = _parse_minimum(message)
            return BidRejection.too_low(
                minimum if minimum is not None else fallback_minimum, message
            )
        if "ended auction" in message:
            return BidRejection.auction_ended(message)
        return BidRejection.unknown(message)


class CodeRejectionClassifier:
    """Use the store's structured error code, falling back when none is given."""

    def __init__(self, fallback: RejectionClassifier | None = None) -> None:
        self._fallback = fallback or MessageRejectionClassifier()

    def classify(
        self, rejection: StoreRejection, *, fallback_minimum: int | None = None
    ) -> BidRejection:
        code = rejection.code
        if code in TOO_LOW_CODES:
            minimum = _parse_minimum(rejection.message or "")
            return BidRejection.too_low(
                minimum if minimum is not None else fallback_minimum, rejection.message
            )
        if code in ENDED_CODES:
            return BidRejection.auction_ended(rejection.message)
        return self._fallback.classify(rejection, fallback_minimum=fallback_minimum)


def build_classifier(name: str) -> RejectionClassifier:
    if name == "message":
        return MessageRejectionClassifier()
    if name == "code":
        return CodeRejectionClassifier()
    raise ValueError(f"unknown rejection classifier {name}")
