"""Errors raised by auction store adapters."""

from __future__ import annotations


class StoreError(RuntimeError):
    """Raised when the store cannot serve a read or write."""


class StoreRejection(StoreError):
    """Raised when the store refuses a bid insert.

    ``message`` is the store's human-readable text; ``code`` is a structured
    error code when the backend supplies one.
    """

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


class AuctionNotFound(KeyError):
    def __init__(self, auction_id: str) -> None:
        super().__init__(auction_id)
        self.auction_id = auction_id

    def __str__(self) -> str:
        return f"auction {self.auction_id} not found"
