"""Configuration helpers for the bidding client."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

import yaml

_DEFAULT_CLIENT_CONFIG = Path(__file__).resolve().parent / "client.yaml"


@dataclass(frozen=True)
class StoreConfig:
    backend: str
    options: Mapping[str, Any]


@dataclass(frozen=True)
class BiddingConfig:
    bidder_name: str
    submission_timeout_ms: int
    rejection_classifier: str
    reconcile_policy: str


@dataclass(frozen=True)
class DetailConfig:
    bid_history_limit: int


@dataclass(frozen=True)
class CountdownConfig:
    tick_ms: int
    ending_soon_threshold_seconds: int

    @property
    def ending_soon_threshold(self) -> timedelta:
        return timedelta(seconds=self.ending_soon_threshold_seconds)


@dataclass(frozen=True)
class ClientConfig:
    store: StoreConfig
    bidding: BiddingConfig
    detail: DetailConfig
    countdown: CountdownConfig


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(path)
    return yaml.safe_load(path.read_text()) or {}


def build_client_config(data: Mapping[str, Any]) -> ClientConfig:
    store = data.get("store", {})
    bidding = data.get("bidding", {})
    detail = data.get("detail", {})
    countdown = data.get("countdown", {})
    history_limit = int(detail.get("bid_history_limit", 5))
    if history_limit <= 0:
        raise ValueError("detail.bid_history_limit must be positive")
    timeout_ms = int(bidding.get("submission_timeout_ms", 10_000))
    if timeout_ms <= 0:
        raise ValueError("bidding.submission_timeout_ms must be positive")
    return ClientConfig(
        store=StoreConfig(
            backend=str(store.get("backend", "in_memory")),
            options=dict(store.get("options") or {}),
        ),
        bidding=BiddingConfig(
            bidder_name=str(bidding.get("bidder_name", "Anonymous")),
            submission_timeout_ms=timeout_ms,
            rejection_classifier=str(bidding.get("rejection_classifier", "message")),
            reconcile_policy=str(bidding.get("reconcile_policy", "any_bid")),
        ),
        detail=DetailConfig(bid_history_limit=history_limit),
        countdown=CountdownConfig(
            tick_ms=int(countdown.get("tick_ms", 1000)),
            ending_soon_threshold_seconds=int(
                countdown.get("ending_soon_threshold_seconds", 30 * 60)
            ),
        ),
    )


@lru_cache(maxsize=1)
def get_client_config() -> ClientConfig:
    path = Path(os.getenv("BIDFLOW_CONFIG_PATH", _DEFAULT_CLIENT_CONFIG))
    return build_client_config(_load_yaml(path))
