"""Unit tests for client configuration loading and store selection."""

from __future__ import annotations

from datetime import timedelta

import pytest

from bidflow.config import build_client_config, get_client_config
from bidflow.storage import InMemoryAuctionStore, PostgresAuctionStore, build_store


@pytest.fixture(autouse=True)
def _fresh_config_cache():
    get_client_config.cache_clear()
    yield
    get_client_config.cache_clear()


def test_packaged_defaults(monkeypatch):
    monkeypatch.delenv("BIDFLOW_CONFIG_PATH", raising=False)

    config = get_client_config()

    assert config.store.backend == "in_memory"
    assert config.bidding.submission_timeout_ms == 10_000
    assert config.bidding.rejection_classifier == "message"
    assert config.bidding.reconcile_policy == "any_bid"
    assert config.detail.bid_history_limit == 5
    assert config.countdown.ending_soon_threshold == timedelta(minutes=30)


def test_env_path_override(monkeypatch, tmp_path):
    path = tmp_path / "client.yaml"
    path.write_text(
        "store:\n"
        "  backend: postgres\n"
        "  options:\n"
        "    dsn: postgresql://bidflow@db/bidflow\n"
        "bidding:\n"
        "  submission_timeout_ms: 2500\n"
        "  rejection_classifier: code\n"
    )
    monkeypatch.setenv("BIDFLOW_CONFIG_PATH", str(path))

    config = get_client_config()

    assert config.store.backend == "postgres"
    assert config.store.options == {"dsn": "postgresql://bidflow@db/bidflow"}
    assert config.bidding.submission_timeout_ms == 2500
    assert config.bidding.rejection_classifier == "code"
    assert config.bidding.bidder_name == "Anonymous"


def test_missing_config_file(monkeypatch, tmp_path):
    monkeypatch.setenv("BIDFLOW_CONFIG_PATH", str(tmp_path / "absent.yaml"))

    with pytest.raises(FileNotFoundError):
        get_client_config()


@pytest.mark.parametrize(
    "data",
    [
        {"detail": {"bid_history_limit": 0}},
        {"bidding": {"submission_timeout_ms": -1}},
    ],
)
def test_invalid_values_rejected(data):
    with pytest.raises(ValueError):
        build_client_config(data)


def test_build_store_backends():
    assert isinstance(build_store(build_client_config({})), InMemoryAuctionStore)

    postgres = build_store(
        build_client_config({"store": {"backend": "postgres", "options": {"dsn": "postgresql://db/bidflow"}}})
    )
    assert isinstance(postgres, PostgresAuctionStore)

    with pytest.raises(ValueError):
        build_store(build_client_config({"store": {"backend": "postgres"}}))
    with pytest.raises(ValueError):
        build_store(build_client_config({"store": {"backend": "sqlite"}}))
