"""Unit tests for the Helius HTTP client."""

from __future__ import annotations

import pytest
import requests

from core.errors import FeeLedgerFetchError, FeeLedgerTransientError
from ingest.helius_client import HeliusClient
from tests.fakes import RECIPIENT, FakeResponse, FakeSession


def _client(session: FakeSession) -> HeliusClient:
    return HeliusClient(
        api_url="https://api.example.test/",
        rpc_url="https://rpc.example.test",
        api_key="test-key",
        timeout_seconds=7.0,
        session=session,
    )


def test_fetch_transactions_page_builds_paginated_request() -> None:
    """History requests should carry key, limit, before-cursor, and timeout."""
    session = FakeSession(get_responses=[FakeResponse(200, [{"signature": "sig-1"}])])

    page = _client(session).fetch_transactions_page(RECIPIENT, "sig-9", 50)

    call = session.get_calls[0]
    assert page == [{"signature": "sig-1"}]
    assert call["url"] == f"https://api.example.test/v0/addresses/{RECIPIENT}/transactions"
    assert call["params"] == {"api-key": "test-key", "limit": 50, "before": "sig-9"}
    assert call["timeout"] == 7.0


def test_rate_limit_is_transient() -> None:
    """HTTP 429 should be classified as retryable."""
    session = FakeSession(get_responses=[FakeResponse(429, None)])

    with pytest.raises(FeeLedgerTransientError):
        _client(session).fetch_transactions_page(RECIPIENT, None, 100)


def test_server_error_is_transient() -> None:
    """HTTP 5xx should be classified as retryable."""
    session = FakeSession(get_responses=[FakeResponse(503, None)])

    with pytest.raises(FeeLedgerTransientError):
        _client(session).fetch_transactions_page(RECIPIENT, None, 100)


def test_network_error_is_transient() -> None:
    """Connection failures and timeouts should be classified as retryable."""
    session = FakeSession(get_responses=[requests.Timeout("read timed out")])

    with pytest.raises(FeeLedgerTransientError):
        _client(session).fetch_transactions_page(RECIPIENT, None, 100)


def test_client_error_is_permanent_and_redacts_key() -> None:
    """Other 4xx responses should fail without leaking the API key."""
    session = FakeSession(get_responses=[FakeResponse(401, None, text="unauthorized")])

    with pytest.raises(FeeLedgerFetchError) as error_info:
        _client(session).fetch_transactions_page(RECIPIENT, None, 100)

    assert not isinstance(error_info.value, FeeLedgerTransientError)
    assert "test-key" not in str(error_info.value)


def test_non_list_history_payload_is_rejected() -> None:
    """History payloads must be JSON lists."""
    session = FakeSession(get_responses=[FakeResponse(200, {"error": "bad"})])

    with pytest.raises(FeeLedgerFetchError):
        _client(session).fetch_transactions_page(RECIPIENT, None, 100)


def test_fetch_asset_batch_posts_json_rpc() -> None:
    """Asset lookups should call getAssetBatch and return the result list."""
    assets = [{"id": "mint-a", "token_info": {"symbol": "AAA", "decimals": 6}}]
    session = FakeSession(post_responses=[FakeResponse(200, {"result": assets})])

    result = _client(session).fetch_asset_batch(["mint-a"])

    body = session.post_calls[0]["json"]
    assert result == assets
    assert body["method"] == "getAssetBatch" and body["params"] == {"ids": ["mint-a"]}


def test_fetch_asset_batch_raises_on_rpc_error() -> None:
    """JSON-RPC errors should surface as fetch errors."""
    session = FakeSession(post_responses=[FakeResponse(200, {"error": {"code": -32000}})])

    with pytest.raises(FeeLedgerFetchError):
        _client(session).fetch_asset_batch(["mint-a"])
