"""HTTP client for the Helius transaction history and asset APIs.

This module performs single requests and classifies failures. Retry and
pagination decisions belong to the callers.
"""

from __future__ import annotations

from typing import Any, Sequence

import requests

from core.config import FeeLedgerConfig
from core.errors import FeeLedgerFetchError, FeeLedgerTransientError


class HeliusClient:
    """Thin wrapper around a ``requests`` session with per-request deadlines."""

    def __init__(
        self,
        api_url: str,
        rpc_url: str,
        api_key: str,
        timeout_seconds: float,
        session: Any | None = None,
    ) -> None:
        self._api_url = api_url.rstrip("/")
        self._rpc_url = rpc_url.rstrip("/")
        self._api_key = api_key
        self._timeout_seconds = timeout_seconds
        self._session = session or requests.Session()

    @classmethod
    def from_config(cls, config: FeeLedgerConfig, session: Any | None = None) -> "HeliusClient":
        """Build a client from validated config.

        Raises:
            FeeLedgerConfigError: If the API key is missing.
        """
        api_key = config.require_api_key()
        return cls(
            api_url=config.helius_api_url,
            rpc_url=config.helius_rpc_url,
            api_key=api_key,
            timeout_seconds=config.request_timeout_seconds,
            session=session,
        )

    def fetch_transactions_page(
        self,
        address: str,
        before: str | None,
        limit: int,
    ) -> list[dict[str, Any]]:
        """Fetch one page of parsed transactions, newest first.

        Args:
            address: Account whose history is requested.
            before: Signature to page before, or None for the newest page.
            limit: Maximum transactions in the page.

        Returns:
            Parsed transaction payloads.

        Raises:
            FeeLedgerTransientError: On rate limiting, server or network errors.
            FeeLedgerFetchError: On other failures.
        """
        url = f"{self._api_url}/v0/addresses/{address}/transactions"
        params: dict[str, Any] = {"api-key": self._api_key, "limit": limit}
        if before:
            params["before"] = before
        payload = self._request("GET", url, params=params)
        if not isinstance(payload, list):
            raise FeeLedgerFetchError(
                f"Unexpected transaction history payload for {address}: expected a JSON list."
            )
        return payload

    def fetch_asset_batch(self, mints: Sequence[str]) -> list[dict[str, Any] | None]:
        """Look up token assets through the ``getAssetBatch`` JSON-RPC method.

        Raises:
            FeeLedgerTransientError: On rate limiting, server or network errors.
            FeeLedgerFetchError: On RPC or payload errors.
        """
        body = {
            "jsonrpc": "2.0",
            "id": "get-assets-batch",
            "method": "getAssetBatch",
            "params": {"ids": list(mints)},
        }
        payload = self._request(
            "POST",
            self._rpc_url,
            params={"api-key": self._api_key},
            json_body=body,
        )
        if not isinstance(payload, dict):
            raise FeeLedgerFetchError("Unexpected getAssetBatch payload: expected a JSON object.")
        if payload.get("error"):
            raise FeeLedgerFetchError(f"getAssetBatch returned an RPC error: {payload['error']}.")
        result = payload.get("result")
        if not isinstance(result, list):
            raise FeeLedgerFetchError("Unexpected getAssetBatch payload: result must be a list.")
        return result

    def _request(
        self,
        method: str,
        url: str,
        params: dict[str, Any],
        json_body: dict[str, Any] | None = None,
    ) -> Any:
        try:
            if method == "GET":
                response = self._session.get(url, params=params, timeout=self._timeout_seconds)
            else:
                response = self._session.post(
                    url, params=params, json=json_body, timeout=self._timeout_seconds
                )
        except (requests.ConnectionError, requests.Timeout) as error:
            raise FeeLedgerTransientError(f"network error calling {_redact(url)}: {error}") from error
        except requests.RequestException as error:
            raise FeeLedgerFetchError(f"Request to {_redact(url)} failed: {error}.") from error
        status_code = response.status_code
        if status_code == 429:
            raise FeeLedgerTransientError(f"rate limited by {_redact(url)} (HTTP 429)")
        if status_code >= 500:
            raise FeeLedgerTransientError(f"server error from {_redact(url)} (HTTP {status_code})")
        if status_code >= 400:
            raise FeeLedgerFetchError(
                f"Request to {_redact(url)} was rejected with HTTP {status_code}: "
                f"{response.text[:200]}. Check HELIUS_API_KEY and the recipient address."
            )
        try:
            return response.json()
        except ValueError as error:
            raise FeeLedgerFetchError(
                f"Response from {_redact(url)} was not valid JSON: {error}."
            ) from error


def _redact(url: str) -> str:
    """Drop query strings so credentials never reach logs."""
    return url.split("?", 1)[0]
