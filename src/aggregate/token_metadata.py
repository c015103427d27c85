"""Token metadata resolution.

This module looks up symbol and decimals for mints through the asset
API. Lookup failures degrade to the UNKNOWN/0-decimals fallback so that
every observed mint still reaches the snapshot.
"""

from __future__ import annotations

import time
from functools import partial
from typing import Any, Callable, Mapping, Protocol, Sequence

from core.constants import (
    METADATA_BATCH_PAUSE_SECONDS,
    METADATA_BATCH_SIZE,
    UNKNOWN_TOKEN_DECIMALS,
    UNKNOWN_TOKEN_SYMBOL,
)
from core.errors import FeeLedgerFetchError
from core.logging_config import get_logger
from core.types import TokenMetadata
from ingest.cancellation import CancellationToken
from ingest.retry_policy import RetryPolicy, call_with_retry

_LOGGER = get_logger(__name__)


class AssetSource(Protocol):
    """Upstream able to describe a batch of token mints."""

    def fetch_asset_batch(self, mints: Sequence[str]) -> list[dict[str, Any] | None]: ...


class TokenMetadataResolver:
    """Batched, failure-tolerant metadata lookup."""

    def __init__(
        self,
        source: AssetSource,
        retry_policy: RetryPolicy,
        batch_size: int = METADATA_BATCH_SIZE,
        pause_seconds: float = METADATA_BATCH_PAUSE_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._source = source
        self._retry_policy = retry_policy
        self._batch_size = batch_size
        self._pause_seconds = pause_seconds
        self._sleep = sleep

    def resolve(self, mints: Sequence[str]) -> dict[str, TokenMetadata]:
        """Resolve metadata for every mint, using the fallback where needed.

        Args:
            mints: Mint addresses; duplicates are ignored.

        Returns:
            Mapping with an entry for every requested mint.
        """
        unique_mints = list(dict.fromkeys(mints))
        resolved: dict[str, TokenMetadata] = {}
        batches = [
            unique_mints[start : start + self._batch_size]
            for start in range(0, len(unique_mints), self._batch_size)
        ]
        for index, batch in enumerate(batches):
            if index > 0 and self._pause_seconds > 0:
                self._sleep(self._pause_seconds)
            try:
                assets = call_with_retry(
                    partial(self._source.fetch_asset_batch, batch),
                    self._retry_policy,
                    CancellationToken(),
                    description=f"asset batch {index + 1}",
                )
            except FeeLedgerFetchError as error:
                _LOGGER.warning(
                    "token_metadata_batch_failed",
                    batch=index + 1,
                    mints=len(batch),
                    error=str(error),
                )
                continue
            for asset in assets:
                if isinstance(asset, Mapping) and asset.get("id"):
                    resolved[str(asset["id"])] = parse_asset_metadata(asset)
        missing = [mint for mint in unique_mints if mint not in resolved]
        if missing:
            _LOGGER.warning("token_metadata_fallback", mints=missing)
        return {mint: resolved.get(mint, TokenMetadata()) for mint in unique_mints}


def parse_asset_metadata(asset: Mapping[str, Any]) -> TokenMetadata:
    """Read symbol and decimals from one asset payload."""
    token_info = asset.get("token_info") or {}
    content_metadata = (asset.get("content") or {}).get("metadata") or {}
    symbol = token_info.get("symbol") or content_metadata.get("symbol") or UNKNOWN_TOKEN_SYMBOL
    decimals = token_info.get("decimals")
    if decimals is None:
        decimals = content_metadata.get("decimals")
    try:
        parsed_decimals = int(decimals) if decimals is not None else UNKNOWN_TOKEN_DECIMALS
    except (TypeError, ValueError):
        parsed_decimals = UNKNOWN_TOKEN_DECIMALS
    if parsed_decimals < 0:
        parsed_decimals = UNKNOWN_TOKEN_DECIMALS
    return TokenMetadata(symbol=str(symbol), decimals=parsed_decimals)
