"""Shared typed models.

This module defines immutable data models used by ingest, store,
aggregate, and serving layers to keep interfaces explicit and stable.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, Mapping

from core.constants import UNKNOWN_TOKEN_DECIMALS, UNKNOWN_TOKEN_SYMBOL

ProcessState = Literal["idle", "running", "completed", "error"]


@dataclass(frozen=True)
class FeeTransfer:
    """One on-chain fee payment received by the treasury.

    Attributes:
        signature: Transaction signature.
        mint: Token mint address.
        amount_raw: Integer amount in the token's smallest unit, as a string.
        block_time: Unix block time in seconds.
        source: Sending account when known.
        raw_data: Upstream payload excerpt kept for audit.
    """

    signature: str
    mint: str
    amount_raw: str
    block_time: int
    source: str | None = None
    raw_data: Mapping[str, Any] | None = field(default=None, compare=False)


@dataclass(frozen=True)
class DailyFee:
    """Fee total for one mint on one UTC calendar day.

    Attributes:
        date: Day in ``YYYY-MM-DD`` form.
        amount_raw: Summed raw amount for the day.
    """

    date: str
    amount_raw: int


@dataclass(frozen=True)
class FeeAggregate:
    """Per-mint rollup of the fee ledger.

    Attributes:
        mint: Token mint address.
        total_amount_raw: Summed raw amount across all transfers.
        last_transaction_time: Latest block time in seconds.
        daily_fees: Day buckets in ascending date order.
    """

    mint: str
    total_amount_raw: int
    last_transaction_time: int
    daily_fees: tuple[DailyFee, ...]


@dataclass(frozen=True)
class TokenMetadata:
    """Display metadata for one token mint."""

    symbol: str = UNKNOWN_TOKEN_SYMBOL
    decimals: int = UNKNOWN_TOKEN_DECIMALS


@dataclass(frozen=True)
class TokenFeeSummary:
    """Aggregate joined with resolved token metadata."""

    aggregate: FeeAggregate
    metadata: TokenMetadata


@dataclass(frozen=True)
class FetchResult:
    """Outcome of one incremental fetch.

    Attributes:
        transfers: Transfers accumulated before the fetch stopped.
        cancelled: Whether the fetch stopped on a cancellation request.
    """

    transfers: tuple[FeeTransfer, ...]
    cancelled: bool = False


@dataclass(frozen=True)
class IngestRunResult:
    """Outcome of one ingestion job."""

    stored_count: int
    total_fetched: int
    cancelled: bool
    force_fetch_all: bool = False


@dataclass(frozen=True)
class CancelResult:
    """Outcome of a cancel request."""

    cancelled: bool
    message: str


@dataclass(frozen=True)
class AggregationResult:
    """Outcome of one aggregation and export run.

    Attributes:
        tokens_processed: Number of mints written to the snapshot.
        output_path: Snapshot file path, or None when the ledger was empty.
    """

    tokens_processed: int
    output_path: Path | None

    @property
    def empty(self) -> bool:
        """Whether the ledger held no transfers."""
        return self.output_path is None
