"""Incremental fee transfer fetcher.

This module pages backwards through the treasury's transaction history,
newest first, until it reaches the block-time cursor or the start of the
available history. Each page request runs under the retry policy and the
loop stops cooperatively when the run's cancellation token is set.
"""

from __future__ import annotations

from functools import partial
from typing import Any, Mapping, Protocol, Sequence

from core.constants import MAX_EMPTY_PAGES, MIN_REQUEST_INTERVAL_SECONDS
from core.logging_config import get_logger
from core.types import FeeTransfer, FetchResult
from ingest.cancellation import CancellationToken, FetchCancelled
from ingest.retry_policy import RetryPolicy, call_with_retry
from ingest.transaction_parser import extract_fee_transfers, transaction_block_time

_LOGGER = get_logger(__name__)


class TransactionHistorySource(Protocol):
    """Upstream able to return one page of parsed transactions."""

    def fetch_transactions_page(
        self,
        address: str,
        before: str | None,
        limit: int,
    ) -> list[dict[str, Any]]: ...


class FeeFetcher:
    """Cursor-bounded, retried, cancellable history reader."""

    def __init__(
        self,
        source: TransactionHistorySource,
        retry_policy: RetryPolicy,
        page_limit: int,
        min_request_interval_seconds: float = MIN_REQUEST_INTERVAL_SECONDS,
    ) -> None:
        self._source = source
        self._retry_policy = retry_policy
        self._page_limit = page_limit
        self._min_request_interval_seconds = min_request_interval_seconds

    def fetch(
        self,
        recipient_address: str,
        since_block_time: int | None,
        token: CancellationToken,
    ) -> FetchResult:
        """Collect transfers into the recipient newer than the cursor.

        Args:
            recipient_address: Treasury address.
            since_block_time: Exclusive cursor; None reads the full history.
            token: Cancellation token for this run.

        Returns:
            Accumulated transfers and whether the fetch was cancelled.

        Raises:
            FeeLedgerFetchError: If a page cannot be read within the retry bound.
        """
        transfers: list[FeeTransfer] = []
        seen_signatures: set[str] = set()
        before: str | None = None
        empty_pages = 0
        page_number = 0
        _LOGGER.info(
            "fee_fetch_started",
            recipient_address=recipient_address,
            since_block_time=since_block_time,
        )
        try:
            while True:
                token.raise_if_cancelled()
                page_number += 1
                transactions = call_with_retry(
                    partial(
                        self._source.fetch_transactions_page,
                        recipient_address,
                        before,
                        self._page_limit,
                    ),
                    self._retry_policy,
                    token,
                    description=f"history page {page_number}",
                )
                if not transactions:
                    _LOGGER.info("fee_fetch_history_exhausted", page=page_number)
                    break
                parsed = extract_fee_transfers(
                    transactions, recipient_address, since_block_time, seen_signatures
                )
                transfers.extend(parsed.transfers)
                _LOGGER.info(
                    "fee_fetch_page",
                    page=page_number,
                    transactions=len(transactions),
                    total_transfers=len(transfers),
                    **parsed.stats.as_fields(),
                )
                empty_pages = 0 if parsed.transfers else empty_pages + 1
                if since_block_time is not None:
                    if _reached_cursor(transactions, since_block_time):
                        _LOGGER.info("fee_fetch_cursor_reached", page=page_number)
                        break
                    if empty_pages >= MAX_EMPTY_PAGES:
                        _LOGGER.info("fee_fetch_empty_page_limit", page=page_number)
                        break
                next_before = transactions[-1].get("signature")
                if not next_before or next_before == before:
                    break
                before = str(next_before)
                if token.wait(self._min_request_interval_seconds):
                    raise FetchCancelled()
        except FetchCancelled:
            _LOGGER.info(
                "fee_fetch_cancelled",
                page=page_number,
                total_transfers=len(transfers),
            )
            return FetchResult(transfers=tuple(transfers), cancelled=True)
        _LOGGER.info("fee_fetch_completed", pages=page_number, total_transfers=len(transfers))
        return FetchResult(transfers=tuple(transfers), cancelled=False)


def _reached_cursor(transactions: Sequence[Mapping[str, Any]], since_block_time: int) -> bool:
    """Whether the oldest transaction of a page is at or before the cursor."""
    oldest_time = transaction_block_time(transactions[-1])
    return oldest_time is not None and oldest_time <= since_block_time
