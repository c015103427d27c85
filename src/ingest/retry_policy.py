"""Retry policy for rate-limited upstream calls.

This module wraps one fallible page request with bounded exponential
backoff. Sleeps go through the cancellation token so a cancel request
interrupts the backoff instead of waiting it out.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, TypeVar

from core.errors import FeeLedgerFetchError, FeeLedgerTransientError
from core.logging_config import get_logger
from ingest.cancellation import CancellationToken, FetchCancelled

_LOGGER = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff.

    Attributes:
        max_attempts: Total attempts including the first one.
        base_delay_seconds: Delay after the first failure; doubles per attempt.
    """

    max_attempts: int
    base_delay_seconds: float

    def delay_for(self, attempt: int) -> float:
        """Return the backoff delay after failed attempt number ``attempt``."""
        return self.base_delay_seconds * (2 ** (attempt - 1))


def call_with_retry(
    operation: Callable[[], T],
    policy: RetryPolicy,
    token: CancellationToken,
    description: str,
) -> T:
    """Run ``operation``, retrying transient upstream failures.

    Args:
        operation: Zero-argument callable performing one request.
        policy: Attempt bound and backoff schedule.
        token: Cancellation token polled before each attempt and sleep.
        description: Label used in logs and error messages.

    Returns:
        The operation's result.

    Raises:
        FetchCancelled: If the token is cancelled before success.
        FeeLedgerFetchError: If attempts are exhausted or a permanent
            failure is returned.
    """
    attempt = 0
    while True:
        token.raise_if_cancelled()
        attempt += 1
        try:
            return operation()
        except FeeLedgerTransientError as error:
            if attempt >= policy.max_attempts:
                raise FeeLedgerFetchError(
                    f"Upstream request for {description} failed after {attempt} attempts: "
                    f"{error}. Wait for the rate limit window to reset and retry ingestion."
                ) from error
            delay = policy.delay_for(attempt)
            _LOGGER.warning(
                "upstream_retry_scheduled",
                request=description,
                attempt=attempt,
                max_attempts=policy.max_attempts,
                delay_seconds=delay,
                reason=str(error),
            )
            token.raise_if_cancelled()
            if token.wait(delay):
                raise FetchCancelled() from error
