"""Aggregation run orchestration.

This module rolls the ledger up per mint, joins token metadata, and
hands the result to the snapshot exporter, recording status transitions
around the run.
"""

from __future__ import annotations

import time
from typing import Callable, Mapping, Protocol, Sequence

from core.constants import (
    STATUS_CURRENT_STEP,
    STATUS_LAST_ERROR,
    STATUS_LAST_ERROR_TIME,
    STEP_GENERATING,
    STEP_IDLE,
)
from core.errors import FeeLedgerStoreError
from core.logging_config import get_logger
from core.types import AggregationResult, FeeAggregate, TokenFeeSummary, TokenMetadata
from store.fee_store import FeeStore
from store.snapshot_export import SnapshotExporter

_LOGGER = get_logger(__name__)


class MetadataResolver(Protocol):
    def resolve(self, mints: Sequence[str]) -> Mapping[str, TokenMetadata]: ...


class FeeAggregator:
    """Runs ledger aggregation and snapshot publication."""

    def __init__(
        self,
        store: FeeStore,
        resolver: MetadataResolver,
        exporter: SnapshotExporter,
        clock_ms: Callable[[], int] | None = None,
    ) -> None:
        self._store = store
        self._resolver = resolver
        self._exporter = exporter
        self._clock_ms = clock_ms or (lambda: int(time.time() * 1000))

    def summarize(self) -> list[TokenFeeSummary]:
        """Return ledger aggregates joined with token metadata."""
        aggregates = self._store.aggregate_by_mint()
        if not aggregates:
            return []
        metadata = self._resolver.resolve([aggregate.mint for aggregate in aggregates])
        return [_join_metadata(aggregate, metadata) for aggregate in aggregates]

    def run(self) -> AggregationResult:
        """Aggregate the ledger and publish the snapshot.

        Returns:
            Number of tokens written and the artifact path; an empty ledger
            produces no artifact.

        Raises:
            FeeLedgerError: Any storage or export failure, after it has been
                recorded in the status table.
        """
        try:
            self._store.set_process_state("running")
            self._store.set_status(STATUS_CURRENT_STEP, STEP_GENERATING)
            summaries = self.summarize()
            if not summaries:
                self._mark_completed()
                _LOGGER.info("aggregation_skipped_empty_ledger")
                return AggregationResult(tokens_processed=0, output_path=None)
            output_path = self._exporter.export(summaries)
            self._mark_completed()
        except Exception as error:
            self._record_failure(error)
            raise
        _LOGGER.info("aggregation_completed", tokens_processed=len(summaries))
        return AggregationResult(tokens_processed=len(summaries), output_path=output_path)

    def _mark_completed(self) -> None:
        self._store.set_process_state("completed")
        self._store.set_status(STATUS_CURRENT_STEP, STEP_IDLE)

    def _record_failure(self, error: Exception) -> None:
        _LOGGER.error("aggregation_failed", error=str(error), error_type=type(error).__name__)
        try:
            self._store.set_process_state("error")
            self._store.set_status(STATUS_LAST_ERROR, str(error))
            self._store.set_status(STATUS_LAST_ERROR_TIME, str(self._clock_ms()))
        except FeeLedgerStoreError as status_error:
            _LOGGER.error("aggregation_failure_status_unrecorded", error=str(status_error))


def _join_metadata(
    aggregate: FeeAggregate,
    metadata: Mapping[str, TokenMetadata],
) -> TokenFeeSummary:
    return TokenFeeSummary(aggregate=aggregate, metadata=metadata.get(aggregate.mint, TokenMetadata()))
