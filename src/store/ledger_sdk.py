"""Python SDK for fee ledger operations.

This module wires the store, fetcher, job controller, aggregator, and
exporter together behind one client object that trigger surfaces (CLI,
admin HTTP app) share for the lifetime of the process.
"""

from __future__ import annotations

import threading
from typing import Any

from aggregate.fee_aggregator import FeeAggregator
from aggregate.token_metadata import TokenMetadataResolver
from core.config import FeeLedgerConfig
from core.constants import REPORTED_STATUS_KEYS, STATUS_PROCESS
from core.types import AggregationResult, CancelResult, IngestRunResult
from ingest.fee_fetcher import FeeFetcher
from ingest.helius_client import HeliusClient
from ingest.job_controller import IngestJobController
from ingest.retry_policy import RetryPolicy
from store.fee_store import FeeStore
from store.snapshot_export import SnapshotExporter


class FeeLedgerClient:
    """Primary SDK entry point for the fee pipeline."""

    def __init__(self, config: FeeLedgerConfig | None = None, session: Any | None = None) -> None:
        """Create SDK client and open the ledger.

        Args:
            config: Optional runtime configuration.
            session: Optional ``requests``-compatible session for upstream calls.
        """
        self._config = config or FeeLedgerConfig.from_env()
        self._session = session
        self._store = FeeStore(self._config.database_path)
        self._controller: IngestJobController | None = None
        self._controller_lock = threading.Lock()

    @property
    def config(self) -> FeeLedgerConfig:
        return self._config

    @property
    def store(self) -> FeeStore:
        return self._store

    def ingest(self, force_fetch_all: bool = False) -> IngestRunResult:
        """Run one ingestion job, superseding any job in flight.

        Args:
            force_fetch_all: Clear the ledger and rebuild it from full history.

        Returns:
            Ingestion run result.

        Raises:
            FeeLedgerConfigError: If the recipient or API key is missing.
            FeeLedgerFetchError: If upstream history cannot be read.
            FeeLedgerStoreError: If the ledger cannot be written.
        """
        return self._job_controller().start(force_fetch_all)

    def cancel_ingest(self) -> CancelResult:
        """Cancel the active ingestion job, if any."""
        with self._controller_lock:
            controller = self._controller
        if controller is None:
            return CancelResult(cancelled=False, message="No active fetch to cancel")
        return controller.cancel()

    def aggregate(self) -> AggregationResult:
        """Aggregate the ledger and publish the snapshot artifact.

        Raises:
            FeeLedgerConfigError: If the API key is missing.
            FeeLedgerStoreError: If the ledger cannot be read.
            FeeLedgerExportError: If the snapshot cannot be written.
        """
        helius_client = HeliusClient.from_config(self._config, self._session)
        resolver = TokenMetadataResolver(helius_client, self._retry_policy())
        exporter = SnapshotExporter(self._store, self._config.snapshot_path)
        return FeeAggregator(self._store, resolver, exporter).run()

    def status(self) -> dict[str, str | None]:
        """Read the reported process status keys."""
        status = self._store.get_status_map(REPORTED_STATUS_KEYS)
        if status[STATUS_PROCESS] is None:
            status[STATUS_PROCESS] = "idle"
        return status

    def close(self) -> None:
        """Cancel any active job and close the ledger."""
        self.cancel_ingest()
        self._store.close()

    def _job_controller(self) -> IngestJobController:
        with self._controller_lock:
            if self._controller is None:
                recipient_address, _ = self._config.require_ingest_settings()
                helius_client = HeliusClient.from_config(self._config, self._session)
                fetcher = FeeFetcher(
                    helius_client,
                    self._retry_policy(),
                    page_limit=self._config.page_limit,
                )
                self._controller = IngestJobController(self._store, fetcher, recipient_address)
            return self._controller

    def _retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self._config.max_attempts,
            base_delay_seconds=self._config.backoff_base_seconds,
        )
