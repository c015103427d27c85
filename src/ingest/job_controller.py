"""Single-flight ingestion job controller.

This module owns the one piece of process-wide mutable state in the
pipeline: the cancellation token of the active ingestion run. A new run
always supersedes the active one, and every run ends in a terminal
status (``completed`` or ``error``) in the persisted status table.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Protocol

from core.constants import (
    STATUS_CURRENT_STEP,
    STATUS_LAST_ERROR,
    STATUS_LAST_ERROR_TIME,
    STATUS_LAST_FETCH_COUNT,
    STATUS_LAST_FETCH_TIME,
    STATUS_LAST_RUN_END_TIME,
    STATUS_LAST_RUN_START_TIME,
    STATUS_LAST_SUCCESSFUL_RUN,
    STATUS_LAST_SYNC_TIME,
    STEP_FETCHING,
    STEP_IDLE,
)
from core.errors import FeeLedgerStoreError
from core.logging_config import get_logger
from core.types import CancelResult, FetchResult, IngestRunResult
from ingest.cancellation import CancellationToken
from store.fee_store import FeeStore

_LOGGER = get_logger(__name__)


class TransferFetcher(Protocol):
    """Fetcher contract used by the controller."""

    def fetch(
        self,
        recipient_address: str,
        since_block_time: int | None,
        token: CancellationToken,
    ) -> FetchResult: ...


class IngestJobController:
    """Process-wide ingestion job guard.

    Construct once per process and share it with every trigger surface.
    """

    def __init__(
        self,
        store: FeeStore,
        fetcher: TransferFetcher,
        recipient_address: str,
        clock_ms: Callable[[], int] | None = None,
    ) -> None:
        self._store = store
        self._fetcher = fetcher
        self._recipient_address = recipient_address
        self._clock_ms = clock_ms or _now_ms
        self._handle_lock = threading.Lock()
        self._run_lock = threading.Lock()
        self._active_token: CancellationToken | None = None

    def is_running(self) -> bool:
        """Whether a cancellable fetch is in flight."""
        with self._handle_lock:
            return self._active_token is not None

    def start(self, force_fetch_all: bool = False) -> IngestRunResult:
        """Run one ingestion job, superseding any job already in flight.

        Args:
            force_fetch_all: Discard the ledger and rebuild it from full history.

        Returns:
            Stored and fetched counts plus the cancellation flag.

        Raises:
            FeeLedgerError: Any fetch or storage failure, after it has been
                recorded in the status table.
        """
        token = CancellationToken()
        with self._handle_lock:
            if self._active_token is not None:
                _LOGGER.info("ingest_run_superseded")
                self._active_token.cancel()
            self._active_token = token
        with self._run_lock:
            try:
                return self._run(token, force_fetch_all)
            except Exception as error:
                self._release(token)
                self._record_failure(error)
                raise

    def cancel(self) -> CancelResult:
        """Signal the active job to stop.

        Returns:
            Whether a job was cancelled; no active job is a normal outcome.
        """
        with self._handle_lock:
            token = self._active_token
            self._active_token = None
        if token is None:
            return CancelResult(cancelled=False, message="No active fetch to cancel")
        token.cancel()
        _LOGGER.info("ingest_run_cancel_requested")
        return CancelResult(cancelled=True, message="Fetch cancelled")

    def _run(self, token: CancellationToken, force_fetch_all: bool) -> IngestRunResult:
        started_ms = self._clock_ms()
        self._store.set_process_state("running")
        self._store.set_status(STATUS_CURRENT_STEP, STEP_FETCHING)
        self._store.set_status(STATUS_LAST_RUN_START_TIME, str(started_ms))
        since_block_time = None if force_fetch_all else self._store.latest_block_time()
        _LOGGER.info(
            "ingest_run_started",
            force_fetch_all=force_fetch_all,
            since_block_time=since_block_time,
        )
        result = self._fetcher.fetch(self._recipient_address, since_block_time, token)
        self._release(token)
        if force_fetch_all:
            self._store.clear_all()
        stored_count = self._store.store_transfers(result.transfers)
        finished_ms = self._clock_ms()
        self._store.set_status(STATUS_LAST_FETCH_COUNT, str(stored_count))
        self._store.set_status(STATUS_LAST_FETCH_TIME, str(finished_ms))
        if result.transfers:
            latest = max(transfer.block_time for transfer in result.transfers)
            self._store.set_status(STATUS_LAST_SYNC_TIME, str(latest))
        self._store.set_process_state("completed")
        self._store.set_status(STATUS_CURRENT_STEP, STEP_IDLE)
        self._store.set_status(STATUS_LAST_RUN_END_TIME, str(finished_ms))
        self._store.set_status(STATUS_LAST_SUCCESSFUL_RUN, str(finished_ms))
        run_result = IngestRunResult(
            stored_count=stored_count,
            total_fetched=len(result.transfers),
            cancelled=result.cancelled,
            force_fetch_all=force_fetch_all,
        )
        _LOGGER.info(
            "ingest_run_completed",
            stored_count=run_result.stored_count,
            total_fetched=run_result.total_fetched,
            cancelled=run_result.cancelled,
            duration_ms=finished_ms - started_ms,
        )
        return run_result

    def _release(self, token: CancellationToken) -> None:
        """Drop the active handle if it still belongs to ``token``."""
        with self._handle_lock:
            if self._active_token is token:
                self._active_token = None

    def _record_failure(self, error: Exception) -> None:
        failed_ms = str(self._clock_ms())
        _LOGGER.error("ingest_run_failed", error=str(error), error_type=type(error).__name__)
        try:
            self._store.set_process_state("error")
            self._store.set_status(STATUS_LAST_ERROR, str(error))
            self._store.set_status(STATUS_LAST_ERROR_TIME, failed_ms)
            self._store.set_status(STATUS_LAST_RUN_END_TIME, failed_ms)
        except FeeLedgerStoreError as status_error:
            _LOGGER.error("ingest_failure_status_unrecorded", error=str(status_error))


def _now_ms() -> int:
    return int(time.time() * 1000)
