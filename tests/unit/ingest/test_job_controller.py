"""Unit tests for the single-flight ingestion job controller."""

from __future__ import annotations

from pathlib import Path
import threading

import pytest

from core.errors import FeeLedgerFetchError
from core.types import FetchResult
from ingest.cancellation import CancellationToken
from ingest.job_controller import IngestJobController
from store.fee_store import FeeStore
from tests.fakes import DAY_ONE, DAY_TWO, RECIPIENT, StubFetcher, make_transfer


def _controller(tmp_path: Path, fetcher: object) -> tuple[IngestJobController, FeeStore]:
    store = FeeStore(tmp_path / "fee_data.sqlite")
    controller = IngestJobController(store, fetcher, RECIPIENT, clock_ms=lambda: 1_234)
    return controller, store


def test_successful_run_records_completed_status(tmp_path: Path) -> None:
    """A finished run should persist counts and terminal status."""
    fetcher = StubFetcher(
        FetchResult(
            transfers=(
                make_transfer("sig-a", block_time=DAY_ONE),
                make_transfer("sig-b", block_time=DAY_TWO),
            )
        )
    )
    controller, store = _controller(tmp_path, fetcher)

    result = controller.start()

    assert result.stored_count == 2 and result.total_fetched == 2
    assert not result.cancelled
    assert store.get_status("processStatus") == "completed"
    assert store.get_status("currentStep") == "Idle"
    assert store.get_status("lastFetchCount") == "2"
    assert store.get_status("lastSyncTime") == str(DAY_TWO)
    assert store.get_status("lastSuccessfulRun") == "1234"
    assert not controller.is_running()


def test_run_passes_stored_cursor_to_fetcher(tmp_path: Path) -> None:
    """Incremental runs should resume from the newest stored block time."""
    fetcher = StubFetcher()
    controller, store = _controller(tmp_path, fetcher)
    store.store_transfers([make_transfer("sig-a", block_time=DAY_ONE)])

    controller.start()

    assert fetcher.calls == [DAY_ONE]


def test_forced_run_rebuilds_ledger(tmp_path: Path) -> None:
    """A forced run should ignore the cursor and replace the ledger."""
    fetcher = StubFetcher(FetchResult(transfers=(make_transfer("sig-new", block_time=DAY_TWO),)))
    controller, store = _controller(tmp_path, fetcher)
    store.store_transfers([make_transfer("sig-old", block_time=DAY_ONE)])

    result = controller.start(force_fetch_all=True)

    assert fetcher.calls == [None]
    assert result.force_fetch_all and result.stored_count == 1
    assert store.count_transfers() == 1 and store.latest_block_time() == DAY_TWO


def test_rerun_with_same_transfers_stores_nothing(tmp_path: Path) -> None:
    """Refetched transfers should be ignored by the ledger."""
    fetcher = StubFetcher(FetchResult(transfers=(make_transfer("sig-a"),)))
    controller, store = _controller(tmp_path, fetcher)

    controller.start()
    second = controller.start()

    assert second.stored_count == 0 and second.total_fetched == 1
    assert store.count_transfers() == 1


def test_failed_run_records_error_and_reraises(tmp_path: Path) -> None:
    """Fetch failures should end in the error state and propagate."""
    fetcher = StubFetcher(error=FeeLedgerFetchError("rate limited"))
    controller, store = _controller(tmp_path, fetcher)

    with pytest.raises(FeeLedgerFetchError):
        controller.start()

    assert store.get_status("processStatus") == "error"
    assert store.get_status("lastError") == "rate limited"
    assert store.get_status("lastErrorTime") == "1234"
    assert not controller.is_running()


def test_cancel_without_active_job_is_not_an_error(tmp_path: Path) -> None:
    """Cancelling while idle should report that nothing was running."""
    controller, _ = _controller(tmp_path, StubFetcher())

    result = controller.cancel()

    assert not result.cancelled and result.message == "No active fetch to cancel"


def test_cancel_during_fetch_signals_token(tmp_path: Path) -> None:
    """Cancelling mid-fetch should set the active run's token."""
    observed: dict[str, object] = {}

    def _cancel_mid_fetch(token: CancellationToken) -> None:
        observed["running"] = controller.is_running()
        observed["result"] = controller.cancel()
        observed["cancelled"] = token.cancelled

    controller, _ = _controller(tmp_path, StubFetcher(on_fetch=_cancel_mid_fetch))

    controller.start()

    assert observed["running"] is True and observed["cancelled"] is True
    assert observed["result"].message == "Fetch cancelled"
    assert not controller.is_running()


class _BlockingFetcher:
    """First call blocks until cancelled; later calls return one transfer."""

    def __init__(self) -> None:
        self.started = threading.Event()
        self.calls = 0

    def fetch(
        self,
        recipient_address: str,
        since_block_time: int | None,
        token: CancellationToken,
    ) -> FetchResult:
        self.calls += 1
        if self.calls == 1:
            self.started.set()
            token.wait(5.0)
            return FetchResult(transfers=(), cancelled=token.cancelled)
        return FetchResult(transfers=(make_transfer("sig-b"),))


def test_new_run_supersedes_active_run(tmp_path: Path) -> None:
    """Starting a run should cancel the one in flight."""
    fetcher = _BlockingFetcher()
    controller, store = _controller(tmp_path, fetcher)
    results = []
    worker = threading.Thread(target=lambda: results.append(controller.start()))
    worker.start()
    assert fetcher.started.wait(5.0)

    second = controller.start()
    worker.join(5.0)

    assert results[0].cancelled and not second.cancelled
    assert store.count_transfers() == 1
