"""Unit tests for aggregation runs."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Mapping, Sequence

import pytest

from aggregate.fee_aggregator import FeeAggregator
from core.errors import FeeLedgerExportError
from core.types import TokenMetadata
from store.fee_store import FeeStore
from store.snapshot_export import SnapshotExporter
from tests.fakes import DAY_ONE, DAY_TWO, SOL_MINT, USDC_MINT, make_transfer


class _StaticResolver:
    def __init__(self, metadata: Mapping[str, TokenMetadata]) -> None:
        self.metadata = dict(metadata)
        self.requests: list[list[str]] = []

    def resolve(self, mints: Sequence[str]) -> dict[str, TokenMetadata]:
        self.requests.append(list(mints))
        return {mint: self.metadata.get(mint, TokenMetadata()) for mint in mints}


def _aggregator(
    tmp_path: Path,
    resolver: _StaticResolver,
    snapshot_path: Path | None = None,
) -> tuple[FeeAggregator, FeeStore, Path]:
    store = FeeStore(tmp_path / "fee_data.sqlite")
    target = snapshot_path or tmp_path / "public" / "data" / "protocol-fees.json"
    exporter = SnapshotExporter(store, target, clock=lambda: 1_700_200_000.0)
    return FeeAggregator(store, resolver, exporter, clock_ms=lambda: 42), store, target


def test_empty_ledger_completes_without_artifact(tmp_path: Path) -> None:
    """An empty ledger should finish cleanly and write nothing."""
    resolver = _StaticResolver({})
    aggregator, store, target = _aggregator(tmp_path, resolver)

    result = aggregator.run()

    assert result.empty and result.tokens_processed == 0
    assert not target.exists() and resolver.requests == []
    assert store.get_status("processStatus") == "completed"


def test_run_publishes_snapshot_with_metadata(tmp_path: Path) -> None:
    """Aggregates should be joined with metadata and published."""
    resolver = _StaticResolver({USDC_MINT: TokenMetadata("USDC", 6)})
    aggregator, store, target = _aggregator(tmp_path, resolver)
    store.store_transfers(
        [
            make_transfer("sig-a", amount_raw="1500000", block_time=DAY_ONE),
            make_transfer("sig-b", amount_raw="500000", block_time=DAY_TWO),
            make_transfer("sig-c", amount_raw="7", block_time=DAY_ONE, mint=SOL_MINT),
        ]
    )

    result = aggregator.run()

    payload = json.loads(target.read_text(encoding="utf-8"))
    tokens = {entry["mint"]: entry for entry in payload["feesByToken"]}
    assert result.tokens_processed == 2 and result.output_path == target
    assert tokens[USDC_MINT]["totalAmountRaw"] == "2000000"
    assert tokens[USDC_MINT]["totalAmountUI"] == 2.0
    assert tokens[SOL_MINT]["symbol"] == "UNKNOWN" and tokens[SOL_MINT]["decimals"] == 0
    assert store.get_status("processStatus") == "completed"
    assert store.get_status("currentStep") == "Idle"
    assert store.get_status("lastGeneration") == "1700200000000"


def test_export_failure_is_recorded(tmp_path: Path) -> None:
    """Export failures should end in the error state and propagate."""
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    resolver = _StaticResolver({})
    aggregator, store, _ = _aggregator(
        tmp_path,
        resolver,
        snapshot_path=blocker / "data" / "protocol-fees.json",
    )
    store.store_transfers([make_transfer("sig-a")])

    with pytest.raises(FeeLedgerExportError):
        aggregator.run()

    assert store.get_status("processStatus") == "error"
    assert store.get_status("lastErrorTime") == "42"
    assert "protocol-fees.json" in (store.get_status("lastError") or "")
