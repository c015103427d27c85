"""Unit tests for snapshot artifact publication."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from core.errors import FeeLedgerExportError
from core.types import DailyFee, FeeAggregate, TokenFeeSummary, TokenMetadata
from store.fee_store import FeeStore
from store.snapshot_export import SnapshotExporter, build_snapshot_payload, to_ui_amount
from tests.fakes import DAY_TWO, USDC_MINT


def _summary(decimals: int = 2, symbol: str = "USDC") -> TokenFeeSummary:
    aggregate = FeeAggregate(
        mint=USDC_MINT,
        total_amount_raw=355,
        last_transaction_time=DAY_TWO,
        daily_fees=(
            DailyFee(date="2023-11-14", amount_raw=350),
            DailyFee(date="2023-11-15", amount_raw=5),
        ),
    )
    return TokenFeeSummary(aggregate=aggregate, metadata=TokenMetadata(symbol, decimals))


def test_to_ui_amount_scales_by_decimals() -> None:
    """UI amounts should divide raw amounts by ten to the decimals."""
    assert to_ui_amount(355, 2) == 3.55 and to_ui_amount(350, 2) == 3.5


def test_to_ui_amount_with_zero_decimals_is_raw_value() -> None:
    """Zero decimals should leave the amount unscaled."""
    assert to_ui_amount(42, 0) == 42.0


def test_build_snapshot_payload_matches_artifact_schema() -> None:
    """Payload should carry totals, millisecond times, and daily UI values."""
    payload = build_snapshot_payload([_summary()], last_updated_timestamp=1_700_100_000)

    token = payload["feesByToken"][0]

    assert payload["lastUpdatedTimestamp"] == 1_700_100_000
    assert token == {
        "mint": USDC_MINT,
        "symbol": "USDC",
        "decimals": 2,
        "totalAmountRaw": "355",
        "totalAmountUI": 3.55,
        "lastTransactionTime": DAY_TWO * 1000,
        "dailyFees": [
            {"date": "2023-11-14", "amountRaw": "350", "amountUI": 3.5},
            {"date": "2023-11-15", "amountRaw": "5", "amountUI": 0.05},
        ],
    }


def test_export_writes_artifact_and_records_generation(tmp_path: Path) -> None:
    """Export should publish JSON and record lastGeneration in milliseconds."""
    store = FeeStore(tmp_path / "fee_data.sqlite")
    snapshot_path = tmp_path / "public" / "data" / "protocol-fees.json"
    exporter = SnapshotExporter(store, snapshot_path, clock=lambda: 1_700_100_000.25)

    exporter.export([_summary()])

    payload = json.loads(snapshot_path.read_text(encoding="utf-8"))
    assert payload["feesByToken"][0]["totalAmountRaw"] == "355"
    assert store.get_status("lastGeneration") == "1700100000250"


def test_export_replaces_previous_artifact_without_temp_leftovers(tmp_path: Path) -> None:
    """Repeated exports should replace the file and leave no temp files."""
    store = FeeStore(tmp_path / "fee_data.sqlite")
    snapshot_path = tmp_path / "public" / "data" / "protocol-fees.json"
    snapshot_path.parent.mkdir(parents=True)
    snapshot_path.write_text("stale", encoding="utf-8")
    exporter = SnapshotExporter(store, snapshot_path)

    exporter.export([_summary(decimals=0, symbol="UNKNOWN")])

    leftovers = [path.name for path in snapshot_path.parent.iterdir()]
    payload = json.loads(snapshot_path.read_text(encoding="utf-8"))
    assert leftovers == ["protocol-fees.json"]
    assert payload["feesByToken"][0]["symbol"] == "UNKNOWN"


def test_export_raises_when_target_directory_is_a_file(tmp_path: Path) -> None:
    """Unwritable targets should surface as export errors."""
    store = FeeStore(tmp_path / "fee_data.sqlite")
    blocker = tmp_path / "public"
    blocker.write_text("not a directory", encoding="utf-8")
    exporter = SnapshotExporter(store, blocker / "data" / "protocol-fees.json")

    with pytest.raises(FeeLedgerExportError):
        exporter.export([_summary()])

    assert store.get_status("lastGeneration") is None
