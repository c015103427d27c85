"""Snapshot artifact publication.

This module renders token fee summaries into the dashboard's JSON
artifact and publishes it atomically: the payload is written to a
temporary file in the target directory and then moved into place, so
readers only ever see a complete artifact.
"""

from __future__ import annotations

from decimal import Decimal
import json
import os
from pathlib import Path
import tempfile
import time
from typing import Any, Callable, Sequence

from core.constants import STATUS_LAST_GENERATION
from core.errors import FeeLedgerExportError
from core.logging_config import get_logger
from core.types import TokenFeeSummary
from store.fee_store import FeeStore

_LOGGER = get_logger(__name__)


class SnapshotExporter:
    """Writes the replace-only fee snapshot to a fixed path."""

    def __init__(
        self,
        store: FeeStore,
        snapshot_path: Path,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._snapshot_path = snapshot_path
        self._clock = clock

    @property
    def snapshot_path(self) -> Path:
        return self._snapshot_path

    def export(self, summaries: Sequence[TokenFeeSummary]) -> Path:
        """Publish a fresh snapshot and record the generation time.

        Args:
            summaries: Aggregates joined with token metadata.

        Returns:
            Path of the published artifact.

        Raises:
            FeeLedgerExportError: If the artifact cannot be written.
        """
        now = self._clock()
        payload = build_snapshot_payload(summaries, last_updated_timestamp=int(now))
        _write_atomically(self._snapshot_path, payload)
        self._store.set_status(STATUS_LAST_GENERATION, str(int(now * 1000)))
        _LOGGER.info(
            "snapshot_published",
            snapshot_path=str(self._snapshot_path),
            tokens=len(summaries),
        )
        return self._snapshot_path


def build_snapshot_payload(
    summaries: Sequence[TokenFeeSummary],
    last_updated_timestamp: int,
) -> dict[str, Any]:
    """Render the snapshot artifact structure.

    Args:
        summaries: Aggregates joined with token metadata.
        last_updated_timestamp: Generation time in unix seconds.

    Returns:
        JSON-serializable snapshot payload.
    """
    fees_by_token = []
    for summary in summaries:
        aggregate = summary.aggregate
        decimals = summary.metadata.decimals
        fees_by_token.append(
            {
                "mint": aggregate.mint,
                "symbol": summary.metadata.symbol,
                "decimals": decimals,
                "totalAmountRaw": str(aggregate.total_amount_raw),
                "totalAmountUI": to_ui_amount(aggregate.total_amount_raw, decimals),
                "lastTransactionTime": aggregate.last_transaction_time * 1000,
                "dailyFees": [
                    {
                        "date": daily.date,
                        "amountRaw": str(daily.amount_raw),
                        "amountUI": to_ui_amount(daily.amount_raw, decimals),
                    }
                    for daily in aggregate.daily_fees
                ],
            }
        )
    return {"lastUpdatedTimestamp": last_updated_timestamp, "feesByToken": fees_by_token}


def to_ui_amount(amount_raw: int, decimals: int) -> float:
    """Scale a raw amount by ``10 ** decimals`` using exact decimal math."""
    return float(Decimal(amount_raw).scaleb(-decimals))


def _write_atomically(target_path: Path, payload: dict[str, Any]) -> None:
    """Write JSON to a sibling temp file, fsync it, then replace the target."""
    temp_name: str | None = None
    try:
        target_path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=target_path.parent,
            prefix=f".{target_path.stem}-",
            suffix=".tmp",
            delete=False,
        ) as handle:
            temp_name = handle.name
            handle.write(json.dumps(payload, indent=2) + "\n")
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_name, target_path)
    except OSError as error:
        if temp_name is not None:
            Path(temp_name).unlink(missing_ok=True)
        raise FeeLedgerExportError(
            f"Failed to publish fee snapshot at {target_path}: {error}. "
            "Check FEELEDGER_PUBLIC_ROOT permissions and rerun aggregation."
        ) from error
