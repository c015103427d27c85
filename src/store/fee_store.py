"""Durable fee ledger and process status table.

This module persists fee transfers idempotently in SQLite and keeps the
key/value status table that survives process restarts. It also computes
per-mint rollups with exact integer arithmetic.
"""

from __future__ import annotations

from datetime import datetime, timezone
import json
from pathlib import Path
import sqlite3
import threading
from typing import Iterable, Iterator, Sequence

from core.constants import STATUS_PROCESS, STORE_COMMIT_CHUNK_SIZE
from core.errors import FeeLedgerStoreError
from core.logging_config import get_logger
from core.types import DailyFee, FeeAggregate, FeeTransfer, ProcessState

_LOGGER = get_logger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS fee_transfers (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    signature TEXT NOT NULL,
    block_time INTEGER NOT NULL,
    mint TEXT NOT NULL,
    amount TEXT NOT NULL,
    source TEXT,
    raw_data TEXT,
    UNIQUE (signature, mint)
);
CREATE INDEX IF NOT EXISTS idx_fee_transfers_block_time ON fee_transfers (block_time);
CREATE INDEX IF NOT EXISTS idx_fee_transfers_mint ON fee_transfers (mint);
CREATE TABLE IF NOT EXISTS process_status (
    key TEXT PRIMARY KEY,
    value TEXT
);
"""

_INSERT_TRANSFER = (
    "INSERT OR IGNORE INTO fee_transfers "
    "(signature, block_time, mint, amount, source, raw_data) VALUES (?, ?, ?, ?, ?, ?)"
)


class FeeStore:
    """SQLite-backed fee ledger.

    One instance is opened per process. All access is serialized through a
    lock around a single connection; WAL journaling lets other processes
    read while an ingestion run writes.
    """

    def __init__(self, database_path: Path) -> None:
        """Open the ledger database and create tables if missing.

        Args:
            database_path: SQLite file path; parent directories are created.

        Raises:
            FeeLedgerStoreError: If the database cannot be opened.
        """
        self._database_path = database_path
        self._lock = threading.Lock()
        try:
            database_path.parent.mkdir(parents=True, exist_ok=True)
            self._connection = sqlite3.connect(str(database_path), check_same_thread=False)
            self._connection.execute("PRAGMA journal_mode=WAL")
            self._connection.executescript(_SCHEMA)
            self._connection.commit()
        except (OSError, sqlite3.Error) as error:
            raise FeeLedgerStoreError(
                f"Failed to open fee ledger at {database_path}: {error}. "
                "Check FEELEDGER_DATA_ROOT permissions and retry."
            ) from error

    @property
    def database_path(self) -> Path:
        return self._database_path

    def close(self) -> None:
        """Close the underlying connection."""
        with self._lock:
            self._connection.close()

    def latest_block_time(self) -> int | None:
        """Return the newest stored block time, or None for an empty ledger."""
        row = self._fetch_one("SELECT MAX(block_time) FROM fee_transfers")
        if row is None or row[0] is None:
            return None
        return int(row[0])

    def count_transfers(self) -> int:
        """Return the number of stored transfers."""
        row = self._fetch_one("SELECT COUNT(*) FROM fee_transfers")
        return int(row[0]) if row else 0

    def store_transfers(self, transfers: Sequence[FeeTransfer]) -> int:
        """Insert transfers, skipping ones already in the ledger.

        Rows are committed in chunks so a crash keeps earlier chunks.

        Args:
            transfers: Transfers to persist.

        Returns:
            Number of newly inserted rows.

        Raises:
            FeeLedgerStoreError: If an insert fails.
        """
        stored_count = 0
        for chunk in _chunked(transfers, STORE_COMMIT_CHUNK_SIZE):
            rows = [_transfer_row(transfer) for transfer in chunk]
            with self._lock:
                try:
                    with self._connection:
                        cursor = self._connection.executemany(_INSERT_TRANSFER, rows)
                        stored_count += max(cursor.rowcount, 0)
                except sqlite3.Error as error:
                    raise FeeLedgerStoreError(
                        f"Failed to store fee transfers in {self._database_path}: {error}. "
                        "Previously committed rows are kept; rerun ingestion to resume."
                    ) from error
        _LOGGER.info(
            "fee_transfers_stored",
            attempted=len(transfers),
            stored=stored_count,
            ignored=len(transfers) - stored_count,
        )
        return stored_count

    def clear_all(self) -> None:
        """Delete every stored transfer."""
        self._execute("DELETE FROM fee_transfers")
        _LOGGER.info("fee_ledger_cleared", database_path=str(self._database_path))

    def get_status(self, key: str) -> str | None:
        """Read one status value."""
        row = self._fetch_one("SELECT value FROM process_status WHERE key = ?", (key,))
        return None if row is None else row[0]

    def get_status_map(self, keys: Iterable[str]) -> dict[str, str | None]:
        """Read several status values, missing keys mapping to None."""
        return {key: self.get_status(key) for key in keys}

    def set_status(self, key: str, value: str) -> None:
        """Write one status value; committed before returning."""
        self._execute(
            "INSERT OR REPLACE INTO process_status (key, value) VALUES (?, ?)",
            (key, value),
        )

    def set_process_state(self, state: ProcessState) -> None:
        """Record the pipeline state reported as ``processStatus``."""
        self.set_status(STATUS_PROCESS, state)

    def aggregate_by_mint(self) -> list[FeeAggregate]:
        """Group the ledger by mint with totals and UTC day buckets.

        Returns:
            Aggregates sorted by mint, day buckets in ascending date order.
        """
        totals: dict[str, int] = {}
        last_times: dict[str, int] = {}
        daily: dict[str, dict[str, int]] = {}
        for mint, amount, block_time in self._iter_rows(
            "SELECT mint, amount, block_time FROM fee_transfers ORDER BY mint, block_time"
        ):
            amount_raw = int(amount)
            day = _utc_day(int(block_time))
            totals[mint] = totals.get(mint, 0) + amount_raw
            last_times[mint] = max(last_times.get(mint, int(block_time)), int(block_time))
            mint_days = daily.setdefault(mint, {})
            mint_days[day] = mint_days.get(day, 0) + amount_raw
        return [
            FeeAggregate(
                mint=mint,
                total_amount_raw=totals[mint],
                last_transaction_time=last_times[mint],
                daily_fees=tuple(
                    DailyFee(date=day, amount_raw=amount)
                    for day, amount in sorted(daily[mint].items())
                ),
            )
            for mint in sorted(totals)
        ]

    def _execute(self, statement: str, parameters: Sequence[object] = ()) -> None:
        with self._lock:
            try:
                with self._connection:
                    self._connection.execute(statement, parameters)
            except sqlite3.Error as error:
                raise FeeLedgerStoreError(
                    f"Fee ledger write failed in {self._database_path}: {error}."
                ) from error

    def _fetch_one(self, query: str, parameters: Sequence[object] = ()) -> tuple | None:
        with self._lock:
            try:
                return self._connection.execute(query, parameters).fetchone()
            except sqlite3.Error as error:
                raise FeeLedgerStoreError(
                    f"Fee ledger read failed in {self._database_path}: {error}."
                ) from error

    def _iter_rows(self, query: str) -> Iterator[tuple]:
        with self._lock:
            try:
                rows = self._connection.execute(query).fetchall()
            except sqlite3.Error as error:
                raise FeeLedgerStoreError(
                    f"Fee ledger read failed in {self._database_path}: {error}."
                ) from error
        yield from rows


def _transfer_row(transfer: FeeTransfer) -> tuple[object, ...]:
    """Map a transfer onto insert parameters."""
    raw_data = json.dumps(transfer.raw_data, sort_keys=True) if transfer.raw_data else None
    return (
        transfer.signature,
        transfer.block_time,
        transfer.mint,
        transfer.amount_raw,
        transfer.source,
        raw_data,
    )


def _chunked(items: Sequence[FeeTransfer], size: int) -> Iterator[Sequence[FeeTransfer]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


def _utc_day(block_time: int) -> str:
    return datetime.fromtimestamp(block_time, tz=timezone.utc).date().isoformat()
