"""Public SDK surface for feeledger.

This module provides a stable import path for pipeline users.
It re-exports the primary client, app factory, and typed models.
"""

from __future__ import annotations

from core.config import FeeLedgerConfig
from core.errors import (
    FeeLedgerAmountError,
    FeeLedgerConfigError,
    FeeLedgerError,
    FeeLedgerExportError,
    FeeLedgerFetchError,
    FeeLedgerStoreError,
)
from core.types import (
    AggregationResult,
    CancelResult,
    DailyFee,
    FeeAggregate,
    FeeTransfer,
    IngestRunResult,
    TokenMetadata,
)
from serve.admin_api import create_app
from store.ledger_sdk import FeeLedgerClient

__all__ = [
    "AggregationResult",
    "CancelResult",
    "DailyFee",
    "FeeAggregate",
    "FeeLedgerAmountError",
    "FeeLedgerClient",
    "FeeLedgerConfig",
    "FeeLedgerConfigError",
    "FeeLedgerError",
    "FeeLedgerExportError",
    "FeeLedgerFetchError",
    "FeeLedgerStoreError",
    "FeeTransfer",
    "IngestRunResult",
    "TokenMetadata",
    "create_app",
]
