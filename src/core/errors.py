"""feeledger exception hierarchy.

This module defines traceable domain errors with clear boundaries.
Each subsystem raises a specific error type for debuggability.
"""

from __future__ import annotations


class FeeLedgerError(Exception):
    """Base exception for all feeledger failures."""


class FeeLedgerConfigError(FeeLedgerError):
    """Raised for invalid or missing runtime configuration."""


class FeeLedgerFetchError(FeeLedgerError):
    """Raised when the upstream transaction history cannot be read."""


class FeeLedgerStoreError(FeeLedgerError):
    """Raised for fee ledger and status table failures."""


class FeeLedgerExportError(FeeLedgerError):
    """Raised when the published snapshot cannot be written."""


class FeeLedgerTransientError(FeeLedgerFetchError):
    """Raised for upstream failures worth retrying, such as rate limiting."""


class FeeLedgerAmountError(FeeLedgerFetchError):
    """Raised when a fee transfer has no exact smallest-unit amount."""
