"""Runtime configuration model for feeledger.

This module owns all environment variable parsing and validation.
Other modules consume a typed config object instead of raw env reads.
"""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path

from core.constants import (
    DATABASE_FILE_NAME,
    DEFAULT_BACKOFF_BASE_SECONDS,
    DEFAULT_DATA_ROOT,
    DEFAULT_ENVIRONMENT,
    DEFAULT_HELIUS_API_URL,
    DEFAULT_HELIUS_RPC_URL,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_PAGE_LIMIT,
    DEFAULT_PUBLIC_ROOT,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    PRODUCTION_ENVIRONMENT,
    SNAPSHOT_DIR_NAME,
    SNAPSHOT_FILE_NAME,
)
from core.errors import FeeLedgerConfigError


@dataclass(frozen=True)
class FeeLedgerConfig:
    """Validated runtime configuration.

    Attributes:
        data_root: Local directory holding the fee ledger database.
        public_root: Directory served by the dashboard read path.
        recipient_address: Treasury address whose incoming transfers are tracked.
        helius_api_key: Credential for the transaction history and asset APIs.
        helius_api_url: Base URL of the parsed transaction history API.
        helius_rpc_url: JSON-RPC endpoint used for token metadata lookups.
        environment: Deployment environment name.
        max_attempts: Total attempts per upstream page before failing.
        backoff_base_seconds: First retry delay; doubles per attempt.
        request_timeout_seconds: Per-request HTTP deadline.
        page_limit: Transactions requested per history page.
    """

    data_root: Path
    public_root: Path
    recipient_address: str | None
    helius_api_key: str | None
    helius_api_url: str = DEFAULT_HELIUS_API_URL
    helius_rpc_url: str = DEFAULT_HELIUS_RPC_URL
    environment: str = DEFAULT_ENVIRONMENT
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    backoff_base_seconds: float = DEFAULT_BACKOFF_BASE_SECONDS
    request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS
    page_limit: int = DEFAULT_PAGE_LIMIT

    @classmethod
    def from_env(cls) -> "FeeLedgerConfig":
        """Build config from process environment variables.

        Returns:
            A validated config object.

        Raises:
            FeeLedgerConfigError: If environment values are invalid.
        """
        data_root_value = os.getenv("FEELEDGER_DATA_ROOT", str(DEFAULT_DATA_ROOT))
        public_root_value = os.getenv("FEELEDGER_PUBLIC_ROOT", str(DEFAULT_PUBLIC_ROOT))
        return cls(
            data_root=Path(data_root_value).expanduser().resolve(),
            public_root=Path(public_root_value).expanduser().resolve(),
            recipient_address=_optional_env("PROTOCOL_FEE_RECIPIENT"),
            helius_api_key=_optional_env("HELIUS_API_KEY"),
            helius_api_url=os.getenv("HELIUS_API_URL", DEFAULT_HELIUS_API_URL).rstrip("/"),
            helius_rpc_url=os.getenv("HELIUS_RPC_URL", DEFAULT_HELIUS_RPC_URL).rstrip("/"),
            environment=os.getenv("FEELEDGER_ENVIRONMENT", DEFAULT_ENVIRONMENT),
            max_attempts=_parse_positive_int(
                "FEELEDGER_MAX_ATTEMPTS", os.getenv("FEELEDGER_MAX_ATTEMPTS")
            )
            or DEFAULT_MAX_ATTEMPTS,
            backoff_base_seconds=_parse_non_negative_float(
                "FEELEDGER_BACKOFF_BASE_SECONDS",
                os.getenv("FEELEDGER_BACKOFF_BASE_SECONDS"),
                DEFAULT_BACKOFF_BASE_SECONDS,
            ),
            request_timeout_seconds=_parse_non_negative_float(
                "FEELEDGER_REQUEST_TIMEOUT_SECONDS",
                os.getenv("FEELEDGER_REQUEST_TIMEOUT_SECONDS"),
                DEFAULT_REQUEST_TIMEOUT_SECONDS,
            ),
            page_limit=_parse_positive_int(
                "FEELEDGER_PAGE_LIMIT", os.getenv("FEELEDGER_PAGE_LIMIT")
            )
            or DEFAULT_PAGE_LIMIT,
        )

    @property
    def database_path(self) -> Path:
        """Path of the SQLite fee ledger."""
        return self.data_root / DATABASE_FILE_NAME

    @property
    def snapshot_path(self) -> Path:
        """Fixed path of the published snapshot artifact."""
        return self.public_root / SNAPSHOT_DIR_NAME / SNAPSHOT_FILE_NAME

    @property
    def is_production(self) -> bool:
        """Whether admin routes must stay hidden."""
        return self.environment == PRODUCTION_ENVIRONMENT

    def require_ingest_settings(self) -> tuple[str, str]:
        """Return recipient address and API key required by ingestion.

        Returns:
            Pair of recipient address and upstream API key.

        Raises:
            FeeLedgerConfigError: If either value is missing.
        """
        if not self.recipient_address:
            raise FeeLedgerConfigError(
                "Missing PROTOCOL_FEE_RECIPIENT: the treasury address to monitor is not set. "
                "Export PROTOCOL_FEE_RECIPIENT before starting ingestion."
            )
        return self.recipient_address, self.require_api_key()

    def require_api_key(self) -> str:
        """Return the upstream API key.

        Raises:
            FeeLedgerConfigError: If the key is missing.
        """
        if not self.helius_api_key:
            raise FeeLedgerConfigError(
                "Missing HELIUS_API_KEY: the transaction history and asset APIs require a "
                "credential. Export HELIUS_API_KEY before running the pipeline."
            )
        return self.helius_api_key


def _optional_env(name: str) -> str | None:
    """Read an environment value, treating blank strings as unset."""
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _parse_positive_int(name: str, raw_value: str | None) -> int | None:
    """Parse an optional positive integer environment value.

    Args:
        name: Environment variable name for error messages.
        raw_value: Raw string from environment.

    Returns:
        Parsed integer, or None when unset.

    Raises:
        FeeLedgerConfigError: If value is not a positive integer.
    """
    if raw_value is None:
        return None
    try:
        value = int(raw_value)
    except ValueError as error:
        raise FeeLedgerConfigError(
            f"Invalid {name} value: expected integer, got '{raw_value}'. "
            f"Set {name} to a positive integer."
        ) from error
    if value < 1:
        raise FeeLedgerConfigError(
            f"Invalid {name} value: expected a positive integer, got {value}."
        )
    return value


def _parse_non_negative_float(name: str, raw_value: str | None, default: float) -> float:
    """Parse an optional non-negative float environment value.

    Raises:
        FeeLedgerConfigError: If value is not a non-negative number.
    """
    if raw_value is None:
        return default
    try:
        value = float(raw_value)
    except ValueError as error:
        raise FeeLedgerConfigError(
            f"Invalid {name} value: expected number, got '{raw_value}'. "
            f"Set {name} to a non-negative number of seconds."
        ) from error
    if value < 0:
        raise FeeLedgerConfigError(f"Invalid {name} value: expected >= 0, got {value}.")
    return value
