"""Core constants used across feeledger modules.

This module centralizes paths, status keys, and upstream defaults.
Keeping values here avoids magic literals in business logic.
"""

from __future__ import annotations

from pathlib import Path

DEFAULT_DATA_ROOT = Path(".feeledger")
DEFAULT_PUBLIC_ROOT = Path("public")
DATABASE_FILE_NAME = "fee_data.sqlite"
SNAPSHOT_DIR_NAME = "data"
SNAPSHOT_FILE_NAME = "protocol-fees.json"
SNAPSHOT_PUBLIC_PATH = f"/{SNAPSHOT_DIR_NAME}/{SNAPSHOT_FILE_NAME}"

DEFAULT_ENVIRONMENT = "development"
PRODUCTION_ENVIRONMENT = "production"
DEFAULT_HELIUS_API_URL = "https://api.helius.xyz"
DEFAULT_HELIUS_RPC_URL = "https://mainnet.helius-rpc.com"

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_BACKOFF_BASE_SECONDS = 1.0
DEFAULT_REQUEST_TIMEOUT_SECONDS = 30.0
DEFAULT_PAGE_LIMIT = 100
MIN_REQUEST_INTERVAL_SECONDS = 0.5
MAX_EMPTY_PAGES = 3
METADATA_BATCH_SIZE = 100
METADATA_BATCH_PAUSE_SECONDS = 0.5
STORE_COMMIT_CHUNK_SIZE = 500

UNKNOWN_TOKEN_SYMBOL = "UNKNOWN"
UNKNOWN_TOKEN_DECIMALS = 0

STATUS_PROCESS = "processStatus"
STATUS_CURRENT_STEP = "currentStep"
STATUS_LAST_FETCH_COUNT = "lastFetchCount"
STATUS_LAST_FETCH_TIME = "lastFetchTime"
STATUS_LAST_SYNC_TIME = "lastSyncTime"
STATUS_LAST_ERROR = "lastError"
STATUS_LAST_ERROR_TIME = "lastErrorTime"
STATUS_LAST_GENERATION = "lastGeneration"
STATUS_LAST_RUN_START_TIME = "lastRunStartTime"
STATUS_LAST_RUN_END_TIME = "lastRunEndTime"
STATUS_LAST_SUCCESSFUL_RUN = "lastSuccessfulRun"
REPORTED_STATUS_KEYS = (
    STATUS_PROCESS,
    STATUS_CURRENT_STEP,
    STATUS_LAST_RUN_START_TIME,
    STATUS_LAST_RUN_END_TIME,
    STATUS_LAST_SUCCESSFUL_RUN,
    STATUS_LAST_ERROR,
    STATUS_LAST_ERROR_TIME,
    STATUS_LAST_GENERATION,
)

STEP_FETCHING = "Fetching fee data"
STEP_GENERATING = "Generating statistics"
STEP_IDLE = "Idle"
