"""feeledger CLI entry points.
This module exposes ingest, aggregate, status, and serve commands.
It maps argparse commands onto SDK calls.
"""

from __future__ import annotations

import argparse
from dataclasses import replace
from pathlib import Path
from typing import Any, Sequence

from core.config import FeeLedgerConfig
from core.constants import REPORTED_STATUS_KEYS
from serve.admin_api import create_app
from store.ledger_sdk import FeeLedgerClient

DEFAULT_SERVE_HOST = "127.0.0.1"
DEFAULT_SERVE_PORT = 8787


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser.
    """
    parser = argparse.ArgumentParser(prog="feeledger", description="Protocol fee pipeline CLI")
    parser.add_argument("--data-root", help="Override FEELEDGER_DATA_ROOT for this command")
    subparsers = parser.add_subparsers(dest="command", required=True)
    _add_ingest_command(subparsers)
    _add_aggregate_command(subparsers)
    _add_status_command(subparsers)
    _add_serve_command(subparsers)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the feeledger CLI.

    Args:
        argv: Optional argument vector.

    Returns:
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    client = _build_client(args.data_root)
    try:
        if args.command == "ingest":
            return _run_ingest_command(client, args)
        if args.command == "aggregate":
            return _run_aggregate_command(client)
        if args.command == "status":
            return _run_status_command(client)
        if args.command == "serve":
            return _run_serve_command(client, args)
    finally:
        client.close()
    parser.error(f"Unsupported command: {args.command}")
    return 2


def _build_client(data_root: str | None) -> FeeLedgerClient:
    """Build SDK client with optional data-root override.

    Args:
        data_root: Optional override path.

    Returns:
        Configured SDK client.
    """
    config = FeeLedgerConfig.from_env()
    if data_root:
        config = replace(config, data_root=Path(data_root).expanduser().resolve())
    return FeeLedgerClient(config)


def _run_ingest_command(client: FeeLedgerClient, args: argparse.Namespace) -> int:
    """Handle ingest command."""
    result = client.ingest(force_fetch_all=args.force_fetch_all)
    print(f"stored={result.stored_count}")
    print(f"fetched={result.total_fetched}")
    print(f"cancelled={str(result.cancelled).lower()}")
    return 0


def _run_aggregate_command(client: FeeLedgerClient) -> int:
    """Handle aggregate command."""
    result = client.aggregate()
    if result.empty:
        print("No fee data available")
        return 0
    print(f"tokens_processed={result.tokens_processed}")
    print(f"output_path={result.output_path}")
    return 0


def _run_status_command(client: FeeLedgerClient) -> int:
    """Handle status command."""
    status = client.status()
    for key in REPORTED_STATUS_KEYS:
        print(f"{key}\t{status.get(key) or '-'}")
    return 0


def _run_serve_command(client: FeeLedgerClient, args: argparse.Namespace) -> int:
    """Handle serve command by running the admin app."""
    app = create_app(client)
    app.run(host=args.host, port=args.port, threaded=True)
    return 0


def _add_ingest_command(subparsers: Any) -> None:
    """Register ingest subcommand."""
    parser = subparsers.add_parser("ingest", help="Fetch new fee transfers into the ledger")
    parser.add_argument(
        "--force-fetch-all",
        action="store_true",
        help="Clear the ledger and refetch the full available history",
    )


def _add_aggregate_command(subparsers: Any) -> None:
    """Register aggregate subcommand."""
    subparsers.add_parser("aggregate", help="Aggregate the ledger and publish the snapshot")


def _add_status_command(subparsers: Any) -> None:
    """Register status subcommand."""
    subparsers.add_parser("status", help="Print persisted process status")


def _add_serve_command(subparsers: Any) -> None:
    """Register serve subcommand."""
    parser = subparsers.add_parser("serve", help="Run the admin HTTP trigger surface")
    parser.add_argument("--host", default=DEFAULT_SERVE_HOST, help="Bind address")
    parser.add_argument("--port", type=int, default=DEFAULT_SERVE_PORT, help="Bind port")
