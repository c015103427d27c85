"""Admin HTTP trigger surface.

This module exposes ingestion, cancellation, aggregation, and status
routes over Flask. Every route answers 404 in production environments.
"""

from __future__ import annotations

from typing import Any

from flask import Flask, jsonify, request

from core.constants import SNAPSHOT_PUBLIC_PATH
from core.logging_config import get_logger
from store.ledger_sdk import FeeLedgerClient

_LOGGER = get_logger(__name__)


def create_app(client: FeeLedgerClient) -> Flask:
    """Build the admin Flask app around a process-wide client.

    Args:
        client: Shared SDK client owning the single ingestion job handle.

    Returns:
        Configured Flask application.
    """
    app = Flask("feeledger")

    @app.before_request
    def _hide_in_production() -> Any:
        if client.config.is_production:
            return jsonify({"error": "Not found"}), 404
        return None

    @app.post("/ingest")
    def start_ingest() -> Any:
        body = request.get_json(silent=True) or {}
        force_fetch_all = isinstance(body, dict) and body.get("forceFetchAll") is True
        try:
            result = client.ingest(force_fetch_all=force_fetch_all)
        except Exception as error:
            _LOGGER.error("admin_ingest_failed", error=str(error))
            return jsonify({"error": "Failed to fetch fee data", "details": str(error)}), 500
        suffix = " (force fetched)" if force_fetch_all else ""
        return jsonify(
            {
                "success": True,
                "message": f"{result.stored_count} transfers{suffix}",
                "transfersFetched": result.total_fetched,
                "cancelled": result.cancelled,
            }
        )

    @app.delete("/ingest")
    def cancel_ingest() -> Any:
        result = client.cancel_ingest()
        payload = {"success": result.cancelled, "message": result.message}
        return jsonify(payload), 200 if result.cancelled else 404

    @app.post("/aggregate")
    def run_aggregation() -> Any:
        try:
            result = client.aggregate()
        except Exception as error:
            _LOGGER.error("admin_aggregate_failed", error=str(error))
            return jsonify({"success": False, "error": str(error)}), 500
        if result.empty:
            return jsonify(
                {"success": True, "message": "No fee data available", "tokensProcessed": 0}
            )
        return jsonify(
            {
                "success": True,
                "tokensProcessed": result.tokens_processed,
                "outputPath": SNAPSHOT_PUBLIC_PATH,
            }
        )

    @app.get("/status")
    def read_status() -> Any:
        try:
            status = client.status()
        except Exception as error:
            _LOGGER.error("admin_status_failed", error=str(error))
            return jsonify({"success": False, "error": str(error)}), 500
        return jsonify({"success": True, "status": status})

    return app
