"""Fee transfer ingestion.

This module pages through the treasury's upstream transaction history
and extracts fee transfers for the ledger, under a single-flight job
controller with cooperative cancellation.
"""
