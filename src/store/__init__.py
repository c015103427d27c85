"""Fee ledger storage and publication layer.

This module persists fee transfers and process status in SQLite and
publishes the aggregated snapshot artifact. It also hosts the SDK client
that wires the pipeline together.
"""
