"""Fee aggregation layer.

This module rolls the fee ledger up per token and joins token metadata
before the snapshot exporter publishes the result.
"""
