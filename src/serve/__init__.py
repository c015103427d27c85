"""Admin trigger surface.

This module exposes ingestion, aggregation, and status routes over HTTP
for non-production deployments.
"""
