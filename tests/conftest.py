"""Pytest configuration for repository test runs."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

_PIPELINE_ENV_PREFIXES = ("FEELEDGER_", "HELIUS_")
_PIPELINE_ENV_NAMES = ("PROTOCOL_FEE_RECIPIENT",)


def pytest_sessionstart() -> None:
    """Add src directory to sys.path for test imports."""
    project_root = Path(__file__).resolve().parent.parent
    src_path = project_root / "src"
    if str(src_path) not in sys.path:
        sys.path.insert(0, str(src_path))


@pytest.fixture(autouse=True)
def _clear_pipeline_env(monkeypatch) -> None:
    """Keep developer shell settings out of config-driven tests."""
    for name in list(os.environ):
        if name.startswith(_PIPELINE_ENV_PREFIXES) or name in _PIPELINE_ENV_NAMES:
            monkeypatch.delenv(name, raising=False)
