"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest


@pytest.fixture
def pid_path(tmp_path: Path) -> str:
    return str(tmp_path / "test.pid")
