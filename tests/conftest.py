# tests/conftest.py

"""Shared pytest fixtures for all price_engine tests."""

from collections.abc import Generator
from pathlib import Path

import pytest

from price_engine.config.settings import Settings


@pytest.fixture(autouse=True)
def isolated_paths(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch,
) -> Generator[None, None, None]:
    """Point the log directory and SQLite store at a per-test temp dir."""
    monkeypatch.setattr(Settings, "LOGS_DIR", tmp_path / "logs")
    monkeypatch.setattr(Settings, "DB_PATH", tmp_path / "price_engine.db")
    yield
