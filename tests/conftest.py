"""Pytest configuration and shared fixtures."""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest

from src.core import db_client
from src.core.config import settings


@pytest.fixture
async def sqlite_db(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> AsyncGenerator[Path]:
    """Initialize a throwaway SQLite database and point settings at it."""
    db_path = tmp_path / "taskwarden_test.db"
    monkeypatch.setattr(settings, "sqlite_db_path", str(db_path))

    await db_client.init_db()
    yield db_path
    await db_client.close_connection()


@pytest.fixture
def uploads_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point attachment storage at a temporary directory."""
    target = tmp_path / "uploads"
    target.mkdir()
    monkeypatch.setattr(settings, "uploads_dir", str(target))
    return target
