"""Tests for configuration validation."""

from src.core.config import Constants, Settings


def test_settings_defaults(monkeypatch) -> None:
    """Test settings fall back to local paths and no Logfire token."""
    for name in ("SQLITE_DB_PATH", "UPLOADS_DIR", "LOGFIRE_TOKEN", "ENVIRONMENT"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings(_env_file=None)

    assert settings.sqlite_db_path == "./data/taskwarden.db"
    assert settings.uploads_dir == "./uploads"
    assert settings.logfire_token is None
    assert settings.environment == "development"


def test_settings_read_from_environment(monkeypatch) -> None:
    """Test settings pick up environment variables."""
    monkeypatch.setenv("SQLITE_DB_PATH", "/tmp/tasks.db")
    monkeypatch.setenv("UPLOADS_DIR", "/tmp/uploads")
    monkeypatch.setenv("ENVIRONMENT", "Production")

    settings = Settings()

    assert settings.sqlite_db_path == "/tmp/tasks.db"
    assert settings.uploads_dir == "/tmp/uploads"
    assert settings.environment == "Production"


def test_progress_constants() -> None:
    """Test partial progress stays below completion."""
    assert Constants.PROGRESS_PARTIAL_CAP == 90
    assert Constants.PROGRESS_COMPLETE == 100
