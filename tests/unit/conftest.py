"""Pytest configuration and fixtures for unit tests."""

from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from src.domain.user import Actor, UserRole
from tests.unit.mocks import InMemoryDBClient


@pytest.fixture
def in_memory_db():
    """Provides a fresh InMemoryDBClient for each test."""
    return InMemoryDBClient()


@pytest.fixture
def patched_db(monkeypatch, in_memory_db):
    """Patches src.core.db_client functions to use InMemoryDBClient."""
    monkeypatch.setattr("src.core.db_client.create_record", in_memory_db.create_record)
    monkeypatch.setattr("src.core.db_client.get_record", in_memory_db.get_record)
    monkeypatch.setattr("src.core.db_client.update_record", in_memory_db.update_record)
    monkeypatch.setattr("src.core.db_client.delete_record", in_memory_db.delete_record)
    monkeypatch.setattr("src.core.db_client.list_records", in_memory_db.list_records)
    monkeypatch.setattr("src.core.db_client.count_records", in_memory_db.count_records)

    return in_memory_db


@pytest.fixture
def admin() -> Actor:
    """Admin caller."""
    return Actor(id="admin1", role=UserRole.ADMIN)


@pytest.fixture
def other_admin() -> Actor:
    """Second admin caller."""
    return Actor(id="admin2", role=UserRole.ADMIN)


@pytest.fixture
def member() -> Actor:
    """Member who is assigned to tasks built from sample_task_data."""
    return Actor(id="member1", role=UserRole.MEMBER)


@pytest.fixture
def outsider() -> Actor:
    """Member who is not assigned to any sample task."""
    return Actor(id="member9", role=UserRole.MEMBER)


@pytest.fixture
def sample_task_data() -> dict[str, Any]:
    """Returns sample task creation payload assigned to member1 and member2."""
    return {
        "title": "Prepare release notes",
        "description": "Summarize changes for the next release",
        "priority": "High",
        "due_date": (datetime.now(UTC) + timedelta(days=7)).isoformat(),
        "assigned_to": ["member1", "member2"],
        "checklist": [
            {"text": "Collect merged changes", "completed": False},
            {"text": "Draft notes", "completed": False},
            {"text": "Get review", "completed": False},
        ],
    }
