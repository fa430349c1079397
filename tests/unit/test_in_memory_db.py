"""Tests for the in-memory database used by unit tests."""

import pytest

from src.core.db_client import DatabaseError, RecordNotFoundError, RevisionConflictError


@pytest.mark.unit
class TestInMemoryDBClient:
    """Tests that InMemoryDBClient behaves like the SQLite client."""

    async def test_create_and_get(self, in_memory_db):
        """Test created records get string ids and timestamps."""
        record = await in_memory_db.create_record(collection="tasks", data={"title": "A", "revision": 1})

        fetched = await in_memory_db.get_record(collection="tasks", record_id=record["id"])

        assert isinstance(record["id"], str)
        assert fetched["title"] == "A"
        assert fetched["created"]

    async def test_get_missing(self, in_memory_db):
        """Test missing records raise RecordNotFoundError."""
        with pytest.raises(RecordNotFoundError):
            await in_memory_db.get_record(collection="tasks", record_id="1")

    async def test_returned_records_are_copies(self, in_memory_db):
        """Test mutating a returned record does not change the store."""
        record = await in_memory_db.create_record(collection="tasks", data={"assigned_to": ["u1"]})
        record["assigned_to"].append("u2")

        fetched = await in_memory_db.get_record(collection="tasks", record_id=record["id"])

        assert fetched["assigned_to"] == ["u1"]

    async def test_update_with_revision(self, in_memory_db):
        """Test matching revision bumps it, stale revision conflicts."""
        record = await in_memory_db.create_record(collection="tasks", data={"title": "A", "revision": 1})

        updated = await in_memory_db.update_record(
            collection="tasks", record_id=record["id"], data={"title": "B"}, expected_revision=1
        )
        assert updated["revision"] == 2

        with pytest.raises(RevisionConflictError):
            await in_memory_db.update_record(
                collection="tasks", record_id=record["id"], data={"title": "C"}, expected_revision=1
            )

    async def test_membership_filter(self, in_memory_db):
        """Test ?= matches values inside list fields."""
        await in_memory_db.create_record(collection="tasks", data={"assigned_to": ["u1", "u2"]})
        await in_memory_db.create_record(collection="tasks", data={"assigned_to": ["u3"]})

        assert await in_memory_db.count_records(collection="tasks", filter_query='assigned_to ?= "u2"') == 1

    async def test_empty_string_matches_missing(self, in_memory_db):
        """Test comparing with an empty string matches None."""
        await in_memory_db.create_record(collection="tasks", data={"verified_by": None})
        await in_memory_db.create_record(collection="tasks", data={"verified_by": "admin1"})

        assert await in_memory_db.count_records(collection="tasks", filter_query='verified_by = ""') == 1

    async def test_invalid_filter(self, in_memory_db):
        """Test malformed filters raise DatabaseError."""
        await in_memory_db.create_record(collection="tasks", data={"status": "Pending"})

        with pytest.raises(DatabaseError):
            await in_memory_db.list_records(collection="tasks", filter_query="status is open")

    async def test_delete(self, in_memory_db):
        """Test deleted records are gone and deleting again fails."""
        record = await in_memory_db.create_record(collection="tasks", data={"title": "A"})

        await in_memory_db.delete_record(collection="tasks", record_id=record["id"])

        with pytest.raises(RecordNotFoundError):
            await in_memory_db.delete_record(collection="tasks", record_id=record["id"])
