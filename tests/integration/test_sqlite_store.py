"""Integration tests running the task engine against a real SQLite database."""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from src.core import db_client
from src.core.errors import ConflictError, NotFoundError
from src.domain.task import TaskStatus
from src.domain.user import Actor, UserRole
from src.services import analytics_service, attachment_service, task_service
from src.services.attachment_service import IncomingFile


ADMIN = Actor(id="admin1", role=UserRole.ADMIN)
MEMBER = Actor(id="member1", role=UserRole.MEMBER)


def _task_payload(**overrides) -> dict:
    payload = {
        "title": "Rotate credentials",
        "priority": "High",
        "due_date": (datetime.now(UTC) + timedelta(days=1)).isoformat(),
        "assigned_to": ["member1"],
        "checklist": [{"text": "Generate"}, {"text": "Deploy"}],
    }
    return {**payload, **overrides}


@pytest.mark.integration
class TestDbClient:
    """Tests for db_client against SQLite."""

    async def test_create_record_round_trips_json_fields(self, sqlite_db):
        """Test JSON columns decode back to lists and ids are strings."""
        record = await db_client.create_record(
            collection="tasks",
            data={
                "title": "T",
                "due_date": "2030-01-01T00:00:00+00:00",
                "created_by": "admin1",
                "assigned_to": ["u1", "u2"],
                "checklist": [{"text": "a", "completed": False}],
            },
        )

        assert isinstance(record["id"], str)
        assert record["assigned_to"] == ["u1", "u2"]
        assert record["checklist"] == [{"text": "a", "completed": False}]
        assert record["attachments"] == []
        assert record["revision"] == 1
        assert record["verified_by"] is None

    async def test_update_record_compare_and_set(self, sqlite_db):
        """Test revision-checked update succeeds once and then conflicts."""
        record = await db_client.create_record(
            collection="tasks",
            data={"title": "T", "due_date": "2030-01-01T00:00:00+00:00", "created_by": "admin1"},
        )

        updated = await db_client.update_record(
            collection="tasks", record_id=record["id"], data={"progress": 45}, expected_revision=1
        )
        assert updated["revision"] == 2
        assert updated["progress"] == 45

        with pytest.raises(db_client.RevisionConflictError):
            await db_client.update_record(
                collection="tasks", record_id=record["id"], data={"progress": 90}, expected_revision=1
            )

        current = await db_client.get_record(collection="tasks", record_id=record["id"])
        assert current["progress"] == 45

    async def test_update_missing_record(self, sqlite_db):
        """Test updating a missing row raises RecordNotFoundError, not a conflict."""
        with pytest.raises(db_client.RecordNotFoundError):
            await db_client.update_record(
                collection="tasks", record_id="777", data={"progress": 1}, expected_revision=1
            )

    async def test_check_constraint_rejects_unknown_status(self, sqlite_db):
        """Test the schema refuses statuses outside the lifecycle."""
        with pytest.raises(db_client.DatabaseError):
            await db_client.create_record(
                collection="tasks",
                data={
                    "title": "T",
                    "due_date": "2030-01-01T00:00:00+00:00",
                    "created_by": "admin1",
                    "status": "Done",
                },
            )

    async def test_membership_and_null_filters(self, sqlite_db):
        """Test ?= and empty-string filters on SQLite."""
        for assignees in (["u1", "u2"], ["u2"], ["u3"]):
            await db_client.create_record(
                collection="tasks",
                data={
                    "title": "T",
                    "due_date": "2030-01-01T00:00:00+00:00",
                    "created_by": "admin1",
                    "assigned_to": assignees,
                },
            )

        assert await db_client.count_records(collection="tasks", filter_query='assigned_to ?= "u2"') == 2
        assert await db_client.count_records(collection="tasks", filter_query='verified_by = ""') == 3
        assert await db_client.count_records(collection="tasks") == 3

    @pytest.mark.parametrize("record_id", ["²", "١", "1²", "-1", " 1"])
    async def test_non_ascii_digit_ids_not_found(self, sqlite_db, record_id):
        """Test ids that are not plain ASCII digits never reach SQLite or alias a real row."""
        await db_client.create_record(
            collection="tasks",
            data={"title": "T", "due_date": "2030-01-01T00:00:00+00:00", "created_by": "admin1"},
        )

        with pytest.raises(db_client.RecordNotFoundError):
            await db_client.get_record(collection="tasks", record_id=record_id)
        with pytest.raises(db_client.RecordNotFoundError):
            await db_client.update_record(collection="tasks", record_id=record_id, data={"progress": 1})
        with pytest.raises(db_client.RecordNotFoundError):
            await db_client.delete_record(collection="tasks", record_id=record_id)

        assert await db_client.count_records(collection="tasks") == 1

    async def test_missing_table(self, tmp_path, monkeypatch):
        """Test using the store before init_db raises DatabaseError."""
        monkeypatch.setattr(db_client.settings, "sqlite_db_path", str(tmp_path / "empty.db"))
        try:
            with pytest.raises(db_client.DatabaseError, match="does not exist"):
                await db_client.create_record(collection="tasks", data={"title": "T"})
        finally:
            await db_client.close_connection()


@pytest.mark.integration
class TestTaskLifecycle:
    """End-to-end task lifecycle on SQLite."""

    async def test_checklist_to_verification(self, sqlite_db):
        """Test a task moves Pending -> In Progress -> Unverified -> Completed."""
        task = await task_service.create_task(actor=ADMIN, payload=_task_payload())
        assert task.status == TaskStatus.PENDING

        task = await task_service.update_checklist(
            actor=MEMBER,
            task_id=task.id,
            checklist=[{"text": "Generate", "completed": True}, {"text": "Deploy"}],
        )
        assert (task.progress, task.status) == (45, TaskStatus.IN_PROGRESS)

        task = await task_service.update_checklist(
            actor=MEMBER,
            task_id=task.id,
            checklist=[{"text": "Generate", "completed": True}, {"text": "Deploy", "completed": True}],
        )
        assert (task.progress, task.status) == (100, TaskStatus.UNVERIFIED)

        summary = await analytics_service.get_status_summary(actor=MEMBER)
        assert summary.unverified_tasks == 1

        verification = await task_service.verify_task(actor=ADMIN, task_id=task.id)
        assert verification.status == TaskStatus.COMPLETED
        assert verification.verified_by == "admin1"

        final = await task_service.get_task(actor=MEMBER, task_id=task.id)
        assert final.revision == 4
        assert final.verified_at is not None

    async def test_stale_revision_conflicts(self, sqlite_db, monkeypatch):
        """Test concurrent writers are detected on SQLite."""
        task = await task_service.create_task(actor=ADMIN, payload=_task_payload())
        stale = await db_client.get_record(collection="tasks", record_id=task.id)

        await task_service.set_status(actor=MEMBER, task_id=task.id, status="In Progress")

        real_get_record = db_client.get_record

        async def stale_once(**kwargs):
            monkeypatch.setattr("src.core.db_client.get_record", real_get_record)
            return stale

        monkeypatch.setattr("src.core.db_client.get_record", stale_once)

        with pytest.raises(ConflictError):
            await task_service.update_checklist(actor=MEMBER, task_id=task.id, checklist=[])

    async def test_delete_then_missing(self, sqlite_db):
        """Test deleted tasks raise NotFoundError."""
        task = await task_service.create_task(actor=ADMIN, payload=_task_payload())

        await task_service.delete_task(actor=ADMIN, task_id=task.id)

        with pytest.raises(NotFoundError):
            await task_service.delete_task(actor=ADMIN, task_id=task.id)

    @pytest.mark.parametrize("task_id", ["²", "١"])
    async def test_delete_with_unicode_digit_id(self, sqlite_db, task_id):
        """Test unicode digit ids are NotFound rather than a store outage."""
        task = await task_service.create_task(actor=ADMIN, payload=_task_payload())

        with pytest.raises(NotFoundError):
            await task_service.delete_task(actor=ADMIN, task_id=task_id)

        assert (await task_service.get_task(actor=ADMIN, task_id=task.id)).id == task.id

    async def test_attachment_upload(self, sqlite_db, uploads_dir):
        """Test attachments are recorded on SQLite."""
        task = await task_service.create_task(actor=ADMIN, payload=_task_payload())

        attachments = await attachment_service.upload_attachments(
            actor=MEMBER, task_id=task.id, files=[IncomingFile(original_name="key.pem", content=b"---")]
        )

        listed = await attachment_service.list_attachments(actor=MEMBER, task_id=task.id)
        assert [a.id for a in listed] == [a.id for a in attachments]
        assert listed[0].task_id == task.id


@pytest.mark.integration
def test_connections_from_closed_loops_are_evicted(tmp_path):
    """Test a connection cached by a finished event loop is closed and replaced."""
    db_path = str(tmp_path / "loops.db")
    resolved = str(db_client.get_db_path(db_path))

    first = asyncio.run(db_client.get_connection(db_path=db_path))

    async def reconnect():
        conn = await db_client.get_connection(db_path=db_path)
        keys = [key for key in db_client._db_connections if key[2] == resolved]
        await db_client.close_connection(db_path=db_path)
        return conn, keys

    second, keys = asyncio.run(reconnect())

    assert second is not first
    assert len(keys) == 1
    assert not any(key[2] == resolved for key in db_client._db_connections)

