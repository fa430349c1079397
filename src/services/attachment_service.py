"""Attachment service for storing files uploaded to tasks.

Files are written under the configured uploads directory with a generated
name. Each upload gets an attachment record, and its stored path is appended
to the task's attachment references.
"""

import asyncio
import logging
import uuid
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel

from src.core import db_client
from src.core.config import settings
from src.core.errors import ConflictError, InvalidArgumentError, NotFoundError, UnavailableError
from src.core.logging import log_with_user_context, span
from src.domain.create_models import AttachmentCreate
from src.domain.task import Attachment
from src.domain.user import Actor
from src.services import task_service
from src.services.task_authorizer import TaskAction, require_authorized


logger = logging.getLogger(__name__)

COLLECTION = "attachments"
PUBLIC_PREFIX = "/uploads/"


class IncomingFile(BaseModel):
    """File received from a client."""

    original_name: str
    content: bytes


def get_uploads_dir() -> Path:
    """Resolved uploads directory from settings."""
    return Path(settings.uploads_dir).resolve()


def ensure_uploads_dir() -> Path:
    """Create the uploads directory if needed. Called once at application startup."""
    uploads_dir = get_uploads_dir()
    uploads_dir.mkdir(parents=True, exist_ok=True)
    logger.info("Uploads directory ready", extra={"uploads_dir": str(uploads_dir)})
    return uploads_dir


def _stored_name(original_name: str) -> str:
    """Unique file name keeping the original extension."""
    return f"attachment-{uuid.uuid4().hex}{Path(original_name).suffix}"


def resolve_stored_path(file_path: str) -> Path:
    """Map a public attachment path back onto the uploads directory."""
    return get_uploads_dir() / Path(file_path).name


async def _discard_upload(*, attachments: list[Attachment], paths: list[Path]) -> None:
    """Remove records and files of an upload that could not be attached to its task."""
    for attachment in attachments:
        try:
            await db_client.delete_record(collection=COLLECTION, record_id=attachment.id)
        except (db_client.RecordNotFoundError, db_client.DatabaseError) as e:
            logger.warning(
                "Failed to remove attachment record",
                extra={"attachment_id": attachment.id, "error": str(e)},
            )
    for path in paths:
        path.unlink(missing_ok=True)


async def upload_attachments(*, actor: Actor, task_id: str, files: list[IncomingFile]) -> list[Attachment]:
    """Store files for a task and record them.

    Args:
        actor: Caller; must be an admin or an assignee
        task_id: Task ID
        files: Uploaded files

    Returns:
        Created attachment records

    Raises:
        NotFoundError: If the task does not exist
        ForbiddenError: If the actor is neither admin nor assignee
        InvalidArgumentError: If no files were uploaded
        ConflictError: If the task changed while files were being stored
        UnavailableError: If a file or record could not be stored
    """
    with span("attachment_service.upload_attachments"):
        task = await task_service.load_task(task_id)
        require_authorized(actor=actor, task=task, action=TaskAction.MANAGE_ATTACHMENTS)

        if not files:
            raise InvalidArgumentError("No files uploaded")

        uploads_dir = get_uploads_dir()
        uploaded_at = datetime.now(UTC).isoformat()
        written: list[Path] = []
        attachments: list[Attachment] = []
        try:
            for incoming in files:
                target = uploads_dir / _stored_name(incoming.original_name)
                try:
                    await asyncio.to_thread(target.write_bytes, incoming.content)
                except OSError as e:
                    raise UnavailableError(f"Attachment storage unavailable: {e}") from e
                written.append(target)

                attachment_create = AttachmentCreate(
                    task_id=task.id,
                    uploaded_by=actor.id,
                    original_name=incoming.original_name,
                    file_path=f"{PUBLIC_PREFIX}{target.name}",
                    uploaded_at=uploaded_at,
                )
                try:
                    record = await db_client.create_record(collection=COLLECTION, data=attachment_create.model_dump())
                except db_client.DatabaseError as e:
                    raise UnavailableError(f"Attachment store unavailable: {e}") from e
                attachments.append(Attachment.model_validate(record))

            # References are written only once every record exists
            await task_service.add_attachment_references(
                task=task, references=[attachment.file_path for attachment in attachments]
            )
        except (ConflictError, NotFoundError, UnavailableError):
            await _discard_upload(attachments=attachments, paths=written)
            raise

        log_with_user_context(
            logger,
            "info",
            "Attachments uploaded",
            user_id=actor.id,
            task_id=task.id,
            count=len(attachments),
        )
        return attachments


async def list_attachments(*, actor: Actor, task_id: str) -> list[Attachment]:
    """List attachment records for a task the actor can access."""
    with span("attachment_service.list_attachments"):
        task = await task_service.load_task(task_id)
        require_authorized(actor=actor, task=task, action=TaskAction.MANAGE_ATTACHMENTS)

        try:
            records = await db_client.list_records(
                collection=COLLECTION,
                filter_query=f'task_id = "{db_client.sanitize_param(task.id)}"',
                sort="+uploaded_at",
            )
        except db_client.DatabaseError as e:
            raise UnavailableError(f"Attachment store unavailable: {e}") from e

        return [Attachment.model_validate(record) for record in records]


async def get_attachment_file(*, actor: Actor, attachment_id: str) -> tuple[Attachment, Path]:
    """Resolve an attachment to its file on disk.

    Raises:
        NotFoundError: If the attachment record, its task, or the file is missing
        ForbiddenError: If the actor is neither admin nor assignee of the task
    """
    with span("attachment_service.get_attachment_file"):
        try:
            record = await db_client.get_record(collection=COLLECTION, record_id=attachment_id)
        except db_client.RecordNotFoundError as e:
            raise NotFoundError(f"Attachment not found: {attachment_id}") from e
        except db_client.DatabaseError as e:
            raise UnavailableError(f"Attachment store unavailable: {e}") from e

        attachment = Attachment.model_validate(record)
        task = await task_service.load_task(attachment.task_id)
        require_authorized(actor=actor, task=task, action=TaskAction.MANAGE_ATTACHMENTS)

        path = resolve_stored_path(attachment.file_path)
        if not path.is_file():
            raise NotFoundError(f"File not found for attachment {attachment_id}")

        return attachment, path
