"""Attachment API router."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, File, UploadFile, status
from fastapi.responses import FileResponse

from src.domain.user import Actor
from src.interface.dependencies import get_actor
from src.services import attachment_service
from src.services.attachment_service import IncomingFile


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/attachments", tags=["attachments"])


@router.post("/{task_id}", status_code=status.HTTP_201_CREATED)
async def upload_attachments(
    task_id: str,
    files: list[UploadFile] | None = File(default=None),
    actor: Actor = Depends(get_actor),
) -> dict[str, Any]:
    """Upload one or more files to a task."""
    incoming = [
        IncomingFile(original_name=upload.filename or "attachment", content=await upload.read())
        for upload in files or []
    ]
    attachments = await attachment_service.upload_attachments(actor=actor, task_id=task_id, files=incoming)
    return {"message": "Files uploaded", "attachments": [a.model_dump() for a in attachments]}


@router.get("/download/{attachment_id}")
async def download_attachment(attachment_id: str, actor: Actor = Depends(get_actor)) -> FileResponse:
    """Download an attachment by ID."""
    attachment, path = await attachment_service.get_attachment_file(actor=actor, attachment_id=attachment_id)
    return FileResponse(path, filename=attachment.original_name)


@router.get("/{task_id}")
async def list_attachments(task_id: str, actor: Actor = Depends(get_actor)) -> list[dict[str, Any]]:
    """List attachments for a task."""
    attachments = await attachment_service.list_attachments(actor=actor, task_id=task_id)
    return [a.model_dump() for a in attachments]
