from __future__ import annotations

from pathlib import Path
from typing import BinaryIO, Iterable, Optional
import logging
import re
import shutil

from sqlmodel import Session

from erp_hub.models.attachment import Attachment
from erp_hub.models.enums import AttachmentStatus
from erp_hub.repositories.notes import AttachmentsRepository

logger = logging.getLogger("erp_hub.attachments")

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


def safe_file_name(name: str) -> str:
    cleaned = _UNSAFE.sub("_", Path(name or "").name).strip("._")
    return cleaned or "file"


def store_attachment(
    session: Session,
    root: Path,
    note_id: int,
    file_name: str,
    content_type: str,
    stream: BinaryIO,
    created_by: Optional[str] = None,
) -> Attachment:
    """Write an upload under ``root/<attachment id>/`` and mark it AVAILABLE.

    The row is created first in UPLOADING state and flipped to DELETED when
    the write fails; the error is re-raised.
    """
    repo = AttachmentsRepository(session)
    attachment = repo.create(
        Attachment(
            note_id=note_id,
            file_name=file_name,
            content_type=content_type or "application/octet-stream",
            size=0,
            status=AttachmentStatus.UPLOADING,
            created_by=created_by,
        )
    )
    relative = Path(str(attachment.id)) / safe_file_name(file_name)
    target = root / relative
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        with target.open("wb") as out:
            shutil.copyfileobj(stream, out)
    except OSError:
        logger.exception("Failed to store attachment %s", attachment.id)
        attachment.status = AttachmentStatus.DELETED
        repo.update(attachment)
        raise
    attachment.storage_key = relative.as_posix()
    attachment.size = target.stat().st_size
    attachment.status = AttachmentStatus.AVAILABLE
    return repo.update(attachment)


def resolve_path(root: Path, attachment: Attachment) -> Path:
    return root / attachment.storage_key


def discard_files(root: Path, storage_keys: Iterable[str]) -> None:
    """Remove stored files (and their per-attachment folder) after the rows are gone."""
    for key in storage_keys:
        target = root / key
        try:
            target.unlink(missing_ok=True)
            if target.parent != root and not any(target.parent.iterdir()):
                target.parent.rmdir()
        except OSError:
            logger.warning("Failed to remove attachment file %s", target, exc_info=True)
