from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Type, Union

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from fastapi.responses import FileResponse
from pydantic import BaseModel, Field, field_validator
from sqlmodel import Session

from erp_hub.config import Settings
from erp_hub.deps import get_session, get_settings
from erp_hub.models.enums import AttachmentStatus
from erp_hub.models.note import AdditionalHelpNote, CmicNote, Note
from erp_hub.repositories.issues import IssuesRepository
from erp_hub.repositories.notes import AttachmentsRepository, NotesRepository, clean_email_content
from erp_hub.services.attachment_store import discard_files, resolve_path, store_attachment


router = APIRouter(prefix="/api", tags=["notes"])

NoteKind = Literal["note", "cmic", "additional_help"]

NOTE_MODELS: Dict[str, Type[Union[Note, CmicNote, AdditionalHelpNote]]] = {
    "note": Note,
    "cmic": CmicNote,
    "additional_help": AdditionalHelpNote,
}


class CreateNoteRequest(BaseModel):
    issue_id: int = Field(alias="issueId")
    content: str
    author: Optional[str] = None
    kind: NoteKind = "note"

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Note content is required")
        return value


@router.post("/notes", status_code=201)
def create_note(body: CreateNoteRequest, session: Session = Depends(get_session)) -> Dict[str, Any]:
    if IssuesRepository(session).get(body.issue_id) is None:
        raise HTTPException(status_code=404, detail="Issue not found")
    content = body.content
    if body.kind == "cmic":
        content = clean_email_content(content)
        if not content:
            raise HTTPException(status_code=400, detail="Note content is empty after cleaning")
    model = NOTE_MODELS[body.kind]
    note = NotesRepository(session).create(model(issue_id=body.issue_id, content=content, author=body.author))
    return {"success": True, "note": note}


@router.get("/notes")
def list_notes(
    issue_id: int = Query(alias="issueId"),
    kind: NoteKind = "note",
    session: Session = Depends(get_session),
) -> List[Any]:
    return NotesRepository(session).list_for_issue(NOTE_MODELS[kind], issue_id)


@router.delete("/notes/{kind}/{note_id}")
def delete_note(
    kind: NoteKind,
    note_id: int,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    repo = NotesRepository(session)
    note = repo.get(NOTE_MODELS[kind], note_id)
    if note is None:
        raise HTTPException(status_code=404, detail="Note not found")
    discard_files(settings.attachments_dir, repo.delete(note))
    return {"success": True}


@router.post("/attachments/upload", status_code=201)
def upload_attachment(
    file: UploadFile = File(...),
    note_id: int = Form(alias="noteId"),
    created_by: Optional[str] = Form(default=None, alias="createdBy"),
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    if not file.filename:
        raise HTTPException(status_code=400, detail="No file provided")
    if NotesRepository(session).get(Note, note_id) is None:
        raise HTTPException(status_code=404, detail="Note not found")
    attachment = store_attachment(
        session,
        settings.attachments_dir,
        note_id,
        file.filename,
        file.content_type or "application/octet-stream",
        file.file,
        created_by=created_by,
    )
    return {"success": True, "attachment": attachment}


@router.get("/attachments/{attachment_id}/download")
def download_attachment(
    attachment_id: int,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> FileResponse:
    attachment = AttachmentsRepository(session).get(attachment_id)
    if attachment is None:
        raise HTTPException(status_code=404, detail="Attachment not found")
    path = resolve_path(settings.attachments_dir, attachment)
    if attachment.status != AttachmentStatus.AVAILABLE or not path.is_file():
        raise HTTPException(status_code=404, detail="Attachment not available")
    return FileResponse(path, media_type=attachment.content_type, filename=attachment.file_name)
