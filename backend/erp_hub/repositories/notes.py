from __future__ import annotations

from typing import List, Optional, Type, TypeVar, Union
import re

from sqlmodel import Session, col, select

from erp_hub.models.attachment import Attachment
from erp_hub.models.note import AdditionalHelpNote, CmicNote, Note
from erp_hub.repositories.issues import IssuesRepository

AnyNote = Union[Note, CmicNote, AdditionalHelpNote]
N = TypeVar("N", Note, CmicNote, AdditionalHelpNote)


_EMAIL_NOISE = [
    re.compile(r"^(From|To|Sent|Subject|Cc|Bcc):.*$", re.MULTILINE),
    re.compile(r"^>.*$", re.MULTILINE),
    re.compile(r"^\s*-{2,}.*$", re.MULTILINE),
    re.compile(r"^Sent from my.*$", re.MULTILINE),
    re.compile(r"^Get Outlook for.*$", re.MULTILINE),
]


def clean_email_content(content: str) -> str:
    """Strip pasted email artefacts (headers, quotes, signatures) from a note."""
    cleaned = content
    for pattern in _EMAIL_NOISE:
        cleaned = pattern.sub("", cleaned)
    cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)
    return cleaned.strip()


class NotesRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def create(self, note: N) -> N:
        self.session.add(note)
        # Keep the issue's updated_at in step with its newest note
        IssuesRepository(self.session).touch(note.issue_id, note.created_at)
        self.session.commit()
        self.session.refresh(note)
        return note

    def get(self, model: Type[N], note_id: int) -> Optional[N]:
        return self.session.get(model, note_id)

    def list_for_issue(self, model: Type[N], issue_id: int) -> list[N]:
        statement = select(model).where(model.issue_id == issue_id).order_by(col(model.created_at).desc())
        return list(self.session.exec(statement))

    def latest_for_issue(self, model: Type[N], issue_id: int) -> Optional[N]:
        statement = select(model).where(model.issue_id == issue_id).order_by(col(model.created_at).desc())
        return self.session.exec(statement).first()

    def delete(self, note: AnyNote) -> List[str]:
        storage_keys: List[str] = []
        if isinstance(note, Note):
            for att in list(self.session.exec(select(Attachment).where(Attachment.note_id == note.id))):
                if att.storage_key:
                    storage_keys.append(att.storage_key)
                self.session.delete(att)
        self.session.delete(note)
        self.session.commit()
        return storage_keys


class AttachmentsRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def create(self, attachment: Attachment) -> Attachment:
        self.session.add(attachment)
        self.session.commit()
        self.session.refresh(attachment)
        return attachment

    def get(self, attachment_id: int) -> Optional[Attachment]:
        return self.session.get(Attachment, attachment_id)

    def update(self, attachment: Attachment) -> Attachment:
        self.session.add(attachment)
        self.session.commit()
        self.session.refresh(attachment)
        return attachment

    def list_for_note(self, note_id: int) -> list[Attachment]:
        statement = select(Attachment).where(Attachment.note_id == note_id).order_by(col(Attachment.id).asc())
        return list(self.session.exec(statement))
