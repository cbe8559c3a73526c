from __future__ import annotations

from datetime import datetime
from typing import Optional
from sqlmodel import SQLModel, Field

from erp_hub.models.enums import AttachmentStatus


class Attachment(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    note_id: int = Field(index=True, foreign_key="note.id")
    file_name: str
    content_type: str
    size: int
    storage_key: str = ""  # path under the attachments dir
    status: AttachmentStatus = Field(default=AttachmentStatus.UPLOADING)
    created_by: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
