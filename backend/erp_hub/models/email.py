from __future__ import annotations

from datetime import datetime
from typing import Optional
from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field


class EmailTemplate(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    description: Optional[str] = None
    subject: str
    content: str
    variables: Optional[str] = None  # JSON string
    is_default: bool = Field(default=False)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class EmailDraft(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    subject: str = ""
    content: str = ""
    recipients: Optional[str] = None  # JSON string
    template_id: Optional[int] = Field(default=None, foreign_key="emailtemplate.id")
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, index=True)


class EmailIssue(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("email_draft_id", "issue_id", name="uq_email_issue"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    email_draft_id: int = Field(index=True, foreign_key="emaildraft.id")
    issue_id: int = Field(index=True, foreign_key="issue.id")
