from __future__ import annotations

from datetime import datetime
from typing import Optional
from sqlmodel import SQLModel, Field


class Note(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    issue_id: int = Field(index=True, foreign_key="issue.id")
    content: str
    author: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)


class CmicNote(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    issue_id: int = Field(index=True, foreign_key="issue.id")
    content: str
    author: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)


class AdditionalHelpNote(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    issue_id: int = Field(index=True, foreign_key="issue.id")
    content: str
    author: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
