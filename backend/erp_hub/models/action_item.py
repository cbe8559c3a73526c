from __future__ import annotations

from datetime import datetime
from typing import Optional
from sqlmodel import SQLModel, Field


class ActionItem(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    description: Optional[str] = None
    priority: int = Field(default=0)
    completed: bool = Field(default=False, index=True)
    due_date: Optional[datetime] = None
    order: int = Field(default=0)
    # issue_id set: "available" from the issue; cleared: "managed" in the personal list
    issue_id: Optional[int] = Field(default=None, index=True, foreign_key="issue.id")
    original_issue_id: Optional[int] = Field(default=None, index=True, foreign_key="issue.id")
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def state(self) -> str:
        return "available" if self.issue_id is not None else "managed"
