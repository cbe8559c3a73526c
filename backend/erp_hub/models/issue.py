from __future__ import annotations

from datetime import datetime
from typing import Optional
from sqlmodel import SQLModel, Field

from erp_hub.models.enums import IssuePriority, IssueStatus


class Issue(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    description: Optional[str] = None
    resolution_plan: Optional[str] = None
    work_performed: Optional[str] = None
    work_organization: Optional[str] = None
    roadblocks: Optional[str] = None
    users_involved: Optional[str] = None
    additional_help: Optional[str] = None
    action_items_text: Optional[str] = None  # rich text checklist kept on the issue
    priority: IssuePriority = Field(default=IssuePriority.MEDIUM, index=True)
    status: IssueStatus = Field(default=IssueStatus.OPEN, index=True)
    category_id: Optional[int] = Field(default=None, foreign_key="category.id", index=True)
    assigned_to: Optional[str] = None
    cmic_ticket_number: Optional[str] = None
    cmic_ticket_opened: Optional[datetime] = None
    cmic_ticket_closed: bool = Field(default=False)
    archived: bool = Field(default=False, index=True)
    archived_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    updated_at: datetime = Field(default_factory=datetime.utcnow, index=True)
