from __future__ import annotations

from datetime import datetime
from typing import Optional
from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field

from erp_hub.models.enums import MeetingEndReason, MeetingStatus


class Meeting(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str = Field(default="ERP Team Meeting")
    meeting_date: datetime = Field(default_factory=datetime.utcnow, index=True)
    status: MeetingStatus = Field(default=MeetingStatus.PLANNED, index=True)
    general_notes: Optional[str] = None
    external_help: Optional[str] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    last_activity_at: Optional[datetime] = None
    end_reason: Optional[MeetingEndReason] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class MeetingItem(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("meeting_id", "issue_id", name="uq_meeting_item_meeting_issue"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    meeting_id: int = Field(index=True, foreign_key="meeting.id")
    issue_id: int = Field(index=True, foreign_key="issue.id")
    discussion_notes: Optional[str] = None
    carried_over: bool = Field(default=False)
    created_at: datetime = Field(default_factory=datetime.utcnow)
