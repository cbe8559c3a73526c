from __future__ import annotations

from datetime import datetime
from typing import Optional
from sqlmodel import SQLModel, Field

from erp_hub.models.enums import ZendeskPriority, ZendeskStatus, ZendeskTicketType


class ZendeskTicket(SQLModel, table=True):
    """Local mirror of a ticket fetched from Zendesk."""

    id: Optional[int] = Field(default=None, primary_key=True)
    zendesk_id: int = Field(index=True, unique=True)
    subject: str
    description: Optional[str] = None
    status: ZendeskStatus = Field(default=ZendeskStatus.OPEN)
    priority: ZendeskPriority = Field(default=ZendeskPriority.NORMAL)
    ticket_type: ZendeskTicketType = Field(default=ZendeskTicketType.INCIDENT)
    requester_email: Optional[str] = None
    assignee_email: Optional[str] = None
    linked_issue_id: Optional[int] = Field(default=None, index=True, foreign_key="issue.id")
    is_erp_related: bool = Field(default=False)
    last_synced_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
