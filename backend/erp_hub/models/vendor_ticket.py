from __future__ import annotations

from datetime import datetime
from typing import Optional
from sqlmodel import SQLModel, Field

from erp_hub.models.enums import IssueStatus, Vendor


class VendorTicket(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    issue_id: int = Field(index=True, foreign_key="issue.id")
    ticket_number: str
    vendor: Vendor
    status: IssueStatus = Field(default=IssueStatus.OPEN)
    description: Optional[str] = None
    date_opened: datetime = Field(default_factory=datetime.utcnow)
    date_closed: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
