from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlmodel import Session

from erp_hub.deps import get_session
from erp_hub.models.enums import IssueStatus, Vendor
from erp_hub.models.vendor_ticket import VendorTicket
from erp_hub.repositories.issues import IssuesRepository
from erp_hub.repositories.vendor_tickets import VendorTicketsRepository


router = APIRouter(prefix="/api/vendor-tickets", tags=["vendor-tickets"])


class CreateVendorTicketRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    issue_id: int = Field(alias="issueId")
    ticket_number: str = Field(alias="ticketNumber")
    vendor: Vendor
    status: IssueStatus = IssueStatus.OPEN
    description: Optional[str] = None
    date_opened: Optional[datetime] = Field(default=None, alias="dateOpened")
    date_closed: Optional[datetime] = Field(default=None, alias="dateClosed")
    notes: Optional[str] = None

    @field_validator("ticket_number")
    @classmethod
    def ticket_number_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Ticket number is required")
        return value


class UpdateVendorTicketRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ticket_number: Optional[str] = Field(default=None, alias="ticketNumber", min_length=1)
    vendor: Optional[Vendor] = None
    status: Optional[IssueStatus] = None
    description: Optional[str] = None
    date_opened: Optional[datetime] = Field(default=None, alias="dateOpened")
    # An explicit null clears the closed date
    date_closed: Optional[datetime] = Field(default=None, alias="dateClosed")
    notes: Optional[str] = None


def _require(repo: VendorTicketsRepository, ticket_id: int) -> VendorTicket:
    ticket = repo.get(ticket_id)
    if ticket is None:
        raise HTTPException(status_code=404, detail="Vendor ticket not found")
    return ticket


@router.get("")
def list_vendor_tickets(
    issue_id: Optional[int] = Query(default=None, alias="issueId"), session: Session = Depends(get_session)
) -> Dict[str, Any]:
    if issue_id is None:
        raise HTTPException(status_code=400, detail="issueId parameter is required")
    return {"success": True, "tickets": VendorTicketsRepository(session).list_by_issue(issue_id)}


@router.post("", status_code=201)
def create_vendor_ticket(body: CreateVendorTicketRequest, session: Session = Depends(get_session)) -> Dict[str, Any]:
    if IssuesRepository(session).get(body.issue_id) is None:
        raise HTTPException(status_code=404, detail="Issue not found")
    data = body.model_dump()
    data["date_opened"] = data["date_opened"] or datetime.utcnow()
    ticket = VendorTicketsRepository(session).create(VendorTicket(**data))
    return {
        "success": True,
        "ticket": ticket,
        "message": f"{body.vendor.value} ticket #{body.ticket_number} added successfully",
    }


@router.get("/{ticket_id}")
def get_vendor_ticket(ticket_id: int, session: Session = Depends(get_session)) -> Dict[str, Any]:
    return {"success": True, "ticket": _require(VendorTicketsRepository(session), ticket_id)}


@router.patch("/{ticket_id}")
def update_vendor_ticket(
    ticket_id: int, body: UpdateVendorTicketRequest, session: Session = Depends(get_session)
) -> Dict[str, Any]:
    repo = VendorTicketsRepository(session)
    ticket = _require(repo, ticket_id)
    changes = body.model_dump(exclude_unset=True)
    for required in ("ticket_number", "vendor", "status", "date_opened"):
        if required in changes and changes[required] is None:
            raise HTTPException(status_code=400, detail=f"{required} cannot be empty")
    return {"success": True, "ticket": repo.update(ticket, changes)}


@router.delete("/{ticket_id}")
def delete_vendor_ticket(ticket_id: int, session: Session = Depends(get_session)) -> Dict[str, Any]:
    repo = VendorTicketsRepository(session)
    repo.delete(_require(repo, ticket_id))
    return {"success": True, "message": "Vendor ticket deleted successfully"}
