from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlmodel import Session

from erp_hub.config import Settings
from erp_hub.deps import get_session, get_settings
from erp_hub.errors import NotFoundError
from erp_hub.models.enums import IssuePriority, IssueStatus
from erp_hub.models.issue import Issue
from erp_hub.models.note import AdditionalHelpNote, CmicNote, Note
from erp_hub.repositories.action_items import ActionItemsRepository
from erp_hub.repositories.categories import CategoriesRepository
from erp_hub.repositories.issues import IssuesRepository
from erp_hub.repositories.notes import NotesRepository
from erp_hub.repositories.vendor_tickets import VendorTicketsRepository
from erp_hub.repositories.zendesk_tickets import ZendeskTicketsRepository
from erp_hub.services import reports, zendesk_sync
from erp_hub.services.attachment_store import discard_files
from erp_hub.services.zendesk_sync import IMPORT_NOTE_AUTHOR
import logging

logger = logging.getLogger("erp_hub.api")


router = APIRouter(prefix="/api/issues", tags=["issues"])


class IssueFields(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    description: Optional[str] = None
    resolution_plan: Optional[str] = Field(default=None, alias="resolutionPlan")
    work_performed: Optional[str] = Field(default=None, alias="workPerformed")
    work_organization: Optional[str] = Field(default=None, alias="workOrganization")
    roadblocks: Optional[str] = None
    users_involved: Optional[str] = Field(default=None, alias="usersInvolved")
    additional_help: Optional[str] = Field(default=None, alias="additionalHelp")
    action_items_text: Optional[str] = Field(default=None, alias="actionItemsText")
    category_id: Optional[int] = Field(default=None, alias="categoryId")
    assigned_to: Optional[str] = Field(default=None, alias="assignedTo")
    cmic_ticket_number: Optional[str] = Field(default=None, alias="cmicTicketNumber")
    cmic_ticket_opened: Optional[datetime] = Field(default=None, alias="cmicTicketOpened")


class CreateIssueRequest(IssueFields):
    title: str
    priority: IssuePriority = IssuePriority.MEDIUM
    status: IssueStatus = IssueStatus.OPEN
    cmic_ticket_closed: bool = Field(default=False, alias="cmicTicketClosed")
    additional_notes: Optional[str] = Field(default=None, alias="additionalNotes")

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Title is required")
        return value


class UpdateIssueRequest(IssueFields):
    title: Optional[str] = None
    priority: Optional[IssuePriority] = None
    status: Optional[IssueStatus] = None
    cmic_ticket_closed: Optional[bool] = Field(default=None, alias="cmicTicketClosed")

    @field_validator("priority", "status", "cmic_ticket_closed")
    @classmethod
    def not_null(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("Field cannot be null")
        return value

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, value: Optional[str]) -> Optional[str]:
        value = (value or "").strip()
        if not value:
            raise ValueError("Title is required")
        return value


class LinkTicketRequest(BaseModel):
    zendesk_ticket_id: int = Field(alias="zendeskTicketId")
    ticket_data: Optional[Dict[str, Any]] = Field(default=None, alias="ticketData")


class ImportTicketRequest(BaseModel):
    ticket: Dict[str, Any]
    proposal: Optional[Dict[str, Any]] = None


def _require_issue(session: Session, issue_id: int) -> Issue:
    issue = IssuesRepository(session).get(issue_id)
    if issue is None:
        raise HTTPException(status_code=404, detail="Issue not found")
    return issue


def _category(session: Session, issue: Issue):
    return CategoriesRepository(session).get(issue.category_id) if issue.category_id else None


def _summary(session: Session, issue: Issue) -> Dict[str, Any]:
    repo = IssuesRepository(session)
    return {
        **issue.model_dump(),
        "category": _category(session, issue),
        "latest_note": repo.latest_note(issue.id),  # type: ignore[arg-type]
        "note_count": repo.note_count(issue.id),  # type: ignore[arg-type]
    }


@router.get("")
def list_issues(status: Optional[str] = None, session: Session = Depends(get_session)) -> List[Dict[str, Any]]:
    repo = IssuesRepository(session)
    issues = repo.list_resolved() if status == "resolved" else repo.list_active()
    return [_summary(session, issue) for issue in issues]


@router.post("", status_code=201)
def create_issue(body: CreateIssueRequest, session: Session = Depends(get_session)) -> Dict[str, Any]:
    if body.category_id is not None and CategoriesRepository(session).get(body.category_id) is None:
        raise HTTPException(status_code=400, detail="Category not found")
    data = body.model_dump(exclude={"additional_notes"})
    issue = IssuesRepository(session).create(Issue(**data))
    if body.additional_notes:
        NotesRepository(session).create(
            Note(issue_id=issue.id, content=body.additional_notes, author=IMPORT_NOTE_AUTHOR)  # type: ignore[arg-type]
        )
        session.refresh(issue)
    logger.info("Issue %s created", issue.id)
    return {"success": True, "issue": issue, "id": issue.id}


@router.get("/stats")
def dashboard_stats(session: Session = Depends(get_session)) -> Dict[str, int]:
    return reports.dashboard_stats(session)


@router.post("/import-zendesk", status_code=201)
def import_zendesk_ticket(body: ImportTicketRequest, session: Session = Depends(get_session)) -> Dict[str, Any]:
    try:
        issue = zendesk_sync.import_ticket(session, body.ticket, body.proposal)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return {"success": True, "issue": issue, "id": issue.id}


@router.get("/{issue_id}")
def get_issue_detail(issue_id: int, session: Session = Depends(get_session)) -> Dict[str, Any]:
    issue = _require_issue(session, issue_id)
    notes = NotesRepository(session)
    return {
        "issue": issue,
        "category": _category(session, issue),
        "notes": notes.list_for_issue(Note, issue_id),
        "cmic_notes": notes.list_for_issue(CmicNote, issue_id),
        "additional_help_notes": notes.list_for_issue(AdditionalHelpNote, issue_id),
        "action_items": [
            {**item.model_dump(), "state": item.state}
            for item in ActionItemsRepository(session).list_for_issue(issue_id)
        ],
        "vendor_tickets": VendorTicketsRepository(session).list_by_issue(issue_id),
        "zendesk_tickets": ZendeskTicketsRepository(session).list_linked(issue_id),
    }


@router.patch("/{issue_id}")
def update_issue(issue_id: int, body: UpdateIssueRequest, session: Session = Depends(get_session)) -> Issue:
    issue = _require_issue(session, issue_id)
    changes = body.model_dump(exclude_unset=True)
    if changes.get("category_id") is not None and CategoriesRepository(session).get(changes["category_id"]) is None:
        raise HTTPException(status_code=400, detail="Category not found")
    return IssuesRepository(session).update(issue, changes)


@router.post("/{issue_id}/archive")
def archive_issue(issue_id: int, session: Session = Depends(get_session)) -> Issue:
    issue = _require_issue(session, issue_id)
    return IssuesRepository(session).archive(issue)


@router.delete("/{issue_id}")
def delete_issue(
    issue_id: int,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    issue = _require_issue(session, issue_id)
    discard_files(settings.attachments_dir, IssuesRepository(session).delete(issue))
    logger.info("Issue %s deleted", issue_id)
    return {"success": True}


@router.get("/{issue_id}/zendesk-tickets")
def list_linked_tickets(issue_id: int, session: Session = Depends(get_session)) -> Dict[str, Any]:
    return {"success": True, "tickets": ZendeskTicketsRepository(session).list_linked(issue_id)}


@router.post("/{issue_id}/zendesk-tickets")
def link_zendesk_ticket(issue_id: int, body: LinkTicketRequest, session: Session = Depends(get_session)) -> Dict[str, Any]:
    try:
        ticket = zendesk_sync.link_ticket(session, issue_id, body.zendesk_ticket_id, body.ticket_data)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return {
        "success": True,
        "ticket": ticket,
        "message": f"Ticket #{body.zendesk_ticket_id} linked to issue successfully",
    }


@router.delete("/{issue_id}/zendesk-tickets")
def unlink_zendesk_ticket(
    issue_id: int,
    ticket_id: Optional[int] = Query(default=None, alias="ticketId"),
    session: Session = Depends(get_session),
) -> Dict[str, Any]:
    if ticket_id is None:
        raise HTTPException(status_code=400, detail="ticketId parameter is required")
    zendesk_sync.unlink_ticket(session, issue_id, ticket_id)
    return {"success": True, "message": f"Ticket #{ticket_id} unlinked from issue successfully"}
