from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional
import logging

from sqlmodel import Session

from erp_hub.errors import NotFoundError
from erp_hub.models.enums import IssuePriority
from erp_hub.models.issue import Issue
from erp_hub.models.note import Note
from erp_hub.models.zendesk_ticket import ZendeskTicket
from erp_hub.repositories.categories import CategoriesRepository
from erp_hub.repositories.issues import IssuesRepository
from erp_hub.repositories.notes import NotesRepository
from erp_hub.repositories.zendesk_tickets import ZendeskTicketsRepository
from erp_hub.services.ticket_mapping import (
    map_zendesk_priority,
    map_zendesk_status,
    map_zendesk_status_to_issue,
    map_zendesk_type,
)
from erp_hub.services.ticket_triage import fallback_proposal
from erp_hub.services.zendesk_client import ZendeskClient

logger = logging.getLogger("erp_hub.zendesk")

IMPORT_NOTE_AUTHOR = "System - Zendesk Import"


def _pick(data: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value not in (None, ""):
            return value
    return None


def _parse_ts(value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def ticket_id_of(data: Dict[str, Any]) -> Optional[int]:
    value = _pick(data, "ticketId", "id", "zendesk_id")
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def apply_ticket_data(ticket: ZendeskTicket, data: Dict[str, Any]) -> ZendeskTicket:
    """Copy fields from either a raw Zendesk ticket or the import-drawer shape."""
    ticket.subject = _pick(data, "subject") or ticket.subject or "No subject"
    ticket.description = _pick(data, "description") or ticket.description
    ticket.status = map_zendesk_status(_pick(data, "status"))
    ticket.priority = map_zendesk_priority(_pick(data, "priority"))
    ticket.ticket_type = map_zendesk_type(_pick(data, "type", "ticket_type"))
    requester = data.get("requester") or {}
    assignee = data.get("assignee") or {}
    ticket.requester_email = _pick(requester, "email") or _pick(data, "requester_email") or ticket.requester_email
    ticket.assignee_email = _pick(assignee, "email") or _pick(data, "assignee_email") or ticket.assignee_email
    created = _parse_ts(_pick(data, "created_at", "createdAt"))
    updated = _parse_ts(_pick(data, "updated_at", "updatedAt"))
    if created is not None:
        ticket.created_at = created
    ticket.updated_at = updated or datetime.utcnow()
    ticket.last_synced_at = datetime.utcnow()
    return ticket


def sync_tickets(
    session: Session, client: ZendeskClient, tickets: Optional[Iterable[Dict[str, Any]]] = None
) -> Dict[str, int]:
    """Upsert Zendesk tickets into the local mirror; links are preserved."""
    if tickets is None:
        tickets = client.list_tickets(sort_by="updated_at", sort_order="desc")
    repo = ZendeskTicketsRepository(session)
    created = updated = 0
    for data in tickets:
        zendesk_id = ticket_id_of(data)
        if zendesk_id is None:
            continue
        row = repo.get_by_zendesk_id(zendesk_id)
        if row is None:
            row = ZendeskTicket(zendesk_id=zendesk_id, subject="")
            created += 1
        else:
            updated += 1
        repo.save(apply_ticket_data(row, data), commit=False)
        session.flush()
    repo.commit()
    logger.info("Zendesk sync: %d created, %d updated", created, updated)
    return {"created": created, "updated": updated, "total": created + updated}


def link_ticket(
    session: Session, issue_id: int, zendesk_id: int, ticket_data: Optional[Dict[str, Any]] = None
) -> ZendeskTicket:
    if IssuesRepository(session).get(issue_id) is None:
        raise NotFoundError("Issue not found")
    repo = ZendeskTicketsRepository(session)
    row = repo.get_by_zendesk_id(zendesk_id)
    if row is None:
        if not ticket_data:
            raise ValueError("Ticket not found in database and no ticketData provided")
        row = apply_ticket_data(ZendeskTicket(zendesk_id=zendesk_id, subject=""), ticket_data)
    row.linked_issue_id = issue_id
    row.is_erp_related = True
    row.last_synced_at = datetime.utcnow()
    return repo.save(row)


def unlink_ticket(session: Session, issue_id: int, zendesk_id: int) -> ZendeskTicket:
    repo = ZendeskTicketsRepository(session)
    row = repo.get_by_zendesk_id(zendesk_id)
    if row is None or row.linked_issue_id != issue_id:
        raise NotFoundError("Ticket link not found")
    row.linked_issue_id = None
    row.is_erp_related = False
    row.last_synced_at = datetime.utcnow()
    return repo.save(row)


def _import_note(ticket: Dict[str, Any], proposal: Dict[str, Any]) -> str:
    requester = ticket.get("requester") or {}
    parts = [f"Imported from Zendesk ticket #{ticket_id_of(ticket)}"]
    if requester:
        parts.append(f"Requester: {requester.get('name') or 'Unknown'} ({requester.get('email') or 'N/A'})")
    if proposal.get("reasoningNotes"):
        parts.append(f"AI notes: {proposal['reasoningNotes']}")
    return "\n".join(parts)


def import_ticket(
    session: Session, ticket: Dict[str, Any], proposal: Optional[Dict[str, Any]] = None
) -> Issue:
    """Create an issue from a Zendesk ticket and link the mirror row to it."""
    zendesk_id = ticket_id_of(ticket)
    if zendesk_id is None:
        raise ValueError("Ticket id is required")
    proposal = proposal or fallback_proposal(ticket)

    category_id = None
    if proposal.get("suggestedCategory"):
        category = CategoriesRepository(session).get_by_name(str(proposal["suggestedCategory"]))
        category_id = category.id if category is not None else None
    try:
        priority = IssuePriority(str(proposal.get("priority") or "MEDIUM").upper())
    except ValueError:
        priority = IssuePriority.MEDIUM

    issue = IssuesRepository(session).create(
        Issue(
            title=str(proposal.get("title") or ticket.get("subject") or f"Zendesk Ticket #{zendesk_id}").strip(),
            description=proposal.get("description"),
            priority=priority,
            status=map_zendesk_status_to_issue(ticket.get("status")),
            category_id=category_id,
            assigned_to=proposal.get("assignedTo"),
        )
    )
    NotesRepository(session).create(
        Note(issue_id=issue.id, content=_import_note(ticket, proposal), author=IMPORT_NOTE_AUTHOR)  # type: ignore[arg-type]
    )
    link_ticket(session, issue.id, zendesk_id, ticket_data=ticket)  # type: ignore[arg-type]
    session.refresh(issue)
    logger.info("Imported Zendesk ticket %s as issue %s", zendesk_id, issue.id)
    return issue
