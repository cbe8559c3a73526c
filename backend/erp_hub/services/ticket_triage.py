from __future__ import annotations

from typing import Any, Dict, List, Optional
import json
import logging
import re

from erp_hub.errors import ExternalServiceError
from erp_hub.models.category import Category
from erp_hub.models.enums import IssuePriority
from erp_hub.services.llm_client import LLMClient
from erp_hub.services.ticket_mapping import map_zendesk_priority_to_issue

logger = logging.getLogger("erp_hub.llm")

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")

TRIAGE_SYSTEM_PROMPT = """You are an ERP Technical Assistant helping convert Zendesk support tickets into actionable ERP issues for the development team.

AVAILABLE CATEGORIES:
{categories}

GUIDELINES FOR PROCESSING TICKETS:

1. TITLE: a clear, concise technical title under 100 characters, without greetings or ticket formalities.
2. DESCRIPTION: the core technical issue, business impact and relevant error details, without email headers, signatures or threading artifacts. For email threads, use the original issue from the first message.
3. PRIORITY:
   - LOW: Minor enhancements, non-critical issues
   - MEDIUM: Standard functionality issues, moderate business impact
   - HIGH: Critical functionality broken, significant business impact
   - URGENT: System down, blocking operations, data integrity issues
4. ASSIGNEE: "ERP Team" unless a specific ERP admin is clearly responsible. Do NOT assign to the requester.
5. CATEGORY: only suggest from the provided categories list.
6. REASONING NOTES: key decisions, assumptions, and missing information.

RESPONSE FORMAT:
Return a JSON object with these fields:
{{
  "title": "clear technical title",
  "description": "processed description without email artifacts",
  "priority": "LOW|MEDIUM|HIGH|URGENT",
  "assignedTo": "email or team name",
  "suggestedCategory": "category name or null",
  "reasoningNotes": "explanation of processing decisions"
}}"""

TRIAGE_USER_PROMPT = """Process this Zendesk ticket for ERP issue creation:

TICKET #{ticket_id}
Subject: {subject}
Status: {status}
Priority: {priority}
Type: {type}
Created: {created}
Updated: {updated}

Requester: {requester_name} ({requester_email})

Description/Content:
{description}

Please process this ticket according to the guidelines and return the formatted JSON response."""

FALLBACK_NOTE = "AI processing failed - using fallback mapping"


def _requester(ticket: Dict[str, Any]) -> Dict[str, Any]:
    return ticket.get("requester") or {}


def fallback_proposal(ticket: Dict[str, Any], reasoning: str = FALLBACK_NOTE) -> Dict[str, Any]:
    """Issue proposal built from the mapping tables alone."""
    return {
        "title": ticket.get("subject") or f"Zendesk Ticket #{ticket.get('ticketId')}",
        "description": ticket.get("description") or "No description provided",
        "priority": map_zendesk_priority_to_issue(ticket.get("priority")).value,
        "assignedTo": _requester(ticket).get("email") or "ERP Team",
        "suggestedCategory": None,
        "reasoningNotes": reasoning,
    }


def _parse_reply(reply: str) -> Optional[Dict[str, Any]]:
    match = _JSON_OBJECT.search(reply or "")
    try:
        parsed = json.loads(match.group(0) if match else reply)
    except (TypeError, ValueError):
        return None
    return parsed if isinstance(parsed, dict) else None


def _normalize(parsed: Dict[str, Any], ticket: Dict[str, Any]) -> Dict[str, Any]:
    fallback = fallback_proposal(ticket)
    priority = str(parsed.get("priority") or "").upper()
    if priority not in IssuePriority.__members__:
        priority = fallback["priority"]
    return {
        "title": str(parsed.get("title") or fallback["title"]).strip()[:200],
        "description": str(parsed.get("description") or fallback["description"]),
        "priority": priority,
        "assignedTo": str(parsed.get("assignedTo") or "ERP Team"),
        "suggestedCategory": parsed.get("suggestedCategory") or None,
        "reasoningNotes": str(parsed.get("reasoningNotes") or ""),
    }


def triage_ticket(llm: LLMClient, ticket: Dict[str, Any], categories: List[Category]) -> Dict[str, Any]:
    """Turn a Zendesk ticket (import-drawer shape) into an issue proposal."""
    category_lines = "\n".join(f"- {c.name}: {c.description or 'No description'}" for c in categories) or "- None"
    requester = _requester(ticket)
    prompt = TRIAGE_USER_PROMPT.format(
        ticket_id=ticket.get("ticketId"),
        subject=ticket.get("subject"),
        status=ticket.get("status"),
        priority=ticket.get("priority"),
        type=ticket.get("type"),
        created=ticket.get("createdAt"),
        updated=ticket.get("updatedAt"),
        requester_name=requester.get("name") or "Unknown",
        requester_email=requester.get("email") or "N/A",
        description=ticket.get("description") or "No description provided",
    )
    try:
        reply = llm.complete(
            TRIAGE_SYSTEM_PROMPT.format(categories=category_lines), prompt, temperature=0.3, max_tokens=1000
        )
    except ExternalServiceError as exc:
        logger.error("Ticket %s triage failed: %s", ticket.get("ticketId"), exc)
        return fallback_proposal(ticket, reasoning=f"AI processing error: {exc}")

    parsed = _parse_reply(reply)
    if parsed is None:
        logger.warning("Unparseable triage reply for ticket %s", ticket.get("ticketId"))
        return fallback_proposal(ticket)
    return _normalize(parsed, ticket)
