"""Lookup tables from Zendesk's free-text ticket fields to local enums.

Every function is case-insensitive, tolerates ``None`` and falls back to a
fixed default for values it does not know.
"""

from __future__ import annotations

from typing import Optional

from erp_hub.models.enums import (
    IssuePriority,
    IssueStatus,
    ZendeskPriority,
    ZendeskStatus,
    ZendeskTicketType,
)


_ZENDESK_STATUS = {
    "new": ZendeskStatus.NEW,
    "open": ZendeskStatus.OPEN,
    "pending": ZendeskStatus.PENDING,
    "hold": ZendeskStatus.HOLD,
    "solved": ZendeskStatus.SOLVED,
    "closed": ZendeskStatus.CLOSED,
}

_ZENDESK_PRIORITY = {
    "low": ZendeskPriority.LOW,
    "normal": ZendeskPriority.NORMAL,
    "high": ZendeskPriority.HIGH,
    "urgent": ZendeskPriority.URGENT,
}

_ZENDESK_TYPE = {
    "problem": ZendeskTicketType.PROBLEM,
    "incident": ZendeskTicketType.INCIDENT,
    "question": ZendeskTicketType.QUESTION,
    "task": ZendeskTicketType.TASK,
}

_ISSUE_PRIORITY = {
    "urgent": IssuePriority.URGENT,
    "high": IssuePriority.HIGH,
    "normal": IssuePriority.MEDIUM,
    "low": IssuePriority.LOW,
}

_ISSUE_STATUS = {
    "new": IssueStatus.OPEN,
    "open": IssueStatus.OPEN,
    "pending": IssueStatus.IN_PROGRESS,
    "hold": IssueStatus.IN_PROGRESS,
    "solved": IssueStatus.RESOLVED,
    "closed": IssueStatus.CLOSED,
}


def _key(value: Optional[str]) -> str:
    return str(value or "").strip().lower()


def map_zendesk_status(status: Optional[str]) -> ZendeskStatus:
    return _ZENDESK_STATUS.get(_key(status), ZendeskStatus.OPEN)


def map_zendesk_priority(priority: Optional[str]) -> ZendeskPriority:
    return _ZENDESK_PRIORITY.get(_key(priority), ZendeskPriority.NORMAL)


def map_zendesk_type(ticket_type: Optional[str]) -> ZendeskTicketType:
    return _ZENDESK_TYPE.get(_key(ticket_type), ZendeskTicketType.INCIDENT)


def map_zendesk_priority_to_issue(priority: Optional[str]) -> IssuePriority:
    return _ISSUE_PRIORITY.get(_key(priority), IssuePriority.MEDIUM)


def map_zendesk_status_to_issue(status: Optional[str]) -> IssueStatus:
    return _ISSUE_STATUS.get(_key(status), IssueStatus.OPEN)
