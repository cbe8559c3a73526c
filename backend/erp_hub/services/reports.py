from __future__ import annotations

from datetime import datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo
import logging

from sqlmodel import Session, select

from erp_hub.models.enums import IssuePriority, IssueStatus, MeetingStatus
from erp_hub.models.issue import Issue
from erp_hub.models.meeting import Meeting
from erp_hub.errors import ExternalServiceError, ServiceDisabledError
from erp_hub.repositories.categories import CategoriesRepository
from erp_hub.repositories.meetings import MeetingItemsRepository, MeetingsRepository
from erp_hub.services.meeting_lifecycle import DEFAULT_TIMEZONE
from erp_hub.services.zendesk_client import EMPTY_STATS, ZendeskClient

logger = logging.getLogger("erp_hub.reports")

UNCATEGORIZED = "Uncategorized"


def week_bounds(now: datetime, tz_name: str = DEFAULT_TIMEZONE) -> Tuple[datetime, datetime]:
    """Sunday 00:00 to the following Sunday 00:00 (local), as naive UTC."""
    tz = ZoneInfo(tz_name)
    local_day = now.replace(tzinfo=timezone.utc).astimezone(tz).date()
    sunday = local_day - timedelta(days=(local_day.weekday() + 1) % 7)
    start = datetime.combine(sunday, time.min, tzinfo=tz)
    end = start + timedelta(days=7)
    return (
        start.astimezone(timezone.utc).replace(tzinfo=None),
        end.astimezone(timezone.utc).replace(tzinfo=None),
    )


def format_date(value: Optional[datetime], tz_name: str = DEFAULT_TIMEZONE) -> Optional[str]:
    if value is None:
        return None
    local = value.replace(tzinfo=timezone.utc).astimezone(ZoneInfo(tz_name))
    return f"{local.month}/{local.day}/{local.year}"


def dashboard_stats(session: Session, now: Optional[datetime] = None, tz_name: str = DEFAULT_TIMEZONE) -> Dict[str, int]:
    now = now or datetime.utcnow()
    week_start, _ = week_bounds(now, tz_name)
    issues = list(session.exec(select(Issue).where(Issue.archived == False)))  # noqa: E712
    by_status = {status: 0 for status in IssueStatus}
    for issue in issues:
        by_status[issue.status] += 1
    return {
        "total": len(issues),
        "open": by_status[IssueStatus.OPEN],
        "inProgress": by_status[IssueStatus.IN_PROGRESS],
        "resolved": by_status[IssueStatus.RESOLVED],
        "closed": by_status[IssueStatus.CLOSED],
        "highPriority": len(
            [
                i
                for i in issues
                if i.priority in (IssuePriority.HIGH, IssuePriority.URGENT) and i.status != IssueStatus.CLOSED
            ]
        ),
        "newThisWeek": len([i for i in issues if i.created_at >= week_start]),
        "resolvedThisWeek": len(
            [i for i in issues if i.status == IssueStatus.RESOLVED and i.updated_at >= week_start]
        ),
    }


def _category_names(session: Session) -> Dict[int, str]:
    return {c.id: c.name for c in CategoriesRepository(session).list() if c.id is not None}


def _zendesk_section(client: Optional[ZendeskClient], tz_name: str) -> Optional[Dict[str, Any]]:
    if client is None or not client.is_configured():
        return None
    try:
        stats = client.ticket_stats()
        recent = client.recent_tickets(7)
        pressing = client.high_priority_tickets()
    except (ExternalServiceError, ServiceDisabledError):
        logger.warning("Failed to fetch Zendesk data for the weekly report")
        return {"stats": dict(EMPTY_STATS), "recentTickets": [], "highPriorityTickets": []}

    def _date(value: Any) -> Optional[str]:
        if not value:
            return None
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return str(value)
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        return format_date(parsed, tz_name)

    return {
        "stats": stats,
        "recentTickets": [
            {
                "id": t.get("id"),
                "subject": t.get("subject"),
                "status": t.get("status"),
                "priority": t.get("priority"),
                "created_at": _date(t.get("created_at")),
                "updated_at": _date(t.get("updated_at")),
            }
            for t in recent
        ],
        "highPriorityTickets": [
            {
                "id": t.get("id"),
                "subject": t.get("subject"),
                "priority": t.get("priority"),
                "status": t.get("status"),
                "created_at": _date(t.get("created_at")),
            }
            for t in pressing
        ],
    }


def template_data(
    session: Session,
    zendesk: Optional[ZendeskClient] = None,
    now: Optional[datetime] = None,
    tz_name: str = DEFAULT_TIMEZONE,
) -> Dict[str, Any]:
    """Weekly report values used to fill the summary email template."""
    now = now or datetime.utcnow()
    week_start, week_end = week_bounds(now, tz_name)
    names = _category_names(session)
    issues = list(session.exec(select(Issue)))

    def category(issue: Issue) -> str:
        return names.get(issue.category_id, UNCATEGORIZED) if issue.category_id else UNCATEGORIZED

    open_issues = [i for i in issues if i.status == IssueStatus.OPEN]
    in_progress = [i for i in issues if i.status == IssueStatus.IN_PROGRESS]
    resolved_week = [
        i for i in issues if i.status == IssueStatus.RESOLVED and week_start <= i.updated_at < week_end
    ]
    pressing = [
        i for i in issues if i.priority in (IssuePriority.HIGH, IssuePriority.URGENT) and i.status != IssueStatus.CLOSED
    ]
    created_week = [i for i in issues if week_start <= i.created_at < week_end]

    meetings = MeetingsRepository(session)
    items = MeetingItemsRepository(session)
    active: List[Meeting] = meetings.list_by_status(MeetingStatus.ACTIVE)
    this_week: List[Meeting] = meetings.list_between(week_start, week_end - timedelta(microseconds=1))

    stats = {
        "total": len(issues),
        "open": len(open_issues),
        "inProgress": len(in_progress),
        "resolved": len([i for i in issues if i.status == IssueStatus.RESOLVED]),
        "closed": len([i for i in issues if i.status == IssueStatus.CLOSED]),
        "resolvedThisWeek": len(resolved_week),
        "newThisWeek": len(created_week),
        "highPriority": len(pressing),
    }

    return {
        "currentDate": format_date(now, tz_name),
        "currentWeek": f"{format_date(week_start, tz_name)} - {format_date(week_end - timedelta(days=1), tz_name)}",
        "stats": stats,
        "openIssues": [
            {
                "id": i.id,
                "title": i.title,
                "description": i.description,
                "priority": i.priority.value,
                "category": category(i),
                "assignedTo": i.assigned_to,
                "createdAt": format_date(i.created_at, tz_name),
            }
            for i in open_issues
        ],
        "inProgressIssues": [
            {
                "id": i.id,
                "title": i.title,
                "description": i.description,
                "priority": i.priority.value,
                "category": category(i),
                "assignedTo": i.assigned_to,
                "workPerformed": i.work_performed,
            }
            for i in in_progress
        ],
        "resolvedThisWeek": [
            {
                "id": i.id,
                "title": i.title,
                "description": i.description,
                "category": category(i),
                "resolvedAt": format_date(i.updated_at, tz_name),
            }
            for i in resolved_week
        ],
        "highPriorityIssues": [
            {
                "id": i.id,
                "title": i.title,
                "priority": i.priority.value,
                "category": category(i),
                "status": i.status.value,
            }
            for i in pressing
        ],
        "categoryBreakdown": [
            {"name": c.name, "count": count, "color": c.color}
            for c, count in CategoriesRepository(session).list_with_counts()
        ],
        "activeMeetings": [
            {
                "id": m.id,
                "title": m.title,
                "itemCount": len(items.list_by_meeting(m.id)),  # type: ignore[arg-type]
                "startedAt": format_date(m.started_at, tz_name),
            }
            for m in active
        ],
        "recentMeetings": [
            {
                "id": m.id,
                "title": m.title,
                "meetingDate": format_date(m.meeting_date, tz_name),
                "status": m.status.value,
                "itemCount": len(items.list_by_meeting(m.id)),  # type: ignore[arg-type]
            }
            for m in this_week
        ],
        "zendesk": _zendesk_section(zendesk, tz_name),
    }


def erp_context(session: Session, now: Optional[datetime] = None, tz_name: str = DEFAULT_TIMEZONE) -> str:
    """Plain-text snapshot of current issues and meetings for the chat assistant."""
    now = now or datetime.utcnow()
    data = template_data(session, None, now=now, tz_name=tz_name)
    stats = data["stats"]
    recent = MeetingsRepository(session).list(limit=3)
    items = MeetingItemsRepository(session)

    def lines(rows: List[str]) -> str:
        return "\n".join(rows) or "None"

    return "\n".join(
        [
            f"CURRENT DATE: {data['currentDate']}",
            f"CURRENT WEEK: {data['currentWeek']}",
            "",
            "ISSUE STATISTICS:",
            f"- Total Issues: {stats['total']}",
            f"- Open: {stats['open']}",
            f"- In Progress: {stats['inProgress']}",
            f"- Resolved: {stats['resolved']}",
            f"- High Priority: {stats['highPriority']}",
            "",
            f"NEW ISSUES THIS WEEK: {stats['newThisWeek']}",
            f"RESOLVED THIS WEEK: {stats['resolvedThisWeek']}",
            "",
            "CURRENT OPEN ISSUES:",
            lines([f"- {i['title']} ({i['priority']}) - Created: {i['createdAt']}" for i in data["openIssues"]]),
            "",
            "CURRENT IN-PROGRESS ISSUES:",
            lines(
                [
                    f"- {i['title']} ({i['priority']}) - Assigned: {i['assignedTo'] or 'Unassigned'}"
                    for i in data["inProgressIssues"]
                ]
            ),
            "",
            "HIGH PRIORITY ISSUES:",
            lines([f"- {i['title']} ({i['status']}) - {i['category']}" for i in data["highPriorityIssues"]]),
            "",
            "RECENT MEETINGS:",
            lines(
                [
                    f"- {m.title} on {format_date(m.meeting_date, tz_name)} "
                    f"({len(items.list_by_meeting(m.id))} items discussed)"  # type: ignore[arg-type]
                    for m in recent
                ]
            ),
            "",
            "Use this information to help users write informed emails about the ERP system status.",
        ]
    )
