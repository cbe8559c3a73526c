from __future__ import annotations

import json
from typing import Optional

from sqlmodel import Session

from erp_hub.models.email import EmailTemplate
from erp_hub.repositories.email import EmailTemplatesRepository


WEEKLY_SUMMARY_CONTENT = """Hello team,

Here's our weekly ERP status update for {{currentWeek}}.

## Executive Summary

This week we have {{stats.total}} total issues in our system, with {{stats.open}} currently open and {{stats.inProgress}} actively being worked on. {{stats.resolvedThisWeek}} issues were resolved this week.

## Current Status Overview

- **Total Issues:** {{stats.total}}
- **Open Issues:** {{stats.open}}
- **In Progress:** {{stats.inProgress}}
- **Resolved This Week:** {{stats.resolvedThisWeek}}
- **High Priority Items:** {{stats.highPriority}}

## Issues Resolved This Week

{{resolvedThisWeek}}

## Issues Currently In Progress

{{inProgressIssues}}

## Open Issues Requiring Attention

{{openIssues}}

## High Priority Items

{{highPriorityIssues}}

## Looking Ahead

We continue to focus on high-priority issues and system stability.

If you have any questions about these items, please reach out.

Best regards,
ERP Administration Team

---
This report was generated on {{currentDate}} from the ERP Admin Hub dashboard."""

WEEKLY_SUMMARY_VARIABLES = {
    "currentDate": "Current date",
    "currentWeek": "Week date range",
    "stats.total": "Total number of issues",
    "stats.open": "Number of open issues",
    "stats.inProgress": "Number of issues in progress",
    "stats.resolved": "Number of resolved issues",
    "stats.resolvedThisWeek": "Number resolved this week",
    "stats.highPriority": "Number of high priority issues",
    "openIssues": "List of open issues",
    "inProgressIssues": "List of in-progress issues",
    "resolvedThisWeek": "List of issues resolved this week",
    "highPriorityIssues": "List of high priority issues",
}


def weekly_summary_template() -> EmailTemplate:
    return EmailTemplate(
        name="Weekly Summary Email",
        description="Standard weekly team summary with dashboard data integration",
        subject="ERP Weekly Status Update - {{currentWeek}}",
        content=WEEKLY_SUMMARY_CONTENT,
        variables=json.dumps(WEEKLY_SUMMARY_VARIABLES),
        is_default=True,
    )


def seed_default_templates(session: Session) -> Optional[EmailTemplate]:
    """Create the weekly summary template when no template exists yet."""
    repo = EmailTemplatesRepository(session)
    if repo.count() > 0:
        return None
    return repo.create(weekly_summary_template())
