from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional
from sqlmodel import Session, col, select

from erp_hub.models.action_item import ActionItem
from erp_hub.models.attachment import Attachment
from erp_hub.models.email import EmailIssue
from erp_hub.models.enums import PRIORITY_RANK, RESOLVED_STATUSES, UNRESOLVED_STATUSES, IssueStatus
from erp_hub.models.issue import Issue
from erp_hub.models.meeting import MeetingItem
from erp_hub.models.note import AdditionalHelpNote, CmicNote, Note
from erp_hub.models.vendor_ticket import VendorTicket
from erp_hub.models.zendesk_ticket import ZendeskTicket


def sort_by_priority_then_recent(issues: Iterable[Issue]) -> List[Issue]:
    # Two stable passes: newest first, then most pressing priority first
    by_recent = sorted(issues, key=lambda i: i.updated_at, reverse=True)
    return sorted(by_recent, key=lambda i: PRIORITY_RANK[i.priority], reverse=True)


class IssuesRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def create(self, issue: Issue) -> Issue:
        self.session.add(issue)
        self.session.commit()
        self.session.refresh(issue)
        return issue

    def get(self, issue_id: int) -> Optional[Issue]:
        return self.session.get(Issue, issue_id)

    def update(self, issue: Issue, changes: Dict[str, Any] | None = None) -> Issue:
        for key, value in (changes or {}).items():
            setattr(issue, key, value)
        issue.updated_at = datetime.utcnow()
        self.session.add(issue)
        self.session.commit()
        self.session.refresh(issue)
        return issue

    def touch(self, issue_id: int, when: datetime) -> None:
        issue = self.get(issue_id)
        if issue is not None and issue.updated_at < when:
            issue.updated_at = when
            self.session.add(issue)

    def list_by_statuses(self, statuses: Iterable[IssueStatus], include_archived: bool = False) -> list[Issue]:
        statement = select(Issue).where(col(Issue.status).in_(list(statuses)))
        if not include_archived:
            statement = statement.where(Issue.archived == False)  # noqa: E712
        return list(self.session.exec(statement))

    def list_active(self) -> list[Issue]:
        return sort_by_priority_then_recent(self.list_by_statuses(UNRESOLVED_STATUSES))

    def list_resolved(self) -> list[Issue]:
        issues = self.list_by_statuses(RESOLVED_STATUSES)
        return sorted(issues, key=lambda i: i.updated_at, reverse=True)

    def list_available_for_meeting(self) -> list[Issue]:
        statement = select(Issue).where(col(Issue.status).in_(list(UNRESOLVED_STATUSES)))
        return sort_by_priority_then_recent(self.session.exec(statement))

    def list_all(self) -> list[Issue]:
        statement = select(Issue).order_by(col(Issue.created_at).desc())
        return list(self.session.exec(statement))

    def list_by_ids(self, issue_ids: Iterable[int]) -> list[Issue]:
        ids = list(issue_ids)
        if not ids:
            return []
        return list(self.session.exec(select(Issue).where(col(Issue.id).in_(ids))))

    def list_with_action_items_text(self) -> list[Issue]:
        statement = (
            select(Issue)
            .where(col(Issue.action_items_text).is_not(None))
            .where(Issue.action_items_text != "")
            .order_by(col(Issue.updated_at).desc())
        )
        return list(self.session.exec(statement))

    def latest_note(self, issue_id: int) -> Optional[Note]:
        statement = select(Note).where(Note.issue_id == issue_id).order_by(col(Note.created_at).desc())
        return self.session.exec(statement).first()

    def note_count(self, issue_id: int) -> int:
        # Simple count via list; acceptable for the small per-issue note volume.
        return len(list(self.session.exec(select(Note.id).where(Note.issue_id == issue_id))))

    def archive(self, issue: Issue) -> Issue:
        now = datetime.utcnow()
        return self.update(issue, {"archived": True, "archived_at": now})

    def delete(self, issue: Issue) -> List[str]:
        """Delete the issue and its children; returns storage keys of removed attachments."""
        issue_id = issue.id
        notes = list(self.session.exec(select(Note).where(Note.issue_id == issue_id)))
        note_ids = [n.id for n in notes]
        storage_keys: List[str] = []
        if note_ids:
            for att in list(self.session.exec(select(Attachment).where(col(Attachment.note_id).in_(note_ids)))):
                if att.storage_key:
                    storage_keys.append(att.storage_key)
                self.session.delete(att)
        for model in (Note, CmicNote, AdditionalHelpNote):
            for row in list(self.session.exec(select(model).where(model.issue_id == issue_id))):
                self.session.delete(row)
        for item in list(self.session.exec(select(MeetingItem).where(MeetingItem.issue_id == issue_id))):
            self.session.delete(item)
        for vt in list(self.session.exec(select(VendorTicket).where(VendorTicket.issue_id == issue_id))):
            self.session.delete(vt)
        for link in list(self.session.exec(select(EmailIssue).where(EmailIssue.issue_id == issue_id))):
            self.session.delete(link)
        for zt in list(self.session.exec(select(ZendeskTicket).where(ZendeskTicket.linked_issue_id == issue_id))):
            zt.linked_issue_id = None
            zt.is_erp_related = False
            self.session.add(zt)
        statement = select(ActionItem).where(
            (ActionItem.issue_id == issue_id) | (ActionItem.original_issue_id == issue_id)
        )
        for ai in list(self.session.exec(statement)):
            if ai.issue_id == issue_id:
                ai.issue_id = None
            if ai.original_issue_id == issue_id:
                ai.original_issue_id = None
            self.session.add(ai)
        self.session.delete(issue)
        self.session.commit()
        return storage_keys
