from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, Optional
from sqlalchemy import func
from sqlmodel import Session, col, select

from erp_hub.models.email import EmailDraft, EmailIssue, EmailTemplate


class EmailTemplatesRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def count(self) -> int:
        return int(self.session.exec(select(func.count()).select_from(EmailTemplate)).one())

    def get(self, template_id: int) -> Optional[EmailTemplate]:
        return self.session.get(EmailTemplate, template_id)

    def list(self) -> list[EmailTemplate]:
        statement = select(EmailTemplate).order_by(col(EmailTemplate.is_default).desc(), col(EmailTemplate.name).asc())
        return list(self.session.exec(statement))

    def _clear_default(self, keep_id: Optional[int] = None) -> None:
        statement = select(EmailTemplate).where(EmailTemplate.is_default == True)  # noqa: E712
        for template in list(self.session.exec(statement)):
            if keep_id is not None and template.id == keep_id:
                continue
            template.is_default = False
            self.session.add(template)

    def create(self, template: EmailTemplate) -> EmailTemplate:
        # At most one default template
        if template.is_default:
            self._clear_default()
        self.session.add(template)
        self.session.commit()
        self.session.refresh(template)
        return template

    def update(self, template: EmailTemplate, changes: Dict[str, Any]) -> EmailTemplate:
        for key, value in changes.items():
            setattr(template, key, value)
        if template.is_default:
            self._clear_default(keep_id=template.id)
        template.updated_at = datetime.utcnow()
        self.session.add(template)
        self.session.commit()
        self.session.refresh(template)
        return template

    def delete(self, template: EmailTemplate) -> None:
        for draft in list(self.session.exec(select(EmailDraft).where(EmailDraft.template_id == template.id))):
            draft.template_id = None
            self.session.add(draft)
        self.session.delete(template)
        self.session.commit()


class EmailDraftsRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, draft_id: int) -> Optional[EmailDraft]:
        return self.session.get(EmailDraft, draft_id)

    def list(self) -> list[EmailDraft]:
        return list(self.session.exec(select(EmailDraft).order_by(col(EmailDraft.updated_at).desc())))

    def issue_ids(self, draft_id: int) -> list[int]:
        statement = select(EmailIssue.issue_id).where(EmailIssue.email_draft_id == draft_id).order_by(col(EmailIssue.id))
        return list(self.session.exec(statement))

    def save(self, draft: EmailDraft, issue_ids: Optional[Iterable[int]] = None) -> EmailDraft:
        """Persist the draft; when issue_ids is given it replaces the linked issues."""
        draft.updated_at = datetime.utcnow()
        self.session.add(draft)
        self.session.flush()
        if issue_ids is not None:
            for link in list(self.session.exec(select(EmailIssue).where(EmailIssue.email_draft_id == draft.id))):
                self.session.delete(link)
            self.session.flush()
            for issue_id in dict.fromkeys(issue_ids):
                self.session.add(EmailIssue(email_draft_id=draft.id, issue_id=issue_id))  # type: ignore[arg-type]
        self.session.commit()
        self.session.refresh(draft)
        return draft

    def delete(self, draft: EmailDraft) -> None:
        for link in list(self.session.exec(select(EmailIssue).where(EmailIssue.email_draft_id == draft.id))):
            self.session.delete(link)
        self.session.delete(draft)
        self.session.commit()
