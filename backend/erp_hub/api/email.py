from __future__ import annotations

from typing import Any, Dict, List, Optional, Union
import json

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from sqlmodel import Session

from erp_hub.config import Settings
from erp_hub.deps import get_session, get_settings, get_zendesk_client
from erp_hub.models.email import EmailDraft, EmailTemplate
from erp_hub.repositories.categories import CategoriesRepository
from erp_hub.repositories.email import EmailDraftsRepository, EmailTemplatesRepository
from erp_hub.repositories.issues import IssuesRepository
from erp_hub.services import reports
from erp_hub.services.email_templates import seed_default_templates
from erp_hub.services.zendesk_client import ZendeskClient


templates_router = APIRouter(prefix="/api/email-templates", tags=["email"])
drafts_router = APIRouter(prefix="/api/email-drafts", tags=["email"])


def _json_text(value: Union[str, Dict[str, Any], List[Any], None]) -> Optional[str]:
    if value is None or isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)


class TemplateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1)
    subject: str = Field(min_length=1)
    content: str = Field(min_length=1)
    description: Optional[str] = None
    variables: Union[str, Dict[str, Any], None] = None
    is_default: bool = Field(default=False, alias="isDefault")


class TemplateUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = Field(default=None, min_length=1)
    subject: Optional[str] = Field(default=None, min_length=1)
    content: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    variables: Union[str, Dict[str, Any], None] = None
    is_default: Optional[bool] = Field(default=None, alias="isDefault")


class DraftRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    subject: str = ""
    content: str = ""
    recipients: Optional[List[str]] = None
    template_id: Optional[int] = Field(default=None, alias="templateId")
    issue_ids: Optional[List[int]] = Field(default=None, alias="issueIds")


# Templates


@templates_router.get("")
def list_templates(session: Session = Depends(get_session)) -> List[EmailTemplate]:
    return EmailTemplatesRepository(session).list()


@templates_router.post("", status_code=201)
def create_template(body: TemplateRequest, session: Session = Depends(get_session)) -> EmailTemplate:
    data = body.model_dump()
    data["variables"] = _json_text(body.variables)
    return EmailTemplatesRepository(session).create(EmailTemplate(**data))


@templates_router.post("/init")
def init_templates(session: Session = Depends(get_session)) -> Dict[str, Any]:
    template = seed_default_templates(session)
    if template is None:
        return {"success": True, "created": False, "message": "Templates already exist"}
    return {"success": True, "created": True, "template": template}


@templates_router.get("/template-data")
def get_template_data(
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
    zendesk: ZendeskClient = Depends(get_zendesk_client),
) -> Dict[str, Any]:
    return reports.template_data(session, zendesk, tz_name=settings.display_timezone)


def _require_template(repo: EmailTemplatesRepository, template_id: int) -> EmailTemplate:
    template = repo.get(template_id)
    if template is None:
        raise HTTPException(status_code=404, detail="Template not found")
    return template


@templates_router.get("/{template_id}")
def get_template(template_id: int, session: Session = Depends(get_session)) -> EmailTemplate:
    return _require_template(EmailTemplatesRepository(session), template_id)


@templates_router.put("/{template_id}")
def update_template(
    template_id: int, body: TemplateUpdateRequest, session: Session = Depends(get_session)
) -> EmailTemplate:
    repo = EmailTemplatesRepository(session)
    template = _require_template(repo, template_id)
    changes = body.model_dump(exclude_unset=True)
    for required in ("name", "subject", "content", "is_default"):
        if required in changes and changes[required] is None:
            raise HTTPException(status_code=400, detail=f"{required} cannot be empty")
    if "variables" in changes:
        changes["variables"] = _json_text(body.variables)
    return repo.update(template, changes)


@templates_router.delete("/{template_id}")
def delete_template(template_id: int, session: Session = Depends(get_session)) -> Dict[str, Any]:
    repo = EmailTemplatesRepository(session)
    repo.delete(_require_template(repo, template_id))
    return {"success": True}


# Drafts


def _draft_view(session: Session, draft: EmailDraft) -> Dict[str, Any]:
    repo = EmailDraftsRepository(session)
    issues = IssuesRepository(session).list_by_ids(repo.issue_ids(draft.id))  # type: ignore[arg-type]
    categories = CategoriesRepository(session)
    return {
        **draft.model_dump(),
        "recipients": json.loads(draft.recipients) if draft.recipients else [],
        "template": EmailTemplatesRepository(session).get(draft.template_id) if draft.template_id else None,
        "issues": [
            {**i.model_dump(), "category": categories.get(i.category_id) if i.category_id else None} for i in issues
        ],
    }


def _check_refs(session: Session, body: DraftRequest) -> None:
    if body.template_id is not None and EmailTemplatesRepository(session).get(body.template_id) is None:
        raise HTTPException(status_code=400, detail="Template not found")
    if body.issue_ids:
        found = {i.id for i in IssuesRepository(session).list_by_ids(body.issue_ids)}
        missing = [i for i in body.issue_ids if i not in found]
        if missing:
            raise HTTPException(status_code=400, detail=f"Unknown issue ids: {missing}")


def _require_draft(repo: EmailDraftsRepository, draft_id: int) -> EmailDraft:
    draft = repo.get(draft_id)
    if draft is None:
        raise HTTPException(status_code=404, detail="Draft not found")
    return draft


@drafts_router.get("")
def list_drafts(session: Session = Depends(get_session)) -> List[Dict[str, Any]]:
    return [_draft_view(session, d) for d in EmailDraftsRepository(session).list()]


@drafts_router.post("", status_code=201)
def create_draft(body: DraftRequest, session: Session = Depends(get_session)) -> Dict[str, Any]:
    _check_refs(session, body)
    draft = EmailDraft(
        subject=body.subject,
        content=body.content,
        recipients=_json_text(body.recipients),
        template_id=body.template_id,
    )
    draft = EmailDraftsRepository(session).save(draft, body.issue_ids or [])
    return _draft_view(session, draft)


@drafts_router.get("/{draft_id}")
def get_draft(draft_id: int, session: Session = Depends(get_session)) -> Dict[str, Any]:
    return _draft_view(session, _require_draft(EmailDraftsRepository(session), draft_id))


@drafts_router.put("/{draft_id}")
def update_draft(draft_id: int, body: DraftRequest, session: Session = Depends(get_session)) -> Dict[str, Any]:
    repo = EmailDraftsRepository(session)
    draft = _require_draft(repo, draft_id)
    _check_refs(session, body)
    draft.subject = body.subject
    draft.content = body.content
    draft.recipients = _json_text(body.recipients)
    draft.template_id = body.template_id
    draft = repo.save(draft, body.issue_ids)
    return _draft_view(session, draft)


@drafts_router.delete("/{draft_id}")
def delete_draft(draft_id: int, session: Session = Depends(get_session)) -> Dict[str, Any]:
    repo = EmailDraftsRepository(session)
    repo.delete(_require_draft(repo, draft_id))
    return {"success": True}
