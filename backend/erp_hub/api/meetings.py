from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlmodel import Session

from erp_hub.config import Settings
from erp_hub.deps import get_session, get_settings
from erp_hub.models.meeting import Meeting
from erp_hub.models.note import AdditionalHelpNote, Note
from erp_hub.repositories.action_items import ActionItemsRepository
from erp_hub.repositories.categories import CategoriesRepository
from erp_hub.repositories.issues import IssuesRepository
from erp_hub.repositories.meetings import MeetingItemsRepository, MeetingsRepository
from erp_hub.repositories.notes import NotesRepository
from erp_hub.services import meeting_lifecycle
import logging

logger = logging.getLogger("erp_hub.api")


router = APIRouter(prefix="/api/meetings", tags=["meetings"])


class CreateMeetingRequest(BaseModel):
    title: Optional[str] = None
    meeting_date: Optional[datetime] = Field(default=None, alias="meetingDate")


class EndMeetingRequest(BaseModel):
    general_notes: Optional[str] = Field(default=None, alias="generalNotes")
    external_help: Optional[str] = Field(default=None, alias="externalHelp")
    # issue id -> discussion notes
    item_notes: Dict[int, Optional[str]] = Field(default_factory=dict, alias="itemNotes")


class AddIssuesRequest(BaseModel):
    issue_ids: List[int] = Field(alias="issueIds", min_length=1)


class ItemNotesRequest(BaseModel):
    discussion_notes: Optional[str] = Field(default=None, alias="discussionNotes")


class GeneralNotesRequest(BaseModel):
    general_notes: Optional[str] = Field(default=None, alias="generalNotes")


def _issue_view(session: Session, issue_id: int) -> Optional[Dict[str, Any]]:
    issue = IssuesRepository(session).get(issue_id)
    if issue is None:
        return None
    notes = NotesRepository(session)
    return {
        **issue.model_dump(),
        "category": CategoriesRepository(session).get(issue.category_id) if issue.category_id else None,
        "notes": notes.list_for_issue(Note, issue_id),
        "additional_help_notes": notes.list_for_issue(AdditionalHelpNote, issue_id),
        "action_items": sorted(
            ActionItemsRepository(session).list_available_for_issue(issue_id),
            key=lambda a: a.priority,
            reverse=True,
        ),
    }


def _meeting_view(session: Session, meeting: Meeting) -> Dict[str, Any]:
    items = MeetingItemsRepository(session).list_by_meeting(meeting.id)  # type: ignore[arg-type]
    return {
        **meeting.model_dump(),
        "meeting_items": [{**item.model_dump(), "issue": _issue_view(session, item.issue_id)} for item in items],
    }


@router.get("")
def list_meetings(limit: int = 50, offset: int = 0, session: Session = Depends(get_session)) -> List[Meeting]:
    return MeetingsRepository(session).list(limit=limit, offset=offset)


@router.post("", status_code=201)
def create_meeting(
    body: CreateMeetingRequest,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    meeting = meeting_lifecycle.create_meeting(
        session, title=body.title, meeting_date=body.meeting_date, tz_name=settings.display_timezone
    )
    return _meeting_view(session, meeting)


@router.get("/current")
def current_meeting(session: Session = Depends(get_session), settings: Settings = Depends(get_settings)) -> Dict[str, Any]:
    meeting = meeting_lifecycle.get_current_or_next_meeting(session, tz_name=settings.display_timezone)
    return _meeting_view(session, meeting)


@router.get("/available-issues")
def available_issues(session: Session = Depends(get_session)) -> List[Dict[str, Any]]:
    issues = IssuesRepository(session).list_available_for_meeting()
    return [_issue_view(session, issue.id) for issue in issues]  # type: ignore[arg-type]


@router.get("/{meeting_id}")
def get_meeting(meeting_id: int, session: Session = Depends(get_session)) -> Dict[str, Any]:
    meeting = MeetingsRepository(session).get(meeting_id)
    if meeting is None:
        raise HTTPException(status_code=404, detail="Meeting not found")
    return _meeting_view(session, meeting)


@router.post("/{meeting_id}/start")
def start_meeting(meeting_id: int, session: Session = Depends(get_session)) -> Meeting:
    return meeting_lifecycle.start_meeting(session, meeting_id)


@router.post("/{meeting_id}/heartbeat")
def heartbeat(meeting_id: int, session: Session = Depends(get_session)) -> Dict[str, Any]:
    meeting = meeting_lifecycle.record_activity(session, meeting_id)
    return {"ok": True, "last_activity_at": meeting.last_activity_at}


@router.post("/{meeting_id}/end")
def end_meeting(
    meeting_id: int,
    body: EndMeetingRequest,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    result = meeting_lifecycle.end_meeting_and_prepare_next(
        session,
        meeting_id,
        general_notes=body.general_notes,
        external_help=body.external_help,
        item_notes=body.item_notes,
        tz_name=settings.display_timezone,
    )
    return {
        "ended": result.ended,
        "next_meeting": _meeting_view(session, result.next_meeting),
    }


@router.post("/{meeting_id}/items")
def add_issues(meeting_id: int, body: AddIssuesRequest, session: Session = Depends(get_session)) -> Dict[str, Any]:
    meeting_lifecycle.add_issues(session, meeting_id, body.issue_ids)
    return {"success": True}


@router.delete("/{meeting_id}/items/{issue_id}")
def remove_issue(meeting_id: int, issue_id: int, session: Session = Depends(get_session)) -> Dict[str, Any]:
    meeting_lifecycle.remove_issue(session, meeting_id, issue_id)
    return {"success": True}


@router.put("/{meeting_id}/items/{issue_id}/notes")
def update_item_notes(
    meeting_id: int, issue_id: int, body: ItemNotesRequest, session: Session = Depends(get_session)
) -> Dict[str, Any]:
    item = meeting_lifecycle.update_item_notes(session, meeting_id, issue_id, body.discussion_notes)
    return {"success": True, "item": item}


@router.put("/{meeting_id}/notes")
def update_general_notes(meeting_id: int, body: GeneralNotesRequest, session: Session = Depends(get_session)) -> Meeting:
    return meeting_lifecycle.update_general_notes(session, meeting_id, body.general_notes)
