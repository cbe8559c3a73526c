from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone
from typing import Dict, List, Optional
from zoneinfo import ZoneInfo
import logging
import threading

from sqlalchemy.engine import Engine
from sqlmodel import Session

from erp_hub.errors import InvalidTransitionError, NotFoundError
from erp_hub.models.enums import UNRESOLVED_STATUSES, MeetingEndReason, MeetingStatus
from erp_hub.models.issue import Issue
from erp_hub.models.meeting import Meeting, MeetingItem
from erp_hub.repositories.meetings import MeetingItemsRepository, MeetingsRepository
from erp_hub.repositories.settings import get_app_settings_model

logger = logging.getLogger("erp_hub.meetings")

DEFAULT_TIMEZONE = "America/Los_Angeles"
NEXT_MEETING_INTERVAL = timedelta(days=7)


@dataclass
class EndResult:
    ended: Meeting
    next_meeting: Meeting


def _to_local(when: datetime, tz_name: str) -> datetime:
    return when.replace(tzinfo=timezone.utc).astimezone(ZoneInfo(tz_name))


def meeting_title(when: datetime, tz_name: str = DEFAULT_TIMEZONE) -> str:
    """Default title for a meeting held at ``when`` (naive UTC)."""
    local = _to_local(when, tz_name)
    return f"ERP Team Meeting - {local.month}/{local.day}/{local.year}"


def local_day_bounds(now: datetime, tz_name: str = DEFAULT_TIMEZONE) -> tuple[datetime, datetime]:
    """Start and end of the local calendar day containing ``now``, as naive UTC."""
    tz = ZoneInfo(tz_name)
    local_day = _to_local(now, tz_name).date()
    start = datetime.combine(local_day, time.min, tzinfo=tz)
    end = start + timedelta(days=1)
    return (
        start.astimezone(timezone.utc).replace(tzinfo=None),
        end.astimezone(timezone.utc).replace(tzinfo=None),
    )


def _require(session: Session, meeting_id: int) -> Meeting:
    meeting = MeetingsRepository(session).get(meeting_id)
    if meeting is None:
        raise NotFoundError("Meeting not found")
    return meeting


def _historical_context(previous_title: str, notes: Optional[str]) -> str:
    if notes and notes.strip():
        return f"📝 Previous Discussion ({previous_title}):\n{notes}\n\n--- New Discussion ---\n"
    return f"📝 Carried over from {previous_title}\n\n--- Discussion ---\n"


def carry_over_items(session: Session, meeting: Meeting) -> List[MeetingItem]:
    """Copy unresolved issues from the last completed meeting into ``meeting``."""
    meetings = MeetingsRepository(session)
    items_repo = MeetingItemsRepository(session)
    previous = meetings.get_last_completed(exclude_id=meeting.id)
    if previous is None:
        return []

    added: List[MeetingItem] = []
    for item in items_repo.list_by_meeting(previous.id):  # type: ignore[arg-type]
        issue = session.get(Issue, item.issue_id)
        if issue is None or issue.status not in UNRESOLVED_STATUSES:
            continue
        if items_repo.get(meeting.id, item.issue_id) is not None:  # type: ignore[arg-type]
            continue
        carried = MeetingItem(
            meeting_id=meeting.id,  # type: ignore[arg-type]
            issue_id=item.issue_id,
            carried_over=True,
            discussion_notes=_historical_context(previous.title, item.discussion_notes),
        )
        added.append(items_repo.add(carried, commit=False))
    session.commit()
    if added:
        logger.info("Carried %d item(s) from meeting %s into %s", len(added), previous.id, meeting.id)
    return added


def create_meeting(
    session: Session,
    title: Optional[str] = None,
    meeting_date: Optional[datetime] = None,
    tz_name: str = DEFAULT_TIMEZONE,
) -> Meeting:
    when = meeting_date or datetime.utcnow()
    meeting = Meeting(
        title=(title or "").strip() or meeting_title(when, tz_name),
        meeting_date=when,
        status=MeetingStatus.PLANNED,
    )
    meeting = MeetingsRepository(session).create(meeting)
    carry_over_items(session, meeting)
    session.refresh(meeting)
    return meeting


def get_current_or_next_meeting(
    session: Session, now: Optional[datetime] = None, tz_name: str = DEFAULT_TIMEZONE
) -> Meeting:
    now = now or datetime.utcnow()
    repo = MeetingsRepository(session)
    meeting = repo.get_active()
    if meeting is not None:
        return meeting
    day_start, day_end = local_day_bounds(now, tz_name)
    meeting = repo.get_next_planned(not_before=day_start)
    if meeting is not None:
        return meeting
    meeting = repo.get_latest_on_day(day_start, day_end)
    if meeting is not None:
        return meeting
    return create_meeting(session, meeting_date=now, tz_name=tz_name)


def start_meeting(session: Session, meeting_id: int, now: Optional[datetime] = None) -> Meeting:
    meeting = _require(session, meeting_id)
    if meeting.status != MeetingStatus.PLANNED:
        raise InvalidTransitionError(f"Cannot start a meeting that is {meeting.status.value}")
    repo = MeetingsRepository(session)
    active = repo.get_active()
    if active is not None:
        raise InvalidTransitionError(f"Meeting {active.id} is already active")
    now = now or datetime.utcnow()
    meeting.status = MeetingStatus.ACTIVE
    meeting.started_at = now
    meeting.last_activity_at = now
    meeting = repo.update(meeting)
    logger.info("Meeting %s started", meeting.id)
    return meeting


def record_activity(session: Session, meeting_id: int, now: Optional[datetime] = None) -> Meeting:
    meeting = _require(session, meeting_id)
    if meeting.status != MeetingStatus.ACTIVE:
        raise InvalidTransitionError("Meeting is not active")
    meeting.last_activity_at = now or datetime.utcnow()
    return MeetingsRepository(session).update(meeting)


def _touch_if_active(meeting: Meeting) -> None:
    if meeting.status == MeetingStatus.ACTIVE:
        meeting.last_activity_at = datetime.utcnow()


def update_general_notes(session: Session, meeting_id: int, general_notes: Optional[str]) -> Meeting:
    meeting = _require(session, meeting_id)
    meeting.general_notes = general_notes
    _touch_if_active(meeting)
    return MeetingsRepository(session).update(meeting)


def update_item_notes(session: Session, meeting_id: int, issue_id: int, discussion_notes: Optional[str]) -> MeetingItem:
    meeting = _require(session, meeting_id)
    item = MeetingItemsRepository(session).update_notes(meeting_id, issue_id, discussion_notes)
    if item is None:
        raise NotFoundError("Issue is not part of this meeting")
    if meeting.status == MeetingStatus.ACTIVE:
        _touch_if_active(meeting)
        MeetingsRepository(session).update(meeting)
        session.refresh(item)
    return item


def add_issues(session: Session, meeting_id: int, issue_ids: List[int]) -> List[MeetingItem]:
    meeting = _require(session, meeting_id)
    if meeting.status == MeetingStatus.COMPLETED:
        raise InvalidTransitionError("Cannot add issues to a completed meeting")
    items_repo = MeetingItemsRepository(session)
    items: List[MeetingItem] = []
    for issue_id in dict.fromkeys(issue_ids):
        if session.get(Issue, issue_id) is None:
            raise NotFoundError(f"Issue {issue_id} not found")
        items.append(items_repo.add(MeetingItem(meeting_id=meeting_id, issue_id=issue_id, carried_over=False), commit=False))
    _touch_if_active(meeting)
    session.add(meeting)
    session.commit()
    return items_repo.list_by_meeting(meeting_id)


def remove_issue(session: Session, meeting_id: int, issue_id: int) -> None:
    _require(session, meeting_id)
    if not MeetingItemsRepository(session).remove(meeting_id, issue_id):
        raise NotFoundError("Issue is not part of this meeting")


def end_meeting_and_prepare_next(
    session: Session,
    meeting_id: int,
    general_notes: Optional[str] = None,
    external_help: Optional[str] = None,
    item_notes: Optional[Dict[int, Optional[str]]] = None,
    reason: MeetingEndReason = MeetingEndReason.MANUAL,
    now: Optional[datetime] = None,
    tz_name: str = DEFAULT_TIMEZONE,
) -> EndResult:
    meeting = _require(session, meeting_id)
    if meeting.status != MeetingStatus.ACTIVE:
        raise InvalidTransitionError(f"Cannot end a meeting that is {meeting.status.value}")
    now = now or datetime.utcnow()

    items_repo = MeetingItemsRepository(session)
    for issue_id, notes in (item_notes or {}).items():
        item = items_repo.get(meeting_id, int(issue_id))
        if item is None:
            continue
        item.discussion_notes = notes
        session.add(item)

    values: Dict[str, object] = {"ended_at": now, "end_reason": reason}
    if general_notes is not None:
        values["general_notes"] = general_notes
    if external_help is not None:
        values["external_help"] = external_help
    if not MeetingsRepository(session).complete_if_active(meeting_id, values):
        # Ended concurrently (watchdog or another request)
        session.rollback()
        raise InvalidTransitionError("Meeting is no longer active")
    session.commit()
    logger.info("Meeting %s ended (%s)", meeting_id, reason.value)

    next_date = now + NEXT_MEETING_INTERVAL
    next_meeting = create_meeting(session, meeting_date=next_date, tz_name=tz_name)
    session.refresh(meeting)
    logger.info("Prepared meeting %s for %s", next_meeting.id, next_date.date().isoformat())
    return EndResult(ended=meeting, next_meeting=next_meeting)


def expire_stale_meetings(
    session: Session, now: Optional[datetime] = None, tz_name: str = DEFAULT_TIMEZONE
) -> List[EndResult]:
    """End ACTIVE meetings that went idle or ran past the maximum duration."""
    config = get_app_settings_model(session).meeting
    if not config.auto_end_enabled:
        return []
    now = now or datetime.utcnow()
    idle_limit = timedelta(minutes=config.inactivity_minutes)
    duration_limit = timedelta(minutes=config.max_duration_minutes)

    results: List[EndResult] = []
    for meeting in MeetingsRepository(session).list_by_status(MeetingStatus.ACTIVE):
        started = meeting.started_at or meeting.meeting_date
        last_activity = meeting.last_activity_at or started
        if now - started >= duration_limit:
            reason = MeetingEndReason.MAX_DURATION
        elif now - last_activity >= idle_limit:
            reason = MeetingEndReason.INACTIVITY
        else:
            continue
        meeting_id = meeting.id
        logger.warning("Auto-ending meeting %s: %s", meeting_id, reason.value)
        try:
            results.append(
                end_meeting_and_prepare_next(session, meeting_id, reason=reason, now=now, tz_name=tz_name)  # type: ignore[arg-type]
            )
        except InvalidTransitionError:
            logger.info("Meeting %s was already ended", meeting_id)
    return results


class MeetingWatchdog:
    """Background sweep that ends meetings left running."""

    def __init__(self, engine: Engine, interval_seconds: int = 60, tz_name: str = DEFAULT_TIMEZONE) -> None:
        self.engine = engine
        self.interval_seconds = max(1, int(interval_seconds))
        self.tz_name = tz_name
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def run_once(self) -> List[EndResult]:
        with Session(self.engine) as session:
            return expire_stale_meetings(session, tz_name=self.tz_name)

    def _loop(self) -> None:
        while not self._stop.wait(self.interval_seconds):
            try:
                self.run_once()
            except Exception:
                logger.exception("Meeting watchdog sweep failed")

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="meeting-watchdog", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None
