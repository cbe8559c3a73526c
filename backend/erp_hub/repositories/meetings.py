from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import update
from sqlmodel import Session, col, select

from erp_hub.models.enums import MeetingStatus
from erp_hub.models.meeting import Meeting, MeetingItem


class MeetingsRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def create(self, meeting: Meeting) -> Meeting:
        self.session.add(meeting)
        self.session.commit()
        self.session.refresh(meeting)
        return meeting

    def get(self, meeting_id: int) -> Optional[Meeting]:
        return self.session.get(Meeting, meeting_id)

    def list(self, limit: int = 50, offset: int = 0) -> list[Meeting]:
        statement = select(Meeting).order_by(col(Meeting.meeting_date).desc()).limit(limit).offset(offset)
        return list(self.session.exec(statement))

    def list_by_status(self, status: MeetingStatus) -> list[Meeting]:
        statement = select(Meeting).where(Meeting.status == status).order_by(col(Meeting.meeting_date).asc())
        return list(self.session.exec(statement))

    def list_between(self, start: datetime, end: datetime) -> list[Meeting]:
        statement = (
            select(Meeting)
            .where(Meeting.meeting_date >= start, Meeting.meeting_date <= end)
            .order_by(col(Meeting.meeting_date).desc())
        )
        return list(self.session.exec(statement))

    def get_active(self) -> Optional[Meeting]:
        return self.session.exec(select(Meeting).where(Meeting.status == MeetingStatus.ACTIVE)).first()

    def get_next_planned(self, not_before: datetime) -> Optional[Meeting]:
        statement = (
            select(Meeting)
            .where(Meeting.status == MeetingStatus.PLANNED, Meeting.meeting_date >= not_before)
            .order_by(col(Meeting.meeting_date).asc())
        )
        return self.session.exec(statement).first()

    def get_latest_on_day(self, day_start: datetime, day_end: datetime) -> Optional[Meeting]:
        statement = (
            select(Meeting)
            .where(Meeting.meeting_date >= day_start, Meeting.meeting_date < day_end)
            .order_by(col(Meeting.created_at).desc())
        )
        return self.session.exec(statement).first()

    def get_last_completed(self, exclude_id: Optional[int] = None) -> Optional[Meeting]:
        statement = select(Meeting).where(Meeting.status == MeetingStatus.COMPLETED)
        if exclude_id is not None:
            statement = statement.where(Meeting.id != exclude_id)
        statement = statement.order_by(col(Meeting.meeting_date).desc(), col(Meeting.id).desc())
        return self.session.exec(statement).first()

    def update(self, meeting: Meeting) -> Meeting:
        meeting.updated_at = datetime.utcnow()
        self.session.add(meeting)
        self.session.commit()
        self.session.refresh(meeting)
        return meeting

    def complete_if_active(self, meeting_id: int, values: Dict[str, Any]) -> bool:
        """Flip ACTIVE to COMPLETED in one conditional UPDATE.

        Returns False when the meeting was no longer ACTIVE, e.g. another
        session ended it first. Does not commit.
        """
        statement = (
            update(Meeting)
            .where(col(Meeting.id) == meeting_id, col(Meeting.status) == MeetingStatus.ACTIVE)
            .values(status=MeetingStatus.COMPLETED, updated_at=datetime.utcnow(), **values)
        )
        result = self.session.exec(statement)  # type: ignore[call-overload]
        return result.rowcount == 1


class MeetingItemsRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, meeting_id: int, issue_id: int) -> Optional[MeetingItem]:
        statement = select(MeetingItem).where(MeetingItem.meeting_id == meeting_id, MeetingItem.issue_id == issue_id)
        return self.session.exec(statement).first()

    def list_by_meeting(self, meeting_id: int) -> list[MeetingItem]:
        statement = select(MeetingItem).where(MeetingItem.meeting_id == meeting_id).order_by(col(MeetingItem.id).asc())
        return list(self.session.exec(statement))

    def add(self, item: MeetingItem, commit: bool = True) -> MeetingItem:
        """Insert unless the (meeting, issue) pair exists; returns the stored item."""
        existing = self.get(item.meeting_id, item.issue_id)
        if existing is not None:
            return existing
        self.session.add(item)
        if commit:
            self.session.commit()
            self.session.refresh(item)
        else:
            self.session.flush()
        return item

    def update_notes(self, meeting_id: int, issue_id: int, discussion_notes: Optional[str]) -> Optional[MeetingItem]:
        item = self.get(meeting_id, issue_id)
        if item is None:
            return None
        item.discussion_notes = discussion_notes
        self.session.add(item)
        self.session.commit()
        self.session.refresh(item)
        return item

    def remove(self, meeting_id: int, issue_id: int) -> bool:
        item = self.get(meeting_id, issue_id)
        if item is None:
            return False
        self.session.delete(item)
        self.session.commit()
        return True
