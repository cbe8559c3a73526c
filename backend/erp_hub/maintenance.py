from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional
import logging

from sqlmodel import Session

from erp_hub.models.issue import Issue
from erp_hub.models.note import AdditionalHelpNote, CmicNote, Note
from erp_hub.repositories.issues import IssuesRepository
from erp_hub.repositories.notes import NotesRepository

logger = logging.getLogger("erp_hub.maintenance")


@dataclass
class TimestampFix:
    issue_id: int
    title: str
    old_updated_at: datetime
    new_updated_at: datetime


def newest_note_time(session: Session, issue_id: int) -> Optional[datetime]:
    notes = NotesRepository(session)
    times = []
    for model in (Note, CmicNote, AdditionalHelpNote):
        latest = notes.latest_for_issue(model, issue_id)
        if latest is not None:
            times.append(latest.created_at)
    return max(times) if times else None


def fix_issue_timestamps(session: Session, dry_run: bool = False) -> List[TimestampFix]:
    """Move each issue's updated_at forward to its newest note of any kind.

    Issues updated after their last note are left alone. With ``dry_run`` the
    fixes are reported but nothing is written.
    """
    fixes: List[TimestampFix] = []
    for issue in IssuesRepository(session).list_all():
        newest = newest_note_time(session, issue.id)  # type: ignore[arg-type]
        if newest is None or newest <= issue.updated_at:
            continue
        fixes.append(
            TimestampFix(
                issue_id=issue.id,  # type: ignore[arg-type]
                title=issue.title,
                old_updated_at=issue.updated_at,
                new_updated_at=newest,
            )
        )
        if not dry_run:
            issue.updated_at = newest
            session.add(issue)
    if fixes and not dry_run:
        session.commit()
    logger.info("%s %d issue timestamp(s)", "Would fix" if dry_run else "Fixed", len(fixes))
    return fixes


def _print_fixes(fixes: List[TimestampFix], dry_run: bool) -> None:
    if not fixes:
        print("All issue timestamps are already up to date.")
        return
    for fix in fixes:
        print(f"#{fix.issue_id} {fix.title}: {fix.old_updated_at.isoformat()} -> {fix.new_updated_at.isoformat()}")
    verb = "would be updated" if dry_run else "updated"
    print(f"{len(fixes)} issue(s) {verb}.")


if __name__ == "__main__":
    import argparse

    from erp_hub.models.base import engine, init_db

    parser = argparse.ArgumentParser(description="Align issue updated_at with their newest notes")
    parser.add_argument("--dry-run", action="store_true", help="Report changes without writing them")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    init_db()
    with Session(engine) as session:
        _print_fixes(fix_issue_timestamps(session, dry_run=args.dry_run), args.dry_run)
