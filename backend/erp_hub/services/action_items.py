from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional
import logging

from sqlmodel import Session

from erp_hub.errors import NotFoundError
from erp_hub.models.action_item import ActionItem
from erp_hub.repositories.action_items import ActionItemsRepository

logger = logging.getLogger("erp_hub.action_items")


class MissingProvenanceError(ValueError):
    """The item has no original issue to go back to."""


def create_action_item(
    session: Session,
    title: str,
    issue_id: Optional[int] = None,
    description: Optional[str] = None,
    priority: int = 0,
    due_date: Optional[datetime] = None,
) -> ActionItem:
    repo = ActionItemsRepository(session)
    item = ActionItem(
        title=title,
        description=description,
        priority=priority,
        due_date=due_date,
        issue_id=issue_id,
        original_issue_id=issue_id,
        order=repo.next_order(),
    )
    return repo.create(item)


def _require(repo: ActionItemsRepository, item_id: int) -> ActionItem:
    item = repo.get(item_id)
    if item is None:
        raise NotFoundError("Action item not found")
    return item


def move_to_managed(session: Session, item_id: int) -> ActionItem:
    """Detach the item from its issue, remembering where it came from."""
    repo = ActionItemsRepository(session)
    item = _require(repo, item_id)
    changes: Dict[str, Any] = {"issue_id": None}
    if item.original_issue_id is None and item.issue_id is not None:
        changes["original_issue_id"] = item.issue_id
    item = repo.update(item, changes)
    logger.info("Action item %s moved to managed (from issue %s)", item.id, item.original_issue_id)
    return item


def restore_to_issue(session: Session, item_id: int) -> ActionItem:
    repo = ActionItemsRepository(session)
    item = _require(repo, item_id)
    if item.original_issue_id is None:
        raise MissingProvenanceError("Action item has no original issue to restore to")
    return repo.update(item, {"issue_id": item.original_issue_id})
