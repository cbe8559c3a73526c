from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, Optional
from sqlalchemy import func
from sqlmodel import Session, col, select

from erp_hub.models.action_item import ActionItem


class ActionItemsRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def next_order(self) -> int:
        current = self.session.exec(select(func.max(ActionItem.order))).first()
        return int(current or 0) + 1

    def create(self, item: ActionItem) -> ActionItem:
        self.session.add(item)
        self.session.commit()
        self.session.refresh(item)
        return item

    def get(self, item_id: int) -> Optional[ActionItem]:
        return self.session.get(ActionItem, item_id)

    def list(self) -> list[ActionItem]:
        statement = select(ActionItem).order_by(
            col(ActionItem.completed).asc(),
            col(ActionItem.order).asc(),
            col(ActionItem.priority).desc(),
            col(ActionItem.due_date).asc(),
            col(ActionItem.created_at).desc(),
        )
        return list(self.session.exec(statement))

    def list_for_issue(self, issue_id: int) -> list[ActionItem]:
        """Items still on the issue plus items moved out of it."""
        statement = (
            select(ActionItem)
            .where((ActionItem.issue_id == issue_id) | (ActionItem.original_issue_id == issue_id))
            .order_by(
                col(ActionItem.completed).asc(),
                col(ActionItem.priority).desc(),
                col(ActionItem.created_at).desc(),
            )
        )
        return list(self.session.exec(statement))

    def list_available_for_issue(self, issue_id: int) -> list[ActionItem]:
        statement = (
            select(ActionItem)
            .where(ActionItem.issue_id == issue_id)
            .order_by(col(ActionItem.priority).desc(), col(ActionItem.created_at).desc())
        )
        return list(self.session.exec(statement))

    def update(self, item: ActionItem, changes: Dict[str, Any] | None = None) -> ActionItem:
        for key, value in (changes or {}).items():
            setattr(item, key, value)
        item.updated_at = datetime.utcnow()
        self.session.add(item)
        self.session.commit()
        self.session.refresh(item)
        return item

    def reorder(self, orders: Iterable[tuple[int, int]]) -> int:
        updated = 0
        for item_id, order in orders:
            item = self.get(item_id)
            if item is None:
                continue
            item.order = order
            item.updated_at = datetime.utcnow()
            self.session.add(item)
            updated += 1
        self.session.commit()
        return updated

    def delete(self, item: ActionItem) -> None:
        self.session.delete(item)
        self.session.commit()
