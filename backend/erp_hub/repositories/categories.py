from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from sqlmodel import Session, col, select

from erp_hub.models.category import Category
from erp_hub.models.issue import Issue


class CategoriesRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def create(self, category: Category) -> Category:
        self.session.add(category)
        self.session.commit()
        self.session.refresh(category)
        return category

    def get(self, category_id: int) -> Optional[Category]:
        return self.session.get(Category, category_id)

    def get_by_name(self, name: str) -> Optional[Category]:
        return self.session.exec(select(Category).where(Category.name == name)).first()

    def list(self) -> list[Category]:
        return list(self.session.exec(select(Category).order_by(col(Category.name).asc())))

    def list_with_counts(self) -> List[Tuple[Category, int]]:
        out: List[Tuple[Category, int]] = []
        for category in self.list():
            count = len(list(self.session.exec(select(Issue.id).where(Issue.category_id == category.id))))
            out.append((category, count))
        return out

    def update(self, category: Category, changes: Dict[str, Any]) -> Category:
        for key, value in changes.items():
            setattr(category, key, value)
        category.updated_at = datetime.utcnow()
        self.session.add(category)
        self.session.commit()
        self.session.refresh(category)
        return category

    def delete(self, category: Category) -> None:
        # Issues survive without a category
        for issue in list(self.session.exec(select(Issue).where(Issue.category_id == category.id))):
            issue.category_id = None
            self.session.add(issue)
        self.session.delete(category)
        self.session.commit()
