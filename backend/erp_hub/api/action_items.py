from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlmodel import Session

from erp_hub.deps import get_session
from erp_hub.models.action_item import ActionItem
from erp_hub.repositories.action_items import ActionItemsRepository
from erp_hub.repositories.categories import CategoriesRepository
from erp_hub.repositories.issues import IssuesRepository
from erp_hub.services import action_items as action_items_service


router = APIRouter(prefix="/api/action-items", tags=["action-items"])


class CreateActionItemRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str
    issue_id: Optional[int] = Field(default=None, alias="issueId")
    description: Optional[str] = None
    priority: int = 0
    due_date: Optional[datetime] = Field(default=None, alias="dueDate")

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("title is required")
        return value


class UpdateActionItemRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[int] = None
    completed: Optional[bool] = None
    due_date: Optional[datetime] = Field(default=None, alias="dueDate")
    issue_id: Optional[int] = Field(default=None, alias="issueId")
    original_issue_id: Optional[int] = Field(default=None, alias="originalIssueId")

    @field_validator("priority", "completed")
    @classmethod
    def not_null(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("Field cannot be null")
        return value

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, value: Optional[str]) -> Optional[str]:
        value = (value or "").strip()
        if not value:
            raise ValueError("title is required")
        return value


class ReorderEntry(BaseModel):
    id: int
    order: int


def _issue_ref(session: Session, issue_id: Optional[int]) -> Optional[Dict[str, Any]]:
    if issue_id is None:
        return None
    issue = IssuesRepository(session).get(issue_id)
    if issue is None:
        return None
    category = CategoriesRepository(session).get(issue.category_id) if issue.category_id else None
    return {
        "id": issue.id,
        "title": issue.title,
        "description": issue.description,
        "category": {"name": category.name, "color": category.color} if category else None,
    }


def _view(session: Session, item: ActionItem) -> Dict[str, Any]:
    return {
        **item.model_dump(),
        "state": item.state,
        "issue": _issue_ref(session, item.issue_id),
        "original_issue": _issue_ref(session, item.original_issue_id),
    }


def _require(session: Session, item_id: int) -> ActionItem:
    item = ActionItemsRepository(session).get(item_id)
    if item is None:
        raise HTTPException(status_code=404, detail="Action item not found")
    return item


@router.get("")
def list_action_items(session: Session = Depends(get_session)) -> Dict[str, Any]:
    items = ActionItemsRepository(session).list()
    issues = IssuesRepository(session).list_with_action_items_text()
    return {
        "action_items": [_view(session, item) for item in items],
        "issues_with_action_items": [
            {
                "id": i.id,
                "title": i.title,
                "description": i.description,
                "action_items_text": i.action_items_text,
                "priority": i.priority,
                "status": i.status,
                "created_at": i.created_at,
                "updated_at": i.updated_at,
                "category": _issue_ref(session, i.id)["category"],  # type: ignore[index]
            }
            for i in issues
        ],
    }


@router.post("", status_code=201)
def create_action_item(body: CreateActionItemRequest, session: Session = Depends(get_session)) -> Dict[str, Any]:
    item = action_items_service.create_action_item(
        session,
        title=body.title,
        issue_id=body.issue_id,
        description=body.description,
        priority=body.priority,
        due_date=body.due_date,
    )
    return _view(session, item)


@router.put("")
def reorder_action_items(
    reordered_items: Any = Body(default=None, alias="reorderedItems", embed=True),
    session: Session = Depends(get_session),
) -> Dict[str, Any]:
    if not isinstance(reordered_items, list):
        raise HTTPException(status_code=400, detail="reorderedItems must be an array")
    try:
        entries: List[ReorderEntry] = [ReorderEntry.model_validate(e) for e in reordered_items]
    except ValueError:
        raise HTTPException(status_code=400, detail="Each reordered item needs an id and an order")
    updated = ActionItemsRepository(session).reorder((e.id, e.order) for e in entries)
    return {"success": True, "updated": updated}


@router.get("/{item_id}")
def get_action_item(item_id: int, session: Session = Depends(get_session)) -> Dict[str, Any]:
    return _view(session, _require(session, item_id))


@router.patch("/{item_id}")
def update_action_item(item_id: int, body: UpdateActionItemRequest, session: Session = Depends(get_session)) -> Dict[str, Any]:
    item = _require(session, item_id)
    item = ActionItemsRepository(session).update(item, body.model_dump(exclude_unset=True))
    return {"success": True, "action_item": _view(session, item)}


@router.post("/{item_id}/move-to-managed")
def move_to_managed(item_id: int, session: Session = Depends(get_session)) -> Dict[str, Any]:
    item = action_items_service.move_to_managed(session, item_id)
    return {"success": True, "action_item": _view(session, item)}


@router.post("/{item_id}/restore")
def restore_to_issue(item_id: int, session: Session = Depends(get_session)) -> Dict[str, Any]:
    try:
        item = action_items_service.restore_to_issue(session, item_id)
    except action_items_service.MissingProvenanceError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return {"success": True, "action_item": _view(session, item)}


@router.delete("/{item_id}")
def delete_action_item(item_id: int, session: Session = Depends(get_session)) -> Dict[str, Any]:
    ActionItemsRepository(session).delete(_require(session, item_id))
    return {"success": True, "message": "Action item deleted successfully"}
