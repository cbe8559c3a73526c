from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator
from sqlmodel import Session

from erp_hub.deps import get_session
from erp_hub.models.category import Category
from erp_hub.repositories.categories import CategoriesRepository


router = APIRouter(prefix="/api/categories", tags=["categories"])


def _clean_name(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    value = value.strip()
    if not value:
        raise ValueError("Name is required")
    return value


class CreateCategoryRequest(BaseModel):
    name: str
    description: Optional[str] = None
    color: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: Optional[str]) -> Optional[str]:
        return _clean_name(value)


class UpdateCategoryRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    color: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: Optional[str]) -> Optional[str]:
        return _clean_name(value)


def _require(repo: CategoriesRepository, category_id: int) -> Category:
    category = repo.get(category_id)
    if category is None:
        raise HTTPException(status_code=404, detail="Category not found")
    return category


@router.get("")
def list_categories(session: Session = Depends(get_session)) -> List[Dict[str, Any]]:
    return [
        {**category.model_dump(), "issue_count": count}
        for category, count in CategoriesRepository(session).list_with_counts()
    ]


@router.post("", status_code=201)
def create_category(body: CreateCategoryRequest, session: Session = Depends(get_session)) -> Category:
    repo = CategoriesRepository(session)
    if repo.get_by_name(body.name) is not None:
        raise HTTPException(status_code=400, detail="A category with this name already exists")
    return repo.create(Category(**body.model_dump()))


@router.patch("/{category_id}")
def update_category(category_id: int, body: UpdateCategoryRequest, session: Session = Depends(get_session)) -> Category:
    repo = CategoriesRepository(session)
    category = _require(repo, category_id)
    changes = body.model_dump(exclude_unset=True)
    if "name" in changes:
        other = repo.get_by_name(changes["name"])
        if other is not None and other.id != category_id:
            raise HTTPException(status_code=400, detail="A category with this name already exists")
    return repo.update(category, changes)


@router.delete("/{category_id}")
def delete_category(category_id: int, session: Session = Depends(get_session)) -> Dict[str, Any]:
    repo = CategoriesRepository(session)
    repo.delete(_require(repo, category_id))
    return {"success": True}
