from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends
from sqlmodel import Session

from erp_hub.deps import get_session
from erp_hub.models.app_settings import migrate_settings_dict
from erp_hub.repositories.settings import get_app_settings, public_settings, save_app_settings


router = APIRouter(prefix="/api/settings", tags=["settings"])


@router.get("")
def read_settings(session: Session = Depends(get_session)) -> Dict[str, Any]:
    return public_settings(get_app_settings(session))


@router.post("")
def update_settings(body: Dict[str, Any] = Body(...), session: Session = Depends(get_session)) -> Dict[str, Any]:
    # Partial update; the Zendesk token only changes through OAuth
    patch = migrate_settings_dict({"meeting": body.get("meeting")})
    return public_settings(save_app_settings(session, patch))


@router.delete("/zendesk-token")
def disconnect_zendesk(session: Session = Depends(get_session)) -> Dict[str, Any]:
    cleared = {"zendesk": {"oauth_access_token": None, "token_type": None, "scope": None}}
    return public_settings(save_app_settings(session, cleared))
