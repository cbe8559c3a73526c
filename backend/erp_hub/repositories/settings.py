from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional
import json
import logging

from pydantic import ValidationError
from sqlmodel import Session, select

from erp_hub.models.setting import Setting
from erp_hub.models.app_settings import (
    AppSettingsModel,
    migrate_settings_dict,
    deep_merge_dict,
)

logger = logging.getLogger("erp_hub.settings")


DEFAULT_SETTINGS: Dict[str, Any] = AppSettingsModel().to_dict()


APP_SETTINGS_KEY = "app_settings"


def _defaults() -> Dict[str, Any]:
    return json.loads(json.dumps(DEFAULT_SETTINGS))


def _load_json_or_default(value_json: Optional[str]) -> Dict[str, Any]:
    if not value_json:
        return _defaults()
    try:
        parsed = json.loads(value_json)
        migrated = migrate_settings_dict(parsed)
        # deep-merge defaults to ensure new fields exist
        merged = deep_merge_dict(_defaults(), migrated)
        model = AppSettingsModel(**merged)
        return model.to_dict()
    except (ValueError, ValidationError):
        logger.warning("Stored app settings unreadable, falling back to defaults")
        return _defaults()


def get_app_settings(session: Session) -> Dict[str, Any]:
    stmt = select(Setting).where(Setting.key == APP_SETTINGS_KEY)
    row = session.exec(stmt).first()
    return _load_json_or_default(row.value_json if row else None)


def get_app_settings_model(session: Session) -> AppSettingsModel:
    return AppSettingsModel(**get_app_settings(session))


def save_app_settings(session: Session, settings_data: Dict[str, Any]) -> Dict[str, Any]:
    # Merge with existing to avoid losing fields the patch does not carry
    current = get_app_settings(session)
    incoming = migrate_settings_dict(settings_data)
    merged = deep_merge_dict(current, incoming)
    model = AppSettingsModel(**merged)
    normalized = model.to_dict()
    payload = json.dumps(normalized, ensure_ascii=False)
    stmt = select(Setting).where(Setting.key == APP_SETTINGS_KEY)
    row = session.exec(stmt).first()
    if row is None:
        row = Setting(key=APP_SETTINGS_KEY, value_json=payload)
    else:
        row.value_json = payload
        row.updated_at = datetime.utcnow()
    session.add(row)
    session.commit()
    return normalized


def public_settings(settings_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Settings as returned over the API; the Zendesk token is masked."""
    out = json.loads(json.dumps(settings_dict))
    zendesk = out.get("zendesk") or {}
    if zendesk.get("oauth_access_token"):
        zendesk["oauth_access_token"] = "***"
    zendesk["connected"] = bool(settings_dict.get("zendesk", {}).get("oauth_access_token"))
    out["zendesk"] = zendesk
    return out
