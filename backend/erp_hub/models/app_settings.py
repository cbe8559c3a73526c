from __future__ import annotations

from typing import Any, Dict, Optional
from pydantic import BaseModel, Field


class MeetingSettings(BaseModel):
    """Thresholds for ending ACTIVE meetings that were left running."""

    auto_end_enabled: bool = Field(default=True)
    # Minutes without any recorded activity before the meeting is ended
    inactivity_minutes: int = Field(default=30, ge=1)
    # Minutes since start before the meeting is ended regardless of activity
    max_duration_minutes: int = Field(default=120, ge=1)


class ZendeskRuntimeSettings(BaseModel):
    # Token received from the OAuth callback; takes precedence over env config
    oauth_access_token: Optional[str] = Field(default=None)
    token_type: Optional[str] = Field(default=None)
    scope: Optional[str] = Field(default=None)


class AppSettingsModel(BaseModel):
    meeting: MeetingSettings = Field(default_factory=MeetingSettings)
    zendesk: ZendeskRuntimeSettings = Field(default_factory=ZendeskRuntimeSettings)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump()


def deep_merge_dict(dst: Dict[str, Any], src: Dict[str, Any]) -> Dict[str, Any]:
    for k, v in src.items():
        if isinstance(v, dict) and isinstance(dst.get(k), dict):
            dst[k] = deep_merge_dict(dict(dst.get(k, {})), v)
        else:
            dst[k] = v
    return dst


def _positive_int(value: Any) -> Optional[int]:
    try:
        n = int(value)
    except (TypeError, ValueError):
        return None
    return n if n > 0 else None


def migrate_settings_dict(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Reduce an arbitrary settings payload to the supported keys.

    Only keys that are present and well formed are kept, so the result can be
    deep-merged over the stored settings as a patch. Unknown keys are dropped.
    """
    result: Dict[str, Any] = {}
    if not isinstance(raw, dict):
        return result

    meeting_in = raw.get("meeting")
    if isinstance(meeting_in, dict):
        meeting: Dict[str, Any] = {}
        if "auto_end_enabled" in meeting_in:
            meeting["auto_end_enabled"] = bool(meeting_in.get("auto_end_enabled"))
        for key in ("inactivity_minutes", "max_duration_minutes"):
            n = _positive_int(meeting_in.get(key))
            if n is not None:
                meeting[key] = n
        if meeting:
            result["meeting"] = meeting

    zendesk_in = raw.get("zendesk")
    if isinstance(zendesk_in, dict):
        zendesk: Dict[str, Any] = {}
        for key in ("oauth_access_token", "token_type", "scope"):
            if key in zendesk_in:
                val = zendesk_in.get(key)
                zendesk[key] = str(val).strip() if isinstance(val, str) and val.strip() else None
        if zendesk:
            result["zendesk"] = zendesk

    return result
