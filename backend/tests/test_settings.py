from __future__ import annotations

from erp_hub.models.app_settings import migrate_settings_dict
from erp_hub.repositories.settings import get_app_settings, save_app_settings


def test_defaults(client):
    body = client.get("/api/settings").json()
    assert body["meeting"] == {"auto_end_enabled": True, "inactivity_minutes": 30, "max_duration_minutes": 120}
    assert body["zendesk"]["connected"] is False


def test_partial_update_keeps_other_fields(client):
    client.post("/api/settings", json={"meeting": {"inactivity_minutes": 15}})
    body = client.post("/api/settings", json={"meeting": {"auto_end_enabled": False}}).json()
    assert body["meeting"]["inactivity_minutes"] == 15
    assert body["meeting"]["auto_end_enabled"] is False
    assert body["meeting"]["max_duration_minutes"] == 120


def test_invalid_values_are_dropped(client):
    body = client.post("/api/settings", json={"meeting": {"inactivity_minutes": -4, "max_duration_minutes": "abc"}}).json()
    assert body["meeting"]["inactivity_minutes"] == 30
    assert body["meeting"]["max_duration_minutes"] == 120


def test_token_cannot_be_set_through_api(client, session):
    client.post("/api/settings", json={"zendesk": {"oauth_access_token": "sneaky"}})
    assert get_app_settings(session)["zendesk"]["oauth_access_token"] is None


def test_token_is_masked_and_can_be_cleared(client, session):
    save_app_settings(session, {"zendesk": {"oauth_access_token": "abc123", "scope": "read write"}})
    body = client.get("/api/settings").json()
    assert body["zendesk"]["oauth_access_token"] == "***"
    assert body["zendesk"]["connected"] is True

    cleared = client.delete("/api/settings/zendesk-token").json()
    assert cleared["zendesk"]["connected"] is False


def test_migrate_drops_unknown_keys():
    assert migrate_settings_dict({"asr": {"model": "x"}, "meeting": {"inactivity_minutes": "20"}}) == {
        "meeting": {"inactivity_minutes": 20}
    }


def test_healthz(client):
    assert client.get("/healthz").json() == {"status": "ok"}
