from __future__ import annotations

import base64
from typing import Any, Dict, List

import pytest
import requests

from erp_hub.config import ZendeskSettings
from erp_hub.errors import ExternalServiceError, ServiceDisabledError
from erp_hub.services import zendesk_client as zendesk_module
from erp_hub.services.zendesk_client import ZendeskClient


class FakeResponse:
    def __init__(self, payload: Dict[str, Any], status_code: int = 200) -> None:
        self._payload = payload
        self.status_code = status_code
        self.ok = 200 <= status_code < 300
        self.reason = "OK" if self.ok else "Error"
        self.text = str(payload)

    def json(self) -> Dict[str, Any]:
        return self._payload


@pytest.fixture
def calls(monkeypatch):
    recorded: List[Dict[str, Any]] = []
    routes: Dict[str, Any] = {}

    def fake_request(method, url, headers=None, params=None, timeout=None):
        recorded.append({"method": method, "url": url, "headers": headers, "params": params})
        path = url.split("/api/v2", 1)[1]
        handler = routes.get(path)
        if handler is None:
            return FakeResponse({}, status_code=404)
        if isinstance(handler, Exception):
            raise handler
        return FakeResponse(handler(params) if callable(handler) else handler)

    monkeypatch.setattr(zendesk_module.requests, "request", fake_request)
    return {"recorded": recorded, "routes": routes}


def _config(**overrides: Any) -> ZendeskSettings:
    values = {"subdomain": "acme", "api_token": "tok", "api_email": "", "oauth_access_token": ""}
    values.update(overrides)
    return ZendeskSettings(**values)


def test_not_configured():
    client = ZendeskClient(_config(api_token=""))
    assert client.is_configured() is False
    with pytest.raises(ServiceDisabledError):
        client.get_ticket(1)


def test_basic_auth_when_email_present(calls):
    calls["routes"]["/tickets/5.json"] = {"ticket": {"id": 5}}
    ZendeskClient(_config(api_email="agent@acme.com")).get_ticket(5)
    header = calls["recorded"][0]["headers"]["Authorization"]
    assert header == "Basic " + base64.b64encode(b"agent@acme.com/token:tok").decode("ascii")


def test_oauth_token_wins(calls):
    calls["routes"]["/tickets/5.json"] = {"ticket": {"id": 5}}
    ZendeskClient(_config(api_email="agent@acme.com"), oauth_token="oauth-abc").get_ticket(5)
    assert calls["recorded"][0]["headers"]["Authorization"] == "Bearer oauth-abc"


def test_bearer_api_token_without_email(calls):
    calls["routes"]["/users/me.json"] = {"user": {"id": 9}}
    assert ZendeskClient(_config()).test_connection() == {"success": True, "user": {"id": 9}}
    assert calls["recorded"][0]["headers"]["Authorization"] == "Bearer tok"


def test_list_filters_client_side(calls):
    calls["routes"]["/tickets.json"] = {
        "tickets": [
            {"id": 1, "status": "open", "priority": "high"},
            {"id": 2, "status": "solved", "priority": "high"},
            {"id": 3, "status": "open", "priority": "low"},
        ]
    }
    tickets = ZendeskClient(_config()).list_tickets(status=["open"], priority=["high"])
    assert [t["id"] for t in tickets] == [1]


def test_stats_are_zero_on_failure(calls):
    calls["routes"]["/tickets.json"] = requests.ConnectionError("down")
    stats = ZendeskClient(_config()).ticket_stats()
    assert stats["total"] == 0
    assert stats["urgent_priority"] == 0


def test_erp_search_deduplicates_and_skips_failures(calls):
    def search(params):
        if params["query"] == "tags:system":
            raise requests.ConnectionError("timeout")
        return {"results": [{"id": 10, "result_type": "ticket"}, {"id": 11, "result_type": "user"}]}

    calls["routes"]["/search.json"] = search
    tickets = ZendeskClient(_config()).erp_support_tickets()
    assert [t["id"] for t in tickets] == [10]


def test_http_error_raises_external_error(calls):
    with pytest.raises(ExternalServiceError) as info:
        ZendeskClient(_config()).get_ticket(404)
    assert info.value.status_code == 404


def test_import_search_shapes_tickets(calls):
    calls["routes"]["/search.json"] = {
        "results": [
            {
                "id": 70,
                "subject": "Payroll export",
                "status": "hold",
                "priority": "urgent",
                "requester_id": 3,
                "created_at": "2024-04-01T10:00:00Z",
            }
        ]
    }
    calls["routes"]["/users/show_many.json"] = {"users": [{"id": 3, "name": "Ana", "email": "ana@acme.com"}]}
    result = ZendeskClient(_config()).search_for_import("payroll")
    ticket = result["tickets"][0]
    assert ticket["ticketId"] == 70
    assert ticket["status"] == "HOLD"
    assert ticket["priority"] == "URGENT"
    assert ticket["requester"] == {"name": "Ana", "email": "ana@acme.com"}
    assert result["message"] == 'Found 1 tickets matching "payroll"'


def test_import_search_degrades_on_error(calls):
    result = ZendeskClient(_config()).search_for_import()
    assert result["tickets"] == []
    assert "Unable to search" in result["message"]


def test_authorize_url_requires_oauth_config():
    with pytest.raises(ServiceDisabledError):
        ZendeskClient(_config()).authorize_url("state")
    url = ZendeskClient(_config(oauth_client_id="cid", oauth_redirect_uri="http://localhost/cb")).authorize_url("xyz")
    assert url.startswith("https://acme.zendesk.com/oauth/authorizations/new?")
    assert "state=xyz" in url
