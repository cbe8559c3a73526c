"""Shared fixtures: in-memory database, app with overridden dependencies, fake clients."""
from __future__ import annotations

from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from erp_hub.config import Settings
from erp_hub.deps import get_llm_client, get_session, get_settings, get_zendesk_client
from erp_hub.errors import ExternalServiceError
from erp_hub.main import create_app
from erp_hub.models.base import init_db


class FakeZendeskClient:
    """Stands in for ZendeskClient; returns canned tickets."""

    def __init__(self, configured: bool = False, tickets: Optional[List[Dict[str, Any]]] = None) -> None:
        self.configured = configured
        self.tickets = tickets or []
        self.fail = False

    def is_configured(self) -> bool:
        return self.configured

    def _check(self) -> None:
        if self.fail:
            raise ExternalServiceError("Zendesk unavailable", status_code=500)

    def test_connection(self) -> Dict[str, Any]:
        return {"success": True, "user": {"id": 1, "name": "Agent"}}

    def ticket_stats(self) -> Dict[str, int]:
        if self.fail:
            return {"total": 0, "new": 0, "open": 0, "pending": 0, "solved": 0, "closed": 0}
        return {"total": len(self.tickets), "new": 0, "open": len(self.tickets), "pending": 0, "solved": 0, "closed": 0}

    def list_tickets(self, **kwargs: Any) -> List[Dict[str, Any]]:
        self._check()
        return list(self.tickets)

    def get_ticket(self, ticket_id: int) -> Dict[str, Any]:
        self._check()
        for ticket in self.tickets:
            if ticket["id"] == ticket_id:
                return ticket
        raise ExternalServiceError("Ticket not found", status_code=404)

    def recent_tickets(self, days: int = 7) -> List[Dict[str, Any]]:
        self._check()
        return list(self.tickets)

    def high_priority_tickets(self) -> List[Dict[str, Any]]:
        self._check()
        return [t for t in self.tickets if t.get("priority") in ("high", "urgent")]

    def erp_support_tickets(self) -> List[Dict[str, Any]]:
        return list(self.tickets)

    def search_tickets(self, query: str) -> List[Dict[str, Any]]:
        self._check()
        return [t for t in self.tickets if query.lower() in (t.get("subject") or "").lower()]

    def search_for_import(self, search: str = "") -> Dict[str, Any]:
        if not self.configured:
            return {"tickets": [], "count": 0, "message": "Zendesk access token not configured."}
        return {"tickets": [], "count": 0, "message": "Showing 0 recent tickets"}

    def erp_admin_group_tickets(self, per_page: int = 50, page: int = 1) -> Dict[str, Any]:
        return {"group": None, "tickets": [], "available_groups": [{"id": 7, "name": "Support"}]}


class FakeLLM:
    """Returns queued replies in order and records every prompt."""

    model = "fake-model"

    def __init__(self, replies: Optional[List[str]] = None, error: Optional[Exception] = None) -> None:
        self.replies = list(replies or [])
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    def chat(self, messages: List[Dict[str, str]], temperature: float = 0.7, max_tokens: int = 2000) -> str:
        self.calls.append({"messages": messages, "temperature": temperature, "max_tokens": max_tokens})
        if self.error is not None:
            raise self.error
        return self.replies.pop(0) if self.replies else ""

    def complete(self, system_prompt: str, prompt: str, temperature: float = 0.7, max_tokens: int = 2000) -> str:
        return self.chat(
            [{"role": "system", "content": system_prompt}, {"role": "user", "content": prompt}],
            temperature=temperature,
            max_tokens=max_tokens,
        )


@pytest.fixture
def engine():
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(test_engine)
    yield test_engine
    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture
def session(engine):
    with Session(engine) as s:
        yield s


@pytest.fixture
def fakes():
    return SimpleNamespace(zendesk=FakeZendeskClient(), llm=None)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        data_dir=tmp_path,
        logs_dir=tmp_path / "logs",
        attachments_dir=tmp_path / "attachments",
    )


@pytest.fixture
def client(engine, fakes, settings):
    app = create_app(start_watchdog=False)

    def override_get_session():
        with Session(engine) as s:
            yield s

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_zendesk_client] = lambda: fakes.zendesk
    app.dependency_overrides[get_llm_client] = lambda: fakes.llm
    return TestClient(app)


@pytest.fixture
def make_issue(client):
    def _make(title: str = "GL posting fails", **fields: Any) -> Dict[str, Any]:
        response = client.post("/api/issues", json={"title": title, **fields})
        assert response.status_code == 201, response.text
        return response.json()["issue"]

    return _make
