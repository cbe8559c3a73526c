from __future__ import annotations

import json

import pytest

from erp_hub.errors import ExternalServiceError
from erp_hub.models.category import Category
from erp_hub.services import email_assistant, ticket_triage

from conftest import FakeLLM

DRAWER_TICKET = {
    "ticketId": 321,
    "subject": "Subcontract report blank",
    "description": "The SC report shows no rows since the upgrade.",
    "status": "OPEN",
    "priority": "HIGH",
    "requester": {"name": "Lee", "email": "lee@example.com"},
}


def test_ai_disabled_answers_503(client):
    response = client.post("/api/ai/email", json={"action": "improve", "content": "hi"})
    assert response.status_code == 503
    assert "OpenAI" in response.json()["error"]
    assert client.post("/api/ai/chat", json={"message": "hello"}).status_code == 503


def test_email_action(client, fakes):
    fakes.llm = FakeLLM(["Polished draft"])
    response = client.post("/api/ai/email", json={"action": "shorten", "content": "Long draft"})
    assert response.json() == {"action": "shorten", "original_content": "Long draft", "result": "Polished draft"}
    prompt = fakes.llm.calls[0]["messages"][1]["content"]
    assert prompt.endswith("Long draft")


def test_unknown_action_is_400(client, fakes):
    fakes.llm = FakeLLM(["unused"])
    response = client.post("/api/ai/email", json={"action": "translate", "content": "Hola"})
    assert response.status_code == 400
    assert fakes.llm.calls == []


def test_missing_content_is_400(client, fakes):
    fakes.llm = FakeLLM()
    assert client.post("/api/ai/email", json={"action": "improve"}).status_code == 400


def test_custom_action_needs_instruction():
    with pytest.raises(email_assistant.UnsupportedActionError):
        email_assistant.build_email_prompt("custom", "text", {})
    _, prompt = email_assistant.build_email_prompt("custom", "text", {"instruction": "Add a deadline"})
    assert prompt.startswith("Add a deadline")


def test_chat_extends_conversation(client, fakes, make_issue):
    make_issue("Cost code import")
    fakes.llm = FakeLLM(["Sure, here is a draft."])
    response = client.post(
        "/api/ai/chat",
        json={
            "message": "Draft the weekly update",
            "conversation": [{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello"}],
        },
    ).json()
    assert response["message"] == "Sure, here is a draft."
    assert [m["role"] for m in response["conversation"]] == ["user", "assistant", "user", "assistant"]
    system = fakes.llm.calls[0]["messages"][0]["content"]
    assert "Cost code import" in system


def test_triage_uses_model_reply():
    reply = "Here you go:\n" + json.dumps(
        {
            "title": "SC report returns no rows",
            "description": "Report empty after upgrade",
            "priority": "urgent",
            "assignedTo": "ERP Team",
            "suggestedCategory": "Reporting",
            "reasoningNotes": "Blocking month end",
        }
    )
    proposal = ticket_triage.triage_ticket(FakeLLM([reply]), DRAWER_TICKET, [Category(name="Reporting")])
    assert proposal["title"] == "SC report returns no rows"
    assert proposal["priority"] == "URGENT"
    assert proposal["suggestedCategory"] == "Reporting"


def test_triage_falls_back_on_garbage():
    proposal = ticket_triage.triage_ticket(FakeLLM(["no json here"]), DRAWER_TICKET, [])
    assert proposal["title"] == DRAWER_TICKET["subject"]
    assert proposal["priority"] == "HIGH"
    assert proposal["assignedTo"] == "lee@example.com"
    assert proposal["reasoningNotes"] == ticket_triage.FALLBACK_NOTE


def test_triage_falls_back_on_llm_error():
    llm = FakeLLM(error=ExternalServiceError("OpenAI error: 500", status_code=500))
    proposal = ticket_triage.triage_ticket(llm, {**DRAWER_TICKET, "priority": "NORMAL", "subject": ""}, [])
    assert proposal["title"] == "Zendesk Ticket #321"
    assert proposal["priority"] == "MEDIUM"
    assert proposal["reasoningNotes"].startswith("AI processing error")


def test_zendesk_process_endpoint(client, fakes):
    fakes.llm = FakeLLM(["{}", "not json"])
    single = client.post("/api/ai/zendesk-process", json={"tickets": DRAWER_TICKET}).json()
    assert single["success"] is True
    assert single["original_count"] == 1
    assert single["processed_tickets"]["title"] == DRAWER_TICKET["subject"]

    batch = client.post(
        "/api/ai/zendesk-process", json={"tickets": [DRAWER_TICKET], "mode": "batch"}
    ).json()
    assert isinstance(batch["processed_tickets"], list)


def test_zendesk_process_requires_tickets(client, fakes):
    fakes.llm = FakeLLM()
    assert client.post("/api/ai/zendesk-process", json={"tickets": []}).status_code == 400
