from __future__ import annotations

from sqlmodel import select

from erp_hub.models.zendesk_ticket import ZendeskTicket
from erp_hub.repositories.zendesk_tickets import ZendeskTicketsRepository
from erp_hub.services import zendesk_sync

RAW_TICKETS = [
    {
        "id": 101,
        "subject": "Cannot post AP batch",
        "description": "Batch 55 fails with error 1203",
        "status": "pending",
        "priority": "high",
        "type": "problem",
        "created_at": "2024-05-01T15:00:00Z",
        "updated_at": "2024-05-02T15:00:00Z",
    },
    {"id": 102, "subject": "Password reset", "status": "solved", "priority": None, "type": None},
]


def test_disabled_integration_answers_503(client):
    response = client.get("/api/zendesk", params={"action": "stats"})
    assert response.status_code == 503
    assert "not configured" in response.json()["error"]
    assert client.post("/api/zendesk", json={"action": "sync"}).status_code == 503


def test_query_actions(client, fakes):
    fakes.zendesk.configured = True
    fakes.zendesk.tickets = list(RAW_TICKETS)

    assert client.get("/api/zendesk", params={"action": "test"}).json()["success"] is True
    assert client.get("/api/zendesk", params={"action": "stats"}).json()["total"] == 2
    found = client.get("/api/zendesk", params={"action": "search", "query": "password"}).json()
    assert [t["id"] for t in found["tickets"]] == [102]
    assert client.get("/api/zendesk", params={"action": "search"}).status_code == 400
    assert client.get("/api/zendesk", params={"action": "bogus"}).status_code == 400


def test_sync_upserts_and_keeps_links(client, fakes, session, make_issue):
    fakes.zendesk.configured = True
    fakes.zendesk.tickets = list(RAW_TICKETS)

    first = client.post("/api/zendesk", json={"action": "sync"}).json()
    assert (first["created"], first["updated"]) == (2, 0)

    issue = make_issue("AP batch failure")
    client.post(f"/api/issues/{issue['id']}/zendesk-tickets", json={"zendeskTicketId": 101})

    second = client.post("/api/zendesk", json={"action": "sync"}).json()
    assert (second["created"], second["updated"]) == (0, 2)

    row = ZendeskTicketsRepository(session).get_by_zendesk_id(101)
    assert row.linked_issue_id == issue["id"]
    assert row.status.value == "PENDING"
    assert row.priority.value == "HIGH"
    assert row.ticket_type.value == "PROBLEM"
    other = ZendeskTicketsRepository(session).get_by_zendesk_id(102)
    assert other.priority.value == "NORMAL"
    assert other.ticket_type.value == "INCIDENT"


def test_link_list_unlink(client, make_issue):
    issue = make_issue()
    ticket_data = {"ticketId": 500, "subject": "Report missing", "status": "OPEN", "priority": "LOW"}
    linked = client.post(
        f"/api/issues/{issue['id']}/zendesk-tickets", json={"zendeskTicketId": 500, "ticketData": ticket_data}
    )
    assert linked.status_code == 200
    assert linked.json()["ticket"]["linked_issue_id"] == issue["id"]

    tickets = client.get(f"/api/issues/{issue['id']}/zendesk-tickets").json()["tickets"]
    assert [t["zendesk_id"] for t in tickets] == [500]

    removed = client.delete(f"/api/issues/{issue['id']}/zendesk-tickets", params={"ticketId": 500})
    assert removed.status_code == 200
    again = client.delete(f"/api/issues/{issue['id']}/zendesk-tickets", params={"ticketId": 500})
    assert again.status_code == 404
    assert client.delete(f"/api/issues/{issue['id']}/zendesk-tickets").status_code == 400


def test_link_unknown_ticket_without_data(client, make_issue):
    issue = make_issue()
    response = client.post(f"/api/issues/{issue['id']}/zendesk-tickets", json={"zendeskTicketId": 999})
    assert response.status_code == 400


def test_link_issue_action_fetches_ticket(client, fakes, make_issue):
    fakes.zendesk.configured = True
    fakes.zendesk.tickets = list(RAW_TICKETS)
    issue = make_issue()
    response = client.post("/api/zendesk", json={"action": "link_issue", "ticketId": 101, "issueId": issue["id"]})
    assert response.status_code == 200
    assert response.json()["ticket"]["subject"] == "Cannot post AP batch"


def test_import_ticket_creates_linked_issue(client, session):
    ticket = {
        "ticketId": 777,
        "subject": "Timesheets not syncing",
        "description": "Since Monday",
        "status": "PENDING",
        "priority": "URGENT",
        "requester": {"name": "Pat", "email": "pat@example.com"},
    }
    response = client.post("/api/issues/import-zendesk", json={"ticket": ticket})
    assert response.status_code == 201
    issue = response.json()["issue"]
    assert issue["title"] == "Timesheets not syncing"
    assert issue["priority"] == "URGENT"
    assert issue["status"] == "IN_PROGRESS"

    detail = client.get(f"/api/issues/{issue['id']}").json()
    assert detail["notes"][0]["author"] == zendesk_sync.IMPORT_NOTE_AUTHOR
    assert [t["zendesk_id"] for t in detail["zendesk_tickets"]] == [777]
    rows = session.exec(select(ZendeskTicket).where(ZendeskTicket.zendesk_id == 777)).all()
    assert len(rows) == 1


def test_delete_issue_unlinks_tickets(client, session, make_issue):
    issue = make_issue()
    client.post(
        f"/api/issues/{issue['id']}/zendesk-tickets",
        json={"zendeskTicketId": 42, "ticketData": {"subject": "Linked"}},
    )
    client.delete(f"/api/issues/{issue['id']}")
    row = ZendeskTicketsRepository(session).get_by_zendesk_id(42)
    assert row is not None
    assert row.linked_issue_id is None


def test_erp_admin_group_missing(client, fakes):
    fakes.zendesk.configured = True
    response = client.get("/api/zendesk/tickets/erp-admin")
    assert response.status_code == 404
    assert response.json()["details"]["available_groups"][0]["name"] == "Support"


def test_import_search_degrades_without_config(client):
    response = client.get("/api/zendesk/tickets", params={"search": "payroll"})
    assert response.status_code == 200
    assert response.json()["tickets"] == []
