from __future__ import annotations


def _ticket(client, issue_id: int, number: str, vendor: str = "CMIC", **fields):
    response = client.post(
        "/api/vendor-tickets", json={"issueId": issue_id, "ticketNumber": number, "vendor": vendor, **fields}
    )
    assert response.status_code == 201, response.text
    return response.json()["ticket"]


def test_list_requires_issue_id(client):
    response = client.get("/api/vendor-tickets")
    assert response.status_code == 400
    assert response.json() == {"error": "issueId parameter is required"}


def test_create_defaults(client, make_issue):
    issue = make_issue()
    ticket = _ticket(client, issue["id"], "CM-100")
    assert ticket["status"] == "OPEN"
    assert ticket["date_opened"] is not None
    assert ticket["date_closed"] is None


def test_create_for_missing_issue(client):
    response = client.post("/api/vendor-tickets", json={"issueId": 9, "ticketNumber": "X", "vendor": "OTHER"})
    assert response.status_code == 404


def test_invalid_vendor_rejected(client, make_issue):
    issue = make_issue()
    response = client.post(
        "/api/vendor-tickets", json={"issueId": issue["id"], "ticketNumber": "X", "vendor": "SAP"}
    )
    assert response.status_code == 400
    assert "vendor" in response.json()["details"]


def test_list_ordered_by_vendor_then_newest(client, make_issue):
    issue = make_issue()
    procore = _ticket(client, issue["id"], "P-1", "PROCORE")
    older = _ticket(client, issue["id"], "C-1", dateOpened="2024-01-01T00:00:00")
    newer = _ticket(client, issue["id"], "C-2", dateOpened="2024-02-01T00:00:00")

    tickets = client.get("/api/vendor-tickets", params={"issueId": issue["id"]}).json()["tickets"]
    assert [t["id"] for t in tickets] == [newer["id"], older["id"], procore["id"]]


def test_update_clears_date_closed(client, make_issue):
    issue = make_issue()
    ticket = _ticket(client, issue["id"], "C-9", status="CLOSED", dateClosed="2024-03-01T00:00:00")
    updated = client.patch(f"/api/vendor-tickets/{ticket['id']}", json={"dateClosed": None, "status": "OPEN"})
    assert updated.status_code == 200
    assert updated.json()["ticket"]["date_closed"] is None
    assert updated.json()["ticket"]["status"] == "OPEN"


def test_update_rejects_null_vendor(client, make_issue):
    issue = make_issue()
    ticket = _ticket(client, issue["id"], "C-10")
    assert client.patch(f"/api/vendor-tickets/{ticket['id']}", json={"vendor": None}).status_code == 400


def test_delete_and_missing(client, make_issue):
    issue = make_issue()
    ticket = _ticket(client, issue["id"], "C-11")
    assert client.delete(f"/api/vendor-tickets/{ticket['id']}").status_code == 200
    assert client.get(f"/api/vendor-tickets/{ticket['id']}").status_code == 404
