from __future__ import annotations

from erp_hub.services.email_templates import seed_default_templates


def _template(client, name: str, **fields):
    body = {"name": name, "subject": f"{name} subject", "content": "Hello team,", **fields}
    response = client.post("/api/email-templates", json=body)
    assert response.status_code == 201, response.text
    return response.json()


def test_only_one_default_template(client):
    first = _template(client, "Weekly", isDefault=True)
    second = _template(client, "Monthly", isDefault=True)

    templates = {t["id"]: t for t in client.get("/api/email-templates").json()}
    assert templates[second["id"]]["is_default"] is True
    assert templates[first["id"]]["is_default"] is False

    client.put(f"/api/email-templates/{first['id']}", json={"isDefault": True})
    listed = client.get("/api/email-templates").json()
    assert [t["id"] for t in listed if t["is_default"]] == [first["id"]]
    assert listed[0]["id"] == first["id"]


def test_list_sorted_by_name_after_default(client):
    _template(client, "Zeta")
    _template(client, "Alpha")
    assert [t["name"] for t in client.get("/api/email-templates").json()] == ["Alpha", "Zeta"]


def test_template_validation(client):
    response = client.post("/api/email-templates", json={"name": "", "subject": "s", "content": "c"})
    assert response.status_code == 400
    assert "name" in response.json()["details"]


def test_init_seeds_weekly_summary_once(client):
    created = client.post("/api/email-templates/init").json()
    assert created["created"] is True
    assert created["template"]["is_default"] is True
    assert created["template"]["content"].startswith("Hello team,")
    assert client.post("/api/email-templates/init").json()["created"] is False


def test_seed_skips_when_templates_exist(session):
    assert seed_default_templates(session) is not None
    assert seed_default_templates(session) is None


def test_template_data_without_zendesk(client, make_issue):
    make_issue("Open one", priority="HIGH")
    make_issue("Busy one", status="IN_PROGRESS")
    data = client.get("/api/email-templates/template-data").json()
    assert data["stats"]["open"] == 1
    assert data["stats"]["inProgress"] == 1
    assert [i["title"] for i in data["openIssues"]] == ["Open one"]
    assert [i["title"] for i in data["highPriorityIssues"]] == ["Open one"]
    assert data["zendesk"] is None


def test_template_data_zendesk_failure_gives_zeros(client, fakes):
    fakes.zendesk.configured = True
    fakes.zendesk.fail = True
    data = client.get("/api/email-templates/template-data").json()
    assert data["zendesk"]["stats"]["total"] == 0
    assert data["zendesk"]["recentTickets"] == []


def test_delete_template_detaches_drafts(client):
    template = _template(client, "Outage notice")
    draft = client.post("/api/email-drafts", json={"subject": "Down", "templateId": template["id"]}).json()
    assert client.delete(f"/api/email-templates/{template['id']}").status_code == 200
    assert client.get(f"/api/email-drafts/{draft['id']}").json()["template_id"] is None


def test_draft_with_issue_links(client, make_issue):
    first = make_issue("First")
    second = make_issue("Second")
    draft = client.post(
        "/api/email-drafts",
        json={
            "subject": "Status",
            "content": "Body",
            "recipients": ["ops@example.com"],
            "issueIds": [first["id"], first["id"]],
        },
    ).json()
    assert draft["recipients"] == ["ops@example.com"]
    assert [i["id"] for i in draft["issues"]] == [first["id"]]

    kept = client.put(f"/api/email-drafts/{draft['id']}", json={"subject": "Status v2", "content": "Body"}).json()
    assert [i["id"] for i in kept["issues"]] == [first["id"]]

    replaced = client.put(
        f"/api/email-drafts/{draft['id']}", json={"subject": "Status v3", "issueIds": [second["id"]]}
    ).json()
    assert [i["id"] for i in replaced["issues"]] == [second["id"]]


def test_draft_rejects_unknown_refs(client):
    assert client.post("/api/email-drafts", json={"templateId": 31}).status_code == 400
    assert client.post("/api/email-drafts", json={"issueIds": [31]}).status_code == 400


def test_drafts_listed_newest_first(client):
    older = client.post("/api/email-drafts", json={"subject": "old"}).json()
    newer = client.post("/api/email-drafts", json={"subject": "new"}).json()
    client.put(f"/api/email-drafts/{older['id']}", json={"subject": "old edited"})
    ids = [d["id"] for d in client.get("/api/email-drafts").json()]
    assert ids == [older["id"], newer["id"]]
    assert client.delete(f"/api/email-drafts/{newer['id']}").status_code == 200
    assert client.get(f"/api/email-drafts/{newer['id']}").status_code == 404
