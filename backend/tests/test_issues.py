from __future__ import annotations

from datetime import datetime, timedelta

from sqlmodel import select

from erp_hub.maintenance import fix_issue_timestamps
from erp_hub.models.issue import Issue
from erp_hub.models.note import CmicNote, Note
from erp_hub.repositories.notes import clean_email_content


def test_blank_title_is_rejected(client):
    response = client.post("/api/issues", json={"title": "   "})
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Validation error"
    assert "title" in body["details"]


def test_create_issue_defaults(client):
    response = client.post("/api/issues", json={"title": "AP invoice stuck"})
    assert response.status_code == 201
    issue = response.json()["issue"]
    assert issue["priority"] == "MEDIUM"
    assert issue["status"] == "OPEN"
    assert issue["archived"] is False


def test_update_rejects_null_required_fields(client, make_issue):
    issue = make_issue("Retainage calc", priority="HIGH")
    for field in ("title", "status", "priority", "cmicTicketClosed"):
        response = client.patch(f"/api/issues/{issue['id']}", json={field: None})
        assert response.status_code == 400, field
        assert response.json()["error"] == "Validation error"

    stored = client.get(f"/api/issues/{issue['id']}").json()["issue"]
    assert stored["title"] == "Retainage calc"
    assert stored["priority"] == "HIGH"
    assert stored["status"] == "OPEN"

    cleared = client.patch(f"/api/issues/{issue['id']}", json={"description": None})
    assert cleared.status_code == 200


def test_create_issue_with_unknown_category(client):
    response = client.post("/api/issues", json={"title": "Payroll export", "categoryId": 999})
    assert response.status_code == 400
    assert response.json() == {"error": "Category not found"}


def test_additional_notes_become_import_note(client, make_issue):
    issue = make_issue("Vendor sync", additionalNotes="Imported context")
    detail = client.get(f"/api/issues/{issue['id']}").json()
    assert [n["content"] for n in detail["notes"]] == ["Imported context"]
    assert detail["notes"][0]["author"] == "System - Zendesk Import"


def test_resolved_issue_moves_to_resolved_listing(client, make_issue):
    issue = make_issue("Job cost report slow")
    response = client.patch(f"/api/issues/{issue['id']}", json={"status": "RESOLVED"})
    assert response.status_code == 200

    active = client.get("/api/issues").json()
    resolved = client.get("/api/issues", params={"status": "resolved"}).json()
    assert issue["id"] not in [i["id"] for i in active]
    assert issue["id"] in [i["id"] for i in resolved]


def test_active_listing_orders_by_priority(client, make_issue):
    low = make_issue("Low one", priority="LOW")
    urgent = make_issue("Urgent one", priority="URGENT")
    medium = make_issue("Medium one")
    ids = [i["id"] for i in client.get("/api/issues").json()]
    assert ids == [urgent["id"], medium["id"], low["id"]]


def test_listing_includes_latest_note_and_count(client, make_issue):
    issue = make_issue()
    client.post("/api/notes", json={"issueId": issue["id"], "content": "first"})
    client.post("/api/notes", json={"issueId": issue["id"], "content": "second"})
    summary = client.get("/api/issues").json()[0]
    assert summary["note_count"] == 2
    assert summary["latest_note"]["content"] in ("first", "second")


def test_archive_hides_issue(client, make_issue):
    issue = make_issue()
    archived = client.post(f"/api/issues/{issue['id']}/archive").json()
    assert archived["archived"] is True
    assert archived["archived_at"] is not None
    assert client.get("/api/issues").json() == []


def test_delete_issue_removes_children(client, make_issue):
    issue = make_issue()
    client.post("/api/notes", json={"issueId": issue["id"], "content": "note"})
    client.post(
        "/api/vendor-tickets",
        json={"issueId": issue["id"], "ticketNumber": "CM-1", "vendor": "CMIC"},
    )
    item = client.post("/api/action-items", json={"title": "Call vendor", "issueId": issue["id"]}).json()

    assert client.delete(f"/api/issues/{issue['id']}").status_code == 200
    assert client.get(f"/api/issues/{issue['id']}").status_code == 404
    detached = client.get(f"/api/action-items/{item['id']}").json()
    assert detached["issue_id"] is None
    assert detached["original_issue_id"] is None


def test_missing_issue_is_404(client):
    response = client.get("/api/issues/4242")
    assert response.status_code == 404
    assert response.json() == {"error": "Issue not found"}


def test_detail_lists_action_items_by_provenance(client, make_issue):
    issue = make_issue()
    item = client.post("/api/action-items", json={"title": "Follow up", "issueId": issue["id"]}).json()
    client.post(f"/api/action-items/{item['id']}/move-to-managed")

    detail = client.get(f"/api/issues/{issue['id']}").json()
    assert [a["id"] for a in detail["action_items"]] == [item["id"]]
    assert detail["action_items"][0]["state"] == "managed"


def test_dashboard_stats(client, make_issue):
    make_issue("a", priority="HIGH")
    make_issue("b", status="IN_PROGRESS")
    make_issue("c", status="CLOSED", priority="URGENT")
    stats = client.get("/api/issues/stats").json()
    assert stats["total"] == 3
    assert stats["open"] == 1
    assert stats["inProgress"] == 1
    assert stats["closed"] == 1
    assert stats["highPriority"] == 1
    assert stats["newThisWeek"] == 3


def test_note_on_unknown_issue(client):
    response = client.post("/api/notes", json={"issueId": 77, "content": "hello"})
    assert response.status_code == 404


def test_blank_note_rejected(client, make_issue):
    issue = make_issue()
    response = client.post("/api/notes", json={"issueId": issue["id"], "content": "  "})
    assert response.status_code == 400


def test_cmic_note_is_cleaned(client, make_issue):
    issue = make_issue()
    pasted = "From: vendor@cmic.com\nSubject: RE: ticket\n\nPatch applied in TEST.\n\n\n\n> old reply\nSent from my iPhone"
    response = client.post("/api/notes", json={"issueId": issue["id"], "content": pasted, "kind": "cmic"})
    assert response.status_code == 201
    assert response.json()["note"]["content"] == "Patch applied in TEST."


def test_clean_email_content_collapses_blank_runs():
    assert clean_email_content("one\n\n\n\n\ntwo\n-- \nJane") == "one\n\ntwo\n\nJane"


def test_delete_additional_help_note(client, make_issue):
    issue = make_issue()
    note = client.post(
        "/api/notes", json={"issueId": issue["id"], "content": "Ask CMiC support", "kind": "additional_help"}
    ).json()["note"]
    assert client.delete(f"/api/notes/additional_help/{note['id']}").status_code == 200
    assert client.get("/api/notes", params={"issueId": issue["id"], "kind": "additional_help"}).json() == []


def test_note_touches_issue_updated_at(session):
    issue = Issue(title="Stale", updated_at=datetime.utcnow() - timedelta(days=3))
    session.add(issue)
    session.commit()
    session.refresh(issue)
    before = issue.updated_at

    from erp_hub.repositories.notes import NotesRepository

    NotesRepository(session).create(Note(issue_id=issue.id, content="fresh"))
    session.refresh(issue)
    assert issue.updated_at > before


def test_fix_issue_timestamps(session):
    old = datetime.utcnow() - timedelta(days=10)
    issue = Issue(title="Old issue", updated_at=old, created_at=old)
    session.add(issue)
    session.commit()
    session.refresh(issue)
    # Inserted directly so the issue is not touched
    newer = old + timedelta(days=2)
    session.add(CmicNote(issue_id=issue.id, content="vendor reply", created_at=newer))
    session.commit()

    fixes = fix_issue_timestamps(session, dry_run=True)
    assert [f.issue_id for f in fixes] == [issue.id]
    session.refresh(issue)
    assert issue.updated_at == old

    fix_issue_timestamps(session)
    stored = session.exec(select(Issue).where(Issue.id == issue.id)).one()
    assert stored.updated_at == newer
    assert fix_issue_timestamps(session) == []


def test_attachment_upload_and_download(client, make_issue, settings):
    issue = make_issue()
    note = client.post("/api/notes", json={"issueId": issue["id"], "content": "see log"}).json()["note"]
    response = client.post(
        "/api/attachments/upload",
        data={"noteId": str(note["id"]), "createdBy": "sam"},
        files={"file": ("error log.txt", b"stack trace", "text/plain")},
    )
    assert response.status_code == 201
    attachment = response.json()["attachment"]
    assert attachment["status"] == "AVAILABLE"
    assert attachment["size"] == len(b"stack trace")

    download = client.get(f"/api/attachments/{attachment['id']}/download")
    assert download.status_code == 200
    assert download.content == b"stack trace"


def test_attachment_for_unknown_note(client):
    response = client.post(
        "/api/attachments/upload",
        data={"noteId": "12"},
        files={"file": ("a.txt", b"x", "text/plain")},
    )
    assert response.status_code == 404


def _upload(client, note_id: int, name: str = "trace.txt") -> dict:
    response = client.post(
        "/api/attachments/upload",
        data={"noteId": str(note_id)},
        files={"file": (name, b"payload", "text/plain")},
    )
    assert response.status_code == 201, response.text
    return response.json()["attachment"]


def test_deleting_note_removes_stored_file(client, make_issue, settings):
    issue = make_issue()
    note = client.post("/api/notes", json={"issueId": issue["id"], "content": "see file"}).json()["note"]
    attachment = _upload(client, note["id"])
    stored = settings.attachments_dir / attachment["storage_key"]
    assert stored.is_file()

    assert client.delete(f"/api/notes/note/{note['id']}").status_code == 200
    assert not stored.exists()
    assert not stored.parent.exists()


def test_deleting_issue_removes_stored_files(client, make_issue, settings):
    issue = make_issue()
    note = client.post("/api/notes", json={"issueId": issue["id"], "content": "see file"}).json()["note"]
    stored = [settings.attachments_dir / _upload(client, note["id"], name)["storage_key"] for name in ("a.txt", "b.txt")]
    assert all(path.is_file() for path in stored)

    assert client.delete(f"/api/issues/{issue['id']}").status_code == 200
    assert not any(path.exists() for path in stored)
    assert client.get(f"/api/issues/{issue['id']}").status_code == 404
