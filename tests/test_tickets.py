# tests/test_tickets.py
import httpx
from fastapi.testclient import TestClient

from conftest import ticket_body
from ticketflow.core.errors import TicketStoreError
from ticketflow.main import create_app
from ticketflow.ticket import services as ticket_service


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_echo_returns_query(client):
    r = client.get("/echo", params={"ping": "pong"})
    assert r.status_code == 200
    assert r.json() == {"ping": "pong"}


def test_create_and_get_ticket(client):
    r = client.post("/rest/ticket", json=ticket_body(issue_title="VPN", notes="called twice"))
    assert r.status_code == 201
    created = r.json()

    r2 = client.get(f"/rest/ticket/{created['ticket_number']}")
    assert r2.status_code == 200
    assert r2.json() == created
    assert created["issue_title"] == "VPN"
    assert created["notes"] == "called twice"


def test_create_sets_timestamps_and_new_key(client):
    first = client.post("/rest/ticket", json=ticket_body()).json()
    second = client.post("/rest/ticket", json=ticket_body()).json()

    assert first["created"] == first["changed"]
    assert second["created"] == second["changed"]
    assert first["ticket_number"] != second["ticket_number"]
    assert int(second["ticket_number"]) > int(first["ticket_number"])


def test_create_derives_truncated_title(client):
    r = client.post("/rest/ticket", json=ticket_body(issue_description="A" * 150))
    assert r.status_code == 201
    data = r.json()
    assert data["issue_title"] == "A" * 100 + "..."
    assert data["status"] == "Open"
    assert data["notes"] == ""


def test_create_short_description_is_title_verbatim(client):
    r = client.post("/rest/ticket", json=ticket_body(issue_description="B" * 100))
    assert r.status_code == 201
    assert r.json()["issue_title"] == "B" * 100


def test_create_keeps_given_status(client):
    r = client.post("/rest/ticket", json=ticket_body(status="In-progress"))
    assert r.status_code == 201
    assert r.json()["status"] == "In-progress"


def test_list_returns_newest_first(client):
    client.post("/rest/ticket", json=ticket_body(issue_title="one"))
    client.post("/rest/ticket", json=ticket_body(issue_title="two"))

    r = client.get("/rest/ticket")
    assert r.status_code == 200
    items = r.json()
    assert {t["issue_title"] for t in items} == {"one", "two"}
    created = [t["created"] for t in items]
    assert created == sorted(created, reverse=True)


def test_update_ticket_title_and_status(client):
    # create
    tid = client.post("/rest/ticket", json=ticket_body(issue_title="To Update")).json()["ticket_number"]

    # update title + status
    r2 = client.put(f"/rest/ticket/{tid}", json={"issue_title": "Updated", "status": "Closed"})
    assert r2.status_code == 200
    data = r2.json()
    assert data["ticket_number"] == tid
    assert data["issue_title"] == "Updated"
    assert data["status"] == "Closed"

    # fetch again to be sure
    r3 = client.get(f"/rest/ticket/{tid}")
    assert r3.json()["status"] == "Closed"


def test_update_without_status_resets_to_open(client):
    tid = client.post("/rest/ticket", json=ticket_body(status="Closed")).json()["ticket_number"]

    r = client.put(f"/rest/ticket/{tid}", json={"notes": "customer called back"})
    assert r.status_code == 200
    assert r.json()["status"] == "Open"
    assert r.json()["notes"] == "customer called back"


def test_update_ignores_key_and_created(client):
    before = client.post("/rest/ticket", json=ticket_body()).json()
    tid = before["ticket_number"]

    r = client.put(
        f"/rest/ticket/{tid}",
        json={"ticket_number": "hijack", "created": "1999-01-01T00:00:00.000Z", "priority": "Low"},
    )
    assert r.status_code == 200
    after = r.json()
    assert after["ticket_number"] == tid
    assert after["created"] == before["created"]
    assert after["changed"] >= before["changed"]
    assert after["priority"] == "Low"
    assert client.get("/rest/ticket/hijack").status_code == 404


def test_update_derives_title_from_new_description(client):
    tid = client.post("/rest/ticket", json=ticket_body(issue_title="old")).json()["ticket_number"]

    r = client.put(f"/rest/ticket/{tid}", json={"issue_description": "C" * 120})
    assert r.json()["issue_title"] == "C" * 100 + "..."


def test_update_not_found_returns_404(client, webhook_calls):
    r = client.put("/rest/ticket/9999999", json={"issue_title": "nope"})
    assert r.status_code == 404
    assert r.json()["detail"] == "Ticket not found"
    assert webhook_calls == []


def test_delete_ticket_then_404(client, webhook_calls):
    # create
    created = client.post("/rest/ticket", json=ticket_body(issue_title="To Delete")).json()
    tid = created["ticket_number"]

    # delete
    r2 = client.delete(f"/rest/ticket/{tid}")
    assert r2.status_code == 204

    # now 404
    r3 = client.get(f"/rest/ticket/{tid}")
    assert r3.status_code == 404
    assert r3.json()["detail"] == "Ticket not found"

    deleted_event = webhook_calls[-1]
    assert deleted_event["action"] == "DELETE"
    assert deleted_event["ticket_number"] == tid
    assert deleted_event["issue_title"] == "To Delete"


def test_delete_missing_ticket_sends_no_webhook(client, webhook_calls):
    r = client.delete("/rest/ticket/9999999")
    assert r.status_code == 404
    assert webhook_calls == []


def test_get_not_found_returns_404(client):
    r = client.get("/rest/ticket/9999999")
    assert r.status_code == 404
    assert r.json()["detail"] == "Ticket not found"


def test_create_validation_errors(client):
    # missing description
    body = ticket_body()
    del body["issue_description"]
    assert client.post("/rest/ticket", json=body).status_code == 422

    assert client.post("/rest/ticket", json=ticket_body(issue_description="")).status_code == 422
    assert client.post("/rest/ticket", json=ticket_body(issue_description="x" * 501)).status_code == 422
    assert client.post("/rest/ticket", json=ticket_body(issue_title="x" * 101)).status_code == 422
    assert client.post("/rest/ticket", json=ticket_body(notes="x" * 1001)).status_code == 422
    assert client.post("/rest/ticket", json=ticket_body(priority="Urgent")).status_code == 422
    assert client.post("/rest/ticket", json=ticket_body(status="Pending")).status_code == 422
    assert client.post("/rest/ticket", json=ticket_body(email="not-an-email")).status_code == 422
    assert client.post("/rest/ticket", json=ticket_body(phone_number="555-1234")).status_code == 422


def test_update_validation_errors(client):
    tid = client.post("/rest/ticket", json=ticket_body()).json()["ticket_number"]
    assert client.put(f"/rest/ticket/{tid}", json={"priority": "Urgent"}).status_code == 422
    assert client.put(f"/rest/ticket/{tid}", json={"phone_number": "+4412345"}).status_code == 422


def test_webhook_sent_for_each_mutation(client, webhook_calls):
    tid = client.post("/rest/ticket", json=ticket_body()).json()["ticket_number"]
    client.put(f"/rest/ticket/{tid}", json={"status": "In-progress"})
    client.delete(f"/rest/ticket/{tid}")

    assert [c["action"] for c in webhook_calls] == ["CREATE", "UPDATE", "DELETE"]
    assert all(c["ticket_number"] == tid for c in webhook_calls)
    assert webhook_calls[1]["status"] == "In-progress"


def test_disabled_webhook_sends_nothing(client, webhook_calls):
    r = client.put("/rest/webhook/status", json={"enabled": False})
    assert r.json() == {"enabled": False}

    tid = client.post("/rest/ticket", json=ticket_body()).json()["ticket_number"]
    assert client.put(f"/rest/ticket/{tid}", json={"notes": "n"}).status_code == 200
    assert client.delete(f"/rest/ticket/{tid}").status_code == 204

    assert webhook_calls == []


def test_webhook_failure_does_not_change_response(settings):
    def handler(request):
        return httpx.Response(503)

    app = create_app(settings, webhook_transport=httpx.MockTransport(handler))
    with TestClient(app) as client:
        r = client.post("/rest/ticket", json=ticket_body())
        assert r.status_code == 201

    failures = list(app.state.notifier.failures)
    assert len(failures) == 1
    assert failures[0].action == "CREATE"
    assert failures[0].ticket_number == r.json()["ticket_number"]


def test_webhook_status_toggle(client):
    assert client.get("/rest/webhook/status").json() == {"enabled": True}

    assert client.put("/rest/webhook/status", json={"enabled": False}).json() == {"enabled": False}
    assert client.get("/rest/webhook/status").json() == {"enabled": False}

    assert client.put("/rest/webhook/status", json={"enabled": True}).json() == {"enabled": True}


def test_webhook_status_rejects_non_boolean(client):
    assert client.put("/rest/webhook/status", json={"enabled": "yes"}).status_code == 400
    assert client.put("/rest/webhook/status", json={"enabled": 1}).status_code == 400
    assert client.put("/rest/webhook/status", json={}).status_code == 400
    assert client.put("/rest/webhook/status", json=[True]).status_code == 400
    assert client.get("/rest/webhook/status").json() == {"enabled": True}


def test_duplicate_key_returns_409(client, monkeypatch):
    monkeypatch.setattr(ticket_service, "next_ticket_number", lambda: "fixed")

    assert client.post("/rest/ticket", json=ticket_body()).status_code == 201
    r = client.post("/rest/ticket", json=ticket_body())
    assert r.status_code == 409


def test_store_error_returns_500(app, client, monkeypatch):
    def boom():
        raise TicketStoreError("disk gone")

    monkeypatch.setattr(app.state.store, "list_all", boom)
    r = client.get("/rest/ticket")
    assert r.status_code == 500
    assert r.json()["detail"] == "Internal server error"


def test_webhook_not_configured_is_skipped(settings, webhook_transport, webhook_calls):
    unconfigured = settings.model_copy(update={"WEBHOOK_URL": None})
    app = create_app(unconfigured, webhook_transport=webhook_transport)
    with TestClient(app) as client:
        assert client.post("/rest/ticket", json=ticket_body()).status_code == 201
    assert webhook_calls == []
