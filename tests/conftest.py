# tests/conftest.py
import json

import httpx
import pytest
from fastapi.testclient import TestClient

from ticketflow.core.config import Settings
from ticketflow.main import create_app
from ticketflow.ticket.models import Ticket
from ticketflow.ticket.store import TicketStore

WEBHOOK_URL = "http://hooks.test/events"


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        DATABASE_URL=f"sqlite:///{tmp_path / 'tickets.db'}",
        LEGACY_JSON_PATH=str(tmp_path / "db.json"),
        WEBHOOK_URL=WEBHOOK_URL,
    )


@pytest.fixture
def webhook_calls():
    return []


@pytest.fixture
def webhook_transport(webhook_calls):
    def handler(request: httpx.Request) -> httpx.Response:
        webhook_calls.append(json.loads(request.content))
        return httpx.Response(200, json={"received": True})

    return httpx.MockTransport(handler)


@pytest.fixture
def app(settings, webhook_transport):
    return create_app(settings, webhook_transport=webhook_transport)


@pytest.fixture
def client(app):
    # Context manager so the lifespan (init, migration, close) runs
    with TestClient(app) as c:
        yield c


@pytest.fixture
def store(tmp_path):
    s = TicketStore(f"sqlite:///{tmp_path / 'store.db'}")
    s.initialize()
    yield s
    s.close()


def make_ticket(**overrides) -> Ticket:
    fields = {
        "ticket_number": "1700000000000",
        "issue_title": "Printer jam",
        "issue_description": "The printer on floor 2 jams on every job",
        "status": "Open",
        "priority": "Medium",
        "email": "user@example.com",
        "phone_number": "+15551234567",
        "notes": "",
        "created": "2024-01-01T00:00:00.000Z",
        "changed": "2024-01-01T00:00:00.000Z",
    }
    fields.update(overrides)
    return Ticket(**fields)


def ticket_body(**overrides) -> dict:
    body = {
        "issue_description": "VPN drops every ten minutes",
        "priority": "High",
        "email": "a@b.com",
        "phone_number": "+15551234567",
    }
    body.update(overrides)
    return body
