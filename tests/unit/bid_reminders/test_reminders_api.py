"""
Tests for the /reminders HTTP routes.
"""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from app.config import settings
from app.features.bid_reminders.api.router import (
    require_database_configuration,
    require_email_configuration,
)
from app.features.bid_reminders.services.reminder_service import (
    ReminderService,
    get_reminder_service,
)
from app.main import app


@pytest.fixture
def client(store, sender):
    service = ReminderService(store, sender, signature="Clipper Construction")
    app.dependency_overrides[get_reminder_service] = lambda: service
    app.dependency_overrides[require_email_configuration] = lambda: None
    app.dependency_overrides[require_database_configuration] = lambda: None
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_process_status_reports_configuration(client, monkeypatch):
    monkeypatch.setattr(settings, "SENDGRID_API_KEY", "SG.test")
    monkeypatch.setattr(settings, "SUPABASE_DB_URL", None)

    response = client.get("/reminders/process")

    assert response.status_code == 200
    assert response.json() == {
        "status": "ok",
        "endpoint": "process-reminders",
        "has_api_key": True,
        "has_database": False,
    }


def test_automatic_run_with_empty_body(client, store, sender, make_invitation):
    store.add(make_invitation("bid-1", days_ago=5))

    response = client.post("/reminders/process")

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["message"] == "Processed 1 reminders"
    assert data["results"]["sent"] == 1
    assert data["results"]["details"][0]["to"] == "bid-1@subs.example.com"
    assert len(sender.sent) == 1


def test_nothing_due(client):
    response = client.post("/reminders/process", json={})

    assert response.status_code == 200
    assert response.json()["message"] == "No reminders to send"
    assert response.json()["results"]["details"] == []


def test_dry_run_reports_would_send(client, store, sender, make_invitation):
    store.add(make_invitation("bid-1", days_ago=5))
    store.add(make_invitation("bid-2", days_ago=5))

    response = client.post("/reminders/process", json={"dry_run": True})

    data = response.json()
    assert data["dry_run"] is True
    assert data["results"]["sent"] == 0
    assert data["results"]["would_send"] == 2
    assert sender.sent == []
    assert store.invitations["bid-1"].reminder_count == 0


def test_manual_ids_are_honoured(client, store, make_invitation):
    store.add(make_invitation("bid-1", days_ago=0))
    store.add(make_invitation("bid-2", days_ago=5))

    response = client.post("/reminders/process", json={"manual_bid_ids": ["bid-1"]})

    details = response.json()["results"]["details"]
    assert [d["bid_id"] for d in details] == ["bid-1"]
    assert store.invitations["bid-2"].reminder_count == 0


@pytest.mark.parametrize(
    "payload",
    [
        {"dry_run": "sometimes"},
        {"manual_bid_ids": "bid-1"},
        {"unexpected": True},
    ],
)
def test_malformed_body_is_400(client, payload):
    response = client.post("/reminders/process", json=payload)

    assert response.status_code == 400
    assert isinstance(response.json()["detail"], list)


def test_invalid_json_is_400(client):
    response = client.post(
        "/reminders/process", content="{not json", headers={"Content-Type": "application/json"}
    )

    assert response.status_code == 400


def test_other_methods_are_405(client):
    assert client.put("/reminders/process").status_code == 405
    assert client.delete("/reminders/process").status_code == 405


def test_missing_sendgrid_key_is_500(store, sender, monkeypatch):
    monkeypatch.setattr(settings, "SENDGRID_API_KEY", None)
    app.dependency_overrides[get_reminder_service] = lambda: ReminderService(store, sender)
    try:
        response = TestClient(app).post("/reminders/process", json={})
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 500
    assert "SendGrid" in response.json()["detail"]
    assert sender.sent == []


def test_missing_database_is_500(store, sender, monkeypatch):
    monkeypatch.setattr(settings, "SENDGRID_API_KEY", "SG.test")
    monkeypatch.setattr(settings, "SUPABASE_DB_URL", None)
    app.dependency_overrides[get_reminder_service] = lambda: ReminderService(store, sender)
    try:
        response = TestClient(app).post("/reminders/process", json={})
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 500
    assert "Database" in response.json()["detail"]


def test_run_error_is_500(client, store):
    async def broken(now, limit):
        raise RuntimeError("pool exhausted")

    store.read_due_queue_entries = broken

    response = client.post("/reminders/process", json={})

    assert response.status_code == 500


def test_schedule_pause_and_resume(client, store, make_invitation, now):
    store.add(make_invitation("bid-1", days_ago=1))

    scheduled = client.post("/reminders/bids/bid-1/schedule")
    assert scheduled.status_code == 200
    assert scheduled.json()["scheduled"] is True
    assert scheduled.json()["reminder_number"] == 1

    paused = client.post("/reminders/bids/bid-1/pause")
    assert paused.json() == {"bid_id": "bid-1", "reminders_paused": True}
    assert store.invitations["bid-1"].reminders_paused is True

    resumed = client.post("/reminders/bids/bid-1/resume")
    assert resumed.json()["reminders_paused"] is False


def test_unknown_bid_is_404(client):
    assert client.post("/reminders/bids/missing/schedule").status_code == 404
    assert client.post("/reminders/bids/missing/pause").status_code == 404


def test_dashboard(client, store, make_invitation, now):
    store.add(make_invitation("bid-1"))
    store.add_queue_entry("bid-1", 1, now - timedelta(days=1))

    response = client.get("/reminders/dashboard")

    assert response.status_code == 200
    data = response.json()
    assert data["stats"]["total_pending"] == 1
    assert data["cadence"]["max_reminders"] == 3


def test_request_id_is_echoed(client):
    response = client.get("/reminders/process", headers={"X-Request-ID": "req-123"})

    assert response.headers["X-Request-ID"] == "req-123"
