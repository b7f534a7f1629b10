"""
HTTP tests for the routers, wired with in-memory repositories.
"""
import httpx
import pytest
from starlette.datastructures import State

from deskwatch.config import Settings
from deskwatch.main import app, wire_services
from deskwatch.sla.domain import TicketAssignment
from deskwatch.sla.infrastructure import InProcessLeaderLock, ShiftConfigManager

from conftest import (
    InMemoryAssignments,
    InMemoryHistoryRepository,
    InMemoryInferenceRepository,
    InMemoryQuarantineRepository,
    InMemorySLAEventRepository,
    UnprovisionedEventRepository,
)

PHISH = {
    "from": "Security Team <security@paypa1.example>",
    "to": "support@helpdesk.example",
    "subject": "Urgent action required: verify your account",
    "body": "Click the link to reset your password: https://bit.ly/abc and login now.",
    "attachments": [{"filename": "invoice.pdf.exe", "mime_type": "application/octet-stream", "size": 2048}],
}


def _wire(event_repository=None):
    app.state = State()
    wire_services(
        app,
        Settings(_env_file=None),
        inference_repository=InMemoryInferenceRepository(),
        history_repository=InMemoryHistoryRepository(),
        quarantine_repository=InMemoryQuarantineRepository(),
        event_repository=event_repository or InMemorySLAEventRepository(),
        assignment_repository=InMemoryAssignments([TicketAssignment("T-1", "u-pm", "PM")]),
        shift_config=ShiftConfigManager(),
        leader_lock=InProcessLeaderLock(),
    )


@pytest.fixture
async def client():
    _wire()
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.state = State()


@pytest.fixture
async def bare_client():
    app.state = State()
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as c:
        yield c


# ========== Root and health ==========

async def test_root_lists_modules(client):
    response = await client.get("/")

    assert response.status_code == 200
    assert set(response.json()["modules"]) == {"priority", "intake", "sla"}


async def test_health_reports_checks(client):
    body = (await client.get("/health")).json()

    assert body["status"] == "healthy"
    assert body["checks"]["shift_monitor"] == "stopped"
    assert body["checks"]["llm_client"] == "not_configured"
    assert body["checks"]["current_shift"] in {"AM", "PM", "GY"}


async def test_correlation_id_is_echoed(client):
    response = await client.get("/", headers={"X-Correlation-ID": "abc-123"})
    assert response.headers["X-Correlation-ID"] == "abc-123"


async def test_unwired_services_answer_503(bare_client):
    assert (await bare_client.post("/priority/decide", json={"subject": "x"})).status_code == 503
    assert (await bare_client.post("/intake/assess", json={"from": "a@b.example"})).status_code == 503
    assert (await bare_client.get("/sla/tickets/T-1/summary")).status_code == 503


# ========== Priority ==========

async def test_decide_hard_critical(client):
    response = await client.post("/priority/decide", json={
        "subject": "Server down",
        "body_text": "The main server down since 8am, nobody can reach it.",
    })

    body = response.json()
    assert response.status_code == 200
    assert body["predicted_priority_code"] == "critical"
    assert body["is_auto_applied"] is True
    assert body["needs_review"] is False
    assert body["inference_id"] is None


async def test_explicit_priority_wins(client):
    body = (await client.post("/priority/decide", json={"subject": "Server down", "explicit_priority_code": "LOW"})).json()

    assert body["applied_priority_code"] == "low"
    assert body["provider"] == "manual_input"


async def test_recorded_decision_can_be_overridden(client):
    decided = (await client.post("/priority/decide", json={
        "subject": "Server down",
        "body_text": "The main server down since 8am.",
        "ticket_id": "T-9",
    })).json()

    response = await client.post(
        f"/priority/inferences/{decided['inference_id']}/review",
        json={"decision": "override", "priority_code": "high", "reviewer_id": "lead-1"},
    )

    body = response.json()
    assert response.status_code == 200
    assert body["ticket_id"] == "T-9"
    assert body["applied_priority_code"] == "high"
    assert body["priority_changed"] is True

    metrics = (await client.get("/priority/metrics")).json()
    assert metrics["total"] == 1
    assert metrics["reviewed"] == 1


async def test_override_without_code_is_400(client):
    decided = (await client.post("/priority/decide", json={"subject": "Server down", "ticket_id": "T-9"})).json()

    response = await client.post(f"/priority/inferences/{decided['inference_id']}/review", json={"decision": "override"})

    assert response.status_code == 400
    assert response.json()["error_type"] == "ValidationException"


async def test_review_of_unknown_inference_is_404(client):
    response = await client.post("/priority/inferences/999/review", json={"decision": "approve"})
    assert response.status_code == 404


# ========== Intake ==========

async def test_phishing_email_is_quarantined_then_released(client):
    assessed = (await client.post("/intake/assess", json=PHISH)).json()

    assert assessed["decision"] == "quarantine"
    assert assessed["level"] == "critical"
    quarantine_id = assessed["quarantine_id"]
    assert quarantine_id == 1

    released = await client.post(f"/intake/quarantine/{quarantine_id}/release", json={"ticket_id": "T-5"})
    again = await client.post(f"/intake/quarantine/{quarantine_id}/release", json={"ticket_id": "T-6"})

    assert released.json()["status"] == "released"
    assert again.json()["released_ticket_id"] == "T-5"


async def test_dismissing_a_released_email_conflicts(client):
    quarantine_id = (await client.post("/intake/assess", json=PHISH)).json()["quarantine_id"]
    await client.post(f"/intake/quarantine/{quarantine_id}/release", json={"ticket_id": "T-5"})

    response = await client.post(f"/intake/quarantine/{quarantine_id}/dismiss", json={})

    assert response.status_code == 409


async def test_clean_email_is_allowed_without_queueing(client):
    body = (await client.post("/intake/assess", json={
        "from": "jane@corp.example",
        "subject": "Printer jam on floor 3",
        "body": "The printer is not working since this morning.",
    })).json()

    assert body["decision"] == "allow"
    assert body["quarantine_id"] is None


async def test_release_of_unknown_record_is_404(client):
    response = await client.post("/intake/quarantine/42/release", json={"ticket_id": "T-1"})
    assert response.status_code == 404


# ========== SLA ==========

async def test_current_shift(client):
    body = (await client.get("/sla/shift")).json()

    assert body["shift"] in {"AM", "PM", "GY"}
    assert body["timezone"] == "UTC"
    assert [w["code"] for w in body["windows"]] == ["AM", "PM", "GY"]


async def test_replay_counts_in_shift_minutes(client):
    response = await client.post("/sla/replay", json={
        "events": [
            {"event_type": "assigned", "occurred_at": "2024-01-15T13:58:00", "shift_code": "AM"},
            {"event_type": "resolved", "occurred_at": "2024-01-15T14:10:00"},
        ],
        "now": "2024-01-15T15:00:00",
    })

    assert response.json() == {"total_minutes": 2, "formatted_time": "0h 2m", "is_active": False}


async def test_tracked_events_feed_the_summary(client):
    first = await client.post("/sla/tickets/T-1/events", json={
        "event_type": "assigned", "actor_user_id": "u-pm", "occurred_at": "2024-01-15T14:00:00Z",
    })
    await client.post("/sla/tickets/T-1/events", json={
        "event_type": "resolved", "occurred_at": "2024-01-15T15:30:00Z",
    })

    assert first.json()["shift_code"] == "PM"
    summary = (await client.get("/sla/tickets/T-1/summary")).json()
    assert summary == {"total_minutes": 90, "formatted_time": "1h 30m", "is_active": False}


async def test_unknown_event_type_is_rejected(client):
    response = await client.post("/sla/tickets/T-1/events", json={"event_type": "escalated"})
    assert response.status_code == 422


async def test_missing_event_table_is_503():
    _wire(event_repository=UnprovisionedEventRepository())
    try:
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as c:
            response = await c.get("/sla/tickets/T-1/summary")
    finally:
        app.state = State()

    assert response.status_code == 503
    assert response.json()["table"] == "sla_tracking"
