"""HTTP tests for the assignment and agent routes, backed by in-memory fakes."""

from __future__ import annotations

from contextlib import asynccontextmanager

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from crm_assign.adapters.persistence import database
from crm_assign.adapters.persistence.database import get_session
from crm_assign.infrastructure.api.dependencies import (
    get_lifecycle_service,
    get_workload_aggregator,
)
from crm_assign.main import app


class _SessionStub:
    """Stands in for the request transaction; the fakes hold the data."""

    def __init__(self, fail_commit=False):
        self.fail_commit = fail_commit
        self.commits = 0
        self.rollbacks = 0

    async def commit(self):
        if self.fail_commit:
            raise OperationalError("COMMIT", {}, ConnectionResetError("connection lost"))
        self.commits += 1

    async def rollback(self):
        self.rollbacks += 1


@pytest.fixture
def session_stub():
    return _SessionStub()


@pytest.fixture
def client(service, aggregator, session_stub):
    async def _session():
        yield session_stub

    app.dependency_overrides[get_lifecycle_service] = lambda: service
    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_workload_aggregator] = lambda: aggregator
    yield TestClient(app)
    app.dependency_overrides.clear()


def _create(client, entity_id="T1", agent_id="agent-a", **extra):
    body = {"entity_type": "thread", "entity_id": entity_id, "agent_id": agent_id, **extra}
    return client.post("/api/assignments", json=body)


def test_create_returns_201_with_deadline(client):
    r = _create(client, priority="urgent", required_skills=["billing"])
    assert r.status_code == 201
    data = r.json()
    assert data["status"] == "active"
    assert data["priority"] == "urgent"
    assert data["assigned_at"] == "2026-03-02T09:00:00+00:00"
    assert data["sla_deadline"] == "2026-03-02T10:00:00+00:00"
    assert data["skill_match_score"] == 1.0


def test_duplicate_create_returns_409(client):
    _create(client)
    r = _create(client, agent_id="agent-b")
    assert r.status_code == 409
    assert r.json()["detail"]["code"] == "ASSIGNMENT_EXISTS"


def test_unknown_entity_type_is_rejected(client):
    r = client.post(
        "/api/assignments", json={"entity_type": "invoice", "entity_id": "1", "agent_id": "a"}
    )
    assert r.status_code == 422


def test_get_unknown_assignment_returns_404(client):
    r = client.get("/api/assignments/ASM_missing")
    assert r.status_code == 404
    assert r.json()["detail"]["code"] == "ASSIGNMENT_NOT_FOUND"


def test_lifecycle_over_http(client):
    assignment_id = _create(client).json()["id"]

    r = client.post(f"/api/assignments/{assignment_id}/transfer", json={"to_agent_id": "agent-b", "reason": "workload"})
    assert r.status_code == 200
    assert r.json()["agent_id"] == "agent-b"
    assert r.json()["transfer_history"][0]["reason"] == "workload"

    r = client.post(f"/api/assignments/{assignment_id}/escalate", json={"to_agent_id": "lead"})
    assert r.json()["escalation_level"] == 1

    r = client.patch(f"/api/assignments/{assignment_id}/metrics", json={"total_messages": 4})
    assert r.json()["total_messages"] == 4

    r = client.post(
        f"/api/assignments/{assignment_id}/complete",
        json={"completion_reason": "resolved", "satisfaction_score": 4},
    )
    assert r.status_code == 200
    assert r.json()["status"] == "completed"
    assert r.json()["sla_met"] is True


def test_invalid_score_returns_422(client):
    assignment_id = _create(client).json()["id"]
    r = client.post(
        f"/api/assignments/{assignment_id}/complete",
        json={"completion_reason": "resolved", "satisfaction_score": 9},
    )
    assert r.status_code == 422
    assert r.json()["detail"]["code"] == "INVALID_SCORE"


def test_command_on_cancelled_assignment_returns_409(client):
    assignment_id = _create(client).json()["id"]
    client.post(f"/api/assignments/{assignment_id}/cancel", json={"reason": "spam"})
    r = client.post(f"/api/assignments/{assignment_id}/transfer", json={"to_agent_id": "agent-b"})
    assert r.status_code == 409
    assert r.json()["detail"]["code"] == "INVALID_TRANSITION"


def test_decreasing_counter_returns_422(client):
    assignment_id = _create(client).json()["id"]
    client.patch(f"/api/assignments/{assignment_id}/metrics", json={"total_messages": 5})
    r = client.patch(f"/api/assignments/{assignment_id}/metrics", json={"total_messages": 3})
    assert r.status_code == 422
    assert r.json()["detail"]["code"] == "NON_MONOTONIC_UPDATE"


def test_active_assignment_by_entity(client):
    assignment_id = _create(client, entity_id="T42").json()["id"]
    r = client.get("/api/assignments/by-entity/thread/T42")
    assert r.status_code == 200
    assert r.json()["id"] == assignment_id

    assert client.get("/api/assignments/by-entity/thread/nope").status_code == 404


def test_agent_assignments_listing(client):
    _create(client, entity_id="T1")
    _create(client, entity_id="T2")
    _create(client, entity_id="T3", agent_id="agent-b")

    r = client.get("/api/agents/agent-a/assignments", params={"limit": 1})
    assert r.status_code == 200
    assert r.json()["count"] == 1

    r = client.get("/api/agents/agent-a/assignments")
    assert {a["entity_id"] for a in r.json()["assignments"]} == {"T1", "T2"}


def test_agent_workload(client):
    for i in range(21):
        _create(client, entity_id=f"T{i}")
    r = client.get("/api/agents/agent-a/workload")
    assert r.status_code == 200
    data = r.json()
    assert data["current_workload"]["active_assignments"] == 21
    assert data["current_workload"]["capacity_utilization"] == 100.0
    assert data["performance"]["total"] == 21


def test_stats_endpoint(client):
    _create(client, entity_id="T1", priority="high")
    r = client.get("/api/assignments/stats", params={"priority": "high"})
    assert r.status_code == 200
    assert r.json()["total"] == 1
    assert r.json()["by_priority"] == {"high": 1}


def test_mutations_commit_before_responding(client, session_stub):
    assignment_id = _create(client).json()["id"]
    client.post(f"/api/assignments/{assignment_id}/cancel", json={})
    assert session_stub.commits == 2


def test_failed_commit_returns_503(client, monkeypatch):
    failing = _SessionStub(fail_commit=True)

    @asynccontextmanager
    async def _factory():
        yield failing

    # go through the real request-session dependency
    app.dependency_overrides.pop(get_session)
    monkeypatch.setattr(database, "async_session_factory", _factory)

    r = _create(client)
    assert r.status_code == 503
    assert r.json()["detail"]["code"] == "STORE_UNAVAILABLE"
    assert failing.rollbacks == 1


def test_id_longer_than_column_is_rejected(client, assignment_repo):
    r = _create(client, entity_id="x" * 65)
    assert r.status_code == 422
    assert assignment_repo.records == {}

    assert _create(client, entity_id="x" * 64).status_code == 201


def test_transfer_target_longer_than_column_is_rejected(client):
    assignment_id = _create(client).json()["id"]
    r = client.post(f"/api/assignments/{assignment_id}/transfer", json={"to_agent_id": "a" * 65})
    assert r.status_code == 422
    r = client.post(f"/api/assignments/{assignment_id}/escalate", json={"to_agent_id": "a" * 65})
    assert r.status_code == 422


def test_custom_field_key_longer_than_column_is_rejected(client):
    r = _create(client, custom_fields={"k" * 101: 1})
    assert r.status_code == 422


def test_workload_window_accepts_naive_bounds(client):
    _create(client)
    r = client.get(
        "/api/agents/agent-a/workload",
        params={"start": "2026-03-01T00:00:00", "end": "2026-03-03T00:00:00"},
    )
    assert r.status_code == 200
    assert r.json()["performance"]["total"] == 1
