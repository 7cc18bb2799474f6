"""Tests for the SQL adapter's row mappers and error translation (no database needed)."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from crm_assign.adapters.persistence.models import AssignmentModel
from crm_assign.adapters.persistence.repositories import (
    SqlAssignmentRepository,
    _assignment_to_domain,
    _new_assignment_model,
    _store_errors,
    _sync_custom_fields,
    _sync_transfers,
)
from crm_assign.domain.entities.assignment import Assignment
from crm_assign.domain.errors import DuplicateAssignment, StoreUnavailable
from crm_assign.domain.value_objects.enums import (
    AssignmentStatus,
    AssignmentType,
    CompletionReason,
    EntityType,
    Priority,
)

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def _assignment() -> Assignment:
    a = Assignment(
        id="ASM_1",
        entity_type=EntityType.CONTACT,
        entity_id="C-7",
        agent_id="A",
        priority=Priority.HIGH,
        assignment_type=AssignmentType.AUTOMATIC,
        assigned_at=T0,
        sla_deadline=T0 + timedelta(hours=4),
        assigned_by="router",
        assignment_reason="skills",
        tags={"vip", "emea"},
        custom_fields={"channel": "chat"},
    )
    a.apply_skills({"billing"}, {"billing", "kyc"})
    return a


def test_round_trip_preserves_all_fields():
    a = _assignment()
    a.transfer("B", "shift change", T0 + timedelta(minutes=5))
    a.escalate("lead", 2, T0 + timedelta(minutes=6))
    a.complete(CompletionReason.RESOLVED, 4.5, T0 + timedelta(hours=1), notes="ok")

    restored = _assignment_to_domain(_new_assignment_model(a))

    assert restored == a
    assert restored.status == AssignmentStatus.COMPLETED
    assert restored.custom_fields == {"channel": "chat", "completion_notes": "ok"}


def test_naive_datetimes_read_back_as_utc():
    m = _new_assignment_model(_assignment())
    m.assigned_at = m.assigned_at.replace(tzinfo=None)
    restored = _assignment_to_domain(m)
    assert restored.assigned_at == T0
    assert restored.assigned_at.tzinfo is not None


def test_sync_transfers_appends_only_new_entries():
    a = _assignment()
    a.transfer("B", "first", T0)
    m = _new_assignment_model(a)
    original_row = m.transfers[0]

    a.transfer("C", "second", T0 + timedelta(hours=1))
    _sync_transfers(m, a)

    assert len(m.transfers) == 2
    assert m.transfers[0] is original_row
    assert [t.sequence for t in m.transfers] == [1, 2]
    assert (m.transfers[1].from_agent_id, m.transfers[1].to_agent_id) == ("B", "C")


def test_sync_custom_fields_updates_adds_and_removes():
    a = _assignment()
    a.custom_fields["stale"] = 1
    m = _new_assignment_model(a)

    a.custom_fields = {"channel": "email", "region": "eu"}
    _sync_custom_fields(m, a)

    assert {f.key: f.value for f in m.custom_fields} == {"channel": "email", "region": "eu"}


def test_active_entity_index_is_partial_and_unique():
    index = next(
        i for i in AssignmentModel.__table__.indexes if i.name == "uq_assignments_active_entity"
    )
    assert index.unique is True
    assert [c.name for c in index.columns] == ["entity_type", "entity_id"]
    assert "active" in str(index.dialect_options["postgresql"]["where"])


def test_store_errors_become_store_unavailable():
    with pytest.raises(StoreUnavailable):
        with _store_errors("get"):
            raise OperationalError("SELECT 1", {}, ConnectionRefusedError())


def test_store_errors_pass_domain_errors_through():
    with pytest.raises(DuplicateAssignment):
        with _store_errors("add"):
            raise DuplicateAssignment("thread", "T1")


class _ConflictingSession:
    """Session double whose flush hits the unique index."""

    def __init__(self):
        self.added = []

    def add(self, obj):
        self.added.append(obj)

    @asynccontextmanager
    async def begin_nested(self):
        yield

    async def flush(self):
        raise IntegrityError("INSERT INTO assignments", {}, Exception("duplicate key"))


@pytest.mark.asyncio
async def test_add_maps_unique_violation_to_duplicate():
    repo = SqlAssignmentRepository(_ConflictingSession())
    with pytest.raises(DuplicateAssignment) as exc:
        await repo.add(_assignment())
    assert exc.value.code == "ASSIGNMENT_EXISTS"
