"""SQLAlchemy repository implementations."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime

from sqlalchemy import Select, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from crm_assign.adapters.persistence.models import (
    AgentModel,
    AssignmentCustomFieldModel,
    AssignmentModel,
    AssignmentTransferModel,
)
from crm_assign.application.ports.agent_directory import AgentDirectory
from crm_assign.application.ports.assignment_repo import AssignmentFilter, AssignmentRepository
from crm_assign.domain.clock import as_utc
from crm_assign.domain.entities.agent import Agent
from crm_assign.domain.entities.assignment import Assignment
from crm_assign.domain.errors import DuplicateAssignment, NotFound, StoreUnavailable
from crm_assign.domain.value_objects.enums import (
    AssignmentStatus,
    AssignmentType,
    CompletionReason,
    EntityType,
    Priority,
)
from crm_assign.domain.value_objects.transfer_record import TransferRecord

logger = logging.getLogger(__name__)

_LIVE_STATUSES = (AssignmentStatus.ACTIVE.value, AssignmentStatus.TRANSFERRED.value)

# ─── Mappers ─────────────────────────────────────────────────────────


def _agent_to_domain(m: AgentModel) -> Agent:
    return Agent(id=m.id, name=m.name, skills=set(m.skills) if m.skills else set())


def _assignment_to_domain(m: AssignmentModel) -> Assignment:
    return Assignment(
        id=m.id,
        entity_type=EntityType(m.entity_type),
        entity_id=m.entity_id,
        agent_id=m.agent_id,
        priority=Priority(m.priority),
        assignment_type=AssignmentType(m.assignment_type),
        assigned_at=as_utc(m.assigned_at),
        sla_deadline=as_utc(m.sla_deadline),
        assigned_by=m.assigned_by,
        assignment_reason=m.assignment_reason,
        status=AssignmentStatus(m.status),
        transfer_history=[
            TransferRecord(
                from_agent_id=t.from_agent_id,
                to_agent_id=t.to_agent_id,
                reason=t.reason,
                at=as_utc(t.transferred_at),
            )
            for t in sorted(m.transfers, key=lambda t: t.sequence)
        ],
        escalation_level=m.escalation_level,
        escalated_at=as_utc(m.escalated_at),
        escalated_to=m.escalated_to,
        sla_met=m.sla_met,
        sla_breach_reason=m.sla_breach_reason,
        completed_at=as_utc(m.completed_at),
        completion_reason=CompletionReason(m.completion_reason) if m.completion_reason else None,
        satisfaction_score=m.satisfaction_score,
        cancelled_at=as_utc(m.cancelled_at),
        cancellation_reason=m.cancellation_reason,
        workload_score=m.workload_score,
        capacity_utilization=m.capacity_utilization,
        required_skills=frozenset(m.required_skills or ()),
        agent_skills=frozenset(m.agent_skills or ()),
        skill_match_score=m.skill_match_score,
        first_response_time=m.first_response_time,
        average_response_time=m.average_response_time,
        resolution_time=m.resolution_time,
        total_messages=m.total_messages,
        total_interactions=m.total_interactions,
        last_activity_at=as_utc(m.last_activity_at),
        tags=set(m.tags or ()),
        custom_fields={f.key: f.value for f in m.custom_fields},
    )


def _write_assignment(m: AssignmentModel, a: Assignment) -> None:
    """Copy mutable state onto the row. Identity columns are written once, in ``add``."""
    m.agent_id = a.agent_id
    m.status = a.status.value
    m.priority = a.priority.value
    m.escalation_level = a.escalation_level
    m.escalated_at = a.escalated_at
    m.escalated_to = a.escalated_to
    m.sla_deadline = a.sla_deadline
    m.sla_met = a.sla_met
    m.sla_breach_reason = a.sla_breach_reason
    m.completed_at = a.completed_at
    m.completion_reason = a.completion_reason.value if a.completion_reason else None
    m.satisfaction_score = a.satisfaction_score
    m.cancelled_at = a.cancelled_at
    m.cancellation_reason = a.cancellation_reason
    m.workload_score = a.workload_score
    m.capacity_utilization = a.capacity_utilization
    m.required_skills = sorted(a.required_skills)
    m.agent_skills = sorted(a.agent_skills)
    m.skill_match_score = a.skill_match_score
    m.first_response_time = a.first_response_time
    m.average_response_time = a.average_response_time
    m.resolution_time = a.resolution_time
    m.total_messages = a.total_messages
    m.total_interactions = a.total_interactions
    m.last_activity_at = a.last_activity_at
    m.tags = sorted(a.tags)


def _new_assignment_model(a: Assignment) -> AssignmentModel:
    m = AssignmentModel(
        id=a.id,
        entity_type=a.entity_type.value,
        entity_id=a.entity_id,
        assignment_type=a.assignment_type.value,
        assignment_reason=a.assignment_reason,
        assigned_at=a.assigned_at,
        assigned_by=a.assigned_by,
    )
    _write_assignment(m, a)
    m.transfers = []
    m.custom_fields = []
    _sync_transfers(m, a)
    _sync_custom_fields(m, a)
    return m


def _sync_transfers(m: AssignmentModel, a: Assignment) -> None:
    """Append history entries the row doesn't have yet; existing rows are never touched."""
    known = len(m.transfers)
    for sequence, record in enumerate(a.transfer_history[known:], start=known + 1):
        m.transfers.append(
            AssignmentTransferModel(
                sequence=sequence,
                from_agent_id=record.from_agent_id,
                to_agent_id=record.to_agent_id,
                reason=record.reason,
                transferred_at=record.at,
            )
        )


def _sync_custom_fields(m: AssignmentModel, a: Assignment) -> None:
    existing = {f.key: f for f in m.custom_fields}
    for key, value in a.custom_fields.items():
        if key in existing:
            existing[key].value = value
        else:
            m.custom_fields.append(AssignmentCustomFieldModel(key=key, value=value))
    for key, row in existing.items():
        if key not in a.custom_fields:
            m.custom_fields.remove(row)


def _apply_filter(stmt: Select, filters: AssignmentFilter | None) -> Select:
    if filters is None:
        return stmt
    if filters.status is not None:
        stmt = stmt.where(AssignmentModel.status == AssignmentStatus(filters.status).value)
    if filters.entity_type is not None:
        stmt = stmt.where(AssignmentModel.entity_type == EntityType(filters.entity_type).value)
    if filters.priority is not None:
        stmt = stmt.where(AssignmentModel.priority == Priority(filters.priority).value)
    if filters.offset:
        stmt = stmt.offset(filters.offset)
    if filters.limit is not None:
        stmt = stmt.limit(filters.limit)
    return stmt


@contextmanager
def _store_errors(action: str) -> Iterator[None]:
    try:
        yield
    except (SQLAlchemyError, OSError) as e:
        logger.exception("Assignment store failure during %s", action)
        raise StoreUnavailable(f"Assignment store unavailable during {action}") from e


async def commit(session: AsyncSession) -> None:
    """Commit the request transaction before the response is built."""
    with _store_errors("commit"):
        await session.commit()


# ─── Repositories ────────────────────────────────────────────────────


class SqlAssignmentRepository(AssignmentRepository):
    def __init__(self, session: AsyncSession):
        self._s = session

    async def add(self, assignment: Assignment) -> Assignment:
        m = _new_assignment_model(assignment)
        with _store_errors("add"):
            try:
                # SAVEPOINT: a unique-index violation must not abort the caller's transaction
                async with self._s.begin_nested():
                    self._s.add(m)
                    await self._s.flush()
            except IntegrityError as e:
                raise DuplicateAssignment(assignment.entity_type.value, assignment.entity_id) from e
        return assignment

    async def get(self, assignment_id: str) -> Assignment | None:
        with _store_errors("get"):
            m = await self._s.get(AssignmentModel, assignment_id)
        return _assignment_to_domain(m) if m else None

    async def get_for_update(self, assignment_id: str) -> Assignment | None:
        with _store_errors("get_for_update"):
            result = await self._s.execute(
                select(AssignmentModel)
                .where(AssignmentModel.id == assignment_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            m = result.scalar_one_or_none()
        return _assignment_to_domain(m) if m else None

    async def update(self, assignment: Assignment) -> Assignment:
        with _store_errors("update"):
            m = await self._s.get(AssignmentModel, assignment.id)
            if m is None:
                raise NotFound(assignment.id)
            _write_assignment(m, assignment)
            _sync_transfers(m, assignment)
            _sync_custom_fields(m, assignment)
            await self._s.flush()
        return assignment

    async def get_active_for_entity(
        self, entity_type: EntityType, entity_id: str
    ) -> Assignment | None:
        with _store_errors("get_active_for_entity"):
            result = await self._s.execute(
                select(AssignmentModel).where(
                    AssignmentModel.entity_type == EntityType(entity_type).value,
                    AssignmentModel.entity_id == entity_id,
                    AssignmentModel.status == AssignmentStatus.ACTIVE.value,
                )
            )
            m = result.scalar_one_or_none()
        return _assignment_to_domain(m) if m else None

    async def list_by_agent(
        self, agent_id: str, filters: AssignmentFilter | None = None
    ) -> list[Assignment]:
        stmt = (
            select(AssignmentModel)
            .where(AssignmentModel.agent_id == agent_id)
            .order_by(AssignmentModel.assigned_at.desc(), AssignmentModel.id)
        )
        with _store_errors("list_by_agent"):
            result = await self._s.execute(_apply_filter(stmt, filters))
            return [_assignment_to_domain(m) for m in result.scalars()]

    async def list_overdue(self, now: datetime) -> list[Assignment]:
        with _store_errors("list_overdue"):
            result = await self._s.execute(
                select(AssignmentModel)
                .where(
                    AssignmentModel.status.in_(_LIVE_STATUSES),
                    AssignmentModel.sla_deadline < now,
                )
                .order_by(AssignmentModel.sla_deadline, AssignmentModel.id)
            )
            return [_assignment_to_domain(m) for m in result.scalars()]

    async def count_active_by_agent(self, agent_id: str) -> int:
        with _store_errors("count_active_by_agent"):
            result = await self._s.execute(
                select(func.count(AssignmentModel.id)).where(
                    AssignmentModel.agent_id == agent_id,
                    AssignmentModel.status == AssignmentStatus.ACTIVE.value,
                )
            )
            return result.scalar() or 0

    async def list_for_agent_window(
        self, agent_id: str, start: datetime | None = None, end: datetime | None = None
    ) -> list[Assignment]:
        stmt = select(AssignmentModel).where(AssignmentModel.agent_id == agent_id)
        if start is not None:
            stmt = stmt.where(AssignmentModel.assigned_at >= start)
        if end is not None:
            stmt = stmt.where(AssignmentModel.assigned_at <= end)
        with _store_errors("list_for_agent_window"):
            result = await self._s.execute(stmt.order_by(AssignmentModel.assigned_at))
            return [_assignment_to_domain(m) for m in result.scalars()]

    async def list_all(self, filters: AssignmentFilter | None = None) -> list[Assignment]:
        stmt = select(AssignmentModel).order_by(AssignmentModel.assigned_at, AssignmentModel.id)
        with _store_errors("list_all"):
            result = await self._s.execute(_apply_filter(stmt, filters))
            return [_assignment_to_domain(m) for m in result.scalars()]


class SqlAgentDirectory(AgentDirectory):
    def __init__(self, session: AsyncSession):
        self._s = session

    async def get_by_id(self, agent_id: str) -> Agent | None:
        with _store_errors("agent lookup"):
            m = await self._s.get(AgentModel, agent_id)
        return _agent_to_domain(m) if m else None

    async def get_skills(self, agent_id: str) -> set[str]:
        agent = await self.get_by_id(agent_id)
        return set(agent.skills) if agent else set()
