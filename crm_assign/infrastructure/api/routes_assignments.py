"""Assignment endpoints — lifecycle commands + lookups."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from crm_assign.adapters.persistence.database import get_session
from crm_assign.adapters.persistence.models import (
    CUSTOM_FIELD_KEY_LENGTH,
    ID_LENGTH,
    REASON_LENGTH,
)
from crm_assign.adapters.persistence.repositories import commit
from crm_assign.application.ports.assignment_repo import AssignmentFilter
from crm_assign.application.use_cases.assignment_lifecycle import AssignmentLifecycleService
from crm_assign.application.use_cases.workload_report import WorkloadAggregator
from crm_assign.domain.clock import utcnow
from crm_assign.domain.entities.assignment import MetricsUpdate
from crm_assign.domain.errors import AssignmentError
from crm_assign.domain.value_objects.enums import (
    AssignmentStatus,
    AssignmentType,
    CompletionReason,
    EntityType,
    Priority,
)
from crm_assign.infrastructure.api.dependencies import (
    get_lifecycle_service,
    get_workload_aggregator,
)
from crm_assign.infrastructure.api.errors import to_http_exception
from crm_assign.infrastructure.api.serializers import serialize_assignment

router = APIRouter(prefix="/assignments", tags=["assignments"])

# ── Request schemas ─────────────────────────────────────────────────


class CreateAssignmentRequest(BaseModel):
    entity_type: EntityType
    entity_id: str = Field(min_length=1, max_length=ID_LENGTH)
    agent_id: str = Field(min_length=1, max_length=ID_LENGTH)
    priority: Priority = Priority.MEDIUM
    assignment_type: AssignmentType = AssignmentType.MANUAL
    assignment_reason: str | None = Field(default=None, max_length=REASON_LENGTH)
    required_skills: list[str] = Field(default_factory=list)
    assigned_by: str | None = Field(default=None, max_length=ID_LENGTH)
    tags: list[str] = Field(default_factory=list)
    custom_fields: dict[str, Any] = Field(default_factory=dict)

    @field_validator("custom_fields")
    @classmethod
    def check_custom_field_keys(cls, value: dict[str, Any]) -> dict[str, Any]:
        too_long = [k for k in value if len(k) > CUSTOM_FIELD_KEY_LENGTH]
        if too_long:
            raise ValueError(
                f"custom field keys longer than {CUSTOM_FIELD_KEY_LENGTH} characters: {too_long}"
            )
        return value


class TransferRequest(BaseModel):
    to_agent_id: str = Field(min_length=1, max_length=ID_LENGTH)
    reason: str | None = None
    priority: Priority | None = None


class EscalateRequest(BaseModel):
    to_agent_id: str | None = Field(default=None, max_length=ID_LENGTH)
    level: int | None = Field(default=None, ge=1)


class CompleteRequest(BaseModel):
    completion_reason: CompletionReason
    satisfaction_score: float | None = None
    notes: str | None = None
    sla_breach_reason: str | None = None


class CancelRequest(BaseModel):
    reason: str | None = None


class MetricsRequest(BaseModel):
    first_response_time: float | None = None
    average_response_time: float | None = None
    resolution_time: float | None = None
    total_messages: int | None = None
    total_interactions: int | None = None


class PriorityRequest(BaseModel):
    priority: Priority


class WorkloadSnapshotRequest(BaseModel):
    workload_score: float
    capacity_utilization: float | None = None


# ── Endpoints ───────────────────────────────────────────────────────


@router.post("", status_code=201)
async def create_assignment(
    body: CreateAssignmentRequest,
    service: AssignmentLifecycleService = Depends(get_lifecycle_service),
    session: AsyncSession = Depends(get_session),
):
    """Assign a work item to an agent."""
    try:
        assignment = await service.create(
            entity_type=body.entity_type,
            entity_id=body.entity_id,
            agent_id=body.agent_id,
            priority=body.priority,
            assignment_type=body.assignment_type,
            required_skills=body.required_skills,
            assigned_by=body.assigned_by,
            assignment_reason=body.assignment_reason,
            tags=body.tags,
            custom_fields=body.custom_fields,
        )
        await commit(session)
    except AssignmentError as e:
        raise to_http_exception(e) from e
    return serialize_assignment(assignment, utcnow())


@router.get("/overdue")
async def list_overdue(service: AssignmentLifecycleService = Depends(get_lifecycle_service)):
    """Live assignments past their SLA deadline, earliest deadline first."""
    try:
        overdue = await service.list_overdue()
    except AssignmentError as e:
        raise to_http_exception(e) from e
    now = utcnow()
    return {"total": len(overdue), "assignments": [serialize_assignment(a, now) for a in overdue]}


@router.get("/stats")
async def assignment_stats(
    status: AssignmentStatus | None = None,
    entity_type: EntityType | None = None,
    priority: Priority | None = None,
    aggregator: WorkloadAggregator = Depends(get_workload_aggregator),
):
    """Totals and breakdowns across all agents."""
    try:
        stats = await aggregator.summary(
            AssignmentFilter(status=status, entity_type=entity_type, priority=priority)
        )
    except AssignmentError as e:
        raise to_http_exception(e) from e
    return asdict(stats)


@router.get("/by-entity/{entity_type}/{entity_id}")
async def get_active_for_entity(
    entity_type: EntityType,
    entity_id: str,
    service: AssignmentLifecycleService = Depends(get_lifecycle_service),
):
    """The active assignment currently holding a work item."""
    try:
        assignment = await service.get_active_for_entity(entity_type, entity_id)
    except AssignmentError as e:
        raise to_http_exception(e) from e
    if assignment is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "ASSIGNMENT_NOT_FOUND", "message": "No active assignment for entity"},
        )
    return serialize_assignment(assignment, utcnow())


@router.get("/{assignment_id}")
async def get_assignment(
    assignment_id: str,
    service: AssignmentLifecycleService = Depends(get_lifecycle_service),
):
    try:
        assignment = await service.get(assignment_id)
    except AssignmentError as e:
        raise to_http_exception(e) from e
    return serialize_assignment(assignment, utcnow())


@router.post("/{assignment_id}/transfer")
async def transfer_assignment(
    assignment_id: str,
    body: TransferRequest,
    service: AssignmentLifecycleService = Depends(get_lifecycle_service),
    session: AsyncSession = Depends(get_session),
):
    try:
        assignment = await service.transfer(
            assignment_id, body.to_agent_id, reason=body.reason, priority=body.priority
        )
        await commit(session)
    except AssignmentError as e:
        raise to_http_exception(e) from e
    return serialize_assignment(assignment, utcnow())


@router.post("/{assignment_id}/escalate")
async def escalate_assignment(
    assignment_id: str,
    body: EscalateRequest,
    service: AssignmentLifecycleService = Depends(get_lifecycle_service),
    session: AsyncSession = Depends(get_session),
):
    try:
        assignment = await service.escalate(
            assignment_id, to_agent_id=body.to_agent_id, level=body.level
        )
        await commit(session)
    except AssignmentError as e:
        raise to_http_exception(e) from e
    return serialize_assignment(assignment, utcnow())


@router.post("/{assignment_id}/complete")
async def complete_assignment(
    assignment_id: str,
    body: CompleteRequest,
    service: AssignmentLifecycleService = Depends(get_lifecycle_service),
    session: AsyncSession = Depends(get_session),
):
    try:
        assignment = await service.complete(
            assignment_id,
            body.completion_reason,
            satisfaction_score=body.satisfaction_score,
            notes=body.notes,
            sla_breach_reason=body.sla_breach_reason,
        )
        await commit(session)
    except AssignmentError as e:
        raise to_http_exception(e) from e
    return serialize_assignment(assignment, utcnow())


@router.post("/{assignment_id}/cancel")
async def cancel_assignment(
    assignment_id: str,
    body: CancelRequest,
    service: AssignmentLifecycleService = Depends(get_lifecycle_service),
    session: AsyncSession = Depends(get_session),
):
    try:
        assignment = await service.cancel(assignment_id, reason=body.reason)
        await commit(session)
    except AssignmentError as e:
        raise to_http_exception(e) from e
    return serialize_assignment(assignment, utcnow())


@router.patch("/{assignment_id}/metrics")
async def update_metrics(
    assignment_id: str,
    body: MetricsRequest,
    service: AssignmentLifecycleService = Depends(get_lifecycle_service),
    session: AsyncSession = Depends(get_session),
):
    """Activity figures reported by the messaging subsystem."""
    try:
        assignment = await service.update_metrics(assignment_id, MetricsUpdate(**body.model_dump()))
        await commit(session)
    except AssignmentError as e:
        raise to_http_exception(e) from e
    return serialize_assignment(assignment, utcnow())


@router.patch("/{assignment_id}/priority")
async def change_priority(
    assignment_id: str,
    body: PriorityRequest,
    service: AssignmentLifecycleService = Depends(get_lifecycle_service),
    session: AsyncSession = Depends(get_session),
):
    try:
        assignment = await service.change_priority(assignment_id, body.priority)
        await commit(session)
    except AssignmentError as e:
        raise to_http_exception(e) from e
    return serialize_assignment(assignment, utcnow())


@router.patch("/{assignment_id}/workload")
async def record_workload(
    assignment_id: str,
    body: WorkloadSnapshotRequest,
    service: AssignmentLifecycleService = Depends(get_lifecycle_service),
    session: AsyncSession = Depends(get_session),
):
    try:
        assignment = await service.record_workload(
            assignment_id, body.workload_score, body.capacity_utilization
        )
        await commit(session)
    except AssignmentError as e:
        raise to_http_exception(e) from e
    return serialize_assignment(assignment, utcnow())
