"""Agent endpoints — assignments held by an agent, workload and performance."""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime

from fastapi import APIRouter, Depends, Query

from crm_assign.application.ports.assignment_repo import AssignmentFilter
from crm_assign.application.use_cases.assignment_lifecycle import AssignmentLifecycleService
from crm_assign.application.use_cases.workload_report import WorkloadAggregator
from crm_assign.domain.clock import utcnow
from crm_assign.domain.errors import AssignmentError
from crm_assign.domain.value_objects.enums import AssignmentStatus, EntityType, Priority
from crm_assign.infrastructure.api.dependencies import (
    get_lifecycle_service,
    get_workload_aggregator,
)
from crm_assign.infrastructure.api.errors import to_http_exception
from crm_assign.infrastructure.api.serializers import serialize_assignment

router = APIRouter(prefix="/agents", tags=["agents"])


@router.get("/{agent_id}/assignments")
async def list_agent_assignments(
    agent_id: str,
    status: AssignmentStatus | None = None,
    entity_type: EntityType | None = None,
    priority: Priority | None = None,
    limit: int = Query(default=20, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    service: AssignmentLifecycleService = Depends(get_lifecycle_service),
):
    """Assignments currently or previously owned by an agent, newest first."""
    filters = AssignmentFilter(
        status=status, entity_type=entity_type, priority=priority, limit=limit, offset=offset
    )
    try:
        assignments = await service.list_by_agent(agent_id, filters)
    except AssignmentError as e:
        raise to_http_exception(e) from e
    now = utcnow()
    return {
        "agent_id": agent_id,
        "count": len(assignments),
        "assignments": [serialize_assignment(a, now) for a in assignments],
    }


@router.get("/{agent_id}/workload")
async def agent_workload(
    agent_id: str,
    start: datetime | None = None,
    end: datetime | None = None,
    aggregator: WorkloadAggregator = Depends(get_workload_aggregator),
):
    """Current load plus performance over assignments made within [start, end].

    Window bounds without an offset are read as UTC.
    """
    try:
        report = await aggregator.agent_report(agent_id, start, end)
    except AssignmentError as e:
        raise to_http_exception(e) from e
    return {
        "agent_id": agent_id,
        "current_workload": asdict(report.workload),
        "performance": asdict(report.performance),
    }
