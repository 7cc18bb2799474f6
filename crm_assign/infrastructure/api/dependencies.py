"""FastAPI dependency injection — wires adapters into use cases."""

from __future__ import annotations

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from crm_assign.adapters.persistence.database import get_session
from crm_assign.adapters.persistence.repositories import (
    SqlAgentDirectory,
    SqlAssignmentRepository,
)
from crm_assign.application.use_cases.assignment_lifecycle import AssignmentLifecycleService
from crm_assign.application.use_cases.workload_report import WorkloadAggregator
from crm_assign.config import settings
from crm_assign.domain.policies.sla import SlaPolicy

# Built once: the policy is immutable and configuration doesn't change at runtime
_sla_policy = SlaPolicy.from_settings(settings)


def get_lifecycle_service(
    session: AsyncSession = Depends(get_session),
) -> AssignmentLifecycleService:
    return AssignmentLifecycleService(
        assignment_repo=SqlAssignmentRepository(session),
        sla_policy=_sla_policy,
        agent_directory=SqlAgentDirectory(session),
        max_escalation_level=settings.max_escalation_level,
    )


def get_workload_aggregator(
    session: AsyncSession = Depends(get_session),
) -> WorkloadAggregator:
    return WorkloadAggregator(
        assignment_repo=SqlAssignmentRepository(session),
        max_capacity=settings.max_agent_capacity,
    )
