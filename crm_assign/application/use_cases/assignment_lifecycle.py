"""AssignmentLifecycleService — create, transfer, escalate, complete, cancel."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from datetime import timedelta
from typing import Any

from crm_assign.application.ports.agent_directory import AgentDirectory
from crm_assign.application.ports.assignment_repo import AssignmentFilter, AssignmentRepository
from crm_assign.domain.clock import Clock, utcnow
from crm_assign.domain.entities.assignment import (
    DEFAULT_MAX_ESCALATION_LEVEL,
    Assignment,
    MetricsUpdate,
)
from crm_assign.domain.errors import NotFound
from crm_assign.domain.policies.sla import SlaPolicy
from crm_assign.domain.value_objects.enums import (
    AssignmentType,
    CompletionReason,
    EntityType,
    Priority,
)

logger = logging.getLogger(__name__)


def new_assignment_id() -> str:
    return f"ASM_{uuid.uuid4().hex}"


class AssignmentLifecycleService:
    """The only writer of Assignment state.

    Every mutation is a read-modify-write against the repository: the record
    is loaded with ``get_for_update`` (row lock for the caller's transaction),
    the entity applies the transition, and the result is written back. Rule
    violations are raised to the caller unchanged; the service never retries.
    """

    def __init__(
        self,
        assignment_repo: AssignmentRepository,
        sla_policy: SlaPolicy,
        agent_directory: AgentDirectory | None = None,
        clock: Clock = utcnow,
        max_escalation_level: int = DEFAULT_MAX_ESCALATION_LEVEL,
    ):
        self._assignments = assignment_repo
        self._sla = sla_policy
        self._directory = agent_directory
        self._clock = clock
        self._max_escalation_level = max_escalation_level

    # ── Commands ────────────────────────────────────────────────────

    async def create(
        self,
        entity_type: EntityType,
        entity_id: str,
        agent_id: str,
        priority: Priority = Priority.MEDIUM,
        assignment_type: AssignmentType = AssignmentType.MANUAL,
        required_skills: Iterable[str] | None = None,
        assigned_by: str | None = None,
        assignment_reason: str | None = None,
        agent_skills: Iterable[str] | None = None,
        tags: Iterable[str] | None = None,
        custom_fields: dict[str, Any] | None = None,
    ) -> Assignment:
        """Bind a work item to an agent.

        Uniqueness of the active assignment per entity is enforced by the
        store on insert (``DuplicateAssignment``), not by a prior lookup.
        """
        now = self._clock()
        priority = Priority(priority)
        if agent_skills is None:
            agent_skills = await self._held_skills(agent_id)

        assignment = Assignment(
            id=new_assignment_id(),
            entity_type=EntityType(entity_type),
            entity_id=entity_id,
            agent_id=agent_id,
            priority=priority,
            assignment_type=AssignmentType(assignment_type),
            assigned_at=now,
            sla_deadline=self._sla.deadline_for(priority, now),
            assigned_by=assigned_by,
            assignment_reason=assignment_reason,
            tags=set(tags or ()),
            custom_fields=dict(custom_fields or {}),
        )
        assignment.apply_skills(set(required_skills or ()), set(agent_skills))

        await self._assignments.add(assignment)
        logger.info(
            "Assignment %s created: %s:%s → agent %s (priority=%s, sla=%s, skill_match=%.2f)",
            assignment.id, assignment.entity_type.value, entity_id, agent_id,
            priority.value, assignment.sla_deadline.isoformat(), assignment.skill_match_score,
        )
        return assignment

    async def transfer(
        self,
        assignment_id: str,
        to_agent_id: str,
        reason: str | None = None,
        priority: Priority | None = None,
    ) -> Assignment:
        assignment = await self._load_for_update(assignment_id)
        held = await self._held_skills(to_agent_id) if self._directory else None

        record = assignment.transfer(to_agent_id, reason, self._clock(), agent_skills=held)
        if priority is not None:
            assignment.change_priority(priority, self._sla)

        await self._assignments.update(assignment)
        logger.info(
            "Assignment %s transferred: %s → %s (reason=%s)",
            assignment.id, record.from_agent_id, record.to_agent_id, reason,
        )
        return assignment

    async def escalate(
        self,
        assignment_id: str,
        to_agent_id: str | None = None,
        level: int | None = None,
    ) -> Assignment:
        assignment = await self._load_for_update(assignment_id)
        assignment.escalate(to_agent_id, level, self._clock(), self._max_escalation_level)

        await self._assignments.update(assignment)
        logger.info(
            "Assignment %s escalated to level %d (escalated_to=%s, owner=%s)",
            assignment.id, assignment.escalation_level, to_agent_id, assignment.agent_id,
        )
        return assignment

    async def complete(
        self,
        assignment_id: str,
        completion_reason: CompletionReason,
        satisfaction_score: float | None = None,
        notes: str | None = None,
        sla_breach_reason: str | None = None,
    ) -> Assignment:
        assignment = await self._load_for_update(assignment_id)
        assignment.complete(
            completion_reason,
            satisfaction_score,
            self._clock(),
            notes=notes,
            sla_breach_reason=sla_breach_reason,
        )

        await self._assignments.update(assignment)
        if assignment.sla_met:
            logger.info("Assignment %s completed within SLA", assignment.id)
        else:
            logger.warning(
                "Assignment %s completed after SLA deadline %s",
                assignment.id, assignment.sla_deadline.isoformat(),
            )
        return assignment

    async def cancel(self, assignment_id: str, reason: str | None = None) -> Assignment:
        assignment = await self._load_for_update(assignment_id)
        assignment.cancel(reason, self._clock())

        await self._assignments.update(assignment)
        logger.info("Assignment %s cancelled (reason=%s)", assignment.id, reason)
        return assignment

    async def update_metrics(self, assignment_id: str, update: MetricsUpdate) -> Assignment:
        assignment = await self._load_for_update(assignment_id)
        assignment.update_metrics(update, self._clock())

        await self._assignments.update(assignment)
        logger.debug("Assignment %s metrics updated: %s", assignment.id, update)
        return assignment

    async def change_priority(self, assignment_id: str, priority: Priority) -> Assignment:
        assignment = await self._load_for_update(assignment_id)
        assignment.change_priority(priority, self._sla)

        await self._assignments.update(assignment)
        logger.info(
            "Assignment %s priority → %s (sla=%s)",
            assignment.id, assignment.priority.value, assignment.sla_deadline.isoformat(),
        )
        return assignment

    async def record_workload(
        self,
        assignment_id: str,
        workload_score: float,
        capacity_utilization: float | None = None,
    ) -> Assignment:
        """Store a workload snapshot. Derived fields, so terminal records accept it too."""
        assignment = await self._load_for_update(assignment_id)
        assignment.record_workload(workload_score, capacity_utilization)

        await self._assignments.update(assignment)
        return assignment

    # ── Queries ─────────────────────────────────────────────────────

    async def get(self, assignment_id: str) -> Assignment:
        assignment = await self._assignments.get(assignment_id)
        if assignment is None:
            raise NotFound(assignment_id)
        return assignment

    async def get_active_for_entity(self, entity_type: EntityType, entity_id: str) -> Assignment | None:
        return await self._assignments.get_active_for_entity(EntityType(entity_type), entity_id)

    async def list_by_agent(
        self, agent_id: str, filters: AssignmentFilter | None = None
    ) -> list[Assignment]:
        return await self._assignments.list_by_agent(agent_id, filters or AssignmentFilter())

    async def list_overdue(self) -> list[Assignment]:
        return await self._assignments.list_overdue(self._clock())

    def is_overdue(self, assignment: Assignment) -> bool:
        return assignment.is_overdue(self._clock())

    def assignment_duration(self, assignment: Assignment) -> timedelta:
        return assignment.duration(self._clock())

    # ── Helpers ─────────────────────────────────────────────────────

    async def _load_for_update(self, assignment_id: str) -> Assignment:
        assignment = await self._assignments.get_for_update(assignment_id)
        if assignment is None:
            raise NotFound(assignment_id)
        return assignment

    async def _held_skills(self, agent_id: str) -> set[str]:
        if self._directory is None:
            return set()
        return await self._directory.get_skills(agent_id)
