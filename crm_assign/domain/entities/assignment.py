"""Assignment entity — the binding of one work item to one responsible agent.

State machine::

    active ──► transferred ──► completed
      │             │  ▲
      │             └──┘ (further hand-offs)
      ├──────────────────► completed
      └──────────────────► cancelled   (also reachable from transferred)

``completed`` and ``cancelled`` are terminal: apart from the derived
reporting fields (``workload_score``, ``capacity_utilization``) nothing on a
terminal assignment changes again.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from crm_assign.domain.errors import (
    InvalidEscalationLevel,
    InvalidMetricValue,
    InvalidScore,
    InvalidTransition,
    NonMonotonicUpdate,
    NoOpTransfer,
)
from crm_assign.domain.policies.skill_match import match_score, normalize_skills
from crm_assign.domain.policies.sla import SlaPolicy
from crm_assign.domain.policies.workload import clamp_percentage
from crm_assign.domain.value_objects.enums import (
    AssignmentStatus,
    AssignmentType,
    CompletionReason,
    EntityType,
    Priority,
)
from crm_assign.domain.value_objects.transfer_record import TransferRecord

ALLOWED_TRANSITIONS: dict[AssignmentStatus, frozenset[AssignmentStatus]] = {
    AssignmentStatus.ACTIVE: frozenset(
        {AssignmentStatus.TRANSFERRED, AssignmentStatus.COMPLETED, AssignmentStatus.CANCELLED}
    ),
    AssignmentStatus.TRANSFERRED: frozenset(
        {AssignmentStatus.TRANSFERRED, AssignmentStatus.COMPLETED, AssignmentStatus.CANCELLED}
    ),
    AssignmentStatus.COMPLETED: frozenset(),
    AssignmentStatus.CANCELLED: frozenset(),
}

SATISFACTION_MIN = 0.0
SATISFACTION_MAX = 5.0
DEFAULT_MAX_ESCALATION_LEVEL = 5
COMPLETION_NOTES_FIELD = "completion_notes"


@dataclass
class MetricsUpdate:
    """Activity figures reported by the messaging subsystem. ``None`` = unchanged."""

    first_response_time: float | None = None
    average_response_time: float | None = None
    resolution_time: float | None = None
    total_messages: int | None = None
    total_interactions: int | None = None

    def is_empty(self) -> bool:
        return all(v is None for v in vars(self).values())


@dataclass
class Assignment:
    id: str
    entity_type: EntityType
    entity_id: str
    agent_id: str
    priority: Priority
    assignment_type: AssignmentType
    assigned_at: datetime
    sla_deadline: datetime
    assigned_by: str | None = None
    assignment_reason: str | None = None
    status: AssignmentStatus = AssignmentStatus.ACTIVE

    transfer_history: list[TransferRecord] = field(default_factory=list)

    escalation_level: int = 0
    escalated_at: datetime | None = None
    escalated_to: str | None = None

    sla_met: bool | None = None
    sla_breach_reason: str | None = None

    completed_at: datetime | None = None
    completion_reason: CompletionReason | None = None
    satisfaction_score: float | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None

    workload_score: float = 0.0
    capacity_utilization: float = 0.0

    required_skills: frozenset[str] = field(default_factory=frozenset)
    agent_skills: frozenset[str] = field(default_factory=frozenset)
    skill_match_score: float = 1.0

    first_response_time: float | None = None
    average_response_time: float | None = None
    resolution_time: float | None = None
    total_messages: int = 0
    total_interactions: int = 0
    last_activity_at: datetime | None = None

    tags: set[str] = field(default_factory=set)
    custom_fields: dict[str, Any] = field(default_factory=dict)

    # ── Derived views ───────────────────────────────────────────────

    @property
    def is_active(self) -> bool:
        return self.status == AssignmentStatus.ACTIVE

    @property
    def is_completed(self) -> bool:
        return self.status == AssignmentStatus.COMPLETED

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def is_escalated(self) -> bool:
        return self.escalation_level > 0

    @property
    def is_high_priority(self) -> bool:
        return self.priority in (Priority.HIGH, Priority.URGENT)

    def is_overdue(self, now: datetime) -> bool:
        return not self.is_terminal and now > self.sla_deadline

    def duration(self, now: datetime) -> timedelta:
        return (self.completed_at or now) - self.assigned_at

    # ── Skills ──────────────────────────────────────────────────────

    def apply_skills(self, required: set[str] | None, held: set[str] | None) -> None:
        self.required_skills = normalize_skills(required)
        self.agent_skills = normalize_skills(held)
        self.skill_match_score = match_score(self.required_skills, self.agent_skills)

    # ── Transitions ─────────────────────────────────────────────────

    def transfer(
        self,
        to_agent_id: str,
        reason: str | None,
        now: datetime,
        agent_skills: set[str] | None = None,
    ) -> TransferRecord:
        """Hand the work item to another agent. The SLA deadline is untouched."""
        self._require_transition(AssignmentStatus.TRANSFERRED, "transfer")
        if to_agent_id == self.agent_id:
            raise NoOpTransfer(self.id, to_agent_id)

        record = TransferRecord(
            from_agent_id=self.agent_id,
            to_agent_id=to_agent_id,
            reason=reason,
            at=now,
        )
        self.transfer_history.append(record)
        self.agent_id = to_agent_id
        self.status = AssignmentStatus.TRANSFERRED
        if agent_skills is not None:
            self.apply_skills(self.required_skills, agent_skills)
        return record

    def escalate(
        self,
        to_agent_id: str | None,
        level: int | None,
        now: datetime,
        max_level: int = DEFAULT_MAX_ESCALATION_LEVEL,
    ) -> None:
        """Raise the escalation level. Ownership (``agent_id``) never changes here."""
        self._require_live("escalate")
        target = self.escalation_level + 1 if level is None else level
        if target <= self.escalation_level or target > max_level:
            raise InvalidEscalationLevel(self.id, self.escalation_level, target, max_level)

        self.escalation_level = target
        self.escalated_at = now
        self.escalated_to = to_agent_id

    def complete(
        self,
        completion_reason: CompletionReason,
        satisfaction_score: float | None,
        now: datetime,
        notes: str | None = None,
        sla_breach_reason: str | None = None,
    ) -> None:
        self._require_transition(AssignmentStatus.COMPLETED, "complete")
        if satisfaction_score is not None and not (
            SATISFACTION_MIN <= satisfaction_score <= SATISFACTION_MAX
        ):
            raise InvalidScore(satisfaction_score, SATISFACTION_MIN, SATISFACTION_MAX)

        self.status = AssignmentStatus.COMPLETED
        self.completed_at = now
        self.completion_reason = CompletionReason(completion_reason)
        self.satisfaction_score = satisfaction_score
        self.sla_met = now <= self.sla_deadline
        if not self.sla_met and sla_breach_reason:
            self.sla_breach_reason = sla_breach_reason
        if notes:
            self.custom_fields[COMPLETION_NOTES_FIELD] = notes

    def cancel(self, reason: str | None, now: datetime) -> None:
        """Logical delete. ``sla_met`` stays unset: cancelling is not fulfilment."""
        self._require_transition(AssignmentStatus.CANCELLED, "cancel")
        self.status = AssignmentStatus.CANCELLED
        self.cancelled_at = now
        self.cancellation_reason = reason

    def update_metrics(self, update: MetricsUpdate, now: datetime) -> None:
        self._require_live("update metrics of")

        for name in ("first_response_time", "average_response_time", "resolution_time",
                     "total_messages", "total_interactions"):
            value = getattr(update, name)
            if value is not None and value < 0:
                raise InvalidMetricValue(name, value)

        for name in ("total_messages", "total_interactions"):
            value = getattr(update, name)
            current = getattr(self, name)
            if value is not None and value < current:
                raise NonMonotonicUpdate(name, current, value)

        for name, value in vars(update).items():
            if value is not None:
                setattr(self, name, value)
        self.last_activity_at = now

    def change_priority(self, priority: Priority, sla_policy: SlaPolicy) -> None:
        """Change priority; the deadline follows only while the assignment is active."""
        self._require_live("change priority of")
        self.priority = Priority(priority)
        if self.is_active:
            self.sla_deadline = sla_policy.deadline_for(self.priority, self.assigned_at)

    def record_workload(self, workload_score: float, capacity_utilization: float | None = None) -> None:
        self.workload_score = clamp_percentage(workload_score)
        if capacity_utilization is not None:
            self.capacity_utilization = clamp_percentage(capacity_utilization)

    # ── Guards ──────────────────────────────────────────────────────

    def _require_transition(self, target: AssignmentStatus, action: str) -> None:
        if target not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransition(self.id, self.status.value, action)

    def _require_live(self, action: str) -> None:
        if self.is_terminal:
            raise InvalidTransition(self.id, self.status.value, action)
