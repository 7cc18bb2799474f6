"""WorkloadAggregator — per-agent workload and performance figures.

Read-only: it scans assignments through the repository and never writes.
Snapshots may be slightly stale under concurrent writes, which is fine for
reporting.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from crm_assign.application.ports.assignment_repo import AssignmentFilter, AssignmentRepository
from crm_assign.domain.clock import Clock, as_utc, utcnow
from crm_assign.domain.entities.assignment import Assignment
from crm_assign.domain.policies.workload import capacity_utilization
from crm_assign.domain.value_objects.enums import AssignmentStatus

logger = logging.getLogger(__name__)

DEFAULT_MAX_CAPACITY = 20


@dataclass(frozen=True)
class AgentWorkload:
    agent_id: str
    active_assignments: int
    max_capacity: int
    capacity_utilization: float


@dataclass
class PerformanceFigures:
    """Counts and averages over a set of assignments."""

    total: int = 0
    completed: int = 0
    overdue: int = 0
    escalated: int = 0
    avg_first_response_time: float | None = None
    avg_resolution_time: float | None = None
    avg_satisfaction_score: float | None = None
    sla_met_rate: float | None = None


@dataclass
class AgentPerformance(PerformanceFigures):
    agent_id: str = ""
    start: datetime | None = None
    end: datetime | None = None
    by_status: dict[str, int] = field(default_factory=dict)
    by_entity_type: dict[str, PerformanceFigures] = field(default_factory=dict)


@dataclass
class AgentReport:
    workload: AgentWorkload
    performance: AgentPerformance


@dataclass
class AssignmentStats(PerformanceFigures):
    by_status: dict[str, int] = field(default_factory=dict)
    by_entity_type: dict[str, int] = field(default_factory=dict)
    by_priority: dict[str, int] = field(default_factory=dict)
    by_assignment_type: dict[str, int] = field(default_factory=dict)


def _average(values: Iterable[float | None]) -> float | None:
    present = [v for v in values if v is not None]
    if not present:
        return None
    return sum(present) / len(present)


class WorkloadAggregator:
    def __init__(
        self,
        assignment_repo: AssignmentRepository,
        max_capacity: int = DEFAULT_MAX_CAPACITY,
        clock: Clock = utcnow,
    ):
        if max_capacity <= 0:
            raise ValueError("max_capacity must be positive")
        self._assignments = assignment_repo
        self._max_capacity = max_capacity
        self._clock = clock

    async def current_workload(self, agent_id: str) -> AgentWorkload:
        """Live load: only assignments in status ``active`` count."""
        active = await self._assignments.count_active_by_agent(agent_id)
        return AgentWorkload(
            agent_id=agent_id,
            active_assignments=active,
            max_capacity=self._max_capacity,
            capacity_utilization=capacity_utilization(active, self._max_capacity),
        )

    async def performance(
        self,
        agent_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> AgentPerformance:
        """Historical figures over assignments assigned within [start, end].

        Naive bounds are taken as UTC.
        """
        start, end = as_utc(start), as_utc(end)
        records = await self._assignments.list_for_agent_window(agent_id, start, end)
        now = self._clock()

        result = AgentPerformance(agent_id=agent_id, start=start, end=end)
        self._fill_figures(result, records, now)
        result.by_status = dict(Counter(a.status.value for a in records))

        grouped: dict[str, list[Assignment]] = {}
        for a in records:
            grouped.setdefault(a.entity_type.value, []).append(a)
        for entity_type, items in sorted(grouped.items()):
            figures = PerformanceFigures()
            self._fill_figures(figures, items, now)
            result.by_entity_type[entity_type] = figures

        logger.debug("Performance for agent %s: %d assignments in window", agent_id, result.total)
        return result

    async def agent_report(
        self,
        agent_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> AgentReport:
        return AgentReport(
            workload=await self.current_workload(agent_id),
            performance=await self.performance(agent_id, start, end),
        )

    async def summary(self, filters: AssignmentFilter | None = None) -> AssignmentStats:
        """Totals across all agents (optionally filtered)."""
        records = await self._assignments.list_all(filters or AssignmentFilter())
        stats = AssignmentStats()
        self._fill_figures(stats, records, self._clock())
        stats.by_status = {s.value: 0 for s in AssignmentStatus}
        stats.by_status.update(Counter(a.status.value for a in records))
        stats.by_entity_type = dict(Counter(a.entity_type.value for a in records))
        stats.by_priority = dict(Counter(a.priority.value for a in records))
        stats.by_assignment_type = dict(Counter(a.assignment_type.value for a in records))
        return stats

    @staticmethod
    def _fill_figures(target: PerformanceFigures, records: list[Assignment], now: datetime) -> None:
        completed = [a for a in records if a.is_completed]

        target.total = len(records)
        target.completed = len(completed)
        target.overdue = sum(1 for a in records if a.is_overdue(now))
        target.escalated = sum(1 for a in records if a.is_escalated)
        target.avg_first_response_time = _average(a.first_response_time for a in records)
        target.avg_resolution_time = _average(a.resolution_time for a in records)
        target.avg_satisfaction_score = _average(a.satisfaction_score for a in records)
        target.sla_met_rate = (
            sum(1 for a in completed if a.sla_met) / len(completed) if completed else None
        )
