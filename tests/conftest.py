"""Pytest configuration and shared fixtures.

The fakes here stand in for the SQL adapters: they keep copies of stored
records (so unsaved mutations never leak) and enforce the same "one active
assignment per entity" rule the database index does, atomically on insert.
"""

from __future__ import annotations

import asyncio
import copy
from datetime import datetime, timedelta, timezone

import pytest

from crm_assign.application.ports.agent_directory import AgentDirectory
from crm_assign.application.ports.assignment_repo import AssignmentFilter, AssignmentRepository
from crm_assign.application.use_cases.assignment_lifecycle import AssignmentLifecycleService
from crm_assign.application.use_cases.workload_report import WorkloadAggregator
from crm_assign.domain.entities.agent import Agent
from crm_assign.domain.entities.assignment import Assignment
from crm_assign.domain.errors import DuplicateAssignment, NotFound
from crm_assign.domain.policies.sla import SlaPolicy

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class FrozenClock:
    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class FakeAssignmentRepo(AssignmentRepository):
    def __init__(self):
        self.records: dict[str, Assignment] = {}

    async def add(self, assignment):
        await asyncio.sleep(0)  # yield like a real round-trip would
        for existing in self.records.values():
            if (
                existing.is_active
                and existing.entity_type == assignment.entity_type
                and existing.entity_id == assignment.entity_id
            ):
                raise DuplicateAssignment(assignment.entity_type.value, assignment.entity_id)
        self.records[assignment.id] = copy.deepcopy(assignment)
        return assignment

    async def get(self, assignment_id):
        found = self.records.get(assignment_id)
        return copy.deepcopy(found) if found else None

    async def get_for_update(self, assignment_id):
        return await self.get(assignment_id)

    async def update(self, assignment):
        if assignment.id not in self.records:
            raise NotFound(assignment.id)
        self.records[assignment.id] = copy.deepcopy(assignment)
        return assignment

    async def get_active_for_entity(self, entity_type, entity_id):
        for a in self.records.values():
            if a.is_active and a.entity_type == entity_type and a.entity_id == entity_id:
                return copy.deepcopy(a)
        return None

    async def list_by_agent(self, agent_id, filters=None):
        items = [a for a in self.records.values() if a.agent_id == agent_id]
        items.sort(key=lambda a: a.assigned_at, reverse=True)
        return self._filtered(items, filters)

    async def list_overdue(self, now):
        items = [a for a in self.records.values() if not a.is_terminal and a.sla_deadline < now]
        return [copy.deepcopy(a) for a in sorted(items, key=lambda a: a.sla_deadline)]

    async def count_active_by_agent(self, agent_id):
        return sum(
            1 for a in self.records.values()
            if a.agent_id == agent_id and a.is_active
        )

    async def list_for_agent_window(self, agent_id, start=None, end=None):
        return [
            copy.deepcopy(a) for a in self.records.values()
            if a.agent_id == agent_id
            and (start is None or a.assigned_at >= start)
            and (end is None or a.assigned_at <= end)
        ]

    async def list_all(self, filters=None):
        return self._filtered(sorted(self.records.values(), key=lambda a: a.assigned_at), filters)

    @staticmethod
    def _filtered(items, filters: AssignmentFilter | None):
        if filters is not None:
            if filters.status is not None:
                items = [a for a in items if a.status == filters.status]
            if filters.entity_type is not None:
                items = [a for a in items if a.entity_type == filters.entity_type]
            if filters.priority is not None:
                items = [a for a in items if a.priority == filters.priority]
            items = items[filters.offset:]
            if filters.limit is not None:
                items = items[: filters.limit]
        return [copy.deepcopy(a) for a in items]


class FakeAgentDirectory(AgentDirectory):
    def __init__(self, agents: list[Agent] | None = None):
        self._agents = {a.id: a for a in agents or []}

    async def get_by_id(self, agent_id):
        return self._agents.get(agent_id)

    async def get_skills(self, agent_id):
        agent = self._agents.get(agent_id)
        return set(agent.skills) if agent else set()


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def assignment_repo():
    return FakeAssignmentRepo()


@pytest.fixture
def agent_directory():
    return FakeAgentDirectory(
        [
            Agent(id="agent-a", name="Alice", skills={"billing", "kyc"}),
            Agent(id="agent-b", name="Bob", skills={"billing"}),
            Agent(id="agent-c", name="Carol", skills=set()),
        ]
    )


@pytest.fixture
def service(assignment_repo, agent_directory, clock):
    return AssignmentLifecycleService(
        assignment_repo=assignment_repo,
        sla_policy=SlaPolicy(),
        agent_directory=agent_directory,
        clock=clock,
    )


@pytest.fixture
def aggregator(assignment_repo, clock):
    return WorkloadAggregator(assignment_repo=assignment_repo, max_capacity=20, clock=clock)
