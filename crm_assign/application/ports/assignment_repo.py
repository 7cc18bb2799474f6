"""Port interface for assignment persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime

from crm_assign.domain.entities.assignment import Assignment
from crm_assign.domain.value_objects.enums import AssignmentStatus, EntityType, Priority


@dataclass(frozen=True)
class AssignmentFilter:
    """Optional listing filters. ``None`` means "don't filter on this"."""

    status: AssignmentStatus | None = None
    entity_type: EntityType | None = None
    priority: Priority | None = None
    limit: int | None = None
    offset: int = 0


class AssignmentRepository(ABC):
    @abstractmethod
    async def add(self, assignment: Assignment) -> Assignment:
        """Insert a new assignment.

        The store itself must enforce at most one ``active`` assignment per
        (entity_type, entity_id) and raise ``DuplicateAssignment`` on conflict.
        """
        ...

    @abstractmethod
    async def get(self, assignment_id: str) -> Assignment | None:
        ...

    @abstractmethod
    async def get_for_update(self, assignment_id: str) -> Assignment | None:
        """Load an assignment and lock it for the rest of the transaction."""
        ...

    @abstractmethod
    async def update(self, assignment: Assignment) -> Assignment:
        ...

    @abstractmethod
    async def get_active_for_entity(
        self, entity_type: EntityType, entity_id: str
    ) -> Assignment | None:
        ...

    @abstractmethod
    async def list_by_agent(
        self, agent_id: str, filters: AssignmentFilter | None = None
    ) -> list[Assignment]:
        """Newest first (by assigned_at)."""
        ...

    @abstractmethod
    async def list_overdue(self, now: datetime) -> list[Assignment]:
        """Non-terminal assignments whose deadline has passed, earliest deadline first."""
        ...

    @abstractmethod
    async def count_active_by_agent(self, agent_id: str) -> int:
        ...

    @abstractmethod
    async def list_for_agent_window(
        self, agent_id: str, start: datetime | None = None, end: datetime | None = None
    ) -> list[Assignment]:
        """Assignments of the agent with ``start <= assigned_at <= end``."""
        ...

    @abstractmethod
    async def list_all(self, filters: AssignmentFilter | None = None) -> list[Assignment]:
        ...
