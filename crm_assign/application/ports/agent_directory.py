"""Port interface for the agent identity/directory collaborator."""

from abc import ABC, abstractmethod

from crm_assign.domain.entities.agent import Agent


class AgentDirectory(ABC):
    @abstractmethod
    async def get_by_id(self, agent_id: str) -> Agent | None:
        ...

    @abstractmethod
    async def get_skills(self, agent_id: str) -> set[str]:
        """Held skills of the agent; empty for agents the directory doesn't know."""
        ...
