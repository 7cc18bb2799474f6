"""Agent entity — a directory record for someone who can own assignments."""

from dataclasses import dataclass, field


@dataclass
class Agent:
    id: str
    name: str
    skills: set[str] = field(default_factory=set)

    def has_skill(self, skill: str) -> bool:
        return skill in self.skills
