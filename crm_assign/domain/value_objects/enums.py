"""Domain enums — pure Python, no external dependencies."""

from enum import Enum


class AssignmentStatus(str, Enum):
    ACTIVE = "active"
    TRANSFERRED = "transferred"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (AssignmentStatus.COMPLETED, AssignmentStatus.CANCELLED)


class AssignmentType(str, Enum):
    MANUAL = "manual"
    AUTOMATIC = "automatic"
    ESCALATION = "escalation"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class EntityType(str, Enum):
    THREAD = "thread"
    CONTACT = "contact"
    LEAD = "lead"
    TICKET = "ticket"


class CompletionReason(str, Enum):
    RESOLVED = "resolved"
    CLOSED = "closed"
    TIMEOUT = "timeout"
    ESCALATED = "escalated"
