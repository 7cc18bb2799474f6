"""Domain errors raised by the assignment lifecycle.

Business-rule violations derive from ``BusinessRuleViolation`` and are always
recoverable by the caller. ``StoreUnavailable`` is the only infrastructure
error: callers should retry it with backoff.
"""

from __future__ import annotations


class AssignmentError(Exception):
    """Base class for every error raised by the assignment core."""

    code = "ASSIGNMENT_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BusinessRuleViolation(AssignmentError):
    code = "BUSINESS_RULE_VIOLATION"


class DuplicateAssignment(BusinessRuleViolation):
    code = "ASSIGNMENT_EXISTS"

    def __init__(self, entity_type: str, entity_id: str):
        super().__init__(
            f"Active assignment already exists for {entity_type}:{entity_id}"
        )
        self.entity_type = entity_type
        self.entity_id = entity_id


class NoOpTransfer(BusinessRuleViolation):
    code = "NO_OP_TRANSFER"

    def __init__(self, assignment_id: str, agent_id: str):
        super().__init__(f"Assignment {assignment_id} is already owned by agent {agent_id}")
        self.assignment_id = assignment_id
        self.agent_id = agent_id


class InvalidTransition(BusinessRuleViolation):
    code = "INVALID_TRANSITION"

    def __init__(self, assignment_id: str, status: str, action: str):
        super().__init__(f"Cannot {action} assignment {assignment_id} in status '{status}'")
        self.assignment_id = assignment_id
        self.status = status
        self.action = action


class InvalidEscalationLevel(BusinessRuleViolation):
    code = "INVALID_ESCALATION_LEVEL"

    def __init__(self, assignment_id: str, current: int, requested: int, maximum: int):
        super().__init__(
            f"Escalation level for assignment {assignment_id} must be greater than "
            f"{current} and at most {maximum}, got {requested}"
        )
        self.current = current
        self.requested = requested
        self.maximum = maximum


class InvalidScore(BusinessRuleViolation):
    code = "INVALID_SCORE"

    def __init__(self, score: float, low: float, high: float):
        super().__init__(f"Satisfaction score {score} outside [{low}, {high}]")
        self.score = score


class NonMonotonicUpdate(BusinessRuleViolation):
    code = "NON_MONOTONIC_UPDATE"

    def __init__(self, field: str, current: int, requested: int):
        super().__init__(f"{field} cannot decrease from {current} to {requested}")
        self.field = field
        self.current = current
        self.requested = requested


class InvalidMetricValue(BusinessRuleViolation):
    code = "INVALID_METRIC_VALUE"

    def __init__(self, field: str, value: float):
        super().__init__(f"{field} must be non-negative, got {value}")
        self.field = field
        self.value = value


class NotFound(AssignmentError):
    code = "ASSIGNMENT_NOT_FOUND"

    def __init__(self, assignment_id: str):
        super().__init__(f"Assignment {assignment_id} not found")
        self.assignment_id = assignment_id


class StoreUnavailable(AssignmentError):
    code = "STORE_UNAVAILABLE"
