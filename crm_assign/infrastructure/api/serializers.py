"""Response shaping for assignment endpoints."""

from __future__ import annotations

from datetime import datetime

from crm_assign.domain.entities.assignment import Assignment


def _iso(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt else None


def serialize_assignment(a: Assignment, now: datetime) -> dict:
    """Convert an Assignment to an API response dict."""
    return {
        "id": a.id,
        "entity_type": a.entity_type.value,
        "entity_id": a.entity_id,
        "agent_id": a.agent_id,
        "status": a.status.value,
        "assignment_type": a.assignment_type.value,
        "assignment_reason": a.assignment_reason,
        "priority": a.priority.value,
        "assigned_at": _iso(a.assigned_at),
        "assigned_by": a.assigned_by,
        "transfer_history": [
            {
                "from_agent_id": t.from_agent_id,
                "to_agent_id": t.to_agent_id,
                "reason": t.reason,
                "at": _iso(t.at),
            }
            for t in a.transfer_history
        ],
        "escalation_level": a.escalation_level,
        "escalated_at": _iso(a.escalated_at),
        "escalated_to": a.escalated_to,
        "sla_deadline": _iso(a.sla_deadline),
        "sla_met": a.sla_met,
        "sla_breach_reason": a.sla_breach_reason,
        "completed_at": _iso(a.completed_at),
        "completion_reason": a.completion_reason.value if a.completion_reason else None,
        "satisfaction_score": a.satisfaction_score,
        "cancelled_at": _iso(a.cancelled_at),
        "cancellation_reason": a.cancellation_reason,
        "workload_score": a.workload_score,
        "capacity_utilization": a.capacity_utilization,
        "required_skills": sorted(a.required_skills),
        "agent_skills": sorted(a.agent_skills),
        "skill_match_score": a.skill_match_score,
        "first_response_time": a.first_response_time,
        "average_response_time": a.average_response_time,
        "resolution_time": a.resolution_time,
        "total_messages": a.total_messages,
        "total_interactions": a.total_interactions,
        "last_activity_at": _iso(a.last_activity_at),
        "tags": sorted(a.tags),
        "custom_fields": a.custom_fields,
        "is_overdue": a.is_overdue(now),
        "is_escalated": a.is_escalated,
        "duration_seconds": a.duration(now).total_seconds(),
    }
