"""SlaPolicy — maps assignment priority to a resolution deadline offset."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from types import MappingProxyType

from crm_assign.domain.value_objects.enums import Priority

# Tunable defaults, not recovered business rules.
DEFAULT_SLA_HOURS: dict[Priority, float] = {
    Priority.URGENT: 1,
    Priority.HIGH: 4,
    Priority.MEDIUM: 24,
    Priority.LOW: 72,
}


@dataclass(frozen=True)
class SlaPolicy:
    """Immutable priority → offset table.

    The table must cover every ``Priority``; the deadline is always computed
    as ``start + offset`` where ``start`` is the assignment creation time.
    """

    offsets: Mapping[Priority, timedelta] = field(
        default_factory=lambda: {p: timedelta(hours=h) for p, h in DEFAULT_SLA_HOURS.items()}
    )

    def __post_init__(self) -> None:
        missing = [p.value for p in Priority if p not in self.offsets]
        if missing:
            raise ValueError(f"SLA policy missing priorities: {', '.join(missing)}")
        if any(offset <= timedelta(0) for offset in self.offsets.values()):
            raise ValueError("SLA offsets must be positive")
        object.__setattr__(self, "offsets", MappingProxyType(dict(self.offsets)))

    @classmethod
    def from_hours(cls, hours: Mapping[Priority, float]) -> SlaPolicy:
        return cls({Priority(p): timedelta(hours=h) for p, h in hours.items()})

    @classmethod
    def from_settings(cls, settings) -> SlaPolicy:
        return cls.from_hours(
            {
                Priority.URGENT: settings.sla_urgent_hours,
                Priority.HIGH: settings.sla_high_hours,
                Priority.MEDIUM: settings.sla_medium_hours,
                Priority.LOW: settings.sla_low_hours,
            }
        )

    def offset_for(self, priority: Priority) -> timedelta:
        return self.offsets[Priority(priority)]

    def deadline_for(self, priority: Priority, start: datetime) -> datetime:
        return start + self.offset_for(priority)
