"""TransferRecord value object — one hand-off in an assignment's audit trail."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class TransferRecord:
    from_agent_id: str
    to_agent_id: str
    reason: str | None
    at: datetime
