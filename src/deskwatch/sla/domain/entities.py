"""
SLA Domain Entities
===================

Timer events, the computed summary, and the per-ticket state the shift
reconciliation planner works on.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from deskwatch.config import TIMER_START_EVENTS

AUTO_PAUSE_NOTE = "Auto-paused: technician is off shift"
AUTO_RESUME_NOTE = "Auto-resumed: technician shift started"

CLOSED_STATUSES = frozenset({"resolved", "closed"})


@dataclass
class SLAEvent:
    """One append-only entry in a ticket's timer log."""
    ticket_id: str
    event_type: str
    occurred_at: Optional[datetime]
    shift_code: Optional[str] = None
    actor_user_id: Optional[str] = None
    notes: Optional[str] = None
    id: Optional[int] = None

    @property
    def starts_timer(self) -> bool:
        return self.event_type in TIMER_START_EVENTS


@dataclass(frozen=True)
class SLASummary:
    """Elapsed in-shift minutes for one ticket."""
    total_minutes: int
    is_active: bool

    @property
    def formatted_time(self) -> str:
        return f"{self.total_minutes // 60}h {self.total_minutes % 60}m"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_minutes": self.total_minutes,
            "formatted_time": self.formatted_time,
            "is_active": self.is_active,
        }


@dataclass(frozen=True)
class TicketAssignment:
    """Read model row: who owns an open ticket and which shift they work."""
    ticket_id: str
    assignee_id: Optional[str]
    assignee_shift: Optional[str]
    status: str = "open"


@dataclass(frozen=True)
class TicketShiftState:
    assignment: TicketAssignment
    latest_event: Optional[SLAEvent]

    @property
    def ticket_id(self) -> str:
        return self.assignment.ticket_id


@dataclass(frozen=True)
class ReconciliationPlan:
    pause: List[TicketShiftState] = field(default_factory=list)
    resume: List[TicketShiftState] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.pause and not self.resume


@dataclass(frozen=True)
class ReconciliationReport:
    shift: str
    paused: List[str] = field(default_factory=list)
    resumed: List[str] = field(default_factory=list)
    skipped: bool = False
    reason: Optional[str] = None
