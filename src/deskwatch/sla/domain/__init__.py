"""
SLA Domain Layer
================

Shift schedule, timer events and the shift-scoped minute accounting.
Pure Python, no I/O.
"""

from deskwatch.sla.domain.entities import (
    AUTO_PAUSE_NOTE,
    AUTO_RESUME_NOTE,
    ReconciliationPlan,
    ReconciliationReport,
    SLAEvent,
    SLASummary,
    TicketAssignment,
    TicketShiftState,
)
from deskwatch.sla.domain.services import (
    SLAAccumulator,
    plan_shift_reconciliation,
    shift_aware_minutes,
    shift_aware_minutes_closed_form,
)
from deskwatch.sla.domain.value_objects import DEFAULT_WINDOWS, ShiftSchedule, ShiftWindow

__all__ = [
    "AUTO_PAUSE_NOTE",
    "AUTO_RESUME_NOTE",
    "DEFAULT_WINDOWS",
    "ReconciliationPlan",
    "ReconciliationReport",
    "SLAAccumulator",
    "SLAEvent",
    "SLASummary",
    "ShiftSchedule",
    "ShiftWindow",
    "TicketAssignment",
    "TicketShiftState",
    "plan_shift_reconciliation",
    "shift_aware_minutes",
    "shift_aware_minutes_closed_form",
]
