"""
SLA Application Layer
=====================

Event tracking, reconciliation and API DTOs.
"""

from deskwatch.sla.application.dto import (
    CurrentShiftResponse,
    ReplayRequest,
    SLAEventDTO,
    SLAEventResponse,
    SLASummaryResponse,
    ShiftWindowResponse,
    TrackEventRequest,
)
from deskwatch.sla.application.services import (
    ILeaderLock,
    ISLAEventRepository,
    IShiftRoster,
    ITicketAssignmentReader,
    SLATrackingService,
    ShiftReconciliationService,
)

__all__ = [
    "CurrentShiftResponse",
    "ReplayRequest",
    "SLAEventDTO",
    "SLAEventResponse",
    "SLASummaryResponse",
    "ShiftWindowResponse",
    "TrackEventRequest",
    "ILeaderLock",
    "ISLAEventRepository",
    "IShiftRoster",
    "ITicketAssignmentReader",
    "SLATrackingService",
    "ShiftReconciliationService",
]
