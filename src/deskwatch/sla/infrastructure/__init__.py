"""
SLA Infrastructure Layer
========================

Event log persistence, shift file watching, the shift monitor job and
leader locks.
"""

from deskwatch.sla.infrastructure.external import ShiftConfigManager, ShiftMonitor
from deskwatch.sla.infrastructure.locks import InProcessLeaderLock, PostgresAdvisoryLeaderLock
from deskwatch.sla.infrastructure.models import SLAEventModel, TicketAssignmentModel
from deskwatch.sla.infrastructure.repositories import (
    SQLAlchemySLAEventRepository,
    SQLAlchemyTicketAssignmentRepository,
)

__all__ = [
    "ShiftConfigManager",
    "ShiftMonitor",
    "InProcessLeaderLock",
    "PostgresAdvisoryLeaderLock",
    "SLAEventModel",
    "TicketAssignmentModel",
    "SQLAlchemySLAEventRepository",
    "SQLAlchemyTicketAssignmentRepository",
]
