"""
SLA Application Services
=========================

Event tracking, on-demand summaries and shift-change reconciliation.

Appends for one ticket are serialised with a per-ticket lock and their
timestamps kept strictly increasing. Reconciliation runs only while holding
the process-wide leader lock.
"""

import asyncio
import weakref
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from deskwatch.config import VALID_SLA_EVENTS, SLAEventType
from deskwatch.core import NotProvisioned, Provisioned, Result, ValidationException
from deskwatch.sla.domain import (
    AUTO_PAUSE_NOTE,
    AUTO_RESUME_NOTE,
    ReconciliationReport,
    SLAAccumulator,
    SLAEvent,
    SLASummary,
    ShiftSchedule,
    TicketAssignment,
    TicketShiftState,
    plan_shift_reconciliation,
)
from deskwatch.shared.infrastructure.logging import get_logger, log_latency

logger = get_logger(__name__)

RECONCILIATION_LOCK = "sla-shift-reconciliation"
TIMESTAMP_STEP = timedelta(microseconds=1)

Clock = Callable[[], datetime]
ScheduleProvider = Callable[[], ShiftSchedule]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ========== Collaborator Interfaces ==========

class ISLAEventRepository(ABC):
    """Append-only timer event log."""

    @abstractmethod
    async def append(self, event: SLAEvent) -> Result[SLAEvent]:
        """Store one event and return it with its id."""

    @abstractmethod
    async def list_for_ticket(self, ticket_id: str) -> Result[List[SLAEvent]]:
        """Events for a ticket, oldest first."""

    @abstractmethod
    async def latest_for_ticket(self, ticket_id: str) -> Result[Optional[SLAEvent]]:
        """Most recent event for a ticket."""


class ITicketAssignmentReader(ABC):
    """Read model of ticket ownership maintained by the ticketing system."""

    @abstractmethod
    async def list_assignments(self) -> Result[List[TicketAssignment]]:
        """All tickets with an assignee."""


class IShiftRoster(ABC):

    @abstractmethod
    async def shift_for_user(self, user_id: str) -> Optional[str]:
        """The shift a technician is configured to work, if known."""


class ILeaderLock(ABC):
    """Single-flight guard for work that must run on one node at a time."""

    @abstractmethod
    async def acquire(self, name: str) -> bool:
        """Try to take the lock without waiting."""

    @abstractmethod
    async def release(self, name: str) -> None:
        """Release a lock taken by ``acquire``."""


# ========== Tracking ==========

class SLATrackingService:
    """Appends timer events and computes summaries from the log."""

    def __init__(
        self,
        event_repository: ISLAEventRepository,
        schedule_provider: ScheduleProvider,
        roster: Optional[IShiftRoster] = None,
        clock: Clock = utc_now,
    ):
        self._events = event_repository
        self._schedule = schedule_provider
        self._roster = roster
        self._clock = clock
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, ticket_id: str) -> asyncio.Lock:
        lock = self._locks.get(ticket_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[ticket_id] = lock
        return lock

    def current_shift(self) -> str:
        return self._schedule().shift_for(self._clock())

    async def _resolve_shift(self, actor_user_id: Optional[str], schedule: ShiftSchedule, at: datetime) -> str:
        if actor_user_id and self._roster is not None:
            shift = await self._roster.shift_for_user(actor_user_id)
            if shift and schedule.window(shift) is not None:
                return shift
        return schedule.shift_for(at)

    async def track_event(
        self,
        ticket_id: str,
        event_type: str,
        actor_user_id: Optional[str] = None,
        notes: Optional[str] = None,
        occurred_at: Optional[datetime] = None,
    ) -> Result[SLAEvent]:
        """
        Append one timer event.

        The event is tagged with the actor's configured shift, falling back to
        the current wall-clock shift.

        Raises:
            ValidationException: unknown event type
        """
        event_type = str(event_type or "").strip().lower()
        if event_type not in VALID_SLA_EVENTS:
            raise ValidationException(f"Invalid SLA event '{event_type}'", {"allowed": VALID_SLA_EVENTS})

        ticket_id = str(ticket_id)
        schedule = self._schedule()
        now = self._clock()

        async with self._lock_for(ticket_id):
            timestamp = schedule.to_utc(occurred_at or now)

            latest = await self._events.latest_for_ticket(ticket_id)
            if isinstance(latest, NotProvisioned):
                return latest
            previous = latest.value
            if previous is not None and previous.occurred_at is not None:
                floor = schedule.to_utc(previous.occurred_at) + TIMESTAMP_STEP
                if timestamp < floor:
                    logger.warning(
                        "SLA event timestamp moved after previous event",
                        extra={"ticket_id": ticket_id, "requested": timestamp.isoformat(), "applied": floor.isoformat()}
                    )
                    timestamp = floor

            event = SLAEvent(
                ticket_id=ticket_id,
                event_type=event_type,
                occurred_at=timestamp,
                shift_code=await self._resolve_shift(actor_user_id, schedule, timestamp),
                actor_user_id=actor_user_id,
                notes=notes or f"Event: {event_type} at {timestamp.isoformat()}",
            )
            stored = await self._events.append(event)

        if isinstance(stored, Provisioned):
            logger.info(
                "SLA event tracked",
                extra={"ticket_id": ticket_id, "event_type": event_type, "shift": event.shift_code}
            )
        return stored

    async def summary(self, ticket_id: str, now: Optional[datetime] = None) -> Result[SLASummary]:
        """Recompute the ticket's elapsed minutes from its event log."""
        events = await self._events.list_for_ticket(str(ticket_id))
        if isinstance(events, NotProvisioned):
            return events
        accumulator = SLAAccumulator(self._schedule())
        return Provisioned(accumulator.replay(events.value, now=now or self._clock()))


# ========== Shift Reconciliation ==========

class ShiftReconciliationService:
    """Pauses and resumes running timers when the wall-clock shift changes."""

    def __init__(
        self,
        tracking: SLATrackingService,
        event_repository: ISLAEventRepository,
        assignments: ITicketAssignmentReader,
        leader_lock: ILeaderLock,
    ):
        self._tracking = tracking
        self._events = event_repository
        self._assignments = assignments
        self._lock = leader_lock

    async def handle_shift_change(self, current_shift: Optional[str] = None) -> ReconciliationReport:
        shift = current_shift or self._tracking.current_shift()

        if not await self._lock.acquire(RECONCILIATION_LOCK):
            logger.info("Shift reconciliation already running elsewhere", extra={"shift": shift})
            return ReconciliationReport(shift=shift, skipped=True, reason="leader lock held elsewhere")

        try:
            with log_latency(logger, "shift_reconciliation", shift=shift):
                return await self._reconcile(shift)
        finally:
            await self._lock.release(RECONCILIATION_LOCK)

    async def _reconcile(self, shift: str) -> ReconciliationReport:
        assignments = await self._assignments.list_assignments()
        if isinstance(assignments, NotProvisioned):
            logger.warning("Shift reconciliation skipped", extra={"table": assignments.table})
            return ReconciliationReport(shift=shift, skipped=True, reason=assignments.message)

        states = []
        for assignment in assignments.value:
            latest = await self._events.latest_for_ticket(assignment.ticket_id)
            if isinstance(latest, NotProvisioned):
                logger.warning("Shift reconciliation skipped", extra={"table": latest.table})
                return ReconciliationReport(shift=shift, skipped=True, reason=latest.message)
            states.append(TicketShiftState(assignment=assignment, latest_event=latest.value))

        plan = plan_shift_reconciliation(shift, states)

        paused, resumed = [], []
        for state in plan.pause:
            await self._tracking.track_event(
                state.ticket_id, SLAEventType.PAUSED, state.assignment.assignee_id, AUTO_PAUSE_NOTE
            )
            paused.append(state.ticket_id)
        for state in plan.resume:
            await self._tracking.track_event(
                state.ticket_id, SLAEventType.RESUMED, state.assignment.assignee_id, AUTO_RESUME_NOTE
            )
            resumed.append(state.ticket_id)

        logger.info(
            "Shift reconciliation finished",
            extra={"shift": shift, "paused": len(paused), "resumed": len(resumed)}
        )
        return ReconciliationReport(shift=shift, paused=paused, resumed=resumed)
