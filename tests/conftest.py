"""
Test configuration and fixtures.

Provides:
- In-memory repositories behind the application interfaces
- Stub classifiers with canned outcomes
- A settable clock for the SLA services
"""
from datetime import datetime, timezone
from typing import List, Optional

import pytest

from deskwatch.core import NotProvisioned, Provisioned
from deskwatch.intake.application import IEmailIntentClassifier, IQuarantineRepository
from deskwatch.intake.domain import IntentOutcome
from deskwatch.priority.application import (
    IInferenceRepository,
    IPriorityClassifier,
    IPriorityHistoryRepository,
)
from deskwatch.priority.domain import ClassifierOutcome
from deskwatch.sla.application import ISLAEventRepository, IShiftRoster, ITicketAssignmentReader
from deskwatch.sla.domain import ShiftSchedule, TicketAssignment
from deskwatch.sla.infrastructure import InProcessLeaderLock


# =============================================================================
# In-memory repositories
# =============================================================================

class InMemoryInferenceRepository(IInferenceRepository):
    def __init__(self):
        self.records = {}

    async def add(self, record):
        record.id = len(self.records) + 1
        self.records[record.id] = record
        return Provisioned(record)

    async def get(self, inference_id):
        return Provisioned(self.records.get(inference_id))

    async def save(self, record):
        self.records[record.id] = record
        return Provisioned(record)

    async def latest_for_ticket(self, ticket_id):
        matching = [r for r in self.records.values() if r.ticket_id == str(ticket_id)]
        return Provisioned(matching[-1] if matching else None)

    async def list_records(self):
        return Provisioned(list(self.records.values()))


class InMemoryHistoryRepository(IPriorityHistoryRepository):
    def __init__(self):
        self.entries = []

    async def add(self, entry):
        entry.id = len(self.entries) + 1
        self.entries.append(entry)
        return Provisioned(entry)

    async def list_for_ticket(self, ticket_id):
        return Provisioned([e for e in reversed(self.entries) if e.ticket_id == str(ticket_id)])


class InMemoryQuarantineRepository(IQuarantineRepository):
    def __init__(self):
        self.records = {}

    async def add(self, record):
        record.id = len(self.records) + 1
        self.records[record.id] = record
        return Provisioned(record)

    async def get(self, quarantine_id):
        return Provisioned(self.records.get(quarantine_id))

    async def save(self, record):
        self.records[record.id] = record
        return Provisioned(record)


class InMemorySLAEventRepository(ISLAEventRepository):
    def __init__(self):
        self.events = []

    async def append(self, event):
        event.id = len(self.events) + 1
        self.events.append(event)
        return Provisioned(event)

    async def list_for_ticket(self, ticket_id):
        return Provisioned([e for e in self.events if e.ticket_id == str(ticket_id)])

    async def latest_for_ticket(self, ticket_id):
        matching = [e for e in self.events if e.ticket_id == str(ticket_id)]
        return Provisioned(matching[-1] if matching else None)


class InMemoryAssignments(ITicketAssignmentReader, IShiftRoster):
    def __init__(self, assignments: Optional[List[TicketAssignment]] = None):
        self.assignments = list(assignments or [])

    async def list_assignments(self):
        return Provisioned(list(self.assignments))

    async def shift_for_user(self, user_id):
        for a in reversed(self.assignments):
            if a.assignee_id == user_id:
                return a.assignee_shift
        return None


class UnprovisionedEventRepository(ISLAEventRepository):
    async def append(self, event):
        return NotProvisioned("sla_tracking")

    async def list_for_ticket(self, ticket_id):
        return NotProvisioned("sla_tracking")

    async def latest_for_ticket(self, ticket_id):
        return NotProvisioned("sla_tracking")


# =============================================================================
# Stub classifiers
# =============================================================================

class StubPriorityClassifier(IPriorityClassifier):
    def __init__(self, outcome: Optional[ClassifierOutcome] = None, error: Optional[Exception] = None):
        self.outcome = outcome
        self.error = error
        self.calls = 0

    async def classify(self, subject, body_text, from_email, intake_source, rules):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.outcome


class StubIntentClassifier(IEmailIntentClassifier):
    def __init__(self, outcome: Optional[IntentOutcome] = None, error: Optional[Exception] = None):
        self.outcome = outcome
        self.error = error
        self.calls = 0

    async def classify(self, email, base):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.outcome


class SettableClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def schedule() -> ShiftSchedule:
    return ShiftSchedule()


@pytest.fixture
def inference_repo() -> InMemoryInferenceRepository:
    return InMemoryInferenceRepository()


@pytest.fixture
def history_repo() -> InMemoryHistoryRepository:
    return InMemoryHistoryRepository()


@pytest.fixture
def quarantine_repo() -> InMemoryQuarantineRepository:
    return InMemoryQuarantineRepository()


@pytest.fixture
def event_repo() -> InMemorySLAEventRepository:
    return InMemorySLAEventRepository()


@pytest.fixture
def clock() -> SettableClock:
    return SettableClock(datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc))


@pytest.fixture
def leader_lock() -> InProcessLeaderLock:
    return InProcessLeaderLock()
