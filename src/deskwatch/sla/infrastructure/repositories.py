"""
SLA Infrastructure Repositories
================================

SQLAlchemy implementations of the event log, the assignment reader and the
shift roster.
"""

from typing import List, Optional

from sqlalchemy import select

from deskwatch.core import Provisioned, Result
from deskwatch.infrastructure.database import CapabilityAwareRepository, ensure_utc
from deskwatch.sla.application.services import ISLAEventRepository, IShiftRoster, ITicketAssignmentReader
from deskwatch.sla.domain import SLAEvent, TicketAssignment
from deskwatch.sla.infrastructure.models import SLAEventModel, TicketAssignmentModel


def _to_event(model: SLAEventModel) -> SLAEvent:
    return SLAEvent(
        id=model.id,
        ticket_id=model.ticket_id,
        event_type=model.event_type,
        occurred_at=ensure_utc(model.event_timestamp),
        shift_code=model.shift_type,
        actor_user_id=model.actor_user_id,
        notes=model.notes,
    )


class SQLAlchemySLAEventRepository(CapabilityAwareRepository, ISLAEventRepository):
    """Appends to and reads 'sla_tracking'."""

    table_name = SLAEventModel.__tablename__

    async def append(self, event: SLAEvent) -> Result[SLAEvent]:
        if not self.provisioned:
            return self.not_provisioned()

        model = SLAEventModel(
            ticket_id=event.ticket_id,
            event_type=event.event_type,
            event_timestamp=ensure_utc(event.occurred_at),
            shift_type=event.shift_code,
            actor_user_id=event.actor_user_id,
            notes=event.notes,
        )
        async with self._session_factory() as session:
            session.add(model)
            await session.commit()
            event.id = model.id
        return Provisioned(event)

    async def list_for_ticket(self, ticket_id: str) -> Result[List[SLAEvent]]:
        if not self.provisioned:
            return self.not_provisioned()

        stmt = (
            select(SLAEventModel)
            .where(SLAEventModel.ticket_id == str(ticket_id))
            .order_by(SLAEventModel.event_timestamp, SLAEventModel.id)
        )
        async with self._session_factory() as session:
            models = (await session.execute(stmt)).scalars().all()
            return Provisioned([_to_event(m) for m in models])

    async def latest_for_ticket(self, ticket_id: str) -> Result[Optional[SLAEvent]]:
        if not self.provisioned:
            return self.not_provisioned()

        stmt = (
            select(SLAEventModel)
            .where(SLAEventModel.ticket_id == str(ticket_id))
            .order_by(SLAEventModel.id.desc())
            .limit(1)
        )
        async with self._session_factory() as session:
            model = (await session.execute(stmt)).scalar_one_or_none()
            return Provisioned(_to_event(model) if model else None)


class SQLAlchemyTicketAssignmentRepository(CapabilityAwareRepository, ITicketAssignmentReader, IShiftRoster):
    """
    Reads 'ticket_assignments'.

    Also answers roster lookups: a technician's shift is the one recorded on
    their most recently updated assignment.
    """

    table_name = TicketAssignmentModel.__tablename__

    async def list_assignments(self) -> Result[List[TicketAssignment]]:
        if not self.provisioned:
            return self.not_provisioned()

        stmt = (
            select(TicketAssignmentModel)
            .where(TicketAssignmentModel.assignee_id.is_not(None))
            .order_by(TicketAssignmentModel.ticket_id)
        )
        async with self._session_factory() as session:
            models = (await session.execute(stmt)).scalars().all()
            return Provisioned([
                TicketAssignment(
                    ticket_id=m.ticket_id,
                    assignee_id=m.assignee_id,
                    assignee_shift=m.assignee_shift,
                    status=m.status,
                )
                for m in models
            ])

    async def shift_for_user(self, user_id: str) -> Optional[str]:
        if not self.provisioned:
            return None

        stmt = (
            select(TicketAssignmentModel.assignee_shift)
            .where(
                TicketAssignmentModel.assignee_id == str(user_id),
                TicketAssignmentModel.assignee_shift.is_not(None),
            )
            .order_by(TicketAssignmentModel.updated_at.desc())
            .limit(1)
        )
        async with self._session_factory() as session:
            return (await session.execute(stmt)).scalar_one_or_none()
