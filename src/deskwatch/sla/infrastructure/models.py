"""
SLA Infrastructure Models
==========================

SQLAlchemy ORM models for the timer event log and the ticket assignment
read model.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from deskwatch.infrastructure.database import Base


class SLAEventModel(Base):
    """
    Database model for ``SLAEvent``.

    Maps to the 'sla_tracking' table. Rows are never updated.
    """
    __tablename__ = "sla_tracking"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ticket_id: Mapped[str] = mapped_column(String(64), nullable=False)
    event_type: Mapped[str] = mapped_column(String(16), nullable=False)
    event_timestamp: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        default=lambda: datetime.now(timezone.utc)
    )
    shift_type: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)
    actor_user_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_sla_tracking_ticket_timestamp", "ticket_id", "event_timestamp"),
    )


class TicketAssignmentModel(Base):
    """
    Read model of ticket ownership.

    Maps to the 'ticket_assignments' table, maintained by the ticketing
    system; this service only reads it.
    """
    __tablename__ = "ticket_assignments"

    ticket_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    assignee_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    assignee_shift: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="open")
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )
