"""
Intake Infrastructure Models
=============================

SQLAlchemy ORM model for the inbound email review queue.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import JSON, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from deskwatch.infrastructure.database import Base
from deskwatch.intake.domain import QuarantineStatus


class QuarantineModel(Base):
    """
    Database model for ``QuarantineRecord``.

    Maps to the 'incoming_email_quarantine' table.
    """
    __tablename__ = "incoming_email_quarantine"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    message_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    thread_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    from_email: Mapped[str] = mapped_column(String(320), nullable=False)
    to_email: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    subject: Mapped[str] = mapped_column(String(255), nullable=False, default="No Subject")
    body_snippet: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    risk_score: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    risk_level: Mapped[str] = mapped_column(String(16), nullable=False)
    decision: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    reasons: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    rule_hits: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    urls: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    attachments: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default=QuarantineStatus.PENDING, index=True)
    released_ticket_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    reviewed_by_user_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )
