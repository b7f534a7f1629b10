"""
Priority Infrastructure Models
===============================

SQLAlchemy ORM models for inference records and the priority history log.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import JSON, Boolean, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from deskwatch.config import IntakeSource
from deskwatch.infrastructure.database import Base


class InferenceModel(Base):
    """
    Database model for ``InferenceRecord``.

    Maps to the 'ai_inferences' table.
    """
    __tablename__ = "ai_inferences"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ticket_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    intake_source: Mapped[str] = mapped_column(String(32), nullable=False, default=IntakeSource.PORTAL)

    provider: Mapped[str] = mapped_column(String(64), nullable=False)
    model_name: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    mode: Mapped[str] = mapped_column(String(32), nullable=False)
    prompt_version: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    predicted_priority_code: Mapped[str] = mapped_column(String(16), nullable=False)
    applied_priority_code: Mapped[str] = mapped_column(String(16), nullable=False)
    confidence: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    decision_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    rule_hits: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    raw_output: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    is_auto_applied: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    needs_review: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    reviewed_by_user_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )


class PriorityHistoryModel(Base):
    """
    Database model for ``PriorityHistoryEntry``.

    Maps to the 'ticket_priority_history' table.
    """
    __tablename__ = "ticket_priority_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ticket_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    old_priority_code: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    new_priority_code: Mapped[str] = mapped_column(String(16), nullable=False)
    changed_by_user_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    change_source: Mapped[str] = mapped_column(String(32), nullable=False, default="system")
    reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    inference_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("ai_inferences.id", ondelete="SET NULL"),
        nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )
