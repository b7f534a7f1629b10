"""
Intake Infrastructure Repositories
===================================

SQLAlchemy implementation of the quarantine repository.
"""

from typing import Optional

from deskwatch.core import Provisioned, RepositoryException, Result
from deskwatch.infrastructure.database import CapabilityAwareRepository, ensure_utc
from deskwatch.intake.application.services import IQuarantineRepository
from deskwatch.intake.domain import QuarantineRecord
from deskwatch.intake.infrastructure.models import QuarantineModel


def _to_record(model: QuarantineModel) -> QuarantineRecord:
    return QuarantineRecord(
        id=model.id,
        message_id=model.message_id,
        thread_id=model.thread_id,
        from_email=model.from_email,
        to_email=model.to_email,
        subject=model.subject,
        body_snippet=model.body_snippet,
        score=model.risk_score,
        level=model.risk_level,
        decision=model.decision,
        reasons=model.reasons or [],
        rule_hits=model.rule_hits or {},
        urls=model.urls or [],
        attachments=model.attachments or [],
        status=model.status,
        released_ticket_id=model.released_ticket_id,
        reviewed_by_user_id=model.reviewed_by_user_id,
        reviewed_at=ensure_utc(model.reviewed_at),
        created_at=ensure_utc(model.created_at),
    )


class SQLAlchemyQuarantineRepository(CapabilityAwareRepository, IQuarantineRepository):
    """Stores ``QuarantineRecord`` rows in 'incoming_email_quarantine'."""

    table_name = QuarantineModel.__tablename__

    async def add(self, record: QuarantineRecord) -> Result[QuarantineRecord]:
        if not self.provisioned:
            return self.not_provisioned()

        model = QuarantineModel(
            message_id=record.message_id,
            thread_id=record.thread_id,
            from_email=record.from_email,
            to_email=record.to_email,
            subject=record.subject,
            body_snippet=record.body_snippet,
            risk_score=record.score,
            risk_level=record.level,
            decision=record.decision,
            reasons=record.reasons,
            rule_hits=record.rule_hits,
            urls=record.urls,
            attachments=record.attachments,
            status=record.status,
            created_at=ensure_utc(record.created_at),
        )
        async with self._session_factory() as session:
            session.add(model)
            await session.commit()
            record.id = model.id
        return Provisioned(record)

    async def get(self, quarantine_id: int) -> Result[Optional[QuarantineRecord]]:
        if not self.provisioned:
            return self.not_provisioned()

        async with self._session_factory() as session:
            model = await session.get(QuarantineModel, quarantine_id)
            return Provisioned(_to_record(model) if model else None)

    async def save(self, record: QuarantineRecord) -> Result[QuarantineRecord]:
        if not self.provisioned:
            return self.not_provisioned()

        async with self._session_factory() as session:
            model = await session.get(QuarantineModel, record.id)
            if model is None:
                raise RepositoryException(f"Quarantine record {record.id} not found")

            model.status = record.status
            model.released_ticket_id = record.released_ticket_id
            model.reviewed_by_user_id = record.reviewed_by_user_id
            model.reviewed_at = ensure_utc(record.reviewed_at)
            await session.commit()
        return Provisioned(record)
