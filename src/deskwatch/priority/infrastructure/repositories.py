"""
Priority Infrastructure Repositories
=====================================

SQLAlchemy implementations of the inference and history repositories.

Every method first checks the startup capability probe and answers
``NotProvisioned`` when its table was missing.
"""

from typing import List, Optional

from sqlalchemy import select

from deskwatch.core import Provisioned, RepositoryException, Result
from deskwatch.infrastructure.database import CapabilityAwareRepository, ensure_utc
from deskwatch.priority.application.services import IInferenceRepository, IPriorityHistoryRepository
from deskwatch.priority.domain import InferenceRecord, PriorityHistoryEntry
from deskwatch.priority.infrastructure.models import InferenceModel, PriorityHistoryModel


def _to_record(model: InferenceModel) -> InferenceRecord:
    return InferenceRecord(
        id=model.id,
        ticket_id=model.ticket_id,
        mode=model.mode,
        provider=model.provider,
        predicted_priority_code=model.predicted_priority_code,
        applied_priority_code=model.applied_priority_code,
        confidence=float(model.confidence or 0),
        reason=model.decision_reason or "",
        is_auto_applied=bool(model.is_auto_applied),
        needs_review=bool(model.needs_review),
        rule_hits=model.rule_hits or {},
        raw_output=model.raw_output,
        intake_source=model.intake_source,
        model_name=model.model_name,
        prompt_version=model.prompt_version,
        reviewed_by_user_id=model.reviewed_by_user_id,
        reviewed_at=ensure_utc(model.reviewed_at),
        created_at=ensure_utc(model.created_at),
    )


def _to_entry(model: PriorityHistoryModel) -> PriorityHistoryEntry:
    return PriorityHistoryEntry(
        id=model.id,
        ticket_id=model.ticket_id,
        old_priority_code=model.old_priority_code,
        new_priority_code=model.new_priority_code,
        changed_by_user_id=model.changed_by_user_id,
        change_source=model.change_source,
        reason=model.reason,
        inference_id=model.inference_id,
        created_at=ensure_utc(model.created_at),
    )


class SQLAlchemyInferenceRepository(CapabilityAwareRepository, IInferenceRepository):
    """Persists ``InferenceRecord`` rows in 'ai_inferences'."""

    table_name = InferenceModel.__tablename__

    async def add(self, record: InferenceRecord) -> Result[InferenceRecord]:
        if not self.provisioned:
            return self.not_provisioned()

        model = InferenceModel(
            ticket_id=record.ticket_id,
            intake_source=record.intake_source,
            provider=record.provider,
            model_name=record.model_name,
            mode=record.mode,
            prompt_version=record.prompt_version,
            predicted_priority_code=record.predicted_priority_code,
            applied_priority_code=record.applied_priority_code,
            confidence=record.confidence,
            decision_reason=record.reason,
            rule_hits=record.rule_hits,
            raw_output=record.raw_output,
            is_auto_applied=record.is_auto_applied,
            needs_review=record.needs_review,
            reviewed_by_user_id=record.reviewed_by_user_id,
            reviewed_at=ensure_utc(record.reviewed_at),
            created_at=ensure_utc(record.created_at),
        )
        async with self._session_factory() as session:
            session.add(model)
            await session.commit()
            record.id = model.id
        return Provisioned(record)

    async def get(self, inference_id: int) -> Result[Optional[InferenceRecord]]:
        if not self.provisioned:
            return self.not_provisioned()

        async with self._session_factory() as session:
            model = await session.get(InferenceModel, inference_id)
            return Provisioned(_to_record(model) if model else None)

    async def save(self, record: InferenceRecord) -> Result[InferenceRecord]:
        if not self.provisioned:
            return self.not_provisioned()

        async with self._session_factory() as session:
            model = await session.get(InferenceModel, record.id)
            if model is None:
                raise RepositoryException(f"Inference {record.id} not found")

            model.applied_priority_code = record.applied_priority_code
            model.needs_review = record.needs_review
            model.reviewed_by_user_id = record.reviewed_by_user_id
            model.reviewed_at = ensure_utc(record.reviewed_at)
            await session.commit()
        return Provisioned(record)

    async def latest_for_ticket(self, ticket_id: str) -> Result[Optional[InferenceRecord]]:
        if not self.provisioned:
            return self.not_provisioned()

        stmt = (
            select(InferenceModel)
            .where(InferenceModel.ticket_id == str(ticket_id))
            .order_by(InferenceModel.id.desc())
            .limit(1)
        )
        async with self._session_factory() as session:
            model = (await session.execute(stmt)).scalar_one_or_none()
            return Provisioned(_to_record(model) if model else None)

    async def list_records(self) -> Result[List[InferenceRecord]]:
        if not self.provisioned:
            return self.not_provisioned()

        async with self._session_factory() as session:
            models = (await session.execute(select(InferenceModel).order_by(InferenceModel.id))).scalars().all()
            return Provisioned([_to_record(m) for m in models])


class SQLAlchemyPriorityHistoryRepository(CapabilityAwareRepository, IPriorityHistoryRepository):
    """Appends to 'ticket_priority_history'."""

    table_name = PriorityHistoryModel.__tablename__

    async def add(self, entry: PriorityHistoryEntry) -> Result[PriorityHistoryEntry]:
        if not self.provisioned:
            return self.not_provisioned()

        model = PriorityHistoryModel(
            ticket_id=entry.ticket_id,
            old_priority_code=entry.old_priority_code,
            new_priority_code=entry.new_priority_code,
            changed_by_user_id=entry.changed_by_user_id,
            change_source=entry.change_source,
            reason=entry.reason,
            inference_id=entry.inference_id,
            created_at=ensure_utc(entry.created_at),
        )
        async with self._session_factory() as session:
            session.add(model)
            await session.commit()
            entry.id = model.id
        return Provisioned(entry)

    async def list_for_ticket(self, ticket_id: str) -> Result[List[PriorityHistoryEntry]]:
        if not self.provisioned:
            return self.not_provisioned()

        stmt = (
            select(PriorityHistoryModel)
            .where(PriorityHistoryModel.ticket_id == str(ticket_id))
            .order_by(PriorityHistoryModel.id.desc())
        )
        async with self._session_factory() as session:
            models = (await session.execute(stmt)).scalars().all()
            return Provisioned([_to_entry(m) for m in models])
