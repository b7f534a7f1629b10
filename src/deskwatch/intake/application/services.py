"""
Intake Application Services
============================

Runs the risk scorer, consults the intent classifier when allowed, and
queues non-``allow`` mail for review.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional, Tuple

from deskwatch.core import NotProvisioned, Provisioned, ResourceNotFoundException, Result
from deskwatch.intake.domain import (
    EmailGuardPolicy,
    EmailRiskAssessment,
    InboundEmail,
    IntentOutcome,
    IntentPolicy,
    QuarantineRecord,
    apply_intent,
    evaluate_email_risk,
)
from deskwatch.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


# ========== Collaborator Interfaces ==========

class IEmailIntentClassifier(ABC):
    """External intent classifier. Implementations must not raise."""

    @abstractmethod
    async def classify(self, email: InboundEmail, base: EmailRiskAssessment) -> IntentOutcome:
        """Classify an email as ticket, non_ticket or uncertain."""


class IQuarantineRepository(ABC):

    @abstractmethod
    async def add(self, record: QuarantineRecord) -> Result[QuarantineRecord]:
        """Persist a new record and return it with its id."""

    @abstractmethod
    async def get(self, quarantine_id: int) -> Result[Optional[QuarantineRecord]]:
        """Load one record."""

    @abstractmethod
    async def save(self, record: QuarantineRecord) -> Result[QuarantineRecord]:
        """Persist the status fields of an existing record."""


# ========== Intake Service ==========

class EmailIntakeService:
    """
    Decides what happens to an inbound email.

    A ``quarantine`` rule decision is final and the classifier is not asked.
    When the intent gate is disabled or no classifier is configured the rule
    decision stands as is.
    """

    def __init__(
        self,
        guard_policy: EmailGuardPolicy,
        intent_policy: IntentPolicy,
        classifier: Optional[IEmailIntentClassifier] = None,
        quarantine_repository: Optional[IQuarantineRepository] = None,
    ):
        self._guard_policy = guard_policy
        self._intent_policy = intent_policy
        self._classifier = classifier
        self._quarantine = quarantine_repository

    async def assess(self, email: InboundEmail) -> EmailRiskAssessment:
        base = evaluate_email_risk(email, self._guard_policy)
        if base.is_quarantined:
            return base

        if not self._intent_policy.enabled or self._classifier is None:
            return base

        try:
            outcome = await self._classifier.classify(email, base)
        except Exception as e:
            logger.warning("Intent classifier raised", extra={"error": str(e), "error_type": type(e).__name__})
            outcome = IntentOutcome.failure(model=None, reason=f"LLM request error: {e}")

        return apply_intent(base, outcome, self._intent_policy)

    async def intake(self, email: InboundEmail) -> Tuple[EmailRiskAssessment, Optional[Result[QuarantineRecord]]]:
        """
        Assess and, for anything but ``allow``, queue the email.

        The second element is None when nothing needed storing.
        """
        assessment = await self.assess(email)

        logger.info(
            "Inbound email assessed",
            extra={
                "message_id": email.message_id,
                "decision": assessment.decision,
                "score": assessment.score,
                "level": assessment.level,
            }
        )

        if not assessment.should_persist:
            return assessment, None
        if self._quarantine is None:
            return assessment, NotProvisioned("incoming_email_quarantine")

        stored = await self._quarantine.add(QuarantineRecord.from_assessment(email, assessment))
        if isinstance(stored, NotProvisioned):
            logger.warning(
                "Quarantine record not stored",
                extra={"message_id": email.message_id, "table": stored.table}
            )
        return assessment, stored

    async def release(
        self,
        quarantine_id: int,
        ticket_id: str,
        reviewer_id: Optional[str] = None,
    ) -> Result[QuarantineRecord]:
        """
        Release a queued email into a ticket. Releasing twice keeps the first
        ticket id.

        Raises:
            ResourceNotFoundException: unknown quarantine id
            DomainException: the record was dismissed
        """
        record = await self._load(quarantine_id)
        if isinstance(record, NotProvisioned):
            return record

        if not record.release(ticket_id, reviewer_id, at=datetime.now(timezone.utc)):
            return Provisioned(record)

        logger.info("Quarantined email released", extra={"quarantine_id": quarantine_id, "ticket_id": ticket_id})
        return await self._quarantine.save(record)

    async def dismiss(self, quarantine_id: int, reviewer_id: Optional[str] = None) -> Result[QuarantineRecord]:
        """
        Raises:
            ResourceNotFoundException: unknown quarantine id
            DomainException: the record was already released
        """
        record = await self._load(quarantine_id)
        if isinstance(record, NotProvisioned):
            return record

        record.dismiss(reviewer_id, at=datetime.now(timezone.utc))
        logger.info("Quarantined email dismissed", extra={"quarantine_id": quarantine_id})
        return await self._quarantine.save(record)

    async def _load(self, quarantine_id: int):
        if self._quarantine is None:
            return NotProvisioned("incoming_email_quarantine")

        loaded = await self._quarantine.get(quarantine_id)
        if isinstance(loaded, NotProvisioned):
            return loaded
        if loaded.value is None:
            raise ResourceNotFoundException("Quarantine record", str(quarantine_id))
        return loaded.value
