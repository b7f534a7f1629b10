"""
Intake Domain Entities
======================

Inbound email, its risk assessment, intent classifier outcomes and the
quarantine queue record.
"""

import copy
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from deskwatch.config import IntakeDecision, RiskLevel
from deskwatch.core import DomainException


@dataclass(frozen=True)
class EmailAttachment:
    filename: str
    mime_type: Optional[str] = None
    size: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass(frozen=True)
class InboundEmail:
    """A message pulled from the support mailbox."""
    from_address: str
    subject: str = ""
    body: str = ""
    snippet: str = ""
    to: str = ""
    message_id: Optional[str] = None
    thread_id: Optional[str] = None
    attachments: tuple = ()

    @property
    def text(self) -> str:
        """Body, or the snippet when the body is empty."""
        return self.body or self.snippet or ""

    @property
    def attachment_names(self) -> List[str]:
        return [a.filename for a in self.attachments]


@dataclass
class EmailRiskAssessment:
    """
    Risk score and intake decision for one email.

    ``rule_hits`` names every signal that fired; ``context`` carries the
    parsed sender, URLs and attachments for the review queue.
    """
    enabled: bool
    score: float
    level: str
    decision: str
    reasons: List[str] = field(default_factory=list)
    rule_hits: Dict[str, Any] = field(default_factory=dict)
    context: Dict[str, Any] = field(default_factory=dict)

    @property
    def should_persist(self) -> bool:
        return self.decision != IntakeDecision.ALLOW

    @property
    def is_quarantined(self) -> bool:
        return self.decision == IntakeDecision.QUARANTINE

    def copy(self) -> "EmailRiskAssessment":
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class IntentOutcome:
    """Result of an email intent classifier call; failures are values."""
    ok: bool
    model: Optional[str]
    reason: str
    classification: Optional[str] = None
    confidence: float = 0.0
    suggested_decision: Optional[str] = None
    raw_output: Optional[Dict[str, Any]] = None

    @classmethod
    def failure(cls, model: Optional[str], reason: str, raw_output: Optional[dict] = None) -> "IntentOutcome":
        return cls(ok=False, model=model, reason=reason, raw_output=raw_output)


class QuarantineStatus(str):
    PENDING = "pending"
    RELEASED = "released"
    DISMISSED = "dismissed"


@dataclass
class QuarantineRecord:
    """A non-``allow`` email awaiting a human decision."""
    from_email: str
    subject: str
    score: float
    level: str
    decision: str
    reasons: List[str] = field(default_factory=list)
    rule_hits: Dict[str, Any] = field(default_factory=dict)
    urls: List[str] = field(default_factory=list)
    attachments: List[Dict[str, Any]] = field(default_factory=list)
    to_email: Optional[str] = None
    body_snippet: Optional[str] = None
    message_id: Optional[str] = None
    thread_id: Optional[str] = None
    status: str = QuarantineStatus.PENDING
    released_ticket_id: Optional[str] = None
    reviewed_by_user_id: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    id: Optional[int] = None

    SUBJECT_LIMIT = 255
    TO_LIMIT = 500
    SNIPPET_LIMIT = 2000

    @classmethod
    def from_assessment(cls, email: InboundEmail, assessment: EmailRiskAssessment) -> "QuarantineRecord":
        context = assessment.context or {}
        return cls(
            message_id=email.message_id,
            thread_id=email.thread_id,
            from_email=context.get("from_email") or email.from_address.strip().lower(),
            to_email=(email.to or "")[:cls.TO_LIMIT] or None,
            subject=(email.subject or "")[:cls.SUBJECT_LIMIT] or "No Subject",
            body_snippet=(email.snippet or email.body or "")[:cls.SNIPPET_LIMIT] or None,
            score=assessment.score or 0,
            level=assessment.level or RiskLevel.MEDIUM,
            decision=assessment.decision or IntakeDecision.QUARANTINE,
            reasons=list(assessment.reasons),
            rule_hits=dict(assessment.rule_hits),
            urls=list(context.get("urls") or []),
            attachments=list(context.get("attachments") or []),
        )

    def release(self, ticket_id: str, reviewer_id: Optional[str] = None, at: Optional[datetime] = None) -> bool:
        """
        Mark released into a ticket. Returns False if it already was.

        Raises:
            DomainException: the record was dismissed
        """
        if self.status == QuarantineStatus.RELEASED:
            return False
        if self.status == QuarantineStatus.DISMISSED:
            raise DomainException("Dismissed quarantine records cannot be released", {"quarantine_id": self.id})

        self.status = QuarantineStatus.RELEASED
        self.released_ticket_id = str(ticket_id)
        self.reviewed_by_user_id = reviewer_id
        self.reviewed_at = at or datetime.now(timezone.utc)
        return True

    def dismiss(self, reviewer_id: Optional[str] = None, at: Optional[datetime] = None) -> None:
        if self.status == QuarantineStatus.RELEASED:
            raise DomainException(
                "Released quarantine records cannot be dismissed",
                {"quarantine_id": self.id, "ticket_id": self.released_ticket_id}
            )
        self.status = QuarantineStatus.DISMISSED
        self.reviewed_by_user_id = reviewer_id
        self.reviewed_at = at or datetime.now(timezone.utc)
