"""
Priority Domain Entities
========================

Decision records produced by the aggregator, the persisted inference with
its review state, and the priority history log.
"""

import json
from collections import Counter
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional

from deskwatch.config import IntakeSource, PriorityCode, VALID_PRIORITIES, normalize_priority_code
from deskwatch.core import ValidationException
from deskwatch.shared.text import clean_text

REASON_LIMIT = 500


class ReviewAction(str):
    """What a reviewer can do with a held-back decision."""
    APPROVE = "approve"
    APPLY_PREDICTED = "apply_predicted"
    OVERRIDE = "override"


VALID_REVIEW_ACTIONS = [ReviewAction.APPROVE, ReviewAction.APPLY_PREDICTED, ReviewAction.OVERRIDE]


class Provider(str):
    """Who produced a decision."""
    MANUAL_INPUT = "manual_input"
    DISABLED = "disabled"
    RULES_ENGINE = "rules_engine"
    RULES_ENGINE_FALLBACK = "rules_engine_fallback"


class PromptVersion(str):
    MANUAL = "manual-v1"
    DISABLED = "disabled-v1"
    RULES = "rules-v1"
    LLM = "llm-v1"
    HYBRID = "hybrid-v1"


@dataclass(frozen=True)
class PriorityDecision:
    """
    One priority evaluation for a ticket.

    ``applied_priority_code`` equals the prediction only when the decision is
    auto-applied; otherwise it stays at ``medium`` until a reviewer acts.
    """
    mode: str
    provider: str
    predicted_priority_code: str
    applied_priority_code: str
    confidence: float
    reason: str
    is_auto_applied: bool
    rule_hits: Dict[str, Any] = field(default_factory=dict)
    prompt_version: Optional[str] = None
    model_name: Optional[str] = None
    intake_source: str = IntakeSource.PORTAL
    raw_output: Optional[Dict[str, Any]] = None

    @property
    def needs_review(self) -> bool:
        return not self.is_auto_applied

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["needs_review"] = self.needs_review
        return data


@dataclass(frozen=True)
class ClassifierOutcome:
    """
    Result of an external priority classifier call.

    Failures are values: ``ok`` is False and ``reason`` says why.
    """
    ok: bool
    provider: str
    model_name: Optional[str]
    reason: str
    predicted_priority_code: str = PriorityCode.MEDIUM
    confidence: float = 0.0
    raw_output: Optional[Dict[str, Any]] = None

    @classmethod
    def success(
        cls,
        provider: str,
        model_name: str,
        predicted_priority_code: str,
        confidence: float,
        reason: str,
        raw_output: Optional[dict] = None,
    ) -> "ClassifierOutcome":
        return cls(
            ok=True,
            provider=provider,
            model_name=model_name,
            predicted_priority_code=predicted_priority_code,
            confidence=confidence,
            reason=reason,
            raw_output=raw_output,
        )

    @classmethod
    def failure(
        cls,
        provider: str,
        model_name: Optional[str],
        reason: str,
        raw_output: Optional[dict] = None,
    ) -> "ClassifierOutcome":
        return cls(ok=False, provider=provider, model_name=model_name, reason=reason, raw_output=raw_output)


@dataclass
class InferenceRecord:
    """
    A recorded ``PriorityDecision`` for one ticket plus its review state.

    Reviews mutate this record; they never produce a new decision.
    """
    ticket_id: str
    mode: str
    provider: str
    predicted_priority_code: str
    applied_priority_code: str
    confidence: float
    reason: str
    is_auto_applied: bool
    needs_review: bool
    rule_hits: Dict[str, Any] = field(default_factory=dict)
    raw_output: Optional[Dict[str, Any]] = None
    intake_source: str = IntakeSource.PORTAL
    model_name: Optional[str] = None
    prompt_version: Optional[str] = None
    reviewed_by_user_id: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    id: Optional[int] = None

    @classmethod
    def from_decision(
        cls,
        ticket_id: str,
        decision: PriorityDecision,
        actor_user_id: Optional[str] = None,
        at: Optional[datetime] = None,
    ) -> "InferenceRecord":
        """Auto-applied decisions count as reviewed by the acting user."""
        at = at or datetime.now(timezone.utc)
        return cls(
            ticket_id=str(ticket_id),
            mode=decision.mode,
            provider=decision.provider,
            predicted_priority_code=decision.predicted_priority_code,
            applied_priority_code=decision.applied_priority_code,
            confidence=decision.confidence,
            reason=decision.reason,
            is_auto_applied=decision.is_auto_applied,
            needs_review=decision.needs_review,
            rule_hits=decision.rule_hits,
            raw_output=decision.raw_output,
            intake_source=decision.intake_source,
            model_name=decision.model_name,
            prompt_version=decision.prompt_version,
            reviewed_by_user_id=None if decision.needs_review else actor_user_id,
            reviewed_at=None if decision.needs_review else at,
            created_at=at,
        )

    @property
    def is_reviewed(self) -> bool:
        return self.reviewed_at is not None

    def apply_review(
        self,
        action: str,
        reviewer_id: Optional[str],
        priority_code: Optional[str] = None,
        at: Optional[datetime] = None,
    ) -> str:
        """
        Apply a reviewer decision and return the resulting applied code.

        Raises:
            ValidationException: unknown action, or an override without a
                valid priority code
        """
        action = str(action or "").strip().lower()
        if action not in VALID_REVIEW_ACTIONS:
            raise ValidationException(
                f"Invalid review action '{action}'",
                {"allowed": VALID_REVIEW_ACTIONS}
            )

        next_code = self.applied_priority_code
        if action == ReviewAction.APPLY_PREDICTED:
            next_code = self.predicted_priority_code
        elif action == ReviewAction.OVERRIDE:
            if not priority_code:
                raise ValidationException("priority_code is required for override decision")
            next_code = normalize_priority_code(priority_code, fallback=None)
            if next_code is None:
                raise ValidationException(
                    f"Invalid priority code '{priority_code}'",
                    {"allowed": VALID_PRIORITIES}
                )

        self.applied_priority_code = next_code
        self.needs_review = False
        self.reviewed_by_user_id = reviewer_id
        self.reviewed_at = at or datetime.now(timezone.utc)
        return next_code


@dataclass
class PriorityHistoryEntry:
    """One change of a ticket's priority."""
    ticket_id: str
    new_priority_code: str
    old_priority_code: Optional[str] = None
    changed_by_user_id: Optional[str] = None
    change_source: str = "system"
    reason: Optional[str] = None
    inference_id: Optional[int] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    id: Optional[int] = None


@dataclass(frozen=True)
class ReviewMetrics:
    """Aggregate review statistics over inference records."""
    total: int
    pending_review: int
    reviewed: int
    reviewed_agreed: int
    agreement_rate: Optional[float]
    average_confidence: Optional[float]
    by_intake_source: Dict[str, int]

    @classmethod
    def from_records(cls, records: Iterable[InferenceRecord]) -> "ReviewMetrics":
        records = list(records)
        reviewed = [r for r in records if r.is_reviewed]
        agreed = [r for r in reviewed if r.predicted_priority_code == r.applied_priority_code]
        pending = [r for r in records if r.needs_review and not r.is_reviewed]

        return cls(
            total=len(records),
            pending_review=len(pending),
            reviewed=len(reviewed),
            reviewed_agreed=len(agreed),
            agreement_rate=round(len(agreed) / len(reviewed), 4) if reviewed else None,
            average_confidence=(
                round(sum(r.confidence for r in records) / len(records), 4) if records else None
            ),
            by_intake_source=dict(Counter(r.intake_source or IntakeSource.PORTAL for r in records)),
        )


class ClassificationPromptBuilder:
    """
    Builds prompts for the priority classifier.

    The user message is a JSON document so the model sees every field,
    including the rule engine's own prediction.
    """

    SYSTEM_PROMPT = (
        "Classify IT support ticket priority using all available fields (subject, body, sender, "
        "intake source, and rule context), and return strict JSON only. "
        "Required keys: predicted_priority_code, confidence, reason. "
        "Priority must be one of low, medium, high, critical. confidence must be 0..1."
    )

    SUBJECT_LIMIT = 300
    SENDER_LIMIT = 200

    @classmethod
    def build_payload(
        cls,
        subject: str,
        body_text: str,
        from_email: Optional[str],
        intake_source: Optional[str],
        rules: Any,
        max_body_chars: int,
    ) -> Dict[str, Any]:
        return {
            "intake_source": intake_source or IntakeSource.PORTAL,
            "from_email": clean_text(from_email)[:cls.SENDER_LIMIT] or None,
            "subject": clean_text(subject)[:cls.SUBJECT_LIMIT],
            "body_text": clean_text(body_text)[:max_body_chars],
            "rules_prediction": {
                "priority": getattr(rules, "predicted_priority_code", PriorityCode.MEDIUM),
                "confidence": float(getattr(rules, "confidence", 0) or 0),
                "hard_match": bool(getattr(rules, "hard_match", False)),
                "reason": str(getattr(rules, "reason", "") or ""),
            },
        }

    @classmethod
    def build_messages(cls, payload: Dict[str, Any]) -> list:
        return [
            {"role": "system", "content": cls.SYSTEM_PROMPT},
            {"role": "user", "content": json.dumps(payload)},
        ]
