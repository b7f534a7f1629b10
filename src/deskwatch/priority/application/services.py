"""
Priority Application Services
==============================

The decision aggregator and the review workflow.

``PriorityDecisionService.decide`` always returns a usable decision: external
classifier failures and unexpected errors degrade to the rules-only result
with a bounded reason that says what happened.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from deskwatch.config import (
    IntakeSource,
    PriorityCode,
    PriorityMode,
    normalize_priority_code,
)
from deskwatch.core import NotProvisioned, Provisioned, ResourceNotFoundException, Result
from deskwatch.priority.domain import (
    ClassifierOutcome,
    InferenceRecord,
    PriorityDecision,
    PriorityHistoryEntry,
    PriorityPolicy,
    PromptVersion,
    Provider,
    ReviewMetrics,
    RuleEvaluation,
    evaluate_rules,
)
from deskwatch.priority.domain.entities import REASON_LIMIT
from deskwatch.shared.infrastructure.logging import get_logger
from deskwatch.shared.text import bounded, clamp01

logger = get_logger(__name__)

AGREEMENT_BONUS = 0.08
DISAGREEMENT_PENALTY = 0.05
DEFAULT_CLASSIFIER_CONFIDENCE = 0.6


# ========== Collaborator Interfaces ==========

class IPriorityClassifier(ABC):
    """External priority classifier. Implementations must not raise."""

    @abstractmethod
    async def classify(
        self,
        subject: str,
        body_text: str,
        from_email: Optional[str],
        intake_source: str,
        rules: RuleEvaluation,
    ) -> ClassifierOutcome:
        """Classify ticket text into a priority tier."""


class IInferenceRepository(ABC):
    """Storage for inference records."""

    @abstractmethod
    async def add(self, record: InferenceRecord) -> Result[InferenceRecord]:
        """Persist a new record and return it with its id."""

    @abstractmethod
    async def get(self, inference_id: int) -> Result[Optional[InferenceRecord]]:
        """Load one record."""

    @abstractmethod
    async def save(self, record: InferenceRecord) -> Result[InferenceRecord]:
        """Persist review state of an existing record."""

    @abstractmethod
    async def latest_for_ticket(self, ticket_id: str) -> Result[Optional[InferenceRecord]]:
        """Most recent record for a ticket."""

    @abstractmethod
    async def list_records(self) -> Result[List[InferenceRecord]]:
        """All records, oldest first."""


class IPriorityHistoryRepository(ABC):
    """Append-only priority change log keyed by ticket."""

    @abstractmethod
    async def add(self, entry: PriorityHistoryEntry) -> Result[PriorityHistoryEntry]:
        """Append one entry."""

    @abstractmethod
    async def list_for_ticket(self, ticket_id: str) -> Result[List[PriorityHistoryEntry]]:
        """Entries for a ticket, newest first."""


# ========== Decision Aggregator ==========

class PriorityDecisionService:
    """
    Combines the rule scorer with an optional external classifier.

    Modes:
        manual_input: explicit valid priority from the caller, confidence 1
        disabled: fixed medium / 0.5, needs review
        rules_only: rule scorer output verbatim
        llm_only: classifier result, or rules with a fallback annotation
        hybrid_llm: rules hard match wins; otherwise the classifier tier with
            confidence nudged by agreement with the rules, or rules fallback
    """

    def __init__(
        self,
        policy: PriorityPolicy,
        classifier: Optional[IPriorityClassifier] = None,
        inference_repository: Optional[IInferenceRepository] = None,
        history_repository: Optional[IPriorityHistoryRepository] = None,
    ):
        self._policy = policy
        self._classifier = classifier
        self._inferences = inference_repository
        self._history = history_repository

    @property
    def policy(self) -> PriorityPolicy:
        return self._policy

    async def decide(
        self,
        subject: Optional[str],
        body_text: Optional[str],
        from_email: Optional[str] = None,
        explicit_priority_code: Optional[str] = None,
        intake_source: Optional[str] = IntakeSource.PORTAL,
    ) -> PriorityDecision:
        """Produce a decision. Never raises."""
        source = intake_source or IntakeSource.PORTAL

        explicit = normalize_priority_code(explicit_priority_code, fallback=None)
        if explicit:
            return self._to_decision(
                predicted=explicit,
                confidence=1.0,
                reason="Explicit priority provided by user input",
                rule_hits={"hard": [], "high": [], "low": []},
                hard_match=True,
                mode=PriorityMode.MANUAL_INPUT,
                provider=Provider.MANUAL_INPUT,
                intake_source=source,
                prompt_version=PromptVersion.MANUAL,
            )

        if not self._policy.enabled or self._policy.mode == PriorityMode.DISABLED:
            return self._to_decision(
                predicted=PriorityCode.MEDIUM,
                confidence=0.5,
                reason="Priority intelligence disabled by configuration",
                rule_hits={"hard": [], "high": [], "low": []},
                hard_match=False,
                mode=PriorityMode.DISABLED,
                provider=Provider.DISABLED,
                intake_source=source,
                prompt_version=PromptVersion.DISABLED,
            )

        try:
            rules = evaluate_rules(
                subject, body_text, from_email, source,
                internal_domains=self._policy.internal_domains,
            )
        except Exception as e:
            logger.error("Rule scoring failed", extra={"error": str(e), "error_type": type(e).__name__})
            return self._safe_default(source, f"Rule scoring failed: {e}")

        try:
            return await self._decide_for_mode(rules, subject, body_text, from_email, source)
        except Exception as e:
            logger.error(
                "Priority decision degraded to rules",
                extra={"mode": self._policy.mode, "error": str(e), "error_type": type(e).__name__}
            )
            return self._from_rules(
                rules,
                mode=self._policy.mode,
                provider=Provider.RULES_ENGINE_FALLBACK,
                intake_source=source,
                prompt_version=PromptVersion.RULES,
                reason=f"Priority decision degraded to rules after an internal error. {rules.reason}",
            )

    async def _decide_for_mode(
        self,
        rules: RuleEvaluation,
        subject: Optional[str],
        body_text: Optional[str],
        from_email: Optional[str],
        source: str,
    ) -> PriorityDecision:
        mode = self._policy.mode

        if mode == PriorityMode.LLM_ONLY:
            outcome = await self._classify(subject, body_text, from_email, source, rules)
            if outcome.ok:
                return self._to_decision(
                    predicted=outcome.predicted_priority_code,
                    confidence=outcome.confidence,
                    reason=outcome.reason,
                    rule_hits={"hard": [], "high": [], "low": [], "llm": True},
                    hard_match=False,
                    mode=PriorityMode.LLM_ONLY,
                    provider=outcome.provider,
                    intake_source=source,
                    model_name=outcome.model_name,
                    prompt_version=PromptVersion.LLM,
                    raw_output=outcome.raw_output,
                )

            rule_hits = dict(rules.rule_hits)
            rule_hits["llm"] = {"error": outcome.reason or "unknown", "fallback": PriorityMode.RULES_ONLY}
            return self._from_rules(
                rules,
                mode=PriorityMode.LLM_ONLY,
                provider=Provider.RULES_ENGINE_FALLBACK,
                intake_source=source,
                prompt_version=PromptVersion.LLM,
                reason=f"LLM unavailable in llm_only mode. Fallback to rules-based decision. {outcome.reason}".strip(),
                rule_hits=rule_hits,
                model_name=outcome.model_name,
                raw_output=outcome.raw_output,
            )

        if mode == PriorityMode.HYBRID_LLM:
            if rules.hard_match:
                return self._from_rules(
                    rules,
                    mode=PriorityMode.HYBRID_LLM,
                    provider=Provider.RULES_ENGINE,
                    intake_source=source,
                    prompt_version=PromptVersion.HYBRID,
                )

            outcome = await self._classify(subject, body_text, from_email, source, rules)
            if outcome.ok:
                agreed = outcome.predicted_priority_code == rules.predicted_priority_code
                base = outcome.confidence or DEFAULT_CLASSIFIER_CONFIDENCE
                blended = clamp01(base + (AGREEMENT_BONUS if agreed else -DISAGREEMENT_PENALTY))
                return self._to_decision(
                    predicted=outcome.predicted_priority_code,
                    confidence=blended,
                    reason=outcome.reason,
                    rule_hits={
                        "hard": rules.rule_hits.get("hard", []),
                        "high": rules.rule_hits.get("high", []),
                        "low": rules.rule_hits.get("low", []),
                        "llm": {
                            "predicted": outcome.predicted_priority_code,
                            "base_confidence": outcome.confidence,
                            "agreed_with_rules": agreed,
                        },
                    },
                    hard_match=False,
                    mode=PriorityMode.HYBRID_LLM,
                    provider=outcome.provider,
                    intake_source=source,
                    model_name=outcome.model_name,
                    prompt_version=PromptVersion.HYBRID,
                    raw_output=outcome.raw_output,
                )

            return self._from_rules(
                rules,
                mode=PriorityMode.HYBRID_LLM,
                provider=Provider.RULES_ENGINE_FALLBACK,
                intake_source=source,
                prompt_version=PromptVersion.HYBRID,
                reason=f"Hybrid mode fallback to rules. {outcome.reason}".strip(),
                model_name=outcome.model_name,
                raw_output=outcome.raw_output,
            )

        return self._from_rules(
            rules,
            mode=PriorityMode.RULES_ONLY,
            provider=Provider.RULES_ENGINE,
            intake_source=source,
            prompt_version=PromptVersion.RULES,
        )

    async def _classify(
        self,
        subject: Optional[str],
        body_text: Optional[str],
        from_email: Optional[str],
        source: str,
        rules: RuleEvaluation,
    ) -> ClassifierOutcome:
        if self._classifier is None:
            return ClassifierOutcome.failure(
                provider="none", model_name=None, reason="No external classifier configured"
            )
        try:
            return await self._classifier.classify(subject or "", body_text or "", from_email, source, rules)
        except Exception as e:
            logger.warning("Priority classifier raised", extra={"error": str(e), "error_type": type(e).__name__})
            return ClassifierOutcome.failure(
                provider="unknown", model_name=None, reason=f"LLM request error: {e}"
            )

    def _from_rules(
        self,
        rules: RuleEvaluation,
        mode: str,
        provider: str,
        intake_source: str,
        prompt_version: str,
        reason: Optional[str] = None,
        rule_hits: Optional[dict] = None,
        model_name: Optional[str] = None,
        raw_output: Optional[dict] = None,
    ) -> PriorityDecision:
        return self._to_decision(
            predicted=rules.predicted_priority_code,
            confidence=rules.confidence,
            reason=reason if reason is not None else rules.reason,
            rule_hits=rule_hits if rule_hits is not None else rules.rule_hits,
            hard_match=rules.hard_match,
            mode=mode,
            provider=provider,
            intake_source=intake_source,
            model_name=model_name,
            prompt_version=prompt_version,
            raw_output=raw_output,
        )

    def _to_decision(
        self,
        predicted: str,
        confidence: float,
        reason: str,
        rule_hits: dict,
        hard_match: bool,
        mode: str,
        provider: str,
        intake_source: str,
        prompt_version: str,
        model_name: Optional[str] = None,
        raw_output: Optional[dict] = None,
    ) -> PriorityDecision:
        """Apply the auto-apply gate and the safe default for held-back decisions."""
        is_auto_applied = bool(hard_match) or confidence >= self._policy.auto_apply_threshold
        predicted = normalize_priority_code(predicted)
        applied = predicted if is_auto_applied else PriorityCode.MEDIUM

        return PriorityDecision(
            mode=mode,
            provider=provider,
            predicted_priority_code=predicted,
            applied_priority_code=applied,
            confidence=float(confidence or 0),
            reason=bounded(reason, REASON_LIMIT),
            is_auto_applied=is_auto_applied,
            rule_hits=rule_hits or {},
            prompt_version=prompt_version,
            model_name=model_name,
            intake_source=intake_source,
            raw_output=raw_output,
        )

    def _safe_default(self, source: str, reason: str) -> PriorityDecision:
        return PriorityDecision(
            mode=self._policy.mode,
            provider=Provider.RULES_ENGINE_FALLBACK,
            predicted_priority_code=PriorityCode.MEDIUM,
            applied_priority_code=PriorityCode.MEDIUM,
            confidence=0.0,
            reason=bounded(reason, REASON_LIMIT),
            is_auto_applied=False,
            rule_hits={"hard": [], "high": [], "low": []},
            prompt_version=PromptVersion.RULES,
            intake_source=source,
        )

    async def record_decision(
        self,
        ticket_id: str,
        decision: PriorityDecision,
        actor_user_id: Optional[str] = None,
    ) -> Result[InferenceRecord]:
        """
        Persist a decision as an inference record.

        When the applied priority differs from the ticket's last recorded
        priority a ``system`` history entry is appended.
        """
        if self._inferences is None:
            return NotProvisioned("ai_inferences")

        stored = await self._inferences.add(InferenceRecord.from_decision(ticket_id, decision, actor_user_id))
        if isinstance(stored, NotProvisioned):
            logger.warning("Inference not recorded", extra={"ticket_id": ticket_id, "table": stored.table})
            return stored

        record = stored.value
        if self._history is not None:
            current = await current_priority(self._history, ticket_id)
            if current != record.applied_priority_code:
                await self._history.add(PriorityHistoryEntry(
                    ticket_id=str(ticket_id),
                    old_priority_code=current,
                    new_priority_code=record.applied_priority_code,
                    changed_by_user_id=actor_user_id,
                    change_source="system",
                    reason=decision.reason,
                    inference_id=record.id,
                ))

        logger.info(
            "Priority decision recorded",
            extra={
                "ticket_id": ticket_id,
                "inference_id": record.id,
                "mode": decision.mode,
                "applied": decision.applied_priority_code,
                "needs_review": decision.needs_review,
            }
        )
        return stored


async def current_priority(history: IPriorityHistoryRepository, ticket_id: str) -> Optional[str]:
    """The ticket's priority according to its history log, if any."""
    entries = await history.list_for_ticket(str(ticket_id))
    if isinstance(entries, Provisioned) and entries.value:
        return entries.value[0].new_priority_code
    return None


# ========== Review Workflow ==========

@dataclass(frozen=True)
class ReviewOutcome:
    inference_id: int
    ticket_id: str
    decision: str
    applied_priority_code: str
    priority_changed: bool
    reviewed_at: Optional[datetime] = None
    history_entry: Optional[PriorityHistoryEntry] = None


class PriorityReviewService:
    """Applies reviewer decisions to recorded inferences."""

    def __init__(
        self,
        inference_repository: IInferenceRepository,
        history_repository: IPriorityHistoryRepository,
    ):
        self._inferences = inference_repository
        self._history = history_repository

    async def review(
        self,
        inference_id: int,
        action: str,
        reviewer_id: Optional[str],
        priority_code: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> Result[ReviewOutcome]:
        """
        Approve, apply the prediction, or override a recorded decision.

        Raises:
            ResourceNotFoundException: unknown inference id
            ValidationException: invalid action or override code
        """
        action = str(action or "").strip().lower()
        loaded = await self._inferences.get(inference_id)
        if isinstance(loaded, NotProvisioned):
            return loaded
        record = loaded.value
        if record is None:
            raise ResourceNotFoundException("Inference", str(inference_id))

        previous = await current_priority(self._history, record.ticket_id)
        if previous is None:
            previous = record.applied_priority_code

        applied = record.apply_review(action, reviewer_id, priority_code, at=datetime.now(timezone.utc))

        saved = await self._inferences.save(record)
        if isinstance(saved, NotProvisioned):
            return saved

        history_entry = None
        if applied != previous:
            entry = PriorityHistoryEntry(
                ticket_id=record.ticket_id,
                old_priority_code=previous,
                new_priority_code=applied,
                changed_by_user_id=reviewer_id,
                change_source="manual",
                reason=bounded((reason or "").strip(), REASON_LIMIT) or f"AI review decision: {action}",
                inference_id=record.id,
            )
            added = await self._history.add(entry)
            if isinstance(added, Provisioned):
                history_entry = added.value

        logger.info(
            "Inference reviewed",
            extra={
                "inference_id": inference_id,
                "ticket_id": record.ticket_id,
                "review_action": action,
                "applied": applied,
                "priority_changed": applied != previous,
            }
        )
        return Provisioned(ReviewOutcome(
            inference_id=record.id,
            ticket_id=record.ticket_id,
            decision=action,
            applied_priority_code=applied,
            priority_changed=applied != previous,
            reviewed_at=record.reviewed_at,
            history_entry=history_entry,
        ))

    async def metrics(self) -> Result[ReviewMetrics]:
        records = await self._inferences.list_records()
        if isinstance(records, NotProvisioned):
            return records
        return Provisioned(ReviewMetrics.from_records(records.value))
