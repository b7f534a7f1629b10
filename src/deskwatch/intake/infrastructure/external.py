"""
Intake External Service Adapters
=================================

LLM-backed implementation of ``IEmailIntentClassifier``.
"""

from typing import Optional

from deskwatch.config import VALID_INTENTS, EmailIntent, IntakeDecision
from deskwatch.infrastructure.llm import ILLMClient
from deskwatch.infrastructure.llm.guarded import GuardedLLMCall
from deskwatch.intake.application.services import IEmailIntentClassifier
from deskwatch.intake.domain import (
    EmailRiskAssessment,
    InboundEmail,
    IntentOutcome,
    build_intent_messages,
    build_intent_payload,
)
from deskwatch.priority.domain import ClassifierConfig
from deskwatch.shared.infrastructure.metrics import GrafanaOTLPExporter
from deskwatch.shared.infrastructure.resilience import CircuitBreaker
from deskwatch.shared.text import clamp01, clean_text, extract_json_object

OPERATION = "email_intent"
SUGGESTED_DECISIONS = [IntakeDecision.ALLOW, IntakeDecision.REVIEW, IntakeDecision.IGNORE]


class LLMEmailIntentClassifier(IEmailIntentClassifier):
    """Asks a chat model whether an email is a support request."""

    def __init__(
        self,
        llm_client: ILLMClient,
        config: ClassifierConfig,
        breaker: Optional[CircuitBreaker] = None,
        exporter: Optional[GrafanaOTLPExporter] = None,
    ):
        self._config = config
        self._call = GuardedLLMCall(llm_client, "email_intent", breaker=breaker, exporter=exporter)

    async def classify(self, email: InboundEmail, base: EmailRiskAssessment) -> IntentOutcome:
        payload = build_intent_payload(email, base, max_body_chars=self._config.effective_body_chars)

        result = await self._call.complete(
            build_intent_messages(payload),
            model=self._config.model,
            timeout_seconds=self._config.effective_timeout_seconds,
            max_tokens=self._config.max_tokens,
            operation=OPERATION,
            parse=extract_json_object,
        )

        if not result.ok:
            raw_output = {"output_text": result.response.content} if result.response else None
            return IntentOutcome.failure(model=self._config.model, reason=result.failure_reason, raw_output=raw_output)

        parsed = result.parsed
        classification = str(parsed.get("classification") or "").strip().lower()
        if classification not in VALID_INTENTS:
            classification = EmailIntent.UNCERTAIN

        suggested = str(parsed.get("suggested_decision") or "").strip().lower()
        if suggested not in SUGGESTED_DECISIONS:
            suggested = IntakeDecision.REVIEW

        return IntentOutcome(
            ok=True,
            model=self._config.model,
            classification=classification,
            confidence=clamp01(parsed.get("confidence")),
            reason=clean_text(parsed.get("reason") or "LLM email intent classification")[:500],
            suggested_decision=suggested,
            raw_output={
                "response_id": result.response.response_id,
                "output_text": result.response.content,
            },
        )
