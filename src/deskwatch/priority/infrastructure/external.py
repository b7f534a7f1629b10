"""
Priority External Service Adapters
===================================

LLM-backed implementation of ``IPriorityClassifier``.
"""

from typing import Optional

from deskwatch.config import normalize_priority_code
from deskwatch.infrastructure.llm import ILLMClient
from deskwatch.infrastructure.llm.guarded import GuardedLLMCall
from deskwatch.priority.application.services import IPriorityClassifier
from deskwatch.priority.domain import (
    ClassificationPromptBuilder,
    ClassifierConfig,
    ClassifierOutcome,
    RuleEvaluation,
)
from deskwatch.priority.domain.entities import REASON_LIMIT
from deskwatch.shared.infrastructure.metrics import GrafanaOTLPExporter
from deskwatch.shared.infrastructure.resilience import CircuitBreaker
from deskwatch.shared.text import clamp01, clean_text, extract_json_object

OPERATION = "priority_classification"


class LLMPriorityClassifier(IPriorityClassifier):
    """
    Asks a chat model for a priority tier.

    The body is cut to the configured budget before sending, the call is
    bounded by the configured timeout, and every failure comes back as a
    ``ClassifierOutcome`` with ``ok=False``.
    """

    def __init__(
        self,
        llm_client: ILLMClient,
        config: ClassifierConfig,
        provider: str = "openai",
        breaker: Optional[CircuitBreaker] = None,
        exporter: Optional[GrafanaOTLPExporter] = None,
    ):
        self._config = config
        self._provider = provider
        self._call = GuardedLLMCall(llm_client, "priority", breaker=breaker, exporter=exporter)

    async def classify(
        self,
        subject: str,
        body_text: str,
        from_email: Optional[str],
        intake_source: str,
        rules: RuleEvaluation,
    ) -> ClassifierOutcome:
        payload = ClassificationPromptBuilder.build_payload(
            subject, body_text, from_email, intake_source, rules,
            max_body_chars=self._config.effective_body_chars,
        )

        result = await self._call.complete(
            ClassificationPromptBuilder.build_messages(payload),
            model=self._config.model,
            timeout_seconds=self._config.effective_timeout_seconds,
            max_tokens=self._config.max_tokens,
            operation=OPERATION,
            parse=extract_json_object,
        )

        if not result.ok:
            raw_output = {"output_text": result.response.content} if result.response else None
            return ClassifierOutcome.failure(
                provider=self._provider,
                model_name=self._config.model,
                reason=result.failure_reason,
                raw_output=raw_output,
            )

        parsed = result.parsed
        return ClassifierOutcome.success(
            provider=self._provider,
            model_name=self._config.model,
            predicted_priority_code=normalize_priority_code(parsed.get("predicted_priority_code")),
            confidence=clamp01(parsed.get("confidence")),
            reason=clean_text(parsed.get("reason") or "LLM classified ticket priority")[:REASON_LIMIT],
            raw_output={
                "response_id": result.response.response_id,
                "output_text": result.response.content,
            },
        )
