"""
Guarded classifier calls.

Wraps one chat completion with the classifier's timeout, the circuit breaker
and metrics export, and reports the outcome as a value. Used by both the
priority and the email intent classifier adapters.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from deskwatch.infrastructure.llm import ChatCompletionResult, ILLMClient
from deskwatch.shared.infrastructure.logging import get_logger
from deskwatch.shared.infrastructure.metrics import GrafanaOTLPExporter
from deskwatch.shared.infrastructure.resilience import CircuitBreaker

logger = get_logger(__name__)


class CallOutcome:
    """Outcome labels exported with classifier metrics."""
    SUCCESS = "success"
    TIMEOUT = "timeout"
    ERROR = "error"
    UNPARSEABLE = "unparseable"
    CIRCUIT_OPEN = "circuit_open"


@dataclass
class GuardedCallResult:
    response: Optional[ChatCompletionResult]
    failure_reason: Optional[str]
    outcome: str
    latency_ms: int
    parsed: Optional[dict] = None

    @property
    def ok(self) -> bool:
        return self.outcome == CallOutcome.SUCCESS


class GuardedLLMCall:
    """
    Runs classifier completions under a timeout and a circuit breaker.

    A timed-out call is cancelled and reported exactly like any other
    failure; nothing partial is returned.
    """

    def __init__(
        self,
        llm_client: ILLMClient,
        classifier_name: str,
        breaker: Optional[CircuitBreaker] = None,
        exporter: Optional[GrafanaOTLPExporter] = None,
    ):
        self._llm = llm_client
        self._name = classifier_name
        self._breaker = breaker or CircuitBreaker(classifier_name)
        self._exporter = exporter

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    async def complete(
        self,
        messages: List[dict],
        model: str,
        timeout_seconds: float,
        max_tokens: int,
        operation: str,
        parse: Callable[[str], Optional[dict]],
    ) -> GuardedCallResult:
        """Run one completion; ``parse`` turns its content into a dict or None."""
        if not self._breaker.allow_request():
            result = GuardedCallResult(None, "LLM circuit open, skipping classifier call", CallOutcome.CIRCUIT_OPEN, 0)
            await self._export(model, result)
            return result

        start = time.perf_counter()
        try:
            response = await asyncio.wait_for(
                self._llm.chat_completion(
                    messages,
                    model=model,
                    temperature=0.0,
                    max_tokens=max_tokens,
                    operation=operation,
                ),
                timeout=timeout_seconds,
            )
        except asyncio.TimeoutError:
            result = GuardedCallResult(
                None,
                f"LLM request timed out after {int(timeout_seconds * 1000)} ms",
                CallOutcome.TIMEOUT,
                self._elapsed_ms(start),
            )
        except Exception as e:
            result = GuardedCallResult(
                None,
                f"LLM request error: {str(e) or type(e).__name__}",
                CallOutcome.ERROR,
                self._elapsed_ms(start),
            )
        else:
            parsed = parse(response.content)
            if parsed is None:
                result = GuardedCallResult(
                    response,
                    "LLM output could not be parsed as JSON",
                    CallOutcome.UNPARSEABLE,
                    self._elapsed_ms(start),
                )
            else:
                result = GuardedCallResult(response, None, CallOutcome.SUCCESS, self._elapsed_ms(start), parsed)

        if result.ok:
            self._breaker.record_success()
        else:
            self._breaker.record_failure()
            logger.warning(
                "Classifier call failed",
                extra={"classifier": self._name, "model": model, "reason": result.failure_reason}
            )

        await self._export(model, result)
        return result

    async def _export(self, model: str, result: GuardedCallResult) -> None:
        if self._exporter is None or not self._exporter.is_enabled():
            return
        await self._exporter.export_classifier_call(
            classifier=self._name,
            model=model,
            outcome=result.outcome,
            latency_ms=result.latency_ms,
        )

    @staticmethod
    def _elapsed_ms(start: float) -> int:
        return int((time.perf_counter() - start) * 1000)
