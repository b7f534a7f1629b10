"""
LLM Client Infrastructure
==========================

Thin wrapper over OpenAI-compatible chat completion APIs.

The classifier adapters depend on ``ILLMClient`` only, so tests and the
``MOCK_LLM`` mode can swap in ``MockLLMClient`` without touching the network.
"""

import json
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

import httpx
from openai import AsyncOpenAI, OpenAIError

from deskwatch.core import ConfigurationException, LLMException


@dataclass(frozen=True)
class ChatCompletionResult:
    """One completion as the classifiers see it: the text plus usage counters."""
    content: str
    model: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    latency_ms: int = 0
    response_id: Optional[str] = None

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


class ILLMClient(ABC):
    """Interface for the chat completion call the classifiers need."""

    @abstractmethod
    async def chat_completion(
        self,
        messages: List[dict],
        model: str,
        temperature: float = 0.0,
        max_tokens: int = 400,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        """Generate chat completion."""

    async def close(self) -> None:
        """Release network resources. No-op by default."""


class OpenAILLMClient(ILLMClient):
    """
    OpenAI client implementation.

    ``base_url`` points the SDK at any OpenAI-compatible gateway;
    ``http_client`` lets tests inject an ``httpx.AsyncClient`` with a mock
    transport.
    """

    def __init__(
        self,
        api_key: Optional[str],
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        max_retries: int = 0
    ):
        if not (api_key or "").strip():
            raise ConfigurationException("OpenAI API key not configured")

        self._client = AsyncOpenAI(
            api_key=api_key.strip(),
            base_url=base_url or None,
            http_client=http_client,
            max_retries=max_retries,
        )

    async def chat_completion(
        self,
        messages: List[dict],
        model: str,
        temperature: float = 0.0,
        max_tokens: int = 400,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        """
        Generate chat completion.

        Raises:
            LLMException: If the request fails or returns no content
        """
        start_time = time.perf_counter()

        try:
            response = await self._client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens
            )
        except OpenAIError as e:
            raise LLMException(f"{operation} request failed: {e}") from e

        latency_ms = int((time.perf_counter() - start_time) * 1000)

        if not response.choices:
            raise LLMException(f"{operation} returned no choices")

        usage = response.usage
        return ChatCompletionResult(
            content=response.choices[0].message.content or "",
            model=response.model or model,
            prompt_tokens=usage.prompt_tokens if usage else 0,
            completion_tokens=usage.completion_tokens if usage else 0,
            latency_ms=latency_ms,
            response_id=response.id,
        )

    async def close(self) -> None:
        await self._client.close()


class MockLLMClient(ILLMClient):
    """
    Mock LLM client for local runs and tests.

    Returns canned classifier answers keyed by ``operation``; unknown
    operations get a plain text reply.
    """

    RESPONSES = {
        "priority_classification": {
            "predicted_priority_code": "medium",
            "confidence": 0.7,
            "reason": "Mock: no strong priority indicators.",
        },
        "email_intent": {
            "classification": "ticket",
            "confidence": 0.7,
            "reason": "Mock: message reads like a support request.",
            "suggested_decision": "allow",
        },
    }

    def __init__(self, responses: Optional[dict] = None):
        self._responses = {**self.RESPONSES, **(responses or {})}
        self.calls: List[dict] = []

    async def chat_completion(
        self,
        messages: List[dict],
        model: str,
        temperature: float = 0.0,
        max_tokens: int = 400,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        self.calls.append({"operation": operation, "model": model, "messages": messages})

        canned = self._responses.get(operation)
        if canned is None:
            content = "This is a mock LLM response for testing purposes."
        elif isinstance(canned, str):
            content = canned
        else:
            content = f"```json\n{json.dumps(canned, indent=2)}\n```"

        return ChatCompletionResult(
            content=content,
            model="mock-model",
            prompt_tokens=100,
            completion_tokens=len(content.split()),
            latency_ms=1
        )
