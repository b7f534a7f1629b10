import asyncio
import json

import pytest

from deskwatch.infrastructure.llm import MockLLMClient
from deskwatch.priority.domain import ClassifierConfig, evaluate_rules
from deskwatch.priority.infrastructure import LLMPriorityClassifier
from deskwatch.shared.infrastructure.resilience import CircuitBreaker

SUBJECT = "Cannot login to email"
BODY = "Since this morning I cannot login to my mailbox, please advise."


class SlowLLMClient(MockLLMClient):
    async def chat_completion(self, messages, model, temperature=0.0, max_tokens=400, operation="chat_completion"):
        await asyncio.sleep(1)
        return await super().chat_completion(messages, model, temperature, max_tokens, operation)


class FailingLLMClient(MockLLMClient):
    async def chat_completion(self, messages, model, temperature=0.0, max_tokens=400, operation="chat_completion"):
        self.calls.append({"operation": operation})
        raise ConnectionError("connection refused")


def _classifier(client, **config):
    return LLMPriorityClassifier(client, ClassifierConfig(**config))


async def _classify(classifier, body=BODY):
    return await classifier.classify(SUBJECT, body, "jane@corp.example", "email", evaluate_rules(SUBJECT, body))


async def test_successful_classification_is_normalised():
    client = MockLLMClient({
        "priority_classification": {"predicted_priority_code": " HIGH ", "confidence": 1.7, "reason": "  very \n urgent  "},
    })

    outcome = await _classify(_classifier(client))

    assert outcome.ok is True
    assert outcome.provider == "openai"
    assert outcome.model_name == "gpt-4o-mini"
    assert outcome.predicted_priority_code == "high"
    assert outcome.confidence == 1.0
    assert outcome.reason == "very urgent"
    assert "output_text" in outcome.raw_output


async def test_unknown_tier_becomes_medium():
    client = MockLLMClient({"priority_classification": {"predicted_priority_code": "p0", "confidence": "n/a"}})

    outcome = await _classify(_classifier(client))

    assert outcome.predicted_priority_code == "medium"
    assert outcome.confidence == 0.0
    assert outcome.reason == "LLM classified ticket priority"


async def test_unparseable_output_is_a_failure():
    client = MockLLMClient({"priority_classification": "I think it is high priority."})

    outcome = await _classify(_classifier(client))

    assert outcome.ok is False
    assert outcome.reason == "LLM output could not be parsed as JSON"
    assert outcome.raw_output == {"output_text": "I think it is high priority."}


async def test_timeout_is_a_failure():
    classifier = _classifier(SlowLLMClient(), timeout_ms=20, min_timeout_ms=0)

    outcome = await _classify(classifier)

    assert outcome.ok is False
    assert outcome.reason == "LLM request timed out after 20 ms"


async def test_transport_error_is_a_failure():
    outcome = await _classify(_classifier(FailingLLMClient()))

    assert outcome.ok is False
    assert outcome.reason == "LLM request error: connection refused"


async def test_open_circuit_skips_the_call():
    client = FailingLLMClient()
    classifier = LLMPriorityClassifier(
        client, ClassifierConfig(), breaker=CircuitBreaker("priority", failure_threshold=1)
    )

    await _classify(classifier)
    outcome = await _classify(classifier)

    assert len(client.calls) == 1
    assert outcome.reason == "LLM circuit open, skipping classifier call"


async def test_prompt_carries_rules_prediction_and_bounded_body():
    client = MockLLMClient()
    classifier = _classifier(client, max_body_chars=10)

    await _classify(classifier, body="word " * 400)

    messages = client.calls[0]["messages"]
    assert messages[0]["role"] == "system"
    payload = json.loads(messages[1]["content"])
    assert payload["intake_source"] == "email"
    assert payload["from_email"] == "jane@corp.example"
    assert len(payload["body_text"]) == 500
    assert set(payload["rules_prediction"]) == {"priority", "confidence", "hard_match", "reason"}


@pytest.mark.parametrize("configured,effective", [(100, 1.0), (2500, 2.5)])
def test_timeout_floor(configured, effective):
    assert ClassifierConfig(timeout_ms=configured).effective_timeout_seconds == effective
