"""
Email intent gate.

Builds the intent classifier prompt and folds a classification back into
the rule assessment. A ``quarantine`` assessment is never passed here.
"""

import json
from typing import Any, Dict, List

from deskwatch.config import EmailIntent, IntakeDecision
from deskwatch.intake.domain.entities import EmailRiskAssessment, InboundEmail, IntentOutcome
from deskwatch.intake.domain.value_objects import IntentPolicy
from deskwatch.shared.text import clean_text, extract_email_address

SYSTEM_PROMPT = (
    "Classify if this inbound email is a valid IT support ticket request or non-ticket noise. "
    "Return strict JSON only with keys: classification, confidence, reason, suggested_decision. "
    "classification: ticket | non_ticket | uncertain. "
    "suggested_decision: allow | review | ignore."
)


def build_intent_payload(email: InboundEmail, base: EmailRiskAssessment, max_body_chars: int) -> Dict[str, Any]:
    return {
        "from": extract_email_address(email.from_address),
        "to": (email.to or "")[:300],
        "subject": clean_text(email.subject)[:300],
        "body": clean_text(email.text)[:max_body_chars],
        "attachments": email.attachment_names[:20],
        "rules_decision": {
            "decision": base.decision or IntakeDecision.ALLOW,
            "score": float(base.score or 0),
            "level": str(base.level or "low"),
            "reasons": list(base.reasons)[:10],
        },
    }


def build_intent_messages(payload: Dict[str, Any]) -> List[dict]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": json.dumps(payload)},
    ]


def apply_intent(base: EmailRiskAssessment, outcome: IntentOutcome, policy: IntentPolicy) -> EmailRiskAssessment:
    """
    Return a copy of ``base`` adjusted by the classifier outcome.

    - failure: decision unchanged, skip reason recorded
    - non_ticket at or above the auto-ignore confidence: ``ignore``
    - ticket at or above the promote confidence: ``ignore`` becomes ``review``
    - uncertain at or above the minimum confidence: ``allow`` becomes ``review``
    """
    result = base.copy()

    if not outcome.ok:
        result.reasons.append(f"LLM classification skipped: {outcome.reason}")
        result.rule_hits["llm_intent"] = {"used": False, "error": outcome.reason, "model": outcome.model}
        return result

    result.reasons.append(
        f"LLM intent={outcome.classification}, confidence={int(outcome.confidence * 100 + 0.5)}%, "
        f"reason={outcome.reason}"
    )
    result.rule_hits["llm_intent"] = {
        "used": True,
        "model": outcome.model,
        "classification": outcome.classification,
        "confidence": outcome.confidence,
        "suggested_decision": outcome.suggested_decision,
    }

    if outcome.classification == EmailIntent.NON_TICKET and outcome.confidence >= policy.auto_ignore_confidence:
        result.decision = IntakeDecision.IGNORE
    elif outcome.classification == EmailIntent.TICKET and outcome.confidence >= policy.auto_promote_ticket_confidence:
        if result.decision == IntakeDecision.IGNORE:
            result.decision = IntakeDecision.REVIEW
    elif (
        outcome.classification == EmailIntent.UNCERTAIN
        and outcome.confidence >= policy.min_confidence
        and result.decision == IntakeDecision.ALLOW
    ):
        result.decision = IntakeDecision.REVIEW

    return result
