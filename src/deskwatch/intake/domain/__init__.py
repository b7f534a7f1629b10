"""
Intake Domain Layer
===================

Email risk scoring and the intent gate. Pure Python, no I/O.
"""

from deskwatch.intake.domain.entities import (
    EmailAttachment,
    EmailRiskAssessment,
    InboundEmail,
    IntentOutcome,
    QuarantineRecord,
    QuarantineStatus,
)
from deskwatch.intake.domain.intent import apply_intent, build_intent_messages, build_intent_payload
from deskwatch.intake.domain.rules import evaluate_email_risk, extract_urls, risk_level
from deskwatch.intake.domain.value_objects import EmailGuardPolicy, IntentPolicy

__all__ = [
    "EmailAttachment",
    "EmailGuardPolicy",
    "EmailRiskAssessment",
    "InboundEmail",
    "IntentOutcome",
    "IntentPolicy",
    "QuarantineRecord",
    "QuarantineStatus",
    "apply_intent",
    "build_intent_messages",
    "build_intent_payload",
    "evaluate_email_risk",
    "extract_urls",
    "risk_level",
]
