"""
Intake Value Objects
====================

Immutable tuning for the email risk scorer and the intent classifier gate.
"""

from pydantic import BaseModel, ConfigDict, Field


class EmailGuardPolicy(BaseModel):
    """Thresholds and sender lists for ``evaluate_email_risk``."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    quarantine_score: float = 70
    review_score: float = 45
    max_urls_before_risk: int = Field(default=4, ge=0)
    blocked_domains: frozenset = frozenset()
    blocked_senders: frozenset = frozenset()
    allowed_domains: frozenset = frozenset()
    allowlist_only: bool = False


class IntentPolicy(BaseModel):
    """When an intent classification is allowed to move the rule decision."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    min_confidence: float = Field(default=0.65, ge=0.0, le=1.0)
    auto_ignore_confidence: float = Field(default=0.8, ge=0.0, le=1.0)
    auto_promote_ticket_confidence: float = Field(default=0.75, ge=0.0, le=1.0)
