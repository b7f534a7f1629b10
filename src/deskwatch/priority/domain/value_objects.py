"""
Priority Value Objects
=======================

Immutable policy objects handed to the decision engine. Built from
``Settings`` at startup; the engine never reads the environment.
"""

from pydantic import BaseModel, ConfigDict, Field

from deskwatch.config import DEFAULT_LLM_MODEL, PriorityMode


class PriorityPolicy(BaseModel):
    """How the decision aggregator behaves."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    mode: str = PriorityMode.RULES_ONLY
    auto_apply_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    internal_domains: frozenset = frozenset()


class ClassifierConfig(BaseModel):
    """Tuning for one external LLM classifier."""

    model_config = ConfigDict(frozen=True)

    model: str = DEFAULT_LLM_MODEL
    timeout_ms: int = Field(default=10000, ge=0)
    max_body_chars: int = Field(default=3000, ge=0)
    max_tokens: int = Field(default=400, ge=1)

    # Floors applied to whatever was configured
    min_timeout_ms: int = 1000
    min_body_chars: int = 500

    @property
    def effective_timeout_seconds(self) -> float:
        return max(self.min_timeout_ms, self.timeout_ms) / 1000

    @property
    def effective_body_chars(self) -> int:
        return max(self.min_body_chars, self.max_body_chars)
