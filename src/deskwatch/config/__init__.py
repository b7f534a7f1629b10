"""
Configuration Module
====================

Application settings loaded with pydantic-settings.

Every decision-path option is parsed leniently: a malformed value logs a
warning and falls back to its default instead of failing startup. The
engines never read the environment themselves; they receive policy objects
built by the ``Settings`` builder methods.
"""

import math
from functools import lru_cache
from pathlib import Path
from typing import Any, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from deskwatch.shared.infrastructure.logging import get_logger
from deskwatch.shared.text import parse_csv_set

logger = get_logger(__name__)


# ========== Constants ==========

class PriorityCode(str):
    """Ticket priority tiers."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class PriorityMode(str):
    """Decision aggregator modes."""
    MANUAL_INPUT = "manual_input"
    DISABLED = "disabled"
    RULES_ONLY = "rules_only"
    LLM_ONLY = "llm_only"
    HYBRID_LLM = "hybrid_llm"


class IntakeSource(str):
    """Where a ticket came from."""
    PORTAL = "portal"
    EMAIL = "email"


class IntakeDecision(str):
    """Inbound email intake outcomes."""
    ALLOW = "allow"
    REVIEW = "review"
    IGNORE = "ignore"
    QUARANTINE = "quarantine"


class RiskLevel(str):
    """Inbound email risk levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class EmailIntent(str):
    """Intent classifier labels."""
    TICKET = "ticket"
    NON_TICKET = "non_ticket"
    UNCERTAIN = "uncertain"


class ShiftCode(str):
    """Technician shift windows."""
    AM = "AM"
    PM = "PM"
    GY = "GY"


class SLAEventType(str):
    """Ticket lifecycle events that drive the SLA timer."""
    ASSIGNED = "assigned"
    PAUSED = "paused"
    RESUMED = "resumed"
    RESPONDED = "responded"
    RESOLVED = "resolved"


VALID_PRIORITIES = [PriorityCode.LOW, PriorityCode.MEDIUM, PriorityCode.HIGH, PriorityCode.CRITICAL]
CONFIGURABLE_MODES = [
    PriorityMode.RULES_ONLY, PriorityMode.LLM_ONLY,
    PriorityMode.HYBRID_LLM, PriorityMode.DISABLED,
]
VALID_INTAKE_DECISIONS = [
    IntakeDecision.ALLOW, IntakeDecision.REVIEW,
    IntakeDecision.IGNORE, IntakeDecision.QUARANTINE,
]
VALID_INTENTS = [EmailIntent.TICKET, EmailIntent.NON_TICKET, EmailIntent.UNCERTAIN]
VALID_SHIFTS = [ShiftCode.AM, ShiftCode.PM, ShiftCode.GY]
TIMER_START_EVENTS = [SLAEventType.ASSIGNED, SLAEventType.RESUMED]
TIMER_STOP_EVENTS = [SLAEventType.PAUSED, SLAEventType.RESPONDED, SLAEventType.RESOLVED]
VALID_SLA_EVENTS = TIMER_START_EVENTS + TIMER_STOP_EVENTS

DEFAULT_LLM_MODEL = "gpt-4o-mini"


def normalize_priority_code(code: Any, fallback: Optional[str] = PriorityCode.MEDIUM) -> Optional[str]:
    """Lowercase ``code`` and return it if it is a known tier, else ``fallback``."""
    normalized = str(code or "").strip().lower()
    return normalized if normalized in VALID_PRIORITIES else fallback


def _default_for(cls, info) -> Any:
    return cls.model_fields[info.field_name].default


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables and ``.env``.
    """

    # ========== Application ==========
    app_name: str = Field(default="deskwatch", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)
    cors_origins: List[str] = Field(default=["*"], description="Allowed CORS origins")

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/deskwatch",
        description="Async SQLAlchemy connection URL"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)
    auto_create_tables: bool = Field(default=False, description="Create missing tables at startup (development)")

    # ========== LLM provider ==========
    openai_api_key: Optional[str] = Field(default=None, description="API key for the classifier LLM")
    openai_base_url: Optional[str] = Field(default=None, description="Override for OpenAI-compatible gateways")
    mock_llm: bool = Field(default=False, description="Use canned LLM responses (no API calls)")

    # ========== Priority intelligence ==========
    ai_priority_enabled: bool = Field(default=True, description="Master switch for priority decisions")
    ai_priority_mode: str = Field(default="rules_only", description="rules_only | llm_only | hybrid_llm | disabled")
    ai_priority_auto_apply_threshold: float = Field(default=0.8, description="Auto-apply confidence gate")
    ai_priority_llm_model: str = Field(default=DEFAULT_LLM_MODEL, description="Priority classifier model")
    ai_priority_llm_timeout_ms: int = Field(default=10000, description="Priority classifier timeout")
    ai_priority_llm_max_body_chars: int = Field(default=3000, description="Body budget sent to the classifier")
    ai_priority_internal_domains: str = Field(
        default="",
        description="Comma separated sender domain suffixes treated as internal"
    )

    # ========== Email guard ==========
    email_guard_enabled: bool = Field(default=True, description="Enable inbound email risk scoring")
    email_guard_quarantine_score: float = Field(default=70.0, description="Score at or above which email is quarantined")
    email_guard_review_score: float = Field(default=45.0, description="Score at or above which email needs review")
    email_guard_max_urls_before_risk: int = Field(default=4, description="Link count tolerated before adding risk")
    email_guard_blocked_domains: str = Field(default="", description="Comma separated blocked sender domains")
    email_guard_blocked_senders: str = Field(default="", description="Comma separated blocked sender addresses")
    email_guard_allowed_domains: str = Field(default="", description="Comma separated allowlisted domains")
    email_guard_allowlist_only: bool = Field(default=False, description="Penalise senders outside the allowlist")

    # ========== Email intent classifier ==========
    email_guard_llm_enabled: bool = Field(default=True, description="Enable the email intent classifier")
    email_guard_llm_model: Optional[str] = Field(default=None, description="Falls back to AI_PRIORITY_LLM_MODEL")
    email_guard_llm_timeout_ms: int = Field(default=8000, description="Intent classifier timeout")
    email_guard_llm_max_body_chars: int = Field(default=3000, description="Body budget sent to the classifier")
    email_guard_llm_min_confidence: float = Field(default=0.65, description="Minimum confidence to act on 'uncertain'")
    email_guard_llm_auto_ignore_confidence: float = Field(default=0.8, description="Confidence to auto-ignore non-tickets")
    email_guard_llm_auto_promote_ticket_confidence: float = Field(
        default=0.75,
        description="Confidence to promote ignored email back to review"
    )

    # ========== Shifts / SLA ==========
    shift_config_path: Path = Field(default=Path("shifts.yaml"), description="Shift window YAML file")
    shift_timezone: str = Field(default="UTC", description="Timezone used for wall-clock shift hours")
    shift_monitor_interval: int = Field(default=60, description="Seconds between shift-change checks", ge=5)

    # ========== Grafana OTLP Metrics ==========
    grafana_host: Optional[str] = Field(default=None, description="Grafana OTLP gateway URL")
    grafana_api_key: Optional[str] = Field(default=None, description="Grafana API key for OTLP authentication")
    grafana_instance_id: Optional[str] = Field(default=None, description="Grafana instance ID for OTLP authentication")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production", "test"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("ai_priority_enabled", "email_guard_enabled", "email_guard_llm_enabled", mode="before")
    @classmethod
    def parse_enabled_flag(cls, v: Any) -> bool:
        """Feature switches stay on unless explicitly set to ``false``."""
        if isinstance(v, bool):
            return v
        return str(v).strip().lower() != "false"

    @field_validator("email_guard_allowlist_only", "mock_llm", "debug", "auto_create_tables", mode="before")
    @classmethod
    def parse_opt_in_flag(cls, v: Any) -> bool:
        """Opt-in switches are only on when explicitly ``true``."""
        if isinstance(v, bool):
            return v
        return str(v).strip().lower() in ("true", "1", "yes")

    @field_validator("ai_priority_mode", mode="before")
    @classmethod
    def parse_mode(cls, v: Any) -> str:
        normalized = str(v or "").strip().lower()
        if normalized not in CONFIGURABLE_MODES:
            logger.warning(
                "Unknown AI_PRIORITY_MODE, using rules_only",
                extra={"value": str(v)}
            )
            return PriorityMode.RULES_ONLY
        return normalized

    @field_validator(
        "ai_priority_auto_apply_threshold",
        "email_guard_llm_min_confidence",
        "email_guard_llm_auto_ignore_confidence",
        "email_guard_llm_auto_promote_ticket_confidence",
        mode="before",
    )
    @classmethod
    def parse_confidence(cls, v: Any, info) -> float:
        """Confidences must be finite; out-of-range values are clamped to [0, 1]."""
        default = _default_for(cls, info)
        try:
            number = float(v)
        except (TypeError, ValueError):
            number = math.nan
        if not math.isfinite(number):
            logger.warning(
                "Malformed confidence setting, using default",
                extra={"setting": info.field_name, "value": str(v), "default": default}
            )
            return default
        return min(1.0, max(0.0, number))

    @field_validator(
        "email_guard_quarantine_score",
        "email_guard_review_score",
        "email_guard_max_urls_before_risk",
        "ai_priority_llm_timeout_ms",
        "ai_priority_llm_max_body_chars",
        "email_guard_llm_timeout_ms",
        "email_guard_llm_max_body_chars",
        mode="before",
    )
    @classmethod
    def parse_number(cls, v: Any, info) -> Any:
        default = _default_for(cls, info)
        try:
            number = float(v)
        except (TypeError, ValueError):
            number = math.nan
        if not math.isfinite(number) or number < 0:
            logger.warning(
                "Malformed numeric setting, using default",
                extra={"setting": info.field_name, "value": str(v), "default": default}
            )
            return default
        return int(number) if isinstance(default, int) else number

    @property
    def priority_enabled(self) -> bool:
        return self.ai_priority_enabled and self.ai_priority_mode != PriorityMode.DISABLED

    def priority_policy(self):
        from deskwatch.priority.domain.value_objects import PriorityPolicy

        return PriorityPolicy(
            enabled=self.priority_enabled,
            mode=self.ai_priority_mode if self.priority_enabled else PriorityMode.DISABLED,
            auto_apply_threshold=self.ai_priority_auto_apply_threshold,
            internal_domains=parse_csv_set(self.ai_priority_internal_domains),
        )

    def priority_classifier_config(self):
        from deskwatch.priority.domain.value_objects import ClassifierConfig

        return ClassifierConfig(
            model=self.ai_priority_llm_model,
            timeout_ms=self.ai_priority_llm_timeout_ms,
            max_body_chars=self.ai_priority_llm_max_body_chars,
        )

    def email_guard_policy(self):
        from deskwatch.intake.domain.value_objects import EmailGuardPolicy

        return EmailGuardPolicy(
            enabled=self.email_guard_enabled,
            quarantine_score=self.email_guard_quarantine_score,
            review_score=self.email_guard_review_score,
            max_urls_before_risk=self.email_guard_max_urls_before_risk,
            blocked_domains=parse_csv_set(self.email_guard_blocked_domains),
            blocked_senders=parse_csv_set(self.email_guard_blocked_senders),
            allowed_domains=parse_csv_set(self.email_guard_allowed_domains),
            allowlist_only=self.email_guard_allowlist_only,
        )

    def intent_policy(self):
        from deskwatch.intake.domain.value_objects import IntentPolicy

        return IntentPolicy(
            enabled=self.email_guard_llm_enabled,
            min_confidence=self.email_guard_llm_min_confidence,
            auto_ignore_confidence=self.email_guard_llm_auto_ignore_confidence,
            auto_promote_ticket_confidence=self.email_guard_llm_auto_promote_ticket_confidence,
        )

    def intent_classifier_config(self):
        from deskwatch.priority.domain.value_objects import ClassifierConfig

        return ClassifierConfig(
            model=(self.email_guard_llm_model or self.ai_priority_llm_model or DEFAULT_LLM_MODEL).strip(),
            timeout_ms=self.email_guard_llm_timeout_ms,
            max_body_chars=self.email_guard_llm_max_body_chars,
        )

    @property
    def llm_configured(self) -> bool:
        return self.mock_llm or bool((self.openai_api_key or "").strip())


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
