import pytest
from pydantic import ValidationError

from deskwatch.config import Settings, normalize_priority_code


def make_settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


def test_defaults():
    s = make_settings()

    assert s.ai_priority_mode == "rules_only"
    assert s.ai_priority_auto_apply_threshold == 0.8
    assert s.email_guard_quarantine_score == 70
    assert s.llm_configured is False


@pytest.mark.parametrize("raw,mode", [
    ("HYBRID_LLM", "hybrid_llm"),
    (" llm_only ", "llm_only"),
    ("disabled", "disabled"),
    ("manual", "rules_only"),
    ("", "rules_only"),
])
def test_mode_parsing(raw, mode):
    assert make_settings(ai_priority_mode=raw).ai_priority_mode == mode


@pytest.mark.parametrize("raw,expected", [("1.7", 1.0), ("-0.2", 0.0), ("0.55", 0.55), ("abc", 0.8), ("nan", 0.8)])
def test_confidence_is_clamped_or_defaulted(raw, expected):
    assert make_settings(ai_priority_auto_apply_threshold=raw).ai_priority_auto_apply_threshold == expected


def test_malformed_numbers_fall_back():
    s = make_settings(
        email_guard_quarantine_score="lots",
        email_guard_review_score="-5",
        email_guard_max_urls_before_risk="7.9",
        ai_priority_llm_timeout_ms="inf",
    )

    assert s.email_guard_quarantine_score == 70
    assert s.email_guard_review_score == 45
    assert s.email_guard_max_urls_before_risk == 7
    assert s.ai_priority_llm_timeout_ms == 10000


def test_fractional_scores_are_kept():
    assert make_settings(email_guard_quarantine_score="72.5").email_guard_quarantine_score == 72.5


@pytest.mark.parametrize("raw,expected", [("false", False), ("FALSE", False), ("no", True), ("0", True), ("", True)])
def test_feature_switches_default_on(raw, expected):
    assert make_settings(email_guard_enabled=raw).email_guard_enabled is expected


@pytest.mark.parametrize("raw,expected", [("true", True), ("1", True), ("yes", True), ("on", False), ("", False)])
def test_opt_in_switches_default_off(raw, expected):
    assert make_settings(email_guard_allowlist_only=raw).email_guard_allowlist_only is expected


def test_environment_must_be_known():
    with pytest.raises(ValidationError):
        make_settings(environment="qa")


def test_env_vars_are_read(monkeypatch):
    monkeypatch.setenv("AI_PRIORITY_MODE", "hybrid_llm")
    monkeypatch.setenv("EMAIL_GUARD_BLOCKED_DOMAINS", "Spam.example, ,evil.example")
    monkeypatch.setenv("SHIFT_TIMEZONE", "Asia/Manila")

    s = make_settings()

    assert s.ai_priority_mode == "hybrid_llm"
    assert s.email_guard_policy().blocked_domains == frozenset({"spam.example", "evil.example"})
    assert s.shift_timezone == "Asia/Manila"


def test_priority_policy_builder():
    policy = make_settings(
        ai_priority_mode="hybrid_llm",
        ai_priority_auto_apply_threshold="0.9",
        ai_priority_internal_domains="Corp.example",
    ).priority_policy()

    assert policy.enabled is True
    assert policy.mode == "hybrid_llm"
    assert policy.auto_apply_threshold == 0.9
    assert policy.internal_domains == frozenset({"corp.example"})


@pytest.mark.parametrize("overrides", [{"ai_priority_enabled": "false"}, {"ai_priority_mode": "disabled"}])
def test_disabled_priority_policy(overrides):
    policy = make_settings(**{"ai_priority_mode": "hybrid_llm", **overrides}).priority_policy()

    assert policy.enabled is False
    assert policy.mode == "disabled"


def test_intent_model_falls_back_to_priority_model():
    assert make_settings(ai_priority_llm_model="gpt-x").intent_classifier_config().model == "gpt-x"
    assert make_settings(email_guard_llm_model=" intent-m ").intent_classifier_config().model == "intent-m"


def test_intent_policy_builder():
    policy = make_settings(email_guard_llm_enabled="false", email_guard_llm_min_confidence="2").intent_policy()

    assert policy.enabled is False
    assert policy.min_confidence == 1.0


def test_llm_configured_by_key_or_mock():
    assert make_settings(openai_api_key="  ").llm_configured is False
    assert make_settings(openai_api_key="sk-test").llm_configured is True
    assert make_settings(mock_llm="true").llm_configured is True


@pytest.mark.parametrize("raw,expected", [("HIGH", "high"), (" low ", "low"), ("urgent", "medium"), (None, "medium")])
def test_normalize_priority_code(raw, expected):
    assert normalize_priority_code(raw) == expected
