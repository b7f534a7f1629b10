import pytest

from deskwatch.priority.domain import evaluate_rules
from deskwatch.priority.domain.rules import boundary_margin, tier_for_score
from deskwatch.shared.text import extract_json_object


def test_hard_critical_signal_short_circuits():
    rules = evaluate_rules("Server down", "The main server down since 8am, nobody can reach it.")

    assert rules.predicted_priority_code == "critical"
    assert rules.hard_match is True
    assert rules.confidence == pytest.approx(0.93)
    assert rules.reason == "Hard critical signal matched (1)."
    assert rules.rule_hits["hard"] == [r"server\s+down"]
    assert rules.rule_hits["scoring"]["severity_score"] == 100


def test_hard_match_outranks_low_urgency_wording():
    rules = evaluate_rules("Server down", "minor request: schedule a fix")

    assert rules.predicted_priority_code == "critical"
    assert rules.hard_match is True
    assert rules.rule_hits["low"] == []


def test_hard_critical_confidence_is_capped():
    rules = evaluate_rules(
        "Production down after data breach",
        "Ransomware hit us, system down, payment gateway down and all users cannot log in.",
    )

    assert rules.hard_match is True
    assert rules.confidence == pytest.approx(0.99)


def test_login_failure_scores_high():
    rules = evaluate_rules(
        "Cannot login to email",
        "Since this morning I cannot login to my mailbox, please advise.",
    )

    assert rules.predicted_priority_code == "high"
    assert rules.hard_match is False
    assert rules.rule_hits["scoring"]["severity_score"] == 72
    assert "1 high-priority signal" in rules.reason


def test_feature_requests_score_low():
    rules = evaluate_rules(
        "Feature request: schedule a font change",
        "Could you help me with a minor cosmetic tweak on the intranet footer?",
    )

    assert rules.predicted_priority_code == "low"
    assert rules.rule_hits["scoring"]["severity_score"] == 8


def test_no_signals_stays_at_baseline():
    rules = evaluate_rules(
        "Question about monitor cables",
        "We have a spare monitor on the third floor that needs a cable.",
    )

    assert rules.predicted_priority_code == "medium"
    assert rules.reason == "Rules score 48 with limited priority indicators."


def test_email_intake_adds_a_small_bonus():
    rules = evaluate_rules(
        "Question about monitor cables",
        "We have a spare monitor on the third floor that needs a cable.",
        intake_source="email",
    )

    assert rules.reason == "Rules score 50 with limited priority indicators."
    assert rules.rule_hits["scoring"]["intake_source"] == "email"


def test_sparse_text_lowers_score_and_confidence():
    rules = evaluate_rules("help", "")

    assert rules.predicted_priority_code == "medium"
    assert rules.rule_hits["scoring"]["sparse_text"] is True
    assert rules.rule_hits["scoring"]["severity_score"] == 41
    assert rules.confidence == pytest.approx(0.47)


def test_automated_sender_without_impact_is_penalised():
    rules = evaluate_rules(
        "Monthly report available",
        "Your monthly usage report is available in the portal for download.",
        from_email="noreply@vendor.example",
    )

    assert rules.rule_hits["scoring"]["automated_sender"] is True
    assert rules.rule_hits["scoring"]["severity_score"] == 40


def test_internal_sender_with_impact_reaches_critical_without_hard_match():
    rules = evaluate_rules(
        "Entire office cannot work",
        "Since the power blip the entire office cannot work on the ERP system.",
        from_email="it@corp.example",
        internal_domains={"corp.example"},
    )

    assert rules.predicted_priority_code == "critical"
    assert rules.hard_match is False
    assert rules.rule_hits["scoring"]["from_domain"] == "corp.example"
    assert rules.reason.startswith("Rules score 100 from 2 impact signals")


def test_scoring_is_deterministic():
    args = ("VPN issue urgent", "The vpn problem blocks the whole branch today.", "a@b.example", "email")
    assert evaluate_rules(*args) == evaluate_rules(*args)


@pytest.mark.parametrize("score,tier", [
    (83, "critical"),
    (82.9, "high"),
    (60, "high"),
    (59, "medium"),
    (29, "medium"),
    (28, "low"),
    (0, "low"),
])
def test_tier_boundaries(score, tier):
    assert tier_for_score(score) == tier


def test_boundary_margin_uses_nearest_edge():
    assert boundary_margin(70, "high") == 10
    assert boundary_margin(50, "medium") == 10
    assert boundary_margin(90, "critical") == 7
    assert boundary_margin(20, "low") == 8


def test_json_is_extracted_from_fenced_and_wrapped_output():
    assert extract_json_object('```json\n{"a": 1}\n```') == {"a": 1}
    assert extract_json_object('Sure! {"a": 2} hope that helps') == {"a": 2}
    assert extract_json_object("[1, 2]") is None
    assert extract_json_object("") is None


def test_outage_subject_is_auto_applied_critical():
    rules = evaluate_rules("Production down, all users affected", "")

    assert rules.predicted_priority_code == "critical"
    assert rules.confidence >= 0.9


def test_short_feature_request_is_low():
    rules = evaluate_rules("feature request: dark mode", "")

    assert rules.predicted_priority_code == "low"
    assert rules.rule_hits["scoring"]["severity_score"] <= 28
