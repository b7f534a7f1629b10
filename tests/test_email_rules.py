import pytest

from deskwatch.intake.domain import (
    EmailAttachment,
    EmailGuardPolicy,
    InboundEmail,
    evaluate_email_risk,
    extract_urls,
    risk_level,
)

POLICY = EmailGuardPolicy()

PHISH = InboundEmail(
    from_address="Security Team <security@paypa1.example>",
    subject="Urgent action required: verify your account",
    body="Click the link to reset your password: https://bit.ly/abc and login now.",
)


def _email(**kwargs):
    kwargs.setdefault("from_address", "Jane <jane@corp.example>")
    return InboundEmail(**kwargs)


def test_ordinary_support_request_is_allowed():
    result = evaluate_email_risk(
        _email(subject="Printer jam on floor 3", body="The printer is not working since this morning."),
        POLICY,
    )

    assert result.decision == "allow"
    assert result.score == 0
    assert result.level == "low"
    assert result.reasons == ["No phishing risk rule triggered"]
    assert result.context["from_email"] == "jane@corp.example"
    assert result.context["from_domain"] == "corp.example"


def test_phishing_language_and_shortener_need_review():
    result = evaluate_email_risk(PHISH, POLICY)

    # five keyword hits capped at 48, plus one shortened link
    assert result.score == 68
    assert result.decision == "review"
    assert result.level == "medium"
    assert len(result.rule_hits["suspicious_keywords"]) == 5
    assert result.rule_hits["shortened_links"] == [{"url": "https://bit.ly/abc", "domain": "bit.ly"}]
    assert "Suspicious language detected (5 pattern hits)" in result.reasons


def test_risky_attachment_quarantines():
    email = InboundEmail(
        from_address=PHISH.from_address,
        subject=PHISH.subject,
        body=PHISH.body,
        attachments=(EmailAttachment("invoice.PDF.exe", "application/octet-stream", 2048),),
    )

    result = evaluate_email_risk(email, POLICY)

    assert result.score == 100
    assert result.decision == "quarantine"
    assert result.level == "critical"
    assert result.rule_hits["risky_attachments"] == ["invoice.PDF.exe"]
    assert result.context["attachments"] == [
        {"filename": "invoice.PDF.exe", "mime_type": "application/octet-stream", "size": 2048}
    ]


def test_blocked_domain_and_sender():
    policy = EmailGuardPolicy(blocked_domains=frozenset({"spam.example"}), blocked_senders=frozenset({"boss@corp.example"}))

    by_domain = evaluate_email_risk(_email(from_address="x@spam.example", subject="hello there"), policy)
    by_sender = evaluate_email_risk(_email(from_address="BOSS@corp.example", subject="hello there"), policy)

    assert (by_domain.score, by_domain.decision, by_domain.level) == (95, "quarantine", "critical")
    assert by_domain.rule_hits["blocked_domain"] is True
    assert (by_sender.score, by_sender.decision) == (100, "quarantine")
    assert by_sender.rule_hits["blocked_sender"] is True


def test_allowlist_only_penalises_outsiders():
    policy = EmailGuardPolicy(allowed_domains=frozenset({"corp.example"}), allowlist_only=True)

    inside = evaluate_email_risk(_email(subject="VPN problem"), policy)
    outside = evaluate_email_risk(_email(from_address="x@other.example", subject="VPN problem"), policy)

    assert inside.decision == "allow"
    assert (outside.score, outside.level, outside.decision) == (80, "high", "quarantine")


def test_allowlist_without_only_flag_is_ignored():
    policy = EmailGuardPolicy(allowed_domains=frozenset({"corp.example"}))
    result = evaluate_email_risk(_email(from_address="x@other.example", subject="VPN problem"), policy)
    assert result.rule_hits["allowlist_miss"] is False


def test_high_link_volume():
    body = " ".join(f"https://docs.example/page{i}" for i in range(5))
    result = evaluate_email_risk(_email(subject="Links for the onboarding problem", body=body), POLICY)

    assert result.score == 15
    assert result.rule_hits["high_link_volume"] is True
    assert result.context["url_count"] == 5


def test_punycode_sender_domain():
    result = evaluate_email_risk(_email(from_address="it@xn--pple-43d.com", subject="Password issue"), POLICY)

    assert result.score == 20
    assert result.rule_hits["suspicious_sender_domain"] is True


def test_newsletter_is_ignored():
    result = evaluate_email_risk(
        _email(subject="Weekly update from the CEO", body="Our company newsletter for this week."),
        POLICY,
    )

    assert result.decision == "ignore"
    assert result.score == 0
    assert result.reasons[-1] == "Likely non-ticket email (announcement/newsletter/fyi)"
    assert result.rule_hits["non_ticket_patterns"]
    assert result.rule_hits["issue_patterns"] == []


def test_newsletter_mentioning_an_issue_is_not_ignored():
    result = evaluate_email_risk(_email(subject="FYI", body="The VPN is down for the whole branch."), POLICY)
    assert result.decision == "allow"


def test_system_notification_is_ignored_despite_one_issue_word():
    result = evaluate_email_risk(
        _email(
            from_address="Chat <notifications@chat.example>",
            subject="Jane started chatting in #support",
            body="Here's the latest activity in your space.",
        ),
        POLICY,
    )

    assert result.decision == "ignore"
    assert result.reasons[-1] == "Hard non-ticket system notification pattern detected"
    assert result.rule_hits["notification_sender"] is True
    assert len(result.rule_hits["hard_non_ticket_patterns"]) == 2


def test_snippet_is_scored_when_body_is_empty():
    result = evaluate_email_risk(_email(subject="Notice", snippet="Please verify your account today"), POLICY)
    assert result.rule_hits["suspicious_keywords"] == [r"verify\s+your\s+account"]


def test_disabled_guard_allows_everything():
    result = evaluate_email_risk(PHISH, EmailGuardPolicy(enabled=False))

    assert result.enabled is False
    assert result.decision == "allow"
    assert result.reasons == ["Email guard disabled by configuration"]


def test_extract_urls_deduplicates_and_adds_scheme():
    text = "see www.example.com and https://a.example/x then https://a.example/x"
    assert extract_urls(text) == ["http://www.example.com", "https://a.example/x"]


@pytest.mark.parametrize("score,level", [(0, "low"), (44, "low"), (45, "medium"), (70, "high"), (85, "critical")])
def test_risk_levels(score, level):
    assert risk_level(score) == level


def test_saas_digest_from_notification_sender_is_ignored():
    result = evaluate_email_risk(
        _email(from_address="notifications@saas.example", subject="Weekly digest: team activity summary"),
        POLICY,
    )

    assert result.decision == "ignore"
    assert result.score == 0
