"""
Email Risk Scorer
=================

Pure scorer for inbound mail. Two noise checks run first and short-circuit
to ``ignore``; otherwise independent risk signals add up to a 0..100 score
that maps onto a level and an intake decision.
"""

import re
from typing import List
from urllib.parse import urlsplit

from deskwatch.config import IntakeDecision, RiskLevel
from deskwatch.intake.domain.entities import EmailRiskAssessment, InboundEmail
from deskwatch.intake.domain.value_objects import EmailGuardPolicy
from deskwatch.shared.text import (
    clean_text,
    email_domain,
    email_local_part,
    extract_email_address,
    pattern_hits,
)

SUSPICIOUS_PATTERNS = [
    re.compile(r"verify\s+your\s+account", re.I),
    re.compile(r"password\s+expires?\s+today", re.I),
    re.compile(r"reset\s+your\s+password", re.I),
    re.compile(r"unusual\s+login", re.I),
    re.compile(r"gift\s+card", re.I),
    re.compile(r"wire\s+transfer", re.I),
    re.compile(r"bank\s+details?", re.I),
    re.compile(r"urgent\s+action\s+required", re.I),
    re.compile(r"click\s+the\s+link", re.I),
    re.compile(r"login\s+now", re.I),
    re.compile(r"payment\s+failed", re.I),
    re.compile(r"invoice\s+overdue", re.I),
]

NON_TICKET_PATTERNS = [
    re.compile(r"\bnewsletter\b", re.I),
    re.compile(r"\bannouncement\b", re.I),
    re.compile(r"\bcompany\s+update\b", re.I),
    re.compile(r"\bweekly\s+update\b", re.I),
    re.compile(r"\bmonthly\s+update\b", re.I),
    re.compile(r"\bhr\s+notice\b", re.I),
    re.compile(r"\bevent\s+invite\b", re.I),
    re.compile(r"\binvitation\b", re.I),
    re.compile(r"\bfyi\b", re.I),
    re.compile(r"\bout\s+of\s+office\b", re.I),
    re.compile(r"\bholiday\s+notice\b", re.I),
]

HARD_NON_TICKET_PATTERNS = [
    re.compile(r"\bstarted\s+chatting\s+in\b", re.I),
    re.compile(r"\bhere'?s\s+the\s+latest\s+activity\b", re.I),
    re.compile(r"\bwelcome\s+to\s+google\s+workspace\b", re.I),
    re.compile(r"\bnotification\s+digest\b", re.I),
    re.compile(r"\bactivity\s+summary\b", re.I),
]

ISSUE_PATTERNS = [
    re.compile(r"\bissue\b", re.I),
    re.compile(r"\bproblem\b", re.I),
    re.compile(r"\berror\b", re.I),
    re.compile(r"\bnot\s+working\b", re.I),
    re.compile(r"\bcannot\b", re.I),
    re.compile(r"\bcan't\b", re.I),
    re.compile(r"\bunable\b", re.I),
    re.compile(r"\bdown\b", re.I),
    re.compile(r"\bfailed\b", re.I),
    re.compile(r"\bhelp\b", re.I),
    re.compile(r"\bsupport\b", re.I),
    re.compile(r"\bticket\b", re.I),
    re.compile(r"\bincident\b", re.I),
]

NOTIFICATION_SENDER_PATTERNS = [
    re.compile(r"^notifications?$", re.I),
    re.compile(r"^no-?reply$", re.I),
    re.compile(r"^noreply$", re.I),
    re.compile(r"^workspace-noreply$", re.I),
    re.compile(r"^mailer-daemon$", re.I),
]

SHORTENER_DOMAINS = frozenset({"bit.ly", "tinyurl.com", "t.co", "rb.gy", "ow.ly"})
RISKY_EXTENSIONS = (".exe", ".js", ".bat", ".cmd", ".scr", ".vbs", ".jar", ".msi", ".ps1", ".hta")

_URL = re.compile(r"""https?://[^\s<>"')]+|www\.[^\s<>"')]+""", re.I)

BLOCKED_DOMAIN_SCORE = 95
BLOCKED_SENDER_SCORE = 100
ALLOWLIST_MISS_SCORE = 80
SUSPICIOUS_HIT_SCORE, SUSPICIOUS_CAP = 12, 48
SHORTENED_LINK_SCORE, SHORTENED_CAP = 20, 40
HIGH_LINK_VOLUME_SCORE = 15
RISKY_ATTACHMENT_SCORE, RISKY_ATTACHMENT_CAP = 70, 100
PUNYCODE_SCORE = 20


def extract_urls(text: str) -> List[str]:
    """Distinct URLs in order of appearance; bare ``www.`` links get ``http://``."""
    urls = {}
    for match in _URL.findall(text or ""):
        url = match if match.lower().startswith("http") else f"http://{match}"
        urls.setdefault(url, None)
    return list(urls)


def url_host(url: str) -> str:
    try:
        return (urlsplit(url).hostname or "").lower()
    except ValueError:
        return ""


def risk_level(score: float) -> str:
    if score >= 85:
        return RiskLevel.CRITICAL
    if score >= 70:
        return RiskLevel.HIGH
    if score >= 45:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def evaluate_email_risk(email: InboundEmail, policy: EmailGuardPolicy) -> EmailRiskAssessment:
    """Score one inbound email. Pure and deterministic for a given policy."""
    if not policy.enabled:
        return EmailRiskAssessment(
            enabled=False,
            score=0,
            level=RiskLevel.LOW,
            decision=IntakeDecision.ALLOW,
            reasons=["Email guard disabled by configuration"],
        )

    from_email = extract_email_address(email.from_address)
    from_domain = email_domain(from_email)
    from_local = email_local_part(from_email)
    corpus = f"{clean_text(email.subject)} {clean_text(email.text)}".strip()
    urls = extract_urls(corpus)
    attachments = [a.to_dict() for a in email.attachments]

    context = {
        "from_email": from_email,
        "from_domain": from_domain,
        "url_count": len(urls),
        "urls": urls,
        "attachments": attachments,
    }

    score = 0
    reasons = []
    rule_hits = {
        "blocked_domain": False,
        "blocked_sender": False,
        "allowlist_miss": False,
        "suspicious_keywords": [],
        "shortened_links": [],
        "risky_attachments": [],
        "high_link_volume": False,
        "suspicious_sender_domain": False,
    }

    if from_domain in policy.blocked_domains:
        score += BLOCKED_DOMAIN_SCORE
        reasons.append(f"Sender domain is blocked: {from_domain}")
        rule_hits["blocked_domain"] = True

    if from_email in policy.blocked_senders:
        score += BLOCKED_SENDER_SCORE
        reasons.append(f"Sender is blocked: {from_email}")
        rule_hits["blocked_sender"] = True

    if policy.allowlist_only and policy.allowed_domains and from_domain not in policy.allowed_domains:
        score += ALLOWLIST_MISS_SCORE
        reasons.append(f"Sender domain not in allowlist: {from_domain}")
        rule_hits["allowlist_miss"] = True

    keyword_hits = pattern_hits(SUSPICIOUS_PATTERNS, corpus)
    if keyword_hits:
        score += min(SUSPICIOUS_CAP, len(keyword_hits) * SUSPICIOUS_HIT_SCORE)
        plural = "s" if len(keyword_hits) > 1 else ""
        reasons.append(f"Suspicious language detected ({len(keyword_hits)} pattern hit{plural})")
        rule_hits["suspicious_keywords"] = keyword_hits

    shortened = [
        {"url": url, "domain": url_host(url)}
        for url in urls
        if url_host(url) in SHORTENER_DOMAINS
    ]
    if shortened:
        score += min(SHORTENED_CAP, len(shortened) * SHORTENED_LINK_SCORE)
        reasons.append(f"Shortened link detected ({len(shortened)})")
        rule_hits["shortened_links"] = shortened

    if len(urls) > policy.max_urls_before_risk:
        score += HIGH_LINK_VOLUME_SCORE
        reasons.append(f"High link count detected ({len(urls)})")
        rule_hits["high_link_volume"] = True

    risky = [a.filename for a in email.attachments if a.filename.lower().endswith(RISKY_EXTENSIONS)]
    if risky:
        score += min(RISKY_ATTACHMENT_CAP, len(risky) * RISKY_ATTACHMENT_SCORE)
        reasons.append(f"Risky attachment extension detected ({len(risky)})")
        rule_hits["risky_attachments"] = risky

    if "xn--" in from_domain:
        score += PUNYCODE_SCORE
        reasons.append("Punycode sender domain detected")
        rule_hits["suspicious_sender_domain"] = True

    non_ticket_hits = pattern_hits(NON_TICKET_PATTERNS, corpus)
    hard_non_ticket_hits = pattern_hits(HARD_NON_TICKET_PATTERNS, corpus)
    issue_hits = pattern_hits(ISSUE_PATTERNS, corpus)
    notification_sender = any(p.search(from_local) for p in NOTIFICATION_SENDER_PATTERNS)

    if hard_non_ticket_hits and (notification_sender or len(issue_hits) <= 1):
        reasons.append("Hard non-ticket system notification pattern detected")
        return EmailRiskAssessment(
            enabled=True,
            score=0,
            level=RiskLevel.LOW,
            decision=IntakeDecision.IGNORE,
            reasons=reasons,
            rule_hits={
                **rule_hits,
                "hard_non_ticket_patterns": hard_non_ticket_hits,
                "non_ticket_patterns": non_ticket_hits,
                "issue_patterns": issue_hits,
                "notification_sender": notification_sender,
            },
            context=context,
        )

    if non_ticket_hits and not issue_hits:
        reasons.append("Likely non-ticket email (announcement/newsletter/fyi)")
        return EmailRiskAssessment(
            enabled=True,
            score=0,
            level=RiskLevel.LOW,
            decision=IntakeDecision.IGNORE,
            reasons=reasons,
            rule_hits={
                **rule_hits,
                "non_ticket_patterns": non_ticket_hits,
                "issue_patterns": issue_hits,
                "notification_sender": notification_sender,
            },
            context=context,
        )

    score = max(0, min(100, score))
    if score >= policy.quarantine_score:
        decision = IntakeDecision.QUARANTINE
    elif score >= policy.review_score:
        decision = IntakeDecision.REVIEW
    else:
        decision = IntakeDecision.ALLOW

    return EmailRiskAssessment(
        enabled=True,
        score=score,
        level=risk_level(score),
        decision=decision,
        reasons=reasons or ["No phishing risk rule triggered"],
        rule_hits=rule_hits,
        context=context,
    )
