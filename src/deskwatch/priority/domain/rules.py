"""
Priority Rule Scorer
=====================

Pure multi-pattern scorer over ticket subject, body and sender.

Subject and body are matched separately so subject hits can weigh more. A
hard-critical hit short-circuits everything else. Otherwise a severity score
starts at a neutral baseline, moves with the weighted hits and a few context
adjustments, and maps onto a tier through fixed boundaries. Confidence grows
with evidence density and with the distance from the nearest tier boundary.
"""

import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from deskwatch.config import IntakeSource, PriorityCode
from deskwatch.shared.text import clamp01, clean_text, email_domain, merge_unique, pattern_hits

HARD_CRITICAL_PATTERNS = [
    re.compile(r"server\s+down", re.I),
    re.compile(r"system\s+down", re.I),
    re.compile(r"production\s+down", re.I),
    re.compile(r"all\s+users?\s+(cannot|can't|unable)", re.I),
    re.compile(r"company[-\s]?wide\s+outage", re.I),
    re.compile(r"ransomware|data\s+breach|security\s+incident", re.I),
    re.compile(r"payment\s+gateway\s+down|cannot\s+process\s+payments?", re.I),
]

HIGH_PATTERNS = [
    re.compile(r"cannot\s+login", re.I),
    re.compile(r"can't\s+login", re.I),
    re.compile(r"unable\s+to\s+login", re.I),
    re.compile(r"vpn\s+(down|issue|problem)", re.I),
    re.compile(r"email\s+down", re.I),
    re.compile(r"internet\s+down", re.I),
    re.compile(r"network\s+(down|outage)", re.I),
    re.compile(r"urgent|asap|immediately|right\s+now", re.I),
    re.compile(r"printer\s+down", re.I),
    re.compile(r"pos\s+offline", re.I),
]

LOW_PATTERNS = [
    re.compile(r"request|schedule|enhancement|improvement", re.I),
    re.compile(r"how\s+to|help\s+me\s+with", re.I),
    re.compile(r"minor|cosmetic|typo", re.I),
    re.compile(r"feature\s+request", re.I),
]

IMPACT_SCOPE_PATTERNS = [
    re.compile(r"all\s+users?", re.I),
    re.compile(r"entire\s+(company|office|branch|site)", re.I),
    re.compile(r"company[-\s]?wide", re.I),
    re.compile(r"no\s+one\s+can\s+access", re.I),
    re.compile(r"operations?\s+(are\s+)?blocked", re.I),
    re.compile(r"cannot\s+work", re.I),
    re.compile(r"business\s+halted", re.I),
]

URGENCY_PATTERNS = [
    re.compile(r"urgent|asap|immediately|right\s+now", re.I),
    re.compile(r"critical|highest\s+priority", re.I),
    re.compile(r"before\s+eod|today", re.I),
]

AUTOMATED_SENDER_PATTERNS = [
    re.compile(r"^no-?reply@", re.I),
    re.compile(r"^notifications?@", re.I),
    re.compile(r"^mailer-daemon@", re.I),
]

BASELINE_SCORE = 48
CRITICAL_FLOOR = 83
HIGH_FLOOR = 60
LOW_CEILING = 28

# (subject weight, body weight)
HIGH_WEIGHTS = (15, 9)
IMPACT_WEIGHTS = (18, 12)
URGENCY_WEIGHTS = (8, 5)
LOW_WEIGHTS = (12, 8)

MIXED_SIGNAL_PENALTY = 6
SPARSE_TEXT_PENALTY = 7
EMAIL_SOURCE_BONUS = 2
AUTOMATED_SENDER_PENALTY = 8
INTERNAL_IMPACT_BONUS = 4


@dataclass(frozen=True)
class RuleEvaluation:
    """Output of the rule scorer."""
    predicted_priority_code: str
    confidence: float
    reason: str
    rule_hits: dict = field(default_factory=dict)
    hard_match: bool = False


@dataclass
class _SignalHits:
    subject: List[str]
    body: List[str]

    @property
    def merged(self) -> List[str]:
        return merge_unique(self.subject, self.body)

    def weighted(self, weights: tuple) -> int:
        subject_weight, body_weight = weights
        return len(self.subject) * subject_weight + len(self.body) * body_weight


def _hits(patterns, subject: str, body: str) -> _SignalHits:
    return _SignalHits(pattern_hits(patterns, subject), pattern_hits(patterns, body))


def tier_for_score(score: float) -> str:
    if score >= CRITICAL_FLOOR:
        return PriorityCode.CRITICAL
    if score >= HIGH_FLOOR:
        return PriorityCode.HIGH
    if score <= LOW_CEILING:
        return PriorityCode.LOW
    return PriorityCode.MEDIUM


def boundary_margin(score: float, tier: str) -> float:
    """Distance from ``score`` to the nearest boundary of its tier."""
    if tier == PriorityCode.CRITICAL:
        return max(0, score - CRITICAL_FLOOR)
    if tier == PriorityCode.HIGH:
        return min(max(0, score - HIGH_FLOOR), max(0, CRITICAL_FLOOR - score))
    if tier == PriorityCode.LOW:
        return max(0, LOW_CEILING - score)
    return min(max(0, score - LOW_CEILING), max(0, HIGH_FLOOR - score))


def is_internal_domain(domain: str, internal_domains: Iterable[str]) -> bool:
    return bool(domain) and any(domain.endswith(suffix) for suffix in internal_domains if suffix)


def _plural(count: int, label: str) -> str:
    return f"{count} {label}{'s' if count > 1 else ''}"


def evaluate_rules(
    subject: Optional[str],
    body_text: Optional[str],
    from_email: Optional[str] = None,
    intake_source: Optional[str] = IntakeSource.PORTAL,
    internal_domains: Iterable[str] = (),
) -> RuleEvaluation:
    """
    Score ticket text and sender into a priority tier.

    Deterministic for identical input.
    """
    subject_text = clean_text(subject)
    body = clean_text(body_text)
    source = intake_source or IntakeSource.PORTAL

    sender = str(from_email or "").strip().lower()
    sender_domain = email_domain(sender)

    hard = _hits(HARD_CRITICAL_PATTERNS, subject_text, body)
    hard_hits = hard.merged
    if hard_hits:
        evidence_count = len(hard_hits)
        return RuleEvaluation(
            predicted_priority_code=PriorityCode.CRITICAL,
            confidence=clamp01(0.9 + min(0.09, evidence_count * 0.03)),
            reason=f"Hard critical signal matched ({evidence_count}).",
            rule_hits={
                "hard": hard_hits,
                "high": [],
                "low": [],
                "impact_scope": [],
                "urgency": [],
                "scoring": {
                    "severity_score": 100,
                    "evidence_count": evidence_count,
                    "source": source,
                    "from_domain": sender_domain,
                },
            },
            hard_match=True,
        )

    high = _hits(HIGH_PATTERNS, subject_text, body)
    low = _hits(LOW_PATTERNS, subject_text, body)
    impact = _hits(IMPACT_SCOPE_PATTERNS, subject_text, body)
    urgency = _hits(URGENCY_PATTERNS, subject_text, body)

    high_hits, low_hits = high.merged, low.merged
    impact_hits, urgency_hits = impact.merged, urgency.merged

    evidence_count = len(high_hits) + len(low_hits) + len(impact_hits) + len(urgency_hits)
    subject_evidence_count = len(high.subject) + len(low.subject) + len(impact.subject) + len(urgency.subject)
    mixed_signals = bool(high_hits) and bool(low_hits)
    sparse_text = len(subject_text) < 16 and len(body) < 50

    automated_sender = any(pattern.search(sender) for pattern in AUTOMATED_SENDER_PATTERNS)
    internal_domain = is_internal_domain(sender_domain, internal_domains)

    score = BASELINE_SCORE
    score += high.weighted(HIGH_WEIGHTS)
    score += impact.weighted(IMPACT_WEIGHTS)
    score += urgency.weighted(URGENCY_WEIGHTS)
    score -= low.weighted(LOW_WEIGHTS)

    if mixed_signals:
        score -= MIXED_SIGNAL_PENALTY
    if sparse_text:
        score -= SPARSE_TEXT_PENALTY
    if source == IntakeSource.EMAIL:
        score += EMAIL_SOURCE_BONUS
    if automated_sender and not high_hits and not impact_hits:
        score -= AUTOMATED_SENDER_PENALTY
    if internal_domain and impact_hits:
        score += INTERNAL_IMPACT_BONUS

    score = max(0, min(100, score))
    tier = tier_for_score(score)

    evidence_factor = min(1, evidence_count / 7)
    margin_factor = min(1, boundary_margin(score, tier) / 20)

    confidence = (
        0.42
        + evidence_factor * 0.24
        + margin_factor * 0.2
        + (0.05 if subject_evidence_count > 0 else 0)
        + (0.02 if internal_domain else 0)
        - (0.1 if mixed_signals else 0)
        - (0.08 if sparse_text else 0)
    )
    if tier == PriorityCode.CRITICAL:
        confidence += 0.08
    if automated_sender and tier != PriorityCode.CRITICAL:
        confidence -= 0.05

    reason_parts = []
    if impact_hits:
        reason_parts.append(_plural(len(impact_hits), "impact signal"))
    if high_hits:
        reason_parts.append(_plural(len(high_hits), "high-priority signal"))
    if urgency_hits:
        reason_parts.append(_plural(len(urgency_hits), "urgency signal"))
    if low_hits:
        reason_parts.append(_plural(len(low_hits), "low-priority signal"))

    if reason_parts:
        reason = f"Rules score {round(score)} from {', '.join(reason_parts)}."
    else:
        reason = f"Rules score {round(score)} with limited priority indicators."

    return RuleEvaluation(
        predicted_priority_code=tier,
        confidence=clamp01(confidence),
        reason=reason,
        rule_hits={
            "hard": [],
            "high": high_hits,
            "low": low_hits,
            "impact_scope": impact_hits,
            "urgency": urgency_hits,
            "scoring": {
                "severity_score": round(score),
                "evidence_count": evidence_count,
                "subject_signal_count": subject_evidence_count,
                "mixed_signals": mixed_signals,
                "sparse_text": sparse_text,
                "intake_source": source,
                "from_domain": sender_domain or None,
                "automated_sender": automated_sender,
            },
        },
        hard_match=False,
    )
