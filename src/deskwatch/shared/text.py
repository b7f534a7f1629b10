"""
Text utility functions shared by the scorers and classifier adapters.
"""

import json
import math
import re
from typing import Any, Iterable, List, Optional, Pattern, Sequence

_WHITESPACE = re.compile(r"\s+")
_ANGLE_ADDRESS = re.compile(r"<([^>]+)>")


def clean_text(value: Any) -> str:
    """Collapse runs of whitespace into single spaces and strip the ends."""
    if value is None:
        return ""
    return _WHITESPACE.sub(" ", str(value)).strip()


def clamp01(value: Any) -> float:
    """Coerce to a float in [0, 1]; anything non-numeric becomes 0."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number) or number < 0:
        return 0.0
    if number > 1:
        return 1.0
    return number


def bounded(text: Any, limit: int) -> str:
    return str(text or "")[:limit]


def pattern_hits(patterns: Sequence[Pattern[str]], text: str) -> List[str]:
    """Return the source of every pattern that matches somewhere in ``text``."""
    corpus = text or ""
    return [pattern.pattern for pattern in patterns if pattern.search(corpus)]


def merge_unique(*groups: Iterable[str]) -> List[str]:
    """Concatenate groups, dropping empties and duplicates but keeping order."""
    merged = {}
    for group in groups:
        for item in group:
            if item:
                merged.setdefault(item, None)
    return list(merged)


def extract_json_object(text: Optional[str]) -> Optional[dict]:
    """
    Parse a JSON object out of model output.

    Accepts bare JSON, JSON inside ```json fences, or JSON embedded in prose
    (first ``{`` to last ``}``). Returns None when nothing parses to a dict.
    """
    source = (text or "").strip()
    if not source:
        return None

    if "```json" in source:
        source = source.split("```json", 1)[1].split("```", 1)[0].strip()
    elif source.startswith("```"):
        source = source.strip("`").strip()

    candidates = [source]
    start, end = source.find("{"), source.rfind("}")
    if start >= 0 and end > start:
        candidates.append(source[start:end + 1])

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


def extract_email_address(value: Any) -> str:
    """``"Jane <Jane@Example.com>"`` -> ``"jane@example.com"``."""
    text = str(value or "").strip()
    match = _ANGLE_ADDRESS.search(text)
    return (match.group(1) if match else text).strip().lower()


def email_domain(address: str) -> str:
    at = address.rfind("@")
    return address[at + 1:].lower() if at >= 0 else ""


def email_local_part(address: str) -> str:
    at = address.find("@")
    return address[:at].lower() if at > 0 else ""


def parse_csv_set(value: Any) -> frozenset:
    """Split a comma separated config value into a lowercase set."""
    if value is None:
        return frozenset()
    if isinstance(value, (list, tuple, set, frozenset)):
        items = value
    else:
        items = str(value).split(",")
    return frozenset(item.strip().lower() for item in items if str(item).strip())
