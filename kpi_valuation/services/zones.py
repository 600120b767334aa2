from __future__ import annotations

import re
from typing import Optional

_WHITESPACE = re.compile(r"\s+")
_DIGITS = re.compile(r"\d+")


def _collapse(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip().lower()


def normalize_zone(label: Optional[str], project_code: Optional[str] = None) -> str:
    """Return the comparable zone token for a free-text zone label.

    Occurrences of ``project_code`` joined to the zone by dashes or spaces are
    removed from either side ("P8888 - Zone 1", "Zone 1 - P8888" -> "zone 1").
    When stripping would leave nothing, or a dangling dash, the original label
    is kept so no information is lost.
    """
    original = _collapse(label or "")
    if not original:
        return ""
    code = (project_code or "").strip()
    if not code:
        return original

    escaped = re.escape(code.lower())
    # Code followed by separators, anywhere the code starts a word.
    stripped = re.sub(rf"(?<![0-9a-z]){escaped}[\s\-]+", " ", original)
    # Separators followed by the code at the very end.
    stripped = re.sub(rf"[\s\-]+{escaped}$", "", stripped)
    candidate = _collapse(stripped)
    if not candidate or candidate.startswith("-") or candidate.endswith("-"):
        return original
    return candidate


def zone_key(label: Optional[str], *project_codes: Optional[str]) -> str:
    codes = sorted({code.strip() for code in project_codes if code and code.strip()}, key=len, reverse=True)
    token = normalize_zone(label)
    for code in codes:
        token = normalize_zone(token, code)
    return token


def zone_number(token: Optional[str]) -> str:
    if not token:
        return ""
    match = _DIGITS.search(token)
    if match:
        return str(int(match.group(0)))
    return token


def zones_equal(left: str, right: str) -> bool:
    if not left or not right:
        return False
    return left == right or zone_number(left) == zone_number(right)
