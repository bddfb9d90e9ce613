import re
from typing import Dict, Optional

from pydantic import BaseModel

_NON_ALNUM_RE = re.compile(r"[^a-z0-9\s]")
_WS_RE = re.compile(r"\s+")
_QUARTER_RE = re.compile(r"Q([1-4])\s*(?:FY)?\s*(\d{4})?", re.IGNORECASE)

# Stripped from the end of names, in this order
COMPANY_SUFFIXES = [
    "inc",
    "incorporated",
    "corp",
    "corporation",
    "co",
    "company",
    "ltd",
    "limited",
    "llc",
    "llp",
    "plc",
    "holdings",
    "group",
    "technologies",
    "technology",
    "tech",
    "systems",
    "services",
    "solutions",
    "international",
    "intl",
    "the",
]


class FuzzyMatchResult(BaseModel):
    match: bool
    ratio: float
    normalized_expected: str
    normalized_actual: str
    match_type: str  # exact | contains | fuzzy | no_match


def levenshtein_distance(a: str, b: str) -> int:
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(
                previous[j - 1] + cost,  # substitution
                current[j - 1] + 1,      # insertion
                previous[j] + 1,         # deletion
            ))
        previous = current
    return previous[-1]


def levenshtein_ratio(a: str, b: str) -> float:
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1 - levenshtein_distance(a, b) / longest


def normalize_string(s: str) -> str:
    s = _NON_ALNUM_RE.sub("", (s or "").lower())
    return _WS_RE.sub(" ", s).strip()


def remove_company_suffixes(name: str) -> str:
    normalized = normalize_string(name)
    for suffix in COMPANY_SUFFIXES:
        normalized = re.sub(rf"\s+{suffix}$", "", normalized)
    return normalized.strip()


def fuzzy_match(expected: str, actual: str, threshold: float = 0.7) -> FuzzyMatchResult:
    """
    Compare two company names after normalization and suffix removal.

    Precedence: exact equality, then substring containment (ratio is the
    length ratio), then Levenshtein ratio against `threshold`.
    """
    norm_expected = remove_company_suffixes(expected)
    norm_actual = remove_company_suffixes(actual)

    if not norm_expected or not norm_actual:
        return FuzzyMatchResult(
            match=False, ratio=0.0,
            normalized_expected=norm_expected, normalized_actual=norm_actual,
            match_type="no_match",
        )

    if norm_expected == norm_actual:
        return FuzzyMatchResult(
            match=True, ratio=1.0,
            normalized_expected=norm_expected, normalized_actual=norm_actual,
            match_type="exact",
        )

    if norm_expected in norm_actual or norm_actual in norm_expected:
        ratio = min(len(norm_expected), len(norm_actual)) / max(len(norm_expected), len(norm_actual))
        return FuzzyMatchResult(
            match=True, ratio=ratio,
            normalized_expected=norm_expected, normalized_actual=norm_actual,
            match_type="contains",
        )

    ratio = levenshtein_ratio(norm_expected, norm_actual)
    matched = ratio >= threshold
    return FuzzyMatchResult(
        match=matched, ratio=ratio,
        normalized_expected=norm_expected, normalized_actual=norm_actual,
        match_type="fuzzy" if matched else "no_match",
    )


def match_ticker(expected: Optional[str], actual: Optional[str]) -> bool:
    if not expected or not actual:
        return False
    return expected.strip().upper() == actual.strip().upper()


def parse_quarter(value: Optional[str]) -> Dict[str, Optional[object]]:
    """Parse 'Q1', 'Q2 2024', 'Q4 FY2024' into {match, quarter, year}."""
    if not value:
        return {"match": False, "quarter": None, "year": None}

    normalized = _WS_RE.sub(" ", value.upper()).strip()
    m = _QUARTER_RE.search(normalized)
    if not m:
        return {"match": False, "quarter": None, "year": None}

    return {
        "match": True,
        "quarter": f"Q{m.group(1)}",
        "year": int(m.group(2)) if m.group(2) else None,
    }


def match_quarter(expected: Optional[str], actual: Optional[str]) -> bool:
    exp = parse_quarter(expected)
    act = parse_quarter(actual)
    if not exp["match"] or not act["match"]:
        return False
    if exp["quarter"] != act["quarter"]:
        return False
    # Only compare years when both sides carry one
    if exp["year"] and act["year"]:
        return exp["year"] == act["year"]
    return True
