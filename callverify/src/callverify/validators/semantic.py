"""
Layer 2: semantic validation.

Compares extracted data with what the caller expected. Tolerates a single
major discrepancy before failing.
"""
from typing import Any, Dict, List, Optional

from ..config import SemanticConfig
from ..models.transcript import ExpectedTranscriptData, ExtractedTranscriptData
from ..models.validation import Severity, ValidationError, ValidationResult, ValidationWarning, WarningLevel
from ..utils.dates import is_date_plausible, parse_date
from ..utils.fuzzy import fuzzy_match, match_quarter, match_ticker

TRANSCRIPT_KEYWORDS = [
    "earnings",
    "revenue",
    "quarter",
    "guidance",
    "fiscal",
    "operating",
    "margin",
    "growth",
    "income",
    "outlook",
]

EXECUTIVE_KEYWORDS = ["ceo", "cfo", "chief", "president", "officer", "executive"]

ANALYST_KEYWORDS = ["analyst", "question", "answer", "q&a", "operator"]


def validate_semantics(
    extracted: ExtractedTranscriptData,
    expected: ExpectedTranscriptData,
    config: Optional[SemanticConfig] = None,
) -> ValidationResult:
    config = config or SemanticConfig()
    errors: List[ValidationError] = []
    warnings: List[ValidationWarning] = []
    checks: List[str] = []
    metadata: Dict[str, Any] = {"company_match_ratio": None, "company_match_type": None}

    checks.append("company_name_match")
    if extracted.company_name and expected.company_name:
        company = fuzzy_match(expected.company_name, extracted.company_name, config.fuzzy_match_threshold)
        metadata["company_match_ratio"] = company.ratio
        metadata["company_match_type"] = company.match_type
        if not company.match:
            errors.append(ValidationError(
                field="companyName",
                expected=expected.company_name,
                actual=extracted.company_name,
                severity=Severity.MAJOR,
                message=(
                    f'Company name mismatch: expected "{expected.company_name}", '
                    f'got "{extracted.company_name}" (similarity: {company.ratio * 100:.1f}%)'
                ),
            ))
        elif company.match_type == "fuzzy":
            warnings.append(ValidationWarning(
                field="companyName",
                message=(
                    f'Company name fuzzy matched: "{extracted.company_name}" ~ '
                    f'"{expected.company_name}" ({company.ratio * 100:.1f}% similar)'
                ),
                severity=WarningLevel.INFO,
            ))

    checks.append("ticker_match")
    if extracted.ticker and expected.ticker and not match_ticker(expected.ticker, extracted.ticker):
        errors.append(ValidationError(
            field="ticker",
            expected=expected.ticker.upper(),
            actual=extracted.ticker.upper(),
            severity=Severity.MAJOR,
            message=f'Ticker mismatch: expected "{expected.ticker}", got "{extracted.ticker}"',
        ))

    checks.append("quarter_match")
    if extracted.quarter and expected.quarter and not match_quarter(expected.quarter, extracted.quarter):
        errors.append(ValidationError(
            field="quarter",
            expected=expected.quarter,
            actual=extracted.quarter,
            severity=Severity.MAJOR,
            message=f'Quarter mismatch: expected "{expected.quarter}", got "{extracted.quarter}"',
        ))

    checks.append("fiscal_year_match")
    if extracted.fiscal_year and expected.fiscal_year and extracted.fiscal_year != expected.fiscal_year:
        if abs(extracted.fiscal_year - expected.fiscal_year) <= 1:
            warnings.append(ValidationWarning(
                field="fiscalYear",
                message=(
                    f"Fiscal year differs by 1: expected {expected.fiscal_year}, "
                    f"got {extracted.fiscal_year} (may be FY offset)"
                ),
                severity=WarningLevel.WARNING,
            ))
        else:
            errors.append(ValidationError(
                field="fiscalYear",
                expected=str(expected.fiscal_year),
                actual=str(extracted.fiscal_year),
                severity=Severity.MAJOR,
                message=f"Fiscal year mismatch: expected {expected.fiscal_year}, got {extracted.fiscal_year}",
            ))

    checks.append("date_plausibility")
    if extracted.call_date and extracted.quarter and extracted.fiscal_year:
        parsed = parse_date(extracted.call_date)
        if parsed.success and parsed.date:
            plausibility = is_date_plausible(
                parsed.date, extracted.quarter, extracted.fiscal_year, strict=config.strict_date_check
            )
            if not plausibility.plausible:
                errors.append(ValidationError(
                    field="callDate",
                    expected="Month in " + ", ".join(str(m) for m in plausibility.expected_months),
                    actual=f"Month {plausibility.actual_month}",
                    severity=Severity.MAJOR,
                    message=plausibility.reason,
                ))

    checks.append("content_keywords")
    if config.require_keywords and extracted.content:
        lowered = extracted.content.lower()
        found = [kw for kw in TRANSCRIPT_KEYWORDS if kw in lowered]
        ratio = len(found) / len(TRANSCRIPT_KEYWORDS)
        metadata["keyword_ratio"] = ratio

        if ratio < 0.3:
            errors.append(ValidationError(
                field="content",
                expected="Earnings transcript content",
                actual=f"Only {len(found)}/{len(TRANSCRIPT_KEYWORDS)} expected keywords found",
                severity=Severity.MAJOR,
                message="Content may not be an earnings transcript. Missing expected keywords.",
            ))
        elif ratio < 0.5:
            warnings.append(ValidationWarning(
                field="content",
                message=f"Only {len(found)}/{len(TRANSCRIPT_KEYWORDS)} expected keywords found in content",
                severity=WarningLevel.WARNING,
            ))

        if not any(kw in lowered for kw in EXECUTIVE_KEYWORDS):
            warnings.append(ValidationWarning(
                field="content",
                message="No executive (CEO, CFO) mentions found in content",
                severity=WarningLevel.WARNING,
            ))

        if not any(kw in lowered for kw in ANALYST_KEYWORDS):
            warnings.append(ValidationWarning(
                field="content",
                message="No Q&A or analyst mentions found - may be partial transcript",
                severity=WarningLevel.INFO,
            ))

    checks.append("title_consistency")
    if extracted.title:
        title_lower = extracted.title.lower()
        if expected.company_name:
            in_title = fuzzy_match(expected.company_name, extracted.title, 0.5)
            if not in_title.match and expected.ticker.lower() not in title_lower:
                warnings.append(ValidationWarning(
                    field="title",
                    message=(
                        f'Title "{extracted.title}" doesn\'t appear to mention expected '
                        f'company "{expected.company_name}"'
                    ),
                    severity=WarningLevel.WARNING,
                ))
        if "earning" not in title_lower:
            warnings.append(ValidationWarning(
                field="title",
                message='Title does not contain "earnings" - may be wrong page type',
                severity=WarningLevel.WARNING,
            ))

    checks.append("participants_quality")
    if extracted.participants:
        has_exec = any(
            kw in p.lower() for p in extracted.participants for kw in EXECUTIVE_KEYWORDS
        )
        if not has_exec:
            warnings.append(ValidationWarning(
                field="participants",
                message="No executives (CEO, CFO) identified in participants list",
                severity=WarningLevel.WARNING,
            ))

    result = ValidationResult(passed=True, errors=errors, warnings=warnings, checks_performed=checks)
    critical = result.count(Severity.CRITICAL)
    major = result.count(Severity.MAJOR)
    result.passed = critical == 0 and major <= 1
    metadata["critical_errors"] = critical
    metadata["major_errors"] = major
    result.metadata = metadata
    return result


def looks_like_transcript(content: Optional[str]) -> Dict[str, Any]:
    """Quick content-only score; no expectation needed."""
    if not content or len(content) < 500:
        return {"is_transcript": False, "confidence": 0, "reasons": ["Content too short"]}

    lowered = content.lower()
    reasons: List[str] = []
    score = 0

    keyword_count = sum(1 for kw in TRANSCRIPT_KEYWORDS if kw in lowered)
    score += keyword_count * 10
    if keyword_count >= 5:
        reasons.append(f"Found {keyword_count} earnings keywords")

    if any(kw in lowered for kw in EXECUTIVE_KEYWORDS):
        score += 20
        reasons.append("Executive mentions found")

    if "question" in lowered or "q&a" in lowered:
        score += 15
        reasons.append("Q&A section detected")

    if "operator" in lowered:
        score += 10
        reasons.append("Conference call format detected")

    word_count = len(content.split())
    if word_count >= 5000:
        score += 20
        reasons.append(f"Word count: {word_count}")
    elif word_count >= 2000:
        score += 10

    confidence = min(100, score)
    return {"is_transcript": confidence >= 50, "confidence": confidence, "reasons": reasons}
