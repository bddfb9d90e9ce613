"""
Layer 1: extraction validation.

Checks the shape of what the parser produced, independent of any
expectation. Passing means no critical errors.
"""
import re
from typing import List, Optional
from urllib.parse import urlparse

from ..config import ExtractionConfig
from ..models.transcript import ExtractedTranscriptData
from ..models.validation import Severity, ValidationError, ValidationResult, ValidationWarning, WarningLevel
from ..utils.dates import parse_date
from ..utils.fuzzy import parse_quarter

_TICKER_RE = re.compile(r"^[A-Z]{1,5}(\.[A-Z])?$", re.IGNORECASE)


def calculate_word_count(content: Optional[str]) -> int:
    if not content:
        return 0
    return len(content.split())


def _is_valid_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def validate_extraction(data: ExtractedTranscriptData, config: Optional[ExtractionConfig] = None) -> ValidationResult:
    config = config or ExtractionConfig()
    errors: List[ValidationError] = []
    warnings: List[ValidationWarning] = []
    checks: List[str] = []

    # Critical

    checks.append("content_not_empty")
    if not data.content or not data.content.strip():
        errors.append(ValidationError(
            field="content",
            expected="Non-empty transcript content",
            actual="Empty or null",
            severity=Severity.CRITICAL,
            message="Transcript content is empty or missing",
        ))

    checks.append("word_count_minimum")
    if data.word_count < config.min_word_count:
        errors.append(ValidationError(
            field="wordCount",
            expected=f">= {config.min_word_count} words",
            actual=f"{data.word_count} words",
            severity=Severity.CRITICAL,
            message=(
                f"Word count ({data.word_count}) is below minimum ({config.min_word_count}). "
                "This may be a preview, not the full transcript."
            ),
        ))

    checks.append("company_name_present")
    if not data.company_name or not data.company_name.strip():
        errors.append(ValidationError(
            field="companyName",
            expected="Company name string",
            actual="Empty or null",
            severity=Severity.CRITICAL,
            message="Company name could not be extracted from the page",
        ))

    checks.append("quarter_format_valid")
    if not data.quarter:
        errors.append(ValidationError(
            field="quarter",
            expected="Q1, Q2, Q3, or Q4",
            actual="null",
            severity=Severity.CRITICAL,
            message="Quarter could not be extracted from the page",
        ))
    elif not parse_quarter(data.quarter)["match"]:
        errors.append(ValidationError(
            field="quarter",
            expected="Q1, Q2, Q3, or Q4",
            actual=data.quarter,
            severity=Severity.CRITICAL,
            message=f'Invalid quarter format: "{data.quarter}"',
        ))

    checks.append("year_reasonable")
    year_range = f"Year between {config.min_year} and {config.max_year}"
    if not data.fiscal_year:
        errors.append(ValidationError(
            field="fiscalYear",
            expected=year_range,
            actual="null",
            severity=Severity.CRITICAL,
            message="Fiscal year could not be extracted from the page",
        ))
    elif not config.min_year <= data.fiscal_year <= config.max_year:
        errors.append(ValidationError(
            field="fiscalYear",
            expected=year_range,
            actual=str(data.fiscal_year),
            severity=Severity.CRITICAL,
            message=f"Fiscal year {data.fiscal_year} is outside reasonable range",
        ))

    # Major

    checks.append("ticker_present")
    if not data.ticker or not data.ticker.strip():
        errors.append(ValidationError(
            field="ticker",
            expected="Stock ticker symbol",
            actual="Empty or null",
            severity=Severity.MAJOR,
            message="Ticker symbol could not be extracted",
        ))
    elif not _TICKER_RE.match(data.ticker.strip()):
        errors.append(ValidationError(
            field="ticker",
            expected="Valid ticker format (1-5 letters)",
            actual=data.ticker,
            severity=Severity.MAJOR,
            message=f'Ticker "{data.ticker}" has unusual format',
        ))

    checks.append("call_date_parseable")
    if not data.call_date:
        errors.append(ValidationError(
            field="callDate",
            expected="Parseable date string",
            actual="null",
            severity=Severity.MAJOR,
            message="Call date could not be extracted",
        ))
    elif not parse_date(data.call_date).success:
        errors.append(ValidationError(
            field="callDate",
            expected="Parseable date format",
            actual=data.call_date,
            severity=Severity.MAJOR,
            message=f'Could not parse date: "{data.call_date}"',
        ))

    # Minor and warnings

    checks.append("participants_present")
    if config.require_participants:
        if not data.participants:
            warnings.append(ValidationWarning(
                field="participants",
                message="No participants (CEO, CFO, analysts) were extracted",
                severity=WarningLevel.WARNING,
            ))
        elif len(data.participants) < 2:
            warnings.append(ValidationWarning(
                field="participants",
                message=f"Only {len(data.participants)} participant found; expected multiple",
                severity=WarningLevel.INFO,
            ))

    checks.append("title_present")
    if not data.title or not data.title.strip():
        warnings.append(ValidationWarning(
            field="title",
            message="Page title could not be extracted",
            severity=WarningLevel.INFO,
        ))

    checks.append("source_url_valid")
    if not data.source_url:
        errors.append(ValidationError(
            field="sourceUrl",
            expected="Valid URL",
            actual="null",
            severity=Severity.MINOR,
            message="Source URL is missing",
        ))
    elif not _is_valid_url(data.source_url):
        errors.append(ValidationError(
            field="sourceUrl",
            expected="Valid URL",
            actual=data.source_url,
            severity=Severity.MINOR,
            message="Source URL is not a valid URL",
        ))

    checks.append("extraction_timestamp")
    if not data.extracted_at:
        warnings.append(ValidationWarning(
            field="extractedAt",
            message="Extraction timestamp is missing",
            severity=WarningLevel.INFO,
        ))

    checks.append("raw_html_stored")
    if not data.raw_html:
        warnings.append(ValidationWarning(
            field="rawHtml",
            message="Raw HTML was not stored (needed for audit trail)",
            severity=WarningLevel.WARNING,
        ))

    result = ValidationResult(passed=True, errors=errors, warnings=warnings, checks_performed=checks)
    critical = result.count(Severity.CRITICAL)
    result.passed = critical == 0
    result.metadata = {
        "word_count": data.word_count,
        "critical_errors": critical,
        "major_errors": result.count(Severity.MAJOR),
        "minor_errors": result.count(Severity.MINOR),
        "warning_count": len(warnings),
    }
    return result


def has_required_fields(data: ExtractedTranscriptData) -> bool:
    """Cheap pre-check before running the full pipeline."""
    return bool(
        data.content and data.content.strip()
        and data.company_name
        and data.quarter
        and data.fiscal_year
    )
