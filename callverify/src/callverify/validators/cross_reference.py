"""
Layer 3: cross-reference validation.

Checks the extraction against reference data: the authoritative event date
and the transcripts already stored for the same event.
"""
import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, Field

from ..config import CrossReferenceConfig
from ..models.store import StoredContent
from ..models.transcript import ExtractedTranscriptData
from ..models.validation import Severity, ValidationError, ValidationResult, ValidationWarning, WarningLevel
from ..utils.dates import dates_within_tolerance, parse_date
from ..utils.hashing import check_duplicate, check_near_duplicate, generate_content_hash, generate_fingerprint

logger = logging.getLogger(__name__)


class CrossReferenceData(BaseModel):
    expected_date: Optional[datetime] = None
    # e.g. "AAPL-24Q4-MENTION"; the prefix before the first dash is the ticker
    event_id: Optional[str] = None

    existing_content_hashes: List[str] = Field(default_factory=list)
    # record id -> fingerprint
    existing_fingerprints: Dict[str, List[str]] = Field(default_factory=dict)

    expected_company_tickers: List[str] = Field(default_factory=list)


def validate_cross_reference(
    extracted: ExtractedTranscriptData,
    cross_ref: CrossReferenceData,
    config: Optional[CrossReferenceConfig] = None,
) -> ValidationResult:
    config = config or CrossReferenceConfig()
    tolerance = config.date_tolerance_hours
    errors: List[ValidationError] = []
    warnings: List[ValidationWarning] = []
    checks: List[str] = []
    date_difference: Optional[float] = None

    checks.append("event_date_match")
    if cross_ref.expected_date and extracted.call_date:
        parsed = parse_date(extracted.call_date)
        if parsed.success and parsed.date:
            within, date_difference = dates_within_tolerance(parsed.date, cross_ref.expected_date, tolerance)
            if not within:
                errors.append(ValidationError(
                    field="callDate",
                    expected=cross_ref.expected_date.isoformat(),
                    actual=parsed.date.isoformat(),
                    severity=Severity.MAJOR if config.require_date_match else Severity.MINOR,
                    message=(
                        f"Date differs from expected event date by {date_difference:.1f} hours "
                        f"(max tolerance: {tolerance:g}h)"
                    ),
                ))
            elif date_difference > tolerance / 2:
                warnings.append(ValidationWarning(
                    field="callDate",
                    message=(
                        f"Date is {date_difference:.1f} hours from expected event date "
                        f"(within {tolerance:g}h tolerance)"
                    ),
                    severity=WarningLevel.INFO,
                ))
    elif config.require_date_match and not cross_ref.expected_date:
        warnings.append(ValidationWarning(
            field="expectedDate",
            message="No expected event date available for cross-reference",
            severity=WarningLevel.WARNING,
        ))

    checks.append("event_ticker_match")
    if cross_ref.event_id and extracted.ticker:
        prefix = cross_ref.event_id.split("-")[0]
        if prefix and prefix.upper() != extracted.ticker.upper():
            warnings.append(ValidationWarning(
                field="ticker",
                message=f'Ticker "{extracted.ticker}" may not match event "{cross_ref.event_id}"',
                severity=WarningLevel.WARNING,
            ))

    content_hash = generate_content_hash(extracted.content) if extracted.content else None

    checks.append("exact_duplicate_check")
    if content_hash and cross_ref.existing_content_hashes:
        is_duplicate, matching = check_duplicate(content_hash, cross_ref.existing_content_hashes)
        if is_duplicate:
            errors.append(ValidationError(
                field="content",
                expected="Unique content",
                actual=f"Duplicate of existing transcript (hash: {matching[:12]}...)",
                severity=Severity.CRITICAL,
                message="This transcript has already been saved (exact duplicate)",
            ))

    checks.append("near_duplicate_check")
    if extracted.content and cross_ref.existing_fingerprints:
        near = check_near_duplicate(
            generate_fingerprint(extracted.content),
            cross_ref.existing_fingerprints,
            config.near_duplicate_threshold,
        )
        similarity = near["similarity"] * 100
        if near["is_near_duplicate"]:
            errors.append(ValidationError(
                field="content",
                expected="Unique content",
                actual=f"{similarity:.1f}% similar to existing transcript",
                severity=Severity.MAJOR,
                message=f'Near-duplicate detected: {similarity:.1f}% similar to transcript "{near["matching_id"]}"',
            ))
        elif near["similarity"] > 0.5:
            warnings.append(ValidationWarning(
                field="content",
                message=f'Content is {similarity:.1f}% similar to existing transcript "{near["closest_id"]}"',
                severity=WarningLevel.INFO,
            ))

    checks.append("company_ticker_list")
    if extracted.ticker and cross_ref.expected_company_tickers:
        known = {t.upper() for t in cross_ref.expected_company_tickers}
        if extracted.ticker.upper() not in known:
            warnings.append(ValidationWarning(
                field="ticker",
                message=(
                    f'Ticker "{extracted.ticker}" not in expected list for this company '
                    f'({", ".join(cross_ref.expected_company_tickers)})'
                ),
                severity=WarningLevel.WARNING,
            ))

    checks.append("source_url_domain")
    if extracted.source_url:
        parsed_url = urlparse(extracted.source_url)
        host = (parsed_url.hostname or "").lower()
        if host and host not in config.allowed_domains:
            warnings.append(ValidationWarning(
                field="sourceUrl",
                message=f'Source domain "{host}" is not an allowed source',
                severity=WarningLevel.WARNING,
            ))
        path = parsed_url.path.lower()
        if "transcript" not in path and "earnings" not in path:
            warnings.append(ValidationWarning(
                field="sourceUrl",
                message='URL path does not contain "transcript" or "earnings"',
                severity=WarningLevel.INFO,
            ))

    result = ValidationResult(passed=True, errors=errors, warnings=warnings, checks_performed=checks)
    critical = result.count(Severity.CRITICAL)
    result.passed = critical == 0
    result.metadata = {
        "content_hash": content_hash,
        "date_difference_hours": date_difference,
        "critical_errors": critical,
        "major_errors": result.count(Severity.MAJOR),
    }
    return result


def can_skip_cross_reference(cross_ref: CrossReferenceData) -> bool:
    """True when there is nothing to compare against (first ingestion of a new event)."""
    return (
        cross_ref.expected_date is None
        and not cross_ref.existing_content_hashes
        and not cross_ref.existing_fingerprints
    )


def skipped_cross_reference_result() -> ValidationResult:
    return ValidationResult(
        passed=True,
        warnings=[ValidationWarning(
            field="crossReference",
            message="Cross-reference validation skipped: no reference data available",
            severity=WarningLevel.INFO,
        )],
        checks_performed=["skipped"],
        metadata={"skipped": True},
    )


def build_cross_reference(records: Iterable[StoredContent]) -> CrossReferenceData:
    """Hashes and fingerprints for every stored record; stored hashes win over recomputation."""
    hashes: List[str] = []
    fingerprints: Dict[str, List[str]] = {}
    for record in records:
        hashes.append(record.content_hash or generate_content_hash(record.content))
        fingerprints[record.id] = generate_fingerprint(record.content)
    return CrossReferenceData(existing_content_hashes=hashes, existing_fingerprints=fingerprints)


def load_cross_reference(
    store,
    event_id: Optional[str],
    expected_date: Optional[datetime] = None,
    expected_company_tickers: Optional[List[str]] = None,
) -> CrossReferenceData:
    """
    Assemble reference data for one event from a ContentStore.
    With no store or no event id only the expected date is carried.
    """
    records: List[StoredContent] = []
    if store is not None and event_id:
        records = list(store.list_records_for_event(event_id))
        logger.debug(f"Loaded {len(records)} stored transcripts for {event_id}")

    data = build_cross_reference(records)
    return data.model_copy(update={
        "expected_date": expected_date,
        "event_id": event_id,
        "expected_company_tickers": expected_company_tickers or [],
    })
