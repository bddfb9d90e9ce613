"""
Construction of audit entries.

Entries are frozen. The helpers here are the only way to derive an amended
copy (human review, save error); each copy gets a fresh entry_hash.
"""
import traceback
import uuid
from datetime import datetime, timezone
from typing import List, Optional
from urllib.parse import urlparse

from ..config import SCRAPING_VERSION, VALIDATOR_VERSION
from ..models.audit import (
    AttemptError,
    AuditLogEntry,
    DecisionSnapshot,
    EntryMetadata,
    ErrorCounts,
    ExpectedSnapshot,
    ExtractionSnapshot,
    HumanDecision,
    HumanReview,
    LayerError,
    ValidationSnapshot,
    VerificationStatus,
)
from ..models.transcript import ExpectedTranscriptData, ExtractedTranscriptData, ScrapeResult
from ..models.validation import CombinedValidationResult, Decision, Severity
from ..utils.hashing import generate_audit_hash

_STATUS_FOR_DECISION = {
    Decision.APPROVE: VerificationStatus.VERIFIED,
    Decision.REVIEW: VerificationStatus.PENDING,
    Decision.REJECT: VerificationStatus.REJECTED,
}


def verification_status_for(decision: Decision) -> VerificationStatus:
    return _STATUS_FOR_DECISION[decision]


def new_audit_id() -> str:
    ms = int(datetime.now(timezone.utc).timestamp() * 1000)
    return f"AUDIT-{ms}-{uuid.uuid4().hex[:6]}"


def source_domain_of(url: str) -> str:
    return urlparse(url).hostname or "unknown"


def compute_entry_hash(entry: AuditLogEntry) -> str:
    return generate_audit_hash(
        entry.timestamp.isoformat(),
        entry.source_url,
        entry.content_hash,
        entry.validation.model_dump_json(),
        entry.decision.model_dump_json(),
    )


def _seal(entry: AuditLogEntry) -> AuditLogEntry:
    return entry.model_copy(update={"entry_hash": compute_entry_hash(entry)})


def verify_entry_hash(entry: AuditLogEntry) -> bool:
    return entry.entry_hash is not None and entry.entry_hash == compute_entry_hash(entry)


def _extraction_snapshot(data: Optional[ExtractedTranscriptData]) -> ExtractionSnapshot:
    if data is None:
        return ExtractionSnapshot()
    return ExtractionSnapshot(
        company_name=data.company_name,
        ticker=data.ticker,
        quarter=data.quarter,
        fiscal_year=data.fiscal_year,
        call_date=data.call_date,
        word_count=len(data.content.split()) if data.content else 0,
        participant_count=len(data.participants),
    )


def _expected_snapshot(expected: ExpectedTranscriptData) -> ExpectedSnapshot:
    return ExpectedSnapshot(**expected.model_dump())


def _validation_snapshot(result: CombinedValidationResult) -> ValidationSnapshot:
    errors: List[LayerError] = []
    warning_count = 0
    for number, layer in enumerate(result.layers, start=1):
        warning_count += len(layer.warnings)
        for error in layer.errors:
            errors.append(LayerError(
                layer=number,
                field=error.field,
                severity=error.severity,
                message=error.message,
            ))

    counts = ErrorCounts(
        critical=sum(1 for e in errors if e.severity == Severity.CRITICAL),
        major=sum(1 for e in errors if e.severity == Severity.MAJOR),
        minor=sum(1 for e in errors if e.severity == Severity.MINOR),
    )
    return ValidationSnapshot(
        layer1_passed=result.layer1.passed,
        layer2_passed=result.layer2.passed,
        layer3_passed=result.layer3.passed,
        confidence=result.confidence,
        error_count=counts,
        warning_count=warning_count,
        errors=errors,
    )


def create_audit_log_entry(
    source_url: str,
    extracted: ExtractedTranscriptData,
    expected: ExpectedTranscriptData,
    validation: CombinedValidationResult,
    raw_html: str = "",
    raw_html_hash: Optional[str] = None,
    content_hash: Optional[str] = None,
    saved_to_db: bool = False,
    transcript_id: Optional[str] = None,
    scraped_at: Optional[datetime] = None,
    validated_at: Optional[datetime] = None,
    decided_at: Optional[datetime] = None,
    environment: str = "development",
) -> AuditLogEntry:
    now = datetime.now(timezone.utc)
    entry = AuditLogEntry(
        audit_id=new_audit_id(),
        transcript_id=transcript_id,
        timestamp=now,
        scraped_at=scraped_at or now,
        validated_at=validated_at or now,
        decided_at=decided_at or now,
        source_url=source_url,
        source_title=extracted.title,
        source_domain=source_domain_of(source_url),
        raw_html_hash=raw_html_hash,
        content_hash=content_hash,
        raw_html_size=len(raw_html),
        extraction=_extraction_snapshot(extracted),
        expected=_expected_snapshot(expected),
        validation=_validation_snapshot(validation),
        decision=DecisionSnapshot(
            auto_decision=validation.auto_decision,
            reasons=list(validation.reasons),
            saved_to_db=saved_to_db,
            verification_status=verification_status_for(validation.auto_decision),
        ),
        metadata=EntryMetadata(
            scraping_version=SCRAPING_VERSION,
            validator_version=VALIDATOR_VERSION,
            environment=environment,
        ),
    )
    return _seal(entry)


def create_failure_audit_entry(
    source_url: str,
    expected: ExpectedTranscriptData,
    scrape: ScrapeResult,
    environment: str = "development",
) -> AuditLogEntry:
    """Entry for an attempt that never reached validation: confidence 0, rejected."""
    now = datetime.now(timezone.utc)
    message = "; ".join(scrape.errors) or "Failed to fetch page"
    entry = AuditLogEntry(
        audit_id=new_audit_id(),
        timestamp=now,
        scraped_at=scrape.timing.completed_at,
        decided_at=now,
        source_url=source_url,
        source_title=scrape.data.title if scrape.data else None,
        source_domain=source_domain_of(source_url),
        raw_html_hash=scrape.raw_html_hash,
        raw_html_size=len(scrape.raw_html or ""),
        extraction=_extraction_snapshot(scrape.data),
        expected=_expected_snapshot(expected),
        decision=DecisionSnapshot(
            auto_decision=Decision.REJECT,
            reasons=[f"Scrape failed: {message}"],
            saved_to_db=False,
            verification_status=VerificationStatus.REJECTED,
        ),
        error=AttemptError(
            type=scrape.failure_type or "unknown",
            message=message,
            retry_count=scrape.retry_count,
        ),
        metadata=EntryMetadata(
            scraping_version=SCRAPING_VERSION,
            validator_version=VALIDATOR_VERSION,
            environment=environment,
        ),
    )
    return _seal(entry)


def with_save_error(entry: AuditLogEntry, exc: Exception, saved_to_db: bool = False) -> AuditLogEntry:
    """Attach a persistence failure. saved_to_db stays True only when the record itself was written."""
    error = AttemptError(
        type=type(exc).__name__,
        message=str(exc),
        stack="".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
    )
    decision = entry.decision.model_copy(update={"saved_to_db": saved_to_db})
    return _seal(entry.model_copy(update={"error": error, "decision": decision}))


def with_saved_record(entry: AuditLogEntry, transcript_id: str) -> AuditLogEntry:
    decision = entry.decision.model_copy(update={"saved_to_db": True})
    return _seal(entry.model_copy(update={"transcript_id": transcript_id, "decision": decision}))


def with_human_review(
    entry: AuditLogEntry,
    reviewed_by: str,
    decision: HumanDecision,
    notes: str = "",
    reviewed_at: Optional[datetime] = None,
) -> AuditLogEntry:
    review = HumanReview(
        reviewed_at=reviewed_at or datetime.now(timezone.utc),
        reviewed_by=reviewed_by,
        decision=decision,
        notes=notes,
    )
    status = VerificationStatus.VERIFIED if decision == HumanDecision.VERIFIED else VerificationStatus.REJECTED
    snapshot = entry.decision.model_copy(update={"verification_status": status})
    return _seal(entry.model_copy(update={"human_review": review, "decision": snapshot}))
