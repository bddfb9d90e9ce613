"""
End-to-end ingestion of one transcript page:
fetch -> parse -> validate -> audit -> (optionally) persist.
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field

from .audit.entry import (
    create_audit_log_entry,
    create_failure_audit_entry,
    source_domain_of,
    verification_status_for,
    with_save_error,
    with_saved_record,
)
from .audit.logger import AuditLogger
from .config import Settings
from .errors import InputError, PersistenceError
from .fetch.fetcher import TranscriptFetcher
from .models.audit import AuditLogEntry
from .models.store import EventDateUpdate, TranscriptRecord
from .models.transcript import ExpectedTranscriptData, ExtractedTranscriptData, ScrapeResult
from .models.validation import CombinedValidationResult, Decision
from .store.base import DocumentStore
from .utils.dates import parse_date
from .utils.hashing import generate_content_hash, generate_transcript_id
from .validators.cross_reference import load_cross_reference
from .validators.pipeline import format_validation_result, run_validation_pipeline

logger = logging.getLogger(__name__)


class PipelineResult(BaseModel):
    success: bool
    scrape: ScrapeResult
    validation: Optional[CombinedValidationResult] = None
    audit_entry: Optional[AuditLogEntry] = None
    should_save: bool = False
    saved_record_id: Optional[str] = None
    errors: List[str] = Field(default_factory=list)


def default_event_id(expected: ExpectedTranscriptData) -> str:
    return f"{expected.ticker.upper()}-{expected.quarter.upper()}-{expected.fiscal_year}"


def build_transcript_record(
    data: ExtractedTranscriptData,
    expected: ExpectedTranscriptData,
    validation: CombinedValidationResult,
    event_id: str,
    content_hash: Optional[str],
    raw_html_hash: Optional[str],
    audit_id: str,
) -> TranscriptRecord:
    ticker = data.ticker or expected.ticker
    quarter = data.quarter or expected.quarter
    year = data.fiscal_year or expected.fiscal_year
    date = data.call_date or ""

    return TranscriptRecord(
        id=generate_transcript_id(ticker, quarter, year, date),
        event_id=event_id,
        company=data.company_name or expected.company_name,
        ticker=ticker,
        date=date,
        quarter=quarter,
        year=year,
        content=data.content or "",
        word_count=data.word_count,
        source_url=data.source_url,
        source_title=data.source_title,
        source_date=data.call_date,
        source_domain=source_domain_of(data.source_url) if data.source_url else None,
        content_hash=content_hash,
        raw_html_hash=raw_html_hash,
        verification_status=verification_status_for(validation.auto_decision),
        validation_decision=validation.auto_decision,
        validation_confidence=validation.confidence,
        validation_reasons=list(validation.reasons),
        audit_id=audit_id,
        created_at=datetime.now(timezone.utc),
    )


def _store_error(exc: Exception) -> PersistenceError:
    """Store implementations may raise driver errors; audit them as PersistenceError."""
    if isinstance(exc, PersistenceError):
        return exc
    wrapped = PersistenceError(f"{type(exc).__name__}: {exc}", details={"cause": type(exc).__name__})
    wrapped.__cause__ = exc
    return wrapped


def run_scraping_pipeline(
    url: str,
    expected: ExpectedTranscriptData,
    fetcher: TranscriptFetcher,
    audit_logger: AuditLogger,
    settings: Optional[Settings] = None,
    store: Optional[DocumentStore] = None,
    event_id: Optional[str] = None,
    expected_company_tickers: Optional[List[str]] = None,
    save: bool = False,
) -> PipelineResult:
    """
    Run one ingestion attempt. Exactly one audit entry is logged per call,
    including when the fetch fails. The store is written at most once.
    """
    settings = settings or Settings()
    if save and store is None:
        raise InputError("Saving requires a document store")

    environment = settings.environment
    event_id = event_id or default_event_id(expected)

    logger.info(f"Scraping: {url}")
    scrape = fetcher.fetch_page(url)

    if not scrape.success or scrape.data is None:
        logger.error(f"Scraping failed: {'; '.join(scrape.errors)}")
        entry = create_failure_audit_entry(url, expected, scrape, environment)
        audit_logger.log(entry)
        return PipelineResult(success=False, scrape=scrape, audit_entry=entry, errors=list(scrape.errors))

    data = scrape.data
    logger.info(
        f"Scraped {data.company_name} ({data.ticker}) {data.quarter} {data.fiscal_year}, {data.word_count} words"
    )

    try:
        cross_ref = load_cross_reference(store, event_id, expected.expected_date, expected_company_tickers)
    except Exception as exc:
        e = _store_error(exc)
        logger.error(f"Loading stored transcripts failed: {e.message}")
        failed = scrape.model_copy(update={"errors": [e.message], "failure_type": "persistence"})
        entry = create_failure_audit_entry(url, expected, failed, environment)
        audit_logger.log(entry)
        return PipelineResult(success=False, scrape=scrape, audit_entry=entry, errors=[e.message])

    validation = run_validation_pipeline(data, expected, cross_ref, settings)
    validated_at = datetime.now(timezone.utc)

    logger.info(f"Confidence: {validation.confidence}% Decision: {validation.auto_decision.value.upper()}")
    logger.debug(format_validation_result(validation))

    content_hash = generate_content_hash(data.content) if data.content else None
    should_save = save and validation.auto_decision != Decision.REJECT

    entry = create_audit_log_entry(
        source_url=url,
        extracted=data,
        expected=expected,
        validation=validation,
        raw_html=scrape.raw_html or "",
        raw_html_hash=scrape.raw_html_hash,
        content_hash=content_hash,
        scraped_at=scrape.timing.completed_at,
        validated_at=validated_at,
        decided_at=datetime.now(timezone.utc),
        environment=environment,
    )

    errors: List[str] = []
    saved_record_id = None

    if should_save:
        record = build_transcript_record(
            data, expected, validation, event_id, content_hash, scrape.raw_html_hash, entry.audit_id
        )
        try:
            saved_record_id = store.save_record(record)
            entry = with_saved_record(entry, saved_record_id)
        except Exception as exc:
            e = _store_error(exc)
            logger.error(f"Save failed: {e.message}")
            should_save = False
            entry = with_save_error(entry, e)
            errors.append(e.message)

        if saved_record_id:
            parsed = parse_date(data.call_date)
            if parsed.success and parsed.date:
                update = EventDateUpdate(
                    date=parsed.date.date().isoformat(),
                    verified=validation.auto_decision == Decision.APPROVE,
                    confidence=validation.confidence,
                )
                try:
                    store.update_event_date(record.company, event_id, update)
                except Exception as exc:
                    e = _store_error(exc)
                    logger.error(f"Event date update failed: {e.message}")
                    entry = with_save_error(entry, e, saved_to_db=True)
                    errors.append(e.message)
    elif not save:
        logger.info(f"[DRY RUN] Would save: {validation.auto_decision != Decision.REJECT}")

    audit_logger.log(entry)

    return PipelineResult(
        success=not errors,
        scrape=scrape,
        validation=validation,
        audit_entry=entry,
        should_save=should_save,
        saved_record_id=saved_record_id,
        errors=errors,
    )
