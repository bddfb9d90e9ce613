from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from .audit import VerificationStatus
from .validation import Decision


class TranscriptRecord(BaseModel):
    """Transcript as persisted by a document store."""

    id: str
    event_id: str
    company: str
    ticker: Optional[str] = None
    date: str
    quarter: str
    year: int
    content: str
    word_count: int = 0

    source_url: Optional[str] = None
    source_title: Optional[str] = None
    source_date: Optional[str] = None
    source_domain: Optional[str] = None

    content_hash: Optional[str] = None
    raw_html_hash: Optional[str] = None

    verification_status: VerificationStatus = VerificationStatus.PENDING
    validation_decision: Optional[Decision] = None
    validation_confidence: Optional[int] = None
    validation_reasons: List[str] = Field(default_factory=list)
    audit_id: Optional[str] = None
    created_at: Optional[datetime] = None


class StoredContent(BaseModel):
    """Minimal view of a stored record used for duplicate checks."""

    id: str
    content: str
    content_hash: Optional[str] = None


class EventDateUpdate(BaseModel):
    date: str
    source: str = "transcript"
    verified: bool = False
    confidence: Optional[int] = None
