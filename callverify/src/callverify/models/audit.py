from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .validation import Decision, Severity


class VerificationStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class HumanDecision(str, Enum):
    VERIFIED = "verified"
    REJECTED = "rejected"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class ExtractionSnapshot(_Frozen):
    company_name: Optional[str] = None
    ticker: Optional[str] = None
    quarter: Optional[str] = None
    fiscal_year: Optional[int] = None
    call_date: Optional[str] = None
    word_count: int = 0
    participant_count: int = 0


class ExpectedSnapshot(_Frozen):
    company_name: str
    ticker: str
    quarter: str
    fiscal_year: int
    expected_date: Optional[datetime] = None


class ErrorCounts(_Frozen):
    critical: int = 0
    major: int = 0
    minor: int = 0


class LayerError(_Frozen):
    layer: int
    field: str
    severity: Severity
    message: str


class ValidationSnapshot(_Frozen):
    layer1_passed: bool = False
    layer2_passed: bool = False
    layer3_passed: bool = False
    confidence: int = 0
    error_count: ErrorCounts = Field(default_factory=ErrorCounts)
    warning_count: int = 0
    errors: List[LayerError] = Field(default_factory=list)


class DecisionSnapshot(_Frozen):
    auto_decision: Decision
    reasons: List[str] = Field(default_factory=list)
    saved_to_db: bool = False
    verification_status: Optional[VerificationStatus] = None


class HumanReview(_Frozen):
    reviewed_at: datetime
    reviewed_by: str
    decision: HumanDecision
    notes: str = ""


class AttemptError(_Frozen):
    type: str
    message: str
    stack: Optional[str] = None
    retry_count: int = 0


class EntryMetadata(_Frozen):
    scraping_version: str
    validator_version: str
    environment: str


class AuditLogEntry(_Frozen):
    """
    Forensic record of one ingestion attempt.
    Only `human_review` and `error` may be attached after creation,
    always through model_copy.
    """

    audit_id: str
    transcript_id: Optional[str] = None

    timestamp: datetime
    scraped_at: Optional[datetime] = None
    validated_at: Optional[datetime] = None
    decided_at: Optional[datetime] = None

    source_url: str
    source_title: Optional[str] = None
    source_domain: str = "unknown"

    raw_html_hash: Optional[str] = None
    content_hash: Optional[str] = None
    raw_html_size: int = 0

    extraction: ExtractionSnapshot = Field(default_factory=ExtractionSnapshot)
    expected: ExpectedSnapshot
    validation: ValidationSnapshot = Field(default_factory=ValidationSnapshot)
    decision: DecisionSnapshot

    human_review: Optional[HumanReview] = None
    error: Optional[AttemptError] = None

    metadata: EntryMetadata
    entry_hash: Optional[str] = None


class TopError(BaseModel):
    message: str
    count: int


class AuditSummary(BaseModel):
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None

    attempts: int = 0
    successful: int = 0
    failed: int = 0

    approved: int = 0
    review: int = 0
    rejected: int = 0

    layer1_pass_rate: float = 0.0
    layer2_pass_rate: float = 0.0
    layer3_pass_rate: float = 0.0
    average_confidence: float = 0.0

    critical_count: int = 0
    major_count: int = 0
    minor_count: int = 0
    top_errors: List[TopError] = Field(default_factory=list)

    pending_review: int = 0
    human_verified: int = 0
    human_rejected: int = 0
