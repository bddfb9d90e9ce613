from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ExtractedTranscriptData(BaseModel):
    """Structured facts pulled from one transcript page."""

    model_config = ConfigDict(frozen=True)

    company_name: Optional[str] = None
    ticker: Optional[str] = None
    quarter: Optional[str] = None
    fiscal_year: Optional[int] = None
    call_date: Optional[str] = None
    call_time: Optional[str] = None
    content: Optional[str] = None

    participants: List[str] = Field(default_factory=list)
    title: Optional[str] = None
    word_count: int = 0

    source_url: str = ""
    source_title: Optional[str] = None
    raw_html: str = ""
    extracted_at: Optional[datetime] = None


class ExpectedTranscriptData(BaseModel):
    """What the caller expects the page to describe."""

    model_config = ConfigDict(frozen=True)

    company_name: str
    ticker: str
    quarter: str
    fiscal_year: int
    expected_date: Optional[datetime] = None


class ParseResult(BaseModel):
    success: bool
    data: Optional[ExtractedTranscriptData] = None
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    selectors_found: List[str] = Field(default_factory=list)
    selectors_missing: List[str] = Field(default_factory=list)


class PageCheck(BaseModel):
    is_transcript: bool
    confidence: int
    reasons: List[str] = Field(default_factory=list)


class ScrapeTiming(BaseModel):
    started_at: datetime
    completed_at: datetime
    duration_ms: int


class ScrapeResult(BaseModel):
    """Outcome of one fetch_page invocation."""

    success: bool
    data: Optional[ExtractedTranscriptData] = None
    raw_html: Optional[str] = None
    raw_html_hash: Optional[str] = None
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    timing: ScrapeTiming
    retry_count: int = 0

    # network | paywall | rate_limit | invalid_url | parse
    failure_type: Optional[str] = None
    final_url: Optional[str] = None
    redirect_count: int = 0
    raw_html_path: Optional[str] = None
