"""
HTML parser for earnings call transcript pages.

Selectors target the Seeking Alpha article layout. Keep them in SELECTORS so a
layout change is a one-place fix.
"""
import logging
import re
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Tuple
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from .models.transcript import ExtractedTranscriptData, PageCheck, ParseResult
from .validators.extraction import calculate_word_count

logger = logging.getLogger(__name__)

SELECTORS = {
    "article_body": '[data-test-id="article-content"], .article-content, '
                    'article[data-test-id="content-container"] [data-test-id="article-body"]',
    "article_title": 'h1[data-test-id="post-title"], h1.article-title, article h1',
    "transcript_body": '.sa-art-container, [data-test-id="article-content"]',
    "publish_date": 'time[datetime], [data-test-id="post-date"], .article-date',
    "ticker": '[data-test-id="symbol-link"], a[href*="/symbol/"]',
    "paragraphs": 'article p, .article-content p',
}

STRIP_FROM_CONTENT = (
    'script, style, nav, header, footer, .paywall, .ad, [data-test-id="paywall"]'
)

PAYWALL_SELECTORS = [
    '[data-test-id="paywall"]',
    '.paywall',
    '.subscription-required',
    '.premium-content',
]
PAYWALL_PHRASES = ("subscribe to read", "premium article", "unlock this article")

DEFAULT_BRAND_MARKERS = ("seekingalpha.com", "Seeking Alpha")

MIN_CONTENT_WORDS = 100

# "Apple Inc. (AAPL) Q4 2025 Earnings Call Transcript"
_TITLE_FULL_RE = re.compile(
    r"^(.+?)\s*\(([A-Z]{1,5}(?:\.[A-Z])?)\)\s*(Q[1-4])\s*(?:FY\s*)?(\d{4})", re.IGNORECASE
)
# "AAPL Q4 2025 Earnings Call"
_TITLE_TICKER_RE = re.compile(r"^([A-Z]{1,5})\s*(Q[1-4])\s*(\d{4})", re.IGNORECASE)
_TITLE_QUARTER_RE = re.compile(r"Q([1-4])\s*(?:FY)?\s*(\d{4})", re.IGNORECASE)

_URL_TICKER_RE = re.compile(r"/symbol/([A-Z]{1,5}(?:\.[A-Z])?)(?:/|$)", re.IGNORECASE)
_BARE_TICKER_RE = re.compile(r"^[A-Z]{1,5}(?:\.[A-Z])?$", re.IGNORECASE)
_BODY_DATE_RE = re.compile(
    r"(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)[a-z]*\.?\s+\d{1,2},?\s+\d{4}",
    re.IGNORECASE,
)
_TIME_RE = re.compile(r"\d{1,2}:\d{2}\s*(?:AM|PM)(?:\s*(?:ET|EST|EDT|PT))?", re.IGNORECASE)
_PARTICIPANT_RE = re.compile(
    r"([A-Z][a-z]+\s+[A-Z][a-z]+)\s*[-–]\s*"
    r"(CEO|CFO|COO|President|Chief|VP|Vice President|Director|Analyst)"
)
_QUARTER_ANYWHERE_RE = re.compile(r"Q[1-4]\s*\d{4}", re.IGNORECASE)
_H_WS_RE = re.compile(r"[ \t\xa0]+")


def _clean_text(text: str) -> str:
    lines = [_H_WS_RE.sub(" ", ln).strip() for ln in text.splitlines()]
    return "\n".join(ln for ln in lines if ln)


def _parse_title(title: str) -> Tuple[Optional[str], Optional[str], Optional[str], Optional[int], List[str]]:
    """Return company, ticker, quarter, fiscal year and any warnings."""
    warnings: List[str] = []

    m = _TITLE_FULL_RE.match(title)
    if m:
        return m.group(1).strip(), m.group(2).upper(), m.group(3).upper(), int(m.group(4)), warnings

    ticker = quarter = None
    year = None
    m = _TITLE_TICKER_RE.match(title)
    if m:
        ticker = m.group(1).upper()
        quarter = m.group(2).upper()
        year = int(m.group(3))
        warnings.append("Company name not found in title, only ticker")

    if not quarter:
        m = _TITLE_QUARTER_RE.search(title)
        if m:
            quarter = f"Q{m.group(1)}"
            year = int(m.group(2))

    return None, ticker, quarter, year, warnings


def parse_transcript_html(html: str, source_url: str) -> ParseResult:
    """
    Extract structured transcript data from a rendered page.

    Fails (success=False, data still populated for diagnostics) when content
    is missing or shorter than MIN_CONTENT_WORDS, or when neither company
    nor ticker could be determined.
    """
    if not html or not html.strip():
        return ParseResult(success=False, errors=["Empty HTML provided"])

    soup = BeautifulSoup(html, "lxml")
    errors: List[str] = []
    warnings: List[str] = []
    found: List[str] = []
    missing: List[str] = []

    # Title
    title = None
    title_el = soup.select_one(SELECTORS["article_title"])
    if title_el is not None:
        title = title_el.get_text(" ", strip=True) or None
        found.append("article_title")
    if not title:
        doc_title = soup.title.get_text(strip=True) if soup.title else ""
        title = doc_title.split("|")[0].strip() or None
        if title:
            warnings.append("Used fallback title extraction from <title> tag")
        else:
            missing.append("article_title")

    # Company, ticker, quarter, year
    company_name = ticker = quarter = None
    fiscal_year = None
    if title:
        company_name, ticker, quarter, fiscal_year, title_warnings = _parse_title(title)
        warnings.extend(title_warnings)

    if not ticker and source_url:
        ticker = extract_ticker_from_url(source_url)
        if ticker:
            warnings.append("Ticker extracted from URL, not page content")

    if not ticker:
        ticker_el = soup.select_one(SELECTORS["ticker"])
        if ticker_el is not None:
            text = ticker_el.get_text(strip=True).strip("()")
            if _BARE_TICKER_RE.match(text):
                ticker = text.upper()
                found.append("ticker")
        else:
            missing.append("ticker")

    # Call date and time
    call_date = call_time = None
    date_el = soup.select_one(SELECTORS["publish_date"])
    if date_el is not None:
        date_text = date_el.get_text(" ", strip=True)
        if date_el.get("datetime"):
            call_date = date_el["datetime"].strip()
            found.append("publish_date")
        elif date_text:
            call_date = date_text
        time_match = _TIME_RE.search(date_text or "")
        if time_match:
            call_time = time_match.group(0)
    else:
        body = soup.body or soup
        m = _BODY_DATE_RE.search(body.get_text(" "))
        if m:
            call_date = m.group(0)
            warnings.append("Date extracted from body text, not metadata")
        else:
            missing.append("publish_date")

    # Content
    content = None
    content_el = soup.select_one(SELECTORS["transcript_body"]) or soup.select_one(SELECTORS["article_body"])
    if content_el is not None:
        for junk in content_el.select(STRIP_FROM_CONTENT):
            junk.decompose()
        content = _clean_text(content_el.get_text("\n")) or None
        found.append("transcript_body")
    else:
        paragraphs = [p.get_text(" ", strip=True) for p in soup.select(SELECTORS["paragraphs"])]
        paragraphs = [p for p in paragraphs if p]
        if paragraphs:
            content = "\n\n".join(paragraphs)
            warnings.append("Content extracted from paragraphs, not article body")
        else:
            missing.append("transcript_body")
            errors.append("Could not extract transcript content - selectors not found")

    # Participants
    participants: List[str] = []
    for header in soup.find_all(["h2", "h3", "strong"]):
        label = header.get_text(" ", strip=True).lower()
        if "call participants" not in label:
            continue
        listing = header.find_next(["ul", "ol"])
        if listing is not None:
            for li in listing.find_all("li"):
                name = li.get_text(" ", strip=True)
                if 0 < len(name) < 200:
                    participants.append(name)
            found.append("participants_section")
        break

    if not participants:
        for m in _PARTICIPANT_RE.finditer(content or ""):
            entry = f"{m.group(1)} - {m.group(2)}"
            if entry not in participants:
                participants.append(entry)
        if participants:
            warnings.append("Participants extracted from content patterns, not dedicated section")
        else:
            warnings.append("Could not extract call participants")

    word_count = calculate_word_count(content or "")

    if not content:
        errors.append("No transcript content could be extracted")
    elif word_count < MIN_CONTENT_WORDS:
        errors.append(f"Content too short: {word_count} words. May be a preview or paywall page.")

    if not company_name and not ticker:
        errors.append("Neither company name nor ticker could be extracted")

    data = ExtractedTranscriptData(
        company_name=company_name,
        ticker=ticker,
        quarter=quarter,
        fiscal_year=fiscal_year,
        call_date=call_date,
        call_time=call_time,
        content=content,
        participants=participants,
        title=title,
        word_count=word_count,
        source_url=source_url,
        source_title=title,
        raw_html=html,
        extracted_at=datetime.now(timezone.utc),
    )

    return ParseResult(
        success=not errors,
        data=data,
        errors=errors,
        warnings=warnings,
        selectors_found=found,
        selectors_missing=missing,
    )


def is_transcript_page(html: str, brand_markers: Sequence[str] = DEFAULT_BRAND_MARKERS) -> PageCheck:
    """Weighted heuristic: does this page look like a single transcript?"""
    if not html or len(html) < 1000:
        return PageCheck(is_transcript=False, confidence=0, reasons=["HTML too short"])

    soup = BeautifulSoup(html, "lxml")
    reasons: List[str] = []
    score = 0

    if any(marker in html for marker in brand_markers):
        score += 20
        reasons.append("Source brand detected")

    title = soup.title.get_text().lower() if soup.title else ""
    if "earnings call" in title or "transcript" in title:
        score += 30
        reasons.append("Earnings call title detected")

    if _QUARTER_ANYWHERE_RE.search(html):
        score += 20
        reasons.append("Quarter/year pattern found")

    if re.search(r"call participants", html, re.IGNORECASE):
        score += 15
        reasons.append("Call participants section found")

    if re.search(r"operator", html, re.IGNORECASE):
        score += 10
        reasons.append("Operator mentions found")

    body = soup.body or soup
    if len(body.get_text()) > 10000:
        score += 5
        reasons.append("Sufficient content length")

    return PageCheck(is_transcript=score >= 50, confidence=min(100, score), reasons=reasons)


def detect_paywall(html: str) -> bool:
    if not html:
        return False
    soup = BeautifulSoup(html, "lxml")
    for selector in PAYWALL_SELECTORS:
        if soup.select_one(selector) is not None:
            return True

    body = soup.body or soup
    text = body.get_text(" ").lower()
    return any(phrase in text for phrase in PAYWALL_PHRASES)


def extract_ticker_from_url(url: str) -> Optional[str]:
    m = _URL_TICKER_RE.search(url or "")
    return m.group(1).upper() if m else None


def extract_transcript_links(html: str, base_url: str = "https://seekingalpha.com/") -> List[str]:
    """Article links that look like individual transcripts, in page order."""
    if not html:
        return []
    soup = BeautifulSoup(html, "lxml")
    links: List[str] = []
    for a in soup.find_all("a", href=True):
        href = a["href"]
        if "/article/" not in href:
            continue
        text = a.get_text(" ", strip=True).lower()
        if "transcript" not in href.lower() and "transcript" not in text:
            continue
        absolute = urljoin(base_url, href)
        if absolute not in links:
            links.append(absolute)
    return links
