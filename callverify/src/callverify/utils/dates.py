"""
Date parsing and earnings-season plausibility checks.

Parsed datetimes are returned naive; timezone-aware inputs are converted to
UTC first so that any two parsed values can be compared directly.
"""
import calendar
import re
from datetime import date, datetime, timezone
from typing import Dict, List, Optional, Tuple

from dateutil import parser as date_parser
from pydantic import BaseModel

# Calendar-year companies report in the month or two after the quarter ends
QUARTER_REPORTING_MONTHS: Dict[str, List[int]] = {
    "Q1": [4, 5],
    "Q2": [7, 8],
    "Q3": [10, 11],
    "Q4": [1, 2],  # of the following year
}

# Early and late reporters
QUARTER_REPORTING_MONTHS_EXTENDED: Dict[str, List[int]] = {
    "Q1": [3, 4, 5, 6],
    "Q2": [6, 7, 8, 9],
    "Q3": [9, 10, 11, 12],
    "Q4": [1, 2, 3, 12],
}

MONTHS = {
    "january": 1, "jan": 1,
    "february": 2, "feb": 2,
    "march": 3, "mar": 3,
    "april": 4, "apr": 4,
    "may": 5,
    "june": 6, "jun": 6,
    "july": 7, "jul": 7,
    "august": 8, "aug": 8,
    "september": 9, "sep": 9, "sept": 9,
    "october": 10, "oct": 10,
    "november": 11, "nov": 11,
    "december": 12, "dec": 12,
}

_ISO_PREFIX_RE = re.compile(r"^\d{4}-\d{2}-\d{2}")
_US_RE = re.compile(r"([A-Za-z]+)\.?\s+(\d{1,2})(?:st|nd|rd|th)?,?\s+(\d{4})")
_UK_RE = re.compile(r"(\d{1,2})(?:st|nd|rd|th)?\s+([A-Za-z]+),?\s+(\d{4})")
_NUMERIC_US_RE = re.compile(r"(\d{1,2})/(\d{1,2})/(\d{4})")
_QUARTER_KEY_RE = re.compile(r"Q[1-4]")


class DateParseResult(BaseModel):
    success: bool
    date: Optional[datetime] = None
    original_format: str = ""
    error: Optional[str] = None


class PlausibilityResult(BaseModel):
    plausible: bool
    reason: str
    expected_months: List[int]
    actual_month: int
    year_adjustment: int = 0


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _safe_date(year: int, month: int, day: int) -> Optional[datetime]:
    try:
        return datetime(year, month, day)
    except ValueError:
        return None


def parse_date(value: Optional[str]) -> DateParseResult:
    """
    Parse the date formats seen on transcript pages.

    ISO (2026-01-21, 2026-01-21T21:00:00Z), US (January 21, 2026 / Jan. 21,
    2026 4:30 PM ET), UK (21 January 2026), numeric US (01/21/2026), then a
    dateutil fallback for anything else.
    """
    if not value or not isinstance(value, str) or not value.strip():
        return DateParseResult(success=False, error="Empty or invalid input")

    text = value.strip()

    if _ISO_PREFIX_RE.match(text):
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
            return DateParseResult(success=True, date=_naive_utc(parsed), original_format="ISO")
        except ValueError:
            parsed = _safe_date(int(text[:4]), int(text[5:7]), int(text[8:10]))
            if parsed:
                return DateParseResult(success=True, date=parsed, original_format="ISO")

    m = _US_RE.search(text)
    if m and m.group(1).lower() in MONTHS:
        parsed = _safe_date(int(m.group(3)), MONTHS[m.group(1).lower()], int(m.group(2)))
        if parsed:
            return DateParseResult(success=True, date=parsed, original_format="US")

    m = _UK_RE.search(text)
    if m and m.group(2).lower() in MONTHS:
        parsed = _safe_date(int(m.group(3)), MONTHS[m.group(2).lower()], int(m.group(1)))
        if parsed:
            return DateParseResult(success=True, date=parsed, original_format="UK")

    m = _NUMERIC_US_RE.search(text)
    if m:
        parsed = _safe_date(int(m.group(3)), int(m.group(1)), int(m.group(2)))
        if parsed:
            return DateParseResult(success=True, date=parsed, original_format="MM/DD/YYYY")

    try:
        parsed = date_parser.parse(text)
        return DateParseResult(success=True, date=_naive_utc(parsed), original_format="fallback")
    except (ValueError, OverflowError):
        pass

    return DateParseResult(
        success=False,
        original_format="unknown",
        error=f"Could not parse date: {text}",
    )


def quarter_key(quarter: Optional[str]) -> Optional[str]:
    if not quarter:
        return None
    m = _QUARTER_KEY_RE.search(re.sub(r"\s+", "", quarter.upper()))
    return m.group(0) if m else None


def is_date_plausible(
    when: datetime,
    quarter: str,
    fiscal_year: int,
    strict: bool = False,
) -> PlausibilityResult:
    """
    Check that a call date falls in the usual reporting window for the quarter.
    Q4 calls held in January-March belong to the following calendar year.
    """
    key = quarter_key(quarter)
    if not key:
        return PlausibilityResult(
            plausible=False,
            reason=f"Invalid quarter format: {quarter}",
            expected_months=[],
            actual_month=when.month,
        )

    months = (QUARTER_REPORTING_MONTHS if strict else QUARTER_REPORTING_MONTHS_EXTENDED)[key]

    expected_year = fiscal_year
    year_adjustment = 0
    if key == "Q4" and when.month <= 3:
        expected_year = fiscal_year + 1
        year_adjustment = 1

    if abs(when.year - expected_year) > 1:
        return PlausibilityResult(
            plausible=False,
            reason=f"Year mismatch: expected ~{expected_year}, got {when.year}",
            expected_months=months,
            actual_month=when.month,
            year_adjustment=year_adjustment,
        )

    if when.month not in months:
        return PlausibilityResult(
            plausible=False,
            reason=f"Month {when.month} not in expected reporting window for {key}",
            expected_months=months,
            actual_month=when.month,
            year_adjustment=year_adjustment,
        )

    return PlausibilityResult(
        plausible=True,
        reason="Date is within expected reporting window",
        expected_months=months,
        actual_month=when.month,
        year_adjustment=year_adjustment,
    )


def dates_within_tolerance(d1: datetime, d2: datetime, tolerance_hours: float = 24) -> Tuple[bool, float]:
    """Return (within_tolerance, difference_hours)."""
    diff_hours = abs((_naive_utc(d1) - _naive_utc(d2)).total_seconds()) / 3600
    return diff_hours <= tolerance_hours, diff_hours


def get_expected_reporting_window(quarter: str, fiscal_year: int) -> Optional[Tuple[date, date]]:
    """First and last day of the extended reporting window."""
    key = quarter_key(quarter)
    if not key:
        return None

    months = sorted(QUARTER_REPORTING_MONTHS_EXTENDED[key])
    if key == "Q4":
        # December of the fiscal year through March of the next
        start = date(fiscal_year, 12, 1)
        end_year, end_month = fiscal_year + 1, 3
    else:
        start = date(fiscal_year, months[0], 1)
        end_year, end_month = fiscal_year, months[-1]

    end = date(end_year, end_month, calendar.monthrange(end_year, end_month)[1])
    return start, end


def get_fiscal_quarter_from_date(when: datetime) -> Tuple[str, int]:
    """Which calendar quarter a call held on `when` most likely reports."""
    month, year = when.month, when.year
    if month <= 2:
        return "Q4", year - 1
    if month <= 5:
        return "Q1", year
    if month <= 8:
        return "Q2", year
    if month <= 11:
        return "Q3", year
    return "Q4", year
