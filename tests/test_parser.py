import unittest
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "callverify" / "src"
sys.path.insert(0, str(SRC))

from callverify.parser import (
    detect_paywall,
    extract_ticker_from_url,
    extract_transcript_links,
    is_transcript_page,
    parse_transcript_html,
)
from sample_pages import (
    LISTING_URL,
    PAYWALL_PAGE,
    TRANSCRIPT_URL,
    listing_page,
    transcript_page,
)


class TestTranscriptParsing(unittest.TestCase):
    def test_parse_sample_transcript(self):
        result = parse_transcript_html(transcript_page(), TRANSCRIPT_URL)

        self.assertTrue(result.success, result.errors)
        data = result.data
        self.assertEqual(data.company_name, "Apple Inc.")
        self.assertEqual(data.ticker, "AAPL")
        self.assertEqual(data.quarter, "Q4")
        self.assertEqual(data.fiscal_year, 2025)
        self.assertEqual(data.call_date, "2026-01-29T17:00:00Z")
        self.assertEqual(data.call_time, "5:00 PM ET")
        self.assertEqual(data.participants, ["Tim Cook - CEO", "Kevan Parekh - CFO", "Erik Woodring - Analyst"])
        self.assertGreaterEqual(data.word_count, 1200)
        self.assertIn("Operator: Good afternoon", data.content)
        self.assertNotIn("window.tracking", data.content)
        self.assertEqual(data.source_url, TRANSCRIPT_URL)
        self.assertIn("participants_section", result.selectors_found)

    def test_ticker_only_title(self):
        result = parse_transcript_html(transcript_page(title="AAPL Q4 2025 Earnings Call"), TRANSCRIPT_URL)
        self.assertTrue(result.success, result.errors)
        self.assertIsNone(result.data.company_name)
        self.assertEqual(result.data.ticker, "AAPL")
        self.assertIn("Company name not found in title, only ticker", result.warnings)

    def test_ticker_from_url_when_title_has_none(self):
        url = "https://seekingalpha.com/symbol/AAPL/earnings/q4-2025-call"
        result = parse_transcript_html(transcript_page(title="Fourth quarter Q4 2025 earnings call"), url)
        self.assertEqual(result.data.ticker, "AAPL")
        self.assertEqual(result.data.quarter, "Q4")
        self.assertIn("Ticker extracted from URL, not page content", result.warnings)

    def test_short_content_fails_with_data(self):
        result = parse_transcript_html(transcript_page(body="Operator: Welcome.\nTim Cook - CEO: Thanks."), TRANSCRIPT_URL)
        self.assertFalse(result.success)
        self.assertIsNotNone(result.data)
        self.assertTrue(any(e.startswith("Content too short") for e in result.errors))

    def test_participants_from_content_patterns(self):
        result = parse_transcript_html(transcript_page(participants=[]), TRANSCRIPT_URL)
        self.assertIn("Tim Cook - CEO", result.data.participants)
        self.assertIn("Erik Woodring - Analyst", result.data.participants)

    def test_empty_html(self):
        result = parse_transcript_html("   ", TRANSCRIPT_URL)
        self.assertFalse(result.success)
        self.assertIsNone(result.data)
        self.assertEqual(result.errors, ["Empty HTML provided"])

    def test_page_without_identity(self):
        html = "<html><head><title></title></head><body><div>nothing here</div></body></html>"
        result = parse_transcript_html(html, "https://seekingalpha.com/article/1")
        self.assertFalse(result.success)
        self.assertIn("Neither company name nor ticker could be extracted", result.errors)
        self.assertIn("Could not extract transcript content - selectors not found", result.errors)


class TestPageChecks(unittest.TestCase):
    def test_transcript_page_scores_high(self):
        check = is_transcript_page(transcript_page())
        self.assertTrue(check.is_transcript)
        self.assertGreaterEqual(check.confidence, 90)
        self.assertIn("Call participants section found", check.reasons)

    def test_listing_page_is_not_a_transcript(self):
        check = is_transcript_page(listing_page(["/article/1-apple-q4-2025-earnings-call-transcript"]))
        self.assertFalse(check.is_transcript)

    def test_short_html(self):
        self.assertEqual(is_transcript_page("<html></html>").reasons, ["HTML too short"])

    def test_paywall(self):
        self.assertTrue(detect_paywall(PAYWALL_PAGE))
        self.assertTrue(detect_paywall("<html><body><p>Unlock this article today</p></body></html>"))
        self.assertFalse(detect_paywall(transcript_page()))
        self.assertFalse(detect_paywall(""))

    def test_transcript_links(self):
        html = listing_page([
            "/article/1-apple-q4-2025-earnings-call-transcript",
            "/news/2-apple-earnings-call-transcript",
            "https://seekingalpha.com/article/3-apple-q3-2025-earnings-call-transcript",
            "/article/1-apple-q4-2025-earnings-call-transcript",
        ])
        self.assertEqual(
            extract_transcript_links(html),
            [
                "https://seekingalpha.com/article/1-apple-q4-2025-earnings-call-transcript",
                "https://seekingalpha.com/article/3-apple-q3-2025-earnings-call-transcript",
            ],
        )

    def test_ticker_from_url(self):
        self.assertEqual(extract_ticker_from_url(LISTING_URL), "AAPL")
        self.assertEqual(extract_ticker_from_url("https://seekingalpha.com/symbol/brk.b"), "BRK.B")
        self.assertIsNone(extract_ticker_from_url(TRANSCRIPT_URL))


if __name__ == "__main__":
    unittest.main()
