import contextlib
import io
import json
import tempfile
import unittest
from pathlib import Path
from unittest import mock
import sys

from click.testing import CliRunner

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "callverify" / "src"
sys.path.insert(0, str(SRC))

from callverify import cli as cli_module
from callverify.errors import InputError
from sample_pages import PAYWALL_PAGE, TRANSCRIPT_URL, FakeBrowser, transcript_page

SCRAPE_ARGS = ["scrape", "--url", TRANSCRIPT_URL, "--ticker", "AAPL", "--quarter", "Q4", "--year", "2025", "--company", "Apple"]


class TestCli(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.dir = Path(self.tmpdir.name)
        self.db_path = self.dir / "callverify.db"
        self.audit_dir = self.dir / "audit-logs"
        self.config = self.dir / "callverify.yaml"
        self.config.write_text(
            "scraper:\n"
            "  requests_per_minute: 100\n"
            "  retry_delay: 0\n"
            "  cookies_path: null\n"
            "  store_raw_html: false\n"
            "audit:\n"
            "  console: false\n"
            f"  file_path: {self.audit_dir}\n"
            "store:\n"
            f"  db_path: {self.db_path}\n"
        )
        self.runner = CliRunner()

    def tearDown(self):
        self.tmpdir.cleanup()

    def invoke(self, args, page=None):
        page = page or transcript_page()
        with mock.patch.object(cli_module, "default_browser_factory", lambda _config: FakeBrowser([page])):
            return self.runner.invoke(cli_module.cli, args)

    def scrape(self, *extra, page=None):
        return self.invoke(SCRAPE_ARGS + ["--config", str(self.config)] + list(extra), page=page)

    def audit(self, *args):
        return self.runner.invoke(cli_module.cli, ["audit", "--config", str(self.config)] + list(args))

    def audit_lines(self):
        return [line for path in self.audit_dir.glob("audit-*.jsonl") for line in path.read_text().splitlines()]

    def test_scrape_dry_run(self):
        result = self.scrape()
        self.assertEqual(result.exit_code, 0, result.output)

        payload = json.loads(result.stdout)
        self.assertTrue(payload["ok"])
        self.assertTrue(payload["meta"]["dry_run"])
        self.assertEqual(payload["data"]["validation"]["auto_decision"], "approve")
        self.assertEqual(payload["data"]["validation"]["confidence"], 100)
        self.assertIsNone(payload["data"]["saved_record_id"])
        self.assertEqual(payload["data"]["fetch_stats"]["daily_count"], 1)
        self.assertFalse(self.db_path.exists())
        self.assertEqual(len(self.audit_lines()), 1)

    def test_scrape_save_twice_rejects_duplicate(self):
        first = json.loads(self.scrape("--save").stdout)
        self.assertFalse(first["meta"]["dry_run"])
        self.assertIsNotNone(first["data"]["saved_record_id"])
        self.assertTrue(first["data"]["audit_entry"]["decision"]["saved_to_db"])

        result = self.scrape("--save")
        self.assertEqual(result.exit_code, 0, result.output)
        second = json.loads(result.stdout)
        self.assertEqual(second["data"]["validation"]["auto_decision"], "reject")
        self.assertFalse(second["data"]["should_save"])
        self.assertIsNone(second["data"]["saved_record_id"])
        self.assertEqual(len(self.audit_lines()), 2)

    def test_scrape_failure_exits_nonzero(self):
        result = self.scrape(page=PAYWALL_PAGE)
        self.assertEqual(result.exit_code, 1)
        payload = json.loads(result.stdout)
        self.assertFalse(payload["ok"])
        self.assertIsNone(payload["data"]["validation"])
        self.assertEqual(payload["data"]["audit_entry"]["error"]["type"], "paywall")

    def test_save_and_dry_run_conflict(self):
        result = self.scrape("--save", "--dry-run")
        self.assertEqual(result.exit_code, 2)
        self.assertEqual(self.audit_lines(), [])

    def test_bad_expected_date(self):
        result = self.scrape("--expected-date", "sometime soon")
        self.assertEqual(result.exit_code, 2)

    def test_review_workflow(self):
        result = self.invoke(
            ["scrape", "--url", TRANSCRIPT_URL, "--ticker", "MSFT", "--quarter", "Q4", "--year", "2025",
             "--company", "Apple", "--config", str(self.config)]
        )
        audit_id = json.loads(result.stdout)["data"]["audit_entry"]["audit_id"]

        pending = json.loads(self.audit("pending").stdout)["data"]
        self.assertEqual([e["audit_id"] for e in pending], [audit_id])

        result = self.audit("review", audit_id, "--decision", "verified", "--by", "alice", "--notes", "ticker alias")
        self.assertEqual(result.exit_code, 0, result.output)
        amended = json.loads(result.stdout)["data"]
        self.assertEqual(amended["human_review"]["reviewed_by"], "alice")
        self.assertEqual(amended["decision"]["verification_status"], "verified")

        self.assertEqual(json.loads(self.audit("pending").stdout)["data"], [])
        self.assertEqual(len(self.audit_lines()), 2)

        summary = json.loads(self.audit("summary").stdout)["data"]
        self.assertEqual(summary["attempts"], 1)
        self.assertEqual(summary["review"], 1)
        self.assertEqual(summary["human_verified"], 1)

        markdown = self.audit("summary", "--markdown").stdout
        self.assertIn("- Verified: 1", markdown)

    def test_summary_end_date_covers_whole_day(self):
        self.scrape()
        out = self.dir / "summary.md"
        result = self.audit("summary", "--start", "2000-01-01", "--end", "2999-12-31", "--out", str(out))
        self.assertEqual(json.loads(result.stdout)["data"]["attempts"], 1)
        self.assertIn("- Attempts: 1", out.read_text())

        result = self.audit("summary", "--end", "2000-01-01")
        self.assertEqual(json.loads(result.stdout)["data"]["attempts"], 0)

    def test_review_unknown_entry(self):
        result = self.audit("review", "AUDIT-0-missing", "--decision", "rejected", "--by", "alice")
        self.assertEqual(result.exit_code, 1)
        self.assertIsInstance(result.exception, InputError)

    def test_main_reports_usage_errors_as_json(self):
        out = io.StringIO()
        with mock.patch.object(sys, "argv", ["callverify", "scrape", "--ticker", "AAPL"]):
            with contextlib.redirect_stdout(out), self.assertRaises(SystemExit) as ctx:
                cli_module.main()
        self.assertEqual(ctx.exception.code, 1)
        payload = json.loads(out.getvalue())
        self.assertFalse(payload["ok"])
        self.assertEqual(payload["error"]["type"], "InputError")


if __name__ == "__main__":
    unittest.main()
