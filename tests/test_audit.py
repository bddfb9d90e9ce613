import json
import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "callverify" / "src"
sys.path.insert(0, str(SRC))

from callverify.audit.entry import (
    create_audit_log_entry,
    create_failure_audit_entry,
    verify_entry_hash,
    with_human_review,
    with_save_error,
    with_saved_record,
)
from callverify.audit.logger import AuditLogger
from callverify.audit.report import export_summary_md, format_pending, format_summary
from callverify.config import AuditConfig
from callverify.errors import InputError, PersistenceError
from callverify.models.audit import HumanDecision, VerificationStatus
from callverify.models.transcript import ScrapeResult, ScrapeTiming
from callverify.models.validation import Decision, Severity
from callverify.validators.pipeline import run_validation_pipeline
from sample_pages import EXPECTED, TRANSCRIPT_URL, extracted_data


def make_entry(expected=EXPECTED, **overrides):
    data = extracted_data(**overrides)
    validation = run_validation_pipeline(data, expected)
    return create_audit_log_entry(TRANSCRIPT_URL, data, expected, validation, raw_html="<html></html>")


def review_entry():
    return make_entry(expected=EXPECTED.model_copy(update={"ticker": "MSFT"}))


def failure_entry(failure_type="paywall"):
    now = datetime.now(timezone.utc)
    scrape = ScrapeResult(
        success=False,
        errors=["Content is behind a paywall. Login may be required."],
        timing=ScrapeTiming(started_at=now, completed_at=now, duration_ms=0),
        failure_type=failure_type,
    )
    return create_failure_audit_entry(TRANSCRIPT_URL, EXPECTED, scrape)


class TestAuditEntries(unittest.TestCase):
    def test_approved_entry(self):
        entry = make_entry()
        self.assertTrue(entry.audit_id.startswith("AUDIT-"))
        self.assertEqual(entry.source_domain, "seekingalpha.com")
        self.assertEqual(entry.raw_html_size, len("<html></html>"))
        self.assertEqual(entry.decision.auto_decision, Decision.APPROVE)
        self.assertEqual(entry.decision.verification_status, VerificationStatus.VERIFIED)
        self.assertEqual(entry.validation.confidence, 100)
        self.assertEqual(entry.extraction.participant_count, 3)
        self.assertTrue(verify_entry_hash(entry))

    def test_status_follows_decision(self):
        self.assertEqual(review_entry().decision.verification_status, VerificationStatus.PENDING)
        rejected = make_entry(word_count=500)
        self.assertEqual(rejected.decision.verification_status, VerificationStatus.REJECTED)
        self.assertEqual(rejected.validation.error_count.critical, 1)
        self.assertEqual(rejected.validation.errors[0].layer, 1)
        self.assertIs(rejected.validation.errors[0].severity, Severity.CRITICAL)

    def test_tampering_breaks_entry_hash(self):
        entry = make_entry()
        tampered = entry.model_copy(update={
            "validation": entry.validation.model_copy(update={"confidence": 42})
        })
        self.assertFalse(verify_entry_hash(tampered))

    def test_failure_entry(self):
        entry = failure_entry()
        self.assertEqual(entry.decision.auto_decision, Decision.REJECT)
        self.assertEqual(entry.validation.confidence, 0)
        self.assertEqual(entry.error.type, "paywall")
        self.assertEqual(entry.decision.reasons, ["Scrape failed: Content is behind a paywall. Login may be required."])
        self.assertTrue(verify_entry_hash(entry))

    def test_save_outcomes_are_resealed(self):
        entry = make_entry()
        saved = with_saved_record(entry, "AAPL-Q4-2025-abcdef12")
        self.assertTrue(saved.decision.saved_to_db)
        self.assertEqual(saved.transcript_id, "AAPL-Q4-2025-abcdef12")
        self.assertTrue(verify_entry_hash(saved))

        failed = with_save_error(entry, PersistenceError("disk full"))
        self.assertFalse(failed.decision.saved_to_db)
        self.assertEqual(failed.error.type, "PersistenceError")
        self.assertEqual(failed.error.message, "disk full")
        self.assertTrue(verify_entry_hash(failed))
        self.assertNotEqual(failed.entry_hash, entry.entry_hash)

    def test_human_review_amends_status(self):
        entry = review_entry()
        reviewed = with_human_review(entry, "analyst@example.com", HumanDecision.REJECTED, "wrong company")
        self.assertEqual(reviewed.audit_id, entry.audit_id)
        self.assertEqual(reviewed.decision.verification_status, VerificationStatus.REJECTED)
        self.assertEqual(reviewed.decision.auto_decision, Decision.REVIEW)
        self.assertEqual(reviewed.human_review.notes, "wrong company")
        self.assertIsNone(entry.human_review)


class TestAuditLogger(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.dir = Path(self.tmpdir.name) / "audit-logs"

    def tearDown(self):
        self.tmpdir.cleanup()

    def logger(self, **config) -> AuditLogger:
        settings = dict(console=False, file_path=str(self.dir))
        settings.update(config)
        return AuditLogger(AuditConfig(**settings))

    def log_file(self) -> Path:
        return self.dir / f"audit-{datetime.now(timezone.utc).date().isoformat()}.jsonl"

    def test_appends_jsonl_by_utc_day(self):
        audit = self.logger()
        entry = make_entry()
        audit.log(entry)

        lines = self.log_file().read_text().splitlines()
        self.assertEqual(len(lines), 1)
        self.assertEqual(json.loads(lines[0])["audit_id"], entry.audit_id)

    def test_memory_buffer_is_bounded(self):
        audit = self.logger(max_entries_in_memory=2)
        entries = [make_entry(), review_entry(), failure_entry()]
        for entry in entries:
            audit.log(entry)

        self.assertEqual([e.audit_id for e in audit.get_entries()], [e.audit_id for e in entries[1:]])
        self.assertEqual(len(audit.durable_entries()), 3)
        self.assertEqual(len(audit.get_entries_by_decision(Decision.REJECT)), 1)

        audit.clear()
        self.assertEqual(audit.get_entries(), [])
        self.assertEqual(len(audit.durable_entries()), 3)

    def test_review_appends_superseding_record(self):
        audit = self.logger()
        entry = review_entry()
        audit.log(entry)
        audit.log(make_entry())
        self.assertEqual([e.audit_id for e in audit.get_pending_review()], [entry.audit_id])

        amended = audit.record_human_review(entry.audit_id, "reviewer", HumanDecision.VERIFIED, "checked")

        self.assertEqual(len(self.log_file().read_text().splitlines()), 3)
        self.assertEqual(audit.get_pending_review(), [])
        self.assertEqual(audit.find(entry.audit_id), amended)
        self.assertEqual(audit.find(entry.audit_id).decision.verification_status, VerificationStatus.VERIFIED)
        self.assertEqual(len(audit.durable_entries()), 2)

    def test_review_of_unknown_entry(self):
        with self.assertRaises(InputError):
            self.logger().record_human_review("AUDIT-0-missing", "reviewer", HumanDecision.VERIFIED)

    def test_corrupt_lines_are_skipped(self):
        audit = self.logger()
        audit.log(make_entry(word_count=500))
        with open(self.log_file(), "a") as f:
            f.write("{not json\n\n")
        audit.log(make_entry())

        with self.assertLogs("callverify.audit.logger", level="WARNING"):
            entries = audit.load_from_file(self.log_file())
        self.assertEqual(len(entries), 2)
        self.assertIs(entries[0].validation.errors[0].severity, Severity.CRITICAL)
        self.assertEqual(audit.load_from_file(self.dir / "missing.jsonl"), [])

    def test_memory_only(self):
        audit = AuditLogger(AuditConfig(console=False, file=False))
        audit.log(make_entry())
        self.assertFalse(audit.writes_files)
        self.assertEqual(len(audit.durable_entries()), 1)

    def test_console_echo(self):
        audit = self.logger(console=True, verbose=True)
        with self.assertLogs("callverify.audit.logger", level="INFO") as logs:
            audit.log(make_entry(word_count=500))
        output = "\n".join(logs.output)
        self.assertIn("Apple Inc. Q4 2025 - REJECT (50%)", output)
        self.assertIn("L1=FAIL L2=PASS L3=PASS", output)

    def test_summary(self):
        audit = self.logger()
        for entry in (make_entry(), review_entry(), make_entry(word_count=500), failure_entry()):
            audit.log(entry)

        summary = audit.generate_summary()
        self.assertEqual(summary.attempts, 4)
        self.assertEqual((summary.successful, summary.failed), (3, 1))
        self.assertEqual((summary.approved, summary.review, summary.rejected), (1, 1, 2))
        self.assertEqual(summary.layer1_pass_rate, 50.0)
        self.assertEqual(summary.average_confidence, (100 + 85 + 50 + 0) / 4)
        self.assertEqual((summary.critical_count, summary.major_count, summary.minor_count), (1, 1, 0))
        self.assertEqual(len(summary.top_errors), 2)
        self.assertEqual(summary.pending_review, 1)

        later = datetime.now(timezone.utc) + timedelta(hours=1)
        self.assertEqual(audit.generate_summary(start=later).attempts, 0)
        self.assertEqual(audit.generate_summary(end=later.replace(tzinfo=None)).attempts, 4)

    def test_reports(self):
        audit = self.logger()
        pending = review_entry()
        audit.log(pending)
        summary = audit.generate_summary()

        text = format_summary(summary)
        self.assertIn("# Audit Summary", text)
        self.assertIn("- Attempts: 1", text)
        self.assertIn("- For review: 1 (100.0%)", text)

        listing = format_pending(audit.get_pending_review())
        self.assertIn(f"## {pending.audit_id}", listing)
        self.assertIn("Nothing pending.", format_pending([]))

        out = Path(self.tmpdir.name) / "summary.md"
        export_summary_md(summary, out)
        self.assertEqual(out.read_text(), text)


if __name__ == "__main__":
    unittest.main()
