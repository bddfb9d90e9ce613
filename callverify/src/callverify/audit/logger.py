"""
Append-only audit trail.

Every entry goes to a bounded in-memory buffer and, when file output is on,
to ./audit-logs/audit-<YYYY-MM-DD>.jsonl (UTC date). Files are only ever
appended to. An amended entry (human review) is appended again under the same
audit_id; readers keep the last record for each id.
"""
import json
import logging
import threading
from collections import Counter, deque
from datetime import datetime, timezone
from pathlib import Path
from typing import Deque, Dict, Iterable, List, Optional

from pydantic import ValidationError as PydanticValidationError

from ..config import AuditConfig
from ..errors import InputError
from ..models.audit import AuditLogEntry, AuditSummary, HumanDecision, TopError
from ..models.validation import Decision
from .entry import with_human_review

logger = logging.getLogger(__name__)

FILE_PREFIX = "audit-"
FILE_SUFFIX = ".jsonl"
TOP_ERRORS = 10


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def latest_by_id(entries: Iterable[AuditLogEntry]) -> List[AuditLogEntry]:
    """Collapse amendments: last record per audit_id, in first-seen order."""
    latest: Dict[str, AuditLogEntry] = {}
    for entry in entries:
        latest[entry.audit_id] = entry
    return list(latest.values())


class AuditLogger:
    def __init__(self, config: Optional[AuditConfig] = None):
        self.config = config or AuditConfig()
        self._entries: Deque[AuditLogEntry] = deque(maxlen=self.config.max_entries_in_memory)
        self._lock = threading.Lock()

        if self.config.file and self.config.file_path:
            Path(self.config.file_path).mkdir(parents=True, exist_ok=True)

    @property
    def writes_files(self) -> bool:
        return bool(self.config.file and self.config.file_path)

    def file_for(self, when: datetime) -> Path:
        day = _as_utc(when).date().isoformat()
        return Path(self.config.file_path) / f"{FILE_PREFIX}{day}{FILE_SUFFIX}"

    def log(self, entry: AuditLogEntry):
        with self._lock:
            self._entries.append(entry)
            if self.writes_files:
                path = self.file_for(datetime.now(timezone.utc))
                with open(path, "a", encoding="utf-8") as f:
                    f.write(entry.model_dump_json() + "\n")

        if self.config.console:
            self._echo(entry)

    def _echo(self, entry: AuditLogEntry):
        ex = entry.extraction
        logger.info(
            f"[{entry.audit_id}] {ex.company_name or 'Unknown'} {ex.quarter or '?'} {ex.fiscal_year or '?'} - "
            f"{entry.decision.auto_decision.value.upper()} ({entry.validation.confidence}%)"
        )
        if not self.config.verbose:
            return

        v = entry.validation
        logger.info(f"   URL: {entry.source_url}")
        logger.info(
            f"   Validation: L1={'PASS' if v.layer1_passed else 'FAIL'} "
            f"L2={'PASS' if v.layer2_passed else 'FAIL'} "
            f"L3={'PASS' if v.layer3_passed else 'FAIL'}"
        )
        logger.info(f"   Errors: {v.error_count.critical}C / {v.error_count.major}M / {v.error_count.minor}m")
        for error in v.errors[:5]:
            logger.info(f"     - [L{error.layer}/{error.severity.value}] {error.field}: {error.message}")
        if len(v.errors) > 5:
            logger.info(f"     ... and {len(v.errors) - 5} more")
        if entry.error:
            logger.info(f"   Error: {entry.error.type}: {entry.error.message}")

    # Reading

    def get_entries(self) -> List[AuditLogEntry]:
        """Raw in-memory buffer, amendments included."""
        with self._lock:
            return list(self._entries)

    def get_entries_by_decision(self, decision: Decision) -> List[AuditLogEntry]:
        return [e for e in latest_by_id(self.get_entries()) if e.decision.auto_decision == decision]

    def load_from_file(self, path) -> List[AuditLogEntry]:
        p = Path(path)
        if not p.exists():
            return []

        entries: List[AuditLogEntry] = []
        with open(p, encoding="utf-8") as f:
            for lineno, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    entries.append(AuditLogEntry.model_validate_json(line))
                except (PydanticValidationError, ValueError) as e:
                    logger.warning(f"Skipping corrupt audit line {p.name}:{lineno}: {str(e)[:100]}")
        return entries

    def durable_entries(self) -> List[AuditLogEntry]:
        """Everything on disk (or in memory when file output is off), amendments collapsed."""
        if not self.writes_files:
            return latest_by_id(self.get_entries())

        directory = Path(self.config.file_path)
        records: List[AuditLogEntry] = []
        with self._lock:
            for path in sorted(directory.glob(f"{FILE_PREFIX}*{FILE_SUFFIX}")):
                records.extend(self.load_from_file(path))
        return latest_by_id(records)

    def find(self, audit_id: str) -> Optional[AuditLogEntry]:
        for entry in self.durable_entries():
            if entry.audit_id == audit_id:
                return entry
        return None

    def get_pending_review(self) -> List[AuditLogEntry]:
        return [
            e for e in self.durable_entries()
            if e.decision.auto_decision == Decision.REVIEW and e.human_review is None
        ]

    def record_human_review(
        self,
        audit_id: str,
        reviewed_by: str,
        decision: HumanDecision,
        notes: str = "",
    ) -> AuditLogEntry:
        entry = self.find(audit_id)
        if entry is None:
            raise InputError(f"Audit entry not found: {audit_id}", details={"audit_id": audit_id})

        amended = with_human_review(entry, reviewed_by, decision, notes)
        self.log(amended)
        logger.info(f"Recorded human review for {audit_id}: {decision.value} by {reviewed_by}")
        return amended

    def generate_summary(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> AuditSummary:
        entries = self.durable_entries()
        if start is not None:
            entries = [e for e in entries if _as_utc(e.timestamp) >= _as_utc(start)]
        if end is not None:
            entries = [e for e in entries if _as_utc(e.timestamp) <= _as_utc(end)]

        total = len(entries)

        def rate(count: int) -> float:
            return count / total * 100 if total else 0.0

        messages = Counter(err.message for e in entries for err in e.validation.errors)
        top = [TopError(message=m, count=c) for m, c in messages.most_common(TOP_ERRORS)]

        return AuditSummary(
            period_start=start or (entries[0].timestamp if entries else None),
            period_end=end or (entries[-1].timestamp if entries else None),
            attempts=total,
            successful=sum(1 for e in entries if e.error is None),
            failed=sum(1 for e in entries if e.error is not None),
            approved=sum(1 for e in entries if e.decision.auto_decision == Decision.APPROVE),
            review=sum(1 for e in entries if e.decision.auto_decision == Decision.REVIEW),
            rejected=sum(1 for e in entries if e.decision.auto_decision == Decision.REJECT),
            layer1_pass_rate=rate(sum(1 for e in entries if e.validation.layer1_passed)),
            layer2_pass_rate=rate(sum(1 for e in entries if e.validation.layer2_passed)),
            layer3_pass_rate=rate(sum(1 for e in entries if e.validation.layer3_passed)),
            average_confidence=(sum(e.validation.confidence for e in entries) / total) if total else 0.0,
            critical_count=sum(e.validation.error_count.critical for e in entries),
            major_count=sum(e.validation.error_count.major for e in entries),
            minor_count=sum(e.validation.error_count.minor for e in entries),
            top_errors=top,
            pending_review=sum(
                1 for e in entries
                if e.decision.auto_decision == Decision.REVIEW and e.human_review is None
            ),
            human_verified=sum(
                1 for e in entries
                if e.human_review is not None and e.human_review.decision == HumanDecision.VERIFIED
            ),
            human_rejected=sum(
                1 for e in entries
                if e.human_review is not None and e.human_review.decision == HumanDecision.REJECTED
            ),
        )

    def clear(self):
        with self._lock:
            self._entries.clear()
