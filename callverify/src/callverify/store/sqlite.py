import json
import logging
import sqlite3
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..errors import PersistenceError
from ..models.store import EventDateUpdate, StoredContent, TranscriptRecord

logger = logging.getLogger(__name__)


class SQLiteDocumentStore:
    """
    Verified transcripts and event dates in SQLite.
    Schema:
      transcripts(id TEXT PRIMARY KEY, event_id, ..., created_at)
      events(event_id TEXT PRIMARY KEY, company, date, date_source, ...)
    """

    def __init__(self, db_path: str = "callverify.db"):
        self.db_path = Path(db_path)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def _init_db(self) -> None:
        if self.db_path.parent and not self.db_path.parent.exists():
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS transcripts (
                        id TEXT PRIMARY KEY,
                        event_id TEXT NOT NULL,
                        company TEXT,
                        ticker TEXT,
                        date TEXT,
                        quarter TEXT,
                        year INTEGER,
                        content TEXT,
                        word_count INTEGER,
                        source_url TEXT,
                        source_title TEXT,
                        source_date TEXT,
                        source_domain TEXT,
                        content_hash TEXT,
                        raw_html_hash TEXT,
                        verification_status TEXT,
                        validation_decision TEXT,
                        validation_confidence INTEGER,
                        validation_reasons TEXT,
                        audit_id TEXT,
                        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    )
                    """
                )
                conn.execute("CREATE INDEX IF NOT EXISTS idx_transcripts_event ON transcripts(event_id)")
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS events (
                        event_id TEXT PRIMARY KEY,
                        company TEXT,
                        date TEXT,
                        date_source TEXT,
                        date_verified INTEGER,
                        date_confidence INTEGER,
                        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    )
                    """
                )
                conn.commit()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to init document store at {self.db_path}: {exc}")

    def list_records_for_event(self, event_id: str) -> List[StoredContent]:
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    "SELECT id, content, content_hash FROM transcripts WHERE event_id = ? ORDER BY created_at",
                    (event_id,),
                ).fetchall()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Transcript lookup failed for {event_id}: {exc}")
        return [StoredContent(id=r[0], content=r[1] or "", content_hash=r[2]) for r in rows]

    def save_record(self, record: TranscriptRecord) -> str:
        """Insert a transcript; an existing id is an error, never overwritten."""
        payload = record.model_dump(mode="json")
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO transcripts (
                        id, event_id, company, ticker, date, quarter, year, content, word_count,
                        source_url, source_title, source_date, source_domain,
                        content_hash, raw_html_hash, verification_status,
                        validation_decision, validation_confidence, validation_reasons, audit_id
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        payload["id"],
                        payload["event_id"],
                        payload["company"],
                        payload["ticker"],
                        payload["date"],
                        payload["quarter"],
                        payload["year"],
                        payload["content"],
                        payload["word_count"],
                        payload["source_url"],
                        payload["source_title"],
                        payload["source_date"],
                        payload["source_domain"],
                        payload["content_hash"],
                        payload["raw_html_hash"],
                        payload["verification_status"],
                        payload["validation_decision"],
                        payload["validation_confidence"],
                        json.dumps(payload["validation_reasons"]),
                        payload["audit_id"],
                    ),
                )
                conn.commit()
        except sqlite3.IntegrityError as exc:
            raise PersistenceError(f"Transcript {record.id} already stored", details={"id": record.id, "cause": str(exc)})
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to store transcript {record.id}: {exc}", details={"id": record.id})

        logger.info(f"Saved transcript {record.id} for event {record.event_id}")
        return record.id

    def get_record(self, record_id: str) -> Optional[Dict[str, Any]]:
        try:
            with self._connect() as conn:
                conn.row_factory = sqlite3.Row
                row = conn.execute("SELECT * FROM transcripts WHERE id = ?", (record_id,)).fetchone()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Transcript lookup failed for {record_id}: {exc}")
        if row is None:
            return None
        data = dict(row)
        data["validation_reasons"] = json.loads(data["validation_reasons"]) if data["validation_reasons"] else []
        return data

    def update_event_date(self, company: str, event_id: str, update: EventDateUpdate) -> None:
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT OR REPLACE INTO events (
                        event_id, company, date, date_source, date_verified, date_confidence, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, CURRENT_TIMESTAMP)
                    """,
                    (
                        event_id,
                        company,
                        update.date,
                        update.source,
                        int(update.verified),
                        update.confidence,
                    ),
                )
                conn.commit()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to update event date for {event_id}: {exc}")

    def get_event(self, event_id: str) -> Optional[Dict[str, Any]]:
        try:
            with self._connect() as conn:
                conn.row_factory = sqlite3.Row
                row = conn.execute("SELECT * FROM events WHERE event_id = ?", (event_id,)).fetchone()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Event lookup failed for {event_id}: {exc}")
        if row is None:
            return None
        data = dict(row)
        data["date_verified"] = bool(data["date_verified"])
        return data
