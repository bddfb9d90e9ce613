from typing import List, Protocol

from ..models.store import EventDateUpdate, StoredContent, TranscriptRecord


class ContentStore(Protocol):
    """What Layer 3 needs from persistence: the stored transcripts of one event."""

    def list_records_for_event(self, event_id: str) -> List[StoredContent]: ...


class DocumentStore(ContentStore, Protocol):
    def save_record(self, record: TranscriptRecord) -> str: ...

    def update_event_date(self, company: str, event_id: str, update: EventDateUpdate) -> None: ...
