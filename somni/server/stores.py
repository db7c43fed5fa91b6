"""In-memory, thread-safe stores for story and voice records.

WHY: The HTTP API tracks stories (generating → ready) and cloned voices
(processing → ready | failed) across requests. The product's relational
database and its migrations are outside this service, so an in-memory
store with the same CRUD surface stands in for those tables.

HOW: Three components work together:
  StoryStatus / VoiceStatus — enums of valid record states
  StoryRecord / VoiceRecord — dataclasses holding record fields
  StoryStore / VoiceStore   — lock-guarded dicts with create/get/list_all/
                              update/delete, built on one _RecordStore base

RULES:
- All store mutations are protected by threading.Lock
- Record IDs are UUID4 hex strings generated at creation time
- get() returns None for unknown IDs (no exceptions)
- list_all() returns newest first
- update() only applies non-None fields and bumps updated_at
- create() raises ValueError when the store is at capacity
"""

from __future__ import annotations

import enum
import logging
import threading
import time
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Generic, List, Optional, TypeVar

logger = logging.getLogger(__name__)

DEFAULT_MAX_RECORDS = 1000


class StoryStatus(str, enum.Enum):
    """Lifecycle of a story record.

    RULES:
    - draft: created, or generation failed and the record was rolled back
    - generating: the text-generation request is in flight
    - ready: title and content are filled in
    """

    DRAFT = "draft"
    GENERATING = "generating"
    READY = "ready"


class VoiceStatus(str, enum.Enum):
    """Lifecycle of a cloned-voice record."""

    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"


@dataclass
class StoryRecord:
    """A generated (or generating) bedtime story.

    RULES:
    - title is "Generating..." and content empty until status is ready
    - duration_s is the estimated read-aloud length, not the audio length
    - voice_id references a VoiceRecord id, or None for the stock voice
    """

    id: str
    prompt: str
    age_group: str
    created_at: float
    updated_at: float
    status: StoryStatus = StoryStatus.DRAFT
    child_name: Optional[str] = None
    voice_id: Optional[str] = None
    title: str = "Generating..."
    content: str = ""
    duration_s: Optional[int] = None
    error: Optional[str] = None


@dataclass
class VoiceRecord:
    """A parent's cloned voice.

    RULES:
    - provider_voice_id is set once cloning succeeds (status ready)
    """

    id: str
    name: str
    created_at: float
    updated_at: float
    status: VoiceStatus = VoiceStatus.PROCESSING
    provider_voice_id: Optional[str] = None
    error: Optional[str] = None


RecordT = TypeVar("RecordT", StoryRecord, VoiceRecord)


class _RecordStore(Generic[RecordT]):
    """Lock-guarded dict of records keyed by id."""

    _kind = "record"

    def __init__(self, max_records: int = DEFAULT_MAX_RECORDS) -> None:
        self._records: Dict[str, RecordT] = {}
        self._lock = threading.Lock()
        self.max_records = max_records

    def _insert(self, record: RecordT) -> RecordT:
        with self._lock:
            if len(self._records) >= self.max_records:
                raise ValueError(
                    "Maximum number of {} records ({}) reached".format(self._kind, self.max_records)
                )
            self._records[record.id] = record
        logger.info("Created %s %s", self._kind, record.id)
        return record

    def get(self, record_id: str) -> Optional[RecordT]:
        """Return the live record, or None if not found."""
        with self._lock:
            return self._records.get(record_id)

    def list_all(self) -> List[RecordT]:
        """Snapshot of all records, newest first."""
        with self._lock:
            return sorted(self._records.values(), key=lambda r: r.created_at, reverse=True)

    def update(self, record_id: str, **fields: Any) -> Optional[RecordT]:
        """Apply non-None field updates; returns None if the id is unknown."""
        with self._lock:
            record = self._records.get(record_id)
            if record is None:
                return None
            for name, value in fields.items():
                if value is None:
                    continue
                if not hasattr(record, name):
                    raise AttributeError("{} has no field '{}'".format(self._kind, name))
                setattr(record, name, value)
            record.updated_at = time.time()
            return record

    def delete(self, record_id: str) -> bool:
        with self._lock:
            record = self._records.pop(record_id, None)
        if record is None:
            return False
        logger.info("Deleted %s %s", self._kind, record_id)
        return True

    def clear(self) -> None:
        with self._lock:
            self._records.clear()


class StoryStore(_RecordStore[StoryRecord]):
    """Store of StoryRecords."""

    _kind = "story"

    def create(
        self,
        prompt: str,
        age_group: str,
        child_name: Optional[str] = None,
        voice_id: Optional[str] = None,
        status: StoryStatus = StoryStatus.DRAFT,
    ) -> StoryRecord:
        now = time.time()
        return self._insert(StoryRecord(
            id=uuid.uuid4().hex,
            prompt=prompt,
            age_group=age_group,
            child_name=child_name,
            voice_id=voice_id,
            status=status,
            created_at=now,
            updated_at=now,
        ))


class VoiceStore(_RecordStore[VoiceRecord]):
    """Store of VoiceRecords."""

    _kind = "voice"

    def create(self, name: str) -> VoiceRecord:
        now = time.time()
        return self._insert(VoiceRecord(
            id=uuid.uuid4().hex,
            name=name,
            created_at=now,
            updated_at=now,
        ))
