"""Correspondent records: who may call in, and which thread they are bound to."""

from __future__ import annotations

import threading
from dataclasses import asdict, dataclass, replace
from datetime import datetime
from typing import Any, Dict, Optional, Protocol


@dataclass(slots=True)
class CorrespondentRecord:
    key: str
    name: Optional[str] = None
    email: Optional[str] = None
    thread_id: Optional[str] = None
    thread_created_at: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        if self.thread_created_at is not None:
            data["thread_created_at"] = self.thread_created_at.isoformat()
        return data


class CorrespondentExistsError(Exception):
    def __init__(self, key: str):
        super().__init__(f"Correspondent {key} already exists")
        self.key = key


class RecordStore(Protocol):
    """Key-value store with one record per correspondent key."""

    def get(self, key: str) -> CorrespondentRecord | None: ...

    def upsert_thread(self, key: str, thread_id: str, created_at: datetime) -> None: ...

    def create(self, record: CorrespondentRecord) -> CorrespondentRecord: ...


class InMemoryRecordStore:
    """Process-local record store used for tests and local runs."""

    def __init__(self) -> None:
        self._records: Dict[str, CorrespondentRecord] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> CorrespondentRecord | None:
        with self._lock:
            record = self._records.get(key)
            return replace(record) if record else None

    def upsert_thread(self, key: str, thread_id: str, created_at: datetime) -> None:
        with self._lock:
            record = self._records.get(key) or CorrespondentRecord(key=key)
            record.thread_id = thread_id
            record.thread_created_at = created_at
            self._records[key] = record

    def create(self, record: CorrespondentRecord) -> CorrespondentRecord:
        with self._lock:
            if record.key in self._records:
                raise CorrespondentExistsError(record.key)
            self._records[record.key] = replace(record)
            return replace(record)
