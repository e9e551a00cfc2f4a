"""Correspondent-to-thread bindings with soft expiry."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Callable, Optional

from .config import Settings, get_settings
from .phone import normalize_phone_number
from .records import CorrespondentRecord, InMemoryRecordStore, RecordStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ThreadDirectory:
    """Maps a correspondent key (phone number) to a remote thread.

    Bindings older than ``expiration`` are treated as absent but are left in
    the store; the next ``bind`` overwrites them. Concurrent binds for the
    same key are last-write-wins.
    """

    def __init__(
        self,
        store: RecordStore,
        expiration: timedelta = timedelta(days=60),
        *,
        default_region: str | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._expiration = expiration
        self._default_region = default_region
        self._clock = clock

    def normalize_key(self, key: str) -> str:
        return normalize_phone_number(key, self._default_region)

    def resolve(self, key: str, now: Optional[datetime] = None) -> str | None:
        record = self._store.get(self.normalize_key(key))
        if record is None or not record.thread_id or record.thread_created_at is None:
            return None

        now = now or self._clock()
        if now - record.thread_created_at > self._expiration:
            logger.info("Thread %s for %s expired", record.thread_id, record.key)
            return None
        return record.thread_id

    def bind(self, key: str, thread_id: str, now: Optional[datetime] = None) -> None:
        self._store.upsert_thread(self.normalize_key(key), thread_id, now or self._clock())

    def lookup(self, key: str) -> CorrespondentRecord | None:
        return self._store.get(self.normalize_key(key))

    def register(self, key: str, name: str | None = None, email: str | None = None) -> CorrespondentRecord:
        """Create a correspondent record; raises ``CorrespondentExistsError``."""

        record = CorrespondentRecord(key=self.normalize_key(key), name=name, email=email)
        return self._store.create(record)


def build_record_store(settings: Settings) -> RecordStore:
    if settings.record_store_backend == "memory":
        return InMemoryRecordStore()

    from .firebase import FirestoreRecordStore

    return FirestoreRecordStore(settings)


@lru_cache
def get_thread_directory() -> ThreadDirectory:
    settings = get_settings()
    return ThreadDirectory(
        build_record_store(settings),
        timedelta(days=settings.thread_expiration_days),
        default_region=settings.default_phone_region,
    )
