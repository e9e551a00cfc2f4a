"""Firestore-backed correspondent records."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import firebase_admin
from firebase_admin import credentials, firestore
from google.api_core.exceptions import AlreadyExists

from .config import Settings
from .records import CorrespondentExistsError, CorrespondentRecord

logger = logging.getLogger(__name__)


def _service_account_path(settings: Settings) -> Optional[Path]:
    if settings.firebase_service_account_key:
        path = Path(settings.firebase_service_account_key).expanduser()
        if not path.exists():
            raise FileNotFoundError(f"Firebase service account file not found: {path}")
        return path
    return None


def initialize_firebase(settings: Settings) -> firebase_admin.App:
    if firebase_admin._apps:
        return firebase_admin.get_app()

    svc_path = _service_account_path(settings)
    if svc_path:
        cred = credentials.Certificate(str(svc_path))
        return firebase_admin.initialize_app(cred)

    # Fallback to application default credentials
    cred = credentials.ApplicationDefault()
    return firebase_admin.initialize_app(cred)


def get_firestore_client(settings: Settings):
    """Get Firestore client, initializing Firebase if needed."""
    initialize_firebase(settings)
    return firestore.client()


def _as_utc(value: Any) -> Optional[datetime]:
    if not isinstance(value, datetime):
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class FirestoreRecordStore:
    """Correspondent records stored at ``{collection}/{key}``.

    Firestore does not purge expired thread bindings; readers must check
    ``thread_created_at`` themselves.
    """

    def __init__(self, settings: Settings, client: Any | None = None) -> None:
        self._db = client or get_firestore_client(settings)
        self._collection = settings.firestore_collection

    def _ref(self, key: str):
        return self._db.collection(self._collection).document(key)

    def get(self, key: str) -> CorrespondentRecord | None:
        doc = self._ref(key).get()
        if not doc.exists:
            return None
        data = doc.to_dict() or {}
        return CorrespondentRecord(
            key=key,
            name=data.get("name"),
            email=data.get("email"),
            thread_id=data.get("threadId"),
            thread_created_at=_as_utc(data.get("threadCreatedAt")),
        )

    def upsert_thread(self, key: str, thread_id: str, created_at: datetime) -> None:
        self._ref(key).set(
            {"phone": key, "threadId": thread_id, "threadCreatedAt": created_at},
            merge=True,
        )
        logger.info("Bound %s to thread %s", key, thread_id)

    def create(self, record: CorrespondentRecord) -> CorrespondentRecord:
        try:
            self._ref(record.key).create(
                {
                    "phone": record.key,
                    "name": record.name,
                    "email": record.email,
                    "threadId": record.thread_id,
                    "threadCreatedAt": record.thread_created_at,
                }
            )
        except AlreadyExists as exc:
            raise CorrespondentExistsError(record.key) from exc
        logger.info("Created correspondent %s", record.key)
        return record
