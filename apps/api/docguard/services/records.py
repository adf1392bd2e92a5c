"""In-process record store for users, uploaded documents and analyses."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from threading import Lock
from typing import Protocol
from uuid import uuid4

from pydantic import BaseModel, Field


logger = logging.getLogger(__name__)

ANONYMOUS_EMAIL = "anonymous"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserRecord(BaseModel):
    uid: str
    email: str = ANONYMOUS_EMAIL
    registrationDate: datetime = Field(default_factory=_utcnow)


class DocumentRecord(BaseModel):
    id: str
    uid: str
    fileName: str
    fileType: str
    fileSize: int
    uploadDate: datetime = Field(default_factory=_utcnow)


class AnalysisRecord(BaseModel):
    id: str
    documentId: str
    uid: str
    forgeryScore: int
    reportSummary: str
    analysisDate: datetime = Field(default_factory=_utcnow)
    suspectAreas: list[str] = Field(default_factory=list)


class UserOverview(BaseModel):
    uid: str
    email: str
    registrationDate: datetime
    documentCount: int


class UploadRejected(ValueError):
    def __init__(self, reason: str, *, too_large: bool = False) -> None:
        self.reason = reason
        self.too_large = too_large
        super().__init__(reason)


def validate_upload(*, file_name: str, file_type: str, file_size: int, max_bytes: int) -> None:
    if not str(file_name or "").strip():
        raise UploadRejected("upload_file_name_missing")
    if int(file_size) <= 0:
        raise UploadRejected("upload_file_empty")
    if int(file_size) > int(max_bytes):
        raise UploadRejected(
            f"upload_too_large:{file_size}>{max_bytes}",
            too_large=True,
        )


class RecordStore(Protocol):
    def ensure_user(self, uid: str, email: str | None = None) -> UserRecord: ...

    def add_document(self, record: DocumentRecord) -> DocumentRecord: ...

    def get_document(self, document_id: str) -> DocumentRecord | None: ...

    def list_documents(self) -> list[DocumentRecord]: ...

    def add_analysis(self, record: AnalysisRecord) -> AnalysisRecord: ...

    def list_analyses(self, document_id: str) -> list[AnalysisRecord]: ...

    def list_users_with_document_counts(self) -> list[UserOverview]: ...


class InMemoryRecordStore:
    def __init__(self) -> None:
        self._lock = Lock()
        self._users: dict[str, UserRecord] = {}
        self._documents: dict[str, DocumentRecord] = {}
        self._analyses: dict[str, dict[str, AnalysisRecord]] = {}

    def ensure_user(self, uid: str, email: str | None = None) -> UserRecord:
        with self._lock:
            existing = self._users.get(uid)
            if existing is None:
                existing = UserRecord(uid=uid, email=email or ANONYMOUS_EMAIL)
                self._users[uid] = existing
                logger.info("registered user uid=%s email=%s", uid, existing.email)
            elif email and email != existing.email:
                # 익명 사용자가 나중에 관리자 계정으로 로그인하면 이메일만 갱신한다.
                existing = existing.model_copy(update={"email": email})
                self._users[uid] = existing
            return existing

    def add_document(self, record: DocumentRecord) -> DocumentRecord:
        with self._lock:
            self._documents[record.id] = record
        logger.info("stored document id=%s uid=%s size=%d", record.id, record.uid, record.fileSize)
        return record

    def get_document(self, document_id: str) -> DocumentRecord | None:
        with self._lock:
            return self._documents.get(document_id)

    def list_documents(self) -> list[DocumentRecord]:
        with self._lock:
            rows = list(self._documents.values())
        return sorted(rows, key=lambda row: row.uploadDate)

    def add_analysis(self, record: AnalysisRecord) -> AnalysisRecord:
        with self._lock:
            bucket = self._analyses.setdefault(record.documentId, {})
            previous = bucket.get(record.id)
            if previous is not None:
                record = previous.model_copy(update=record.model_dump(exclude_unset=True))
            bucket[record.id] = record
        return record

    def list_analyses(self, document_id: str) -> list[AnalysisRecord]:
        with self._lock:
            rows = list(self._analyses.get(document_id, {}).values())
        return sorted(rows, key=lambda row: row.analysisDate)

    def list_users_with_document_counts(self) -> list[UserOverview]:
        with self._lock:
            counts: dict[str, int] = {}
            for document in self._documents.values():
                counts[document.uid] = counts.get(document.uid, 0) + 1
            users = list(self._users.values())

        return [
            UserOverview(
                uid=user.uid,
                email=user.email,
                registrationDate=user.registrationDate,
                documentCount=counts.get(user.uid, 0),
            )
            for user in sorted(users, key=lambda row: row.registrationDate)
        ]


def new_document_id() -> str:
    return uuid4().hex


def new_analysis_id() -> str:
    return f"analysis_{uuid4().hex}"
