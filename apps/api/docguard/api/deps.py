from functools import lru_cache
from uuid import uuid4

from fastapi import Header, HTTPException

from docguard.core.config import get_settings
from docguard.domain.ai import AIService, build_ai_service
from docguard.domain.ai.retry import ai_error_detail
from docguard.services.error_policy import build_structured_error_detail
from docguard.services.records import InMemoryRecordStore, RecordStore


@lru_cache(maxsize=1)
def _get_ai_service() -> AIService:
    return build_ai_service(get_settings())


def require_ai_service() -> AIService:
    try:
        return _get_ai_service()
    except Exception as exc:
        reason = ai_error_detail(exc)
        raise HTTPException(
            status_code=503,
            detail=build_structured_error_detail(
                error_code="config_error",
                message=reason,
                retryable=False,
                detail=f"ai_service_init_failed:config_error:{reason}",
            ),
        ) from exc


@lru_cache(maxsize=1)
def get_record_store() -> RecordStore:
    return InMemoryRecordStore()


def resolve_uid(x_user_id: str | None = Header(default=None)) -> str:
    uid = str(x_user_id or "").strip()
    if uid:
        return uid
    return f"anon_{uuid4().hex}"


def verify_admin_key(x_api_key: str | None = Header(default=None)) -> None:
    expected = get_settings().admin_api_key
    if not expected:
        return
    if x_api_key != expected:
        raise HTTPException(
            status_code=401,
            detail=build_structured_error_detail(
                error_code="unauthorized",
                retryable=False,
                detail="admin_api_key_invalid",
            ),
        )
