from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Awaitable, Callable

from docguard.domain.generation.errors import GenerationError


logger = logging.getLogger(__name__)

DEFAULT_RETRYABLE_FAILURE_KINDS = {"rate_limited", "timeout", "schema_mismatch"}


def ai_error_detail(exc: BaseException) -> str:
    message = str(exc).strip()
    if not message:
        if isinstance(exc, asyncio.TimeoutError):
            return "ai_request_timeout"
        return "ai_provider_failed"
    return message[:300]


# 상태 코드는 공급자 접두어 바로 뒤에 올 때만 신뢰한다. JSON 오류 위치(char 401 등)와 구분하기 위함.
_RATE_LIMIT_STATUS_PATTERN = re.compile(r"_request_failed:429\b")
_AUTH_STATUS_PATTERN = re.compile(r"_request_failed:(?:401|403)\b")


def classify_ai_failure(detail: str) -> tuple[str, bool]:
    """Map a provider failure message to ``(kind, transient)``."""
    text = str(detail or "").lower()

    rate_limit_tokens = (
        "too many requests",
        "rate limit",
        "rate_limit",
        "resource exhausted",
        "resource_exhausted",
        "quota",
        "ai_backpressure_busy",
    )
    timeout_tokens = (
        "timed out",
        "timeout",
        "read operation timed out",
        "503 service unavailable",
    )
    schema_tokens = (
        "schema",
        "json",
        "jsondecodeerror",
        "expecting value",
        "expecting ',' delimiter",
        "expecting property name",
        "unterminated string",
        "ai_response_not_object",
    )
    config_tokens = (
        "api_key_missing",
        "openai_base_url_missing",
        "unsupported_ai_provider",
        "ai_service_init_failed",
        "api key not valid",
        "incorrect api key",
        "config_error",
    )

    if _RATE_LIMIT_STATUS_PATTERN.search(text) or any(token in text for token in rate_limit_tokens):
        return ("rate_limited", True)
    if any(token in text for token in timeout_tokens):
        return ("timeout", True)
    if _AUTH_STATUS_PATTERN.search(text) or any(token in text for token in config_tokens):
        return ("config_error", False)
    # HTTP 오류 본문의 "json" 언급은 응답 파싱 실패가 아니다.
    if "_request_failed:" not in text and any(token in text for token in schema_tokens):
        return ("schema_mismatch", True)
    return ("provider_error", False)


async def run_ai_with_retry(
    call: Callable[[int], Awaitable[Any]],
    *,
    max_attempts: int = 2,
    retryable_kinds: set[str] | None = None,
    backoff_sec: float = 0.5,
) -> Any:
    attempts = max(1, int(max_attempts))
    retryable_kinds = retryable_kinds or set(DEFAULT_RETRYABLE_FAILURE_KINDS)

    for attempt in range(1, attempts + 1):
        try:
            return await call(attempt)
        except Exception as exc:
            reason = ai_error_detail(exc)
            kind, transient = classify_ai_failure(reason)
            should_retry = attempt < attempts and transient and kind in retryable_kinds
            if should_retry:
                logger.info("ai call attempt %d failed (%s), retrying", attempt, kind)
                if backoff_sec > 0:
                    await asyncio.sleep(backoff_sec * attempt)
                continue
            raise GenerationError(
                reason,
                kind=kind,
                transient=transient,
                attempt_count=attempt,
            ) from exc

    raise GenerationError(
        "ai_retry_exhausted",
        kind="provider_error",
        transient=False,
        attempt_count=attempts,
    )
