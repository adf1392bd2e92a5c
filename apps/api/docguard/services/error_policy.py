from typing import Any

from fastapi import HTTPException

from docguard.domain.generation.errors import (
    FlowError,
    GenerationError,
    InputValidationError,
    OutputValidationError,
    TemplateError,
)


KNOWN_ERROR_CODES = {
    "invalid_input",
    "schema_mismatch",
    "rate_limited",
    "timeout",
    "template_error",
    "config_error",
    "provider_error",
    "not_found",
    "upload_rejected",
    "unauthorized",
    "unknown",
}

RETRYABLE_ERROR_CODES = {
    "schema_mismatch",
    "rate_limited",
    "timeout",
}

_GENERATION_STATUS = {
    "rate_limited": 429,
    "timeout": 504,
    "config_error": 503,
    "schema_mismatch": 502,
    "provider_error": 502,
}


def normalize_error_code(value: Any) -> str:
    raw = str(value or "").strip().lower()
    if raw in KNOWN_ERROR_CODES:
        return raw
    return "unknown"


def _build_message(code: str, reason: str) -> str:
    message = " ".join(str(reason or "").split()).strip()
    if message:
        return message[:260]
    defaults = {
        "invalid_input": "Request input did not match the expected shape",
        "schema_mismatch": "AI response schema mismatch",
        "rate_limited": "AI provider rate limited the request",
        "timeout": "AI request timed out",
        "template_error": "Prompt template configuration error",
        "config_error": "AI service configuration error",
        "provider_error": "AI provider request failed",
        "not_found": "Resource not found",
        "upload_rejected": "Upload was rejected",
        "unauthorized": "Invalid or missing API key",
        "unknown": "Request failed",
    }
    return defaults.get(code, "Request failed")


def build_structured_error_detail(
    *,
    error_code: str,
    message: str | None = None,
    retryable: bool | None = None,
    detail: Any = None,
) -> dict[str, Any]:
    code = normalize_error_code(error_code)
    message_text = " ".join(str(message or "").split()).strip()
    if not message_text:
        message_text = _build_message(code, str(detail or ""))
    if retryable is None:
        retryable = code in RETRYABLE_ERROR_CODES

    legacy_detail = detail
    if not isinstance(detail, (list, dict)):
        legacy_detail = " ".join(str(detail or "").split()).strip() or message_text

    return {
        "error_code": code,
        "message": message_text[:260],
        "retryable": bool(retryable),
        "detail": legacy_detail,
    }


def flow_error_to_http(exc: FlowError) -> HTTPException:
    """Translate a flow failure into the structured HTTP error for that kind."""
    if isinstance(exc, InputValidationError):
        status_code = 422
        detail: Any = [
            {"field": issue.field, "expected": issue.expected, "message": issue.message}
            for issue in exc.issues
        ]
        retryable = False
    elif isinstance(exc, TemplateError):
        status_code = 500
        detail = f"{exc.flow}_failed:template_error:{exc.reason}"
        retryable = False
    elif isinstance(exc, OutputValidationError):
        status_code = 502
        detail = f"{exc.flow}_failed:schema_mismatch:{exc.reason}"
        retryable = True
    elif isinstance(exc, GenerationError):
        status_code = _GENERATION_STATUS.get(exc.kind, 502)
        detail = f"{exc.flow}_failed:{exc.kind}:{exc.reason}"
        retryable = exc.transient
    else:
        status_code = 500
        detail = str(exc)
        retryable = False

    return HTTPException(
        status_code=status_code,
        detail=build_structured_error_detail(
            error_code=exc.code,
            message=exc.reason,
            retryable=retryable,
            detail=detail,
        ),
    )


def build_http_error_payload(exc: HTTPException, trace_id: str) -> dict[str, Any]:
    detail = exc.detail

    if isinstance(detail, dict) and "error_code" in detail:
        code = normalize_error_code(detail.get("error_code"))
        message = " ".join(str(detail.get("message") or "").split()).strip() or _build_message(code, "")
        retryable = bool(detail["retryable"]) if "retryable" in detail else code in RETRYABLE_ERROR_CODES
        legacy_detail = detail.get("detail") or message
    else:
        code = _code_for_status(exc.status_code)
        message = _build_message(code, str(detail or ""))
        retryable = code in RETRYABLE_ERROR_CODES
        legacy_detail = detail if detail is not None else message

    return {
        "error_code": code,
        "message": message[:260],
        "retryable": retryable,
        "trace_id": trace_id,
        "detail": legacy_detail,
    }


def _code_for_status(status_code: int) -> str:
    if status_code == 404:
        return "not_found"
    if status_code in {401, 403}:
        return "unauthorized"
    if status_code in {400, 422}:
        return "invalid_input"
    if status_code == 413:
        return "upload_rejected"
    if status_code == 429:
        return "rate_limited"
    return "unknown"


def build_unexpected_error_payload(trace_id: str) -> dict[str, Any]:
    return {
        "error_code": "unknown",
        "message": "Unexpected server error",
        "retryable": False,
        "trace_id": trace_id,
        "detail": "unexpected_server_error",
    }
