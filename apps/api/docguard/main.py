import logging
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from docguard.api.admin import router as admin_router
from docguard.api.documents import router as documents_router
from docguard.api.flows import router as flows_router
from docguard.core.config import get_settings
from docguard.services.error_policy import (
    build_http_error_payload,
    build_structured_error_detail,
    build_unexpected_error_payload,
)


settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="DocGuard API",
    version="0.1.0",
    description="Document forgery assessment with AI-generated findings",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _trace_id(request: Request) -> str:
    return request.headers.get("x-trace-id") or uuid4().hex


@app.get("/health")
def health_check() -> dict[str, str]:
    return {"status": "ok", "env": settings.env}


@app.exception_handler(HTTPException)
async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
    payload = build_http_error_payload(exc, _trace_id(request))
    return JSONResponse(status_code=exc.status_code, content=payload)


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first_error = errors[0]["msg"] if errors else "Invalid request"
    detail = build_structured_error_detail(
        error_code="invalid_input",
        message=first_error,
        retryable=False,
        detail=[
            {"field": ".".join(str(part) for part in error.get("loc", ())), "message": error.get("msg")}
            for error in errors
        ],
    )
    payload = build_http_error_payload(HTTPException(status_code=422, detail=detail), _trace_id(request))
    return JSONResponse(status_code=422, content=payload)


@app.exception_handler(Exception)
async def handle_unexpected_exception(request: Request, exc: Exception) -> JSONResponse:
    trace_id = _trace_id(request)
    logger.error("unhandled error trace_id=%s: %s", trace_id, exc, exc_info=exc)
    payload = build_unexpected_error_payload(trace_id)
    return JSONResponse(status_code=500, content=payload)


app.include_router(documents_router)
app.include_router(flows_router)
app.include_router(admin_router)
