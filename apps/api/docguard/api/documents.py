import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from docguard.api.deps import get_record_store, require_ai_service, resolve_uid
from docguard.core.config import get_settings
from docguard.domain.generation import GenerationClient
from docguard.services.analysis import describe_suspect_areas, run_document_analysis
from docguard.services.error_policy import build_structured_error_detail
from docguard.services.records import (
    AnalysisRecord,
    DocumentRecord,
    RecordStore,
    UploadRejected,
    new_analysis_id,
    new_document_id,
    validate_upload,
)


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/documents", tags=["documents"])


class DocumentUploadRequest(BaseModel):
    fileName: str
    fileType: str = "application/octet-stream"
    fileSize: int = Field(ge=0)


class AnalysisRequest(BaseModel):
    # 점수를 고정하고 싶을 때만 사용한다. 비어 있으면 시뮬레이션 점수를 뽑는다.
    confidenceScore: int | None = Field(default=None, ge=0, le=100)


def _not_found(document_id: str) -> HTTPException:
    return HTTPException(
        status_code=404,
        detail=build_structured_error_detail(
            error_code="not_found",
            message=f"document {document_id} not found",
            retryable=False,
            detail=f"document_not_found:{document_id}",
        ),
    )


@router.post("", status_code=201)
def upload_document(
    payload: DocumentUploadRequest,
    uid: str = Depends(resolve_uid),
    store: RecordStore = Depends(get_record_store),
) -> dict[str, Any]:
    try:
        validate_upload(
            file_name=payload.fileName,
            file_type=payload.fileType,
            file_size=payload.fileSize,
            max_bytes=get_settings().upload_max_bytes,
        )
    except UploadRejected as exc:
        raise HTTPException(
            status_code=413 if exc.too_large else 422,
            detail=build_structured_error_detail(
                error_code="upload_rejected",
                message="Please upload a file smaller than 10MB." if exc.too_large else exc.reason,
                retryable=False,
                detail=exc.reason,
            ),
        ) from exc

    store.ensure_user(uid)
    record = store.add_document(
        DocumentRecord(
            id=new_document_id(),
            uid=uid,
            fileName=payload.fileName,
            fileType=payload.fileType,
            fileSize=payload.fileSize,
        )
    )
    return record.model_dump(mode="json")


@router.post("/{document_id}/analysis")
async def analyze_document(
    document_id: str,
    payload: AnalysisRequest | None = None,
    store: RecordStore = Depends(get_record_store),
    ai_service: GenerationClient = Depends(require_ai_service),
) -> dict[str, Any]:
    document = store.get_document(document_id)
    if document is None:
        raise _not_found(document_id)

    settings = get_settings()
    outcome = await run_document_analysis(
        ai_service,
        document_id=document_id,
        score=payload.confidenceScore if payload else None,
        score_range=(settings.analysis_score_min, settings.analysis_score_max),
    )

    try:
        store.add_analysis(
            AnalysisRecord(
                id=new_analysis_id(),
                documentId=document_id,
                uid=document.uid,
                forgeryScore=outcome.confidence_score,
                reportSummary=outcome.summary,
                suspectAreas=describe_suspect_areas(outcome.suspect_areas),
            )
        )
    except Exception:
        logger.exception("failed to persist analysis for document %s", document_id)

    return outcome.to_payload()


@router.get("/{document_id}/analyses")
def list_document_analyses(
    document_id: str,
    store: RecordStore = Depends(get_record_store),
) -> dict[str, Any]:
    if store.get_document(document_id) is None:
        raise _not_found(document_id)
    rows = store.list_analyses(document_id)
    return {
        "documentId": document_id,
        "analyses": [row.model_dump(mode="json") for row in rows],
    }
