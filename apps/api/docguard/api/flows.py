from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from docguard.api.deps import require_ai_service
from docguard.domain.generation import FlowError, GenerationClient, GenerationFlow
from docguard.domain.generation.operations import OPERATIONS, get_operation
from docguard.services.error_policy import build_structured_error_detail, flow_error_to_http


router = APIRouter(prefix="/api/flows", tags=["flows"])


class FlowRunRequest(BaseModel):
    """Input values for the flow's declared input shape."""

    data: dict[str, Any] = Field(default_factory=dict)


@router.get("")
def list_flows() -> dict[str, Any]:
    return {
        "flows": [
            {
                "name": name,
                "input": request.input_shape.json_schema(),
                "output": request.output_shape.json_schema(),
            }
            for name, request in OPERATIONS.items()
        ]
    }


@router.post("/{flow_name}")
async def run_named_flow(
    flow_name: str,
    payload: FlowRunRequest,
    ai_service: GenerationClient = Depends(require_ai_service),
) -> dict[str, Any]:
    try:
        request = get_operation(flow_name)
    except KeyError as exc:
        raise HTTPException(
            status_code=404,
            detail=build_structured_error_detail(
                error_code="not_found",
                message=f"flow {flow_name} not found",
                retryable=False,
                detail=f"unknown_operation:{flow_name}",
            ),
        ) from exc

    try:
        output = await GenerationFlow(request, ai_service).run(payload.data)
    except FlowError as exc:
        raise flow_error_to_http(exc) from exc

    return {"flow": flow_name, "output": output}
