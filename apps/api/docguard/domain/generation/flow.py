from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from docguard.domain.generation.errors import (
    GenerationError,
    InputValidationError,
    OutputValidationError,
    SchemaValidationError,
    TemplateError,
)
from docguard.domain.generation.schema import Shape, validate
from docguard.domain.generation.template import PromptTemplate, render


logger = logging.getLogger(__name__)


class GenerationClient(Protocol):
    """Async boundary to the generative model. Output is a claim, not a guarantee."""

    async def generate_json(
        self,
        *,
        request_text: str,
        output_schema: dict[str, Any],
    ) -> Any:
        ...


@dataclass(frozen=True)
class GenerationRequest:
    name: str
    input_shape: Shape
    output_shape: Shape
    template: str
    compiled: PromptTemplate = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        try:
            compiled = PromptTemplate.compile(self.template)
            compiled.check(self.input_shape)
        except TemplateError as exc:
            raise TemplateError(exc.reason, flow=self.name) from exc
        object.__setattr__(self, "compiled", compiled)

    def render(self, data: dict[str, Any]) -> str:
        # 선택 필드가 빠져 있어도 렌더링되도록 선언된 모든 필드를 채워 넘긴다.
        bound = {key: data.get(key) for key in self.input_shape}
        try:
            return render(self.compiled, bound)
        except TemplateError as exc:
            raise TemplateError(exc.reason, flow=self.name) from exc


class GenerationFlow:
    def __init__(self, request: GenerationRequest, client: GenerationClient) -> None:
        self.request = request
        self.client = client

    @property
    def name(self) -> str:
        return self.request.name

    async def run(self, data: Any) -> dict[str, Any]:
        request = self.request

        try:
            typed_input = validate(request.input_shape, data)
        except SchemaValidationError as exc:
            logger.warning("flow %s rejected input: %s", request.name, exc)
            raise InputValidationError(request.name, exc.issues) from exc

        request_text = request.render(typed_input)
        logger.debug("flow %s rendered %d chars", request.name, len(request_text))

        try:
            raw = await self.client.generate_json(
                request_text=request_text,
                output_schema=request.output_shape.json_schema(),
            )
        except GenerationError as exc:
            logger.warning("flow %s generation failed: %s:%s", request.name, exc.kind, exc.reason)
            raise exc.for_flow(request.name) from exc
        except Exception as exc:
            logger.warning("flow %s generation failed: %s", request.name, exc)
            raise GenerationError(str(exc) or type(exc).__name__, flow=request.name) from exc

        try:
            typed_output = validate(request.output_shape, raw)
        except SchemaValidationError as exc:
            logger.warning("flow %s rejected backend output: %s", request.name, exc)
            raise OutputValidationError(request.name, exc.issues) from exc

        logger.debug("flow %s completed", request.name)
        return typed_output


def define_flow(
    *,
    name: str,
    input_shape: Shape,
    output_shape: Shape,
    template: str,
    client: GenerationClient,
) -> GenerationFlow:
    request = GenerationRequest(
        name=name,
        input_shape=input_shape,
        output_shape=output_shape,
        template=template,
    )
    return GenerationFlow(request, client)


async def run_flow(
    request: GenerationRequest,
    client: GenerationClient,
    data: Any,
) -> dict[str, Any]:
    return await GenerationFlow(request, client).run(data)
