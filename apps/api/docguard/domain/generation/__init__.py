"""Schema-validated, template-driven generation flows."""

from docguard.domain.generation.errors import (
    FieldIssue,
    FlowError,
    GenerationError,
    InputValidationError,
    OutputValidationError,
    SchemaValidationError,
    TemplateError,
)
from docguard.domain.generation.flow import (
    GenerationClient,
    GenerationFlow,
    GenerationRequest,
    define_flow,
    run_flow,
)
from docguard.domain.generation.schema import FieldSpec, Shape, validate
from docguard.domain.generation.template import PromptTemplate, render

__all__ = [
    "FieldIssue",
    "FieldSpec",
    "FlowError",
    "GenerationClient",
    "GenerationError",
    "GenerationFlow",
    "GenerationRequest",
    "InputValidationError",
    "OutputValidationError",
    "PromptTemplate",
    "SchemaValidationError",
    "Shape",
    "TemplateError",
    "define_flow",
    "render",
    "run_flow",
    "validate",
]
