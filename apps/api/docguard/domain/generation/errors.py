from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class FieldIssue:
    field: str
    expected: str
    actual: Any
    message: str

    def describe(self) -> str:
        return f"{self.field}: {self.message} (expected {self.expected}, got {self.actual!r})"


class FlowError(RuntimeError):
    """Base class for every failure a generation flow can raise."""

    code = "unknown"

    def __init__(self, flow: str, reason: str) -> None:
        self.flow = flow
        self.reason = reason
        super().__init__(f"{flow}:{self.code}:{reason}")


class SchemaValidationError(ValueError):
    def __init__(self, issues: list[FieldIssue]) -> None:
        self.issues = list(issues)
        super().__init__("; ".join(issue.describe() for issue in self.issues))


class TemplateError(FlowError):
    code = "template_error"

    def __init__(self, reason: str, flow: str = "") -> None:
        super().__init__(flow, reason)


class InputValidationError(FlowError):
    code = "invalid_input"

    def __init__(self, flow: str, issues: list[FieldIssue]) -> None:
        self.issues = list(issues)
        super().__init__(flow, "; ".join(issue.describe() for issue in self.issues))


class OutputValidationError(FlowError):
    code = "schema_mismatch"

    def __init__(self, flow: str, issues: list[FieldIssue]) -> None:
        self.issues = list(issues)
        super().__init__(flow, "; ".join(issue.describe() for issue in self.issues))


class GenerationError(FlowError):
    """The generation backend failed. ``kind`` follows the AI failure classification."""

    def __init__(
        self,
        reason: str,
        *,
        kind: str = "provider_error",
        transient: bool = False,
        attempt_count: int = 1,
        flow: str = "",
    ) -> None:
        self.kind = kind
        self.transient = transient
        self.attempt_count = attempt_count
        super().__init__(flow, reason)

    @property
    def code(self) -> str:  # type: ignore[override]
        return self.kind

    def for_flow(self, flow: str) -> GenerationError:
        return GenerationError(
            self.reason,
            kind=self.kind,
            transient=self.transient,
            attempt_count=self.attempt_count,
            flow=flow,
        )
