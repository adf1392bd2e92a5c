from typing import Any, Protocol


class StructuredAIProvider(Protocol):
    """LLM provider contract that returns structured JSON outputs."""

    def generate_json(
        self,
        *,
        request_text: str,
        output_schema: dict[str, Any],
    ) -> dict[str, Any]:
        ...
