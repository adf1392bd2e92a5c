import json
import logging
from typing import Any
from urllib import error, parse, request

from docguard.domain.ai.providers.common import http_error_detail, parse_json_text


logger = logging.getLogger(__name__)

GEMINI_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta/models"


class GeminiProvider:
    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        timeout_sec: int = 30,
        temperature: float = 0.3,
    ) -> None:
        if not api_key:
            raise ValueError("gemini_api_key_missing")
        self.api_key = api_key
        self.model = model
        self.timeout_sec = timeout_sec
        self.temperature = temperature

    def generate_json(
        self,
        *,
        request_text: str,
        output_schema: dict[str, Any],
    ) -> dict[str, Any]:
        endpoint = f"{GEMINI_ENDPOINT}/{parse.quote(self.model)}:generateContent"
        payload = {
            "contents": [
                {
                    "role": "user",
                    "parts": [{"text": request_text}],
                }
            ],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": to_gemini_schema(output_schema),
                "temperature": self.temperature,
            },
        }

        req = request.Request(
            endpoint,
            data=json.dumps(payload).encode("utf-8"),
            headers={
                "Content-Type": "application/json",
                "x-goog-api-key": self.api_key,
            },
            method="POST",
        )

        logger.debug("gemini request model=%s chars=%d", self.model, len(request_text))
        try:
            with request.urlopen(req, timeout=self.timeout_sec) as response:
                body = response.read().decode("utf-8")
        except error.HTTPError as exc:
            raise RuntimeError(http_error_detail("gemini_request_failed", exc)) from exc
        except Exception as exc:  # pragma: no cover - network boundary
            raise RuntimeError(f"gemini_request_failed:{exc}") from exc

        decoded = json.loads(body)
        text = self._extract_text(decoded)
        return parse_json_text(text)

    @staticmethod
    def _extract_text(response_json: dict[str, Any]) -> str:
        candidates = response_json.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            raise RuntimeError("gemini_candidates_missing")

        first = candidates[0]
        content = first.get("content", {})
        parts = content.get("parts", [])
        if not isinstance(parts, list):
            raise RuntimeError("gemini_parts_missing")

        for part in parts:
            text = part.get("text") if isinstance(part, dict) else None
            if isinstance(text, str) and text.strip():
                return text

        raise RuntimeError("gemini_text_missing")


def to_gemini_schema(schema: dict[str, Any]) -> dict[str, Any]:
    """Convert a JSON-schema object into Gemini's OpenAPI-style schema."""
    converted: dict[str, Any] = {}
    for key, value in schema.items():
        if key == "type" and isinstance(value, str):
            converted["type"] = value.upper()
        elif key == "properties" and isinstance(value, dict):
            converted["properties"] = {name: to_gemini_schema(prop) for name, prop in value.items()}
            converted["propertyOrdering"] = list(value)
        elif key == "items" and isinstance(value, dict):
            converted["items"] = to_gemini_schema(value)
        elif key in {"required", "description", "enum"}:
            converted[key] = value
    return converted
