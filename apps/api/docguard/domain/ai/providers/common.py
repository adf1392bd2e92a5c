import json
from typing import Any
from urllib.error import HTTPError


def strip_code_fence(text: str) -> str:
    raw = text.strip()
    if raw.startswith("```"):
        lines = raw.splitlines()
        if len(lines) >= 2 and lines[-1].strip().startswith("```"):
            return "\n".join(lines[1:-1]).strip()
    return raw


def parse_json_text(text: str) -> dict:
    cleaned = strip_code_fence(text)
    parsed = json.loads(cleaned)
    if not isinstance(parsed, dict):
        raise ValueError("ai_response_not_object")
    return parsed


def describe_output_schema(output_schema: dict[str, Any]) -> str:
    properties = output_schema.get("properties", {})
    required = set(output_schema.get("required", []))
    lines = ["Respond with a single JSON object with these fields:"]
    for name, prop in properties.items():
        kind = prop.get("type", "string")
        if kind == "array":
            kind = f"array of {prop.get('items', {}).get('type', 'string')}"
        marker = "required" if name in required else "optional"
        description = prop.get("description", "")
        lines.append(f'- "{name}" ({kind}, {marker}) {description}'.rstrip())
    return "\n".join(lines)


def http_error_detail(prefix: str, exc: HTTPError) -> str:
    """Failure message for a provider HTTP error, with a trimmed response body."""
    message = f"{prefix}:{exc.code} {exc.reason}"
    try:
        body = exc.read().decode("utf-8", "replace")
    except (OSError, ValueError):
        return message
    snippet = " ".join(body.split())[:200]
    return f"{message}: {snippet}" if snippet else message
