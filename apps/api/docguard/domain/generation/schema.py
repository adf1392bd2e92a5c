"""Shape declarations for flow input and output.

A shape is a flat, ordered set of named fields. Each shape is compiled once
into a strict pydantic model with ``extra="forbid"``, so an unknown key, a
missing required key, or a value of the wrong type (including ``True`` where
a number is expected) is reported field by field.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictFloat,
    StrictInt,
    StrictStr,
    ValidationError,
    create_model,
)

from docguard.domain.generation.errors import FieldIssue, SchemaValidationError


FieldType = Literal["number", "string", "string_list"]

_ANNOTATIONS: dict[str, Any] = {
    "number": Union[StrictInt, StrictFloat],
    "string": StrictStr,
    "string_list": list[StrictStr],
}

_JSON_TYPES: dict[str, dict[str, Any]] = {
    "number": {"type": "number"},
    "string": {"type": "string"},
    "string_list": {"type": "array", "items": {"type": "string"}},
}

_EXPECTED_LABELS = {
    "number": "number",
    "string": "string",
    "string_list": "list of strings",
}


@dataclass(frozen=True)
class FieldSpec:
    type: FieldType
    required: bool = True
    description: str = ""

    def __post_init__(self) -> None:
        if self.type not in _ANNOTATIONS:
            raise ValueError(f"unsupported_field_type:{self.type}")

    @property
    def is_sequence(self) -> bool:
        return self.type == "string_list"


@dataclass(frozen=True)
class Shape:
    fields: Mapping[str, FieldSpec]
    name: str = "Shape"
    _model: type[BaseModel] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        frozen = MappingProxyType(dict(self.fields))
        for key in frozen:
            if not key.isidentifier() or key.startswith("_"):
                raise ValueError(f"invalid_field_name:{key}")
        object.__setattr__(self, "fields", frozen)
        object.__setattr__(self, "_model", _build_model(self.name, frozen))

    @classmethod
    def of(cls, fields: Mapping[str, FieldSpec], name: str = "Shape") -> Shape:
        return cls(fields=fields, name=name)

    def __contains__(self, key: object) -> bool:
        return key in self.fields

    def __iter__(self):
        return iter(self.fields)

    def required_fields(self) -> list[str]:
        return [key for key, spec in self.fields.items() if spec.required]

    def json_schema(self) -> dict[str, Any]:
        properties: dict[str, Any] = {}
        for key, spec in self.fields.items():
            prop = dict(_JSON_TYPES[spec.type])
            if spec.description:
                prop["description"] = spec.description
            properties[key] = prop
        return {
            "type": "object",
            "properties": properties,
            "required": self.required_fields(),
        }


def _build_model(name: str, fields: Mapping[str, FieldSpec]) -> type[BaseModel]:
    definitions: dict[str, Any] = {}
    for key, spec in fields.items():
        annotation = _ANNOTATIONS[spec.type]
        if spec.required:
            definitions[key] = (annotation, Field(..., description=spec.description or None))
        else:
            definitions[key] = (
                Optional[annotation],
                Field(default=None, description=spec.description or None),
            )
    return create_model(
        name,
        __config__=ConfigDict(extra="forbid", strict=True, protected_namespaces=()),
        **definitions,
    )


def validate(shape: Shape, candidate: Any) -> dict[str, Any]:
    """Return a copy of ``candidate`` holding exactly the declared fields.

    Raises ``SchemaValidationError`` listing every offending field.
    """
    if not isinstance(candidate, Mapping):
        raise SchemaValidationError(
            [
                FieldIssue(
                    field="<root>",
                    expected="object",
                    actual=type(candidate).__name__,
                    message="value is not an object",
                )
            ]
        )

    try:
        model = shape._model.model_validate(dict(candidate))
    except ValidationError as exc:
        raise SchemaValidationError(_issues_from(shape, exc)) from exc

    return model.model_dump(exclude_unset=True)


def _issues_from(shape: Shape, exc: ValidationError) -> list[FieldIssue]:
    issues: list[FieldIssue] = []
    seen: set[str] = set()
    for error in exc.errors():
        path = _format_loc(error.get("loc", ()))
        if path in seen:
            # 유니온 타입은 분기마다 오류가 하나씩 나오므로 필드당 하나만 남긴다.
            continue
        seen.add(path)

        loc = error.get("loc", ())
        top = str(loc[0]) if loc else "<root>"
        spec = shape.fields.get(top)
        error_type = error.get("type", "")
        if error_type == "missing":
            message = "required field is missing"
            actual: Any = None
        elif error_type == "extra_forbidden":
            message = "field is not declared"
            actual = error.get("input")
        else:
            message = str(error.get("msg", "invalid value"))
            actual = error.get("input")

        expected = _EXPECTED_LABELS[spec.type] if spec is not None else "absent"
        if spec is not None and spec.is_sequence and path != top:
            expected = "string"
        issues.append(FieldIssue(field=path, expected=expected, actual=actual, message=message))
    return issues


def _format_loc(loc: tuple) -> str:
    if not loc:
        return "<root>"
    path = str(loc[0])
    for part in loc[1:]:
        if isinstance(part, int):
            path += f"[{part}]"
    return path
