"""Prompt templates with placeholder and ``each`` block support.

Supported syntax::

    {{name}}  {{{name}}}               scalar substitution (no escaping)
    {{#each name}} - {{this}} {{/each}}  one copy of the body per element
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Union

from docguard.domain.generation.errors import TemplateError
from docguard.domain.generation.schema import Shape


_TAG_PATTERN = re.compile(
    r"\{\{\{\s*(?P<raw>[A-Za-z_]\w*)\s*\}\}\}"
    r"|\{\{\s*(?P<tag>#each\s+[A-Za-z_]\w*|/each|[A-Za-z_]\w*)\s*\}\}"
)
_STANDALONE_BLOCK_PATTERN = re.compile(
    r"^[ \t]*(\{\{\s*(?:#each\s+[A-Za-z_]\w*|/each)\s*\}\})[ \t]*(?:\r?\n|\Z)",
    re.MULTILINE,
)
_STRAY_BRACES_PATTERN = re.compile(r"\{\{|\}\}")

LOOP_VARIABLE = "this"


@dataclass(frozen=True)
class Text:
    value: str


@dataclass(frozen=True)
class Placeholder:
    name: str


@dataclass(frozen=True)
class LoopItem:
    pass


@dataclass(frozen=True)
class EachBlock:
    name: str
    body: tuple[Union[Text, Placeholder, LoopItem], ...]


Node = Union[Text, Placeholder, LoopItem, EachBlock]


@dataclass(frozen=True)
class PromptTemplate:
    source: str
    nodes: tuple[Node, ...]

    @classmethod
    def compile(cls, source: str) -> PromptTemplate:
        return cls(source=source, nodes=_parse(source))

    @property
    def fields(self) -> tuple[str, ...]:
        names: list[str] = []
        for node in self.nodes:
            if isinstance(node, (Placeholder, EachBlock)):
                if node.name not in names:
                    names.append(node.name)
            if isinstance(node, EachBlock):
                for inner in node.body:
                    if isinstance(inner, Placeholder) and inner.name not in names:
                        names.append(inner.name)
        return tuple(names)

    @property
    def iterated_fields(self) -> tuple[str, ...]:
        return tuple(node.name for node in self.nodes if isinstance(node, EachBlock))

    def check(self, shape: Shape) -> None:
        """Fail if the template needs a field the shape does not declare."""
        for name in self.fields:
            if name not in shape:
                raise TemplateError(f"undeclared_field:{name}")
        for name in self.iterated_fields:
            if not shape.fields[name].is_sequence:
                raise TemplateError(f"each_over_scalar:{name}")

    def render(self, data: Mapping[str, Any]) -> str:
        return render(self, data)


def render(template: PromptTemplate, data: Mapping[str, Any]) -> str:
    parts: list[str] = []
    for node in template.nodes:
        if isinstance(node, Text):
            parts.append(node.value)
        elif isinstance(node, Placeholder):
            parts.append(_format_value(_lookup(data, node.name)))
        elif isinstance(node, EachBlock):
            items = _lookup(data, node.name)
            if items is None:
                continue
            if isinstance(items, (str, bytes)) or not isinstance(items, (list, tuple)):
                raise TemplateError(f"each_over_scalar:{node.name}")
            for item in items:
                for inner in node.body:
                    if isinstance(inner, Text):
                        parts.append(inner.value)
                    elif isinstance(inner, LoopItem):
                        parts.append(_format_value(item))
                    else:
                        parts.append(_format_value(_lookup(data, inner.name)))
    return "".join(parts)


def _lookup(data: Mapping[str, Any], name: str) -> Any:
    if name not in data:
        raise TemplateError(f"missing_field:{name}")
    return data[name]


def _format_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ", ".join(_format_value(item) for item in value)
    return str(value)


def _parse(source: str) -> tuple[Node, ...]:
    text = _STANDALONE_BLOCK_PATTERN.sub(r"\1", source)

    root: list[Node] = []
    block_name: str | None = None
    block_body: list[Union[Text, Placeholder, LoopItem]] = []
    cursor = 0

    def emit(node: Union[Text, Placeholder, LoopItem]) -> None:
        if block_name is None:
            if isinstance(node, LoopItem):
                raise TemplateError("loop_variable_outside_each")
            root.append(node)
        else:
            block_body.append(node)

    for match in _TAG_PATTERN.finditer(text):
        literal = text[cursor:match.start()]
        if _STRAY_BRACES_PATTERN.search(literal):
            raise TemplateError(f"malformed_tag_near:{literal.strip()[:40]}")
        if literal:
            emit(Text(literal))
        cursor = match.end()

        raw = match.group("raw")
        tag = match.group("tag")
        if raw is not None:
            emit(LoopItem() if raw == LOOP_VARIABLE else Placeholder(raw))
        elif tag.startswith("#each"):
            if block_name is not None:
                raise TemplateError("nested_each_not_supported")
            block_name = tag.split()[1]
            block_body = []
        elif tag == "/each":
            if block_name is None:
                raise TemplateError("unmatched_each_close")
            root.append(EachBlock(name=block_name, body=tuple(block_body)))
            block_name = None
        else:
            emit(LoopItem() if tag == LOOP_VARIABLE else Placeholder(tag))

    tail = text[cursor:]
    if _STRAY_BRACES_PATTERN.search(tail):
        raise TemplateError(f"malformed_tag_near:{tail.strip()[:40]}")
    if block_name is not None:
        raise TemplateError(f"unclosed_each:{block_name}")
    if tail:
        emit(Text(tail))
    return tuple(root)
