"""
AST (Abstract Syntax Tree) node definitions for marked Rust declarations.

These nodes represent the parsed structure of one source file before any
attribute interpretation, keyword lookup or cross-file resolution.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..errors import SourceSpan


@dataclass
class MetaItem:
    """One entry of an attribute argument list.

    ``#[serde(rename = "x", flatten, with(a = "b"))]`` yields three items:
    a key/value pair, a bare flag and a nested list.
    """

    key: str = ""
    value: Any = None  # str | int | float | bool for `key = literal`
    nested: list[MetaItem] | None = None

    @property
    def is_flag(self) -> bool:
        return self.value is None and self.nested is None


@dataclass
class AttributeNode:
    """An outer attribute such as ``#[serde(tag = "type")]``."""

    name: str = ""
    items: list[MetaItem] = field(default_factory=list)
    line: int = 0


@dataclass
class TypeNode:
    """Base class for type syntax."""

    line: int = 0


@dataclass
class PathTypeNode(TypeNode):
    """A path type, e.g. ``std::collections::HashMap<String, u32>``."""

    segments: list[str] = field(default_factory=list)
    args: list[TypeNode] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.segments[-1] if self.segments else ""

    @property
    def path(self) -> str:
        return "::".join(self.segments)


@dataclass
class TupleTypeNode(TypeNode):
    """A tuple type; the empty tuple is Rust's unit type."""

    elements: list[TypeNode] = field(default_factory=list)


@dataclass
class ArrayTypeNode(TypeNode):
    """An array ``[T; N]`` (length set) or a slice ``[T]``."""

    element: TypeNode | None = None
    length: str | None = None


@dataclass
class OpaqueTypeNode(TypeNode):
    """Type syntax outside the modelled subset, kept as source text."""

    text: str = ""


@dataclass
class GenericParamNode:
    name: str = ""
    bound: str | None = None


@dataclass
class DeclNode:
    """Base class for marked declarations."""

    name: str = ""
    attributes: list[AttributeNode] = field(default_factory=list)
    docs: list[str] = field(default_factory=list)
    span: SourceSpan = field(default_factory=SourceSpan)


@dataclass
class FieldNode:
    """A named field (``name`` set) or a positional tuple field."""

    name: str | None = None
    type_node: TypeNode | None = None
    attributes: list[AttributeNode] = field(default_factory=list)
    docs: list[str] = field(default_factory=list)
    line: int = 0


@dataclass
class StructNode(DeclNode):
    """``struct`` item. ``kind`` is "named", "tuple" or "unit"."""

    kind: str = "named"
    generics: list[GenericParamNode] = field(default_factory=list)
    fields: list[FieldNode] = field(default_factory=list)


@dataclass
class VariantNode:
    """An enum variant. ``kind`` is "unit", "tuple" or "struct"."""

    name: str = ""
    kind: str = "unit"
    fields: list[FieldNode] = field(default_factory=list)
    discriminant: str | None = None
    attributes: list[AttributeNode] = field(default_factory=list)
    docs: list[str] = field(default_factory=list)
    line: int = 0


@dataclass
class EnumNode(DeclNode):
    generics: list[GenericParamNode] = field(default_factory=list)
    variants: list[VariantNode] = field(default_factory=list)


@dataclass
class TypeAliasNode(DeclNode):
    generics: list[GenericParamNode] = field(default_factory=list)
    target: TypeNode | None = None


@dataclass
class ConstNode(DeclNode):
    """``const`` item. ``value`` is the literal, ``value_kind`` its token kind."""

    type_node: TypeNode | None = None
    value: Any = None
    value_kind: str = ""


@dataclass
class SourceFileNode:
    """All marked declarations of one file, in source order."""

    path: str = ""
    module: str = ""
    declarations: list[DeclNode] = field(default_factory=list)
