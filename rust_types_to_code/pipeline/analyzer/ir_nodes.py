"""
IR (Intermediate Representation) node definitions.

These nodes represent the normalized, language-neutral type definitions,
ready for resolution and code generation. All nodes are frozen: the
normalizer builds them once and later stages derive new copies with
:func:`dataclasses.replace` instead of mutating them.

Equality ignores modules, docs and source locations, so two structurally
identical declarations from different files compare equal.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from ..errors import SourceSpan


class PrimitiveKind(str, Enum):
    """Built-in scalar kinds."""

    STRING = "string"
    CHAR = "char"
    BOOL = "bool"
    I8 = "i8"
    I16 = "i16"
    I32 = "i32"
    I54 = "i54"  # i64 known to fit in a JavaScript number
    I64 = "i64"
    ISIZE = "isize"
    U8 = "u8"
    U16 = "u16"
    U32 = "u32"
    U53 = "u53"  # u64 known to fit in a JavaScript number
    U64 = "u64"
    USIZE = "usize"
    F32 = "f32"
    F64 = "f64"
    UNIT = "unit"
    DATETIME = "datetime"


# Type expressions


@dataclass(frozen=True)
class TypeExpr:
    """Base class for type expressions."""


@dataclass(frozen=True)
class Primitive(TypeExpr):
    kind: PrimitiveKind = PrimitiveKind.STRING


@dataclass(frozen=True)
class Named(TypeExpr):
    """A reference by name, not yet resolved."""

    name: str = ""
    args: tuple[TypeExpr, ...] = ()
    path: str = ""  # Full source path, e.g. "chrono::NaiveDate"


@dataclass(frozen=True)
class Reference(TypeExpr):
    """A reference resolved against the global symbol table."""

    name: str = ""
    args: tuple[TypeExpr, ...] = ()


@dataclass(frozen=True)
class OptionalType(TypeExpr):
    inner: TypeExpr = field(default_factory=Primitive)


@dataclass(frozen=True)
class ListType(TypeExpr):
    inner: TypeExpr = field(default_factory=Primitive)


@dataclass(frozen=True)
class MapType(TypeExpr):
    key: TypeExpr = field(default_factory=Primitive)
    value: TypeExpr = field(default_factory=Primitive)


@dataclass(frozen=True)
class TupleType(TypeExpr):
    elements: tuple[TypeExpr, ...] = ()


@dataclass(frozen=True)
class GenericParamRef(TypeExpr):
    name: str = ""


@dataclass(frozen=True)
class Opaque(TypeExpr):
    """A type passed through to every backend as its raw source name."""

    raw: str = ""
    args: tuple[TypeExpr, ...] = ()


def iter_type_exprs(expr: TypeExpr) -> Iterator[TypeExpr]:
    """Yield ``expr`` and every nested type expression, depth first."""
    yield expr
    for child in _children(expr):
        yield from iter_type_exprs(child)


def _children(expr: TypeExpr) -> tuple[TypeExpr, ...]:
    if isinstance(expr, (Named, Reference, Opaque)):
        return expr.args
    if isinstance(expr, (OptionalType, ListType)):
        return (expr.inner,)
    if isinstance(expr, MapType):
        return (expr.key, expr.value)
    if isinstance(expr, TupleType):
        return expr.elements
    return ()


def map_type_expr(expr: TypeExpr, fn: Callable[[TypeExpr], TypeExpr]) -> TypeExpr:
    """Rebuild ``expr`` bottom-up, applying ``fn`` to every node."""
    if isinstance(expr, (Named, Reference, Opaque)):
        expr = replace(expr, args=tuple(map_type_expr(a, fn) for a in expr.args))
    elif isinstance(expr, (OptionalType, ListType)):
        expr = replace(expr, inner=map_type_expr(expr.inner, fn))
    elif isinstance(expr, MapType):
        expr = replace(expr, key=map_type_expr(expr.key, fn), value=map_type_expr(expr.value, fn))
    elif isinstance(expr, TupleType):
        expr = replace(expr, elements=tuple(map_type_expr(e, fn) for e in expr.elements))
    return fn(expr)


# Serialization strategy


class StrategyKind(Enum):
    """Wire layout of an enum's tag and payload."""

    EXTERNAL = "external"  # {"Variant": payload}
    INTERNAL = "internal"  # {tag: "Variant", ...fields}
    ADJACENT = "adjacent"  # {tag: "Variant", content: payload}
    UNTAGGED = "untagged"  # payload, first matching variant wins


@dataclass(frozen=True)
class SerializationStrategy:
    kind: StrategyKind = StrategyKind.EXTERNAL
    tag: str | None = None
    content: str | None = None

    @classmethod
    def external(cls) -> SerializationStrategy:
        return cls(StrategyKind.EXTERNAL)

    @classmethod
    def internal(cls, tag: str) -> SerializationStrategy:
        return cls(StrategyKind.INTERNAL, tag=tag)

    @classmethod
    def adjacent(cls, tag: str, content: str) -> SerializationStrategy:
        return cls(StrategyKind.ADJACENT, tag=tag, content=content)

    @classmethod
    def untagged(cls) -> SerializationStrategy:
        return cls(StrategyKind.UNTAGGED)

    def __str__(self) -> str:
        if self.kind == StrategyKind.INTERNAL:
            return f"internal(tag = {self.tag!r})"
        if self.kind == StrategyKind.ADJACENT:
            return f"adjacent(tag = {self.tag!r}, content = {self.content!r})"
        return self.kind.value


# Members


@dataclass(frozen=True)
class GenericParam:
    name: str = ""
    bound: str | None = None


@dataclass(frozen=True)
class FieldDef:
    """A field of a struct or of a struct-shaped variant."""

    name: str = ""
    type_expr: TypeExpr = field(default_factory=Primitive)

    # Wire name when it differs from the Rust name (explicit or via rename_all)
    rename: str | None = None

    # True for `#[serde(default)]`, or the path of the default function
    default: bool | str | None = None

    flatten: bool = False
    skip: bool = False
    skip_serializing_if: str | None = None
    doc: str = field(default="", compare=False)
    metadata: dict[str, Any] = field(default_factory=dict)

    # Backend id -> literal target type
    type_overrides: dict[str, str] = field(default_factory=dict)

    @property
    def wire_name(self) -> str:
        return self.rename if self.rename is not None else self.name

    @property
    def has_explicit_rename(self) -> bool:
        """Whether the wire name comes from the field's own ``#[serde(rename)]``."""
        return "rename" in self.metadata.get("serde", {})

    @property
    def is_optional(self) -> bool:
        return isinstance(self.type_expr, OptionalType)

    @property
    def has_default(self) -> bool:
        return self.default is not None

    @property
    def may_be_absent(self) -> bool:
        """Whether the key can be missing from the wire form."""
        return self.is_optional or self.has_default or self.skip_serializing_if is not None


@dataclass(frozen=True)
class UnitShape:
    pass


@dataclass(frozen=True)
class TupleShape:
    elements: tuple[TypeExpr, ...] = ()


@dataclass(frozen=True)
class StructShape:
    fields: tuple[FieldDef, ...] = ()


VariantShape = UnitShape | TupleShape | StructShape


@dataclass(frozen=True)
class VariantDef:
    name: str = ""
    shape: VariantShape = field(default_factory=UnitShape)
    rename: str | None = None
    doc: str = field(default="", compare=False)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def wire_name(self) -> str:
        return self.rename if self.rename is not None else self.name

    @property
    def is_unit(self) -> bool:
        return isinstance(self.shape, UnitShape)

    @property
    def newtype(self) -> TypeExpr | None:
        """The wrapped type of a single-element tuple variant."""
        if isinstance(self.shape, TupleShape) and len(self.shape.elements) == 1:
            return self.shape.elements[0]
        return None


# Definitions


@dataclass(frozen=True)
class TypeDefinition:
    """Base class for top-level definitions."""

    name: str = ""
    module: str = field(default="", compare=False)
    generic_params: tuple[GenericParam, ...] = ()
    doc: str = field(default="", compare=False)
    metadata: dict[str, Any] = field(default_factory=dict)
    span: SourceSpan = field(default_factory=SourceSpan, compare=False)

    @property
    def qualified_name(self) -> str:
        return f"{self.module}::{self.name}" if self.module else self.name

    @property
    def generic_names(self) -> list[str]:
        return [p.name for p in self.generic_params]

    def decorators(self, backend_id: str) -> list[str]:
        """Extra decorations requested via ``#[typeshare(<backend> = "A, B")]``."""
        value = self.metadata.get("typeshare", {}).get(backend_id)
        if not isinstance(value, str):
            return []
        return [part.strip() for part in value.split(",") if part.strip()]

    @property
    def is_redacted(self) -> bool:
        return bool(self.metadata.get("typeshare", {}).get("redacted"))


@dataclass(frozen=True)
class StructDef(TypeDefinition):
    fields: tuple[FieldDef, ...] = ()

    @property
    def wire_fields(self) -> tuple[FieldDef, ...]:
        """Fields that appear on the wire (skipped fields removed)."""
        return tuple(f for f in self.fields if not f.skip)


@dataclass(frozen=True)
class EnumDef(TypeDefinition):
    strategy: SerializationStrategy = field(default_factory=SerializationStrategy)
    variants: tuple[VariantDef, ...] = ()

    @property
    def wire_variants(self) -> tuple[VariantDef, ...]:
        return tuple(v for v in self.variants if not v.metadata.get("skip"))

    @property
    def is_unit_only(self) -> bool:
        return all(v.is_unit for v in self.wire_variants)


@dataclass(frozen=True)
class AliasDef(TypeDefinition):
    target: TypeExpr = field(default_factory=Primitive)


@dataclass(frozen=True)
class ConstDef(TypeDefinition):
    type_expr: TypeExpr = field(default_factory=Primitive)
    value: Any = None


def definition_type_exprs(definition: TypeDefinition) -> Iterator[TypeExpr]:
    """Every top-level type expression a definition mentions."""
    if isinstance(definition, StructDef):
        for f in definition.fields:
            yield f.type_expr
    elif isinstance(definition, EnumDef):
        for variant in definition.variants:
            if isinstance(variant.shape, TupleShape):
                yield from variant.shape.elements
            elif isinstance(variant.shape, StructShape):
                for f in variant.shape.fields:
                    yield f.type_expr
    elif isinstance(definition, AliasDef):
        yield definition.target
    elif isinstance(definition, ConstDef):
        yield definition.type_expr


def map_definition_types(definition: TypeDefinition, fn: Callable[[TypeExpr], TypeExpr]) -> TypeDefinition:
    """Copy of ``definition`` with every type expression rebuilt through ``fn``."""

    def map_fields(fields: tuple[FieldDef, ...]) -> tuple[FieldDef, ...]:
        return tuple(replace(f, type_expr=map_type_expr(f.type_expr, fn)) for f in fields)

    if isinstance(definition, StructDef):
        return replace(definition, fields=map_fields(definition.fields))
    if isinstance(definition, EnumDef):
        variants = []
        for variant in definition.variants:
            shape = variant.shape
            if isinstance(shape, TupleShape):
                shape = TupleShape(tuple(map_type_expr(e, fn) for e in shape.elements))
            elif isinstance(shape, StructShape):
                shape = StructShape(map_fields(shape.fields))
            variants.append(replace(variant, shape=shape))
        return replace(definition, variants=tuple(variants))
    if isinstance(definition, AliasDef):
        return replace(definition, target=map_type_expr(definition.target, fn))
    if isinstance(definition, ConstDef):
        return replace(definition, type_expr=map_type_expr(definition.type_expr, fn))
    return definition


@dataclass(frozen=True)
class ModuleIR:
    """Definitions of one source file, kept for output ordering only."""

    name: str = ""
    path: str = ""
    definitions: tuple[TypeDefinition, ...] = ()
