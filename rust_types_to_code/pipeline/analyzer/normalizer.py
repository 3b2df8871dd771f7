"""
IR normalizer.

Converts the raw declaration nodes of one source file into IR definitions:
interprets ``serde`` / ``typeshare`` attributes, maps built-in keywords to
type expressions, applies renames and validates shape constraints.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import structlog

from ...utils import apply_rename_rule
from ..config import SUPPORTED_TARGETS, CodeGeneratorConfig
from ..errors import Diagnostic, ParseError, ShapeError, SourceSpan, TypeGenerationError
from ..rust_ast.nodes import (
    ArrayTypeNode,
    AttributeNode,
    ConstNode,
    DeclNode,
    EnumNode,
    FieldNode,
    GenericParamNode,
    MetaItem,
    OpaqueTypeNode,
    PathTypeNode,
    SourceFileNode,
    StructNode,
    TupleTypeNode,
    TypeAliasNode,
    TypeNode,
)
from ..rust_ast.parser import RustParser
from .ir_nodes import (
    AliasDef,
    ConstDef,
    EnumDef,
    FieldDef,
    GenericParam,
    GenericParamRef,
    ListType,
    MapType,
    ModuleIR,
    Named,
    Opaque,
    OptionalType,
    Primitive,
    PrimitiveKind,
    SerializationStrategy,
    StrategyKind,
    StructDef,
    StructShape,
    TupleShape,
    TupleType,
    TypeDefinition,
    TypeExpr,
    UnitShape,
    VariantDef,
)

logger = structlog.get_logger()

PRIMITIVE_KEYWORDS: dict[str, PrimitiveKind] = {
    "String": PrimitiveKind.STRING,
    "str": PrimitiveKind.STRING,
    "char": PrimitiveKind.CHAR,
    "bool": PrimitiveKind.BOOL,
    "i8": PrimitiveKind.I8,
    "i16": PrimitiveKind.I16,
    "i32": PrimitiveKind.I32,
    "I54": PrimitiveKind.I54,
    "i64": PrimitiveKind.I64,
    "isize": PrimitiveKind.ISIZE,
    "u8": PrimitiveKind.U8,
    "u16": PrimitiveKind.U16,
    "u32": PrimitiveKind.U32,
    "U53": PrimitiveKind.U53,
    "u64": PrimitiveKind.U64,
    "usize": PrimitiveKind.USIZE,
    "f32": PrimitiveKind.F32,
    "f64": PrimitiveKind.F64,
    "DateTime": PrimitiveKind.DATETIME,
}

OPTIONAL_KEYWORDS = {"Option"}
LIST_KEYWORDS = {"Vec", "VecDeque", "LinkedList", "HashSet", "BTreeSet", "IndexSet"}
MAP_KEYWORDS = {"HashMap", "BTreeMap", "IndexMap"}

# Smart pointers serialize as the value they point to
TRANSPARENT_KEYWORDS = {"Box", "Rc", "Arc", "Cow"}

_KNOWN_KEYS = {
    ("container", "serde"): {
        "rename", "rename_all", "rename_all_fields", "tag", "content", "untagged", "default",
        "deny_unknown_fields", "transparent", "bound", "crate", "from", "into", "try_from",
        "remote", "expecting", "variant_identifier", "field_identifier",
    },
    ("container", "typeshare"): {"serialized_as", "redacted", *SUPPORTED_TARGETS},
    ("field", "serde"): {
        "rename", "alias", "default", "flatten", "skip", "skip_serializing", "skip_deserializing",
        "skip_serializing_if", "with", "serialize_with", "deserialize_with", "borrow", "bound",
        "getter",
    },
    ("field", "typeshare"): {"serialized_as", "skip", *SUPPORTED_TARGETS},
    ("variant", "serde"): {
        "rename", "alias", "rename_all", "skip", "skip_serializing", "skip_deserializing", "other",
        "with", "serialize_with", "deserialize_with", "borrow", "bound",
    },
    ("variant", "typeshare"): {"skip"},
}


@dataclass
class NormalizedModule:
    """IR of one source file plus the warnings produced while building it."""

    module: ModuleIR = field(default_factory=ModuleIR)
    warnings: list[Diagnostic] = field(default_factory=list)


class Normalizer:
    """Builds IR definitions from the raw declarations of one file.

    A fresh instance is used per file; errors for every declaration of the
    file are collected in :attr:`diagnostics` before the first is raised.
    """

    def __init__(self, config: CodeGeneratorConfig | None = None):
        self.config = config or CodeGeneratorConfig()
        self.strict = self.config.strict_mode
        self.parser = RustParser()
        self.warnings: list[Diagnostic] = []
        self.diagnostics: list[Diagnostic] = []
        self._errors: list[TypeGenerationError] = []

    def normalize(self, source: SourceFileNode) -> NormalizedModule:
        """
        Normalize the declarations of one file.

        Args:
            source: Parsed source file

        Returns:
            NormalizedModule holding the module IR and non-fatal warnings

        Raises:
            ShapeError: If a declaration violates a shape constraint
            ParseError: If a ``serialized_as`` type or (strict mode) a type is unparseable
        """
        definitions: list[TypeDefinition] = []
        for decl in source.declarations:
            try:
                definitions.append(self._normalize_declaration(decl, source.module))
            except TypeGenerationError as e:
                self._errors.append(e)
                self.diagnostics.append(e.to_diagnostic())

        if self._errors:
            raise self._errors[0]

        logger.debug("file_normalized", file=source.path, definitions=len(definitions), warnings=len(self.warnings))
        module = ModuleIR(name=source.module, path=source.path, definitions=tuple(definitions))
        return NormalizedModule(module=module, warnings=list(self.warnings))

    def _normalize_declaration(self, decl: DeclNode, module: str) -> TypeDefinition:
        metadata = self._attributes_to_metadata(decl.attributes, "container", decl.name, decl.span)
        generics = tuple(GenericParam(p.name, p.bound) for p in getattr(decl, "generics", []))
        common = {
            "name": decl.name,
            "module": module,
            "generic_params": generics,
            "doc": "\n".join(decl.docs),
            "metadata": metadata,
            "span": decl.span,
        }
        scope = _generic_scope(getattr(decl, "generics", []))

        serialized_as = metadata.get("typeshare", {}).get("serialized_as")
        if serialized_as is not None and not isinstance(decl, ConstNode):
            target = self._serialized_as(serialized_as, scope, decl.span)
            return AliasDef(target=target, **common)

        if isinstance(decl, StructNode):
            return self._normalize_struct(decl, scope, common)
        if isinstance(decl, EnumNode):
            return self._normalize_enum(decl, scope, common)
        if isinstance(decl, TypeAliasNode):
            return AliasDef(target=self._type_expr(decl.target, scope, decl.span), **common)
        return self._normalize_const(decl, common)

    # Structs

    def _normalize_struct(self, decl: StructNode, scope: set[str], common: dict[str, Any]) -> TypeDefinition:
        serde = common["metadata"].get("serde", {})

        # Newtype and tuple structs serialize as their inner value(s)
        if decl.kind == "tuple":
            elements = tuple(self._type_expr(f.type_node, scope, decl.span) for f in decl.fields)
            target = elements[0] if len(elements) == 1 else TupleType(elements)
            return AliasDef(target=target, **common)

        fields = self._normalize_fields(decl.fields, serde.get("rename_all"), scope, decl.name, decl.span)
        if serde.get("transparent"):
            visible = [f for f in fields if not f.skip]
            if len(visible) != 1:
                raise ShapeError(
                    f"transparent struct '{decl.name}' must have exactly one serialized field",
                    decl.span,
                    decl.name,
                )
            return AliasDef(target=visible[0].type_expr, **common)

        _check_unique([f.wire_name for f in fields if not f.skip], "field", decl.name, decl.span)
        return StructDef(fields=fields, **common)

    def _normalize_fields(
        self,
        nodes: list[FieldNode],
        rename_all: str | None,
        scope: set[str],
        owner: str,
        span: SourceSpan,
    ) -> tuple[FieldDef, ...]:
        fields = []
        for node in nodes:
            field_span = SourceSpan(span.file, node.line or span.start_line, node.line or span.end_line)
            metadata = self._attributes_to_metadata(node.attributes, "field", f"{owner}.{node.name}", field_span)
            serde = metadata.get("serde", {})
            typeshare = metadata.get("typeshare", {})

            if "serialized_as" in typeshare:
                type_expr = self._serialized_as(typeshare["serialized_as"], scope, field_span)
            else:
                type_expr = self._type_expr(node.type_node, scope, field_span)

            rename = _rename_value(serde.get("rename"))
            if rename is None and rename_all:
                converted = self._apply_rename(rename_all, node.name, False, owner, span)
                rename = converted if converted != node.name else None

            overrides = {
                backend: value["type"]
                for backend, value in typeshare.items()
                if backend in SUPPORTED_TARGETS and isinstance(value, dict) and "type" in value
            }
            fields.append(
                FieldDef(
                    name=node.name,
                    type_expr=type_expr,
                    rename=rename,
                    default=serde.get("default"),
                    flatten=bool(serde.get("flatten")),
                    skip=bool(serde.get("skip") or typeshare.get("skip")),
                    skip_serializing_if=serde.get("skip_serializing_if"),
                    doc="\n".join(node.docs),
                    metadata=metadata,
                    type_overrides=overrides,
                )
            )
        return tuple(fields)

    # Enums

    def _normalize_enum(self, decl: EnumNode, scope: set[str], common: dict[str, Any]) -> TypeDefinition:
        serde = common["metadata"].get("serde", {})
        strategy = self._strategy(serde, decl)
        rename_all = serde.get("rename_all")
        rename_all_fields = serde.get("rename_all_fields")

        variants = []
        for node in decl.variants:
            variant_span = SourceSpan(decl.span.file, node.line or decl.span.start_line, node.line or decl.span.end_line)
            metadata = self._attributes_to_metadata(node.attributes, "variant", f"{decl.name}::{node.name}", variant_span)
            variant_serde = metadata.get("serde", {})
            if variant_serde.get("skip") or metadata.get("typeshare", {}).get("skip"):
                metadata["skip"] = True
            if node.discriminant is not None:
                metadata["discriminant"] = node.discriminant

            rename = _rename_value(variant_serde.get("rename"))
            if rename is None and rename_all:
                converted = self._apply_rename(rename_all, node.name, True, decl.name, decl.span)
                rename = converted if converted != node.name else None

            if node.kind == "struct":
                field_rule = variant_serde.get("rename_all") or rename_all_fields
                fields = self._normalize_fields(node.fields, field_rule, scope, f"{decl.name}::{node.name}", variant_span)
                _check_unique([f.wire_name for f in fields if not f.skip], "field", f"{decl.name}::{node.name}", variant_span)
                shape: Any = StructShape(fields)
            elif node.kind == "tuple":
                shape = TupleShape(tuple(self._type_expr(f.type_node, scope, variant_span) for f in node.fields))
            else:
                shape = UnitShape()

            variants.append(
                VariantDef(name=node.name, shape=shape, rename=rename, doc="\n".join(node.docs), metadata=metadata)
            )

        enum = EnumDef(strategy=strategy, variants=tuple(variants), **common)
        _check_unique([v.wire_name for v in enum.wire_variants], "variant", decl.name, decl.span)
        if strategy.kind == StrategyKind.INTERNAL:
            self._validate_internal(enum)
        if strategy.kind == StrategyKind.ADJACENT and strategy.tag == strategy.content:
            raise ShapeError(
                f"enum '{decl.name}' uses the same key {strategy.tag!r} for tag and content",
                decl.span,
                decl.name,
            )
        return enum

    @staticmethod
    def _strategy(serde: dict[str, Any], decl: EnumNode) -> SerializationStrategy:
        tag = serde.get("tag")
        content = serde.get("content")
        if serde.get("untagged"):
            if tag is not None or content is not None:
                raise ShapeError(f"enum '{decl.name}' cannot be both untagged and tagged", decl.span, decl.name)
            return SerializationStrategy.untagged()
        if content is not None and tag is None:
            raise ShapeError(f"enum '{decl.name}' declares content = {content!r} without a tag", decl.span, decl.name)
        if tag is not None and content is not None:
            return SerializationStrategy.adjacent(str(tag), str(content))
        if tag is not None:
            return SerializationStrategy.internal(str(tag))
        return SerializationStrategy.external()

    @staticmethod
    def _validate_internal(enum: EnumDef) -> None:
        """A tag field can only sit next to named fields, so every payload must be struct-like."""
        tag = enum.strategy.tag
        for variant in enum.wire_variants:
            shape = variant.shape
            if isinstance(shape, StructShape):
                if any(f.wire_name == tag for f in shape.fields if not f.skip):
                    raise ShapeError(
                        f"variant '{variant.name}' of '{enum.name}' has a field named like the tag {tag!r}",
                        enum.span,
                        enum.name,
                        variant.name,
                    )
            elif isinstance(shape, TupleShape):
                if len(shape.elements) != 1:
                    raise ShapeError(
                        f"variant '{variant.name}' of '{enum.name}' has {len(shape.elements)} unnamed fields, "
                        f"which cannot be represented with strategy {enum.strategy}",
                        enum.span,
                        enum.name,
                        variant.name,
                    )
                if isinstance(shape.elements[0], (Primitive, ListType, TupleType, OptionalType, GenericParamRef)):
                    raise ShapeError(
                        f"variant '{variant.name}' of '{enum.name}' wraps a non-struct value, "
                        f"which cannot be represented with strategy {enum.strategy}",
                        enum.span,
                        enum.name,
                        variant.name,
                    )

    # Constants

    @staticmethod
    def _normalize_const(decl: ConstNode, common: dict[str, Any]) -> TypeDefinition:
        if decl.value_kind == "expr":
            raise ShapeError(
                f"constant '{decl.name}' must be initialised with a literal, found {decl.value!r}",
                decl.span,
                decl.name,
            )
        type_expr = Normalizer._const_type(decl)
        return ConstDef(type_expr=type_expr, value=decl.value, **common)

    @staticmethod
    def _const_type(decl: ConstNode) -> TypeExpr:
        node = decl.type_node
        if isinstance(node, PathTypeNode) and node.name in PRIMITIVE_KEYWORDS and not node.args:
            return Primitive(PRIMITIVE_KEYWORDS[node.name])
        raise ShapeError(
            f"constant '{decl.name}' must have a primitive type",
            decl.span,
            decl.name,
        )

    # Types

    def _type_expr(self, node: TypeNode | None, scope: set[str], span: SourceSpan) -> TypeExpr:
        if isinstance(node, TupleTypeNode):
            if not node.elements:
                return Primitive(PrimitiveKind.UNIT)
            return TupleType(tuple(self._type_expr(e, scope, span) for e in node.elements))
        if isinstance(node, ArrayTypeNode):
            return ListType(self._type_expr(node.element, scope, span))
        if isinstance(node, OpaqueTypeNode):
            message = f"unsupported type syntax '{node.text}' is passed through unchanged"
            if self.strict:
                raise ParseError(span.file, node.line or span.start_line, message)
            self.warnings.append(Diagnostic.warning(message, SourceSpan(span.file, node.line or span.start_line)))
            return Opaque(raw=node.text)
        if not isinstance(node, PathTypeNode):
            raise ParseError(span.file, span.start_line, "missing type")

        name = node.name
        args = [self._type_expr(a, scope, span) for a in node.args]

        if len(node.segments) == 1 and name in scope and not args:
            return GenericParamRef(name)
        if name == "DateTime":
            # DateTime<Utc>: the timezone parameter has no wire impact
            return Primitive(PrimitiveKind.DATETIME)
        if name in PRIMITIVE_KEYWORDS and not args:
            return Primitive(PRIMITIVE_KEYWORDS[name])
        if name in TRANSPARENT_KEYWORDS:
            return self._expect_args(node, args, 1, span)[0]
        if name in OPTIONAL_KEYWORDS:
            return OptionalType(self._expect_args(node, args, 1, span)[0])
        if name in LIST_KEYWORDS:
            return ListType(self._expect_args(node, args, 1, span)[0])
        if name in MAP_KEYWORDS:
            key, value = self._expect_args(node, args, 2, span)
            return MapType(key, value)
        return Named(name=name, args=tuple(args), path=node.path)

    @staticmethod
    def _expect_args(node: PathTypeNode, args: list[TypeExpr], count: int, span: SourceSpan) -> list[TypeExpr]:
        # Cow<'a, str> and HashMap<K, V, S> carry extra parameters without wire impact
        if len(args) < count:
            raise ParseError(
                span.file,
                node.line or span.start_line,
                f"'{node.name}' expects {count} type argument(s) but {len(args)} were given",
            )
        return args[:count]

    def _serialized_as(self, text: Any, scope: set[str], span: SourceSpan) -> TypeExpr:
        if not isinstance(text, str):
            raise ParseError(span.file, span.start_line, "serialized_as expects a string")
        type_node = self.parser.parse_type(text, span.file, span.start_line)
        return self._type_expr(type_node, scope, span)

    # Attributes

    def _attributes_to_metadata(
        self, attributes: list[AttributeNode], granularity: str, owner: str, span: SourceSpan
    ) -> dict[str, Any]:
        metadata: dict[str, Any] = {}
        for attribute in attributes:
            if attribute.name not in ("serde", "typeshare"):
                continue
            values = metadata.setdefault(attribute.name, {})
            values.update(_meta_items_to_dict(attribute.items))

            if self.strict:
                known = _KNOWN_KEYS[(granularity, attribute.name)]
                for item in attribute.items:
                    if item.key not in known:
                        self.warnings.append(
                            Diagnostic.warning(
                                f"unrecognized #[{attribute.name}] key '{item.key}' on '{owner}' is kept but unused",
                                SourceSpan(span.file, attribute.line or span.start_line),
                            )
                        )
        return metadata

    @staticmethod
    def _apply_rename(rule: Any, name: str, is_variant: bool, owner: str, span: SourceSpan) -> str:
        rule = _rename_value(rule)
        try:
            return apply_rename_rule(rule, name, is_variant=is_variant)
        except ValueError as e:
            raise ShapeError(f"{e} on '{owner}'", span, owner) from e


def _meta_items_to_dict(items: list[MetaItem]) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for item in items:
        if item.nested is not None:
            result[item.key] = _meta_items_to_dict(item.nested)
        elif item.is_flag:
            result[item.key] = True
        else:
            result[item.key] = item.value
    return result


def _rename_value(value: Any) -> Any:
    """``rename(serialize = "a", deserialize = "b")`` resolves to the serialized name."""
    if isinstance(value, dict):
        return value.get("serialize", value.get("deserialize"))
    return value


def _generic_scope(generics: list[GenericParamNode]) -> set[str]:
    return {p.name for p in generics}


def _check_unique(names: list[str], kind: str, owner: str, span: SourceSpan) -> None:
    seen: set[str] = set()
    for name in names:
        if name in seen:
            raise ShapeError(f"duplicate {kind} name {name!r} in '{owner}'", span, owner)
        seen.add(name)
