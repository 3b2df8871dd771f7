"""
Go code generation backend.

Structs become Go structs with ``encoding/json`` tags. Go has no sum types,
so data-carrying enums are flattened into a single struct: a pointer per
variant for external tagging, a typed tag plus the union of variant fields
for internal tagging, and a tag plus raw content for adjacent tagging.
"""

from __future__ import annotations

import json
from typing import Any

from ...utils import is_identifier
from ..analyzer.ir_nodes import (
    AliasDef,
    ConstDef,
    EnumDef,
    FieldDef,
    MapType,
    OptionalType,
    PrimitiveKind,
    Reference,
    StrategyKind,
    StructDef,
    StructShape,
    TupleShape,
    TypeDefinition,
    VariantDef,
)
from ..config import GoConfig
from .base import CodeBackend


class GoBackend(CodeBackend):
    """Go code generation backend."""

    BACKEND_ID = "go"
    FILE_EXTENSION = "go"
    FIELD_CASE = "pascal"

    RESERVED_WORDS = frozenset(
        {
            "break", "case", "chan", "const", "continue", "default", "defer", "else", "fallthrough",
            "for", "func", "go", "goto", "if", "import", "interface", "map", "package", "range",
            "return", "select", "struct", "switch", "type", "var",
        }
    )

    TYPE_MAP = {
        PrimitiveKind.STRING: "string",
        PrimitiveKind.CHAR: "string",
        PrimitiveKind.BOOL: "bool",
        PrimitiveKind.I8: "int8",
        PrimitiveKind.I16: "int16",
        PrimitiveKind.I32: "int32",
        PrimitiveKind.I54: "int64",
        PrimitiveKind.I64: "int64",
        PrimitiveKind.ISIZE: "int",
        PrimitiveKind.U8: "uint8",
        PrimitiveKind.U16: "uint16",
        PrimitiveKind.U32: "uint32",
        PrimitiveKind.U53: "uint64",
        PrimitiveKind.U64: "uint64",
        PrimitiveKind.USIZE: "uint",
        PrimitiveKind.F32: "float32",
        PrimitiveKind.F64: "float64",
        PrimitiveKind.UNIT: "struct{}",
        PrimitiveKind.DATETIME: "time.Time",
    }

    backend_config: GoConfig

    def render_primitive(self, kind: PrimitiveKind) -> str:
        if kind == PrimitiveKind.DATETIME:
            self.imports.add(("time", ""))
        return super().render_primitive(kind)

    def render_optional(self, inner: str) -> str:
        return f"*{inner}"

    def render_list(self, inner: str) -> str:
        return f"[]{inner}"

    def render_map(self, key: str, value: str) -> str:
        return f"map[{key}]{value}"

    def render_named(self, name: str, args: list[str]) -> str:
        return f"{name}[{', '.join(args)}]" if args else name

    def header_context(self) -> dict[str, Any]:
        return {"package": self.backend_config.package}

    def render_imports(self, module_imports: dict[str, set[str]]) -> list[str]:
        # One package for every file: cross-module names resolve without imports
        return [f'"{module}"' for module, _ in sorted(self.imports)]

    def doc_lines(self, doc: str, indent: str = "") -> list[str]:
        if not doc:
            return []
        return [f"{indent}// {line}".rstrip() for line in doc.split("\n")]

    def render_definition(self, definition: TypeDefinition) -> str:
        if definition.generic_params:
            self._current = definition
            raise self.unsupported("generic types are not generated for Go")
        return super().render_definition(definition)

    # Definitions

    def render_struct(self, struct: StructDef) -> str:
        lines = self.doc_lines(struct.doc)
        lines.append(f"type {self.type_name(struct.name)} struct {{")
        lines.extend(self._fields(struct.wire_fields))
        lines.append("}")
        return "\n".join(lines)

    def render_enum(self, enum: EnumDef) -> str:
        kind = enum.strategy.kind
        if kind == StrategyKind.UNTAGGED:
            raise self.unsupported("untagged enums cannot be decoded by encoding/json without custom code")
        if enum.is_unit_only and kind == StrategyKind.EXTERNAL:
            return self._render_string_enum(enum)
        if kind == StrategyKind.EXTERNAL:
            return self._render_external(enum)
        if kind == StrategyKind.INTERNAL:
            return self._render_internal(enum)
        return self._render_adjacent(enum)

    def render_alias(self, alias: AliasDef) -> str:
        lines = self.doc_lines(alias.doc)
        lines.append(f"type {self.type_name(alias.name)} {self.render_type_expr(alias.target)}")
        return "\n".join(lines)

    def render_const(self, const: ConstDef) -> str:
        lines = self.doc_lines(const.doc)
        value = const.value
        if isinstance(value, bool):
            literal = "true" if value else "false"
        elif isinstance(value, str):
            literal = json.dumps(value)
        else:
            literal = str(value)
        lines.append(f"const {const.name} {self.render_type_expr(const.type_expr)} = {literal}")
        return "\n".join(lines)

    # Enums

    def _render_string_enum(self, enum: EnumDef) -> str:
        name = self.type_name(enum.name)
        lines = self.doc_lines(enum.doc)
        lines.append(f"type {name} string")
        lines.append("")
        lines.append("const (")
        for variant in enum.wire_variants:
            lines.extend(self.doc_lines(variant.doc, "\t"))
            lines.append(f'\t{name}{self.case_name(variant.name)} {name} = "{variant.wire_name}"')
        lines.append(")")
        return "\n".join(lines)

    def _render_external(self, enum: EnumDef) -> str:
        """One pointer field per variant; exactly one is set."""
        extra: list[str] = []
        lines = self.doc_lines(enum.doc)
        lines.append(f"type {self.type_name(enum.name)} struct {{")
        for variant in enum.wire_variants:
            if variant.is_unit:
                raise self.unsupported(
                    f"unit variant '{variant.name}' cannot be mixed with data variants in an externally tagged enum"
                )
            payload = self._variant_payload(enum, variant, extra)
            lines.extend(self.doc_lines(variant.doc, "\t"))
            lines.append(f'\t{self.case_name(variant.name)} *{payload} `json:"{variant.wire_name},omitempty"`')
        lines.append("}")
        return "\n\n".join(["\n".join(lines), *extra])

    def _render_internal(self, enum: EnumDef) -> str:
        """The tag plus every variant field, each optional on the wire."""
        merged: dict[str, FieldDef] = {}
        for variant in enum.wire_variants:
            if variant.is_unit:
                continue
            if not isinstance(variant.shape, StructShape):
                raise self.unsupported(f"variant '{variant.name}' wraps a type; Go only supports struct variants here")
            for f in variant.shape.fields:
                if f.skip:
                    continue
                seen = merged.get(f.wire_name)
                if seen is not None and seen.type_expr != f.type_expr:
                    raise self.unsupported(
                        f"field '{f.wire_name}' has different types in different variants"
                    )
                merged.setdefault(f.wire_name, f)

        name = self.type_name(enum.name)
        lines = [self._tag_type(enum), ""]
        lines.extend(self.doc_lines(enum.doc))
        lines.append(f"type {name} struct {{")
        lines.append(f'\t{self.case_name(enum.strategy.tag)} {name}Tag `json:"{enum.strategy.tag}"`')
        lines.extend(self._fields(tuple(merged.values()), force_optional=True))
        lines.append("}")
        return "\n".join(lines)

    def _render_adjacent(self, enum: EnumDef) -> str:
        """The tag plus the undecoded content; variant payload types are emitted alongside."""
        self.imports.add(("encoding/json", ""))
        extra: list[str] = []
        for variant in enum.wire_variants:
            if not variant.is_unit:
                self._variant_payload(enum, variant, extra)

        name = self.type_name(enum.name)
        strategy = enum.strategy
        lines = [self._tag_type(enum), ""]
        lines.extend(self.doc_lines(enum.doc))
        lines.append(f"type {name} struct {{")
        lines.append(f'\t{self.case_name(strategy.tag)} {name}Tag `json:"{strategy.tag}"`')
        lines.append(f'\t{self.case_name(strategy.content)} json.RawMessage `json:"{strategy.content},omitempty"`')
        lines.append("}")
        return "\n\n".join(["\n".join(lines), *extra])

    def _tag_type(self, enum: EnumDef) -> str:
        name = self.type_name(enum.name)
        lines = [f"type {name}Tag string", "", "const ("]
        for variant in enum.wire_variants:
            lines.append(f'\t{name}Tag{self.case_name(variant.name)} {name}Tag = "{variant.wire_name}"')
        lines.append(")")
        return "\n".join(lines)

    def _variant_payload(self, enum: EnumDef, variant: VariantDef, extra: list[str]) -> str:
        if isinstance(variant.shape, StructShape):
            inner = StructDef(
                name=f"{enum.name}{variant.name}Inner",
                module=enum.module,
                fields=variant.shape.fields,
                span=enum.span,
            )
            extra.append(self.render_struct(inner))
            return self.type_name(inner.name)
        if isinstance(variant.shape, TupleShape) and len(variant.shape.elements) == 1:
            return self.render_type_expr(variant.shape.elements[0])
        raise self.unsupported(f"tuple variant '{variant.name}' has several fields, which Go cannot express")

    # Fields

    def _fields(self, fields: tuple[FieldDef, ...], force_optional: bool = False) -> list[str]:
        lines = []
        for f in fields:
            lines.extend(self.doc_lines(f.doc, "\t"))
            if f.flatten:
                lines.append(f"\t{self._embedded(f)}")
                continue
            rendered = self.field_type(f)
            omit = f.may_be_absent or force_optional
            if force_optional and not f.is_optional and not rendered.startswith(("*", "[]", "map[")):
                rendered = f"*{rendered}"
            tag = f"{f.wire_name},omitempty" if omit else f.wire_name
            lines.append(f'\t{self._field_name(f)} {rendered} `json:"{tag}"`')
        return lines

    def _field_name(self, f: FieldDef) -> str:
        if f.has_explicit_rename and is_identifier(f.wire_name):
            # encoding/json skips unexported fields; the json tag keeps the exact rename
            return f.wire_name[0].upper() + f.wire_name[1:]
        return self.case_name(f.name)

    def _embedded(self, f: FieldDef) -> str:
        """Flattened struct fields become embedded structs, which encoding/json inlines."""
        target = f.type_expr.inner if isinstance(f.type_expr, OptionalType) else f.type_expr
        if isinstance(target, MapType) or not isinstance(target, Reference):
            raise self.unsupported(f"flattened field '{f.name}' must be a struct to embed it in Go")
        embedded = self.render_type_expr(target)
        return f"*{embedded}" if f.is_optional else embedded
