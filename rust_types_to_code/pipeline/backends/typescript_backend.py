"""
TypeScript code generation backend.

Structs become interfaces, unit-only enums become string enums and every
other enum becomes a union type whose members mirror the serde wire form.
"""

from __future__ import annotations

import json

from ...utils import is_identifier
from ..analyzer.ir_nodes import (
    AliasDef,
    ConstDef,
    EnumDef,
    FieldDef,
    PrimitiveKind,
    StrategyKind,
    StructDef,
    StructShape,
    TupleShape,
    TypeDefinition,
    VariantDef,
)
from .base import CodeBackend

# Rust integers that do not fit in a JavaScript number
LARGE_INTEGERS = {PrimitiveKind.I64, PrimitiveKind.U64, PrimitiveKind.ISIZE, PrimitiveKind.USIZE}


class TypeScriptBackend(CodeBackend):
    """TypeScript code generation backend."""

    BACKEND_ID = "typescript"
    FILE_EXTENSION = "ts"

    RESERVED_WORDS = frozenset(
        {
            "break", "case", "catch", "class", "const", "continue", "debugger", "default", "delete",
            "do", "else", "enum", "export", "extends", "false", "finally", "for", "function", "if",
            "import", "in", "instanceof", "new", "null", "return", "super", "switch", "this",
            "throw", "true", "try", "typeof", "var", "void", "while", "with", "let", "static",
            "yield", "await", "implements", "interface", "package", "private", "protected", "public",
        }
    )

    TYPE_MAP = {
        PrimitiveKind.STRING: "string",
        PrimitiveKind.CHAR: "string",
        PrimitiveKind.BOOL: "boolean",
        PrimitiveKind.I8: "number",
        PrimitiveKind.I16: "number",
        PrimitiveKind.I32: "number",
        PrimitiveKind.I54: "number",
        PrimitiveKind.U8: "number",
        PrimitiveKind.U16: "number",
        PrimitiveKind.U32: "number",
        PrimitiveKind.U53: "number",
        PrimitiveKind.F32: "number",
        PrimitiveKind.F64: "number",
        PrimitiveKind.UNIT: "null",
        PrimitiveKind.DATETIME: "string",
    }

    def render_primitive(self, kind: PrimitiveKind) -> str:
        if kind in LARGE_INTEGERS:
            raise self.unsupported(
                f"'{kind.value}' does not fit in a JavaScript number; map it with type_mappings (e.g. to bigint or string)"
            )
        return super().render_primitive(kind)

    def render_optional(self, inner: str) -> str:
        return f"{inner} | null"

    def render_list(self, inner: str) -> str:
        if " " in inner and not inner.startswith(("{", "[", "Record<")):
            return f"({inner})[]"
        return f"{inner}[]"

    def render_map(self, key: str, value: str) -> str:
        return f"Record<{key}, {value}>"

    def render_tuple(self, elements: list[str]) -> str:
        return f"[{', '.join(elements)}]"

    def render_imports(self, module_imports: dict[str, set[str]]) -> list[str]:
        lines = []
        for module in sorted(module_imports):
            names = ", ".join(sorted(self.type_name(n) for n in module_imports[module]))
            target = self.module_filename(module).removesuffix(f".{self.FILE_EXTENSION}")
            lines.append(f'import type {{ {names} }} from "./{target}";')
        return lines

    # Definitions

    def render_struct(self, struct: StructDef) -> str:
        lines = self.doc_lines(struct.doc)
        members = self._members([f for f in struct.wire_fields if not f.flatten], "\t")
        flattened = [self._flattened(f) for f in struct.wire_fields if f.flatten]
        if flattened:
            lines.append(f"export type {self._declared_name(struct)} = {{")
            lines.extend(members)
            lines.append("}" + "".join(f" & {t}" for t in flattened) + ";")
        else:
            lines.append(f"export interface {self._declared_name(struct)} {{")
            lines.extend(members)
            lines.append("}")
        return "\n".join(lines)

    def render_enum(self, enum: EnumDef) -> str:
        lines = self.doc_lines(enum.doc)
        variants = enum.wire_variants

        if enum.is_unit_only and enum.strategy.kind == StrategyKind.EXTERNAL and variants:
            lines.append(f"export enum {self._declared_name(enum)} {{")
            for variant in variants:
                lines.extend(self.doc_lines(variant.doc, "\t"))
                lines.append(f"\t{self.escape_identifier(variant.name)} = {json.dumps(variant.wire_name)},")
            lines.append("}")
            return "\n".join(lines)

        if not variants:
            lines.append(f"export type {self._declared_name(enum)} = never;")
            return "\n".join(lines)

        lines.append(f"export type {self._declared_name(enum)} = ")
        for variant in variants:
            lines.extend(self.doc_lines(variant.doc, "\t"))
            lines.append(f"\t| {self._variant_member(enum, variant)}")
        lines[-1] += ";"
        return "\n".join(lines)

    def render_alias(self, alias: AliasDef) -> str:
        lines = self.doc_lines(alias.doc)
        lines.append(f"export type {self._declared_name(alias)} = {self.render_type_expr(alias.target)};")
        return "\n".join(lines)

    def render_const(self, const: ConstDef) -> str:
        lines = self.doc_lines(const.doc)
        value = json.dumps(const.value)
        lines.append(f"export const {self.escape_identifier(const.name)}: {self.render_type_expr(const.type_expr)} = {value};")
        return "\n".join(lines)

    # Helpers

    def _declared_name(self, definition: TypeDefinition) -> str:
        name = self.escape_identifier(self.type_name(definition.name))
        if definition.generic_params:
            return f"{name}<{', '.join(definition.generic_names)}>"
        return name

    @staticmethod
    def _property(name: str) -> str:
        return name if is_identifier(name) else json.dumps(name)

    def _member(self, f: FieldDef) -> str:
        optional = "?" if f.may_be_absent else ""
        return f"{self._property(f.wire_name)}{optional}: {self.field_type(f)}"

    def _members(self, fields: list[FieldDef], indent: str) -> list[str]:
        lines = []
        for f in fields:
            lines.extend(self.doc_lines(f.doc, indent))
            lines.append(f"{indent}{self._member(f)};")
        return lines

    def _flattened(self, f: FieldDef) -> str:
        if f.is_optional:
            return f"Partial<{self.render_type_expr(f.type_expr.inner)}>"
        return self.field_type(f)

    def _inline_object(self, fields: tuple[FieldDef, ...], leading: list[str] | None = None) -> str:
        members = list(leading or [])
        members.extend(self._member(f) for f in fields if not f.skip and not f.flatten)
        flattened = [self._flattened(f) for f in fields if not f.skip and f.flatten]
        if not members:
            return " & ".join(flattened) if flattened else "{}"
        body = "{ " + "; ".join(members) + " }"
        return " & ".join([body, *flattened]) if flattened else body

    def _payload(self, variant: VariantDef) -> str:
        shape = variant.shape
        if isinstance(shape, StructShape):
            return self._inline_object(shape.fields)
        if isinstance(shape, TupleShape):
            rendered = [self.render_type_expr(e) for e in shape.elements]
            return rendered[0] if len(rendered) == 1 else self.render_tuple(rendered)
        return "null"

    def _variant_member(self, enum: EnumDef, variant: VariantDef) -> str:
        strategy = enum.strategy
        wire = json.dumps(variant.wire_name)

        if strategy.kind == StrategyKind.EXTERNAL:
            if variant.is_unit:
                return wire
            return f"{{ {self._property(variant.wire_name)}: {self._payload(variant)} }}"

        if strategy.kind == StrategyKind.INTERNAL:
            tag = f"{self._property(strategy.tag)}: {wire}"
            if isinstance(variant.shape, StructShape):
                return self._inline_object(variant.shape.fields, [tag])
            if variant.newtype is not None:
                return f"({{ {tag} }} & {self.render_type_expr(variant.newtype)})"
            return f"{{ {tag} }}"

        if strategy.kind == StrategyKind.ADJACENT:
            tag = f"{self._property(strategy.tag)}: {wire}"
            if variant.is_unit:
                return f"{{ {tag} }}"
            return f"{{ {tag}; {self._property(strategy.content)}: {self._payload(variant)} }}"

        return self._payload(variant)
