"""
Kotlin code generation backend.

Generates ``kotlinx.serialization`` data classes, enum classes and sealed
class hierarchies.
"""

from __future__ import annotations

from typing import Any

from ...utils import is_identifier, snake_to_camel_case
from ..analyzer.ir_nodes import (
    AliasDef,
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
from ..config import KotlinConfig
from .base import CodeBackend


class KotlinBackend(CodeBackend):
    """Kotlin code generation backend."""

    BACKEND_ID = "kotlin"
    FILE_EXTENSION = "kt"

    RESERVED_WORDS = frozenset(
        {
            "as", "break", "class", "continue", "do", "else", "false", "for", "fun", "if", "in",
            "interface", "is", "null", "object", "package", "return", "super", "this", "throw",
            "true", "try", "typealias", "typeof", "val", "var", "when", "while",
        }
    )

    TYPE_MAP = {
        PrimitiveKind.STRING: "String",
        PrimitiveKind.CHAR: "String",
        PrimitiveKind.BOOL: "Boolean",
        PrimitiveKind.I8: "Byte",
        PrimitiveKind.I16: "Short",
        PrimitiveKind.I32: "Int",
        PrimitiveKind.ISIZE: "Int",
        PrimitiveKind.I54: "Long",
        PrimitiveKind.I64: "Long",
        PrimitiveKind.U8: "UByte",
        PrimitiveKind.U16: "UShort",
        PrimitiveKind.U32: "UInt",
        PrimitiveKind.USIZE: "UInt",
        PrimitiveKind.U53: "ULong",
        PrimitiveKind.U64: "ULong",
        PrimitiveKind.F32: "Float",
        PrimitiveKind.F64: "Double",
        PrimitiveKind.UNIT: "Unit",
    }

    backend_config: KotlinConfig

    def escape_identifier(self, name: str) -> str:
        if name in self.RESERVED_WORDS:
            return f"`{name}`"
        return name

    def type_name(self, name: str) -> str:
        return f"{self.backend_config.prefix}{name}"

    def render_primitive(self, kind: PrimitiveKind) -> str:
        if kind == PrimitiveKind.DATETIME:
            raise self.unsupported("kotlinx.serialization has no built-in serializer for date-times")
        return super().render_primitive(kind)

    def render_optional(self, inner: str) -> str:
        return f"{inner}?"

    def render_map(self, key: str, value: str) -> str:
        return f"HashMap<{key}, {value}>"

    def header_context(self) -> dict[str, Any]:
        return {"package": self.backend_config.package}

    def render_imports(self, module_imports: dict[str, set[str]]) -> list[str]:
        # Every file shares one package, so cross-module names need no import
        imports = {("kotlinx.serialization", "Serializable"), ("kotlinx.serialization", "SerialName")} | self.imports
        return [f"import {module}.{name}" for module, name in sorted(imports)]

    # Definitions

    def render_struct(self, struct: StructDef) -> str:
        if any(f.flatten for f in struct.wire_fields):
            raise self.unsupported("flattened fields cannot be expressed with kotlinx.serialization")
        lines = self.doc_lines(struct.doc)
        lines.append("@Serializable")
        fields = struct.wire_fields
        if not fields:
            if struct.generic_params:
                lines.append(f"class {self._declared_name(struct)}")
            else:
                lines.append(f"object {self.type_name(struct.name)}")
            return "\n".join(lines)
        lines.append(f"data class {self._declared_name(struct)} (")
        lines.extend(self._constructor(fields, "\t"))
        lines.append(")" + self._redacted_body(struct))
        return "\n".join(lines)

    def render_enum(self, enum: EnumDef) -> str:
        kind = enum.strategy.kind
        if kind == StrategyKind.UNTAGGED:
            raise self.unsupported("untagged enums cannot be decoded by kotlinx.serialization")
        if enum.is_unit_only and kind == StrategyKind.EXTERNAL:
            return self._render_enum_class(enum)
        if kind == StrategyKind.EXTERNAL:
            return self._render_wrapper(enum)
        return self._render_sealed(enum)

    def render_alias(self, alias: AliasDef) -> str:
        lines = self.doc_lines(alias.doc)
        target = self.render_type_expr(alias.target)
        if "JvmInline" in alias.decorators(self.BACKEND_ID):
            lines.extend(["@Serializable", "@JvmInline"])
            lines.append(f"value class {self._declared_name(alias)}(")
            lines.append(f"\tval value: {target}")
            lines.append(")")
        else:
            lines.append(f"typealias {self._declared_name(alias)} = {target}")
        return "\n".join(lines)

    # Enums

    def _render_enum_class(self, enum: EnumDef) -> str:
        lines = self.doc_lines(enum.doc)
        lines.append("@Serializable")
        lines.append(f"enum class {self.type_name(enum.name)}(val string: String) {{")
        for variant in enum.wire_variants:
            lines.extend(self.doc_lines(variant.doc, "\t"))
            lines.append(f'\t@SerialName("{variant.wire_name}")')
            lines.append(f'\t{self.escape_identifier(variant.name)}("{variant.wire_name}"),')
        lines.append("}")
        return "\n".join(lines)

    def _render_wrapper(self, enum: EnumDef) -> str:
        """External tagging: one nullable property per variant, named after the variant."""
        extra: list[str] = []
        lines = self.doc_lines(enum.doc)
        lines.append("@Serializable")
        lines.append(f"data class {self._declared_name(enum)} (")
        members = []
        for variant in enum.wire_variants:
            if variant.is_unit:
                raise self.unsupported(
                    f"unit variant '{variant.name}' cannot be mixed with data variants in an externally tagged enum"
                )
            payload = self._variant_payload(enum, variant, extra)
            member = self.doc_lines(variant.doc, "\t")
            member.append(f'\t@SerialName("{variant.wire_name}")')
            member.append(f"\tval {self.escape_identifier(snake_to_camel_case(variant.name))}: {payload}? = null")
            members.append(member)
        for i, member in enumerate(members):
            if i < len(members) - 1:
                member[-1] += ","
            lines.extend(member)
        lines.append(")")
        return "\n\n".join(["\n".join(lines), *extra])

    def _render_sealed(self, enum: EnumDef) -> str:
        """Internal and adjacent tagging: a sealed class discriminated by the tag key."""
        strategy = enum.strategy
        self.imports.add(("kotlinx.serialization", "ExperimentalSerializationApi"))
        self.imports.add(("kotlinx.serialization.json", "JsonClassDiscriminator"))

        name = self.type_name(enum.name)
        generics = enum.generic_names
        parent = f"{name}<{', '.join(generics)}>" if generics else name
        nothing_parent = f"{name}<{', '.join('Nothing' for _ in generics)}>" if generics else name

        extra: list[str] = []
        lines = self.doc_lines(enum.doc)
        lines.append("@OptIn(ExperimentalSerializationApi::class)")
        lines.append("@Serializable")
        lines.append(f'@JsonClassDiscriminator("{strategy.tag}")')
        declared = f"{name}<{', '.join(f'out {g}' for g in generics)}>" if generics else name
        lines.append(f"sealed class {declared} {{")

        for variant in enum.wire_variants:
            lines.extend(self.doc_lines(variant.doc, "\t"))
            lines.append("\t@Serializable")
            lines.append(f'\t@SerialName("{variant.wire_name}")')
            class_name = self.escape_identifier(variant.name)
            if variant.is_unit:
                lines.append(f"\tobject {class_name}: {nothing_parent}()")
                continue

            declared_variant = f"{class_name}<{', '.join(generics)}>" if generics else class_name
            if strategy.kind == StrategyKind.INTERNAL:
                if not isinstance(variant.shape, StructShape):
                    raise self.unsupported(
                        f"variant '{variant.name}' wraps a type; internally tagged newtype variants "
                        "cannot be expressed with kotlinx.serialization"
                    )
                fields = tuple(f for f in variant.shape.fields if not f.skip)
                if any(f.flatten for f in fields):
                    raise self.unsupported("flattened fields cannot be expressed with kotlinx.serialization")
                lines.append(f"\tdata class {declared_variant}(")
                lines.extend(self._constructor(fields, "\t\t"))
                lines.append(f"\t): {parent}()")
            else:
                payload = self._variant_payload(enum, variant, extra)
                content = strategy.content
                ident = content if is_identifier(content) else "content"
                lines.append(f"\tdata class {declared_variant}(")
                if ident != content:
                    lines.append(f'\t\t@SerialName("{content}")')
                lines.append(f"\t\tval {self.escape_identifier(ident)}: {payload}")
                lines.append(f"\t): {parent}()")
        lines.append("}")
        return "\n\n".join(["\n".join(lines), *extra])

    def _variant_payload(self, enum: EnumDef, variant: VariantDef, extra: list[str]) -> str:
        """Type of a variant's payload; struct variants get a named ``...Inner`` class."""
        if isinstance(variant.shape, StructShape):
            inner = StructDef(
                name=f"{enum.name}{variant.name}Inner",
                module=enum.module,
                generic_params=enum.generic_params,
                fields=variant.shape.fields,
                span=enum.span,
            )
            extra.append(self.render_struct(inner))
            return self.render_named(self.type_name(inner.name), enum.generic_names)
        if isinstance(variant.shape, TupleShape) and len(variant.shape.elements) == 1:
            return self.render_type_expr(variant.shape.elements[0])
        raise self.unsupported(f"tuple variant '{variant.name}' has several fields, which Kotlin cannot express")

    # Helpers

    def _declared_name(self, definition: TypeDefinition) -> str:
        return self.render_named(self.type_name(definition.name), definition.generic_names)

    def _constructor(self, fields: tuple[FieldDef, ...], indent: str) -> list[str]:
        lines = []
        for i, f in enumerate(fields):
            lines.extend(self.doc_lines(f.doc, indent))
            ident = f.rename if f.rename is not None and is_identifier(f.rename) else self.case_name(f.name)
            if ident != f.wire_name:
                lines.append(f'{indent}@SerialName("{f.wire_name}")')
            rendered = self.field_type(f)
            if f.is_optional:
                rendered += " = null"
            elif f.may_be_absent:
                rendered += "? = null"
            comma = "," if i < len(fields) - 1 else ""
            lines.append(f"{indent}val {self.escape_identifier(ident)}: {rendered}{comma}")
        return lines

    def _redacted_body(self, definition: TypeDefinition) -> str:
        if not definition.is_redacted:
            return ""
        return f' {{\n\toverride fun toString(): String = "{self.type_name(definition.name)}"\n}}'
