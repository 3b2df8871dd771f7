"""
Scala code generation backend.

Structs become case classes and every enum becomes a sealed trait with its
variants in the companion object, which also records the tag and content
keys. Adjacent payloads are named after the content key; internal variants
must be structs, and untagged enums or external variants with data are
refused. Type aliases, including the unsigned integer aliases Scala lacks,
live in the package object.
"""

from __future__ import annotations

from typing import Any

from ...utils import is_identifier
from ..analyzer.ir_nodes import (
    AliasDef,
    EnumDef,
    FieldDef,
    PrimitiveKind,
    StrategyKind,
    StructDef,
    StructShape,
    TypeDefinition,
    VariantDef,
)
from ..config import ScalaConfig
from .base import CodeBackend

UNSIGNED_ALIASES = {
    "UByte": "Byte",
    "UShort": "Short",
    "UInt": "Int",
    "ULong": "Long",
}


class ScalaBackend(CodeBackend):
    """Scala code generation backend."""

    BACKEND_ID = "scala"
    FILE_EXTENSION = "scala"

    # The package object holds every alias, so one file per package
    SUPPORTS_MULTI_FILE = False

    RESERVED_WORDS = frozenset(
        {
            "abstract", "case", "catch", "class", "def", "do", "else", "extends", "false", "final",
            "finally", "for", "forSome", "if", "implicit", "import", "lazy", "match", "new", "null",
            "object", "override", "package", "private", "protected", "return", "sealed", "super",
            "this", "throw", "trait", "try", "true", "type", "val", "var", "while", "with", "yield",
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

    backend_config: ScalaConfig

    def reset(self) -> None:
        super().reset()
        self._aliases: list[str] = []
        self._unsigned: set[str] = set()

    def escape_identifier(self, name: str) -> str:
        if name in self.RESERVED_WORDS or not is_identifier(name):
            return f"`{name}`"
        return name

    def render_primitive(self, kind: PrimitiveKind) -> str:
        if kind == PrimitiveKind.DATETIME:
            raise self.unsupported("Scala has no standard date-time wire type; configure a type mapping")
        rendered = super().render_primitive(kind)
        if rendered in UNSIGNED_ALIASES:
            self._unsigned.add(rendered)
        return rendered

    def render_optional(self, inner: str) -> str:
        return f"Option[{inner}]"

    def render_list(self, inner: str) -> str:
        return f"Vector[{inner}]"

    def render_map(self, key: str, value: str) -> str:
        return f"Map[{key}, {value}]"

    def render_tuple(self, elements: list[str]) -> str:
        return f"({', '.join(elements)})"

    def render_named(self, name: str, args: list[str]) -> str:
        return f"{name}[{', '.join(args)}]" if args else name

    def header_context(self) -> dict[str, Any]:
        parent, _, last = self.backend_config.package.rpartition(".")
        aliases = [f"\ttype {name} = {UNSIGNED_ALIASES[name]}" for name in sorted(self._unsigned)]
        aliases.extend(self._aliases)
        return {"parent_package": parent, "package": last, "package_aliases": aliases}

    def render_file_footer(self) -> str:
        return "}\n"

    # Definitions

    def render_struct(self, struct: StructDef) -> str:
        if any(f.flatten for f in struct.wire_fields):
            raise self.unsupported("flattened fields have no case class equivalent")
        lines = self.doc_lines(struct.doc)
        fields = struct.wire_fields
        if not fields:
            lines.append(f"class {self._declared_name(struct)} extends Serializable")
            return "\n".join(lines)
        lines.append(f"case class {self._declared_name(struct)} (")
        lines.extend(self._parameters(fields, "\t"))
        lines.append(")")
        return "\n".join(lines)

    def render_enum(self, enum: EnumDef) -> str:
        strategy = enum.strategy
        if strategy.kind == StrategyKind.UNTAGGED:
            raise self.unsupported("untagged enums carry no discriminator for a sealed trait to decode")
        if strategy.kind == StrategyKind.EXTERNAL and not enum.is_unit_only:
            raise self.unsupported("externally tagged variants with data have no sealed trait encoding")

        name = self.escape_identifier(enum.name)
        generics = enum.generic_names
        parent = self.render_named(name, generics)
        nothing_parent = self.render_named(name, ["Nothing" for _ in generics])
        declared = self.render_named(name, [f"+{g}" for g in generics])

        extra: list[str] = []
        lines = self.doc_lines(enum.doc)
        lines.append(f"sealed trait {declared} {{")
        lines.append("\tdef serialName: String")
        lines.append("}")
        lines.append(f"object {name} {{")
        if strategy.tag is not None:
            lines.append(f'\tval TagKey: String = "{strategy.tag}"')
        if strategy.content is not None:
            lines.append(f'\tval ContentKey: String = "{strategy.content}"')
        for variant in enum.wire_variants:
            lines.extend(self.doc_lines(variant.doc, "\t"))
            lines.extend(self._variant(enum, variant, parent, nothing_parent, extra))
        lines.append("}")
        return "\n\n".join([*extra, "\n".join(lines)])

    def render_alias(self, alias: AliasDef) -> str:
        lines = self.doc_lines(alias.doc, "\t")
        lines.append(f"\ttype {self._declared_name(alias)} = {self.render_type_expr(alias.target)}")
        self._aliases.append("\n".join(lines))
        return ""

    # Helpers

    def _variant(
        self, enum: EnumDef, variant: VariantDef, parent: str, nothing_parent: str, extra: list[str]
    ) -> list[str]:
        class_name = self.escape_identifier(variant.name)
        body = [f'\t\tval serialName: String = "{variant.wire_name}"', "\t}"]
        if variant.is_unit:
            return [f"\tcase object {class_name} extends {nothing_parent} {{", *body]

        declared = self.render_named(class_name, [f"+{g}" for g in enum.generic_names])
        if enum.strategy.kind == StrategyKind.ADJACENT:
            # The payload sits under the content key, next to the tag
            content = self.escape_identifier(enum.strategy.content)
            payload = self._adjacent_payload(enum, variant, extra)
            return [f"\tcase class {declared}({content}: {payload}) extends {parent} {{", *body]

        if not isinstance(variant.shape, StructShape):
            raise self.unsupported(
                f"variant '{variant.name}' merges its payload with the tag object, which a case class cannot express"
            )
        fields = tuple(f for f in variant.shape.fields if not f.skip)
        if any(f.flatten for f in fields):
            raise self.unsupported("flattened fields have no case class equivalent")
        lines = [f"\tcase class {declared} ("]
        lines.extend(self._parameters(fields, "\t\t"))
        lines.append(f"\t) extends {parent} {{")
        return lines + body

    def _adjacent_payload(self, enum: EnumDef, variant: VariantDef, extra: list[str]) -> str:
        """Type of an adjacent variant's content; struct variants get a named ``...Inner`` case class."""
        shape = variant.shape
        if isinstance(shape, StructShape):
            inner = StructDef(
                name=f"{enum.name}{variant.name}Inner",
                module=enum.module,
                generic_params=enum.generic_params,
                fields=shape.fields,
                span=enum.span,
            )
            extra.append(self.render_struct(inner))
            return self._declared_name(inner)
        elements = [self.render_type_expr(e) for e in shape.elements]
        return elements[0] if len(elements) == 1 else self.render_tuple(elements)

    def _declared_name(self, definition: TypeDefinition) -> str:
        return self.render_named(self.escape_identifier(definition.name), definition.generic_names)

    def _parameters(self, fields: tuple[FieldDef, ...], indent: str) -> list[str]:
        lines = []
        for i, f in enumerate(fields):
            lines.extend(self.doc_lines(f.doc, indent))
            rendered = self.field_type(f)
            if f.is_optional:
                rendered += " = None"
            comma = "," if i < len(fields) - 1 else ""
            lines.append(f"{indent}{self.escape_identifier(f.wire_name)}: {rendered}{comma}")
        return lines
