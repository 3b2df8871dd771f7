"""
Swift code generation backend.

Structs become ``Codable`` structs. Enums carrying data get hand-written
``init(from:)`` / ``encode(to:)`` implementations that reproduce the serde
tagging strategy, since Swift's synthesized enum coding does not match it.
"""

from __future__ import annotations

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
from ..config import SwiftConfig
from .base import CodeBackend

CODABLE_VOID = """public struct CodableVoid: Codable, Equatable {
\tpublic init() {}

\tpublic init(from decoder: Decoder) throws {
\t\t_ = try decoder.singleValueContainer().decodeNil()
\t}

\tpublic func encode(to encoder: Encoder) throws {
\t\tvar container = encoder.singleValueContainer()
\t\ttry container.encodeNil()
\t}
}"""


class SwiftBackend(CodeBackend):
    """Swift code generation backend."""

    BACKEND_ID = "swift"
    FILE_EXTENSION = "swift"

    RESERVED_WORDS = frozenset(
        {
            "associatedtype", "class", "deinit", "enum", "extension", "fileprivate", "func",
            "import", "init", "inout", "internal", "let", "open", "operator", "private", "protocol",
            "public", "rethrows", "static", "struct", "subscript", "typealias", "var", "break",
            "case", "continue", "default", "defer", "do", "else", "fallthrough", "for", "guard",
            "if", "in", "repeat", "return", "switch", "where", "while", "as", "Any", "catch",
            "false", "is", "nil", "super", "self", "Self", "throw", "throws", "true", "try",
        }
    )

    TYPE_MAP = {
        PrimitiveKind.STRING: "String",
        PrimitiveKind.CHAR: "String",
        PrimitiveKind.BOOL: "Bool",
        PrimitiveKind.I8: "Int8",
        PrimitiveKind.I16: "Int16",
        PrimitiveKind.I32: "Int32",
        PrimitiveKind.I54: "Int64",
        PrimitiveKind.I64: "Int64",
        PrimitiveKind.ISIZE: "Int",
        PrimitiveKind.U8: "UInt8",
        PrimitiveKind.U16: "UInt16",
        PrimitiveKind.U32: "UInt32",
        PrimitiveKind.U53: "UInt64",
        PrimitiveKind.U64: "UInt64",
        PrimitiveKind.USIZE: "UInt",
        PrimitiveKind.F32: "Float",
        PrimitiveKind.F64: "Double",
        PrimitiveKind.UNIT: "CodableVoid",
        PrimitiveKind.DATETIME: "Date",
    }

    backend_config: SwiftConfig

    def reset(self) -> None:
        super().reset()
        self._needs_codable_void = False

    def escape_identifier(self, name: str) -> str:
        if name in self.RESERVED_WORDS:
            return f"`{name}`"
        return name

    def type_name(self, name: str) -> str:
        return f"{self.backend_config.prefix}{name}"

    def render_primitive(self, kind: PrimitiveKind) -> str:
        if kind == PrimitiveKind.UNIT:
            self._needs_codable_void = True
        return super().render_primitive(kind)

    def render_optional(self, inner: str) -> str:
        return f"{inner}?"

    def render_list(self, inner: str) -> str:
        return f"[{inner}]"

    def render_map(self, key: str, value: str) -> str:
        return f"[{key}: {value}]"

    def render_file_footer(self) -> str:
        return CODABLE_VOID + "\n" if self._needs_codable_void else ""

    def doc_lines(self, doc: str, indent: str = "") -> list[str]:
        if not doc:
            return []
        return [f"{indent}/// {line}".rstrip() for line in doc.split("\n")]

    # Definitions

    def render_struct(self, struct: StructDef) -> str:
        if any(f.flatten for f in struct.wire_fields):
            raise self.unsupported("flattened fields cannot be expressed with Codable")
        fields = struct.wire_fields
        lines = self.doc_lines(struct.doc)
        lines.append(f"public struct {self._declared_name(struct)}: {self._conformances(struct)} {{")

        members = [(self._identifier(f), f) for f in fields]
        for ident, f in members:
            lines.extend(self.doc_lines(f.doc, "\t"))
            lines.append(f"\tpublic let {ident}: {self._field_type(f)}")

        if any(_unescaped(ident) != f.wire_name for ident, f in members):
            lines.append("")
            lines.append("\tenum CodingKeys: String, CodingKey, Codable {")
            cases = []
            for ident, f in members:
                if _unescaped(ident) == f.wire_name:
                    cases.append(ident)
                else:
                    cases.append(f'{ident} = "{f.wire_name}"')
            lines.append("\t\tcase " + ",\n\t\t\t".join(cases))
            lines.append("\t}")

        if members:
            lines.append("")
        params = ", ".join(f"{ident}: {self._field_type(f)}" for ident, f in members)
        lines.append(f"\tpublic init({params}) {{")
        for ident, _ in members:
            lines.append(f"\t\tself.{ident} = {ident}")
        lines.append("\t}")
        lines.append("}")
        return "\n".join(lines)

    def render_enum(self, enum: EnumDef) -> str:
        if enum.is_unit_only and enum.strategy.kind == StrategyKind.EXTERNAL and enum.wire_variants:
            return self._render_string_enum(enum)

        extra: list[str] = []
        cases: list[tuple[VariantDef, str, str | None]] = []
        for variant in enum.wire_variants:
            payload = self._variant_payload(enum, variant, extra)
            cases.append((variant, self._case_name(variant), payload))

        lines = self.doc_lines(enum.doc)
        lines.append(f"public enum {self._declared_name(enum)}: {self._conformances(enum)} {{")
        for variant, case, payload in cases:
            lines.extend(self.doc_lines(variant.doc, "\t"))
            lines.append(f"\tcase {case}({payload})" if payload else f"\tcase {case}")
        lines.append("")

        kind = enum.strategy.kind
        if kind == StrategyKind.EXTERNAL:
            lines.extend(self._external_coding(enum, cases))
        elif kind == StrategyKind.UNTAGGED:
            lines.extend(self._untagged_coding(enum, cases))
        else:
            lines.extend(self._tagged_coding(enum, cases))
        lines.append("}")
        return "\n\n".join(["\n".join(lines), *extra])

    def render_alias(self, alias: AliasDef) -> str:
        lines = self.doc_lines(alias.doc)
        lines.append(f"public typealias {self._declared_name(alias, constrained=False)} = {self.render_type_expr(alias.target)}")
        return "\n".join(lines)

    # Enum coding

    def _render_string_enum(self, enum: EnumDef) -> str:
        lines = self.doc_lines(enum.doc)
        lines.append(f"public enum {self.type_name(enum.name)}: String, {self._conformances(enum)} {{")
        for variant in enum.wire_variants:
            lines.extend(self.doc_lines(variant.doc, "\t"))
            lines.append(f'\tcase {self._case_name(variant)} = "{variant.wire_name}"')
        lines.append("}")
        return "\n".join(lines)

    def _external_coding(self, enum: EnumDef, cases: list[tuple[VariantDef, str, str | None]]) -> list[str]:
        name = self.type_name(enum.name)
        keyed = [(v, c, p) for v, c, p in cases if p]
        units = [(v, c) for v, c, p in cases if not p]

        lines = ["\tprivate enum VariantKeys: String, CodingKey {"]
        lines.extend(f'\t\tcase {case} = "{variant.wire_name}"' for variant, case, _ in keyed)
        lines += ["\t}", "", "\tpublic init(from decoder: Decoder) throws {"]
        if units:
            lines.append("\t\tif let single = try? decoder.singleValueContainer(), let name = try? single.decode(String.self) {")
            lines.append("\t\t\tswitch name {")
            for variant, case in units:
                lines += [f'\t\t\tcase "{variant.wire_name}":', f"\t\t\t\tself = .{case}", "\t\t\t\treturn"]
            lines += ["\t\t\tdefault:", "\t\t\t\tbreak", "\t\t\t}", "\t\t}"]
        if keyed:
            lines.append("\t\tlet container = try decoder.container(keyedBy: VariantKeys.self)")
            for _, case, payload in keyed:
                lines += [
                    f"\t\tif let value = try container.decodeIfPresent({payload}.self, forKey: .{case}) {{",
                    f"\t\t\tself = .{case}(value)",
                    "\t\t\treturn",
                    "\t\t}",
                ]
        lines += [
            "\t\tthrow DecodingError.dataCorrupted(",
            f'\t\t\tDecodingError.Context(codingPath: decoder.codingPath, debugDescription: "Unknown variant of {name}")',
            "\t\t)",
            "\t}",
            "",
            "\tpublic func encode(to encoder: Encoder) throws {",
            "\t\tswitch self {",
        ]
        for variant, case, payload in cases:
            if payload:
                lines += [
                    f"\t\tcase .{case}(let value):",
                    "\t\t\tvar container = encoder.container(keyedBy: VariantKeys.self)",
                    f"\t\t\ttry container.encode(value, forKey: .{case})",
                ]
            else:
                lines += [
                    f"\t\tcase .{case}:",
                    "\t\t\tvar container = encoder.singleValueContainer()",
                    f'\t\t\ttry container.encode("{variant.wire_name}")',
                ]
        lines += ["\t\t}", "\t}"]
        return lines

    def _tagged_coding(self, enum: EnumDef, cases: list[tuple[VariantDef, str, str | None]]) -> list[str]:
        """Internal and adjacent tagging share the tag lookup; only the payload location differs."""
        strategy = enum.strategy
        adjacent = strategy.kind == StrategyKind.ADJACENT
        name = self.type_name(enum.name)

        lines = ["\tprivate enum TagKeys: String, CodingKey {", f'\t\tcase tag = "{strategy.tag}"']
        if adjacent:
            lines.append(f'\t\tcase content = "{strategy.content}"')
        lines += [
            "\t}",
            "",
            "\tpublic init(from decoder: Decoder) throws {",
            "\t\tlet container = try decoder.container(keyedBy: TagKeys.self)",
            "\t\tlet tag = try container.decode(String.self, forKey: .tag)",
            "\t\tswitch tag {",
        ]
        for variant, case, payload in cases:
            lines.append(f'\t\tcase "{variant.wire_name}":')
            if not payload:
                lines.append(f"\t\t\tself = .{case}")
            elif adjacent:
                lines.append(f"\t\t\tself = .{case}(try container.decode({payload}.self, forKey: .content))")
            else:
                lines.append(f"\t\t\tself = .{case}(try {payload}(from: decoder))")
        lines += [
            "\t\tdefault:",
            "\t\t\tthrow DecodingError.dataCorruptedError(",
            f'\t\t\t\tforKey: .tag, in: container, debugDescription: "Unknown variant \\(tag) of {name}"',
            "\t\t\t)",
            "\t\t}",
            "\t}",
            "",
            "\tpublic func encode(to encoder: Encoder) throws {",
            "\t\tvar container = encoder.container(keyedBy: TagKeys.self)",
            "\t\tswitch self {",
        ]
        for variant, case, payload in cases:
            lines.append(f"\t\tcase .{case}(let value):" if payload else f"\t\tcase .{case}:")
            lines.append(f'\t\t\ttry container.encode("{variant.wire_name}", forKey: .tag)')
            if payload and adjacent:
                lines.append("\t\t\ttry container.encode(value, forKey: .content)")
            elif payload:
                lines.append("\t\t\ttry value.encode(to: encoder)")
        lines += ["\t\t}", "\t}"]
        return lines

    def _untagged_coding(self, enum: EnumDef, cases: list[tuple[VariantDef, str, str | None]]) -> list[str]:
        """Variants are tried in declaration order; the first that decodes wins."""
        name = self.type_name(enum.name)
        lines = [
            "\tpublic init(from decoder: Decoder) throws {",
            "\t\tlet container = try decoder.singleValueContainer()",
        ]
        for _, case, payload in cases:
            if payload:
                lines += [
                    f"\t\tif let value = try? container.decode({payload}.self) {{",
                    f"\t\t\tself = .{case}(value)",
                    "\t\t\treturn",
                    "\t\t}",
                ]
            else:
                lines += ["\t\tif container.decodeNil() {", f"\t\t\tself = .{case}", "\t\t\treturn", "\t\t}"]
        lines += [
            f'\t\tthrow DecodingError.dataCorruptedError(in: container, debugDescription: "No variant of {name} matches")',
            "\t}",
            "",
            "\tpublic func encode(to encoder: Encoder) throws {",
            "\t\tvar container = encoder.singleValueContainer()",
            "\t\tswitch self {",
        ]
        for _, case, payload in cases:
            if payload:
                lines += [f"\t\tcase .{case}(let value):", "\t\t\ttry container.encode(value)"]
            else:
                lines += [f"\t\tcase .{case}:", "\t\t\ttry container.encodeNil()"]
        lines += ["\t\t}", "\t}"]
        return lines

    def _variant_payload(self, enum: EnumDef, variant: VariantDef, extra: list[str]) -> str | None:
        shape = variant.shape
        if isinstance(shape, StructShape):
            inner = StructDef(
                name=f"{enum.name}{variant.name}Inner",
                module=enum.module,
                generic_params=enum.generic_params,
                metadata=enum.metadata,
                fields=shape.fields,
                span=enum.span,
            )
            extra.append(self.render_struct(inner))
            return self.render_named(self.type_name(inner.name), enum.generic_names)
        if isinstance(shape, TupleShape):
            if len(shape.elements) != 1:
                raise self.unsupported(f"tuple variant '{variant.name}' has several fields, which Codable cannot express")
            return self.render_type_expr(shape.elements[0])
        return None

    # Helpers

    def _declared_name(self, definition: TypeDefinition, constrained: bool = True) -> str:
        name = self.type_name(definition.name)
        if not definition.generic_params:
            return name
        params = [f"{g}: Codable" if constrained else g for g in definition.generic_names]
        return f"{name}<{', '.join(params)}>"

    def _conformances(self, definition: TypeDefinition) -> str:
        protocols = ["Codable"]
        for protocol in [*self.backend_config.default_decorators, *definition.decorators(self.BACKEND_ID)]:
            if protocol not in protocols:
                protocols.append(protocol)
        return ", ".join(protocols)

    def _identifier(self, f: FieldDef) -> str:
        if f.rename is not None and is_identifier(f.rename):
            return self.escape_identifier(f.rename)
        return self.escape_identifier(self.case_name(f.name))

    def _field_type(self, f: FieldDef) -> str:
        rendered = self.field_type(f)
        if f.may_be_absent and not f.is_optional:
            return f"{rendered}?"
        return rendered

    def _case_name(self, variant: VariantDef) -> str:
        return self.escape_identifier(snake_to_camel_case(variant.name))


def _unescaped(identifier: str) -> str:
    return identifier.strip("`")
