"""
Python code generation backend.

Generates pydantic v2 models. Enums carrying data become one model per
variant combined into an annotated union: discriminated on the tag for
internal and adjacent tagging, tried left to right otherwise.
"""

from __future__ import annotations

import collections
import json
import keyword
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
    TypeExpr,
    VariantDef,
)
from .base import CodeBackend

# BaseModel attributes a field must not shadow
MODEL_ATTRIBUTES = frozenset(
    {
        "model_config", "model_fields", "model_computed_fields", "model_extra", "model_fields_set",
        "model_construct", "model_copy", "model_dump", "model_dump_json", "model_json_schema",
        "model_parametrized_name", "model_post_init", "model_rebuild", "model_validate",
        "model_validate_json", "model_validate_strings", "dict", "json", "copy", "parse_obj",
        "parse_raw", "parse_file", "from_orm", "construct", "schema", "schema_json", "validate",
        "update_forward_refs",
    }
)

STDLIB_MODULES = {"__future__", "datetime", "enum", "typing"}

INDENT = "    "


class PythonBackend(CodeBackend):
    """Python (pydantic v2) code generation backend."""

    BACKEND_ID = "python"
    FILE_EXTENSION = "py"
    FIELD_CASE = "snake"
    COMMENT_PREFIX = "#"
    BLOCK_SEPARATOR = "\n\n\n"

    # Module-level unions are evaluated eagerly, so referenced models come first
    DEPENDENCY_ORDER = True

    RESERVED_WORDS = frozenset(keyword.kwlist) | MODEL_ATTRIBUTES

    TYPE_MAP = {
        PrimitiveKind.STRING: "str",
        PrimitiveKind.CHAR: "str",
        PrimitiveKind.BOOL: "bool",
        PrimitiveKind.I8: "int",
        PrimitiveKind.I16: "int",
        PrimitiveKind.I32: "int",
        PrimitiveKind.I54: "int",
        PrimitiveKind.I64: "int",
        PrimitiveKind.ISIZE: "int",
        PrimitiveKind.U8: "int",
        PrimitiveKind.U16: "int",
        PrimitiveKind.U32: "int",
        PrimitiveKind.U53: "int",
        PrimitiveKind.U64: "int",
        PrimitiveKind.USIZE: "int",
        PrimitiveKind.F32: "float",
        PrimitiveKind.F64: "float",
        PrimitiveKind.UNIT: "None",
        PrimitiveKind.DATETIME: "datetime",
    }

    def reset(self) -> None:
        super().reset()
        self.imports.add(("__future__", "annotations"))
        self._type_vars: set[str] = set()

    def render_primitive(self, kind: PrimitiveKind) -> str:
        if kind == PrimitiveKind.DATETIME:
            self.imports.add(("datetime", "datetime"))
        return super().render_primitive(kind)

    def render_optional(self, inner: str) -> str:
        return f"{inner} | None"

    def render_list(self, inner: str) -> str:
        return f"list[{inner}]"

    def render_map(self, key: str, value: str) -> str:
        return f"dict[{key}, {value}]"

    def render_tuple(self, elements: list[str]) -> str:
        return f"tuple[{', '.join(elements)}]"

    def render_named(self, name: str, args: list[str]) -> str:
        return f"{name}[{', '.join(args)}]" if args else name

    def header_context(self) -> dict[str, Any]:
        return {"type_vars": sorted(self._type_vars)}

    def render_imports(self, module_imports: dict[str, set[str]]) -> list[str]:
        """Assemble import statements: ``__future__``, stdlib, third party, then sibling modules."""
        import_groups: dict[str, set[str]] = collections.defaultdict(set)
        for module, name in self.imports:
            import_groups[module].add(name)
        if self._type_vars:
            import_groups["typing"].add("TypeVar")

        stdlib_groups = {m: import_groups[m] for m in import_groups if m in STDLIB_MODULES and m != "__future__"}
        third_party_groups = {m: import_groups[m] for m in import_groups if m not in STDLIB_MODULES}

        sections = []
        if "__future__" in import_groups:
            sections.append([f"from __future__ import {', '.join(sorted(import_groups['__future__']))}"])
        for groups in (stdlib_groups, third_party_groups):
            if groups:
                sections.append([f"from {m} import {', '.join(sorted(groups[m]))}" for m in sorted(groups)])
        if module_imports:
            local = []
            for module in sorted(module_imports):
                stem = self.module_filename(module).removesuffix(".py")
                local.append(f"from .{stem} import {', '.join(sorted(module_imports[module]))}")
            sections.append(local)

        assembled: list[str] = []
        for section in sections:
            if assembled:
                assembled.append("")
            assembled.extend(section)
        return assembled

    def doc_lines(self, doc: str, indent: str = "") -> list[str]:
        """Render a doc string as a docstring."""
        if not doc:
            return []
        doc = doc.replace('"""', '\\"\\"\\"')
        if "\n" not in doc:
            return [f'{indent}"""{doc}"""']
        lines = [f'{indent}"""{doc.splitlines()[0]}']
        lines.extend(f"{indent}{line}".rstrip() for line in doc.splitlines()[1:])
        lines.append(f'{indent}"""')
        return lines

    def field_identifier(self, field: FieldDef) -> str:
        # rename_all keeps snake_case attributes; an explicit rename is kept verbatim
        if field.has_explicit_rename and is_identifier(field.wire_name):
            name = field.wire_name
        else:
            name = self.case_name(field.name)
        # Leading underscores would make pydantic treat the field as private
        return self.escape_identifier(name.lstrip("_") or "field")

    # Definitions

    def render_struct(self, struct: StructDef) -> str:
        bases: list[str] = []
        extra_allowed = False
        for f in struct.wire_fields:
            if not f.flatten:
                continue
            target = f.type_expr.inner if isinstance(f.type_expr, OptionalType) else f.type_expr
            if isinstance(target, MapType):
                extra_allowed = True
            elif isinstance(target, Reference):
                bases.append(self.render_type_expr(target))
            else:
                raise self.unsupported(f"flattened field '{f.name}' must be a struct or a map")
        fields = tuple(f for f in struct.wire_fields if not f.flatten)
        return self._model(
            self.type_name(struct.name),
            fields,
            generics=struct.generic_names,
            bases=bases,
            doc=struct.doc,
            config={"extra": '"allow"'} if extra_allowed else None,
        )

    def render_enum(self, enum: EnumDef) -> str:
        kind = enum.strategy.kind
        variants = enum.wire_variants
        if not variants or (enum.is_unit_only and kind == StrategyKind.EXTERNAL):
            return self._render_str_enum(enum)

        self._type_vars.update(enum.generic_names)
        blocks: list[str] = []
        members: list[str] = []
        for variant in variants:
            if kind == StrategyKind.EXTERNAL:
                member = self._external_member(enum, variant, blocks)
            elif kind == StrategyKind.UNTAGGED:
                member = self._untagged_member(enum, variant, blocks)
            else:
                member = self._tagged_member(enum, variant, blocks)
            members.append(member)

        name = self.type_name(enum.name)
        lines = [f"# {line}".rstrip() for line in enum.doc.split("\n")] if enum.doc else []
        if len(members) == 1:
            lines.append(f"{name} = {members[0]}")
        else:
            self.imports.update({("typing", "Annotated"), ("typing", "Union"), ("pydantic", "Field")})
            if kind in (StrategyKind.INTERNAL, StrategyKind.ADJACENT):
                selector = f"discriminator={json.dumps(self._tag_identifier(enum.strategy.tag))}"
            else:
                selector = 'union_mode="left_to_right"'
            lines.append(f"{name} = Annotated[")
            lines.append(f"{INDENT}Union[{', '.join(members)}],")
            lines.append(f"{INDENT}Field({selector}),")
            lines.append("]")
        blocks.append("\n".join(lines))
        return "\n\n\n".join(blocks)

    def render_alias(self, alias: AliasDef) -> str:
        self._type_vars.update(alias.generic_names)
        lines = [f"# {line}".rstrip() for line in alias.doc.split("\n")] if alias.doc else []
        lines.append(f"{self.type_name(alias.name)} = {self.render_type_expr(alias.target)}")
        return "\n".join(lines)

    def render_const(self, const: ConstDef) -> str:
        value = const.value
        literal = repr(value) if isinstance(value, (bool, int, float)) else json.dumps(value)
        lines = [f"# {line}".rstrip() for line in const.doc.split("\n")] if const.doc else []
        lines.append(f"{const.name}: {self.render_type_expr(const.type_expr)} = {literal}")
        return "\n".join(lines)

    # Enums

    def _render_str_enum(self, enum: EnumDef) -> str:
        self.imports.add(("enum", "Enum"))
        lines = [f"class {self.type_name(enum.name)}(str, Enum):"]
        lines.extend(self.doc_lines(enum.doc, INDENT))
        for variant in enum.wire_variants:
            member = self.escape_identifier(self.case_name(variant.name).upper())
            lines.append(f"{INDENT}{member} = {json.dumps(variant.wire_name)}")
        if len(lines) == 1:
            lines.append(f"{INDENT}pass")
        return "\n".join(lines)

    def _external_member(self, enum: EnumDef, variant: VariantDef, blocks: list[str]) -> str:
        """``{"Variant": payload}`` as a single-field model; unit variants are bare strings."""
        if variant.is_unit:
            self.imports.add(("typing", "Literal"))
            return f"Literal[{json.dumps(variant.wire_name)}]"
        payload = self._payload(enum, variant, blocks)
        member = FieldDef(name=self._tag_identifier(variant.name), rename=variant.wire_name)
        name = self.variant_type_name(enum, variant)
        blocks.append(
            self._model(
                name,
                (member,),
                generics=enum.generic_names,
                doc=variant.doc,
                config={"extra": '"forbid"'},
                rendered_types={member.name: payload},
            )
        )
        return self.render_named(name, enum.generic_names)

    def _tagged_member(self, enum: EnumDef, variant: VariantDef, blocks: list[str]) -> str:
        """A model whose tag field is fixed to the variant name."""
        self.imports.add(("typing", "Literal"))
        strategy = enum.strategy
        tag_literal = json.dumps(variant.wire_name)
        tag_field = FieldDef(name=self._tag_identifier(strategy.tag), rename=strategy.tag)
        rendered_types = {tag_field.name: f"Literal[{tag_literal}]"}
        defaults = {tag_field.name: tag_literal}
        fields: tuple[FieldDef, ...] = (tag_field,)
        bases: list[str] = []
        config = None

        if strategy.kind == StrategyKind.INTERNAL:
            if isinstance(variant.shape, StructShape):
                fields += tuple(f for f in variant.shape.fields if not f.skip)
                if any(f.flatten for f in fields):
                    raise self.unsupported("flattened fields inside variants are not supported")
            elif variant.newtype is not None:
                target = self._struct_like(variant.newtype)
                if target == "map":
                    config = {"extra": '"allow"'}
                else:
                    bases.append(target)
        elif not variant.is_unit:
            content = FieldDef(name=self._tag_identifier(strategy.content), rename=strategy.content)
            rendered_types[content.name] = self._payload(enum, variant, blocks)
            fields += (content,)

        name = self.variant_type_name(enum, variant)
        blocks.append(
            self._model(
                name,
                fields,
                generics=enum.generic_names,
                bases=bases,
                doc=variant.doc,
                config=config,
                rendered_types=rendered_types,
                defaults=defaults,
            )
        )
        return self.render_named(name, enum.generic_names)

    def _untagged_member(self, enum: EnumDef, variant: VariantDef, blocks: list[str]) -> str:
        if variant.is_unit:
            return "None"
        return self._payload(enum, variant, blocks)

    def _payload(self, enum: EnumDef, variant: VariantDef, blocks: list[str]) -> str:
        """Type of a variant's payload; struct variants get a named ``...Inner`` model."""
        shape = variant.shape
        if isinstance(shape, StructShape):
            name = self.inner_type_name(enum, variant)
            if any(f.flatten for f in shape.fields if not f.skip):
                raise self.unsupported("flattened fields inside variants are not supported")
            fields = tuple(f for f in shape.fields if not f.skip)
            blocks.append(self._model(name, fields, generics=enum.generic_names))
            return self.render_named(name, enum.generic_names)
        rendered = [self.render_type_expr(e) for e in shape.elements]
        return rendered[0] if len(rendered) == 1 else self.render_tuple(rendered)

    def _struct_like(self, expr: TypeExpr) -> str:
        """Base model for an internally tagged newtype, or ``"map"`` when it wraps a map."""
        if isinstance(expr, MapType):
            return "map"
        if isinstance(expr, Reference) and self.ir is not None:
            target = self.ir.lookup(expr.name)
            if isinstance(target, AliasDef) and isinstance(target.target, MapType):
                return "map"
            if isinstance(target, (StructDef, AliasDef)):
                return self.render_type_expr(expr)
        raise self.unsupported("internally tagged newtype variants must wrap a struct or a map")

    def _tag_identifier(self, key: str | None) -> str:
        return self.escape_identifier(self.case_name(key or "").lstrip("_") or "tag")

    # Models

    def _model(
        self,
        name: str,
        fields: tuple[FieldDef, ...],
        generics: list[str] | None = None,
        bases: list[str] | None = None,
        doc: str = "",
        config: dict[str, str] | None = None,
        rendered_types: dict[str, str] | None = None,
        defaults: dict[str, str] | None = None,
    ) -> str:
        """
        Render a pydantic model.

        Args:
            name: Class name
            fields: Fields in declaration order
            generics: Type parameters, declared through ``Generic``
            bases: Parent models; ``BaseModel`` when empty
            doc: Class docstring
            config: Extra ``ConfigDict`` entries, values already rendered
            rendered_types: Field name -> literal annotation, bypassing the IR type
            defaults: Field name -> literal default value
        """
        rendered_types = rendered_types or {}
        defaults = defaults or {}
        generics = generics or []
        self._type_vars.update(generics)

        parents = list(bases) if bases else ["BaseModel"]
        if not bases:
            self.imports.add(("pydantic", "BaseModel"))
        if generics:
            self.imports.add(("typing", "Generic"))
            parents.append(f"Generic[{', '.join(generics)}]")

        body: list[str] = []
        config = dict(config or {})
        attributes = []
        for f in fields:
            ident = self.field_identifier(f) if f.name not in rendered_types else f.name
            annotation = rendered_types.get(f.name) or self.field_type(f)
            default = defaults.get(f.name)
            if default is None and f.may_be_absent:
                default = "None"
                if not f.is_optional:
                    annotation = self.render_optional(annotation)
            if ident != f.wire_name:
                self.imports.add(("pydantic", "Field"))
                config["populate_by_name"] = "True"
                args = [f"alias={json.dumps(f.wire_name)}"]
                if default is not None:
                    args.insert(0, f"default={default}")
                attributes.append(f"{ident}: {annotation} = Field({', '.join(args)})")
            elif default is not None:
                attributes.append(f"{ident}: {annotation} = {default}")
            else:
                attributes.append(f"{ident}: {annotation}")

        body.extend(self.doc_lines(doc, INDENT))
        if config:
            self.imports.add(("pydantic", "ConfigDict"))
            entries = ", ".join(f"{k}={v}" for k, v in sorted(config.items()))
            if body:
                body.append("")
            body.append(f"{INDENT}model_config = ConfigDict({entries})")
            if attributes:
                body.append("")
        body.extend(f"{INDENT}{a}" for a in attributes)
        if not body:
            body.append(f"{INDENT}pass")
        return "\n".join([f"class {name}({', '.join(parents)}):", *body])
