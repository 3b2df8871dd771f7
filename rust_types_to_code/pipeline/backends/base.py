"""
Base class for code generation backends.

Defines the interface that all language-specific backends must implement.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import jinja2

from ...utils import is_identifier, sanitize_identifier, snake_to_camel_case, snake_to_pascal_case
from ..analyzer.ir_nodes import (
    AliasDef,
    ConstDef,
    EnumDef,
    FieldDef,
    GenericParamRef,
    ListType,
    MapType,
    Opaque,
    OptionalType,
    Primitive,
    PrimitiveKind,
    Reference,
    StructDef,
    TupleType,
    TypeDefinition,
    TypeExpr,
    VariantDef,
)
from ..analyzer.reference_resolver import ResolvedIR
from ..config import CodeGeneratorConfig
from ..errors import UnsupportedConstruct

GENERATION_COMMENT = "Generated by rust_types_to_code. Do not edit."


class CodeBackend(ABC):
    """Abstract base class for code generation backends.

    A backend instance renders one target language. It is stateful while a
    file is being produced (collected imports, current definition), so each
    rendering task owns its own instance.
    """

    # Identifier used in configuration and overrides
    BACKEND_ID: str = ""

    # File extension (also selects the template file names)
    FILE_EXTENSION: str = ""

    # Words that cannot be used verbatim as identifiers
    RESERVED_WORDS: frozenset[str] = frozenset()

    # Casing applied to field names that carry no explicit rename:
    # "preserve", "camel", "pascal" or "snake"
    FIELD_CASE: str = "preserve"

    # Emit definitions after the definitions they reference
    DEPENDENCY_ORDER: bool = False

    # Whether one buffer per source module is meaningful for this target
    SUPPORTS_MULTI_FILE: bool = True

    # Rust primitive kind -> target type
    TYPE_MAP: dict[PrimitiveKind, str] = {}

    COMMENT_PREFIX: str = "//"

    # Separator between rendered definitions
    BLOCK_SEPARATOR: str = "\n\n"

    def __init__(self, config: CodeGeneratorConfig):
        """
        Initialize the backend.

        Args:
            config: Code generation configuration
        """
        self.config = config
        self.backend_config = config.backend_config(self.BACKEND_ID)
        self.ir: ResolvedIR | None = None
        self.imports: set[tuple[str, str]] = set()
        self._current: TypeDefinition | None = None
        self._setup_templates()

    def _setup_templates(self) -> None:
        """Set up Jinja2 templates."""
        template_dir = Path(__file__).parent.parent.parent / "templates" / self.BACKEND_ID
        self.jinja_env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(str(template_dir)),
            lstrip_blocks=True,
            trim_blocks=True,
            keep_trailing_newline=True,
        )
        self.prefix_template = self.jinja_env.get_template(f"prefix.{self.FILE_EXTENSION}.jinja2")

    # Lifecycle

    def begin(self, ir: ResolvedIR) -> None:
        """Attach the resolved IR before rendering a set of files."""
        self.ir = ir
        self.reset()

    def reset(self) -> None:
        """Reset per-file state (collected imports)."""
        self.imports = set()

    # Capabilities

    def render_definition(self, definition: TypeDefinition) -> str:
        """
        Render one top-level definition.

        Args:
            definition: Resolved IR definition

        Returns:
            Target source text, without trailing newline

        Raises:
            UnsupportedConstruct: If the target cannot represent the definition
        """
        self._current = definition
        try:
            if isinstance(definition, StructDef):
                return self.render_struct(definition)
            if isinstance(definition, EnumDef):
                return self.render_enum(definition)
            if isinstance(definition, AliasDef):
                return self.render_alias(definition)
            if isinstance(definition, ConstDef):
                return self.render_const(definition)
            raise TypeError(f"unexpected definition {definition!r}")
        finally:
            self._current = None

    @abstractmethod
    def render_struct(self, struct: StructDef) -> str:
        pass

    @abstractmethod
    def render_enum(self, enum: EnumDef) -> str:
        pass

    @abstractmethod
    def render_alias(self, alias: AliasDef) -> str:
        pass

    def render_const(self, const: ConstDef) -> str:
        raise self.unsupported("constants are not supported")

    def render_primitive(self, kind: PrimitiveKind) -> str:
        """Target type for a primitive kind."""
        if kind not in self.TYPE_MAP:
            raise self.unsupported(f"the Rust type '{kind.value}' has no equivalent; configure a type mapping")
        return self.TYPE_MAP[kind]

    def render_type_expr(self, expr: TypeExpr) -> str:
        """
        Translate an IR type expression to a target type string.

        Args:
            expr: The type expression

        Returns:
            Target-language type string
        """
        if isinstance(expr, Primitive):
            override = self.config.type_override(self.BACKEND_ID, expr.kind.value)
            return override if override is not None else self.render_primitive(expr.kind)
        if isinstance(expr, OptionalType):
            return self.render_optional(self.render_type_expr(expr.inner))
        if isinstance(expr, ListType):
            return self.render_list(self.render_type_expr(expr.inner))
        if isinstance(expr, MapType):
            return self.render_map(self.render_type_expr(expr.key), self.render_type_expr(expr.value))
        if isinstance(expr, TupleType):
            return self.render_tuple([self.render_type_expr(e) for e in expr.elements])
        if isinstance(expr, GenericParamRef):
            return expr.name
        if isinstance(expr, Reference):
            override = self.config.type_override(self.BACKEND_ID, expr.name)
            if override is not None:
                return override
            return self.render_named(self.type_name(expr.name), [self.render_type_expr(a) for a in expr.args])
        if isinstance(expr, Opaque):
            override = self.config.type_override(self.BACKEND_ID, expr.raw)
            if override is not None:
                return override
            return self.render_named(expr.raw, [self.render_type_expr(a) for a in expr.args])
        raise TypeError(f"unexpected type expression {expr!r}")

    def render_optional(self, inner: str) -> str:
        return f"{inner}?"

    def render_list(self, inner: str) -> str:
        return f"List<{inner}>"

    def render_map(self, key: str, value: str) -> str:
        return f"Map<{key}, {value}>"

    def render_tuple(self, elements: list[str]) -> str:
        raise self.unsupported("tuples have no equivalent in this target")

    def render_named(self, name: str, args: list[str]) -> str:
        return f"{name}<{', '.join(args)}>" if args else name

    def render_file_header(self, module: str | None = None, module_imports: dict[str, set[str]] | None = None) -> str:
        """
        Render the file prologue from ``templates/<backend>/prefix.<ext>.jinja2``.

        Called after the body so that every import collected while rendering
        definitions is known.

        Args:
            module: Source module of the file in multi-file mode
            module_imports: Other module -> type names this file references
        """
        context = {
            "generation_comment": GENERATION_COMMENT if self.config.add_generation_comment else "",
            "comment_prefix": self.COMMENT_PREFIX,
            "imports": self.render_imports(module_imports or {}),
            "module": module,
        }
        context.update(self.header_context())
        return self.prefix_template.render(context)

    def header_context(self) -> dict[str, Any]:
        """Extra template variables for the file prologue."""
        return {}

    def render_file_footer(self) -> str:
        return ""

    def render_imports(self, module_imports: dict[str, set[str]]) -> list[str]:
        """Import lines for the prologue; ``module_imports`` holds cross-module names."""
        return []

    def escape_identifier(self, name: str) -> str:
        """Escape an identifier that collides with a reserved word."""
        if name in self.RESERVED_WORDS:
            return f"{name}_"
        return name

    def module_filename(self, module: str) -> str:
        stem = module.replace("::", "_") if module else "types"
        return f"{stem}.{self.FILE_EXTENSION}"

    def default_filename(self) -> str:
        return self.backend_config.output_file or f"types.{self.FILE_EXTENSION}"

    # Naming

    def type_name(self, name: str) -> str:
        """Target name of a user-defined type."""
        return name

    def field_identifier(self, field: FieldDef) -> str:
        """Identifier of a field: explicit rename first, else the backend casing."""
        if field.rename is not None and is_identifier(field.rename):
            return self.escape_identifier(field.rename)
        return self.escape_identifier(self.case_name(field.name))

    def case_name(self, name: str) -> str:
        name = sanitize_identifier(name)
        if self.FIELD_CASE == "camel":
            return snake_to_camel_case(name)
        if self.FIELD_CASE == "pascal":
            return snake_to_pascal_case(name) or name
        if self.FIELD_CASE == "snake":
            return _to_snake(name)
        return name

    def variant_type_name(self, enum: EnumDef, variant: VariantDef) -> str:
        """Name of the helper type synthesized for a variant payload."""
        return f"{self.type_name(enum.name)}{variant.name}"

    def inner_type_name(self, enum: EnumDef, variant: VariantDef) -> str:
        """Name of the named struct synthesized for a struct-shaped variant."""
        return f"{self.type_name(enum.name)}{variant.name}Inner"

    # Helpers

    def is_overridden(self, definition: TypeDefinition) -> bool:
        """Definitions replaced by a per-type override are not emitted."""
        return self.config.type_override(self.BACKEND_ID, definition.name) is not None

    def field_type(self, field: FieldDef) -> str:
        if self.BACKEND_ID in field.type_overrides:
            return field.type_overrides[self.BACKEND_ID]
        return self.render_type_expr(field.type_expr)

    def unsupported(self, reason: str, definition: TypeDefinition | None = None) -> UnsupportedConstruct:
        definition = definition or self._current
        name = definition.name if definition else "<unknown>"
        span = definition.span if definition else None
        return UnsupportedConstruct(name, reason, self.BACKEND_ID, span)

    def doc_lines(self, doc: str, indent: str = "") -> list[str]:
        """Render a doc string as ``/** */`` comment lines."""
        if not doc:
            return []
        lines = [f"{indent}/**"]
        lines.extend(f"{indent} * {line}".rstrip() for line in doc.split("\n"))
        lines.append(f"{indent} */")
        return lines


def _to_snake(name: str) -> str:
    out = ""
    for i, ch in enumerate(name):
        if ch.isupper() and i > 0 and (name[i - 1].islower() or name[i - 1].isdigit()):
            out += "_"
        out += ch.lower()
    return out
