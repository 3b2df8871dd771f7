"""
Global reference resolver.

Merges the per-file IR into one flat symbol table keyed by type name, turns
``Named`` references into resolved ``Reference`` nodes (or ``Opaque``
passthroughs when nothing matches) and checks generic arity.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field, replace

import structlog

from ..config import SUPPORTED_TARGETS, CodeGeneratorConfig
from ..errors import (
    Diagnostic,
    DuplicateDefinitionError,
    GenericArityError,
    ShapeError,
    TypeGenerationError,
)
from .ir_nodes import (
    AliasDef,
    EnumDef,
    MapType,
    ModuleIR,
    Named,
    Opaque,
    Reference,
    StrategyKind,
    StructDef,
    TypeDefinition,
    TypeExpr,
    definition_type_exprs,
    iter_type_exprs,
    map_definition_types,
)

logger = structlog.get_logger()


@dataclass
class ResolvedIR:
    """The fully resolved IR shared read-only by every backend."""

    # Modules in discovery order, identical re-declarations included
    modules: list[ModuleIR] = field(default_factory=list)

    # Type name -> first resolved definition
    symbols: dict[str, TypeDefinition] = field(default_factory=dict)

    # Type name -> names it references directly (cycles allowed)
    references: dict[str, frozenset[str]] = field(default_factory=dict)

    warnings: list[Diagnostic] = field(default_factory=list)

    def definitions(self) -> Iterator[TypeDefinition]:
        """Each distinct definition once, in declaration order."""
        seen: set[str] = set()
        for module in self.modules:
            for definition in module.definitions:
                if definition.name not in seen:
                    seen.add(definition.name)
                    yield definition

    def lookup(self, name: str) -> TypeDefinition | None:
        return self.symbols.get(name)


class GlobalResolver:
    """Resolves cross-file references over the complete set of modules.

    All errors are collected into :attr:`diagnostics`; the first one is
    raised once resolution has looked at every definition.
    """

    def __init__(self, config: CodeGeneratorConfig | None = None):
        self.config = config or CodeGeneratorConfig()
        self.diagnostics: list[Diagnostic] = []
        self.warnings: list[Diagnostic] = []
        self._errors: list[TypeGenerationError] = []
        self._symbols: dict[str, TypeDefinition] = {}

    def resolve(self, modules: list[ModuleIR]) -> ResolvedIR:
        """
        Resolve references across modules.

        Args:
            modules: Per-file IR in discovery order

        Returns:
            ResolvedIR with the symbol table and reference graph

        Raises:
            DuplicateDefinitionError: If two definitions share a name but not a shape
            GenericArityError: If a generic type is referenced with the wrong argument count
            ShapeError: If an internally tagged variant wraps a non-struct definition
        """
        duplicates = self._build_symbol_table(modules)
        if self._errors:
            self._abort()

        resolved_modules = []
        for module in modules:
            definitions = tuple(self._resolve_definition(d) for d in module.definitions)
            resolved_modules.append(replace(module, definitions=definitions))

        symbols: dict[str, TypeDefinition] = {}
        for module in resolved_modules:
            for definition in module.definitions:
                symbols.setdefault(definition.name, definition)

        for definition in symbols.values():
            if isinstance(definition, EnumDef) and definition.strategy.kind == StrategyKind.INTERNAL:
                self._check_internal_newtypes(definition, symbols)

        if self._errors:
            self._abort()

        references = {name: _referenced_names(definition) for name, definition in symbols.items()}
        logger.info(
            "definitions_resolved",
            definitions=len(symbols),
            duplicates=duplicates,
            warnings=len(self.warnings),
        )
        return ResolvedIR(
            modules=resolved_modules,
            symbols=symbols,
            references=references,
            warnings=list(self.warnings),
        )

    def _abort(self) -> None:
        logger.debug("resolution_failed", errors=len(self._errors))
        raise self._errors[0]

    def _record(self, error: TypeGenerationError) -> None:
        self._errors.append(error)
        self.diagnostics.append(error.to_diagnostic())

    def _build_symbol_table(self, modules: list[ModuleIR]) -> int:
        duplicates = 0
        for module in modules:
            for definition in module.definitions:
                existing = self._symbols.get(definition.name)
                if existing is None:
                    self._symbols[definition.name] = definition
                elif existing == definition:
                    duplicates += 1
                    logger.debug(
                        "duplicate_definition_merged",
                        name=definition.name,
                        first=str(existing.span),
                        second=str(definition.span),
                    )
                else:
                    self._record(DuplicateDefinitionError(definition.name, existing.span, definition.span))
        return duplicates

    def _resolve_definition(self, definition: TypeDefinition) -> TypeDefinition:
        def resolve_expr(expr: TypeExpr) -> TypeExpr:
            if not isinstance(expr, Named):
                return expr
            target = self._symbols.get(expr.name)
            if target is None:
                self._unresolved(expr, definition)
                return Opaque(raw=expr.name, args=expr.args)
            expected = len(target.generic_params)
            if expected != len(expr.args):
                self._record(
                    GenericArityError(expr.name, expected, len(expr.args), definition.span, definition.name)
                )
            return Reference(name=expr.name, args=expr.args)

        return map_definition_types(definition, resolve_expr)

    def _unresolved(self, expr: Named, definition: TypeDefinition) -> None:
        message = f"unknown type '{expr.path or expr.name}' in '{definition.name}' is passed through unchanged"
        if self._has_override(expr.name):
            return
        if self.config.strict_mode:
            self._record(TypeGenerationError(message, definition.span.file, definition.span.start_line))
        else:
            self.warnings.append(Diagnostic.warning(message, definition.span))

    def _has_override(self, name: str) -> bool:
        return any(self.config.type_override(backend_id, name) is not None for backend_id in SUPPORTED_TARGETS)

    def _check_internal_newtypes(self, enum: EnumDef, symbols: dict[str, TypeDefinition]) -> None:
        for variant in enum.wire_variants:
            inner = variant.newtype
            if not isinstance(inner, Reference):
                continue
            if not _is_struct_like(inner, symbols, set()):
                self._record(
                    ShapeError(
                        f"variant '{variant.name}' of '{enum.name}' wraps '{inner.name}', which is not a struct; "
                        f"strategy {enum.strategy} needs named fields next to the tag",
                        enum.span,
                        enum.name,
                        variant.name,
                    )
                )


def _is_struct_like(expr: TypeExpr, symbols: dict[str, TypeDefinition], visiting: set[str]) -> bool:
    if isinstance(expr, (MapType, Opaque)):
        return True
    if not isinstance(expr, Reference) or expr.name in visiting:
        return False
    target = symbols.get(expr.name)
    if isinstance(target, StructDef):
        return True
    if isinstance(target, AliasDef):
        return _is_struct_like(target.target, symbols, visiting | {expr.name})
    return False


def _referenced_names(definition: TypeDefinition) -> frozenset[str]:
    names = set()
    for top in definition_type_exprs(definition):
        for expr in iter_type_exprs(top):
            if isinstance(expr, Reference):
                names.add(expr.name)
    return frozenset(names)
