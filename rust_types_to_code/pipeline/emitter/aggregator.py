"""
Aggregation of rendered definitions into output buffers.

Orders and deduplicates the resolved definitions for one backend, renders
each one and assembles them, with the backend's header and footer, into one
buffer per backend (or one per source module in multi-file mode).
"""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from ..analyzer.ir_nodes import TypeDefinition
from ..analyzer.reference_resolver import ResolvedIR
from ..backends.base import CodeBackend
from ..config import CodeGeneratorConfig
from ..errors import UnsupportedConstruct

logger = structlog.get_logger()


@dataclass
class OutputBuffer:
    """One generated file's content, not yet written anywhere."""

    target: str
    filename: str
    content: str


@dataclass
class BackendOutput:
    backend_id: str
    buffers: list[OutputBuffer] = field(default_factory=list)
    errors: list[UnsupportedConstruct] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class Aggregator:
    """Drives one backend over the resolved IR."""

    def __init__(self, backend: CodeBackend, config: CodeGeneratorConfig):
        self.backend = backend
        self.config = config

    def aggregate(self, resolved: ResolvedIR) -> BackendOutput:
        """
        Render every definition and group the results into buffers.

        Every refusal is collected so that the report is complete; a backend
        with any refusal produces no buffers at all.

        Args:
            resolved: The resolved IR

        Returns:
            The backend's buffers, or its errors
        """
        backend = self.backend
        output = BackendOutput(backend.BACKEND_ID)
        backend.begin(resolved)

        definitions = [d for d in self.ordered(resolved) if not backend.is_overridden(d)]
        multi_file = self.config.multi_file and backend.SUPPORTS_MULTI_FILE

        if multi_file:
            groups: dict[str, list[TypeDefinition]] = {}
            for definition in definitions:
                groups.setdefault(definition.module, []).append(definition)
        else:
            groups = {"": definitions}

        for module, members in groups.items():
            backend.reset()
            blocks = []
            for definition in members:
                try:
                    rendered = backend.render_definition(definition)
                except UnsupportedConstruct as e:
                    output.errors.append(e)
                    continue
                if rendered:
                    blocks.append(rendered)
            if output.errors:
                continue

            module_imports = self._module_imports(resolved, module, members) if multi_file else None
            content = backend.render_file_header(module if multi_file else None, module_imports)
            content += backend.BLOCK_SEPARATOR.join(blocks) + "\n" if blocks else ""
            footer = backend.render_file_footer()
            if footer:
                content += ("\n" if blocks else "") + footer
            filename = backend.module_filename(module) if multi_file else backend.default_filename()
            output.buffers.append(OutputBuffer(backend.BACKEND_ID, filename, content))

        if output.errors:
            output.buffers = []
            logger.warning("backend_refused", backend=backend.BACKEND_ID, errors=len(output.errors))
        else:
            logger.info(
                "backend_rendered",
                backend=backend.BACKEND_ID,
                definitions=len(definitions),
                buffers=len(output.buffers),
            )
        return output

    def ordered(self, resolved: ResolvedIR) -> list[TypeDefinition]:
        """Distinct definitions in emission order for this backend.

        Declaration order, or for ``DEPENDENCY_ORDER`` backends a stable
        topological order in which referenced definitions come first. A cycle
        is broken at the definition declared first.
        """
        definitions = list(resolved.definitions())
        if not self.backend.DEPENDENCY_ORDER:
            return definitions

        by_name = {d.name: d for d in definitions}
        ordered: list[TypeDefinition] = []
        state: dict[str, str] = {}

        def visit(name: str) -> None:
            if state.get(name) is not None:
                return
            state[name] = "visiting"
            for dependency in sorted(resolved.references.get(name, frozenset()), key=_position(definitions)):
                if dependency in by_name and state.get(dependency) is None:
                    visit(dependency)
            state[name] = "done"
            ordered.append(by_name[name])

        for definition in definitions:
            visit(definition.name)
        return ordered

    def _module_imports(self, resolved: ResolvedIR, module: str, members: list[TypeDefinition]) -> dict[str, set[str]]:
        """Names defined in other modules that ``members`` reference, by module."""
        imports: dict[str, set[str]] = {}
        for definition in members:
            for name in resolved.references.get(definition.name, frozenset()):
                target = resolved.lookup(name)
                if target is None or target.module == module or self.backend.is_overridden(target):
                    continue
                imports.setdefault(target.module, set()).add(name)
        return imports


def _position(definitions: list[TypeDefinition]):
    index = {d.name: i for i, d in enumerate(definitions)}
    return lambda name: index.get(name, len(index))
