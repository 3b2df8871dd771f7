"""
Pipeline generator - main entry point for code generation.

Orchestrates the phases:
1. Scan: find marked Rust sources
2. Parse + normalize: one task per file, in parallel
3. Resolve: merge every file into one symbol table (sequential barrier)
4. Render + aggregate: one task per target backend, in parallel
"""

from __future__ import annotations

from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path

import structlog

from .analyzer import GlobalResolver, ModuleIR, NormalizedModule, Normalizer, ResolvedIR
from .backends import get_backend
from .config import CodeGeneratorConfig
from .emitter import Aggregator, BackendOutput, OutputBuffer
from .errors import Diagnostic, TypeGenerationError
from .rust_ast import RustParser
from .scanner import SourceFile, SourceScanner

logger = structlog.get_logger()


@dataclass
class FileResult:
    """Outcome of parsing and normalizing one file."""

    path: str
    module: ModuleIR | None = None
    diagnostics: list[Diagnostic] = field(default_factory=list)


@dataclass
class GenerationResult:
    # Backend id -> output, in target order
    outputs: dict[str, BackendOutput] = field(default_factory=dict)
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return any(d.is_error for d in self.diagnostics)

    @property
    def buffers(self) -> list[OutputBuffer]:
        return [buffer for output in self.outputs.values() for buffer in output.buffers]

    def content(self, backend_id: str) -> str:
        """Content of a backend's single buffer (empty when it produced none)."""
        output = self.outputs.get(backend_id)
        if output is None or not output.buffers:
            return ""
        return "".join(buffer.content for buffer in output.buffers)


class PipelineGenerator:
    """Runs the full Rust-to-targets pipeline."""

    def __init__(self, config: CodeGeneratorConfig | None = None):
        """
        Initialize the pipeline generator.

        Args:
            config: Code generation configuration
        """
        self.config = config or CodeGeneratorConfig()
        self.parser = RustParser()

    def generate_from_paths(self, roots: Iterable[str | Path]) -> GenerationResult:
        """
        Scan ``roots`` for marked sources and generate every target.

        Unreadable paths become error diagnostics; the remaining files are
        still processed.
        """
        scanner = SourceScanner(list(roots), self.config.exclude_patterns)
        sources = list(scanner.read_sources())
        logger.info("sources_scanned", files=len(sources), errors=len(scanner.diagnostics))
        result = self.generate_from_sources(sources)
        result.diagnostics[:0] = scanner.diagnostics
        return result

    def generate_from_text(self, text: str, path: str = "<input>", module: str = "") -> GenerationResult:
        """Generate every target from a single in-memory source."""
        return self.generate_from_sources([SourceFile(path, module, text)])

    def generate_from_sources(self, sources: Iterable[SourceFile]) -> GenerationResult:
        """
        Generate every target from already-read sources.

        Args:
            sources: Source files in discovery order

        Returns:
            GenerationResult with one output per target and every diagnostic
        """
        result = GenerationResult()

        file_results = self._process_files(list(sources))
        for file_result in file_results:
            result.diagnostics.extend(file_result.diagnostics)
        if result.has_errors:
            logger.info("generation_aborted", stage="normalize", errors=sum(d.is_error for d in result.diagnostics))
            return result

        resolver = GlobalResolver(self.config)
        try:
            resolved = resolver.resolve([r.module for r in file_results if r.module is not None])
        except TypeGenerationError:
            result.diagnostics.extend(resolver.warnings)
            result.diagnostics.extend(resolver.diagnostics)
            logger.info("generation_aborted", stage="resolve", errors=len(resolver.diagnostics))
            return result
        result.diagnostics.extend(resolved.warnings)

        result.outputs = self._render(resolved)
        for output in result.outputs.values():
            result.diagnostics.extend(e.to_diagnostic() for e in output.errors)
        return result

    def _process_files(self, sources: list[SourceFile]) -> list[FileResult]:
        """Parse and normalize every file; results keep the input order."""
        with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
            return list(executor.map(self._process_file, sources))

    def _process_file(self, source: SourceFile) -> FileResult:
        result = FileResult(source.path)
        try:
            parsed = self.parser.parse(source.text, source.path, source.module)
        except TypeGenerationError as e:
            result.diagnostics.append(e.to_diagnostic())
            return result

        normalizer = Normalizer(self.config)
        try:
            normalized: NormalizedModule = normalizer.normalize(parsed)
        except TypeGenerationError:
            result.diagnostics.extend(normalizer.warnings)
            result.diagnostics.extend(normalizer.diagnostics)
            return result
        result.module = normalized.module
        result.diagnostics.extend(normalized.warnings)
        return result

    def _render(self, resolved: ResolvedIR) -> dict[str, BackendOutput]:
        targets = self.config.active_targets()

        def render(backend_id: str) -> BackendOutput:
            return Aggregator(get_backend(backend_id, self.config), self.config).aggregate(resolved)

        with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
            outputs = list(executor.map(render, targets))
        return dict(zip(targets, outputs))
