"""
Pipeline - Rust type definitions to multi-language code generator.

This module provides a multi-phase architecture for generating target
language types from Rust sources marked with ``#[typeshare]``:

1. Phase 1 (Scanner): Find marked ``.rs`` files
2. Phase 2 (Parser): Parse marked declarations into raw nodes
3. Phase 3 (Normalizer): Build the language-neutral IR per file
4. Phase 4 (Resolver): Merge files and resolve references and generics
5. Phase 5 (Backends): Render definitions in each target language
6. Phase 6 (Emitter): Order, group and write the output buffers
"""

from __future__ import annotations

from .config import SUPPORTED_TARGETS, CodeGeneratorConfig, load_config
from .emitter import AtomicWriter, BackendOutput, OutputBuffer
from .errors import (
    Diagnostic,
    DuplicateDefinitionError,
    GenericArityError,
    ParseError,
    Severity,
    ShapeError,
    SourceSpan,
    TypeGenerationError,
    UnsupportedConstruct,
)
from .generator import GenerationResult, PipelineGenerator
from .scanner import SourceFile, SourceScanner

__all__ = [
    "SUPPORTED_TARGETS",
    "PipelineGenerator",
    "GenerationResult",
    "CodeGeneratorConfig",
    "load_config",
    "SourceScanner",
    "SourceFile",
    "AtomicWriter",
    "BackendOutput",
    "OutputBuffer",
    "Diagnostic",
    "Severity",
    "SourceSpan",
    "TypeGenerationError",
    "ParseError",
    "ShapeError",
    "DuplicateDefinitionError",
    "GenericArityError",
    "UnsupportedConstruct",
]
