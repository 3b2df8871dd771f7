"""Rust Types to Code Generator

A Python package for generating TypeScript, Kotlin, Swift, Go, Scala and
Python type definitions from Rust structs and enums marked with
``#[typeshare]``, preserving their serde wire format.
"""

__version__ = "1.0.0"

from .pipeline import (
    AtomicWriter,
    CodeGeneratorConfig,
    GenerationResult,
    PipelineGenerator,
    TypeGenerationError,
    load_config,
)

__all__ = [
    "PipelineGenerator",
    "GenerationResult",
    "CodeGeneratorConfig",
    "load_config",
    "TypeGenerationError",
    "AtomicWriter",
]
