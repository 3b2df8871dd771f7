"""
Error taxonomy and diagnostics for the generation pipeline.

Every stage reports problems through one of the exceptions below. Each
exception knows how to turn itself into a :class:`Diagnostic`, the plain
record handed back to callers (and printed by the CLI).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Severity(str, Enum):
    """Severity of a diagnostic record."""

    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class SourceSpan:
    """Location of a declaration in a source file (1-based lines)."""

    file: str = ""
    start_line: int = 0
    end_line: int = 0

    def __str__(self) -> str:
        return f"{self.file}:{self.start_line}"


@dataclass(frozen=True)
class Diagnostic:
    """A single structured diagnostic."""

    severity: Severity
    file: str
    line: int
    message: str

    @property
    def is_error(self) -> bool:
        return self.severity == Severity.ERROR

    def format(self) -> str:
        location = f"{self.file}:{self.line}" if self.line else self.file or "<input>"
        return f"{location}: {self.severity.value}: {self.message}"

    @classmethod
    def warning(cls, message: str, span: SourceSpan | None = None) -> Diagnostic:
        span = span or SourceSpan()
        return cls(Severity.WARNING, span.file, span.start_line, message)

    @classmethod
    def error(cls, message: str, span: SourceSpan | None = None) -> Diagnostic:
        span = span or SourceSpan()
        return cls(Severity.ERROR, span.file, span.start_line, message)


class TypeGenerationError(Exception):
    """Base class for every error raised by the pipeline.

    Attributes:
        message: Human readable description
        file: Source file the error refers to (may be empty)
        line: 1-based line in that file (0 when unknown)
    """

    def __init__(self, message: str, file: str = "", line: int = 0):
        super().__init__(message)
        self.message = message
        self.file = file
        self.line = line

    def to_diagnostic(self) -> Diagnostic:
        return Diagnostic(Severity.ERROR, self.file, self.line, str(self))

    def __str__(self) -> str:
        return self.message


class ParseError(TypeGenerationError):
    """Raised when a marked declaration is syntactically malformed."""

    def __init__(self, file: str, line: int, message: str):
        super().__init__(message, file, line)


class ShapeError(TypeGenerationError):
    """Raised when a declaration's shape violates an IR constraint.

    The canonical case is an internally tagged enum whose variant carries an
    unnamed payload that a single tag field cannot sit next to.
    """

    def __init__(self, message: str, span: SourceSpan | None = None, definition: str = "", variant: str = ""):
        span = span or SourceSpan()
        super().__init__(message, span.file, span.start_line)
        self.definition = definition
        self.variant = variant


class DuplicateDefinitionError(TypeGenerationError):
    """Raised when two declarations share a name but not a shape."""

    def __init__(self, name: str, first: SourceSpan, second: SourceSpan):
        super().__init__(
            f"conflicting definitions of '{name}' (first declared at {first})",
            second.file,
            second.start_line,
        )
        self.name = name
        self.first = first
        self.second = second


class GenericArityError(TypeGenerationError):
    """Raised when a generic type is referenced with the wrong number of arguments."""

    def __init__(self, name: str, expected: int, found: int, span: SourceSpan | None = None, referrer: str = ""):
        span = span or SourceSpan()
        where = f" in '{referrer}'" if referrer else ""
        super().__init__(
            f"'{name}' expects {expected} generic argument(s) but {found} were given{where}",
            span.file,
            span.start_line,
        )
        self.name = name
        self.expected = expected
        self.found = found


class UnsupportedConstruct(TypeGenerationError):
    """Raised by a backend that cannot faithfully represent a definition."""

    def __init__(self, definition: str, reason: str, backend: str = "", span: SourceSpan | None = None):
        span = span or SourceSpan()
        prefix = f"[{backend}] " if backend else ""
        super().__init__(f"{prefix}cannot render '{definition}': {reason}", span.file, span.start_line)
        self.definition = definition
        self.reason = reason
        self.backend = backend
