"""
Atomic file writer for generated output.

Ensures that file writes are atomic, so an interrupted run never leaves a
half-written output file behind.
"""

from __future__ import annotations

import ast
import tempfile
from collections.abc import Callable, Iterable
from pathlib import Path

import structlog

from ..errors import TypeGenerationError
from .aggregator import OutputBuffer

logger = structlog.get_logger()


class AtomicWriter:
    """Handles atomic file writes with validation.

    Uses a two-phase commit approach:
    1. Write to a temporary file in the same directory
    2. Validate the content
    3. Atomically replace the target file
    """

    def __init__(self, validate_python: Callable[[str], None] | None = None):
        """Initialize the atomic writer.

        Args:
            validate_python: Optional validation function for Python output
        """
        self._validate_python = validate_python or self._default_validate_python

    def write(self, path: Path, content: str, target: str = "", validate: bool = True) -> None:
        """Write content to file atomically.

        Args:
            path: Target file path
            content: Content to write
            target: Backend id of the content, selects the validation
            validate: Whether to validate before finalizing

        Raises:
            TypeGenerationError: If validation fails
            OSError: If file operations fail
        """
        path.parent.mkdir(parents=True, exist_ok=True)

        # Same directory ensures atomic rename on the same filesystem
        temp_fd, temp_path_str = tempfile.mkstemp(
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            text=True,
        )
        temp_path = Path(temp_path_str)

        try:
            with open(temp_fd, "w", encoding="utf-8", newline="\n") as f:
                f.write(content)

            if validate and target == "python":
                self._validate_python(content)

            temp_path.replace(path)
        except BaseException:
            temp_path.unlink(missing_ok=True)
            raise
        logger.debug("file_written", path=str(path), bytes=len(content.encode("utf-8")))

    def write_buffers(self, buffers: Iterable[OutputBuffer], folder: Path, validate: bool = True) -> list[Path]:
        """Write each buffer to ``folder / buffer.filename``.

        Returns:
            The written paths, in buffer order
        """
        written = []
        for buffer in buffers:
            path = folder / buffer.filename
            self.write(path, buffer.content, buffer.target, validate)
            written.append(path)
        return written

    @staticmethod
    def _default_validate_python(content: str) -> None:
        try:
            ast.parse(content)
        except SyntaxError as e:
            raise TypeGenerationError(f"generated Python code is not valid: {e}") from e
