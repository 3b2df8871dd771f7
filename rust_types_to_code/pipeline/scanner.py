"""
Source scanner: discover Rust files that carry the marker attribute.
"""

from __future__ import annotations

import fnmatch
import os
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

import structlog

from .errors import Diagnostic, SourceSpan
from .rust_ast.parser import MARKER

logger = structlog.get_logger()

# Directories to always skip
SKIP_DIRS = {"target", ".git", "node_modules"}

SOURCE_SUFFIX = ".rs"

# File stems that name their parent module rather than a child
_MODULE_ROOTS = {"mod", "lib", "main"}


@dataclass
class SourceFile:
    path: str
    module: str
    text: str


@dataclass
class ScannedFile:
    path: Path
    root: Path


class SourceScanner:
    """Walks root paths and yields the marked Rust sources under them.

    Unreadable paths are reported in :attr:`diagnostics` and skipped; the
    scan always continues with the next path.
    """

    def __init__(self, roots: list[str | Path], exclude_patterns: list[str] | None = None):
        self.roots = [Path(r) for r in roots]
        self.exclude_patterns = list(exclude_patterns or [])
        self.diagnostics: list[Diagnostic] = []

    def scan(self) -> Iterator[ScannedFile]:
        """Yield candidate ``.rs`` files, sorted per directory."""
        for root in self.roots:
            if root.is_file():
                if root.suffix == SOURCE_SUFFIX:
                    yield ScannedFile(root, root.parent)
                continue
            if not root.is_dir():
                self._error(root, "no such file or directory")
                continue
            yield from self._walk(root)

    def read_sources(self) -> Iterator[SourceFile]:
        """Yield the text of every scanned file that mentions the marker."""
        for scanned in self.scan():
            try:
                text = scanned.path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                self._error(scanned.path, f"cannot read file: {e}")
                continue
            if MARKER not in text:
                continue
            yield SourceFile(str(scanned.path), module_name(scanned.path, scanned.root), text)

    def _walk(self, root: Path) -> Iterator[ScannedFile]:
        def on_error(error: OSError) -> None:
            self._error(Path(error.filename or root), f"cannot list directory: {error.strerror}")

        for dirpath, dirnames, filenames in os.walk(root, onerror=on_error):
            current = Path(dirpath)
            dirnames[:] = sorted(
                d for d in dirnames if d not in SKIP_DIRS and not self._excluded(current / d, root)
            )
            for name in sorted(filenames):
                path = current / name
                if path.suffix == SOURCE_SUFFIX and not self._excluded(path, root):
                    yield ScannedFile(path, root)

    def _excluded(self, path: Path, root: Path) -> bool:
        if not self.exclude_patterns:
            return False
        relative = path.relative_to(root).as_posix()
        for pattern in self.exclude_patterns:
            if fnmatch.fnmatch(relative, pattern):
                return True
            if any(fnmatch.fnmatch(part, pattern) for part in path.relative_to(root).parts):
                return True
        return False

    def _error(self, path: Path, message: str) -> None:
        logger.warning("scan_failed", path=str(path), error=message)
        self.diagnostics.append(Diagnostic.error(message, SourceSpan(str(path))))


def module_name(path: Path, root: Path) -> str:
    """Module path of a source file relative to its root, e.g. ``api::models``.

    A leading ``src`` directory is dropped and ``mod.rs`` / ``lib.rs`` /
    ``main.rs`` name their parent directory.
    """
    try:
        parts = list(path.relative_to(root).with_suffix("").parts)
    except ValueError:
        parts = [path.stem]
    if parts and parts[0] == "src":
        parts = parts[1:]
    if parts and parts[-1] in _MODULE_ROOTS:
        parts = parts[:-1]
    return "::".join(parts)
