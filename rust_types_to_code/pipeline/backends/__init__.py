"""
Code generation backends.

Contains one generator per target language, registered by backend id.
"""

from __future__ import annotations

from ..config import CodeGeneratorConfig
from .base import GENERATION_COMMENT, CodeBackend
from .go_backend import GoBackend
from .kotlin_backend import KotlinBackend
from .python_backend import PythonBackend
from .scala_backend import ScalaBackend
from .swift_backend import SwiftBackend
from .typescript_backend import TypeScriptBackend

BACKENDS: dict[str, type[CodeBackend]] = {
    backend.BACKEND_ID: backend
    for backend in (TypeScriptBackend, KotlinBackend, SwiftBackend, GoBackend, ScalaBackend, PythonBackend)
}


def get_backend(backend_id: str, config: CodeGeneratorConfig) -> CodeBackend:
    """Create a fresh backend instance for ``backend_id``.

    Raises:
        ValueError: If no backend is registered under that id
    """
    if backend_id not in BACKENDS:
        raise ValueError(f"unknown target {backend_id!r}; expected one of {', '.join(BACKENDS)}")
    return BACKENDS[backend_id](config)


__all__ = [
    "BACKENDS",
    "GENERATION_COMMENT",
    "CodeBackend",
    "GoBackend",
    "KotlinBackend",
    "PythonBackend",
    "ScalaBackend",
    "SwiftBackend",
    "TypeScriptBackend",
    "get_backend",
]
