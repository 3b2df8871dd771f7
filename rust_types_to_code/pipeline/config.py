"""
Configuration for the code generator pipeline.

The configuration is opaque input to the core: the CLI (or a test) builds a
:class:`CodeGeneratorConfig`, either directly or from a ``.json`` / ``.toml``
file, and hands it to :class:`~rust_types_to_code.pipeline.PipelineGenerator`.
"""

from __future__ import annotations

import json
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

SUPPORTED_TARGETS = ("typescript", "kotlin", "swift", "go", "scala", "python")


@dataclass
class BackendConfig:
    """Options shared by every backend section."""

    # Conversions from Rust type names to literal target type names
    type_mappings: dict[str, str] = field(default_factory=dict)

    # Output file name used in single-file mode (empty = "<name>.<ext>")
    output_file: str = ""


@dataclass
class TypeScriptConfig(BackendConfig):
    pass


@dataclass
class KotlinConfig(BackendConfig):
    # Kotlin package declared at the top of the file
    package: str = "com.generated"

    # Prefix prepended to every user-defined type name
    prefix: str = ""


@dataclass
class SwiftConfig(BackendConfig):
    # Prefix prepended to every user-defined type name
    prefix: str = ""

    # Protocols every generated type conforms to, besides Codable
    default_decorators: list[str] = field(default_factory=list)


@dataclass
class GoConfig(BackendConfig):
    package: str = "proto"


@dataclass
class ScalaConfig(BackendConfig):
    # Must contain at least one dot: "<parent>.<last>"
    package: str = "com.generated.types"


@dataclass
class PythonConfig(BackendConfig):
    pass


_BACKEND_SECTIONS: dict[str, type[BackendConfig]] = {
    "typescript": TypeScriptConfig,
    "kotlin": KotlinConfig,
    "swift": SwiftConfig,
    "go": GoConfig,
    "scala": ScalaConfig,
    "python": PythonConfig,
}


@dataclass
class CodeGeneratorConfig:
    """Configuration options for code generation."""

    # Backend identifiers to render (empty = every supported backend)
    targets: list[str] = field(default_factory=list)

    # Promote warnings to errors (opaque references, unparsed syntax)
    strict_mode: bool = False

    # Shell globs of paths the scanner skips
    exclude_patterns: list[str] = field(default_factory=list)

    # Rust type name -> {backend id -> literal target type}
    per_type_overrides: dict[str, dict[str, str]] = field(default_factory=dict)

    # Emit one buffer per source module instead of one per backend
    multi_file: bool = False

    # Worker threads for parsing and rendering (None = executor default)
    max_workers: int | None = None

    # Add generation comment at top of file
    add_generation_comment: bool = True

    typescript: TypeScriptConfig = field(default_factory=TypeScriptConfig)
    kotlin: KotlinConfig = field(default_factory=KotlinConfig)
    swift: SwiftConfig = field(default_factory=SwiftConfig)
    go: GoConfig = field(default_factory=GoConfig)
    scala: ScalaConfig = field(default_factory=ScalaConfig)
    python: PythonConfig = field(default_factory=PythonConfig)

    def active_targets(self) -> list[str]:
        """Targets to render, in the order they were requested."""
        return list(self.targets) if self.targets else list(SUPPORTED_TARGETS)

    def backend_config(self, backend_id: str) -> BackendConfig:
        return getattr(self, backend_id)

    def type_override(self, backend_id: str, name: str) -> str | None:
        """Literal substitution for a Rust type name in the given backend.

        ``per_type_overrides`` wins over the backend section's ``type_mappings``.
        """
        per_type = self.per_type_overrides.get(name)
        if per_type and backend_id in per_type:
            return per_type[backend_id]
        return self.backend_config(backend_id).type_mappings.get(name)

    @staticmethod
    def from_dict(d: dict) -> CodeGeneratorConfig:
        """Create a config from a dictionary."""
        config = CodeGeneratorConfig()
        for k, v in d.items():
            if k in _BACKEND_SECTIONS and isinstance(v, dict):
                section_cls = _BACKEND_SECTIONS[k]
                section = section_cls()
                for sk, sv in v.items():
                    if hasattr(section, sk):
                        setattr(section, sk, sv)
                setattr(config, k, section)
            elif hasattr(config, k):
                setattr(config, k, v)
        unknown = [t for t in config.targets if t not in SUPPORTED_TARGETS]
        if unknown:
            raise ValueError(f"unknown target(s): {', '.join(unknown)}")
        return config

    def to_dict(self) -> dict:
        """Convert config to a dictionary."""
        result = {
            "targets": self.targets,
            "strict_mode": self.strict_mode,
            "exclude_patterns": self.exclude_patterns,
            "per_type_overrides": self.per_type_overrides,
            "multi_file": self.multi_file,
            "max_workers": self.max_workers,
            "add_generation_comment": self.add_generation_comment,
        }
        for name in _BACKEND_SECTIONS:
            result[name] = dict(vars(getattr(self, name)))
        return result


def load_config(path: str | Path) -> CodeGeneratorConfig:
    """Load a configuration file.

    ``.toml`` files are read with :mod:`tomllib`, anything else as JSON.

    Raises:
        ValueError: If the file content is not a valid configuration
    """
    path = Path(path)
    if path.suffix == ".toml":
        with open(path, "rb") as f:
            data = tomllib.load(f)
    else:
        with open(path) as f:
            data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"configuration in {path} must be a mapping")
    return CodeGeneratorConfig.from_dict(data)
