"""
Tests for cross-file resolution.
"""

from __future__ import annotations

import pytest

from rust_types_to_code.pipeline.analyzer import GlobalResolver, Normalizer, Opaque, Reference
from rust_types_to_code.pipeline.config import CodeGeneratorConfig
from rust_types_to_code.pipeline.errors import (
    DuplicateDefinitionError,
    GenericArityError,
    ShapeError,
    TypeGenerationError,
)
from rust_types_to_code.pipeline.rust_ast import RustParser


def module(source: str, path: str = "a.rs", name: str = "a", config: CodeGeneratorConfig | None = None):
    parsed = RustParser().parse(source, path, name)
    return Normalizer(config).normalize(parsed).module


def resolve(*sources: str, config: CodeGeneratorConfig | None = None):
    modules = [module(source, f"file{i}.rs", f"m{i}", config) for i, source in enumerate(sources)]
    return GlobalResolver(config).resolve(modules)


class TestResolution:
    def test_cross_file_references(self):
        resolved = resolve(
            "#[typeshare]\nstruct Order { customer: Customer, lines: Vec<Line> }\n",
            "#[typeshare]\nstruct Customer { id: u32 }\n#[typeshare]\nstruct Line { qty: u32 }\n",
        )
        order = resolved.lookup("Order")
        assert order.fields[0].type_expr == Reference(name="Customer")
        assert resolved.references["Order"] == frozenset({"Customer", "Line"})
        assert [d.name for d in resolved.definitions()] == ["Order", "Customer", "Line"]
        assert resolved.warnings == []

    def test_recursive_types(self):
        resolved = resolve("#[typeshare]\nstruct Node { children: Vec<Node>, next: Option<Box<Node>> }\n")
        assert resolved.references["Node"] == frozenset({"Node"})

    def test_unknown_type_becomes_opaque(self):
        resolved = resolve("#[typeshare]\nstruct A { when: chrono::NaiveDate }\n")
        assert resolved.lookup("A").fields[0].type_expr == Opaque(raw="NaiveDate")
        assert len(resolved.warnings) == 1
        assert "chrono::NaiveDate" in resolved.warnings[0].message

    def test_unknown_type_strict(self):
        config = CodeGeneratorConfig(strict_mode=True)
        with pytest.raises(TypeGenerationError, match="unknown type 'Missing'"):
            resolve("#[typeshare]\nstruct A { m: Missing }\n", config=config)

    def test_unknown_type_with_override_is_silent(self):
        config = CodeGeneratorConfig(strict_mode=True, per_type_overrides={"Uuid": {"typescript": "string"}})
        resolved = resolve("#[typeshare]\nstruct A { id: Uuid }\n", config=config)
        assert resolved.warnings == []


class TestGenerics:
    def test_arity_mismatch(self):
        with pytest.raises(GenericArityError) as excinfo:
            resolve(
                "#[typeshare]\nstruct Page<T> { items: Vec<T> }\n",
                "#[typeshare]\nstruct Bad { page: Page<u8, u8, u8> }\n",
            )
        assert (excinfo.value.expected, excinfo.value.found) == (1, 3)
        assert "'Page' expects 1 generic argument(s) but 3 were given in 'Bad'" in str(excinfo.value)

    def test_missing_arguments(self):
        with pytest.raises(GenericArityError):
            resolve("#[typeshare]\nstruct Page<T> { items: Vec<T> }\n#[typeshare]\nstruct Bad { page: Page }\n")

    def test_generic_reference(self):
        resolved = resolve(
            "#[typeshare]\nstruct Page<T> { items: Vec<T> }\n#[typeshare]\nstruct Users { page: Page<String> }\n"
        )
        page = resolved.lookup("Users").fields[0].type_expr
        assert isinstance(page, Reference)
        assert len(page.args) == 1


class TestDuplicates:
    def test_identical_duplicates_merge(self):
        source = "#[typeshare]\nstruct Shared { id: u32 }\n"
        resolved = resolve(source, "/// Other docs\n" + source)
        assert [d.name for d in resolved.definitions()] == ["Shared"]
        assert len(resolved.modules) == 2

    def test_conflicting_duplicates(self):
        with pytest.raises(DuplicateDefinitionError) as excinfo:
            resolve("#[typeshare]\nstruct Shared { id: u32 }\n", "#[typeshare]\nstruct Shared { id: u64 }\n")
        assert excinfo.value.name == "Shared"
        assert excinfo.value.first.file == "file0.rs"
        assert excinfo.value.second.file == "file1.rs"

    def test_all_errors_collected(self):
        resolver = GlobalResolver()
        modules = [
            module("#[typeshare]\nstruct A { a: u8 }\n#[typeshare]\nstruct B { b: u8 }\n", "x.rs", "x"),
            module("#[typeshare]\nstruct A { a: u16 }\n#[typeshare]\nstruct B { b: u16 }\n", "y.rs", "y"),
        ]
        with pytest.raises(DuplicateDefinitionError):
            resolver.resolve(modules)
        assert len(resolver.diagnostics) == 2


class TestInternalNewtypes:
    def test_newtype_of_struct_is_allowed(self):
        resolved = resolve(
            '#[typeshare]\n#[serde(tag = "kind")]\nenum E { P(Point) }\n'
            "#[typeshare]\nstruct Point { x: f64 }\n"
        )
        assert resolved.lookup("E").variants[0].newtype == Reference(name="Point")

    def test_newtype_of_alias_to_map_is_allowed(self):
        resolve(
            '#[typeshare]\n#[serde(tag = "kind")]\nenum E { M(Attrs) }\n'
            "#[typeshare]\ntype Attrs = HashMap<String, String>;\n"
        )

    def test_newtype_of_enum_is_rejected(self):
        with pytest.raises(ShapeError, match="wraps 'Color', which is not a struct"):
            resolve(
                '#[typeshare]\n#[serde(tag = "kind")]\nenum E { C(Color) }\n'
                "#[typeshare]\nenum Color { Red }\n"
            )

    def test_newtype_of_alias_to_primitive_is_rejected(self):
        with pytest.raises(ShapeError):
            resolve('#[typeshare]\n#[serde(tag = "kind")]\nenum E { I(Id) }\n#[typeshare]\ntype Id = String;\n')
