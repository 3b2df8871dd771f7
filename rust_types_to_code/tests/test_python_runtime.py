"""
Tests that import the generated pydantic models and validate serde-shaped data with them.
"""

from __future__ import annotations

import importlib.util
import json
import sys
from pathlib import Path

import pytest
from pydantic import TypeAdapter, ValidationError

from rust_types_to_code.pipeline.config import CodeGeneratorConfig
from rust_types_to_code.pipeline.generator import PipelineGenerator

CASES = {
    case["name"]: "\n".join(case["source"]) + "\n"
    for case in json.loads((Path(__file__).parent / "test_data" / "backend_cases.json").read_text())
}


@pytest.fixture
def load_generated(tmp_path, monkeypatch):
    """Generate Python from a named case, write it and import it as a module."""

    def load(case_name: str):
        result = PipelineGenerator(CodeGeneratorConfig(targets=["python"])).generate_from_text(CASES[case_name])
        assert not result.has_errors, [d.format() for d in result.diagnostics]

        module_name = f"generated_{case_name}"
        path = tmp_path / f"{module_name}.py"
        path.write_text(result.content("python"))
        spec = importlib.util.spec_from_file_location(module_name, path)
        module = importlib.util.module_from_spec(spec)
        # pydantic resolves postponed annotations through sys.modules
        monkeypatch.setitem(sys.modules, module_name, module)
        spec.loader.exec_module(module)
        return module

    return load


class TestStructs:
    def test_aliases_and_optional_fields(self, load_generated):
        types = load_generated("python_struct_and_adjacent_enum")

        point = types.Point.model_validate({"xPos": 1, "yPos": 2})
        assert (point.x_pos, point.y_pos, point.label) == (1.0, 2.0, None)
        assert point.model_dump(by_alias=True) == {"xPos": 1.0, "yPos": 2.0, "label": None}
        assert types.Point(x_pos=0, y_pos=0, label="origin").label == "origin"

    def test_flatten_struct_and_map(self, load_generated):
        types = load_generated("python_flatten_and_keywords")

        extended = types.Extended.model_validate({"id": 7, "name": "n"})
        assert (extended.id, extended.name) == (7, "n")

        opened = types.Open.model_validate({"name": "n", "class": "c", "colour": "red"})
        assert opened.class_ == "c"
        assert opened.model_extra == {"colour": "red"}
        assert opened.model_dump(by_alias=True) == {"name": "n", "class": "c", "colour": "red"}

    def test_generics_and_constants(self, load_generated):
        types = load_generated("python_generics_aliases_consts")

        page = TypeAdapter(types.UserPage).validate_python({"items": ["a", "b"]})
        assert page.items == ["a", "b"]
        assert page.next_cursor is None
        assert types.MAX_PAGE == 100
        assert types.NAME == "api"

        with pytest.raises(ValidationError):
            TypeAdapter(types.UserPage).validate_python({"items": [{"not": "a string"}]})


class TestEnums:
    def test_str_enum(self, load_generated):
        types = load_generated("python_str_enum")

        assert types.Color("DARK_BLUE") is types.Color.DARK_BLUE
        assert types.Color.RED.value == "RED"

    def test_adjacently_tagged(self, load_generated):
        types = load_generated("python_struct_and_adjacent_enum")
        adapter = TypeAdapter(types.Shape)

        circle = adapter.validate_python({"type": "Circle", "content": {"radius": 2}})
        assert isinstance(circle, types.ShapeCircle)
        assert circle.content.radius == 2.0

        dot = adapter.validate_python({"type": "Dot", "content": {"xPos": 1, "yPos": 1}})
        assert isinstance(dot.content, types.Point)

        empty = adapter.validate_python({"type": "Empty"})
        assert adapter.dump_python(empty) == {"type": "Empty"}

        with pytest.raises(ValidationError):
            adapter.validate_python({"type": "Triangle"})

    def test_internally_tagged(self, load_generated):
        types = load_generated("python_internal_enum")
        adapter = TypeAdapter(types.Event)

        created = adapter.validate_python({"kind": "Created", "id": 3})
        assert isinstance(created, types.EventCreated)
        assert created.id == 3

        moved = adapter.validate_python({"kind": "Moved", "x": 1.5})
        assert isinstance(moved, types.Point)
        assert adapter.dump_python(moved) == {"x": 1.5, "kind": "Moved"}

        # Unit variants keep the tag key
        assert adapter.dump_python(adapter.validate_python({"kind": "Deleted"})) == {"kind": "Deleted"}

    def test_externally_tagged(self, load_generated):
        types = load_generated("python_external_enum")
        adapter = TypeAdapter(types.Message)

        text = adapter.validate_python({"Text": "hi"})
        assert isinstance(text, types.MessageText)
        assert adapter.dump_python(text, by_alias=True) == {"Text": "hi"}

        move = adapter.validate_python({"Move": {"x": 1, "y": 2}})
        assert isinstance(move, types.MessageMove)
        assert (move.move.x, move.move.y) == (1, 2)

        assert adapter.validate_python("Quit") == "Quit"

        with pytest.raises(ValidationError):
            adapter.validate_python({"Text": "hi", "Move": {"x": 1, "y": 2}})

    def test_untagged_tries_variants_in_order(self, load_generated):
        types = load_generated("python_untagged_enum")
        adapter = TypeAdapter(types.Value)

        assert adapter.validate_python(2.5) == 2.5
        assert adapter.validate_python("text") == "text"
        assert adapter.validate_python(None) is None


class TestScenarios:
    def test_generic_payload_in_external_enum(self, load_generated):
        types = load_generated("python_generic_point_and_external_shape")
        adapter = TypeAdapter(types.Shape)

        circle = adapter.validate_python({"Circle": {"x": 1.0, "y": 1.0}})
        assert isinstance(circle, types.ShapeCircle)
        assert isinstance(circle.circle, types.Point)
        assert circle.circle.x == 1.0

        square = adapter.validate_python({"Square": {"side": 2.0}})
        assert isinstance(square, types.ShapeSquare)
        assert square.square.side == 2.0
        assert adapter.dump_python(square, by_alias=True) == {"Square": {"side": 2.0}}

    def test_untagged_overlap_picks_first_declared(self, load_generated):
        types = load_generated("python_untagged_overlapping_variants")
        adapter = TypeAdapter(types.Either)

        assert isinstance(adapter.validate_python({"x": 1, "y": 2}), types.EitherAInner)
        assert isinstance(adapter.validate_python({"x": 1}), types.EitherAInner)

    def test_unit_only_internal_enum_keeps_tag(self, load_generated):
        types = load_generated("python_internal_unit_only_enum")
        adapter = TypeAdapter(types.Status)

        active = adapter.validate_python({"kind": "Active"})
        assert isinstance(active, types.StatusActive)
        assert adapter.dump_python(active) == {"kind": "Active"}

    def test_explicit_rename_is_the_attribute(self, load_generated):
        types = load_generated("python_explicit_renames")

        account = types.Account.model_validate({"userName": "ada", "createdAt": 1})
        assert (account.userName, account.created_at) == ("ada", 1)
        assert account.model_dump(by_alias=True) == {"userName": "ada", "createdAt": 1}


if __name__ == "__main__":
    pytest.main([__file__])
