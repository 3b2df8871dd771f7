import json
from pathlib import Path
from unittest import TestCase

from rust_types_to_code.pipeline.config import CodeGeneratorConfig
from rust_types_to_code.pipeline.generator import PipelineGenerator


class TestBackendRendering(TestCase):
    """Rendering of every target language, driven by test_data/backend_cases.json"""

    def setUp(self):
        self.test_data_path = Path(__file__).parent / "test_data" / "backend_cases.json"
        with open(self.test_data_path) as f:
            self.test_cases = json.load(f)

    def _generate(self, test_case):
        """Helper to run the pipeline for a single target"""
        config = CodeGeneratorConfig.from_dict({"targets": [test_case["backend"]], **test_case.get("config", {})})
        source = "\n".join(test_case["source"]) + "\n"
        return PipelineGenerator(config).generate_from_text(source, "case.rs")

    def _case(self, name):
        return next(tc for tc in self.test_cases if tc["name"] == name)

    def test_all_backend_cases(self):
        """Run all rendering cases from the test data file"""
        for test_case in self.test_cases:
            if "expected_error" in test_case:
                continue
            with self.subTest(test_case=test_case["name"]):
                result = self._generate(test_case)
                self.assertFalse(
                    result.has_errors,
                    f"Test '{test_case['name']}': unexpected errors {[d.format() for d in result.diagnostics]}",
                )
                generated_code = result.content(test_case["backend"])

                for expected in test_case["expected_contains"]:
                    self.assertIn(
                        expected,
                        generated_code,
                        f"Test '{test_case['name']}': Expected '{expected}' not found",
                    )

                for not_expected in test_case["expected_not_contains"]:
                    self.assertNotIn(
                        not_expected,
                        generated_code,
                        f"Test '{test_case['name']}': Unwanted '{not_expected}' found",
                    )

    def test_refused_constructs(self):
        """A backend that cannot represent a definition reports it and writes nothing"""
        for test_case in self.test_cases:
            if "expected_error" not in test_case:
                continue
            with self.subTest(test_case=test_case["name"]):
                result = self._generate(test_case)
                output = result.outputs[test_case["backend"]]

                self.assertFalse(output.ok)
                self.assertEqual(output.buffers, [])
                self.assertEqual(result.content(test_case["backend"]), "")
                messages = [d.message for d in result.diagnostics if d.is_error]
                self.assertTrue(
                    any(test_case["expected_error"] in m for m in messages),
                    f"Expected error '{test_case['expected_error']}' not in {messages}",
                )
                self.assertTrue(all(m.startswith(f"[{test_case['backend']}]") for m in messages))

    def test_refusal_does_not_affect_other_backends(self):
        """Go refuses generics while the other targets still render"""
        test_case = self._case("go_generics_refused")
        config = CodeGeneratorConfig(targets=["go", "typescript", "python"])
        result = PipelineGenerator(config).generate_from_text("\n".join(test_case["source"]), "case.rs")

        self.assertFalse(result.outputs["go"].ok)
        self.assertIn("export interface Page<T> {", result.content("typescript"))
        self.assertIn("class Page(BaseModel, Generic[T]):", result.content("python"))
        self.assertEqual(len([d for d in result.diagnostics if d.is_error]), 1)

    def test_every_refusal_is_reported(self):
        """All refused definitions of a backend are collected, not just the first"""
        source = "#[typeshare]\nstruct A { a: u64 }\n#[typeshare]\nstruct B { b: i64 }\n"
        result = PipelineGenerator(CodeGeneratorConfig(targets=["typescript"])).generate_from_text(source)

        errors = [d.message for d in result.diagnostics if d.is_error]
        self.assertEqual(len(errors), 2)
        self.assertIn("cannot render 'A'", errors[0])
        self.assertIn("cannot render 'B'", errors[1])

    def test_external_shape_in_every_backend(self):
        """Circle and Square become variants of Shape wherever external data variants are supported"""
        test_case = self._case("python_generic_point_and_external_shape")
        source = "\n".join(test_case["source"])
        expected = {
            "typescript": ["\t| { Circle: Point<number> }", "\t| { Square: { side: number } };"],
            "kotlin": ["\tval circle: Point<Double>? = null,", "\tval square: ShapeSquareInner? = null"],
            "swift": ["\tcase circle(Point<Double>)", "\tcase square(ShapeSquareInner)"],
        }
        result = PipelineGenerator(CodeGeneratorConfig(targets=list(expected))).generate_from_text(source)
        self.assertFalse(result.has_errors)
        for backend, snippets in expected.items():
            for snippet in snippets:
                self.assertIn(snippet, result.content(backend), f"Expected '{snippet}' not found in {backend} code")

    def test_scala_follows_the_enum_strategy(self):
        """The same variants render differently, or not at all, depending on the tagging"""
        body = "pub enum E {\n    A(Inner),\n    B { x: u32 },\n}\n"
        prelude = "#[typeshare]\npub struct Inner { y: u32 }\n#[typeshare]\n"
        config = CodeGeneratorConfig(targets=["scala"])

        adjacent = PipelineGenerator(config).generate_from_text(prelude + '#[serde(tag = "t", content = "c")]\n' + body)
        self.assertFalse(adjacent.has_errors)
        generated_code = adjacent.content("scala")
        self.assertIn('\tval TagKey: String = "t"\n\tval ContentKey: String = "c"\n', generated_code)
        self.assertIn("\tcase class A(c: Inner) extends E {", generated_code)
        self.assertIn("\tcase class B(c: EBInner) extends E {", generated_code)

        internal = PipelineGenerator(config).generate_from_text(prelude + '#[serde(tag = "kind")]\n' + body)
        self.assertFalse(internal.outputs["scala"].ok)
        self.assertIn("variant 'A' merges its payload", internal.diagnostics[0].message)

        for attribute in ("", "#[serde(untagged)]\n"):
            with self.subTest(attribute=attribute):
                result = PipelineGenerator(config).generate_from_text(prelude + attribute + body)
                self.assertFalse(result.outputs["scala"].ok)
                self.assertEqual(result.content("scala"), "")

    def test_explicit_rename_is_kept_verbatim(self):
        """An explicit serde rename names the field in every backend"""
        test_case = self._case("python_explicit_renames")
        source = "\n".join(test_case["source"])
        expected = {
            "typescript": "\tuserName: string;",
            "kotlin": "\tval userName: String,",
            "swift": "\tpublic let userName: String",
            # Go fields must be exported to be encoded
            "go": '\tUserName string `json:"userName"`',
            "scala": "\tuserName: String,",
            "python": "    userName: str\n",
        }
        result = PipelineGenerator().generate_from_text(source)
        self.assertFalse(result.has_errors)
        for backend, snippet in expected.items():
            self.assertIn(snippet, result.content(backend), f"Expected '{snippet}' not found in {backend} code")

    def test_unknown_types_pass_through(self):
        """Library types nothing defines are emitted by name in every backend, run after run"""
        source = "#[typeshare]\npub struct Session {\n    pub id: Uuid,\n    pub tags: Vec<Uuid>,\n}\n"
        first = PipelineGenerator().generate_from_text(source)
        second = PipelineGenerator().generate_from_text(source)

        self.assertFalse(first.has_errors)
        for backend in first.outputs:
            with self.subTest(backend=backend):
                self.assertIn("Uuid", first.content(backend))
                self.assertEqual(first.content(backend), second.content(backend))

    def test_python_definitions_follow_their_dependencies(self):
        """Referenced models come before the unions that use them"""
        test_case = self._case("python_internal_enum")
        generated_code = self._generate(test_case).content("python")

        self.assertLess(generated_code.index("class Point(BaseModel):"), generated_code.index("class EventMoved(Point):"))

    def test_declaration_order_elsewhere(self):
        """Other targets keep the source order"""
        test_case = self._case("typescript_external_and_internal_enums")
        generated_code = self._generate(test_case).content("typescript")

        self.assertLess(generated_code.index("export type Event"), generated_code.index("export interface Point"))

    def test_overridden_definition_is_not_emitted(self):
        """A per-type override replaces the definition wherever it is used"""
        source = (
            "#[typeshare]\npub struct Money { cents: i32 }\n"
            "#[typeshare]\npub struct Order { total: Money }\n"
        )
        config = CodeGeneratorConfig(targets=["typescript"], per_type_overrides={"Money": {"typescript": "string"}})
        generated_code = PipelineGenerator(config).generate_from_text(source).content("typescript")

        self.assertIn("\ttotal: string;", generated_code)
        self.assertNotIn("interface Money", generated_code)

    def test_generation_comment_can_be_disabled(self):
        source = "#[typeshare]\npub struct A { a: u8 }\n"
        for backend in ("typescript", "kotlin", "swift", "go", "scala", "python"):
            with self.subTest(backend=backend):
                config = CodeGeneratorConfig(targets=[backend], add_generation_comment=False)
                generated_code = PipelineGenerator(config).generate_from_text(source).content(backend)
                self.assertNotIn("Generated by", generated_code)
                self.assertTrue(generated_code.endswith("\n"))

    def test_output_is_deterministic(self):
        """Identical input produces byte-identical output"""
        test_case = self._case("python_generics_aliases_consts")
        first = self._generate(test_case).content("python")
        second = self._generate(test_case).content("python")
        self.assertEqual(first, second)


if __name__ == "__main__":
    import pytest

    pytest.main([__file__])
