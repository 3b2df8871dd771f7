"""
Tests for building the IR from parsed declarations.
"""

from __future__ import annotations

import pytest

from rust_types_to_code.pipeline.analyzer import (
    AliasDef,
    ConstDef,
    EnumDef,
    GenericParamRef,
    ListType,
    MapType,
    Named,
    Normalizer,
    Opaque,
    OptionalType,
    Primitive,
    PrimitiveKind,
    StrategyKind,
    StructDef,
    StructShape,
    TupleShape,
    TupleType,
)
from rust_types_to_code.pipeline.config import CodeGeneratorConfig
from rust_types_to_code.pipeline.errors import ParseError, ShapeError
from rust_types_to_code.pipeline.rust_ast import RustParser


def normalize(source: str, strict: bool = False):
    config = CodeGeneratorConfig(strict_mode=strict)
    parsed = RustParser().parse(source, "test.rs", "test")
    return Normalizer(config).normalize(parsed)


def definitions(source: str, strict: bool = False):
    return {d.name: d for d in normalize(source, strict).module.definitions}


class TestTypes:
    def test_builtin_keywords(self):
        defs = definitions(
            """
            #[typeshare]
            struct All<T> {
                a: String,
                b: Option<u32>,
                c: Vec<T>,
                d: HashMap<String, i64>,
                e: Box<Point>,
                f: (u8, bool),
                g: (),
                h: [f32; 3],
                i: DateTime<Utc>,
                j: Cow<'static, str>,
                k: BTreeSet<char>,
                l: I54,
                m: U53,
            }
            """
        )
        fields = {f.name: f.type_expr for f in defs["All"].fields}
        assert fields["a"] == Primitive(PrimitiveKind.STRING)
        assert fields["b"] == OptionalType(Primitive(PrimitiveKind.U32))
        assert fields["c"] == ListType(GenericParamRef("T"))
        assert fields["d"] == MapType(Primitive(PrimitiveKind.STRING), Primitive(PrimitiveKind.I64))
        assert fields["e"] == Named(name="Point", path="Point")
        assert fields["f"] == TupleType((Primitive(PrimitiveKind.U8), Primitive(PrimitiveKind.BOOL)))
        assert fields["g"] == Primitive(PrimitiveKind.UNIT)
        assert fields["h"] == ListType(Primitive(PrimitiveKind.F32))
        assert fields["i"] == Primitive(PrimitiveKind.DATETIME)
        assert fields["j"] == Primitive(PrimitiveKind.STRING)
        assert fields["k"] == ListType(Primitive(PrimitiveKind.CHAR))
        assert fields["l"] == Primitive(PrimitiveKind.I54)
        assert fields["m"] == Primitive(PrimitiveKind.U53)

    def test_missing_container_argument(self):
        with pytest.raises(ParseError, match="'Vec' expects 1 type argument"):
            normalize("#[typeshare]\nstruct A { a: Vec }\n")

    def test_opaque_syntax_warns(self):
        result = normalize("#[typeshare]\nstruct A { f: Box<dyn Fn()> }\n")
        field = result.module.definitions[0].fields[0]
        assert isinstance(field.type_expr, Opaque)
        assert len(result.warnings) == 1
        assert "passed through unchanged" in result.warnings[0].message

    def test_opaque_syntax_strict(self):
        with pytest.raises(ParseError):
            normalize("#[typeshare]\nstruct A { f: Box<dyn Fn()> }\n", strict=True)


class TestStructs:
    def test_renames(self):
        defs = definitions(
            """
            #[typeshare]
            #[serde(rename_all = "camelCase")]
            struct User {
                first_name: String,
                #[serde(rename = "LAST")]
                last_name: String,
                id: u32,
            }
            """
        )
        fields = defs["User"].fields
        assert [f.wire_name for f in fields] == ["firstName", "LAST", "id"]
        assert fields[2].rename is None

    def test_field_attributes(self):
        defs = definitions(
            """
            #[typeshare]
            struct Settings {
                #[serde(default)]
                retries: u32,
                #[serde(skip_serializing_if = "Option::is_none")]
                label: Option<String>,
                #[serde(skip)]
                cache: u32,
                #[serde(flatten)]
                extra: HashMap<String, String>,
                #[typeshare(serialized_as = "String")]
                id: u64,
                #[typeshare(typescript(type = "bigint"))]
                big: u64,
            }
            """
        )
        fields = {f.name: f for f in defs["Settings"].fields}
        assert fields["retries"].default is True
        assert fields["retries"].may_be_absent
        assert fields["label"].skip_serializing_if == "Option::is_none"
        assert fields["cache"].skip
        assert "cache" not in [f.name for f in defs["Settings"].wire_fields]
        assert fields["extra"].flatten
        assert fields["id"].type_expr == Primitive(PrimitiveKind.STRING)
        assert fields["big"].type_overrides == {"typescript": "bigint"}

    def test_tuple_structs_become_aliases(self):
        defs = definitions(
            """
            #[typeshare]
            struct UserId(String);

            #[typeshare]
            struct Pair(u8, String);
            """
        )
        assert isinstance(defs["UserId"], AliasDef)
        assert defs["UserId"].target == Primitive(PrimitiveKind.STRING)
        assert defs["Pair"].target == TupleType((Primitive(PrimitiveKind.U8), Primitive(PrimitiveKind.STRING)))

    def test_transparent_and_serialized_as(self):
        defs = definitions(
            """
            #[typeshare]
            #[serde(transparent)]
            struct Wrapper { inner: Vec<u8> }

            #[typeshare(serialized_as = "String")]
            struct Token { secret: Vec<u8> }
            """
        )
        assert isinstance(defs["Wrapper"], AliasDef)
        assert defs["Wrapper"].target == ListType(Primitive(PrimitiveKind.U8))
        assert isinstance(defs["Token"], AliasDef)
        assert defs["Token"].target == Primitive(PrimitiveKind.STRING)

    def test_transparent_needs_one_field(self):
        with pytest.raises(ShapeError, match="exactly one serialized field"):
            normalize("#[typeshare]\n#[serde(transparent)]\nstruct W { a: u8, b: u8 }\n")

    def test_duplicate_wire_names(self):
        with pytest.raises(ShapeError, match="duplicate field name 'a'"):
            normalize('#[typeshare]\nstruct D { a: u8, #[serde(rename = "a")] b: u8 }\n')

    def test_docs(self):
        defs = definitions("/// A user.\n/// Second.\n#[typeshare]\nstruct U {\n    /// The id\n    id: u32,\n}\n")
        assert defs["U"].doc == "A user.\nSecond."
        assert defs["U"].fields[0].doc == "The id"


class TestEnums:
    def test_strategies(self):
        defs = definitions(
            """
            #[typeshare]
            enum Ext { A(String) }

            #[typeshare]
            #[serde(tag = "type")]
            enum Int { A { x: u8 } }

            #[typeshare]
            #[serde(tag = "t", content = "c")]
            enum Adj { A(String) }

            #[typeshare]
            #[serde(untagged)]
            enum Unt { A(String), B(u8) }
            """
        )
        assert defs["Ext"].strategy.kind == StrategyKind.EXTERNAL
        assert (defs["Int"].strategy.kind, defs["Int"].strategy.tag) == (StrategyKind.INTERNAL, "type")
        assert (defs["Adj"].strategy.tag, defs["Adj"].strategy.content) == ("t", "c")
        assert defs["Unt"].strategy.kind == StrategyKind.UNTAGGED

    def test_variant_renames_and_shapes(self):
        defs = definitions(
            """
            #[typeshare]
            #[serde(rename_all = "snake_case", rename_all_fields = "camelCase")]
            enum Event {
                UserCreated { user_id: u32 },
                #[serde(rename = "gone")]
                UserDeleted(u32),
                Ping,
                #[serde(skip)]
                Internal,
            }
            """
        )
        enum = defs["Event"]
        assert isinstance(enum, EnumDef)
        assert [v.wire_name for v in enum.variants] == ["user_created", "gone", "ping", "internal"]
        assert [v.name for v in enum.wire_variants] == ["UserCreated", "UserDeleted", "Ping"]
        created = enum.variants[0]
        assert isinstance(created.shape, StructShape)
        assert created.shape.fields[0].wire_name == "userId"
        assert isinstance(enum.variants[1].shape, TupleShape)
        assert enum.variants[2].is_unit

    def test_unit_only(self):
        enum = definitions("#[typeshare]\nenum Color { Red, Green }\n")["Color"]
        assert enum.is_unit_only

    @pytest.mark.parametrize(
        "attributes,message",
        [
            ('#[serde(untagged, tag = "t")]', "both untagged and tagged"),
            ('#[serde(content = "c")]', "without a tag"),
            ('#[serde(tag = "k", content = "k")]', "same key"),
        ],
    )
    def test_invalid_strategies(self, attributes, message):
        with pytest.raises(ShapeError, match=message):
            normalize(f"#[typeshare]\n{attributes}\nenum E {{ A(String) }}\n")

    @pytest.mark.parametrize(
        "variant,message",
        [
            ("Pair(u8, u8)", "2 unnamed fields"),
            ("Text(String)", "wraps a non-struct value"),
            ("Items(Vec<u8>)", "wraps a non-struct value"),
            ("Both { kind: String }", "named like the tag"),
        ],
    )
    def test_internal_tagging_shapes(self, variant, message):
        source = f'#[typeshare]\n#[serde(tag = "kind")]\nenum E {{ {variant} }}\n'
        with pytest.raises(ShapeError, match=message) as excinfo:
            normalize(source)
        assert excinfo.value.definition == "E"

    def test_internal_newtype_of_named_type_is_deferred(self):
        enum = definitions('#[typeshare]\n#[serde(tag = "kind")]\nenum E { P(Point), Empty }\n')["E"]
        assert enum.variants[0].newtype == Named(name="Point", path="Point")

    def test_duplicate_variant_names(self):
        with pytest.raises(ShapeError, match="duplicate variant name"):
            normalize('#[typeshare]\nenum E { A, #[serde(rename = "A")] B }\n')

    def test_unknown_rename_rule(self):
        with pytest.raises(ShapeError, match="unknown rename rule"):
            normalize('#[typeshare]\n#[serde(rename_all = "Title Case")]\nenum E { A }\n')


class TestConstsAndMetadata:
    def test_consts(self):
        defs = definitions('#[typeshare]\nconst MAX: u32 = 10;\n#[typeshare]\nconst NAME: &str = "x";\n')
        assert isinstance(defs["MAX"], ConstDef)
        assert (defs["MAX"].type_expr, defs["MAX"].value) == (Primitive(PrimitiveKind.U32), 10)
        assert defs["NAME"].type_expr == Primitive(PrimitiveKind.STRING)

    def test_const_needs_literal(self):
        with pytest.raises(ShapeError, match="must be initialised with a literal"):
            normalize("#[typeshare]\nconst A: u32 = B + 1;\n")

    def test_const_needs_primitive_type(self):
        with pytest.raises(ShapeError, match="must have a primitive type"):
            normalize("#[typeshare]\nconst A: Vec<u8> = 1;\n")

    def test_decorators(self):
        defs = definitions('#[typeshare(swift = "Equatable, Hashable")]\nstruct A { a: u8 }\n')
        assert defs["A"].decorators("swift") == ["Equatable", "Hashable"]
        assert defs["A"].decorators("kotlin") == []

    def test_unknown_keys_warn_in_strict_mode(self):
        source = "#[typeshare]\n#[serde(frobnicate)]\nstruct A { a: u8 }\n"
        assert normalize(source).warnings == []
        warnings = normalize(source, strict=True).warnings
        assert len(warnings) == 1
        assert "frobnicate" in warnings[0].message

    def test_errors_are_collected(self):
        source = "#[typeshare]\nconst A: u32 = B;\n#[typeshare]\nconst C: u32 = D;\n"
        normalizer = Normalizer()
        with pytest.raises(ShapeError):
            normalizer.normalize(RustParser().parse(source, "x.rs"))
        assert len(normalizer.diagnostics) == 2

    def test_struct_result_types(self):
        defs = definitions("#[typeshare]\nstruct A { a: u8 }\n#[typeshare]\ntype B = Vec<A>;\n")
        assert isinstance(defs["A"], StructDef)
        assert defs["B"].target == ListType(Named(name="A", path="A"))
