"""
Tests for the lexer and the marked-declaration parser.
"""

from __future__ import annotations

import pytest

from rust_types_to_code.pipeline.errors import ParseError
from rust_types_to_code.pipeline.rust_ast import (
    ArrayTypeNode,
    ConstNode,
    EnumNode,
    OpaqueTypeNode,
    PathTypeNode,
    RustLexer,
    RustParser,
    StructNode,
    TokenKind,
    TupleTypeNode,
    TypeAliasNode,
)


@pytest.fixture
def parser():
    return RustParser()


class TestLexer:
    def test_doc_comments_are_tokens(self):
        tokens = RustLexer().tokenize("/// A point.\n// plain comment\nstruct P;")
        docs = [t for t in tokens if t.kind == TokenKind.DOC]
        assert [d.value for d in docs] == ["A point."]

    def test_block_doc_comment(self):
        tokens = RustLexer().tokenize("/**\n * First\n * Second\n */\nstruct P;")
        assert [t.value for t in tokens if t.kind == TokenKind.DOC] == ["First", "Second"]

    def test_unterminated_string_does_not_raise(self):
        tokens = RustLexer().tokenize('fn f() { let s = "never closed')
        assert tokens[-1].kind == TokenKind.EOF

    def test_raw_strings_and_escapes(self):
        tokens = RustLexer().tokenize('r#"a "quoted" b"# "tab\\tnew\\u{41}"')
        strings = [t.value for t in tokens if t.kind == TokenKind.STRING]
        assert strings == ['a "quoted" b', "tab\tnewA"]

    def test_lifetimes_and_chars(self):
        tokens = RustLexer().tokenize("&'a str 'x' '\\n'")
        assert [t.kind for t in tokens[:-1]] == [
            TokenKind.PUNCT,
            TokenKind.LIFETIME,
            TokenKind.IDENT,
            TokenKind.CHAR,
            TokenKind.CHAR,
        ]

    def test_line_numbers(self):
        tokens = RustLexer().tokenize("a\n/* x\ny */\nb")
        assert [(t.value, t.line) for t in tokens if t.kind == TokenKind.IDENT] == [("a", 1), ("b", 4)]

    @pytest.mark.parametrize(
        "literal",
        ["\\xZZ", "\\x4", "\\u{zz}", "\\u{110000}", "\\u{12", "\\u{}"],
    )
    def test_malformed_escapes_are_kept(self, literal):
        tokens = RustLexer().tokenize(f'let s = "{literal}";')
        assert [t.value for t in tokens if t.kind == TokenKind.STRING] == [literal]


class TestParser:
    def test_only_marked_items_are_parsed(self, parser):
        source = """
        use serde::Serialize;

        struct Hidden { a: u8 }

        impl Hidden {
            fn new() -> Self { Self { a: 1 } }
        }

        macro_rules! weird { ($x:expr) => { $x + } }

        #[typeshare]
        pub struct Visible { pub a: u8 }
        """
        parsed = parser.parse(source, "lib.rs", "api")
        assert [d.name for d in parsed.declarations] == ["Visible"]
        assert parsed.module == "api"

    def test_bad_literals_outside_marked_items(self, parser):
        source = (
            "#[typeshare]\npub struct A { x: u32 }\n\n"
            'fn f() {\n    let s = "\\xZZ";\n    let c = \'\\u{110000}\';\n    let n = 0x_;\n}\n'
        )
        parsed = parser.parse(source, "lib.rs")
        assert [d.name for d in parsed.declarations] == ["A"]

    def test_digitless_const_is_kept_as_expression(self, parser):
        parsed = parser.parse("#[typeshare]\nconst MASK: u32 = 0x_;\n", "lib.rs")
        assert (parsed.declarations[0].value, parsed.declarations[0].value_kind) == ("0x_", "expr")

    def test_docs_and_attributes(self, parser):
        source = """
        /// A point.
        #[doc = "Second line."]
        #[typeshare]
        #[derive(Serialize)]
        #[serde(rename_all = "camelCase", deny_unknown_fields)]
        pub struct Point<T> {
            /// Horizontal
            #[serde(rename = "xx")]
            pub x: T,
            pub(crate) y: Option<Vec<T>>,
        }
        """
        struct = parser.parse(source).declarations[0]
        assert isinstance(struct, StructNode)
        assert struct.docs == ["A point.", "Second line."]
        assert [g.name for g in struct.generics] == ["T"]
        serde = next(a for a in struct.attributes if a.name == "serde")
        assert serde.items[0].key == "rename_all"
        assert serde.items[0].value == "camelCase"
        assert serde.items[1].is_flag
        assert [a.name for a in struct.attributes] == ["typeshare", "derive", "serde"]

        x, y = struct.fields
        assert x.docs == ["Horizontal"]
        assert x.attributes[0].items[0].value == "xx"
        assert isinstance(y.type_node, PathTypeNode)
        assert y.type_node.name == "Option"
        assert y.type_node.args[0].name == "Vec"

    def test_nested_meta_items(self, parser):
        source = """
        #[typeshare(swift = "Equatable, Hashable", kotlin(type = "Long"))]
        struct A { a: u8 }
        """
        marker = parser.parse(source).declarations[0].attributes[0]
        assert marker.items[0].value == "Equatable, Hashable"
        assert marker.items[1].nested[0].key == "type"
        assert marker.items[1].nested[0].value == "Long"

    def test_struct_kinds(self, parser):
        source = """
        #[typeshare]
        pub struct Id(pub String);

        #[typeshare]
        pub struct Empty;

        #[typeshare]
        pub struct Pair(u8, String);
        """
        ident, empty, pair = parser.parse(source).declarations
        assert (ident.kind, len(ident.fields)) == ("tuple", 1)
        assert (empty.kind, empty.fields) == ("unit", [])
        assert (pair.kind, len(pair.fields)) == ("tuple", 2)

    def test_enum_variants(self, parser):
        source = """
        #[typeshare]
        #[serde(tag = "type", content = "c")]
        pub enum Shape {
            /// Round
            Circle { radius: f64 },
            Square(f64),
            #[serde(rename = "nothing")]
            Empty,
            Code = 3,
        }
        """
        enum = parser.parse(source).declarations[0]
        assert isinstance(enum, EnumNode)
        kinds = [(v.name, v.kind) for v in enum.variants]
        assert kinds == [("Circle", "struct"), ("Square", "tuple"), ("Empty", "unit"), ("Code", "unit")]
        assert enum.variants[0].docs == ["Round"]
        assert enum.variants[2].attributes[0].items[0].value == "nothing"
        assert enum.variants[3].discriminant == "3"

    def test_type_syntax(self, parser):
        source = """
        #[typeshare]
        pub struct Types<'a> {
            reference: &'a str,
            fixed: [u8; 4],
            pair: (u8, String),
            unit: (),
            callback: Box<dyn Fn(u8) -> u8>,
            path: std::collections::HashMap<String, u32>,
        }
        """
        fields = {f.name: f.type_node for f in parser.parse(source).declarations[0].fields}
        assert fields["reference"].name == "str"
        assert isinstance(fields["fixed"], ArrayTypeNode)
        assert fields["fixed"].length == "4"
        assert isinstance(fields["pair"], TupleTypeNode)
        assert fields["unit"].elements == []
        assert isinstance(fields["callback"].args[0], OpaqueTypeNode)
        assert fields["callback"].args[0].text == "dyn Fn(u8) -> u8"
        assert fields["path"].path == "std::collections::HashMap"
        assert len(fields["path"].args) == 2

    def test_type_alias_and_consts(self, parser):
        source = """
        #[typeshare]
        pub type Ids = Vec<String>;

        #[typeshare]
        pub const MAX: u32 = 1_000;

        #[typeshare]
        pub const MIN: i32 = -5;

        #[typeshare]
        pub const NAME: &str = "lib";

        #[typeshare]
        pub const RATIO: f64 = 0.5;

        #[typeshare]
        pub const ON: bool = true;

        #[typeshare]
        pub const COMPUTED: u32 = MAX + 1;
        """
        alias, *consts = parser.parse(source).declarations
        assert isinstance(alias, TypeAliasNode)
        assert alias.target.name == "Vec"
        assert all(isinstance(c, ConstNode) for c in consts)
        values = [(c.name, c.value, c.value_kind) for c in consts]
        assert values == [
            ("MAX", 1000, "int"),
            ("MIN", -5, "int"),
            ("NAME", "lib", "string"),
            ("RATIO", 0.5, "float"),
            ("ON", True, "bool"),
            ("COMPUTED", "MAX + 1", "expr"),
        ]

    def test_spans(self, parser):
        source = "\n\n/// Doc\n#[typeshare]\nstruct A {\n    a: u8,\n}\n"
        decl = parser.parse(source, "a.rs").declarations[0]
        assert (decl.span.file, decl.span.start_line, decl.span.end_line) == ("a.rs", 3, 7)

    def test_malformed_marked_item(self, parser):
        source = "#[typeshare]\npub struct Broken {\n    a u8,\n}\n"
        with pytest.raises(ParseError) as excinfo:
            parser.parse(source, "broken.rs")
        assert excinfo.value.file == "broken.rs"
        assert excinfo.value.line == 3
        assert "expected ':'" in str(excinfo.value)

    def test_marker_on_unsupported_item(self, parser):
        with pytest.raises(ParseError, match="expected struct, enum, type or const"):
            parser.parse("#[typeshare]\nfn f() {}\n")

    def test_const_generics_rejected(self, parser):
        with pytest.raises(ParseError, match="const generic"):
            parser.parse("#[typeshare]\nstruct A<const N: usize> { a: [u8; N] }\n")

    def test_parse_type(self, parser):
        node = parser.parse_type("Vec<u8>")
        assert isinstance(node, PathTypeNode)
        assert node.name == "Vec"
        with pytest.raises(ParseError):
            parser.parse_type("Vec<u8> extra")
