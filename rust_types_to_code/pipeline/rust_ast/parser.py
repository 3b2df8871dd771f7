"""
Parser for marked Rust declarations.

Walks the token stream of a whole file but only strictly parses the items
whose outer attributes include ``#[typeshare]``. Everything else (functions,
impl blocks, macros, unmarked types) is skipped token by token and never
validated, so arbitrary Rust code can live next to the marked types.
"""

from __future__ import annotations

from typing import Any

import structlog

from ..errors import ParseError, SourceSpan
from .lexer import RustLexer, Token, TokenKind
from .nodes import (
    ArrayTypeNode,
    AttributeNode,
    ConstNode,
    DeclNode,
    EnumNode,
    FieldNode,
    GenericParamNode,
    MetaItem,
    OpaqueTypeNode,
    PathTypeNode,
    SourceFileNode,
    StructNode,
    TupleTypeNode,
    TypeAliasNode,
    TypeNode,
    VariantNode,
)

logger = structlog.get_logger()

MARKER = "typeshare"

# Attributes whose argument lists are interpreted as meta items
_META_ATTRIBUTES = {"serde", "typeshare"}

_OPEN = {"(": ")", "[": "]", "{": "}", "<": ">"}
_CLOSE = {")", "]", "}", ">"}

# Tokens that start type syntax kept verbatim as opaque text
_OPAQUE_TYPE_KEYWORDS = {"dyn", "impl", "fn", "unsafe", "extern"}


class _TokenStream:
    """Cursor over a token list with strict-parsing helpers."""

    def __init__(self, tokens: list[Token], path: str):
        self.tokens = tokens
        self.path = path
        self.pos = 0

    def peek(self, offset: int = 0) -> Token:
        index = min(self.pos + offset, len(self.tokens) - 1)
        return self.tokens[index]

    def advance(self) -> Token:
        tok = self.peek()
        if tok.kind != TokenKind.EOF:
            self.pos += 1
        return tok

    @property
    def at_eof(self) -> bool:
        return self.peek().kind == TokenKind.EOF

    @property
    def last_line(self) -> int:
        return self.tokens[max(self.pos - 1, 0)].line

    def error(self, message: str, tok: Token | None = None) -> ParseError:
        tok = tok or self.peek()
        found = "end of file" if tok.kind == TokenKind.EOF else repr(tok.value)
        return ParseError(self.path, tok.line, f"{message}, found {found}")

    def accept_punct(self, value: str) -> bool:
        if self.peek().is_punct(value):
            self.advance()
            return True
        return False

    def accept_ident(self, value: str) -> bool:
        if self.peek().is_ident(value):
            self.advance()
            return True
        return False

    def expect_punct(self, value: str) -> Token:
        if not self.peek().is_punct(value):
            raise self.error(f"expected '{value}'")
        return self.advance()

    def expect_ident(self, what: str = "identifier") -> Token:
        if self.peek().kind != TokenKind.IDENT:
            raise self.error(f"expected {what}")
        return self.advance()

    def skip_balanced(self) -> list[Token]:
        """Consume an opening bracket and everything up to its match."""
        opening = self.advance()
        closing = _OPEN[opening.value]
        depth = 1
        inner: list[Token] = []
        while not self.at_eof:
            tok = self.advance()
            if tok.is_punct(opening.value):
                depth += 1
            elif tok.is_punct(closing):
                depth -= 1
                if depth == 0:
                    return inner
            inner.append(tok)
        return inner


class RustParser:
    """Parses the marked declarations of a Rust source file."""

    def __init__(self):
        self.lexer = RustLexer()

    def parse(self, text: str, path: str = "", module: str = "") -> SourceFileNode:
        """
        Parse a source file.

        Args:
            text: Rust source text
            path: File path used in diagnostics
            module: Module path the file defines

        Returns:
            SourceFileNode with the marked declarations in source order

        Raises:
            ParseError: If a marked declaration is malformed
        """
        stream = _TokenStream(self.lexer.tokenize(text), path)
        declarations: list[DeclNode] = []

        raw_attributes: list[list[Token]] = []
        docs: list[str] = []
        start_line = 0

        while not stream.at_eof:
            tok = stream.peek()
            if tok.kind == TokenKind.DOC:
                docs.append(stream.advance().value)
                start_line = start_line or tok.line
                continue
            if tok.is_punct("#") and stream.peek(1).is_punct("["):
                start_line = start_line or tok.line
                stream.advance()
                raw_attributes.append(stream.skip_balanced())
                continue
            if tok.is_punct("#") and stream.peek(1).is_punct("!"):
                # Inner attribute: #![...]
                stream.advance()
                stream.advance()
                if stream.peek().is_punct("["):
                    stream.skip_balanced()
            elif any(_attribute_name(attr) == MARKER for attr in raw_attributes):
                declarations.append(self._parse_item(stream, raw_attributes, docs, start_line or tok.line))
            else:
                stream.advance()
            raw_attributes = []
            docs = []
            start_line = 0

        logger.debug("file_parsed", file=path, declarations=len(declarations))
        return SourceFileNode(path=path, module=module, declarations=declarations)

    def parse_type(self, text: str, path: str = "", line: int = 0) -> TypeNode:
        """Parse a standalone type, as written in ``serialized_as = "Vec<u8>"``."""
        tokens = [Token(tok.kind, tok.value, line or tok.line) for tok in self.lexer.tokenize(text)]
        stream = _TokenStream(tokens, path)
        type_node = self._parse_type(stream)
        if not stream.at_eof:
            raise stream.error(f"unexpected trailing tokens in type {text!r}")
        return type_node

    # Items

    def _parse_item(
        self, stream: _TokenStream, raw_attributes: list[list[Token]], docs: list[str], start_line: int
    ) -> DeclNode:
        attributes, attr_docs = self._interpret_attributes(raw_attributes, stream.path)
        docs = docs + attr_docs
        self._skip_visibility(stream)

        keyword = stream.peek()
        if keyword.is_ident("struct"):
            stream.advance()
            node: DeclNode = self._parse_struct(stream)
        elif keyword.is_ident("enum"):
            stream.advance()
            node = self._parse_enum(stream)
        elif keyword.is_ident("type"):
            stream.advance()
            node = self._parse_type_alias(stream)
        elif keyword.is_ident("const"):
            stream.advance()
            node = self._parse_const(stream)
        else:
            raise stream.error(f"expected struct, enum, type or const after #[{MARKER}]")

        node.attributes = attributes
        node.docs = docs
        node.span = SourceSpan(stream.path, start_line, stream.last_line)
        return node

    def _parse_struct(self, stream: _TokenStream) -> StructNode:
        name = stream.expect_ident("struct name").value
        generics = self._parse_generics(stream)
        self._skip_where_clause(stream)

        if stream.peek().is_punct("{"):
            fields = self._parse_named_fields(stream)
            return StructNode(name=name, kind="named", generics=generics, fields=fields)
        if stream.peek().is_punct("("):
            fields = self._parse_tuple_fields(stream)
            self._skip_where_clause(stream)
            stream.expect_punct(";")
            return StructNode(name=name, kind="tuple", generics=generics, fields=fields)
        stream.expect_punct(";")
        return StructNode(name=name, kind="unit", generics=generics)

    def _parse_enum(self, stream: _TokenStream) -> EnumNode:
        name = stream.expect_ident("enum name").value
        generics = self._parse_generics(stream)
        self._skip_where_clause(stream)
        stream.expect_punct("{")

        variants: list[VariantNode] = []
        while not stream.accept_punct("}"):
            attributes, docs = self._parse_outer_attributes(stream)
            tok = stream.expect_ident("variant name")
            variant = VariantNode(name=tok.value, attributes=attributes, docs=docs, line=tok.line)
            if stream.peek().is_punct("{"):
                variant.kind = "struct"
                variant.fields = self._parse_named_fields(stream)
            elif stream.peek().is_punct("("):
                variant.kind = "tuple"
                variant.fields = self._parse_tuple_fields(stream)
            if stream.accept_punct("="):
                variant.discriminant = self._collect_text(stream, stop={",", "}"})
            variants.append(variant)
            if not stream.accept_punct(","):
                stream.expect_punct("}")
                break
        return EnumNode(name=name, generics=generics, variants=variants)

    def _parse_type_alias(self, stream: _TokenStream) -> TypeAliasNode:
        name = stream.expect_ident("type alias name").value
        generics = self._parse_generics(stream)
        stream.expect_punct("=")
        target = self._parse_type(stream)
        stream.expect_punct(";")
        return TypeAliasNode(name=name, generics=generics, target=target)

    def _parse_const(self, stream: _TokenStream) -> ConstNode:
        name = stream.expect_ident("constant name").value
        stream.expect_punct(":")
        type_node = self._parse_type(stream)
        stream.expect_punct("=")

        negative = stream.accept_punct("-")
        tok = stream.peek()
        if tok.kind in (TokenKind.NUMBER, TokenKind.STRING, TokenKind.CHAR) or tok.is_ident("true") or tok.is_ident("false"):
            if stream.peek(1).is_punct(";"):
                stream.advance()
                stream.advance()
                value, kind = _literal_value(tok, negative)
                return ConstNode(name=name, type_node=type_node, value=value, value_kind=kind)
        text = ("-" if negative else "") + self._collect_text(stream, stop={";"})
        stream.expect_punct(";")
        return ConstNode(name=name, type_node=type_node, value=text, value_kind="expr")

    # Fields

    def _parse_named_fields(self, stream: _TokenStream) -> list[FieldNode]:
        stream.expect_punct("{")
        fields: list[FieldNode] = []
        while not stream.accept_punct("}"):
            attributes, docs = self._parse_outer_attributes(stream)
            self._skip_visibility(stream)
            tok = stream.expect_ident("field name")
            stream.expect_punct(":")
            type_node = self._parse_type(stream)
            fields.append(FieldNode(name=tok.value, type_node=type_node, attributes=attributes, docs=docs, line=tok.line))
            if not stream.accept_punct(","):
                stream.expect_punct("}")
                break
        return fields

    def _parse_tuple_fields(self, stream: _TokenStream) -> list[FieldNode]:
        stream.expect_punct("(")
        fields: list[FieldNode] = []
        while not stream.accept_punct(")"):
            attributes, docs = self._parse_outer_attributes(stream)
            self._skip_visibility(stream)
            line = stream.peek().line
            type_node = self._parse_type(stream)
            fields.append(FieldNode(type_node=type_node, attributes=attributes, docs=docs, line=line))
            if not stream.accept_punct(","):
                stream.expect_punct(")")
                break
        return fields

    def _parse_outer_attributes(self, stream: _TokenStream) -> tuple[list[AttributeNode], list[str]]:
        raw: list[list[Token]] = []
        docs: list[str] = []
        while True:
            tok = stream.peek()
            if tok.kind == TokenKind.DOC:
                docs.append(stream.advance().value)
            elif tok.is_punct("#") and stream.peek(1).is_punct("["):
                stream.advance()
                raw.append(stream.skip_balanced())
            else:
                break
        attributes, attr_docs = self._interpret_attributes(raw, stream.path)
        return attributes, docs + attr_docs

    # Generics and visibility

    def _parse_generics(self, stream: _TokenStream) -> list[GenericParamNode]:
        params: list[GenericParamNode] = []
        if not stream.accept_punct("<"):
            return params
        while not stream.accept_punct(">"):
            tok = stream.peek()
            if tok.kind == TokenKind.LIFETIME:
                stream.advance()
                if stream.accept_punct(":"):
                    self._collect_text(stream, stop={",", ">"})
            elif tok.is_ident("const"):
                raise stream.error("const generic parameters are not supported")
            else:
                name = stream.expect_ident("generic parameter").value
                bound = None
                if stream.accept_punct(":"):
                    bound = self._collect_text(stream, stop={",", ">", "="})
                if stream.accept_punct("="):
                    self._collect_text(stream, stop={",", ">"})
                params.append(GenericParamNode(name=name, bound=bound or None))
            if not stream.accept_punct(","):
                stream.expect_punct(">")
                break
        return params

    def _skip_where_clause(self, stream: _TokenStream) -> None:
        if stream.accept_ident("where"):
            self._collect_text(stream, stop={"{", ";"})

    @staticmethod
    def _skip_visibility(stream: _TokenStream) -> None:
        if not stream.accept_ident("pub"):
            return
        if stream.peek().is_punct("(") and stream.peek(1).kind == TokenKind.IDENT:
            if stream.peek(1).value in ("crate", "self", "super", "in"):
                stream.skip_balanced()

    # Types

    def _parse_type(self, stream: _TokenStream) -> TypeNode:
        tok = stream.peek()

        if tok.is_punct("&"):
            stream.advance()
            if stream.peek().kind == TokenKind.LIFETIME:
                stream.advance()
            stream.accept_ident("mut")
            return self._parse_type(stream)

        if tok.is_punct("("):
            stream.advance()
            elements: list[TypeNode] = []
            trailing_comma = False
            while not stream.accept_punct(")"):
                elements.append(self._parse_type(stream))
                trailing_comma = stream.accept_punct(",")
                if not trailing_comma:
                    stream.expect_punct(")")
                    break
            if len(elements) == 1 and not trailing_comma:
                return elements[0]
            return TupleTypeNode(line=tok.line, elements=elements)

        if tok.is_punct("["):
            stream.advance()
            element = self._parse_type(stream)
            length = None
            if stream.accept_punct(";"):
                length = self._collect_text(stream, stop={"]"})
            stream.expect_punct("]")
            return ArrayTypeNode(line=tok.line, element=element, length=length)

        if (tok.kind == TokenKind.IDENT and tok.value in _OPAQUE_TYPE_KEYWORDS) or tok.is_punct("<") or tok.is_punct("*") or tok.is_punct("!"):
            text = self._collect_text(stream, stop={",", ";", "="})
            return OpaqueTypeNode(line=tok.line, text=text)

        if tok.kind == TokenKind.IDENT or tok.is_punct("::"):
            return self._parse_path_type(stream)

        raise stream.error("expected a type")

    def _parse_path_type(self, stream: _TokenStream) -> TypeNode:
        line = stream.peek().line
        stream.accept_punct("::")
        segments = [stream.expect_ident("type name").value]
        args: list[TypeNode] = []
        while True:
            if stream.peek().is_punct("<"):
                stream.advance()
                args = self._parse_generic_args(stream)
            if not stream.accept_punct("::"):
                break
            if stream.peek().is_punct("<"):
                continue
            segments.append(stream.expect_ident("path segment").value)
        return PathTypeNode(line=line, segments=segments, args=args)

    def _parse_generic_args(self, stream: _TokenStream) -> list[TypeNode]:
        args: list[TypeNode] = []
        while not stream.accept_punct(">"):
            tok = stream.peek()
            if tok.kind == TokenKind.LIFETIME:
                stream.advance()
            elif tok.kind == TokenKind.IDENT and stream.peek(1).is_punct("="):
                # Associated type binding (Item = T) has no data shape
                text = self._collect_text(stream, stop={",", ">"})
                args.append(OpaqueTypeNode(line=tok.line, text=text))
            else:
                args.append(self._parse_type(stream))
            if not stream.accept_punct(","):
                stream.expect_punct(">")
                break
        return args

    @staticmethod
    def _collect_text(stream: _TokenStream, stop: set[str]) -> str:
        """Consume tokens up to a depth-0 stop punctuation; return them as text."""
        parts: list[str] = []
        depth = 0
        while not stream.at_eof:
            tok = stream.peek()
            if tok.kind == TokenKind.PUNCT:
                if depth == 0 and (tok.value in stop or tok.value in _CLOSE):
                    break
                if tok.value in _OPEN:
                    depth += 1
                elif tok.value in _CLOSE:
                    depth -= 1
            parts.append(_token_text(stream.advance()))
        return _join_tokens(parts)

    # Attributes

    def _interpret_attributes(self, raw_attributes: list[list[Token]], path: str) -> tuple[list[AttributeNode], list[str]]:
        """Turn raw attribute token lists into nodes; ``doc`` attributes become doc lines."""
        attributes: list[AttributeNode] = []
        docs: list[str] = []
        for tokens in raw_attributes:
            if not tokens:
                continue
            stream = _TokenStream(tokens + [Token(TokenKind.EOF, "", tokens[-1].line)], path)
            name = _attribute_name(tokens)
            line = tokens[0].line

            if name == "doc" and len(tokens) >= 3 and tokens[2].kind == TokenKind.STRING:
                docs.extend(tokens[2].value.strip("\n").split("\n"))
                continue
            if name not in _META_ATTRIBUTES:
                attributes.append(AttributeNode(name=name, line=line))
                continue

            stream.advance()
            items: list[MetaItem] = []
            if stream.peek().is_punct("("):
                stream.advance()
                items = self._parse_meta_list(stream, closing=")")
            if not stream.at_eof:
                raise stream.error(f"unexpected token in #[{name}] attribute")
            attributes.append(AttributeNode(name=name, items=items, line=line))
        return attributes, docs

    def _parse_meta_list(self, stream: _TokenStream, closing: str) -> list[MetaItem]:
        items: list[MetaItem] = []
        while not stream.accept_punct(closing):
            key = stream.expect_ident("attribute key").value
            while stream.accept_punct("::"):
                key += "::" + stream.expect_ident("attribute key").value
            item = MetaItem(key=key)
            if stream.accept_punct("="):
                negative = stream.accept_punct("-")
                tok = stream.advance()
                if tok.kind not in (TokenKind.STRING, TokenKind.NUMBER, TokenKind.CHAR) and not (
                    tok.is_ident("true") or tok.is_ident("false")
                ):
                    raise stream.error(f"expected a literal value for '{key}'", tok)
                item.value, _ = _literal_value(tok, negative)
            elif stream.accept_punct("("):
                item.nested = self._parse_meta_list(stream, closing=")")
            items.append(item)
            if not stream.accept_punct(","):
                stream.expect_punct(closing)
                break
        return items


def _attribute_name(tokens: list[Token]) -> str:
    """Path of an attribute from its raw tokens (``serde``, ``serde_with::skip``)."""
    parts: list[str] = []
    for tok in tokens:
        if tok.kind == TokenKind.IDENT:
            parts.append(tok.value)
        elif not tok.is_punct("::"):
            break
    return "::".join(parts)


def _literal_value(tok: Token, negative: bool = False) -> tuple[Any, str]:
    """Python value and kind of a literal token."""
    if tok.kind == TokenKind.STRING:
        return tok.value, "string"
    if tok.kind == TokenKind.CHAR:
        return tok.value, "char"
    if tok.kind == TokenKind.IDENT:
        return tok.value == "true", "bool"
    try:
        return _number_value(tok.value, negative)
    except ValueError:
        # Digit-less forms such as `0x_` are left as written
        return ("-" if negative else "") + tok.value, "expr"


def _number_value(text: str, negative: bool) -> tuple[Any, str]:
    digits = text.replace("_", "")
    for suffix in ("f32", "f64"):
        if digits.endswith(suffix) and not digits.startswith("0x"):
            digits = digits[: -len(suffix)]
            value: Any = float(digits)
            return (-value if negative else value), "float"
    for suffix in ("i128", "u128", "isize", "usize", "i64", "u64", "i32", "u32", "i16", "u16", "i8", "u8"):
        if digits.endswith(suffix):
            digits = digits[: -len(suffix)]
            break
    if digits.startswith(("0x", "0o", "0b")):
        value = int(digits, 0)
    elif any(c in digits for c in ".eE"):
        value = float(digits)
        return (-value if negative else value), "float"
    else:
        value = int(digits)
    return (-value if negative else value), "int"


def _token_text(tok: Token) -> str:
    if tok.kind == TokenKind.STRING:
        return '"' + tok.value.replace("\\", "\\\\").replace('"', '\\"') + '"'
    if tok.kind == TokenKind.CHAR:
        return f"'{tok.value}'"
    if tok.kind == TokenKind.LIFETIME:
        return f"'{tok.value}"
    return tok.value


_NO_SPACE_BEFORE = {",", ">", ")", "]", "::", ";", "<", "(", "[", "?"}
_NO_SPACE_AFTER = {"::", "<", "(", "[", "&", "*", "-"}


def _join_tokens(parts: list[str]) -> str:
    """Join token texts with spacing that reads like source (``Box<dyn Fn(u8) -> u8>``)."""
    out = ""
    previous = ""
    for part in parts:
        if out and part not in _NO_SPACE_BEFORE and previous not in _NO_SPACE_AFTER:
            out += " "
        out += part
        previous = part
    return out
