"""
Rust AST module.

Contains the lenient lexer, the marked-declaration parser and the raw
declaration nodes it produces.
"""

from __future__ import annotations

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
from .parser import MARKER, RustParser

__all__ = [
    "MARKER",
    "RustLexer",
    "RustParser",
    "Token",
    "TokenKind",
    "ArrayTypeNode",
    "AttributeNode",
    "ConstNode",
    "DeclNode",
    "EnumNode",
    "FieldNode",
    "GenericParamNode",
    "MetaItem",
    "OpaqueTypeNode",
    "PathTypeNode",
    "SourceFileNode",
    "StructNode",
    "TupleTypeNode",
    "TypeAliasNode",
    "TypeNode",
    "VariantNode",
]
