"""
Lenient tokenizer for Rust source text.

The lexer never raises: unterminated literals and comments run to the end of
the file and unknown characters become punctuation tokens. Only the parser
decides what is an error, and it only does so inside marked declarations.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum


class TokenKind(Enum):
    IDENT = "ident"
    LIFETIME = "lifetime"
    STRING = "string"
    CHAR = "char"
    NUMBER = "number"
    PUNCT = "punct"
    DOC = "doc"
    EOF = "eof"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    value: str
    line: int

    def is_punct(self, value: str) -> bool:
        return self.kind == TokenKind.PUNCT and self.value == value

    def is_ident(self, value: str | None = None) -> bool:
        return self.kind == TokenKind.IDENT and (value is None or self.value == value)


# `>>` stays two tokens so nested generics close correctly
_MULTI_PUNCT = ("::", "->", "=>")

_RAW_STRING_START = re.compile(r"b?r(#*)\"")
_NUMBER = re.compile(
    r"0x[0-9a-fA-F_]+|0o[0-7_]+|0b[01_]+"
    r"|[0-9][0-9_]*(?:\.[0-9][0-9_]*)?(?:[eE][+-]?[0-9_]+)?"
)
_NUMBER_SUFFIX = re.compile(r"(?:i8|i16|i32|i64|i128|isize|u8|u16|u32|u64|u128|usize|f32|f64)")
_SIMPLE_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "0": "\0", "\\": "\\", '"': '"', "'": "'"}


def _is_ident_start(ch: str) -> bool:
    return ch == "_" or ch.isalpha()


def _is_ident_char(ch: str) -> bool:
    return ch == "_" or ch.isalnum()


def _code_point(digits: str) -> str | None:
    try:
        return chr(int(digits.replace("_", ""), 16))
    except ValueError:
        return None


def unescape(text: str) -> str:
    """Resolve Rust string escapes (``\\n``, ``\\u{..}``, ``\\x..``, line continuations).

    Malformed escapes are kept as written.
    """
    out: list[str] = []
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch != "\\" or i + 1 >= n:
            out.append(ch)
            i += 1
            continue
        nxt = text[i + 1]
        if nxt in _SIMPLE_ESCAPES:
            out.append(_SIMPLE_ESCAPES[nxt])
            i += 2
        elif nxt == "x":
            decoded = _code_point(text[i + 2 : i + 4]) if i + 4 <= n else None
            if decoded is None:
                out.append(text[i : i + 2])
                i += 2
            else:
                out.append(decoded)
                i += 4
        elif nxt == "u" and i + 2 < n and text[i + 2] == "{":
            end = text.find("}", i + 3)
            decoded = _code_point(text[i + 3 : end]) if end != -1 else None
            if decoded is None:
                out.append(text[i : i + 3])
                i += 3
            else:
                out.append(decoded)
                i = end + 1
        elif nxt == "\n":
            i += 2
            while i < n and text[i].isspace():
                i += 1
        else:
            out.append(nxt)
            i += 2
    return "".join(out)


class RustLexer:
    """Converts Rust source text into a flat list of tokens."""

    def tokenize(self, text: str) -> list[Token]:
        """
        Tokenize source text.

        Args:
            text: Rust source text

        Returns:
            Tokens in source order, terminated by an EOF token
        """
        tokens: list[Token] = []
        i = 0
        line = 1
        n = len(text)

        while i < n:
            ch = text[i]

            if ch == "\n":
                line += 1
                i += 1
                continue
            if ch.isspace():
                i += 1
                continue

            # Comments, keeping outer doc comments as tokens
            if text.startswith("//", i):
                end = text.find("\n", i)
                end = n if end == -1 else end
                comment = text[i:end]
                if comment.startswith("///") and not comment.startswith("////"):
                    tokens.append(Token(TokenKind.DOC, _strip_doc(comment[3:]), line))
                i = end
                continue
            if text.startswith("/*", i):
                end = self._block_comment_end(text, i)
                body = text[i:end]
                if body.startswith("/**") and not body.startswith("/***") and body != "/**/":
                    for offset, doc_line in enumerate(_block_doc_lines(body[3:-2])):
                        tokens.append(Token(TokenKind.DOC, doc_line, line + offset))
                line += body.count("\n")
                i = end
                continue

            # Raw strings must be checked before identifiers (`r"..."`, `br#"..."#`)
            raw = _RAW_STRING_START.match(text, i)
            if raw:
                terminator = '"' + raw.group(1)
                end = text.find(terminator, raw.end())
                value_end = n if end == -1 else end
                value = text[raw.end() : value_end]
                tokens.append(Token(TokenKind.STRING, value, line))
                line += value.count("\n")
                i = n if end == -1 else end + len(terminator)
                continue

            if ch == '"' or (ch == "b" and text.startswith('b"', i)):
                start = i + (2 if ch == "b" else 1)
                end = self._quoted_end(text, start, '"')
                value = text[start:end]
                tokens.append(Token(TokenKind.STRING, unescape(value), line))
                line += value.count("\n")
                i = end + 1
                continue

            if ch == "'" or (ch == "b" and text.startswith("b'", i)):
                start = i + (2 if ch == "b" else 1)
                if start < n and text[start] == "\\":
                    end = self._quoted_end(text, start, "'")
                    tokens.append(Token(TokenKind.CHAR, unescape(text[start:end]), line))
                    i = end + 1
                    continue
                if start + 1 < n and text[start + 1] == "'":
                    tokens.append(Token(TokenKind.CHAR, text[start], line))
                    i = start + 2
                    continue
                # Lifetime or label: 'a, 'static
                j = start
                while j < n and _is_ident_char(text[j]):
                    j += 1
                tokens.append(Token(TokenKind.LIFETIME, text[start:j], line))
                i = max(j, start)
                continue

            if ch.isdigit():
                match = _NUMBER.match(text, i)
                j = match.end()
                suffix = _NUMBER_SUFFIX.match(text, j)
                if suffix:
                    j = suffix.end()
                tokens.append(Token(TokenKind.NUMBER, text[i:j], line))
                i = j
                continue

            if _is_ident_start(ch):
                start = i
                if text.startswith("r#", i) and i + 2 < n and _is_ident_start(text[i + 2]):
                    start = i + 2
                j = start
                while j < n and _is_ident_char(text[j]):
                    j += 1
                tokens.append(Token(TokenKind.IDENT, text[start:j], line))
                i = j
                continue

            for punct in _MULTI_PUNCT:
                if text.startswith(punct, i):
                    tokens.append(Token(TokenKind.PUNCT, punct, line))
                    i += len(punct)
                    break
            else:
                tokens.append(Token(TokenKind.PUNCT, ch, line))
                i += 1

        tokens.append(Token(TokenKind.EOF, "", line))
        return tokens

    @staticmethod
    def _block_comment_end(text: str, start: int) -> int:
        """Index just past a (possibly nested) block comment."""
        depth = 0
        i = start
        n = len(text)
        while i < n:
            if text.startswith("/*", i):
                depth += 1
                i += 2
            elif text.startswith("*/", i):
                depth -= 1
                i += 2
                if depth == 0:
                    return i
            else:
                i += 1
        return n

    @staticmethod
    def _quoted_end(text: str, start: int, quote: str) -> int:
        """Index of the closing quote, honouring backslash escapes."""
        i = start
        n = len(text)
        while i < n:
            if text[i] == "\\":
                i += 2
                continue
            if text[i] == quote:
                return i
            i += 1
        return n


def _strip_doc(text: str) -> str:
    return text[1:] if text.startswith(" ") else text


def _block_doc_lines(body: str) -> list[str]:
    lines = []
    for raw in body.strip().split("\n"):
        stripped = raw.strip()
        if stripped.startswith("*"):
            stripped = _strip_doc(stripped[1:])
        lines.append(stripped)
    return lines
