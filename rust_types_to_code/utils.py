"""
Utility functions for identifier casing.

Two families live here: the serde ``rename_all`` rules, which must reproduce
serde's wire names exactly, and the looser casing helpers backends use to
derive idiomatic identifiers.
"""

import re

# Regex pattern to split text into words, handling camelCase boundaries
_WORD_PATTERN = re.compile(r"[a-z]+|[A-Z][a-z]*|[0-9]+")

_IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

SERDE_RENAME_RULES = (
    "lowercase",
    "UPPERCASE",
    "PascalCase",
    "camelCase",
    "snake_case",
    "SCREAMING_SNAKE_CASE",
    "kebab-case",
    "SCREAMING-KEBAB-CASE",
)


def _normalize_separators(text: str) -> str:
    """Normalize separators (underscores, hyphens) to spaces."""
    return text.replace("_", " ").replace("-", " ")


def _split_into_words(text: str) -> list[str]:
    """Split text into words, handling camelCase boundaries."""
    return _WORD_PATTERN.findall(text)


def _capitalize_and_join(words: list[str]) -> str:
    """Capitalize each word and join them together."""
    return "".join(word.capitalize() for word in words if word)


def snake_to_pascal_case(text: str) -> str:
    """Convert snake_case, camelCase, or space-separated text to PascalCase.

    Examples:
        "first_name" -> "FirstName"
        "FIRST_NAME" -> "FirstName"
        "actionTemplate" -> "ActionTemplate"
        "first 3 rows" -> "First3Rows"

    Args:
        text: The text to convert (snake_case, camelCase, UPPER_SNAKE_CASE, or space-separated)

    Returns:
        PascalCase string
    """
    if not text:
        return ""
    normalized = _normalize_separators(text)
    words = _split_into_words(normalized)
    return _capitalize_and_join(words)


def snake_to_camel_case(text: str) -> str:
    """Convert snake_case to camelCase, leaving already-camel names alone.

    Examples:
        "first_name" -> "firstName"
        "id" -> "id"
        "userID" -> "userID"
    """
    if not text:
        return ""
    if "_" not in text and "-" not in text:
        return text[0].lower() + text[1:]
    head, *rest = [part for part in re.split(r"[_-]+", text) if part]
    if not rest:
        return head.lower()
    return head.lower() + "".join(part[0].upper() + part[1:].lower() for part in rest)


def is_identifier(text: str) -> bool:
    """Whether text is a plain ASCII identifier in C-family languages."""
    return bool(_IDENTIFIER_PATTERN.match(text))


def sanitize_identifier(text: str) -> str:
    """Replace characters that cannot appear in an identifier with underscores."""
    cleaned = re.sub(r"[^A-Za-z0-9_]", "_", text)
    if not cleaned or cleaned[0].isdigit():
        cleaned = f"_{cleaned}"
    return cleaned


def apply_rename_rule(rule: str, name: str, is_variant: bool = False) -> str:
    """Apply a serde ``rename_all`` rule to a field or variant name.

    Serde assumes fields are written in snake_case and variants in
    PascalCase, and the conversions differ accordingly.

    Raises:
        ValueError: If the rule is not one of serde's rename rules
    """
    if rule not in SERDE_RENAME_RULES:
        raise ValueError(f"unknown rename rule {rule!r}")
    if is_variant:
        return _rename_variant(rule, name)
    return _rename_field(rule, name)


def _rename_variant(rule: str, variant: str) -> str:
    if rule == "lowercase":
        return variant.lower()
    if rule == "UPPERCASE":
        return variant.upper()
    if rule == "PascalCase":
        return variant
    if rule == "camelCase":
        return variant[:1].lower() + variant[1:]
    snake = ""
    for i, ch in enumerate(variant):
        if i > 0 and ch.isupper():
            snake += "_"
        snake += ch.lower()
    if rule == "snake_case":
        return snake
    if rule == "SCREAMING_SNAKE_CASE":
        return snake.upper()
    if rule == "kebab-case":
        return snake.replace("_", "-")
    return snake.upper().replace("_", "-")


def _rename_field(rule: str, field: str) -> str:
    if rule in ("lowercase", "snake_case"):
        return field
    if rule in ("UPPERCASE", "SCREAMING_SNAKE_CASE"):
        return field.upper()
    if rule in ("PascalCase", "camelCase"):
        pascal = ""
        capitalize = True
        for ch in field:
            if ch == "_":
                capitalize = True
            elif capitalize:
                pascal += ch.upper()
                capitalize = False
            else:
                pascal += ch
        if rule == "PascalCase":
            return pascal
        return pascal[:1].lower() + pascal[1:]
    if rule == "kebab-case":
        return field.replace("_", "-")
    return field.upper().replace("_", "-")
