"""Minimal JSONPath support for attribute external ids.

Attributes may be addressed with expressions like ``$.manager.id``,
``$.emails[0].value`` or ``$.identities[?(@.signInType=='emailAddress')].issuer``.
Only the child, index, wildcard and equality-filter forms are supported,
which covers what the upstream APIs return.
"""

from __future__ import annotations

import re
from typing import Any, List, Optional, Tuple

__all__ = ["JSONPathError", "tokenize", "attributes_from_json_path", "evaluate"]

Token = Tuple[str, Any]

_FILTER_PATTERN = re.compile(r"^\?\(\s*@\.([A-Za-z0-9_$-]+)\s*==\s*(.+?)\s*\)$")


class JSONPathError(ValueError):
    """The expression is malformed or uses unsupported syntax."""


def _closing_bracket(expression: str, start: int) -> int:
    quote: Optional[str] = None
    for i in range(start + 1, len(expression)):
        ch = expression[i]
        if quote:
            if ch == quote:
                quote = None
        elif ch in ("'", '"'):
            quote = ch
        elif ch == "]":
            return i
    raise JSONPathError(f"invalid expression provided: missing closing bracket in {expression!r}")


def _unquote(text: str) -> Optional[str]:
    for quote in ("'", '"'):
        if len(text) >= 2 and text[0] == quote and text[-1] == quote:
            return text[1:-1]
    return None


def _bracket_token(content: str) -> Token:
    content = content.strip()
    name = _unquote(content)
    if name is not None:
        return ("key", name)
    if content == "*":
        return ("wildcard", None)
    if re.fullmatch(r"-?\d+", content):
        return ("index", int(content))
    match = _FILTER_PATTERN.match(content)
    if match:
        literal = match.group(2)
        value: Any = _unquote(literal)
        if value is None:
            value = {"true": True, "false": False, "null": None}.get(literal, literal)
        return ("filter", (match.group(1), value))
    # Slices, unions and script expressions select elements but name no attribute
    return ("unsupported", content)


def tokenize(expression: str) -> List[Token]:
    """Split a ``$``-rooted expression into (kind, value) tokens."""
    if not expression.startswith("$"):
        raise JSONPathError(f"expression missing required '$' root: {expression!r}")

    tokens: List[Token] = []
    i = 1
    length = len(expression)
    while i < length:
        ch = expression[i]
        if ch == ".":
            i += 1
            if i < length and expression[i] == ".":
                raise JSONPathError("recursive descent is not supported")
            if i < length and expression[i] == "*":
                tokens.append(("wildcard", None))
                i += 1
                continue
            start = i
            while i < length and expression[i] not in ".[":
                i += 1
            if i > start:
                tokens.append(("key", expression[start:i]))
        elif ch == "[":
            end = _closing_bracket(expression, i)
            tokens.append(_bracket_token(expression[i + 1:end]))
            i = end + 1
        else:
            raise JSONPathError(f"unexpected character {ch!r} at position {i} in {expression!r}")

    return tokens


def attributes_from_json_path(expression: str) -> List[str]:
    """Names of the attributes an expression walks through, in order.

    Example:
        >>> attributes_from_json_path("$.manager.displayName")
        ['manager', 'displayName']
        >>> attributes_from_json_path("$.emails[0].value")
        ['emails', 'value']
    """
    if not expression.startswith("$."):
        raise JSONPathError("expression missing required '$.' prefix")
    return [value for kind, value in tokenize(expression) if kind == "key"]


def _step(values: List[Any], token: Token) -> List[Any]:
    kind, arg = token
    result: List[Any] = []
    for value in values:
        if kind == "key":
            if isinstance(value, dict) and arg in value:
                result.append(value[arg])
        elif kind == "index":
            if isinstance(value, list) and -len(value) <= arg < len(value):
                result.append(value[arg])
        elif kind == "wildcard":
            if isinstance(value, list):
                result.extend(value)
            elif isinstance(value, dict):
                result.extend(value.values())
        elif kind == "filter":
            field_name, expected = arg
            if isinstance(value, list):
                result.extend(
                    item for item in value
                    if isinstance(item, dict) and item.get(field_name) == expected
                )
        else:
            raise JSONPathError(f"unsupported expression component: [{arg}]")
    return result


def evaluate(document: Any, expression: str) -> Any:
    """Evaluate ``expression`` against ``document``.

    Paths without wildcards or filters return a single value (None when
    absent); otherwise a list of every match is returned.
    """
    tokens = tokenize(expression)
    values = [document]
    for token in tokens:
        values = _step(values, token)

    if any(kind in ("wildcard", "filter") for kind, _ in tokens):
        return values
    return values[0] if values else None
