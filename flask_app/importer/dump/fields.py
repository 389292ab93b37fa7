"""
Decode the fields of one raw row into typed Python values.
"""

from __future__ import annotations

import html
from typing import Any, Iterable, Mapping

from flask_app.importer.errors import FieldArityError
from flask_app.importer.mapping import TableLayout

from .tokenizer import ESCAPE_CHAR, QUOTE_CHARS

NULL_TOKEN = "NULL"

_UNESCAPES = {
    "0": "\0",
    "b": "\b",
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "Z": "\x1a",
}
_ESCAPES = {
    "\\": "\\\\",
    "'": "\\'",
    "\0": "\\0",
    "\n": "\\n",
    "\r": "\\r",
    "\x1a": "\\Z",
}


def split_fields(row: str) -> list[str]:
    """
    Split a raw row on top-level commas, leaving quoted tokens intact.
    """

    tokens: list[str] = []
    depth = 0
    quote: str | None = None
    start = 0
    index = 0
    length = len(row)

    while index < length:
        char = row[index]
        if quote is not None:
            if char == ESCAPE_CHAR:
                index += 2
                continue
            if char == quote:
                if index + 1 < length and row[index + 1] == quote:
                    index += 2
                    continue
                quote = None
            index += 1
            continue

        if char in QUOTE_CHARS:
            quote = char
        elif char == "(":
            depth += 1
        elif char == ")" and depth > 0:
            depth -= 1
        elif char == "," and depth == 0:
            tokens.append(row[start:index])
            start = index + 1
        index += 1

    tail = row[start:]
    if tokens or tail.strip():
        tokens.append(tail)
    return tokens


def _unescape_literal(body: str, quote: str) -> str:
    parts: list[str] = []
    index = 0
    length = len(body)
    while index < length:
        char = body[index]
        if char == ESCAPE_CHAR and index + 1 < length:
            following = body[index + 1]
            parts.append(_UNESCAPES.get(following, following))
            index += 2
            continue
        if char == quote and index + 1 < length and body[index + 1] == quote:
            parts.append(quote)
            index += 2
            continue
        parts.append(char)
        index += 1
    return "".join(parts)


def decode_token(token: str, *, integer: bool = False, decode_html: bool = True) -> Any:
    """
    Decode one field token.

    Unquoted ``NULL`` becomes ``None``. Quoted literals are unquoted and
    unescaped. Integer columns are parsed with ``int``; a value that does not
    parse raises ``ValueError``.
    """

    value = token.strip()
    if value.upper() == NULL_TOKEN:
        return None

    quoted = len(value) >= 2 and value[0] in QUOTE_CHARS and value[-1] == value[0]
    if quoted:
        text = _unescape_literal(value[1:-1], value[0])
    else:
        text = value

    if integer:
        if text == "" and quoted:
            return None
        return int(text)
    if decode_html and "&" in text:
        text = html.unescape(text)
    return text


def decode_row(row: str, layout: TableLayout, *, decode_html: bool = True) -> dict[str, Any]:
    """
    Decode ``row`` according to ``layout`` into a column-keyed mapping.

    Raises ``FieldArityError`` when the token count differs from the layout.
    """

    tokens = split_fields(row)
    if len(tokens) != layout.arity:
        raise FieldArityError(layout.name, layout.arity, len(tokens), raw_row=row)
    return {
        column: decode_token(
            token,
            integer=column in layout.integer_columns,
            decode_html=decode_html,
        )
        for column, token in zip(layout.columns, tokens)
    }


def encode_literal(value: Any) -> str:
    """Render ``value`` the way the export writes it."""
    if value is None:
        return NULL_TOKEN
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, int):
        return str(value)
    text = str(value)
    return "'" + "".join(_ESCAPES.get(char, char) for char in text) + "'"


def encode_row(values: Iterable[Any] | Mapping[str, Any], layout: TableLayout | None = None) -> str:
    """Render a row as ``(v1,v2,...)``; mappings are ordered by ``layout``."""
    if isinstance(values, Mapping):
        if layout is None:
            raise ValueError("A table layout is required to encode a mapping row.")
        ordered = [values.get(column) for column in layout.columns]
    else:
        ordered = list(values)
    return "(" + ",".join(encode_literal(value) for value in ordered) + ")"
