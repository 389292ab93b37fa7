"""
Split the VALUES blob of one insert statement into raw row strings.

Rows are top-level parenthesis groups. Quoted literals may contain commas,
parentheses, newlines and escaped quotes, so the scan tracks nesting depth,
the active quote character and escapes instead of relying on line breaks.
"""

from __future__ import annotations

from typing import Iterator

QUOTE_CHARS = ("'", '"')
ESCAPE_CHAR = "\\"


def iter_rows(values_blob: str) -> Iterator[str]:
    """
    Lazily yield the inner text of each top-level ``(...)`` group.

    The surrounding parentheses are not included. A trailing group that
    never closes is dropped. Single pass; the generator cannot be restarted.
    """

    depth = 0
    quote: str | None = None
    start = 0
    index = 0
    length = len(values_blob)

    while index < length:
        char = values_blob[index]

        if quote is not None:
            if char == ESCAPE_CHAR:
                index += 2
                continue
            if char == quote:
                if index + 1 < length and values_blob[index + 1] == quote:
                    # Doubled quote is a literal quote, not a terminator.
                    index += 2
                    continue
                quote = None
            index += 1
            continue

        if char in QUOTE_CHARS:
            quote = char
        elif char == "(":
            depth += 1
            if depth == 1:
                start = index + 1
        elif char == ")" and depth > 0:
            depth -= 1
            if depth == 0:
                yield values_blob[start:index]
        index += 1


def count_rows(values_blob: str) -> int:
    """Return the number of complete top-level groups in ``values_blob``."""
    return sum(1 for _ in iter_rows(values_blob))
