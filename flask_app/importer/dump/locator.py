"""
Locate bulk-insert statements inside a text dump.

The export writes one ``INSERT INTO `table` VALUES`` header per block and
always closes the block with ``);`` at the end of a line, so a line scan is
enough to find the boundaries without parsing the statement body.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterator, Sequence

STATEMENT_TERMINATOR = ");"
_INSERT_RE = re.compile(r"INSERT\s+INTO\s+`?(?P<table>[A-Za-z0-9_$]+)`?", re.IGNORECASE)
_VALUES_RE = re.compile(r"\bVALUES\b", re.IGNORECASE)


@dataclass(frozen=True)
class StatementSpan:
    """Inclusive, zero-based line range of one insert statement."""

    table: str
    start_line: int
    end_line: int

    @property
    def line_count(self) -> int:
        return self.end_line - self.start_line + 1


def _begin_pattern(table_name: str) -> re.Pattern[str]:
    # Table name must be followed by a quote, whitespace or column list so
    # `wp_posts` never matches `wp_postmeta`.
    return re.compile(
        r"INSERT\s+INTO\s+`?" + re.escape(table_name) + r"(?:`|\s|\()",
        re.IGNORECASE,
    )


def _find_end(lines: Sequence[str], start: int) -> int | None:
    for index in range(start, len(lines)):
        if lines[index].rstrip().endswith(STATEMENT_TERMINATOR):
            return index
    return None


def iter_statements(lines: Sequence[str], table_name: str) -> Iterator[StatementSpan]:
    """
    Yield every insert statement for ``table_name`` in file order.

    A statement whose terminator never appears is treated as absent and stops
    the scan, since everything after it would belong to the unterminated
    block.
    """

    pattern = _begin_pattern(table_name)
    index = 0
    total = len(lines)
    while index < total:
        if pattern.search(lines[index]) is None:
            index += 1
            continue
        end = _find_end(lines, index)
        if end is None:
            return
        yield StatementSpan(table=table_name, start_line=index, end_line=end)
        index = end + 1


def locate_statement(lines: Sequence[str], table_name: str) -> StatementSpan | None:
    """Return the first statement span for ``table_name`` or ``None`` when absent."""
    return next(iter_statements(lines, table_name), None)


def locate_statements(lines: Sequence[str], table_name: str) -> list[StatementSpan]:
    return list(iter_statements(lines, table_name))


def extract_values_blob(lines: Sequence[str], span: StatementSpan) -> str:
    """
    Return the text after the ``VALUES`` keyword up to (and excluding) the
    trailing ``;``.
    """

    text = "\n".join(lines[span.start_line : span.end_line + 1])
    match = _VALUES_RE.search(text)
    if match is None:
        return ""
    blob = text[match.end() :].rstrip()
    if blob.endswith(";"):
        blob = blob[:-1]
    return blob


def discover_table_prefix(lines: Sequence[str], suffix: str = "terms") -> str | None:
    """
    Find the randomized table prefix by looking for the first insert into a
    table ending in ``suffix``.
    """

    for line in lines:
        for match in _INSERT_RE.finditer(line):
            table = match.group("table")
            if table.endswith(suffix) and len(table) > len(suffix):
                return table[: -len(suffix)]
    return None
