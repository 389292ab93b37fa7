"""
In-memory view of a legacy dump.

The file is read once; tables are located, tokenized and decoded lazily on
first access and cached afterwards because later phases need random access
across tables.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Mapping, Sequence, TypeVar

from flask_app.importer.errors import DumpReadError, FieldArityError
from flask_app.importer.mapping import DumpMapping

from .fields import decode_row
from .locator import discover_table_prefix, extract_values_blob, iter_statements
from .records import AssociationRow, AttributeRow, ClassificationRow, EntityRow, PersonRow, RecordRow
from .tokenizer import iter_rows

logger = logging.getLogger(__name__)

T = TypeVar("T")
RAW_PREVIEW_LENGTH = 120


@dataclass
class TableReadStats:
    """Row accounting for one logical table."""

    table: str
    statements: int = 0
    rows_seen: int = 0
    rows_decoded: int = 0
    rows_malformed: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "statements": self.statements,
            "rows_seen": self.rows_seen,
            "rows_decoded": self.rows_decoded,
            "rows_malformed": self.rows_malformed,
        }


@dataclass(frozen=True)
class MalformedRow:
    table: str
    row_number: int
    reason: str
    raw_preview: str


@dataclass
class DumpInventory:
    stats: dict[str, TableReadStats] = field(default_factory=dict)
    malformed: list[MalformedRow] = field(default_factory=list)


class LegacyDump:
    """Decoded access to the tables of one dump file."""

    def __init__(self, lines: Sequence[str], mapping: DumpMapping, prefix: str, *, source_path: Path | None = None):
        self.lines = list(lines)
        self.mapping = mapping
        self.prefix = prefix
        self.source_path = source_path
        self.inventory = DumpInventory()
        self._raw_cache: dict[str, list[dict[str, Any]]] = {}
        self._typed_cache: dict[str, list[Any]] = {}

    @classmethod
    def from_text(cls, text: str, mapping: DumpMapping, prefix: str | None = None) -> "LegacyDump":
        lines = text.splitlines()
        resolved_prefix = prefix if prefix is not None else discover_table_prefix(
            lines, mapping.table("terms").suffix
        )
        if resolved_prefix is None:
            raise DumpReadError(
                "validate",
                "Could not discover the table prefix; pass --prefix explicitly.",
                reason="prefix_unknown",
            )
        return cls(lines, mapping, resolved_prefix)

    @classmethod
    def from_path(cls, path: str | Path, mapping: DumpMapping, prefix: str | None = None) -> "LegacyDump":
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            raise DumpReadError("validate", f"Failed to read dump at {path}: {exc}") from exc
        dump = cls.from_text(text, mapping, prefix)
        dump.source_path = path
        return dump

    @property
    def text(self) -> str:
        return "\n".join(self.lines)

    def table_name(self, name: str) -> str:
        return self.mapping.table(name).table_name(self.prefix)

    def rows(self, name: str) -> list[dict[str, Any]]:
        """Return the decoded rows of logical table ``name`` (all insert blocks)."""
        cached = self._raw_cache.get(name)
        if cached is not None:
            return cached

        layout = self.mapping.table(name)
        table_name = layout.table_name(self.prefix)
        stats = self.inventory.stats.setdefault(name, TableReadStats(table=table_name))
        decoded: list[dict[str, Any]] = []
        for span in iter_statements(self.lines, table_name):
            stats.statements += 1
            for raw_row in iter_rows(extract_values_blob(self.lines, span)):
                stats.rows_seen += 1
                try:
                    decoded.append(decode_row(raw_row, layout))
                except (FieldArityError, ValueError) as exc:
                    stats.rows_malformed += 1
                    self._record_malformed(name, stats.rows_seen, str(exc), raw_row)
        stats.rows_decoded = len(decoded)
        if stats.statements == 0:
            logger.info("Table %s not present in dump; treating as empty.", table_name)
        self._raw_cache[name] = decoded
        return decoded

    def source_row_count(self, name: str) -> int:
        """Rows seen in the source statement(s), including malformed ones."""
        self.rows(name)
        return self.inventory.stats[name].rows_seen

    def _record_malformed(self, table: str, row_number: int, reason: str, raw_row: str) -> None:
        self.inventory.malformed.append(
            MalformedRow(
                table=table,
                row_number=row_number,
                reason=reason,
                raw_preview=raw_row[:RAW_PREVIEW_LENGTH],
            )
        )
        logger.debug("Skipping malformed %s row %s: %s", table, row_number, reason)

    def _typed(self, name: str, cache_key: str, factory: Callable[[Mapping[str, Any]], T]) -> list[T]:
        cached = self._typed_cache.get(cache_key)
        if cached is not None:
            return cached
        stats_rows = self.rows(name)
        stats = self.inventory.stats[name]
        typed: list[T] = []
        for row in stats_rows:
            try:
                typed.append(factory(row))
            except (KeyError, TypeError, ValueError) as exc:
                stats.rows_malformed += 1
                stats.rows_decoded -= 1
                self._record_malformed(name, -1, f"Unusable row values: {exc}", repr(dict(row)))
        self._typed_cache[cache_key] = typed
        return typed

    def entities(self) -> list[EntityRow]:
        return self._typed("terms", "entities", EntityRow.from_row)

    def classifications(self) -> list[ClassificationRow]:
        return self._typed("term_taxonomy", "classifications", ClassificationRow.from_row)

    def associations(self) -> list[AssociationRow]:
        return self._typed("term_relationships", "associations", AssociationRow.from_row)

    def records(self) -> list[RecordRow]:
        return self._typed("posts", "records", RecordRow.from_row)

    def record_attributes(self) -> list[AttributeRow]:
        return self._typed("postmeta", "record_attributes", AttributeRow.from_record_row)

    def person_attributes(self) -> list[AttributeRow]:
        return self._typed("usermeta", "person_attributes", AttributeRow.from_person_row)

    def people(self) -> list[PersonRow]:
        return self._typed("users", "people", PersonRow.from_row)

    def classifications_by_taxonomy(self, taxonomy: str) -> list[ClassificationRow]:
        return [row for row in self.classifications() if row.taxonomy == taxonomy]


def group_attributes(attributes: Sequence[AttributeRow]) -> dict[int, dict[str, str | None]]:
    """
    Index attributes by owner id. When a key repeats for one owner the first
    non-empty value wins.
    """

    grouped: dict[int, dict[str, str | None]] = defaultdict(dict)
    for attribute in attributes:
        bucket = grouped[attribute.owner_id]
        existing = bucket.get(attribute.key)
        if existing in (None, ""):
            bucket[attribute.key] = attribute.value
    return dict(grouped)
