"""
Parsing primitives for the legacy SQL dump.
"""

from .fields import decode_row, decode_token, encode_literal, encode_row, split_fields
from .locator import (
    StatementSpan,
    discover_table_prefix,
    extract_values_blob,
    iter_statements,
    locate_statement,
    locate_statements,
)
from .reader import LegacyDump, MalformedRow, TableReadStats, group_attributes
from .records import AssociationRow, AttributeRow, ClassificationRow, EntityRow, PersonRow, RecordRow
from .serialized import ScheduleSlot, decode_capabilities, decode_schedule, encode_schedule
from .tokenizer import count_rows, iter_rows

__all__ = [
    "AssociationRow",
    "AttributeRow",
    "ClassificationRow",
    "EntityRow",
    "LegacyDump",
    "MalformedRow",
    "PersonRow",
    "RecordRow",
    "ScheduleSlot",
    "StatementSpan",
    "TableReadStats",
    "count_rows",
    "decode_capabilities",
    "decode_row",
    "decode_schedule",
    "decode_token",
    "discover_table_prefix",
    "encode_literal",
    "encode_row",
    "encode_schedule",
    "extract_values_blob",
    "group_attributes",
    "iter_rows",
    "iter_statements",
    "locate_statement",
    "locate_statements",
    "split_fields",
]
