from __future__ import annotations

import pytest

from flask_app.importer.dump import (
    count_rows,
    decode_row,
    decode_token,
    discover_table_prefix,
    encode_literal,
    encode_row,
    extract_values_blob,
    iter_rows,
    iter_statements,
    locate_statement,
    split_fields,
)
from flask_app.importer.errors import FieldArityError

DUMP_LINES = [
    "-- header",
    "INSERT INTO `xVhkH_posts` VALUES",
    "(1,'a'),",
    "(2,'b');",
    "INSERT INTO `xVhkH_postmeta` VALUES (10,1,'k','v');",
    "INSERT INTO `xVhkH_posts` VALUES",
    "(3,'c');",
]


def test_locator_finds_every_block_in_order():
    spans = list(iter_statements(DUMP_LINES, "xVhkH_posts"))

    assert [(span.start_line, span.end_line) for span in spans] == [(1, 3), (5, 6)]
    assert spans[0].line_count == 3


def test_locator_does_not_confuse_prefix_matching_tables():
    span = locate_statement(DUMP_LINES, "xVhkH_postmeta")

    assert span is not None
    assert span.start_line == span.end_line == 4
    assert extract_values_blob(DUMP_LINES, span).strip() == "(10,1,'k','v')"


def test_locator_returns_none_for_absent_or_unterminated_table():
    assert locate_statement(DUMP_LINES, "xVhkH_users") is None

    unterminated = ["INSERT INTO `t_users` VALUES", "(1,'a'),", "(2,'b')"]
    assert locate_statement(unterminated, "t_users") is None


def test_discover_table_prefix():
    lines = ["INSERT INTO `aB3_terms` VALUES (1,'x','x',0);"]

    assert discover_table_prefix(lines, "terms") == "aB3_"
    assert discover_table_prefix(["SELECT 1;"], "terms") is None


def test_tokenizer_counts_groups_with_quoted_delimiters():
    blob = "(1,'a,b'),(2,'has ) paren'),(3,'it''s'),(4,'esc \\' quote'),(5,\"dq (x)\")"

    rows = list(iter_rows(blob))

    assert count_rows(blob) == 5
    assert rows[1] == "2,'has ) paren'"
    assert rows[2] == "3,'it''s'"


def test_tokenizer_drops_unclosed_trailing_group():
    assert list(iter_rows("(1,'a'),(2,'b")) == ["1,'a'"]


def test_split_fields_respects_quotes_and_empty_strings():
    assert split_fields("1,'a,b','',NULL") == ["1", "'a,b'", "''", "NULL"]
    assert split_fields("") == []


def test_decode_token_handles_null_escapes_and_entities():
    assert decode_token("NULL") is None
    assert decode_token("'NULL'") == "NULL"
    assert decode_token("'line\\nbreak'") == "line\nbreak"
    assert decode_token("'O\\'Brien'") == "O'Brien"
    assert decode_token("'it''s'") == "it's"
    assert decode_token("'Fish &amp; Chips'") == "Fish & Chips"
    assert decode_token("'Fish &amp; Chips'", decode_html=False) == "Fish &amp; Chips"
    assert decode_token("42", integer=True) == 42
    assert decode_token("''", integer=True) is None


def test_decode_row_maps_columns_and_types(dump_mapping):
    layout = dump_mapping.table("term_taxonomy")

    row = decode_row("12,7,'skillset','Desc, with comma',0,3", layout)

    assert row == {
        "term_taxonomy_id": 12,
        "term_id": 7,
        "taxonomy": "skillset",
        "description": "Desc, with comma",
        "parent": 0,
        "count": 3,
    }


def test_decode_row_rejects_wrong_arity(dump_mapping):
    layout = dump_mapping.table("terms")

    with pytest.raises(FieldArityError) as excinfo:
        decode_row("1,'name','slug'", layout)

    assert excinfo.value.expected == 4
    assert excinfo.value.actual == 3


def test_encoded_rows_decode_to_original_values(dump_mapping):
    layout = dump_mapping.table("usermeta")
    original = {
        "umeta_id": 9,
        "user_id": 4,
        "meta_key": "short_bio",
        "meta_value": "Line one\nIt's \"quoted\", (with) commas\\slashes",
    }

    encoded = encode_row(original, layout)
    (raw,) = list(iter_rows(encoded))

    assert decode_row(raw, layout) == original


TRICKY_VALUES = [
    "plain",
    "",
    "NULL",
    "it's",
    "back\\slash",
    "(parens) and, commas",
    "close ) then ( open",
    'double "quoted"',
    "line one\nline two\r\n",
    "trailing quote '",
    "''",
    "\\'",
    "tab\tnul\0sub\x1a",
]


def _usermeta_rows(count: int) -> list[dict]:
    return [
        {
            "umeta_id": index + 1,
            "user_id": None if index % 4 == 3 else index * 7,
            "meta_key": None if index % 5 == 2 else f"key_{index}",
            "meta_value": None if index % 6 == 5 else TRICKY_VALUES[index % len(TRICKY_VALUES)],
        }
        for index in range(count)
    ]


@pytest.mark.parametrize("count", [0, 1, 3, 25])
def test_encoded_row_sets_tokenize_and_decode_to_original_values(dump_mapping, count):
    layout = dump_mapping.table("usermeta")
    original = _usermeta_rows(count)
    blob = ",\n".join(encode_row(row, layout) for row in original)

    raw_rows = list(iter_rows(blob))

    assert count_rows(blob) == count
    assert [decode_row(raw, layout) for raw in raw_rows] == original


def test_encode_literal_forms():
    assert encode_literal(None) == "NULL"
    assert encode_literal(5) == "5"
    assert encode_literal("a'b") == "'a\\'b'"
