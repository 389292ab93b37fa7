"""
Decode and encode the serialized schedule arrays stored as record attributes.

The legacy CMS stores schedules with its native serializer, for example::

    a:1:{i:0;a:3:{s:4:"date";s:10:"2023-01-28";s:9:"startTime";s:5:"21:00";s:7:"endTime";s:5:"06:00";}}

Only this one inner shape is ever written, so each ``i:<n>;a:3:{...}`` block
is matched independently instead of parsing the whole grammar.
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass
from typing import Iterable

DATE_KEY = "date"
START_KEY = "startTime"
END_KEY = "endTime"

_BLOCK_RE = re.compile(r"i:\d+;a:3:\{(?P<body>[^{}]*)\}")
_PAIR_RE = re.compile(r's:\d+:"(?P<key>[^"]*)";(?:s:\d+:"(?P<value>[^"]*)"|(?P<null>N));')


@dataclass(frozen=True)
class ScheduleSlot:
    date: str
    start_time: str | None = None
    end_time: str | None = None


def _normalize(blob: str) -> str:
    text = html.unescape(blob)
    return text.replace('\\"', '"')


def decode_schedule(blob: str | None) -> list[ScheduleSlot]:
    """
    Return the slots encoded in ``blob`` in their stored order.

    Blocks with no date key are malformed and ignored. A date key holding a
    blank or null value is kept as a slot with an empty date so callers can
    count it. Empty, non-string or malformed input yields an empty list.
    """

    if not blob or not isinstance(blob, str):
        return []

    slots: list[ScheduleSlot] = []
    for block in _BLOCK_RE.finditer(_normalize(blob)):
        values: dict[str, str | None] = {}
        for pair in _PAIR_RE.finditer(block.group("body")):
            values[pair.group("key")] = None if pair.group("null") else pair.group("value")
        if DATE_KEY not in values:
            continue
        slots.append(
            ScheduleSlot(
                date=values[DATE_KEY] or "",
                start_time=values.get(START_KEY),
                end_time=values.get(END_KEY),
            )
        )
    return slots


def _serialize_string(value: str | None) -> str:
    if value is None:
        return "N;"
    return f's:{len(value.encode("utf-8"))}:"{value}";'


def encode_schedule(slots: Iterable[ScheduleSlot]) -> str:
    """Serialize ``slots`` into the legacy array format."""
    entries = []
    slot_list = list(slots)
    for index, slot in enumerate(slot_list):
        body = "".join(
            (
                _serialize_string(DATE_KEY),
                _serialize_string(slot.date),
                _serialize_string(START_KEY),
                _serialize_string(slot.start_time),
                _serialize_string(END_KEY),
                _serialize_string(slot.end_time),
            )
        )
        entries.append(f"i:{index};a:3:{{{body}}}")
    return f"a:{len(slot_list)}:{{{''.join(entries)}}}"


_CAPABILITY_RE = re.compile(r's:\d+:"(?P<name>[^"]+)";b:(?P<flag>[01]);')


def decode_capabilities(blob: str | None) -> list[str]:
    """
    Return the enabled capability names of a serialized ``{name: bool}`` map,
    for example ``a:1:{s:8:"employer";b:1;}``.
    """

    if not blob or not isinstance(blob, str):
        return []
    return [
        match.group("name")
        for match in _CAPABILITY_RE.finditer(_normalize(blob))
        if match.group("flag") == "1"
    ]
