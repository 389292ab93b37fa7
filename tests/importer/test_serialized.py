from __future__ import annotations

import pytest

from flask_app.importer.dump.serialized import (
    ScheduleSlot,
    decode_capabilities,
    decode_schedule,
    encode_schedule,
)

LEGACY_SCHEDULE = (
    'a:2:{i:0;a:3:{s:4:"date";s:10:"2023-01-28";s:9:"startTime";s:5:"21:00";s:7:"endTime";s:5:"06:00";}'
    'i:1;a:3:{s:4:"date";s:10:"2023-01-29";s:9:"startTime";s:5:"21:00";s:7:"endTime";s:5:"06:00";}}'
)


def _slots(count: int) -> list[ScheduleSlot]:
    return [
        ScheduleSlot(
            date=f"2024-{(index % 12) + 1:02d}-{(index % 28) + 1:02d}",
            start_time=None if index % 5 == 0 else f"{index % 24:02d}:00",
            end_time=f"{(index + 8) % 24:02d}:30",
        )
        for index in range(count)
    ]


@pytest.mark.parametrize("count", [0, 1, 2, 7, 50])
def test_schedule_decodes_what_it_encodes(count):
    slots = _slots(count)

    assert decode_schedule(encode_schedule(slots)) == slots


def test_schedule_decodes_legacy_value_in_order():
    slots = decode_schedule(LEGACY_SCHEDULE)

    assert slots == [
        ScheduleSlot("2023-01-28", "21:00", "06:00"),
        ScheduleSlot("2023-01-29", "21:00", "06:00"),
    ]


def test_schedule_accepts_escaped_and_entity_encoded_quotes():
    escaped = LEGACY_SCHEDULE.replace('"', '\\"')
    entity = LEGACY_SCHEDULE.replace('"', "&quot;")

    assert decode_schedule(escaped) == decode_schedule(LEGACY_SCHEDULE)
    assert decode_schedule(entity) == decode_schedule(LEGACY_SCHEDULE)


@pytest.mark.parametrize(
    "blob",
    [
        None,
        "",
        "a:0:{}",
        "not serialized at all",
        'a:1:{i:0;a:3:{s:4:"date";s:10:"2023-01-28"',
        'a:1:{i:0;a:3:{s:9:"startTime";s:5:"21:00";s:7:"endTime";s:5:"06:00";}}',
        12345,
    ],
)
def test_schedule_malformed_input_yields_empty_list(blob):
    assert decode_schedule(blob) == []


def test_capabilities_only_returns_enabled_flags():
    blob = 'a:3:{s:8:"employer";b:1;s:13:"administrator";b:0;s:10:"subscriber";b:1;}'

    assert decode_capabilities(blob) == ["employer", "subscriber"]
    assert decode_capabilities(None) == []


def test_blank_dates_are_kept_for_the_caller_to_count():
    slots = [ScheduleSlot("2023-01-28", "21:00", "06:00"), ScheduleSlot("", "09:00", "17:00")]
    null_date = 'a:1:{i:0;a:3:{s:4:"date";N;s:9:"startTime";s:5:"09:00";s:7:"endTime";N;}}'

    assert decode_schedule(encode_schedule(slots)) == slots
    assert decode_schedule(null_date) == [ScheduleSlot("", "09:00", None)]
