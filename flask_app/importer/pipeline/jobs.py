"""
Turn job-posting records plus their attributes into job drafts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Mapping

from flask_app.importer.dump.records import RecordRow
from flask_app.importer.dump.serialized import ScheduleSlot, decode_schedule
from flask_app.importer.mapping import DumpMapping
from flask_app.models.job import JobStatus

from .people import clean_text, first_value, parse_timestamp

EMPTY_SERIALIZED_ARRAY = "a:0:{}"


@dataclass
class JobDraft:
    legacy_id: int
    owner_legacy_id: int
    title: str
    description: str | None
    status: JobStatus
    legacy_status: str | None
    status_recognized: bool
    pay_rate: str | None
    pay_type: str | None
    raw_schedule: str | None
    slots: list[ScheduleSlot] = field(default_factory=list)
    invalid_slots: list[ScheduleSlot] = field(default_factory=list)
    schedule_undecodable: bool = False
    posted_at: datetime | None = None
    modified_at: datetime | None = None

    @property
    def starts_at(self) -> date | None:
        for slot in self.slots:
            parsed = parse_slot_date(slot.date)
            if parsed is not None:
                return parsed
        return None


def parse_slot_date(value: str | None) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        return None


def map_job_status(value: str | None, mapping: DumpMapping) -> tuple[JobStatus, bool]:
    """
    Map a legacy status value to a ``JobStatus``.

    Returns the status and whether the legacy value was recognized; unknown
    values fall back to ``OPEN``.
    """

    key = (value or "").strip().lower()
    mapped = mapping.job_status.get(key)
    if mapped is None:
        return JobStatus.OPEN, False
    return JobStatus(mapped), True


def build_job(record: RecordRow, attributes: Mapping[str, Any], mapping: DumpMapping) -> JobDraft:
    legacy_status = first_value(attributes, mapping.attribute_keys("job_status"))
    status, recognized = map_job_status(legacy_status, mapping)

    raw_schedule = first_value(attributes, mapping.attribute_keys("schedule"))
    decoded = decode_schedule(raw_schedule)
    slots = [slot for slot in decoded if parse_slot_date(slot.date) is not None]
    invalid = [slot for slot in decoded if parse_slot_date(slot.date) is None]
    undecodable = bool(raw_schedule) and not decoded and raw_schedule.strip() != EMPTY_SERIALIZED_ARRAY

    return JobDraft(
        legacy_id=record.record_id,
        owner_legacy_id=record.owner_id,
        title=record.title.strip(),
        description=clean_text(record.content),
        status=status,
        legacy_status=legacy_status,
        status_recognized=recognized,
        pay_rate=first_value(attributes, mapping.attribute_keys("pay_rate")),
        pay_type=first_value(attributes, mapping.attribute_keys("pay_type")),
        raw_schedule=raw_schedule,
        slots=slots,
        invalid_slots=invalid,
        schedule_undecodable=undecodable,
        posted_at=parse_timestamp(record.created),
        modified_at=parse_timestamp(record.modified),
    )
