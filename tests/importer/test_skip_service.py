"""Tests for SkipRecorder and ImportSkipService."""

import logging

from flask_app.importer.pipeline.skip_service import ImportSkipService, SkipRecorder, SkipSummary
from flask_app.models import db
from flask_app.models.importer.schema import ImportRun, ImportRunStatus, ImportSkip, ImportSkipType


def _create_run() -> ImportRun:
    run = ImportRun(
        source="legacy_dump",
        adapter="legacy_cms",
        status=ImportRunStatus.SUCCEEDED,
    )
    db.session.add(run)
    db.session.commit()
    return db.session.get(ImportRun, run.id)


def _create_skip(run: ImportRun, component: str, skip_type: ImportSkipType, reason: str) -> ImportSkip:
    skip = ImportSkip(
        run_id=run.id,
        component=component,
        skip_type=skip_type,
        skip_reason=reason,
        entity_type="person",
        record_key="42",
        details_json={"table": "users"},
    )
    db.session.add(skip)
    db.session.commit()
    return skip


def test_recorder_counts_by_component_and_type():
    recorder = SkipRecorder(metrics_enabled=False)
    recorder.record("jobs", "job", ImportSkipType.MISSING_REFERENCE, "Owner person 9 was not imported", record_key=300)
    recorder.record("jobs", "job", ImportSkipType.DUPLICATE, "Job legacy id repeated in dump", record_key=300)
    recorder.record("relationships", "skill_assignment", ImportSkipType.UNRESOLVED_ENDPOINT, "Subject 7 unknown")

    assert recorder.total == 3
    assert recorder.count("jobs") == 2
    assert recorder.count("jobs", ImportSkipType.DUPLICATE) == 1
    assert recorder.count("taxonomy") == 0
    assert recorder.counts_by_component() == {
        "jobs": {"duplicate": 1, "missing_reference": 1},
        "relationships": {"unresolved_endpoint": 1},
    }
    assert recorder.entries[0].record_key == "300"


def test_recorder_demotes_repeated_warnings(caplog):
    recorder = SkipRecorder(warning_limit=2, metrics_enabled=False)

    with caplog.at_level(logging.DEBUG, logger="flask_app.importer.pipeline.skip_service"):
        for index in range(4):
            recorder.record("field_decoder", "terms", ImportSkipType.MALFORMED_ROW, "bad row", record_key=index)

    records = [record for record in caplog.records if record.name.endswith("skip_service")]
    assert [record.levelno for record in records] == [logging.WARNING, logging.WARNING, logging.DEBUG, logging.DEBUG]
    assert records[0].importer_skip_type == "malformed_row"


def test_recorder_persist_adds_rows(app):
    run = _create_run()
    recorder = SkipRecorder(metrics_enabled=False, run_id=run.id)
    recorder.record(
        "serialized",
        "schedule",
        ImportSkipType.UNDECODABLE_VALUE,
        "Schedule attribute could not be decoded",
        record_key=301,
        details={"raw_preview": "a:1:{"},
    )

    assert recorder.persist(db.session, run.id) == 1
    db.session.commit()

    (stored,) = ImportSkipService(db.session).get_skips_for_run(run.id)
    assert stored.component == "serialized"
    assert stored.record_key == "301"
    assert stored.details_json == {"raw_preview": "a:1:{"}


def test_skip_service_get_skips_for_run_with_filters(app):
    run = _create_run()
    _create_skip(run, "people", ImportSkipType.DUPLICATE, "Person legacy id repeated in dump")
    missing = _create_skip(run, "jobs", ImportSkipType.MISSING_REFERENCE, "Owner person 9 was not imported")

    service = ImportSkipService(db.session)

    assert len(service.get_skips_for_run(run.id)) == 2
    by_type = service.get_skips_for_run(run.id, skip_type=ImportSkipType.MISSING_REFERENCE)
    assert [skip.id for skip in by_type] == [missing.id]
    by_component = service.get_skips_for_run(run.id, component="people")
    assert [skip.skip_type for skip in by_component] == [ImportSkipType.DUPLICATE]


def test_skip_service_pagination(app):
    run = _create_run()
    for index in range(5):
        _create_skip(run, "field_decoder", ImportSkipType.MALFORMED_ROW, f"Row {index} malformed")

    service = ImportSkipService(db.session)
    first_page = service.get_skips_for_run(run.id, limit=2)
    second_page = service.get_skips_for_run(run.id, limit=2, offset=2)

    assert len(first_page) == 2
    assert len(second_page) == 2
    assert {skip.id for skip in first_page}.isdisjoint({skip.id for skip in second_page})


def test_skip_service_get_skip_summary(app):
    run = _create_run()
    other_run = _create_run()
    _create_skip(run, "jobs", ImportSkipType.MISSING_REFERENCE, "Owner person 9 was not imported")
    _create_skip(run, "jobs", ImportSkipType.MISSING_REFERENCE, "Owner person 11 was not imported")
    _create_skip(run, "serialized", ImportSkipType.UNDECODABLE_VALUE, "Schedule slot date is not a valid date: 'x'")
    _create_skip(other_run, "people", ImportSkipType.DUPLICATE, "Person legacy id repeated in dump")

    summary = ImportSkipService(db.session).get_skip_summary(run.id)

    assert isinstance(summary, SkipSummary)
    assert summary.total_skips == 3
    assert summary.by_type == {"missing_reference": 2, "undecodable_value": 1}
    assert summary.by_component == {"jobs": 2, "serialized": 1}
    assert summary.by_reason["Schedule slot date is not a valid date"] == 1
    assert sum(summary.by_reason.values()) == 3
