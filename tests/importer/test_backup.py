from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from flask_app.importer.pipeline.backup import snapshot_tables, write_backup
from flask_app.importer.pipeline.idempotency import MissingLegacyIdentifier, parse_target_id, target_id
from flask_app.importer.pipeline.store import ImportStore
from flask_app.models import PIPELINE_OWNED_MODELS, Person, PersonProfile, Skill, db


def _seed():
    root = Skill(id="skill_10", legacy_id=10, name="Hospitality")
    child = Skill(id="skill_11", legacy_id=11, name="Barista", parent_id="skill_10")
    person = Person(id="person_4", legacy_id=4, login="talent")
    person.profile = PersonProfile(location={"city": "Perth"})
    db.session.add_all([root, person])
    db.session.flush()
    db.session.add(child)
    db.session.commit()


def test_target_ids_carry_entity_type():
    assert target_id("skill", 10) == "skill_10"
    assert target_id("brand", 10) == "brand_10"
    assert parse_target_id("person_42") == ("person", 42)


@pytest.mark.parametrize("legacy_id", [None, 0, -3, True])
def test_target_id_requires_positive_legacy_id(legacy_id):
    with pytest.raises(MissingLegacyIdentifier):
        target_id("person", legacy_id)


def test_target_id_rejects_unknown_types():
    with pytest.raises(ValueError):
        target_id("contact", 1)
    with pytest.raises(ValueError):
        parse_target_id("contact_1")
    with pytest.raises(ValueError):
        parse_target_id("skill_x")


def test_snapshot_and_write_backup(app, tmp_path):
    _seed()

    tables = snapshot_tables(db.session, PIPELINE_OWNED_MODELS)
    assert {row["id"] for row in tables["skills"]} == {"skill_10", "skill_11"}
    assert tables["person_profiles"][0]["location"] == {"city": "Perth"}
    assert tables["job_postings"] == []

    now = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    result = write_backup(db.session, tmp_path / "nested", PIPELINE_OWNED_MODELS, run_id=7, now=now)

    assert result.path.name == "backup-20240102T030405000000-run7.json"
    assert result.row_counts["skills"] == 2
    assert result.total_rows == 4
    payload = json.loads(result.path.read_text(encoding="utf-8"))
    assert payload["run_id"] == 7
    assert payload["created_at"] == now.isoformat()
    assert payload["tables"]["people"][0]["legacy_id"] == 4


def test_store_clear_removes_self_referencing_rows(app):
    _seed()
    store = ImportStore(db.session)

    removed = store.clear(PIPELINE_OWNED_MODELS)
    store.commit()

    assert removed["skills"] == 2
    assert removed["people"] == 1
    assert store.count(Skill) == 0
    assert store.count(PersonProfile) == 0


def test_store_helpers(app):
    _seed()
    store = ImportStore(db.session)

    store.ping()
    assert store.legacy_ids(Skill) == {10, 11}
    assert store.get(Skill, "skill_11").parent_id == "skill_10"
    assert store.count(Person) == 1
