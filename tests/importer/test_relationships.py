from __future__ import annotations

from flask_app.importer.dump.records import AssociationRow, ClassificationRow, RecordRow
from flask_app.importer.pipeline.relationships import VIA_PERSON, VIA_RECORD, RelationshipResolver


def _classification(classification_id: int, entity_id: int, taxonomy: str) -> ClassificationRow:
    return ClassificationRow(classification_id, entity_id, taxonomy, "", 0, 1)


def _record(record_id: int, owner_id: int) -> RecordRow:
    return RecordRow(record_id, owner_id, "", "", "talent_profile", "publish", "", None, None)


CLASSIFICATIONS = {
    500: _classification(500, 50, "spoken_lang"),
    600: _classification(600, 60, "skillset"),
}


def test_association_through_record_owner_resolves_to_person():
    resolver = RelationshipResolver.from_records([_record(900, 7)], person_ids={7})

    result = resolver.resolve([AssociationRow(900, 500, 0)], CLASSIFICATIONS, "spoken_lang")

    assert len(result.edges) == 1
    edge = result.edges[0]
    assert (edge.person_legacy_id, edge.entity_legacy_id, edge.via) == (7, 50, VIA_RECORD)
    assert result.resolved_via_record == 1
    assert result.resolved_direct == 0


def test_direct_person_subject_wins_over_record_with_same_id():
    resolver = RelationshipResolver.from_records([_record(7, 8)], person_ids={7, 8})

    assert resolver.resolve_subject(7) == (7, VIA_PERSON)


def test_unresolved_subjects_and_unimported_entities_are_dropped():
    resolver = RelationshipResolver.from_records([_record(901, 99)], person_ids={7})
    associations = [
        AssociationRow(901, 500, 0),  # record owner not imported
        AssociationRow(12345, 500, 0),  # no such subject
        AssociationRow(7, 500, 0),
        AssociationRow(7, 600, 0),  # other taxonomy, ignored
    ]

    result = resolver.resolve(associations, CLASSIFICATIONS, "spoken_lang", entity_ids=set())

    assert result.considered == 3
    assert result.missing_entity == 3
    assert result.edges == []

    result = resolver.resolve(associations, CLASSIFICATIONS, "spoken_lang", entity_ids={50})

    assert result.unresolved_subject == 2
    assert {dropped.reason for dropped in result.dropped} == {"subject_not_found"}
    assert [edge.person_legacy_id for edge in result.edges] == [7]


def test_duplicate_edges_collapse_to_one():
    resolver = RelationshipResolver.from_records([_record(900, 7)], person_ids={7})
    associations = [AssociationRow(7, 600, 0), AssociationRow(900, 600, 0)]

    result = resolver.resolve(associations, CLASSIFICATIONS, "skillset")

    assert len(result.edges) == 1
    assert result.duplicates == 1
    assert result.counts()["duplicates"] == 1
