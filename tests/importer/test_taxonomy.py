from __future__ import annotations

from flask_app.importer.dump.records import ClassificationRow, EntityRow
from flask_app.importer.pipeline.taxonomy import build_forest, build_forests


def _entity(entity_id: int, name: str) -> EntityRow:
    return EntityRow(entity_id=entity_id, name=name, slug=name.lower(), group=0)


def _classification(classification_id: int, entity_id: int, taxonomy: str, parent: int = 0) -> ClassificationRow:
    return ClassificationRow(
        classification_id=classification_id,
        entity_id=entity_id,
        taxonomy=taxonomy,
        description="",
        parent_entity_id=parent,
        usage_count=0,
    )


def test_skill_hierarchy_links_child_to_root():
    entities = [_entity(10, "Hospitality"), _entity(11, "Barista")]
    classifications = [
        _classification(100, 10, "skillset"),
        _classification(101, 11, "skillset", parent=10),
    ]

    forest = build_forest(classifications, entities, "skillset")

    assert [root.entity_id for root in forest.roots] == [10]
    (child,) = forest.roots[0].children
    assert child.entity_id == 11
    assert child.parent is forest.roots[0]
    assert forest.orphan_roots == 0


def test_every_valid_classification_becomes_exactly_one_node():
    entities = [_entity(i, f"Skill {i}") for i in range(1, 7)]
    classifications = [
        _classification(101, 1, "skillset"),
        _classification(102, 2, "skillset", parent=1),
        _classification(103, 3, "skillset", parent=99),  # parent never classified
        _classification(104, 4, "skillset", parent=2),  # parent is itself a child
        _classification(105, 5, "skillset"),
        _classification(106, 6, "brand"),
    ]

    forest = build_forest(classifications, entities, "skillset")

    node_ids = [node.entity_id for node in forest.iter_nodes()]
    assert sorted(node_ids) == [1, 2, 3, 4, 5]
    assert len(node_ids) == len(set(node_ids))
    assert forest.orphan_roots == 2
    assert forest.find(3).is_orphan_root is True
    assert forest.find(4).is_orphan_root is True
    assert forest.find(2).is_orphan_root is False


def test_roots_are_yielded_before_children():
    entities = [_entity(1, "Child"), _entity(2, "Root")]
    classifications = [
        _classification(11, 1, "brand", parent=2),
        _classification(12, 2, "brand"),
    ]

    forest = build_forest(classifications, entities, "brand")
    order = [node.entity_id for node in forest.iter_nodes()]

    assert order == [2, 1]


def test_missing_and_duplicate_entities_are_reported():
    entities = [_entity(1, "Known"), _entity(3, "")]
    classifications = [
        _classification(11, 1, "spoken_lang"),
        _classification(12, 1, "spoken_lang"),
        _classification(13, 2, "spoken_lang"),
        _classification(14, 3, "spoken_lang"),
    ]

    forest = build_forest(classifications, entities, "spoken_lang")

    assert forest.node_count == 1
    assert forest.duplicates == 1
    assert [row.classification_id for row in forest.missing_entities] == [13, 14]
    assert forest.counts()["missing_entities"] == 2


def test_build_forests_keys_by_taxonomy():
    entities = [_entity(1, "English"), _entity(2, "Makita")]
    classifications = [_classification(11, 1, "spoken_lang"), _classification(12, 2, "brand")]

    forests = build_forests(classifications, entities, ["spoken_lang", "brand", "skillset"])

    assert forests["spoken_lang"].node_count == 1
    assert forests["brand"].roots[0].name == "Makita"
    assert forests["skillset"].node_count == 0


def test_classifications_without_entity_ids_are_reported_not_built():
    entities = [_entity(0, "Ghost"), _entity(1, "Real")]
    classifications = [
        _classification(11, 0, "skillset"),
        _classification(12, -4, "skillset"),
        _classification(13, 1, "skillset"),
    ]

    forest = build_forest(classifications, entities, "skillset")

    assert [node.entity_id for node in forest.iter_nodes()] == [1]
    assert [row.classification_id for row in forest.missing_legacy_ids] == [11, 12]
    assert forest.counts()["missing_legacy_ids"] == 2
    assert forest.missing_entities == []
