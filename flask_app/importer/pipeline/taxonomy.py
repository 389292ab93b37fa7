"""
Rebuild parent/child forests from classification rows.

Roots are classifications whose parent is ``0``. A child hangs off the root
whose entity id equals the child's declared parent. A classification whose
parent is not a known root is promoted to a root and counted as an orphan;
nothing is dropped except classifications with no entity behind them or no
usable entity id.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator, Mapping, Sequence

from flask_app.importer.dump.records import ClassificationRow, EntityRow


@dataclass
class TaxonomyNode:
    entity_id: int
    classification_id: int
    name: str
    slug: str
    description: str
    usage_count: int
    declared_parent_id: int
    parent: "TaxonomyNode | None" = None
    is_orphan_root: bool = False
    children: list["TaxonomyNode"] = field(default_factory=list)

    @property
    def is_root(self) -> bool:
        return self.parent is None


@dataclass
class TaxonomyForest:
    taxonomy: str
    roots: list[TaxonomyNode] = field(default_factory=list)
    orphan_roots: int = 0
    duplicates: int = 0
    missing_entities: list[ClassificationRow] = field(default_factory=list)
    missing_legacy_ids: list[ClassificationRow] = field(default_factory=list)

    def iter_nodes(self) -> Iterator[TaxonomyNode]:
        """Yield every root before any child so parents always exist first."""
        yield from self.roots
        for root in self.roots:
            yield from root.children

    @property
    def node_count(self) -> int:
        return sum(1 + len(root.children) for root in self.roots)

    @property
    def child_count(self) -> int:
        return sum(len(root.children) for root in self.roots)

    def find(self, entity_id: int) -> TaxonomyNode | None:
        for node in self.iter_nodes():
            if node.entity_id == entity_id:
                return node
        return None

    def counts(self) -> dict[str, int]:
        return {
            "nodes": self.node_count,
            "roots": len(self.roots),
            "children": self.child_count,
            "orphan_roots": self.orphan_roots,
            "duplicates": self.duplicates,
            "missing_entities": len(self.missing_entities),
            "missing_legacy_ids": len(self.missing_legacy_ids),
        }


def _make_node(row: ClassificationRow, entity: EntityRow) -> TaxonomyNode:
    return TaxonomyNode(
        entity_id=row.entity_id,
        classification_id=row.classification_id,
        name=entity.name,
        slug=entity.slug,
        description=row.description,
        usage_count=row.usage_count,
        declared_parent_id=row.parent_entity_id,
    )


def build_forest(
    classifications: Iterable[ClassificationRow],
    entities: Mapping[int, EntityRow] | Sequence[EntityRow],
    taxonomy: str,
) -> TaxonomyForest:
    """
    Build the forest for one taxonomy name.

    ``entities`` may be a sequence of entity rows or a mapping keyed by
    entity id.
    """

    entity_map = entities if isinstance(entities, Mapping) else {entity.entity_id: entity for entity in entities}
    forest = TaxonomyForest(taxonomy=taxonomy)

    seen_entities: set[int] = set()
    candidates: list[tuple[ClassificationRow, EntityRow]] = []
    for row in classifications:
        if row.taxonomy != taxonomy:
            continue
        if row.entity_id <= 0:
            forest.missing_legacy_ids.append(row)
            continue
        entity = entity_map.get(row.entity_id)
        if entity is None or not entity.name:
            forest.missing_entities.append(row)
            continue
        if row.entity_id in seen_entities:
            forest.duplicates += 1
            continue
        seen_entities.add(row.entity_id)
        candidates.append((row, entity))

    roots_by_entity: dict[int, TaxonomyNode] = {}
    for row, entity in candidates:
        if row.is_root:
            node = _make_node(row, entity)
            roots_by_entity[row.entity_id] = node
            forest.roots.append(node)

    for row, entity in candidates:
        if row.is_root:
            continue
        node = _make_node(row, entity)
        parent = roots_by_entity.get(row.parent_entity_id)
        if parent is None:
            node.is_orphan_root = True
            forest.orphan_roots += 1
            forest.roots.append(node)
            continue
        node.parent = parent
        parent.children.append(node)

    return forest


def build_forests(
    classifications: Sequence[ClassificationRow],
    entities: Sequence[EntityRow],
    taxonomies: Iterable[str],
) -> dict[str, TaxonomyForest]:
    entity_map = {entity.entity_id: entity for entity in entities}
    return {taxonomy: build_forest(classifications, entity_map, taxonomy) for taxonomy in taxonomies}
