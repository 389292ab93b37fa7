"""
Resolve association rows to (person, entity) edges.

Association subjects in the export are sometimes person ids and sometimes
record ids owned by a person, with nothing in the row telling them apart.
Each subject is tried as a person first and as a record second; the pass that
matched is kept on the edge so the two populations can be told apart in run
summaries.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import AbstractSet, Iterable, Mapping

from flask_app.importer.dump.records import AssociationRow, ClassificationRow, RecordRow

VIA_PERSON = "person"
VIA_RECORD = "record"


@dataclass(frozen=True)
class ResolvedEdge:
    person_legacy_id: int
    entity_legacy_id: int
    via: str
    subject_id: int


@dataclass(frozen=True)
class DroppedAssociation:
    association: AssociationRow
    reason: str


@dataclass
class ResolutionResult:
    taxonomy: str
    edges: list[ResolvedEdge] = field(default_factory=list)
    dropped: list[DroppedAssociation] = field(default_factory=list)
    considered: int = 0
    resolved_direct: int = 0
    resolved_via_record: int = 0
    unresolved_subject: int = 0
    missing_entity: int = 0
    duplicates: int = 0

    def counts(self) -> dict[str, int]:
        return {
            "considered": self.considered,
            "resolved": len(self.edges),
            "resolved_direct": self.resolved_direct,
            "resolved_via_record": self.resolved_via_record,
            "unresolved_subject": self.unresolved_subject,
            "missing_entity": self.missing_entity,
            "duplicates": self.duplicates,
        }


class RelationshipResolver:
    """Two-pass subject resolution against imported people and record owners."""

    def __init__(self, record_owners: Mapping[int, int], person_ids: AbstractSet[int]):
        self.record_owners = dict(record_owners)
        self.person_ids = frozenset(person_ids)

    @classmethod
    def from_records(cls, records: Iterable[RecordRow], person_ids: AbstractSet[int]) -> "RelationshipResolver":
        owners = {record.record_id: record.owner_id for record in records if record.owner_id}
        return cls(owners, person_ids)

    def resolve_subject(self, subject_id: int) -> tuple[int, str] | None:
        if subject_id in self.person_ids:
            return subject_id, VIA_PERSON
        owner_id = self.record_owners.get(subject_id)
        if owner_id is not None and owner_id in self.person_ids:
            return owner_id, VIA_RECORD
        return None

    def resolve(
        self,
        associations: Iterable[AssociationRow],
        classification_map: Mapping[int, ClassificationRow],
        taxonomy: str,
        *,
        entity_ids: AbstractSet[int] | None = None,
    ) -> ResolutionResult:
        """
        Resolve every association whose classification belongs to ``taxonomy``.

        ``entity_ids`` limits edges to entities that were actually imported;
        associations pointing elsewhere are dropped and counted.
        """

        result = ResolutionResult(taxonomy=taxonomy)
        seen: set[tuple[int, int]] = set()

        for association in associations:
            classification = classification_map.get(association.classification_id)
            if classification is None or classification.taxonomy != taxonomy:
                continue
            result.considered += 1

            if entity_ids is not None and classification.entity_id not in entity_ids:
                result.missing_entity += 1
                result.dropped.append(DroppedAssociation(association, "entity_not_imported"))
                continue

            resolved = self.resolve_subject(association.subject_id)
            if resolved is None:
                result.unresolved_subject += 1
                result.dropped.append(DroppedAssociation(association, "subject_not_found"))
                continue

            person_id, via = resolved
            key = (person_id, classification.entity_id)
            if key in seen:
                result.duplicates += 1
                continue
            seen.add(key)

            if via == VIA_PERSON:
                result.resolved_direct += 1
            else:
                result.resolved_via_record += 1
            result.edges.append(
                ResolvedEdge(
                    person_legacy_id=person_id,
                    entity_legacy_id=classification.entity_id,
                    via=via,
                    subject_id=association.subject_id,
                )
            )

        return result
