"""
Phase functions that write decoded dump content into the normalized store.

Each function takes the explicit ``ImportStore`` plus already-decoded
inputs, adds rows, flushes, and returns a summary. None of them commit; the
orchestrator owns the transaction.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Mapping, Sequence

from flask_app.importer.dump.reader import LegacyDump, group_attributes
from flask_app.importer.mapping import DumpMapping
from flask_app.models import (
    Brand,
    JobPosting,
    Language,
    LanguageAssignment,
    Person,
    PersonProfile,
    ScheduleEntry,
    Skill,
    SkillAssignment,
)
from flask_app.models.importer.schema import ImportSkipType

from .idempotency import (
    ENTITY_TYPE_BRAND,
    ENTITY_TYPE_JOB,
    ENTITY_TYPE_LANGUAGE,
    ENTITY_TYPE_PERSON,
    ENTITY_TYPE_SKILL,
    MissingLegacyIdentifier,
    target_id,
)
from .jobs import build_job, parse_slot_date
from .people import build_person
from .relationships import RelationshipResolver, ResolutionResult
from .settings import ImportSettings
from .skip_service import SkipRecorder
from .store import ImportStore
from .taxonomy import TaxonomyForest, TaxonomyNode

logger = logging.getLogger(__name__)

COMPONENT_TAXONOMY = "taxonomy"
COMPONENT_PEOPLE = "people"
COMPONENT_JOBS = "jobs"
COMPONENT_SCHEDULE = "serialized"
COMPONENT_RELATIONSHIPS = "relationships"

_NON_LETTERS_RE = re.compile(r"[^a-z]")


@dataclass
class LeafLoadSummary:
    """Roots of the hierarchical catalogs plus every language."""

    skills_created: int = 0
    brands_created: int = 0
    languages_created: int = 0
    orphan_roots: dict[str, int] = field(default_factory=dict)
    missing_entities: dict[str, int] = field(default_factory=dict)
    missing_legacy_ids: dict[str, int] = field(default_factory=dict)
    duplicates: dict[str, int] = field(default_factory=dict)


@dataclass
class HierarchyLoadSummary:
    skills_created: int = 0
    brands_created: int = 0


@dataclass
class PeopleLoadSummary:
    rows_processed: int = 0
    rows_created: int = 0
    rows_skipped_duplicates: int = 0
    rows_missing_legacy_id: int = 0
    role_counts: dict[str, int] = field(default_factory=dict)


@dataclass
class JobLoadSummary:
    rows_processed: int = 0
    rows_created: int = 0
    rows_skipped_missing_owner: int = 0
    rows_skipped_duplicates: int = 0
    rows_missing_legacy_id: int = 0
    schedule_entries_created: int = 0
    schedules_undecodable: int = 0
    schedule_slots_invalid: int = 0
    unknown_statuses: int = 0
    status_counts: dict[str, int] = field(default_factory=dict)


@dataclass
class EdgeLoadSummary:
    skill_assignments_created: int = 0
    language_assignments_created: int = 0
    skills: dict[str, int] = field(default_factory=dict)
    languages: dict[str, int] = field(default_factory=dict)


def derive_language_code(name: str, codes: Mapping[str, str]) -> str:
    """Known names map to ISO codes; anything else uses its first two letters."""
    normalized = name.strip().lower()
    known = codes.get(normalized)
    if known:
        return known
    letters = _NON_LETTERS_RE.sub("", normalized)
    return letters[:2] or "xx"


def brand_category(node: TaxonomyNode) -> str:
    """Roots are their own category; children inherit their root's."""
    owner = node.parent or node
    return owner.name.strip().lower()


def _record_taxonomy_skips(forest: TaxonomyForest, entity_type: str, skips: SkipRecorder) -> None:
    for row in forest.missing_legacy_ids:
        skips.record(
            COMPONENT_TAXONOMY,
            entity_type,
            ImportSkipType.MISSING_REFERENCE,
            f"Classification {row.classification_id} has no legacy entity id",
            record_key=row.classification_id,
            details={"classification_id": row.classification_id, "taxonomy": row.taxonomy},
        )
    for row in forest.missing_entities:
        skips.record(
            COMPONENT_TAXONOMY,
            entity_type,
            ImportSkipType.MISSING_ENTITY,
            f"Classification {row.classification_id} has no named entity {row.entity_id}",
            record_key=row.entity_id,
            details={"classification_id": row.classification_id, "taxonomy": row.taxonomy},
        )
    for _ in range(forest.duplicates):
        skips.record(
            COMPONENT_TAXONOMY,
            entity_type,
            ImportSkipType.DUPLICATE,
            f"Entity repeated within taxonomy {forest.taxonomy}",
        )
    if forest.orphan_roots:
        logger.warning(
            "Promoted %s orphan classification(s) to roots in taxonomy %s",
            forest.orphan_roots,
            forest.taxonomy,
            extra={"importer_component": COMPONENT_TAXONOMY, "importer_taxonomy": forest.taxonomy},
        )


def _skill_from_node(node: TaxonomyNode) -> Skill:
    return Skill(
        id=target_id(ENTITY_TYPE_SKILL, node.entity_id),
        legacy_id=node.entity_id,
        name=node.name,
        slug=node.slug or None,
        description=node.description or None,
        category=node.parent.name if node.parent else node.name,
        usage_count=node.usage_count,
        is_orphan_root=node.is_orphan_root,
        parent_id=target_id(ENTITY_TYPE_SKILL, node.parent.entity_id) if node.parent else None,
    )


def _brand_from_node(node: TaxonomyNode) -> Brand:
    return Brand(
        id=target_id(ENTITY_TYPE_BRAND, node.entity_id),
        legacy_id=node.entity_id,
        name=node.name,
        slug=node.slug or None,
        description=node.description or None,
        category=brand_category(node),
        usage_count=node.usage_count,
        is_orphan_root=node.is_orphan_root,
        parent_id=target_id(ENTITY_TYPE_BRAND, node.parent.entity_id) if node.parent else None,
    )


def import_leaf_entities(
    store: ImportStore,
    forests: Mapping[str, TaxonomyForest],
    mapping: DumpMapping,
    skips: SkipRecorder,
) -> LeafLoadSummary:
    """
    Create the roots of the skill and brand forests and every language.

    ``forests`` is keyed by logical taxonomy (``skills``, ``brands``,
    ``languages``).
    """

    summary = LeafLoadSummary()
    for logical, entity_type in (
        ("skills", ENTITY_TYPE_SKILL),
        ("brands", ENTITY_TYPE_BRAND),
        ("languages", ENTITY_TYPE_LANGUAGE),
    ):
        forest = forests[logical]
        _record_taxonomy_skips(forest, entity_type, skips)
        summary.orphan_roots[logical] = forest.orphan_roots
        summary.missing_entities[logical] = len(forest.missing_entities)
        summary.missing_legacy_ids[logical] = len(forest.missing_legacy_ids)
        summary.duplicates[logical] = forest.duplicates

    skills = [_skill_from_node(node) for node in forests["skills"].roots]
    brands = [_brand_from_node(node) for node in forests["brands"].roots]
    languages = [
        Language(
            id=target_id(ENTITY_TYPE_LANGUAGE, node.entity_id),
            legacy_id=node.entity_id,
            name=node.name,
            code=derive_language_code(node.name, mapping.language_codes),
            usage_count=node.usage_count,
        )
        for node in forests["languages"].iter_nodes()
    ]
    store.add_all(skills)
    store.add_all(brands)
    store.add_all(languages)
    store.flush()

    summary.skills_created = len(skills)
    summary.brands_created = len(brands)
    summary.languages_created = len(languages)
    return summary


def import_hierarchies(store: ImportStore, forests: Mapping[str, TaxonomyForest]) -> HierarchyLoadSummary:
    """Create child skills and brands under roots created by the leaf phase."""
    skills = [_skill_from_node(child) for root in forests["skills"].roots for child in root.children]
    brands = [_brand_from_node(child) for root in forests["brands"].roots for child in root.children]
    store.add_all(skills)
    store.add_all(brands)
    store.flush()
    return HierarchyLoadSummary(skills_created=len(skills), brands_created=len(brands))


def import_people(
    store: ImportStore,
    dump: LegacyDump,
    settings: ImportSettings,
    skips: SkipRecorder,
) -> tuple[PeopleLoadSummary, set[int]]:
    """Create people and their profiles; return the imported legacy ids."""
    summary = PeopleLoadSummary()
    attributes_by_person = group_attributes(dump.person_attributes())
    imported: set[int] = set()

    for row in dump.people():
        summary.rows_processed += 1
        try:
            person_id = target_id(ENTITY_TYPE_PERSON, row.person_id)
        except MissingLegacyIdentifier as exc:
            summary.rows_missing_legacy_id += 1
            skips.record(COMPONENT_PEOPLE, ENTITY_TYPE_PERSON, ImportSkipType.MISSING_REFERENCE, str(exc))
            continue
        if row.person_id in imported:
            summary.rows_skipped_duplicates += 1
            skips.record(
                COMPONENT_PEOPLE,
                ENTITY_TYPE_PERSON,
                ImportSkipType.DUPLICATE,
                "Person legacy id repeated in dump",
                record_key=row.person_id,
            )
            continue

        draft = build_person(
            row,
            attributes_by_person.get(row.person_id, {}),
            dump.mapping,
            prefix=dump.prefix,
            default_country=settings.default_country,
        )
        person = Person(
            id=person_id,
            legacy_id=draft.legacy_id,
            login=draft.login,
            email=draft.email,
            legacy_password_hash=draft.password_hash,
            first_name=draft.first_name,
            last_name=draft.last_name,
            display_name=draft.display_name,
            phone=draft.phone,
            website=draft.website,
            role=draft.role,
            status=draft.status,
            registered_at=draft.registered_at,
        )
        person.profile = PersonProfile(bio=draft.bio, location=draft.location, settings=draft.settings)
        store.add(person)
        imported.add(row.person_id)
        summary.rows_created += 1
        summary.role_counts[draft.role.value] = summary.role_counts.get(draft.role.value, 0) + 1

    store.flush()
    return summary, imported


def import_jobs_and_schedules(
    store: ImportStore,
    dump: LegacyDump,
    settings: ImportSettings,
    person_ids: set[int],
    skips: SkipRecorder,
) -> tuple[JobLoadSummary, set[int]]:
    """Create job postings owned by imported people, with their schedule entries."""
    summary = JobLoadSummary()
    attributes_by_record = group_attributes(dump.record_attributes())
    imported: set[int] = set()

    for record in dump.records():
        if record.record_type != settings.job_record_type:
            continue
        summary.rows_processed += 1
        try:
            job_id = target_id(ENTITY_TYPE_JOB, record.record_id)
        except MissingLegacyIdentifier as exc:
            summary.rows_missing_legacy_id += 1
            skips.record(COMPONENT_JOBS, ENTITY_TYPE_JOB, ImportSkipType.MISSING_REFERENCE, str(exc))
            continue
        if record.record_id in imported:
            summary.rows_skipped_duplicates += 1
            skips.record(
                COMPONENT_JOBS,
                ENTITY_TYPE_JOB,
                ImportSkipType.DUPLICATE,
                "Job legacy id repeated in dump",
                record_key=record.record_id,
            )
            continue
        if record.owner_id not in person_ids:
            summary.rows_skipped_missing_owner += 1
            skips.record(
                COMPONENT_JOBS,
                ENTITY_TYPE_JOB,
                ImportSkipType.MISSING_REFERENCE,
                f"Owner person {record.owner_id} was not imported",
                record_key=record.record_id,
                details={"owner_legacy_id": record.owner_id},
            )
            continue

        draft = build_job(record, attributes_by_record.get(record.record_id, {}), dump.mapping)
        if not draft.status_recognized:
            summary.unknown_statuses += 1
            logger.warning(
                "Unknown job status %r on record %s; defaulting to OPEN",
                draft.legacy_status,
                record.record_id,
                extra={"importer_component": COMPONENT_JOBS},
            )
        if draft.schedule_undecodable:
            summary.schedules_undecodable += 1
            skips.record(
                COMPONENT_SCHEDULE,
                "schedule",
                ImportSkipType.UNDECODABLE_VALUE,
                "Schedule attribute could not be decoded",
                record_key=record.record_id,
                details={"raw_preview": (draft.raw_schedule or "")[:120]},
            )
        for slot in draft.invalid_slots:
            summary.schedule_slots_invalid += 1
            skips.record(
                COMPONENT_SCHEDULE,
                "schedule",
                ImportSkipType.UNDECODABLE_VALUE,
                f"Schedule slot date is not a valid date: {slot.date!r}",
                record_key=record.record_id,
            )

        job = JobPosting(
            id=job_id,
            legacy_id=draft.legacy_id,
            owner_id=target_id(ENTITY_TYPE_PERSON, draft.owner_legacy_id),
            title=draft.title,
            description=draft.description,
            status=draft.status,
            legacy_status=draft.legacy_status,
            pay_rate=draft.pay_rate,
            pay_type=draft.pay_type,
            raw_schedule=draft.raw_schedule,
            starts_at=draft.starts_at,
            posted_at=draft.posted_at,
            modified_at=draft.modified_at,
        )
        job.schedule = [
            ScheduleEntry(
                position=position,
                shift_date=parse_slot_date(slot.date),
                start_time=slot.start_time,
                end_time=slot.end_time,
            )
            for position, slot in enumerate(draft.slots)
        ]
        store.add(job)
        imported.add(draft.legacy_id)
        summary.rows_created += 1
        summary.schedule_entries_created += len(job.schedule)
        summary.status_counts[draft.status.value] = summary.status_counts.get(draft.status.value, 0) + 1

    store.flush()
    return summary, imported


def _record_dropped_edges(result: ResolutionResult, entity_type: str, skips: SkipRecorder) -> None:
    for dropped in result.dropped:
        association = dropped.association
        if dropped.reason == "entity_not_imported":
            skip_type = ImportSkipType.MISSING_REFERENCE
            message = f"Classification {association.classification_id} points at an entity that was not imported"
        else:
            skip_type = ImportSkipType.UNRESOLVED_ENDPOINT
            message = f"Subject {association.subject_id} is neither a person nor a record owned by one"
        skips.record(
            COMPONENT_RELATIONSHIPS,
            entity_type,
            skip_type,
            message,
            record_key=association.subject_id,
            details={
                "classification_id": association.classification_id,
                "taxonomy": result.taxonomy,
            },
        )
    if result.duplicates:
        logger.info(
            "Collapsed %s duplicate %s association(s)",
            result.duplicates,
            result.taxonomy,
            extra={"importer_component": COMPONENT_RELATIONSHIPS},
        )


def import_relationship_edges(
    store: ImportStore,
    dump: LegacyDump,
    settings: ImportSettings,
    person_ids: set[int],
    skill_ids: set[int],
    language_ids: set[int],
    skips: SkipRecorder,
) -> EdgeLoadSummary:
    """Resolve skill and language associations into assignment rows."""
    mapping = dump.mapping
    resolver = RelationshipResolver.from_records(dump.records(), person_ids)
    classification_map = {row.classification_id: row for row in dump.classifications()}
    associations: Sequence = dump.associations()

    skill_result = resolver.resolve(
        associations,
        classification_map,
        mapping.taxonomies["skills"],
        entity_ids=skill_ids,
    )
    language_result = resolver.resolve(
        associations,
        classification_map,
        mapping.taxonomies["languages"],
        entity_ids=language_ids,
    )
    _record_dropped_edges(skill_result, "skill_assignment", skips)
    _record_dropped_edges(language_result, "language_assignment", skips)

    store.add_all(
        SkillAssignment(
            person_id=target_id(ENTITY_TYPE_PERSON, edge.person_legacy_id),
            skill_id=target_id(ENTITY_TYPE_SKILL, edge.entity_legacy_id),
            proficiency=settings.default_skill_proficiency,
            resolved_via=edge.via,
        )
        for edge in skill_result.edges
    )
    store.add_all(
        LanguageAssignment(
            person_id=target_id(ENTITY_TYPE_PERSON, edge.person_legacy_id),
            language_id=target_id(ENTITY_TYPE_LANGUAGE, edge.entity_legacy_id),
            proficiency=settings.default_language_proficiency,
            resolved_via=edge.via,
        )
        for edge in language_result.edges
    )
    store.flush()

    return EdgeLoadSummary(
        skill_assignments_created=len(skill_result.edges),
        language_assignments_created=len(language_result.edges),
        skills=skill_result.counts(),
        languages=language_result.counts(),
    )
