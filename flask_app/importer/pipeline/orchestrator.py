"""
Phase-ordered orchestration of a legacy dump import.

Phases run strictly in order::

    validate -> backup -> clear -> import_leaf_entities -> import_hierarchies
    -> import_people -> import_jobs_and_schedules -> import_relationship_edges
    -> verify

Clear and every import phase share one transaction on the store session.
Nothing is committed until verify passes; any failure rolls the store back to
its state before the run and is re-raised as a ``PhaseError``.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from flask_app.importer import metrics
from flask_app.importer.dump.reader import LegacyDump
from flask_app.importer.errors import (
    BackupError,
    EmptyImportError,
    PhaseError,
    SourceValidationError,
    StoreUnavailableError,
    VerificationError,
)
from flask_app.models import (
    PIPELINE_OWNED_MODELS,
    Brand,
    JobPosting,
    Language,
    LanguageAssignment,
    Person,
    ScheduleEntry,
    Skill,
    SkillAssignment,
)
from flask_app.models.importer.schema import ImportRun, ImportRunStatus, ImportSkipType

from .backup import BackupResult, write_backup
from .idempotency import (
    ENTITY_TYPE_BRAND,
    ENTITY_TYPE_JOB,
    ENTITY_TYPE_LANGUAGE,
    ENTITY_TYPE_PERSON,
    ENTITY_TYPE_SKILL,
    target_id,
)
from .load_core import (
    EdgeLoadSummary,
    HierarchyLoadSummary,
    JobLoadSummary,
    LeafLoadSummary,
    PeopleLoadSummary,
    import_hierarchies,
    import_jobs_and_schedules,
    import_leaf_entities,
    import_people,
    import_relationship_edges,
)
from .settings import ImportSettings
from .skip_service import SkipRecorder
from .store import ImportStore
from .taxonomy import TaxonomyForest, build_forests

logger = logging.getLogger(__name__)

T = TypeVar("T")

PHASE_VALIDATE = "validate"
PHASE_BACKUP = "backup"
PHASE_CLEAR = "clear"
PHASE_LEAF = "import_leaf_entities"
PHASE_HIERARCHIES = "import_hierarchies"
PHASE_PEOPLE = "import_people"
PHASE_JOBS = "import_jobs_and_schedules"
PHASE_EDGES = "import_relationship_edges"
PHASE_VERIFY = "verify"

LOGICAL_TAXONOMIES: tuple[str, ...] = ("skills", "brands", "languages")

PHASES: tuple[str, ...] = (
    PHASE_VALIDATE,
    PHASE_BACKUP,
    PHASE_CLEAR,
    PHASE_LEAF,
    PHASE_HIERARCHIES,
    PHASE_PEOPLE,
    PHASE_JOBS,
    PHASE_EDGES,
    PHASE_VERIFY,
)


@dataclass
class ImportSummary:
    """Everything a run reports back: counts, skips and verification."""

    prefix: str
    phases_completed: list[str] = field(default_factory=list)
    source_rows: dict[str, int] = field(default_factory=dict)
    malformed_rows: dict[str, int] = field(default_factory=dict)
    fingerprints: dict[str, bool] = field(default_factory=dict)
    backup_path: str | None = None
    backup_rows: int = 0
    cleared_rows: dict[str, int] = field(default_factory=dict)
    leaf: LeafLoadSummary = field(default_factory=LeafLoadSummary)
    hierarchies: HierarchyLoadSummary = field(default_factory=HierarchyLoadSummary)
    people: PeopleLoadSummary = field(default_factory=PeopleLoadSummary)
    jobs: JobLoadSummary = field(default_factory=JobLoadSummary)
    edges: EdgeLoadSummary = field(default_factory=EdgeLoadSummary)
    skips: dict[str, dict[str, int]] = field(default_factory=dict)
    verification: dict[str, Any] = field(default_factory=dict)
    phase_durations: dict[str, float] = field(default_factory=dict)

    def imported_counts(self) -> dict[str, int]:
        return {
            "skills": self.leaf.skills_created + self.hierarchies.skills_created,
            "brands": self.leaf.brands_created + self.hierarchies.brands_created,
            "languages": self.leaf.languages_created,
            "people": self.people.rows_created,
            "job_postings": self.jobs.rows_created,
            "schedule_entries": self.jobs.schedule_entries_created,
            "skill_assignments": self.edges.skill_assignments_created,
            "language_assignments": self.edges.language_assignments_created,
        }

    def skipped_counts(self) -> dict[str, int]:
        return {component: sum(counts.values()) for component, counts in self.skips.items()}

    @property
    def verified(self) -> bool:
        return bool(self.verification.get("passed"))

    def as_dict(self) -> dict[str, Any]:
        return {
            "prefix": self.prefix,
            "phases_completed": list(self.phases_completed),
            "source_rows": dict(self.source_rows),
            "malformed_rows": dict(self.malformed_rows),
            "fingerprints": dict(self.fingerprints),
            "backup": {"path": self.backup_path, "rows": self.backup_rows},
            "cleared_rows": dict(self.cleared_rows),
            "imported": self.imported_counts(),
            "taxonomy": {
                "orphan_roots": dict(self.leaf.orphan_roots),
                "missing_entities": dict(self.leaf.missing_entities),
                "missing_legacy_ids": dict(self.leaf.missing_legacy_ids),
                "duplicates": dict(self.leaf.duplicates),
            },
            "people": {
                "rows_processed": self.people.rows_processed,
                "rows_created": self.people.rows_created,
                "rows_skipped_duplicates": self.people.rows_skipped_duplicates,
                "rows_missing_legacy_id": self.people.rows_missing_legacy_id,
                "role_counts": dict(self.people.role_counts),
            },
            "jobs": {
                "rows_processed": self.jobs.rows_processed,
                "rows_created": self.jobs.rows_created,
                "rows_skipped_missing_owner": self.jobs.rows_skipped_missing_owner,
                "rows_skipped_duplicates": self.jobs.rows_skipped_duplicates,
                "rows_missing_legacy_id": self.jobs.rows_missing_legacy_id,
                "schedule_entries_created": self.jobs.schedule_entries_created,
                "schedules_undecodable": self.jobs.schedules_undecodable,
                "schedule_slots_invalid": self.jobs.schedule_slots_invalid,
                "unknown_statuses": self.jobs.unknown_statuses,
                "status_counts": dict(self.jobs.status_counts),
            },
            "relationships": {
                "skills": dict(self.edges.skills),
                "languages": dict(self.edges.languages),
            },
            "skipped": self.skipped_counts(),
            "skips": {component: dict(counts) for component, counts in self.skips.items()},
            "verification": dict(self.verification),
            "phase_durations": {phase: round(value, 4) for phase, value in self.phase_durations.items()},
        }


class ImportOrchestrator:
    """Run every phase against one dump and one explicit store handle."""

    def __init__(
        self,
        store: ImportStore,
        dump: LegacyDump,
        settings: ImportSettings,
        *,
        run_id: int | None = None,
    ):
        self.store = store
        self.dump = dump
        self.settings = settings
        self.run_id = run_id
        self.skips = SkipRecorder(
            warning_limit=settings.skip_warning_limit,
            metrics_enabled=settings.metrics_enabled,
            run_id=run_id,
        )
        self.summary = ImportSummary(prefix=dump.prefix)
        self.forests: dict[str, TaxonomyForest] = {}
        self._person_ids: set[int] = set()
        self._job_ids: set[int] = set()

    # -- public -----------------------------------------------------------------

    def run(self, import_run: ImportRun | None = None) -> ImportSummary:
        """
        Execute all phases and commit.

        When ``import_run`` is given its status, counts and skips are written
        in the same commit as the imported data.
        """

        try:
            self._phase(PHASE_VALIDATE, self.validate)
            if self.settings.backup_enabled:
                self._phase(PHASE_BACKUP, self.backup)
            self._phase(PHASE_CLEAR, self.clear)
            self._phase(PHASE_LEAF, self.import_leaf_entities)
            self._phase(PHASE_HIERARCHIES, self.import_hierarchies)
            self._phase(PHASE_PEOPLE, self.import_people)
            self._phase(PHASE_JOBS, self.import_jobs_and_schedules)
            self._phase(PHASE_EDGES, self.import_relationship_edges)
            self._phase(PHASE_VERIFY, self.verify)
        except PhaseError as exc:
            self._rollback_quietly()
            self.summary.skips = self.skips.counts_by_component()
            if self.settings.metrics_enabled:
                metrics.record_phase_failure(exc.phase, exc.reason)
                metrics.record_run("failed")
            logger.error(
                "Legacy import failed in phase %s: %s",
                exc.phase,
                exc,
                extra={"importer_run_id": self.run_id, "importer_phase": exc.phase, "importer_reason": exc.reason},
            )
            raise

        self.summary.skips = self.skips.counts_by_component()
        try:
            if import_run is not None:
                self._finalize_run(import_run)
            self.store.commit()
        except SQLAlchemyError as exc:
            self._rollback_quietly()
            raise StoreUnavailableError("commit", f"Failed to commit import: {exc}") from exc

        if self.settings.metrics_enabled:
            metrics.record_run("succeeded")
            for entity_type, count in self.summary.imported_counts().items():
                metrics.record_entities_imported(entity_type, count)
        logger.info(
            "Legacy import committed",
            extra={"importer_run_id": self.run_id, "importer_counts": self.summary.imported_counts()},
        )
        return self.summary

    # -- phases -----------------------------------------------------------------

    def validate(self) -> None:
        """Refuse to touch the store unless the dump looks like production data."""
        try:
            self.store.ping()
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(PHASE_VALIDATE, f"Destination store is unreachable: {exc}") from exc

        for name in self.dump.mapping.tables:
            self.summary.source_rows[name] = self.dump.source_row_count(name)
        self._decode_all()
        self._record_malformed_rows()

        text = self.dump.text
        fingerprints = {
            "contact_domain": self.settings.production_email_domain in text,
            "password_hash": any(marker in text for marker in self.settings.password_hash_markers),
        }
        self.summary.fingerprints = fingerprints
        if self.settings.require_fingerprints and not all(fingerprints.values()):
            missing = [name for name, present in fingerprints.items() if not present]
            raise SourceValidationError(
                PHASE_VALIDATE,
                "Dump does not look like a production export; missing fingerprints: " + ", ".join(missing),
                details={"missing": missing},
            )

        taxonomies = self.dump.mapping.taxonomies
        by_taxonomy = build_forests(
            self.dump.classifications(),
            self.dump.entities(),
            (taxonomies[logical] for logical in LOGICAL_TAXONOMIES),
        )
        self.forests = {logical: by_taxonomy[taxonomies[logical]] for logical in LOGICAL_TAXONOMIES}

    def backup(self) -> None:
        directory = self.settings.backup_dir
        if directory is None:
            raise BackupError(PHASE_BACKUP, "Backups are enabled but no backup directory is configured.")
        try:
            result: BackupResult = write_backup(
                self.store.session,
                directory,
                PIPELINE_OWNED_MODELS,
                run_id=self.run_id,
            )
        except OSError as exc:
            raise BackupError(PHASE_BACKUP, f"Failed to write backup to {directory}: {exc}") from exc
        self.summary.backup_path = str(result.path)
        self.summary.backup_rows = result.total_rows
        logger.info(
            "Wrote pre-clear backup to %s (%s rows)",
            result.path,
            result.total_rows,
            extra={"importer_run_id": self.run_id, "importer_phase": PHASE_BACKUP},
        )

    def clear(self) -> None:
        self.summary.cleared_rows = self.store.clear(PIPELINE_OWNED_MODELS)
        self.store.flush()

    def import_leaf_entities(self) -> None:
        summary = import_leaf_entities(self.store, self.forests, self.dump.mapping, self.skips)
        self.summary.leaf = summary
        for logical, created in (
            ("skills", summary.skills_created),
            ("brands", summary.brands_created),
            ("languages", summary.languages_created),
        ):
            source = len(self.dump.classifications_by_taxonomy(self.dump.mapping.taxonomies[logical]))
            if source and not created:
                raise EmptyImportError(
                    PHASE_LEAF,
                    f"Source has {source} {logical} classification(s) but none were imported.",
                    details={"entity": logical, "source_rows": source},
                )

    def import_hierarchies(self) -> None:
        self.summary.hierarchies = import_hierarchies(self.store, self.forests)

    def import_people(self) -> None:
        summary, person_ids = import_people(self.store, self.dump, self.settings, self.skips)
        self.summary.people = summary
        self._person_ids = person_ids
        source = self.summary.source_rows.get("users", 0)
        if source and not summary.rows_created:
            raise EmptyImportError(
                PHASE_PEOPLE,
                f"Source has {source} person row(s) but none were imported.",
                details={"entity": "people", "source_rows": source},
            )

    def import_jobs_and_schedules(self) -> None:
        summary, job_ids = import_jobs_and_schedules(
            self.store, self.dump, self.settings, self._person_ids, self.skips
        )
        self.summary.jobs = summary
        self._job_ids = job_ids

    def import_relationship_edges(self) -> None:
        skill_ids = {node.entity_id for node in self.forests["skills"].iter_nodes()}
        language_ids = {node.entity_id for node in self.forests["languages"].iter_nodes()}
        self.summary.edges = import_relationship_edges(
            self.store,
            self.dump,
            self.settings,
            self._person_ids,
            skill_ids,
            language_ids,
            self.skips,
        )

    def verify(self) -> None:
        """Re-query counts and round-trip a sample of legacy ids per entity type."""
        imported = self.summary.imported_counts()
        expected_counts = {
            "skills": (Skill, imported["skills"]),
            "brands": (Brand, imported["brands"]),
            "languages": (Language, imported["languages"]),
            "people": (Person, imported["people"]),
            "job_postings": (JobPosting, imported["job_postings"]),
            "schedule_entries": (ScheduleEntry, imported["schedule_entries"]),
            "skill_assignments": (SkillAssignment, imported["skill_assignments"]),
            "language_assignments": (LanguageAssignment, imported["language_assignments"]),
        }
        mismatches: list[str] = []
        actual_counts: dict[str, int] = {}
        for name, (model, expected) in expected_counts.items():
            actual = self.store.count(model)
            actual_counts[name] = actual
            if actual != expected:
                mismatches.append(f"{name}: expected {expected}, found {actual}")

        source_checks = {
            "skills": self._taxonomy_source_rows("skills"),
            "brands": self._taxonomy_source_rows("brands"),
            "languages": self._taxonomy_source_rows("languages"),
            "people": self.summary.source_rows.get("users", 0),
        }
        for name, source in source_checks.items():
            if source and not actual_counts[name]:
                mismatches.append(f"{name}: source had {source} row(s) but store is empty")

        mismatches.extend(self._verify_legacy_ids())
        sample_failures = self._verify_samples()
        mismatches.extend(sample_failures)

        self.summary.verification = {
            "passed": not mismatches,
            "counts": actual_counts,
            "sample_size": self.settings.verify_sample_size,
            "mismatches": mismatches,
        }
        if mismatches:
            raise VerificationError(
                PHASE_VERIFY,
                "Verification failed: " + "; ".join(mismatches),
                details={"mismatches": mismatches},
            )

    # -- helpers ----------------------------------------------------------------

    def _phase(self, name: str, func: Callable[[], T]) -> T:
        started = time.perf_counter()
        logger.info("Starting phase %s", name, extra={"importer_run_id": self.run_id, "importer_phase": name})
        try:
            result = func()
        except PhaseError:
            raise
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(name, f"Store error during {name}: {exc}") from exc
        except Exception as exc:
            raise PhaseError(
                name,
                f"Unexpected error during {name}: {exc}",
                reason="unexpected_error",
                details={"exception": type(exc).__name__},
            ) from exc
        finally:
            duration = time.perf_counter() - started
            self.summary.phase_durations[name] = duration
            if self.settings.metrics_enabled:
                metrics.record_phase_duration(name, duration)
        self.summary.phases_completed.append(name)
        return result

    def _rollback_quietly(self) -> None:
        try:
            self.store.rollback()
        except SQLAlchemyError:  # pragma: no cover - connection already gone
            logger.exception("Rollback failed after import error", extra={"importer_run_id": self.run_id})

    def _decode_all(self) -> None:
        """Decode every typed table once so malformed rows are known before any write."""
        self.dump.entities()
        self.dump.classifications()
        self.dump.associations()
        self.dump.records()
        self.dump.record_attributes()
        self.dump.person_attributes()
        self.dump.people()

    def _record_malformed_rows(self) -> None:
        inventory = self.dump.inventory
        for name, stats in inventory.stats.items():
            self.summary.malformed_rows[name] = stats.rows_malformed
        for row in inventory.malformed:
            self.skips.record(
                "field_decoder",
                row.table,
                ImportSkipType.MALFORMED_ROW,
                row.reason,
                record_key=row.row_number if row.row_number >= 0 else None,
                details={"raw_preview": row.raw_preview},
            )

    def _taxonomy_source_rows(self, logical: str) -> int:
        return len(self.dump.classifications_by_taxonomy(self.dump.mapping.taxonomies[logical]))

    def _expected_legacy_ids(self) -> list[tuple[type, str, set[int]]]:
        return [
            (Skill, ENTITY_TYPE_SKILL, {node.entity_id for node in self.forests["skills"].iter_nodes()}),
            (Brand, ENTITY_TYPE_BRAND, {node.entity_id for node in self.forests["brands"].iter_nodes()}),
            (Language, ENTITY_TYPE_LANGUAGE, {node.entity_id for node in self.forests["languages"].iter_nodes()}),
            (Person, ENTITY_TYPE_PERSON, set(self._person_ids)),
            (JobPosting, ENTITY_TYPE_JOB, set(self._job_ids)),
        ]

    def _verify_legacy_ids(self) -> list[str]:
        """The stored legacy ids of each type are exactly the imported ones."""
        failures: list[str] = []
        for model, entity_type, expected in self._expected_legacy_ids():
            stored = self.store.legacy_ids(model)
            missing = sorted(expected - stored)
            unexpected = sorted(stored - expected)
            if missing:
                failures.append(f"{entity_type} legacy ids missing from store: {missing[:10]}")
            if unexpected:
                failures.append(f"{entity_type} legacy ids not in dump: {unexpected[:10]}")
        return failures

    def _verify_samples(self) -> list[str]:
        size = self.settings.verify_sample_size
        failures: list[str] = []
        for model, entity_type, expected in self._expected_legacy_ids():
            for legacy_id in sorted(expected)[:size]:
                instance = self.store.get(model, target_id(entity_type, legacy_id))
                if instance is None:
                    failures.append(f"{entity_type} {legacy_id}: not found")
                elif instance.legacy_id != legacy_id:
                    failures.append(f"{entity_type} {legacy_id}: stored legacy id {instance.legacy_id}")
        return failures

    def _finalize_run(self, import_run: ImportRun) -> None:
        self.skips.persist(self.store.session, import_run.id)
        import_run.status = ImportRunStatus.SUCCEEDED
        import_run.finished_at = datetime.now(timezone.utc)
        import_run.table_prefix = self.dump.prefix
        import_run.backup_path = self.summary.backup_path
        import_run.counts_json = self.summary.as_dict()
        import_run.metrics_json = {
            "phase_durations": {phase: round(value, 4) for phase, value in self.summary.phase_durations.items()},
            "skipped_total": self.skips.total,
        }
