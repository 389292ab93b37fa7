"""
Recording and querying rows skipped during an import run.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from sqlalchemy.orm import Session

from flask_app.importer.metrics import record_skip
from flask_app.models import db
from flask_app.models.importer.schema import ImportSkip, ImportSkipType

logger = logging.getLogger(__name__)

DEFAULT_WARNING_LIMIT = 5


@dataclass(frozen=True)
class SkipEntry:
    component: str
    entity_type: str
    skip_type: ImportSkipType
    reason: str
    record_key: str | None = None
    details: Mapping[str, Any] | None = None


@dataclass
class SkipSummary:
    """Aggregated skip statistics for a run."""

    total_skips: int
    by_type: Mapping[str, int]
    by_reason: Mapping[str, int]
    by_component: Mapping[str, int] = field(default_factory=dict)


class SkipRecorder:
    """
    Collect row-level skips in memory while a run is in flight.

    The first ``warning_limit`` skips per (component, type) are logged at
    WARNING; the rest at DEBUG so large legacy dumps do not flood the log.
    """

    def __init__(self, *, warning_limit: int = DEFAULT_WARNING_LIMIT, metrics_enabled: bool = True, run_id: int | None = None):
        self.entries: list[SkipEntry] = []
        self.warning_limit = warning_limit
        self.metrics_enabled = metrics_enabled
        self.run_id = run_id
        self._counts: Counter[tuple[str, str]] = Counter()

    def record(
        self,
        component: str,
        entity_type: str,
        skip_type: ImportSkipType,
        reason: str,
        *,
        record_key: Any = None,
        details: Mapping[str, Any] | None = None,
    ) -> None:
        entry = SkipEntry(
            component=component,
            entity_type=entity_type,
            skip_type=skip_type,
            reason=reason,
            record_key=None if record_key is None else str(record_key),
            details=dict(details) if details else None,
        )
        self.entries.append(entry)
        key = (component, skip_type.value)
        self._counts[key] += 1
        level = logging.WARNING if self._counts[key] <= self.warning_limit else logging.DEBUG
        logger.log(
            level,
            "Skipped %s %s: %s",
            entity_type,
            entry.record_key or "?",
            reason,
            extra={
                "importer_run_id": self.run_id,
                "importer_component": component,
                "importer_skip_type": skip_type.value,
            },
        )
        if self.metrics_enabled:
            record_skip(component, skip_type.value)

    @property
    def total(self) -> int:
        return len(self.entries)

    def count(self, component: str, skip_type: ImportSkipType | None = None) -> int:
        if skip_type is not None:
            return self._counts[(component, skip_type.value)]
        return sum(value for (name, _), value in self._counts.items() if name == component)

    def counts_by_component(self) -> dict[str, dict[str, int]]:
        grouped: dict[str, dict[str, int]] = {}
        for (component, skip_type), value in sorted(self._counts.items()):
            grouped.setdefault(component, {})[skip_type] = value
        return grouped

    def persist(self, session: Session, run_id: int) -> int:
        """Add one ``ImportSkip`` row per entry to ``session``; caller commits."""
        for entry in self.entries:
            session.add(
                ImportSkip(
                    run_id=run_id,
                    component=entry.component,
                    entity_type=entry.entity_type,
                    skip_type=entry.skip_type,
                    skip_reason=entry.reason,
                    record_key=entry.record_key,
                    details_json=dict(entry.details) if entry.details else None,
                )
            )
        return len(self.entries)


class ImportSkipService:
    """Facade for querying persisted import skip records."""

    def __init__(self, session: Session | None = None):
        self.session: Session = session or db.session

    def get_skips_for_run(
        self,
        run_id: int,
        *,
        skip_type: ImportSkipType | None = None,
        component: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> Sequence[ImportSkip]:
        """
        Get skip records for a specific import run.

        Args:
            run_id: Import run ID
            skip_type: Optional filter by skip type
            component: Optional filter by pipeline component
            limit: Optional limit on number of results
            offset: Offset for pagination

        Returns:
            List of ImportSkip records
        """
        query = self.session.query(ImportSkip).filter(ImportSkip.run_id == run_id)

        if skip_type:
            query = query.filter(ImportSkip.skip_type == skip_type)

        if component:
            query = query.filter(ImportSkip.component == component)

        query = query.order_by(ImportSkip.id.asc())

        if offset:
            query = query.offset(offset)

        if limit:
            query = query.limit(limit)

        return list(query.all())

    def get_skip_summary(self, run_id: int) -> SkipSummary:
        """
        Get aggregated skip statistics for a run.

        Args:
            run_id: Import run ID

        Returns:
            SkipSummary with counts by type, reason and component
        """
        skips = self.get_skips_for_run(run_id)

        by_type: Counter[str] = Counter()
        by_reason: Counter[str] = Counter()
        by_component: Counter[str] = Counter()

        for skip in skips:
            by_type[skip.skip_type.value] += 1
            by_component[skip.component] += 1
            if skip.skip_reason:
                # Group by the part of the reason before the first colon
                reason_key = skip.skip_reason.split(":")[0].strip() if ":" in skip.skip_reason else skip.skip_reason[:50]
                by_reason[reason_key] += 1

        return SkipSummary(
            total_skips=len(skips),
            by_type=dict(by_type),
            by_reason=dict(by_reason),
            by_component=dict(by_component),
        )
