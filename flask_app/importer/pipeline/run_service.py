"""
Service helpers for importer run querying and serialization.

The ``flask importer runs`` command consumes these helpers to list recent
runs with their imported and skipped counts while keeping SQLAlchemy logic
centralized and easily testable.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Mapping

from sqlalchemy import select
from sqlalchemy.exc import NoResultFound
from sqlalchemy.orm import Session

from flask_app.models import db
from flask_app.models.importer.schema import ImportRun, ImportRunStatus

DEFAULT_LIMIT = 20
MAX_LIMIT = 200


@dataclass(slots=True)
class RunSummary:
    """Summarized representation of an importer run."""

    id: int
    source: str
    status: str
    table_prefix: str | None
    started_at: datetime | None
    finished_at: datetime | None
    duration_seconds: float | None
    failed_phase: str | None
    failure_reason: str | None
    imported: Mapping[str, int]
    skipped_total: int
    backup_path: str | None

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "source": self.source,
            "status": self.status,
            "table_prefix": self.table_prefix,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_seconds": self.duration_seconds,
            "failed_phase": self.failed_phase,
            "failure_reason": self.failure_reason,
            "imported": dict(self.imported),
            "skipped_total": self.skipped_total,
            "backup_path": self.backup_path,
        }


class ImportRunService:
    """Facade for querying importer runs with consistent ordering semantics."""

    def __init__(self, session: Session | None = None) -> None:
        self.session: Session = session or db.session

    def list_runs(
        self,
        *,
        limit: int = DEFAULT_LIMIT,
        statuses: Iterable[str] | None = None,
    ) -> list[RunSummary]:
        resolved_limit = max(1, min(int(limit), MAX_LIMIT))
        query = select(ImportRun).order_by(ImportRun.id.desc()).limit(resolved_limit)
        resolved_statuses = [_coerce_status(value) for value in (statuses or ()) if value]
        if resolved_statuses:
            query = query.where(ImportRun.status.in_(resolved_statuses))
        return [self.summarize_run(run) for run in self.session.scalars(query)]

    def get_run(self, run_id: int) -> ImportRun:
        run = self.session.get(ImportRun, run_id)
        if run is None:
            raise NoResultFound(f"Import run {run_id} not found.")
        return run

    def summarize_run(self, run: ImportRun) -> RunSummary:
        counts = run.counts_json or {}
        metrics = run.metrics_json or {}
        duration = None
        if run.started_at and run.finished_at:
            duration = max((_as_naive(run.finished_at) - _as_naive(run.started_at)).total_seconds(), 0.0)
        status = run.status.value if isinstance(run.status, ImportRunStatus) else str(run.status)
        return RunSummary(
            id=run.id,
            source=run.source,
            status=status,
            table_prefix=run.table_prefix,
            started_at=run.started_at,
            finished_at=run.finished_at,
            duration_seconds=duration,
            failed_phase=run.failed_phase,
            failure_reason=run.failure_reason,
            imported={key: int(value) for key, value in (counts.get("imported") or {}).items()},
            skipped_total=int(metrics.get("skipped_total") or 0),
            backup_path=run.backup_path,
        )


def _as_naive(value: datetime) -> datetime:
    # SQLite drops tzinfo on reload, other backends keep it.
    return value.replace(tzinfo=None)


def _coerce_status(value: str | ImportRunStatus) -> ImportRunStatus:
    if isinstance(value, ImportRunStatus):
        return value
    try:
        return ImportRunStatus(str(value).strip().lower())
    except ValueError as exc:
        raise ValueError(f"Unsupported run status '{value}'.") from exc
