"""
SQLAlchemy models for importer bookkeeping: one row per run plus the rows
skipped during that run.

These tables are not owned by the pipeline's clear phase, so run history
survives re-imports.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import Enum, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..base import BaseModel, db


class ImportRunStatus(str, enum.Enum):
    """Lifecycle states for an import run."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class ImportRun(BaseModel):
    """Metadata describing a single importer execution."""

    __tablename__ = "import_runs"

    id: Mapped[int] = mapped_column(primary_key=True)
    source: Mapped[str] = mapped_column(db.String(100), nullable=False, index=True)
    adapter: Mapped[str | None] = mapped_column(db.String(100), nullable=True)
    status: Mapped[ImportRunStatus] = mapped_column(
        Enum(ImportRunStatus, name="import_run_status_enum"),
        nullable=False,
        default=ImportRunStatus.PENDING,
        index=True,
    )
    table_prefix: Mapped[str | None] = mapped_column(db.String(64), nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(db.DateTime(timezone=True))
    finished_at: Mapped[datetime | None] = mapped_column(db.DateTime(timezone=True))
    failed_phase: Mapped[str | None] = mapped_column(db.String(64), nullable=True)
    failure_reason: Mapped[str | None] = mapped_column(db.String(64), nullable=True)
    counts_json: Mapped[dict | None] = mapped_column(db.JSON, nullable=True)
    metrics_json: Mapped[dict | None] = mapped_column(db.JSON, nullable=True)
    error_summary: Mapped[str | None] = mapped_column(db.Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(db.Text, nullable=True)
    ingest_params_json: Mapped[dict | None] = mapped_column(
        db.JSON,
        nullable=True,
        comment="Parameters the run was invoked with (file_path, prefix, backup and fingerprint flags).",
    )
    backup_path: Mapped[str | None] = mapped_column(db.String(1024), nullable=True)

    import_skips = relationship(
        "ImportSkip",
        back_populates="import_run",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (Index("idx_import_runs_source_status", "source", "status"),)


class ImportSkipType(str, enum.Enum):
    """Reasons a source row was not imported."""

    MALFORMED_ROW = "malformed_row"
    MISSING_ENTITY = "missing_entity"
    MISSING_REFERENCE = "missing_reference"
    UNRESOLVED_ENDPOINT = "unresolved_endpoint"
    DUPLICATE = "duplicate"
    UNDECODABLE_VALUE = "undecodable_value"
    OTHER = "other"


class ImportSkip(BaseModel):
    """A source row that was logged, counted and skipped during a run."""

    __tablename__ = "import_skips"

    id: Mapped[int] = mapped_column(db.Integer, primary_key=True, autoincrement=True)
    run_id: Mapped[int] = mapped_column(
        ForeignKey("import_runs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    component: Mapped[str] = mapped_column(db.String(64), nullable=False, index=True)
    entity_type: Mapped[str] = mapped_column(db.String(50), nullable=False)
    skip_type: Mapped[ImportSkipType] = mapped_column(
        Enum(ImportSkipType, name="import_skip_type_enum"),
        nullable=False,
        index=True,
    )
    skip_reason: Mapped[str | None] = mapped_column(db.Text, nullable=True)
    record_key: Mapped[str | None] = mapped_column(db.String(255), nullable=True)
    details_json: Mapped[dict | None] = mapped_column(db.JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )

    import_run = relationship("ImportRun", back_populates="import_skips")

    __table_args__ = (Index("idx_import_skips_run_type", "run_id", "skip_type"),)
