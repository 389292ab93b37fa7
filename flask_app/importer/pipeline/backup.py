"""
JSON snapshot of the pipeline-owned tables taken before the clear phase.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

from sqlalchemy.orm import Session

from flask_app.importer.utils import ensure_json_serializable


@dataclass(frozen=True)
class BackupResult:
    path: Path
    row_counts: dict[str, int]

    @property
    def total_rows(self) -> int:
        return sum(self.row_counts.values())


def snapshot_tables(session: Session, models: Iterable[type]) -> dict[str, list[dict]]:
    """Return every row of ``models`` keyed by table name, columns by name."""
    tables: dict[str, list[dict]] = {}
    for model in models:
        table = model.__table__
        rows = session.execute(table.select()).mappings().all()
        tables[table.name] = [ensure_json_serializable(dict(row)) for row in rows]
    return tables


def write_backup(
    session: Session,
    directory: Path,
    models: Iterable[type],
    *,
    run_id: int | None = None,
    now: datetime | None = None,
) -> BackupResult:
    """
    Write ``backup-<timestamp>.json`` into ``directory``.

    Raises ``OSError`` when the file cannot be written and SQLAlchemy errors
    when the store cannot be read.
    """

    timestamp = now or datetime.now(timezone.utc)
    tables = snapshot_tables(session, models)
    suffix = f"-run{run_id}" if run_id is not None else ""
    path = Path(directory) / f"backup-{timestamp:%Y%m%dT%H%M%S%f}{suffix}.json"
    payload = {
        "created_at": timestamp.isoformat(),
        "run_id": run_id,
        "tables": tables,
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
    return BackupResult(path=path, row_counts={name: len(rows) for name, rows in tables.items()})
