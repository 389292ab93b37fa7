"""
Importer-specific utilities for artifact directories and JSON payloads.
"""

from __future__ import annotations

import enum
from collections.abc import Mapping, Sequence
from datetime import date, datetime, time
from pathlib import Path
from typing import Any

DEFAULT_BACKUP_SUBDIR = "import_backups"


def _normalize_dir(
    configured_path: str | None,
    instance_path: str,
    *,
    default_subdir: str,
) -> Path:
    if not configured_path:
        return Path(instance_path) / default_subdir

    candidate = Path(configured_path)
    if candidate.is_absolute():
        return candidate

    return Path(instance_path) / candidate


def resolve_backup_directory(app) -> Path:
    """
    Determine and create (if necessary) the directory pre-clear snapshots are written to.
    """

    backup_dir = _normalize_dir(
        app.config.get("IMPORTER_BACKUP_DIR"),
        app.instance_path,
        default_subdir=DEFAULT_BACKUP_SUBDIR,
    )
    backup_dir.mkdir(parents=True, exist_ok=True)
    return backup_dir


def ensure_json_serializable(value: Any) -> Any:
    """
    Best-effort conversion of values to JSON-serializable representations.
    """

    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {str(key): ensure_json_serializable(inner) for key, inner in value.items()}
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return [ensure_json_serializable(item) for item in value]
    if isinstance(value, Path):
        return str(value)
    return str(value)
