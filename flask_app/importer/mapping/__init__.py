"""Utilities for loading the legacy dump layout mapping."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Sequence

import yaml

from flask import current_app

REQUIRED_TABLES: tuple[str, ...] = (
    "terms",
    "term_taxonomy",
    "term_relationships",
    "posts",
    "postmeta",
    "usermeta",
    "users",
)
REQUIRED_TAXONOMIES: tuple[str, ...] = ("skills", "languages", "brands")
JOB_STATUS_VALUES: frozenset[str] = frozenset({"OPEN", "ASSIGNED", "COMPLETED"})
ROLE_VALUES: frozenset[str] = frozenset({"TALENT", "EMPLOYER", "ADMIN"})


class MappingLoadError(RuntimeError):
    """Raised when a mapping file cannot be loaded or validated."""


@dataclass(frozen=True)
class TableLayout:
    """Ordered column layout for one logical table of the dump."""

    name: str
    suffix: str
    columns: tuple[str, ...]
    integer_columns: frozenset[str]

    @property
    def arity(self) -> int:
        return len(self.columns)

    def table_name(self, prefix: str) -> str:
        return f"{prefix}{self.suffix}"


@dataclass(frozen=True)
class DumpMapping:
    version: int
    source: str
    tables: Mapping[str, TableLayout]
    taxonomies: Mapping[str, str]
    attributes: Mapping[str, Any]
    aliases: Mapping[str, tuple[str, ...]]
    settings_keys: Mapping[str, str]
    job_status: Mapping[str, str]
    roles: Mapping[str, str]
    default_role: str
    language_codes: Mapping[str, str]
    checksum: str
    path: Path

    def table(self, name: str) -> TableLayout:
        try:
            return self.tables[name]
        except KeyError as exc:
            raise MappingLoadError(f"Mapping does not define table '{name}'.") from exc

    def attribute_keys(self, name: str) -> tuple[str, ...]:
        """Return the attribute key(s) configured for ``name`` as a tuple."""
        value = self.attributes.get(name)
        if value is None:
            return ()
        if isinstance(value, str):
            return (value,)
        return tuple(value)


def _as_str_tuple(value: Any, *, context: str) -> tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    if not isinstance(value, Sequence):
        raise MappingLoadError(f"{context} must be a list, got {value!r}")
    items = tuple(str(item).strip() for item in value)
    if any(not item for item in items):
        raise MappingLoadError(f"{context} contains an empty entry.")
    return items


def _load_tables(payload: Any) -> dict[str, TableLayout]:
    if not isinstance(payload, Mapping):
        raise MappingLoadError("Mapping 'tables' must be a mapping of logical table names.")

    tables: dict[str, TableLayout] = {}
    for name, entry in payload.items():
        if not isinstance(entry, Mapping):
            raise MappingLoadError(f"Table definition for '{name}' must be a mapping, got {entry!r}")
        suffix = str(entry.get("suffix") or name).strip()
        columns = _as_str_tuple(entry.get("columns") or (), context=f"tables.{name}.columns")
        if not columns:
            raise MappingLoadError(f"Table '{name}' must declare at least one column.")
        if len(set(columns)) != len(columns):
            raise MappingLoadError(f"Table '{name}' declares duplicate columns.")
        integer_columns = frozenset(
            _as_str_tuple(entry.get("integer_columns") or (), context=f"tables.{name}.integer_columns")
        )
        unknown = integer_columns - set(columns)
        if unknown:
            raise MappingLoadError(f"Table '{name}' marks unknown columns as integers: {sorted(unknown)}")
        tables[str(name)] = TableLayout(
            name=str(name),
            suffix=suffix,
            columns=columns,
            integer_columns=integer_columns,
        )

    missing = [name for name in REQUIRED_TABLES if name not in tables]
    if missing:
        raise MappingLoadError(f"Mapping is missing required tables: {', '.join(missing)}")
    return tables


def load_dump_mapping(path: str | Path) -> DumpMapping:
    """
    Load and validate a YAML dump layout mapping.
    """

    path = Path(path)
    if not path.exists():
        raise MappingLoadError(f"Mapping file not found at {path}")

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - YAML parser errors
        raise MappingLoadError(f"Failed to parse mapping YAML at {path}: {exc}") from exc

    try:
        version = int(raw["version"])
        source = str(raw.get("source", "")).strip() or "legacy_cms"
        tables_payload = raw["tables"]
        taxonomies_payload = raw["taxonomies"]
    except KeyError as exc:
        raise MappingLoadError(f"Missing required mapping attribute: {exc}") from exc
    except (TypeError, ValueError) as exc:
        raise MappingLoadError(f"Invalid mapping attribute: {exc}") from exc

    tables = _load_tables(tables_payload)

    taxonomies = {str(key): str(value).strip() for key, value in (taxonomies_payload or {}).items()}
    missing_taxonomies = [name for name in REQUIRED_TAXONOMIES if not taxonomies.get(name)]
    if missing_taxonomies:
        raise MappingLoadError(f"Mapping is missing taxonomy names for: {', '.join(missing_taxonomies)}")

    aliases = {
        str(key): _as_str_tuple(value, context=f"aliases.{key}") for key, value in (raw.get("aliases") or {}).items()
    }

    job_status: dict[str, str] = {}
    for legacy_value, status in (raw.get("job_status") or {}).items():
        normalized = str(status).strip().upper()
        if normalized not in JOB_STATUS_VALUES:
            raise MappingLoadError(f"Unknown job status '{status}' mapped from '{legacy_value}'.")
        job_status["" if legacy_value is None else str(legacy_value).strip().lower()] = normalized

    roles_payload = dict(raw.get("roles") or {})
    default_role = str(roles_payload.pop("default", "TALENT")).strip().upper()
    roles = {str(key).strip().lower(): str(value).strip().upper() for key, value in roles_payload.items()}
    for role in (*roles.values(), default_role):
        if role not in ROLE_VALUES:
            raise MappingLoadError(f"Unknown person role '{role}' in mapping.")

    return DumpMapping(
        version=version,
        source=source,
        tables=tables,
        taxonomies=taxonomies,
        attributes=dict(raw.get("attributes") or {}),
        aliases=aliases,
        settings_keys={str(key): str(value) for key, value in (raw.get("settings_keys") or {}).items()},
        job_status=job_status,
        roles=roles,
        default_role=default_role,
        language_codes={str(key).strip().lower(): str(value) for key, value in (raw.get("language_codes") or {}).items()},
        checksum=_compute_checksum(raw),
        path=path,
    )


def get_active_dump_mapping() -> DumpMapping:
    """
    Load the configured dump mapping (cached per app).
    Cache is invalidated if the file modification time changes.
    """

    config_path = current_app.config.get("IMPORTER_DUMP_MAPPING_PATH")
    if not config_path:
        raise MappingLoadError("IMPORTER_DUMP_MAPPING_PATH is not configured.")
    config_path = Path(config_path)
    if not config_path.exists():
        raise MappingLoadError(f"Mapping file not found at {config_path}")

    cache: dict[str, tuple[DumpMapping, float]] = current_app.extensions.setdefault("_importer_dump_mapping_cache", {})
    cache_key = str(config_path)
    current_mtime = config_path.stat().st_mtime

    cached_entry = cache.get(cache_key)
    if cached_entry and cached_entry[1] == current_mtime:
        return cached_entry[0]
    if cached_entry:
        current_app.logger.debug("Mapping file changed, reloading: %s", config_path)

    mapping = load_dump_mapping(config_path)
    cache[cache_key] = (mapping, current_mtime)
    return mapping


def _compute_checksum(payload: Mapping[str, Any]) -> str:
    serialized = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()
