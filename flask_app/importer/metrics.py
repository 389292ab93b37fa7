"""Prometheus metrics helpers for the legacy dump importer."""

from __future__ import annotations

from typing import Literal

from prometheus_client import Counter, Histogram

_runs_counter = Counter(
    "importer_legacy_runs_total",
    "Legacy dump import runs by final status.",
    ["status"],
)
_phase_failures = Counter(
    "importer_legacy_phase_failures_total",
    "Fatal phase failures by phase and reason.",
    ["phase", "reason"],
)
_phase_duration = Histogram(
    "importer_legacy_phase_duration_seconds",
    "Duration of each legacy import phase in seconds.",
    ["phase"],
    buckets=(0.05, 0.1, 0.5, 1, 2, 5, 10, 30, 60, 120, 300),
)
_rows_skipped = Counter(
    "importer_legacy_rows_skipped_total",
    "Source rows skipped during a legacy import, by component and skip type.",
    ["component", "skip_type"],
)
_entities_imported = Counter(
    "importer_legacy_entities_imported_total",
    "Target rows created by legacy imports, by entity type.",
    ["entity_type"],
)


def record_run(status: Literal["succeeded", "failed"]) -> None:
    """Increment the run counter for ``status``."""
    _runs_counter.labels(status=status).inc()


def record_phase_duration(phase: str, duration_seconds: float) -> None:
    _phase_duration.labels(phase=phase).observe(max(duration_seconds, 0.0))


def record_phase_failure(phase: str, reason: str) -> None:
    _phase_failures.labels(phase=phase, reason=reason).inc()


def record_skip(component: str, skip_type: str, count: int = 1) -> None:
    if count <= 0:
        return
    _rows_skipped.labels(component=component, skip_type=skip_type).inc(count)


def record_entities_imported(entity_type: str, count: int) -> None:
    if count <= 0:
        return
    _entities_imported.labels(entity_type=entity_type).inc(count)
