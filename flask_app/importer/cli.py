"""
CLI commands for the legacy dump importer.

``flask importer run`` executes the whole pipeline inline against one dump
file; ``runs`` and ``skips`` read back run history.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import click
from flask.cli import ScriptInfo

from flask_app.importer.dump import LegacyDump
from flask_app.importer.errors import PhaseError
from flask_app.importer.mapping import DumpMapping, MappingLoadError, get_active_dump_mapping
from flask_app.importer.pipeline import (
    ImportOrchestrator,
    ImportRunService,
    ImportSettings,
    ImportSkipService,
    ImportStore,
    ImportSummary,
)
from flask_app.models.base import db
from flask_app.models.importer.schema import ImportRun, ImportRunStatus
from flask_app.utils.importer import is_importer_enabled

SOURCE_NAME = "legacy_dump"


class ImportRunFailed(click.ClickException):
    """Click exception carrying the exit code of the failing phase."""

    def __init__(self, run_id: int, error: PhaseError):
        super().__init__(f"Import run {run_id} failed in phase {error.phase} ({error.reason}): {error}")
        self.exit_code = error.exit_code
        self.run_id = run_id
        self.error = error


@click.group(name="importer", invoke_without_command=True)
@click.pass_context
def importer_cli(ctx):
    """
    Legacy dump importer commands.

    Displays the active mapping when invoked without a subcommand.
    """
    info = ctx.ensure_object(ScriptInfo)
    app = info.load_app()
    if not is_importer_enabled(app):
        raise click.ClickException(
            "Importer is disabled via IMPORTER_ENABLED=false. " "Enable it to run importer CLI commands."
        )
    if ctx.invoked_subcommand is None:
        with app.app_context():
            mapping = _load_mapping()
        click.echo(f"Active dump mapping: {mapping.path} (version {mapping.version}, source {mapping.source})")
        click.echo("Tables: " + ", ".join(sorted(mapping.tables)))


def get_disabled_importer_group() -> click.Group:
    """
    Return a minimal command group that informs the operator the importer is disabled.
    """

    @click.group(name="importer", invoke_without_command=True)
    def disabled_group():
        raise click.ClickException("Importer commands are unavailable because IMPORTER_ENABLED=false.")

    return disabled_group


def _load_mapping() -> DumpMapping:
    try:
        return get_active_dump_mapping()
    except MappingLoadError as exc:
        raise click.ClickException(f"Dump mapping could not be loaded: {exc}") from exc


def _execute_dump_inline(
    run: ImportRun,
    dump_path: Path,
    *,
    mapping: DumpMapping,
    settings: ImportSettings,
) -> ImportSummary:
    run_id = run.id
    run.status = ImportRunStatus.RUNNING
    run.started_at = datetime.now(timezone.utc)
    db.session.commit()

    orchestrator: ImportOrchestrator | None = None
    try:
        dump = LegacyDump.from_path(dump_path, mapping, prefix=settings.prefix)
        orchestrator = ImportOrchestrator(ImportStore(db.session), dump, settings, run_id=run_id)
        return orchestrator.run(run)
    except PhaseError as exc:
        db.session.rollback()
        _mark_failed(run_id, exc, orchestrator)
        raise ImportRunFailed(run_id, exc) from exc
    except Exception as exc:
        db.session.rollback()
        _mark_failed(run_id, exc, orchestrator)
        raise click.ClickException(f"Import run {run_id} failed: {exc}") from exc


def _mark_failed(run_id: int, exc: Exception, orchestrator: ImportOrchestrator | None) -> None:
    recovery_run = db.session.get(ImportRun, run_id)
    if recovery_run is None:
        raise click.ClickException(f"Import run {run_id} failed and could not be recovered.") from exc
    recovery_run.status = ImportRunStatus.FAILED
    recovery_run.error_summary = str(exc)
    recovery_run.finished_at = datetime.now(timezone.utc)
    if isinstance(exc, PhaseError):
        recovery_run.failed_phase = exc.phase
        recovery_run.failure_reason = exc.reason
    if orchestrator is not None:
        recovery_run.table_prefix = orchestrator.dump.prefix
        recovery_run.counts_json = orchestrator.summary.as_dict()
        recovery_run.metrics_json = {"skipped_total": orchestrator.skips.total}
        orchestrator.skips.persist(db.session, run_id)
    db.session.commit()


def _format_summary(run: ImportRun, summary: ImportSummary) -> str:
    status_value = run.status.value if hasattr(run.status, "value") else str(run.status)
    imported = summary.imported_counts()
    skipped = summary.skipped_counts()
    skipped_display = (
        ", ".join(f"{component}={count}" for component, count in sorted(skipped.items())) if skipped else "none"
    )
    orphan_display = ", ".join(f"{name}={count}" for name, count in sorted(summary.leaf.orphan_roots.items()))
    edges = summary.edges
    return (
        f"Run {run.id} completed with status {status_value} (prefix={summary.prefix}).\n"
        f"  backup             : {summary.backup_path or 'disabled'}\n"
        f"  skills             : {imported['skills']}\n"
        f"  brands             : {imported['brands']}\n"
        f"  languages          : {imported['languages']}\n"
        f"  orphan_roots       : {orphan_display or 'none'}\n"
        f"  people             : {imported['people']}\n"
        f"  job_postings       : {imported['job_postings']}\n"
        f"  schedule_entries   : {imported['schedule_entries']}\n"
        f"  unknown_statuses   : {summary.jobs.unknown_statuses}\n"
        f"  skill_assignments  : {imported['skill_assignments']}\n"
        f"  lang_assignments   : {imported['language_assignments']}\n"
        f"  edges_via_record   : {edges.skills.get('resolved_via_record', 0) + edges.languages.get('resolved_via_record', 0)}\n"
        f"  skipped            : {skipped_display}\n"
        f"  verified           : {summary.verified}"
    )


def _build_summary_payload(run: ImportRun, summary: ImportSummary) -> dict[str, object]:
    payload = summary.as_dict()
    payload.update(
        {
            "run_id": run.id,
            "status": run.status.value if hasattr(run.status, "value") else str(run.status),
        }
    )
    return payload


@importer_cli.command("run")
@click.option(
    "--file",
    "file_path",
    required=True,
    type=click.Path(path_type=Path, exists=True, dir_okay=False),
    help="Path to the legacy SQL dump.",
)
@click.option("--prefix", default=None, help="Table prefix of the dump (discovered when omitted).")
@click.option(
    "--skip-fingerprint-check",
    is_flag=True,
    help="Import even when the dump lacks production fingerprints.",
)
@click.option("--no-backup", is_flag=True, help="Do not snapshot existing data before clearing.")
@click.option("--summary-json", is_flag=True, help="Emit a machine-readable summary payload after completion.")
@click.pass_context
def importer_run(
    ctx,
    file_path: Path,
    prefix: Optional[str],
    skip_fingerprint_check: bool,
    no_backup: bool,
    summary_json: bool,
):
    """Rebuild the store from a legacy SQL dump."""
    info = ctx.ensure_object(ScriptInfo)
    app = info.load_app()
    if not is_importer_enabled(app):
        raise click.ClickException("Importer is disabled; enable it via IMPORTER_ENABLED before running.")

    dump_path = file_path.resolve()
    with app.app_context():
        mapping = _load_mapping()
        settings = ImportSettings.from_app(
            app,
            prefix=prefix,
            require_fingerprints=False if skip_fingerprint_check else None,
            backup_enabled=False if no_backup else None,
        )

        run = ImportRun(
            source=SOURCE_NAME,
            adapter=mapping.source,
            status=ImportRunStatus.PENDING,
            notes=f"CLI import from {dump_path}",
            counts_json={},
            metrics_json={},
            ingest_params_json={
                "file_path": str(dump_path),
                "prefix": prefix,
                "skip_fingerprint_check": skip_fingerprint_check,
                "backup": not no_backup,
                "mapping_checksum": mapping.checksum,
            },
        )
        db.session.add(run)
        db.session.commit()
        run_id = run.id
        app.logger.info(
            "Legacy import started via CLI",
            extra={"importer_run_id": run_id, "importer_file": str(dump_path), "importer_prefix": prefix},
        )

        try:
            summary = _execute_dump_inline(run, dump_path, mapping=mapping, settings=settings)
        except ImportRunFailed as exc:
            if summary_json:
                failure_payload = {"run_id": run_id, "status": "failed", **exc.error.as_dict()}
                click.echo(json.dumps(failure_payload, indent=2, sort_keys=True))
            raise

        run = db.session.get(ImportRun, run_id)
        click.echo(_format_summary(run, summary))
        if summary_json:
            click.echo(json.dumps(_build_summary_payload(run, summary), indent=2, sort_keys=True))


@importer_cli.command("runs")
@click.option("--limit", default=20, show_default=True, type=int, help="Number of recent runs to list.")
@click.option("--status", "statuses", multiple=True, help="Filter by run status (repeatable).")
@click.option("--json", "as_json", is_flag=True, help="Emit runs as JSON.")
@click.pass_context
def importer_runs(ctx, limit: int, statuses: tuple[str, ...], as_json: bool):
    """List recent import runs."""
    info = ctx.ensure_object(ScriptInfo)
    app = info.load_app()
    with app.app_context():
        try:
            runs = ImportRunService().list_runs(limit=limit, statuses=statuses)
        except ValueError as exc:
            raise click.ClickException(str(exc)) from exc

    if as_json:
        click.echo(json.dumps([summary.as_dict() for summary in runs], indent=2, sort_keys=True))
        return
    if not runs:
        click.echo("No import runs recorded.")
        return
    for summary in runs:
        started = summary.started_at.isoformat() if summary.started_at else "n/a"
        total_imported = sum(summary.imported.values())
        line = (
            f"Run {summary.id:<5} {summary.status:<10} started={started} "
            f"imported={total_imported} skipped={summary.skipped_total}"
        )
        if summary.failed_phase:
            line += f" failed_phase={summary.failed_phase} reason={summary.failure_reason}"
        click.echo(line)


@importer_cli.command("skips")
@click.option("--run-id", required=True, type=int, help="ID of the import run.")
@click.option("--details", is_flag=True, help="List individual skip records.")
@click.option("--limit", default=50, show_default=True, type=int, help="Maximum records listed with --details.")
@click.pass_context
def importer_skips(ctx, run_id: int, details: bool, limit: int):
    """Print the skip summary for an import run."""
    info = ctx.ensure_object(ScriptInfo)
    app = info.load_app()
    with app.app_context():
        run = db.session.get(ImportRun, run_id)
        if run is None:
            raise click.ClickException(f"Import run {run_id} not found.")

        service = ImportSkipService()
        summary = service.get_skip_summary(run_id)
        click.echo(f"Run {run_id}: {summary.total_skips} skipped row(s).")
        for label, counts in (
            ("by_component", summary.by_component),
            ("by_type", summary.by_type),
            ("by_reason", summary.by_reason),
        ):
            display = ", ".join(f"{key}={value}" for key, value in sorted(counts.items())) or "none"
            click.echo(f"  {label:<13}: {display}")

        if details:
            for skip in service.get_skips_for_run(run_id, limit=limit):
                click.echo(
                    f"  - [{skip.component}/{skip.skip_type.value}] {skip.entity_type} "
                    f"{skip.record_key or '?'}: {skip.skip_reason}"
                )
