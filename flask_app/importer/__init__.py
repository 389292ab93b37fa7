"""
Legacy dump importer feature package.

Provides conditional CLI registration and records importer state on the app
while remaining lightweight when the importer is disabled.
"""

from __future__ import annotations

from flask import Flask

from flask_app.utils.importer import get_dump_mapping_path, is_importer_enabled

from .cli import get_disabled_importer_group, importer_cli
from .errors import PhaseError
from .pipeline import ImportOrchestrator, ImportRunService, ImportSettings, ImportSkipService

IMPORTER_EXTENSION_KEY = "importer"

__all__ = [
    "init_importer",
    "IMPORTER_EXTENSION_KEY",
    "ImportOrchestrator",
    "ImportRunService",
    "ImportSettings",
    "ImportSkipService",
    "PhaseError",
]


def _ensure_extension_state(app: Flask) -> dict:
    state = app.extensions.setdefault(
        IMPORTER_EXTENSION_KEY,
        {
            "enabled": False,
            "mapping_path": None,
            "metrics_enabled": False,
        },
    )
    return state


def _set_cli(app: Flask, enabled: bool) -> None:
    """Register the appropriate CLI group based on flag state."""
    # Avoid duplicate registrations when running tests
    command_name = importer_cli.name
    if command_name in app.cli.commands:
        app.cli.commands.pop(command_name)

    if enabled:
        app.cli.add_command(importer_cli)
    else:
        app.cli.add_command(get_disabled_importer_group())


def init_importer(app: Flask) -> None:
    """
    Mount the importer CLI based on configuration.

    Records importer state inside ``app.extensions['importer']`` for reuse in
    the CLI and other helpers.
    """
    enabled = is_importer_enabled(app)

    state = _ensure_extension_state(app)
    state.update(
        {
            "enabled": enabled,
            "mapping_path": get_dump_mapping_path(app),
            "metrics_enabled": bool(app.config.get("IMPORTER_METRICS_ENABLED", True)),
        }
    )

    if not enabled:
        _set_cli(app, enabled=False)
        app.logger.info("Importer disabled via IMPORTER_ENABLED flag; skipping registration.")
        return

    _set_cli(app, enabled=True)
    app.logger.info("Importer enabled with dump mapping %s", state["mapping_path"])
