"""
Utility helpers for importer feature flag checks.
"""

from __future__ import annotations

from flask import current_app


def _get_config(app=None):
    if app is not None:
        return app.config
    return current_app.config


def is_importer_enabled(app=None) -> bool:
    """Return True when the importer feature flag is enabled."""
    config = _get_config(app)
    return bool(config.get("IMPORTER_ENABLED", False))


def get_dump_mapping_path(app=None) -> str | None:
    """Return the configured dump mapping path as a string, if any."""
    config = _get_config(app)
    path = config.get("IMPORTER_DUMP_MAPPING_PATH")
    return str(path) if path else None
