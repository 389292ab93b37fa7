"""
Importer-specific SQLAlchemy models: run history and skipped rows.
"""

from .schema import ImportRun, ImportRunStatus, ImportSkip, ImportSkipType

__all__ = [
    "ImportRun",
    "ImportRunStatus",
    "ImportSkip",
    "ImportSkipType",
]
