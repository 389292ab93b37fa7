"""
Error types raised by the legacy dump importer.

Row-level problems never surface here; they are counted and recorded as
``ImportSkip`` rows. Everything below aborts the run.
"""

from __future__ import annotations


class FieldArityError(ValueError):
    """Raised when a tokenized row does not match its table layout."""

    def __init__(self, table: str, expected: int, actual: int, raw_row: str | None = None) -> None:
        super().__init__(f"Row for table '{table}' has {actual} field(s); expected {expected}.")
        self.table = table
        self.expected = expected
        self.actual = actual
        self.raw_row = raw_row


class PhaseError(RuntimeError):
    """Fatal failure of a pipeline phase. Later phases never start."""

    exit_code = 1
    default_reason = "phase_failed"

    def __init__(self, phase: str, message: str, *, reason: str | None = None, details: dict | None = None) -> None:
        super().__init__(message)
        self.phase = phase
        self.reason = reason or self.default_reason
        self.details = dict(details or {})

    def as_dict(self) -> dict[str, object]:
        return {
            "phase": self.phase,
            "reason": self.reason,
            "message": str(self),
            "exit_code": self.exit_code,
            "details": self.details,
        }


class DumpReadError(PhaseError):
    """The dump file could not be read or decoded."""

    exit_code = 2
    default_reason = "dump_unreadable"


class SourceValidationError(PhaseError):
    """The dump does not look like a production export."""

    exit_code = 3
    default_reason = "fingerprint_missing"


class StoreUnavailableError(PhaseError):
    """The destination store rejected a read or write."""

    exit_code = 4
    default_reason = "store_unavailable"


class EmptyImportError(PhaseError):
    """A non-empty source statement produced no target rows."""

    exit_code = 5
    default_reason = "empty_import"


class VerificationError(PhaseError):
    """Post-import counts or legacy-id round-trips did not match."""

    exit_code = 6
    default_reason = "verification_mismatch"


class BackupError(PhaseError):
    """The pre-clear snapshot could not be written."""

    exit_code = 7
    default_reason = "backup_failed"


__all__ = [
    "BackupError",
    "DumpReadError",
    "EmptyImportError",
    "FieldArityError",
    "PhaseError",
    "SourceValidationError",
    "StoreUnavailableError",
    "VerificationError",
]
