"""
Per-run settings resolved from app config and CLI flags.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path

from flask_app.importer.utils import resolve_backup_directory


@dataclass(frozen=True)
class ImportSettings:
    prefix: str | None = None
    backup_enabled: bool = True
    backup_dir: Path | None = None
    require_fingerprints: bool = True
    production_email_domain: str = "@technicaltalent.com.au"
    password_hash_markers: tuple[str, ...] = ("$P$B", "$wp$")
    verify_sample_size: int = 25
    job_record_type: str = "role"
    default_country: str = "Australia"
    default_language_proficiency: str = "Conversational"
    default_skill_proficiency: str | None = "Intermediate"
    skip_warning_limit: int = 5
    metrics_enabled: bool = True

    @classmethod
    def from_app(cls, app, **overrides) -> "ImportSettings":
        config = app.config
        settings = cls(
            prefix=config.get("IMPORTER_TABLE_PREFIX") or None,
            backup_dir=resolve_backup_directory(app),
            production_email_domain=config.get("IMPORTER_PRODUCTION_EMAIL_DOMAIN", cls.production_email_domain),
            password_hash_markers=tuple(config.get("IMPORTER_PASSWORD_HASH_MARKERS", cls.password_hash_markers)),
            verify_sample_size=int(config.get("IMPORTER_VERIFY_SAMPLE_SIZE", cls.verify_sample_size)),
            job_record_type=config.get("IMPORTER_JOB_RECORD_TYPE", cls.job_record_type),
            default_country=config.get("IMPORTER_DEFAULT_COUNTRY", cls.default_country),
            default_language_proficiency=config.get(
                "IMPORTER_DEFAULT_LANGUAGE_PROFICIENCY", cls.default_language_proficiency
            ),
            default_skill_proficiency=config.get("IMPORTER_DEFAULT_SKILL_PROFICIENCY", cls.default_skill_proficiency),
            skip_warning_limit=int(config.get("IMPORTER_SKIP_WARNING_LIMIT", cls.skip_warning_limit)),
            metrics_enabled=bool(config.get("IMPORTER_METRICS_ENABLED", True)),
        )
        applicable = {key: value for key, value in overrides.items() if value is not None}
        return replace(settings, **applicable) if applicable else settings
