# flask_app/models/__init__.py
"""
Database models package
"""

from .assignment import LanguageAssignment, SkillAssignment
from .base import BaseModel, db
from .catalog import Brand, Language, Skill
from .importer import ImportRun, ImportRunStatus, ImportSkip, ImportSkipType
from .job import JobPosting, JobStatus, ScheduleEntry
from .person import Person, PersonProfile, PersonRole

# Tables rebuilt by every import run, in dependency order (parents first).
PIPELINE_OWNED_MODELS = (
    Skill,
    Brand,
    Language,
    Person,
    PersonProfile,
    JobPosting,
    ScheduleEntry,
    SkillAssignment,
    LanguageAssignment,
)

__all__ = [
    "db",
    "BaseModel",
    "PIPELINE_OWNED_MODELS",
    # Catalog
    "Skill",
    "Brand",
    "Language",
    # People
    "Person",
    "PersonProfile",
    "PersonRole",
    # Jobs
    "JobPosting",
    "JobStatus",
    "ScheduleEntry",
    # Edges
    "SkillAssignment",
    "LanguageAssignment",
    # Importer bookkeeping
    "ImportRun",
    "ImportRunStatus",
    "ImportSkip",
    "ImportSkipType",
]
