"""Importer pipeline helpers."""

from __future__ import annotations

from .backup import BackupResult, write_backup
from .idempotency import MissingLegacyIdentifier, parse_target_id, target_id
from .load_core import (
    EdgeLoadSummary,
    HierarchyLoadSummary,
    JobLoadSummary,
    LeafLoadSummary,
    PeopleLoadSummary,
    import_hierarchies,
    import_jobs_and_schedules,
    import_leaf_entities,
    import_people,
    import_relationship_edges,
)
from .orchestrator import PHASES, ImportOrchestrator, ImportSummary
from .relationships import RelationshipResolver, ResolutionResult, ResolvedEdge
from .run_service import ImportRunService, RunSummary
from .settings import ImportSettings
from .skip_service import ImportSkipService, SkipRecorder, SkipSummary
from .store import ImportStore
from .taxonomy import TaxonomyForest, TaxonomyNode, build_forest, build_forests

__all__ = [
    "BackupResult",
    "EdgeLoadSummary",
    "HierarchyLoadSummary",
    "ImportOrchestrator",
    "ImportRunService",
    "ImportSettings",
    "ImportSkipService",
    "ImportStore",
    "ImportSummary",
    "JobLoadSummary",
    "LeafLoadSummary",
    "MissingLegacyIdentifier",
    "PHASES",
    "PeopleLoadSummary",
    "RelationshipResolver",
    "ResolutionResult",
    "ResolvedEdge",
    "RunSummary",
    "SkipRecorder",
    "SkipSummary",
    "TaxonomyForest",
    "TaxonomyNode",
    "build_forest",
    "build_forests",
    "import_hierarchies",
    "import_jobs_and_schedules",
    "import_leaf_entities",
    "import_people",
    "import_relationship_edges",
    "parse_target_id",
    "target_id",
    "write_backup",
]
