"""
Deterministic target identifiers derived from legacy ids.

Numeric legacy ids overlap across entity types (a skill and a person can both
be ``10``), so target ids carry the entity type: ``skill_10``, ``person_10``.
Re-running the importer against the same dump therefore reproduces the same
legacy-id to target-id mapping.
"""

from __future__ import annotations

ENTITY_TYPE_SKILL = "skill"
ENTITY_TYPE_BRAND = "brand"
ENTITY_TYPE_LANGUAGE = "language"
ENTITY_TYPE_PERSON = "person"
ENTITY_TYPE_JOB = "job"

ENTITY_TYPES: tuple[str, ...] = (
    ENTITY_TYPE_SKILL,
    ENTITY_TYPE_BRAND,
    ENTITY_TYPE_LANGUAGE,
    ENTITY_TYPE_PERSON,
    ENTITY_TYPE_JOB,
)


class MissingLegacyIdentifier(ValueError):
    """Raised when a row cannot be keyed because its legacy id is absent."""

    def __init__(self, entity_type: str) -> None:
        super().__init__(
            f"No legacy identifier supplied for entity type '{entity_type}'. "
            "Target ids are derived from legacy ids."
        )
        self.entity_type = entity_type


def target_id(entity_type: str, legacy_id: int | None) -> str:
    """Return the target id for ``legacy_id`` of ``entity_type``."""
    if entity_type not in ENTITY_TYPES:
        raise ValueError(f"Unknown entity type '{entity_type}'.")
    if legacy_id is None or isinstance(legacy_id, bool) or int(legacy_id) <= 0:
        raise MissingLegacyIdentifier(entity_type)
    return f"{entity_type}_{int(legacy_id)}"


def parse_target_id(value: str) -> tuple[str, int]:
    """Split ``skill_10`` into ``("skill", 10)``."""
    entity_type, _, raw_id = value.rpartition("_")
    if entity_type not in ENTITY_TYPES or not raw_id.isdigit():
        raise ValueError(f"'{value}' is not an importer target id.")
    return entity_type, int(raw_id)
