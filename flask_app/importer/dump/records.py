"""Typed views over decoded dump rows."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping


def _int(value: Any, default: int = 0) -> int:
    if value is None or value == "":
        return default
    return int(value)


def _text(value: Any) -> str:
    return "" if value is None else str(value)


@dataclass(frozen=True)
class EntityRow:
    """A term: the named thing behind a classification."""

    entity_id: int
    name: str
    slug: str
    group: int

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "EntityRow":
        return cls(
            entity_id=_int(row["term_id"]),
            name=_text(row.get("name")).strip(),
            slug=_text(row.get("slug")),
            group=_int(row.get("term_group")),
        )


@dataclass(frozen=True)
class ClassificationRow:
    classification_id: int
    entity_id: int
    taxonomy: str
    description: str
    parent_entity_id: int
    usage_count: int

    @property
    def is_root(self) -> bool:
        return self.parent_entity_id == 0

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "ClassificationRow":
        return cls(
            classification_id=_int(row["term_taxonomy_id"]),
            entity_id=_int(row["term_id"]),
            taxonomy=_text(row.get("taxonomy")),
            description=_text(row.get("description")),
            parent_entity_id=_int(row.get("parent")),
            usage_count=_int(row.get("count")),
        )


@dataclass(frozen=True)
class AssociationRow:
    subject_id: int
    classification_id: int
    order: int

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "AssociationRow":
        return cls(
            subject_id=_int(row["object_id"]),
            classification_id=_int(row["term_taxonomy_id"]),
            order=_int(row.get("term_order")),
        )


@dataclass(frozen=True)
class RecordRow:
    """A post: job postings and profile records share this table."""

    record_id: int
    owner_id: int
    title: str
    content: str
    record_type: str
    status: str
    slug: str
    created: str | None
    modified: str | None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "RecordRow":
        return cls(
            record_id=_int(row["ID"]),
            owner_id=_int(row.get("post_author")),
            title=_text(row.get("post_title")),
            content=_text(row.get("post_content")),
            record_type=_text(row.get("post_type")),
            status=_text(row.get("post_status")),
            slug=_text(row.get("post_name")),
            created=row.get("post_date"),
            modified=row.get("post_modified"),
        )


@dataclass(frozen=True)
class AttributeRow:
    """A postmeta or usermeta row."""

    attribute_id: int
    owner_id: int
    key: str
    value: str | None

    @classmethod
    def from_record_row(cls, row: Mapping[str, Any]) -> "AttributeRow":
        return cls(
            attribute_id=_int(row["meta_id"]),
            owner_id=_int(row["post_id"]),
            key=_text(row.get("meta_key")),
            value=row.get("meta_value"),
        )

    @classmethod
    def from_person_row(cls, row: Mapping[str, Any]) -> "AttributeRow":
        return cls(
            attribute_id=_int(row["umeta_id"]),
            owner_id=_int(row["user_id"]),
            key=_text(row.get("meta_key")),
            value=row.get("meta_value"),
        )


@dataclass(frozen=True)
class PersonRow:
    person_id: int
    login: str
    password_hash: str
    nicename: str
    email: str
    url: str
    registered: str | None
    status: int
    display_name: str

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "PersonRow":
        return cls(
            person_id=_int(row["ID"]),
            login=_text(row.get("user_login")),
            password_hash=_text(row.get("user_pass")),
            nicename=_text(row.get("user_nicename")),
            email=_text(row.get("user_email")).strip(),
            url=_text(row.get("user_url")),
            registered=row.get("user_registered"),
            status=_int(row.get("user_status")),
            display_name=_text(row.get("display_name")),
        )
