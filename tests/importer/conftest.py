from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from flask_app.importer.dump import encode_row, encode_schedule
from flask_app.importer.dump.serialized import ScheduleSlot
from flask_app.importer.mapping import DumpMapping, load_dump_mapping

MAPPING_PATH = Path(__file__).resolve().parents[2] / "config" / "mappings" / "legacy_dump_v1.yaml"
DEFAULT_PREFIX = "xVhkH_"
PRODUCTION_DOMAIN = "@technicaltalent.com.au"
PASSWORD_HASH = "$P$BqZ3bq1k0sS0cW9gQ5oQb1f0d2uYtW."


def serialize_capabilities(*names: str) -> str:
    body = "".join(f's:{len(name)}:"{name}";b:1;' for name in names)
    return f"a:{len(names)}:{{{body}}}"


class DumpBuilder:
    """Assemble a small legacy dump one row at a time."""

    def __init__(self, mapping: DumpMapping, prefix: str = DEFAULT_PREFIX):
        self.mapping = mapping
        self.prefix = prefix
        self.rows: dict[str, list[dict[str, Any]]] = {name: [] for name in mapping.tables}
        self.raw_rows: dict[str, list[str]] = {name: [] for name in mapping.tables}
        self._ids: dict[str, int] = {}

    def _next_id(self, table: str) -> int:
        self._ids[table] = self._ids.get(table, 0) + 1
        return self._ids[table]

    # -- taxonomy --------------------------------------------------------------

    def term(self, term_id: int, name: str, *, slug: str | None = None) -> "DumpBuilder":
        self.rows["terms"].append(
            {"term_id": term_id, "name": name, "slug": slug or name.lower().replace(" ", "-"), "term_group": 0}
        )
        return self

    def classification(
        self,
        classification_id: int,
        term_id: int,
        taxonomy: str,
        *,
        parent: int = 0,
        description: str = "",
        count: int = 0,
    ) -> "DumpBuilder":
        self.rows["term_taxonomy"].append(
            {
                "term_taxonomy_id": classification_id,
                "term_id": term_id,
                "taxonomy": taxonomy,
                "description": description,
                "parent": parent,
                "count": count,
            }
        )
        return self

    def entity(
        self,
        term_id: int,
        name: str,
        taxonomy: str,
        *,
        classification_id: int | None = None,
        parent: int = 0,
        count: int = 0,
    ) -> "DumpBuilder":
        """Add a term plus its classification in one call."""
        self.term(term_id, name)
        return self.classification(classification_id or term_id + 1000, term_id, taxonomy, parent=parent, count=count)

    def association(self, subject_id: int, classification_id: int, order: int = 0) -> "DumpBuilder":
        self.rows["term_relationships"].append(
            {"object_id": subject_id, "term_taxonomy_id": classification_id, "term_order": order}
        )
        return self

    # -- people ---------------------------------------------------------------

    def person(
        self,
        person_id: int,
        login: str,
        *,
        email: str | None = None,
        display_name: str | None = None,
        password_hash: str = PASSWORD_HASH,
        registered: str = "2021-03-04 05:06:07",
        status: int = 0,
        **attributes: Any,
    ) -> "DumpBuilder":
        self.rows["users"].append(
            {
                "ID": person_id,
                "user_login": login,
                "user_pass": password_hash,
                "user_nicename": login,
                "user_email": email if email is not None else f"{login}{PRODUCTION_DOMAIN}",
                "user_url": "",
                "user_registered": registered,
                "user_activation_key": "",
                "user_status": status,
                "display_name": display_name or login,
            }
        )
        for key, value in attributes.items():
            self.person_attribute(person_id, key, value)
        return self

    def person_attribute(self, person_id: int, key: str, value: Any) -> "DumpBuilder":
        self.rows["usermeta"].append(
            {"umeta_id": self._next_id("usermeta"), "user_id": person_id, "meta_key": key, "meta_value": value}
        )
        return self

    def capabilities(self, person_id: int, *names: str) -> "DumpBuilder":
        return self.person_attribute(person_id, f"{self.prefix}capabilities", serialize_capabilities(*names))

    # -- records --------------------------------------------------------------

    def record(
        self,
        record_id: int,
        owner_id: int,
        *,
        title: str = "",
        content: str = "",
        record_type: str = "role",
        status: str = "publish",
        created: str = "2022-01-02 03:04:05",
        **attributes: Any,
    ) -> "DumpBuilder":
        self.rows["posts"].append(
            {
                "ID": record_id,
                "post_author": owner_id,
                "post_date": created,
                "post_date_gmt": created,
                "post_content": content,
                "post_title": title or f"Record {record_id}",
                "post_excerpt": "",
                "post_status": status,
                "comment_status": "closed",
                "ping_status": "closed",
                "post_password": "",
                "post_name": f"record-{record_id}",
                "to_ping": "",
                "pinged": "",
                "post_modified": created,
                "post_modified_gmt": created,
                "post_content_filtered": "",
                "post_parent": 0,
                "guid": f"https://example.invalid/?p={record_id}",
                "menu_order": 0,
                "post_type": record_type,
                "post_mime_type": "",
                "comment_count": 0,
            }
        )
        for key, value in attributes.items():
            self.record_attribute(record_id, key, value)
        return self

    def record_attribute(self, record_id: int, key: str, value: Any) -> "DumpBuilder":
        self.rows["postmeta"].append(
            {"meta_id": self._next_id("postmeta"), "post_id": record_id, "meta_key": key, "meta_value": value}
        )
        return self

    def job(
        self,
        record_id: int,
        owner_id: int,
        *,
        job_status: str | None = None,
        slots: list[ScheduleSlot] | None = None,
        **attributes: Any,
    ) -> "DumpBuilder":
        if job_status is not None:
            attributes["job_status"] = job_status
        if slots is not None:
            attributes["schedule"] = encode_schedule(slots)
        return self.record(record_id, owner_id, **attributes)

    def raw(self, table: str, row_text: str) -> "DumpBuilder":
        """Append an already-encoded ``(...)`` group to ``table``."""
        self.raw_rows[table].append(row_text)
        return self

    # -- rendering ------------------------------------------------------------

    def render(self) -> str:
        lines = [
            "-- Legacy CMS export",
            "SET NAMES utf8mb4;",
            "",
        ]
        for name, layout in self.mapping.tables.items():
            encoded = [encode_row(row, layout) for row in self.rows[name]] + self.raw_rows[name]
            table_name = layout.table_name(self.prefix)
            lines.append(f"DROP TABLE IF EXISTS `{table_name}`;")
            if not encoded:
                continue
            lines.append(f"INSERT INTO `{table_name}` VALUES")
            for index, row_text in enumerate(encoded):
                lines.append(row_text + (";" if index == len(encoded) - 1 else ","))
            lines.append("")
        return "\n".join(lines) + "\n"

    def write(self, path: Path) -> Path:
        path.write_text(self.render(), encoding="utf-8")
        return path


@pytest.fixture
def dump_mapping() -> DumpMapping:
    return load_dump_mapping(MAPPING_PATH)


@pytest.fixture
def dump_builder(dump_mapping) -> DumpBuilder:
    return DumpBuilder(dump_mapping)


@pytest.fixture
def dump_builder_factory(dump_mapping):
    def factory(prefix: str = DEFAULT_PREFIX) -> DumpBuilder:
        return DumpBuilder(dump_mapping, prefix)

    return factory
