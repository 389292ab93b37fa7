"""
Turn legacy user rows plus their attribute rows into person drafts.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

from flask_app.importer.dump.records import PersonRow
from flask_app.importer.dump.serialized import decode_capabilities
from flask_app.importer.mapping import DumpMapping
from flask_app.models.person import PersonRole

ZERO_TIMESTAMPS = frozenset({"0000-00-00 00:00:00", "0000-00-00"})
TIMESTAMP_FORMATS = ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d")
ROLE_PRIORITY = (PersonRole.ADMIN, PersonRole.EMPLOYER, PersonRole.TALENT)
LOCATION_FIELDS = ("address", "city", "state", "postcode", "country")

_ESCAPED_CHAR_RE = re.compile(r"\\(.)", re.DOTALL)
_ESCAPED_CHARS = {"n": "\n", "r": "\r", "t": "\t"}


@dataclass
class PersonDraft:
    legacy_id: int
    login: str
    email: str | None
    password_hash: str | None
    first_name: str
    last_name: str
    display_name: str | None
    phone: str | None
    website: str | None
    role: PersonRole
    status: int
    registered_at: datetime | None
    bio: str | None
    location: dict[str, Any] = field(default_factory=dict)
    settings: dict[str, Any] = field(default_factory=dict)


def first_value(attributes: Mapping[str, Any], keys: Iterable[str]) -> str | None:
    """Return the first non-blank value among ``keys`` in priority order."""
    for key in keys:
        value = attributes.get(key)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return None


def clean_text(value: str | None) -> str | None:
    """Undo the second layer of backslash escaping found in free-text attributes."""
    if value is None:
        return None
    text = _ESCAPED_CHAR_RE.sub(lambda match: _ESCAPED_CHARS.get(match.group(1), match.group(1)), value)
    return text.strip() or None


def split_display_name(value: str | None) -> tuple[str, str]:
    """First word and remainder of a display name."""
    parts = (value or "").split()
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:])


def parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    text = str(value).strip()
    if not text or text in ZERO_TIMESTAMPS:
        return None
    for fmt in TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(text, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    return None


def derive_role(capabilities: Iterable[str], mapping: DumpMapping) -> PersonRole:
    """Pick the highest-privilege role any capability maps to."""
    mapped = {mapping.roles.get(name.strip().lower()) for name in capabilities}
    for role in ROLE_PRIORITY:
        if role.value in mapped:
            return role
    return PersonRole(mapping.default_role)


def build_location(attributes: Mapping[str, Any], mapping: DumpMapping, *, default_country: str) -> dict[str, Any]:
    location: dict[str, Any] = {}
    for name in LOCATION_FIELDS:
        value = first_value(attributes, mapping.aliases.get(name, (name,)))
        if value is not None:
            location[name] = value
    location.setdefault("country", default_country)
    return location


def build_settings(
    attributes: Mapping[str, Any],
    mapping: DumpMapping,
    *,
    prefix: str,
    capabilities: list[str],
) -> dict[str, Any]:
    settings: dict[str, Any] = {}
    for name, key in mapping.settings_keys.items():
        value = first_value(attributes, (key,))
        if value is not None:
            settings[name] = value
    if capabilities:
        settings["capabilities"] = capabilities
    level_keys = [f"{prefix}{suffix}" for suffix in mapping.attribute_keys("user_level_suffix")]
    user_level = first_value(attributes, level_keys)
    if user_level is not None:
        settings["user_level"] = user_level
    return settings


def build_person(
    row: PersonRow,
    attributes: Mapping[str, Any],
    mapping: DumpMapping,
    *,
    prefix: str,
    default_country: str,
) -> PersonDraft:
    capability_keys = [f"{prefix}{suffix}" for suffix in mapping.attribute_keys("capabilities_suffix")]
    capabilities = decode_capabilities(first_value(attributes, capability_keys))

    first_name, last_name = split_display_name(row.display_name)
    first_name = first_value(attributes, mapping.attribute_keys("first_name")) or first_name or row.nicename or row.login
    last_name = first_value(attributes, mapping.attribute_keys("last_name")) or last_name

    return PersonDraft(
        legacy_id=row.person_id,
        login=row.login,
        email=row.email or None,
        password_hash=row.password_hash or None,
        first_name=first_name,
        last_name=last_name,
        display_name=row.display_name or None,
        phone=first_value(attributes, mapping.aliases.get("phone", ("phone",))),
        website=row.url or None,
        role=derive_role(capabilities, mapping),
        status=row.status,
        registered_at=parse_timestamp(row.registered),
        bio=clean_text(first_value(attributes, mapping.attribute_keys("bio"))),
        location=build_location(attributes, mapping, default_country=default_country),
        settings=build_settings(attributes, mapping, prefix=prefix, capabilities=capabilities),
    )
