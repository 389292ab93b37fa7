from __future__ import annotations

import os
from pathlib import Path

import pytest
import yaml

from flask_app.importer.mapping import MappingLoadError, get_active_dump_mapping, load_dump_mapping

DEFAULT_MAPPING = Path(__file__).resolve().parents[2] / "config" / "mappings" / "legacy_dump_v1.yaml"


def _write_variant(tmp_path, mutate):
    payload = yaml.safe_load(DEFAULT_MAPPING.read_text(encoding="utf-8"))
    mutate(payload)
    path = tmp_path / "mapping.yaml"
    path.write_text(yaml.safe_dump(payload), encoding="utf-8")
    return path


def test_default_mapping_loads(dump_mapping):
    assert dump_mapping.version == 1
    assert dump_mapping.taxonomies == {"skills": "skillset", "languages": "spoken_lang", "brands": "brand"}
    assert dump_mapping.table("posts").arity == 23
    assert "ID" in dump_mapping.table("users").integer_columns
    assert dump_mapping.table("postmeta").table_name("wp_") == "wp_postmeta"
    assert dump_mapping.job_status[""] == "OPEN"
    assert dump_mapping.roles == {"administrator": "ADMIN", "employer": "EMPLOYER"}
    assert dump_mapping.default_role == "TALENT"
    assert dump_mapping.attribute_keys("bio") == ("short_bio", "description", "biographical_info")
    assert dump_mapping.attribute_keys("job_status") == ("job_status",)
    assert dump_mapping.attribute_keys("unknown") == ()
    assert len(dump_mapping.checksum) == 64


def test_missing_required_table_is_rejected(tmp_path):
    path = _write_variant(tmp_path, lambda payload: payload["tables"].pop("usermeta"))

    with pytest.raises(MappingLoadError, match="usermeta"):
        load_dump_mapping(path)


def test_integer_column_must_be_declared(tmp_path):
    def mutate(payload):
        payload["tables"]["terms"]["integer_columns"].append("nope")

    with pytest.raises(MappingLoadError, match="unknown columns"):
        load_dump_mapping(_write_variant(tmp_path, mutate))


def test_unknown_job_status_target_is_rejected(tmp_path):
    def mutate(payload):
        payload["job_status"]["archived"] = "DELETED"

    with pytest.raises(MappingLoadError, match="Unknown job status"):
        load_dump_mapping(_write_variant(tmp_path, mutate))


def test_missing_taxonomy_is_rejected(tmp_path):
    def mutate(payload):
        payload["taxonomies"]["brands"] = ""

    with pytest.raises(MappingLoadError, match="brands"):
        load_dump_mapping(_write_variant(tmp_path, mutate))


def test_missing_file_is_rejected(tmp_path):
    with pytest.raises(MappingLoadError, match="not found"):
        load_dump_mapping(tmp_path / "absent.yaml")


def test_active_mapping_is_cached_until_file_changes(app, tmp_path, monkeypatch):
    path = _write_variant(tmp_path, lambda payload: None)
    monkeypatch.setitem(app.config, "IMPORTER_DUMP_MAPPING_PATH", str(path))

    first = get_active_dump_mapping()
    assert get_active_dump_mapping() is first

    path.write_text(path.read_text(encoding="utf-8").replace("legacy_cms", "legacy_cms_v2"), encoding="utf-8")
    stat = path.stat()
    os.utime(path, (stat.st_atime, stat.st_mtime + 5))

    reloaded = get_active_dump_mapping()
    assert reloaded is not first
    assert reloaded.source == "legacy_cms_v2"


def test_active_mapping_requires_configuration(app, monkeypatch):
    monkeypatch.setitem(app.config, "IMPORTER_DUMP_MAPPING_PATH", "")

    with pytest.raises(MappingLoadError, match="not configured"):
        get_active_dump_mapping()
