from pathlib import Path

from flask import Flask

from flask_app.importer import IMPORTER_EXTENSION_KEY, init_importer

MAPPING_PATH = Path(__file__).resolve().parents[1] / "config" / "mappings" / "legacy_dump_v1.yaml"


def build_app(enabled=False, mapping_path=MAPPING_PATH):
    app = Flask(__name__)
    app.config.update(
        SECRET_KEY="test-secret",
        TESTING=True,
        IMPORTER_ENABLED=enabled,
        IMPORTER_DUMP_MAPPING_PATH=str(mapping_path) if mapping_path else None,
        IMPORTER_METRICS_ENABLED=False,
    )

    init_importer(app)
    return app


def test_importer_disabled_registers_stub_cli():
    app = build_app(enabled=False)

    runner = app.test_cli_runner()
    result = runner.invoke(args=["importer"])
    assert result.exit_code != 0
    assert "Importer commands are unavailable" in result.output

    importer_state = app.extensions[IMPORTER_EXTENSION_KEY]
    assert importer_state["enabled"] is False


def test_importer_disabled_hides_run_subcommand(tmp_path):
    app = build_app(enabled=False)
    dump = tmp_path / "dump.sql"
    dump.write_text("-- empty\n", encoding="utf-8")

    result = app.test_cli_runner().invoke(args=["importer", "run", "--file", str(dump)])

    assert result.exit_code != 0


def test_importer_enabled_registers_cli():
    app = build_app(enabled=True)

    runner = app.test_cli_runner()
    result = runner.invoke(args=["importer"])
    assert result.exit_code == 0, result.output
    assert "legacy_dump_v1.yaml" in result.output
    assert "source legacy_cms" in result.output

    importer_state = app.extensions[IMPORTER_EXTENSION_KEY]
    assert importer_state["enabled"] is True
    assert importer_state["mapping_path"] == str(MAPPING_PATH)
    assert importer_state["metrics_enabled"] is False


def test_importer_enabled_reports_missing_mapping(tmp_path):
    app = build_app(enabled=True, mapping_path=tmp_path / "absent.yaml")

    result = app.test_cli_runner().invoke(args=["importer"])

    assert result.exit_code != 0
    assert "Dump mapping could not be loaded" in result.output


def test_reinitializing_replaces_cli_group():
    app = build_app(enabled=True)
    app.config["IMPORTER_ENABLED"] = False
    init_importer(app)

    result = app.test_cli_runner().invoke(args=["importer"])

    assert "Importer commands are unavailable" in result.output
