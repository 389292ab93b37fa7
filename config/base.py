# config.py
import os


def _coerce_bool(value, default=False):
    """Convert environment-style truthy/falsey values to bool."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    value_str = str(value).strip().lower()
    if value_str in {"1", "true", "yes", "on"}:
        return True
    if value_str in {"0", "false", "no", "off"}:
        return False
    return default


def _parse_marker_list(value, default=()):
    """
    Parse a comma-separated marker list while keeping order and removing duplicates.

    Returns:
        tuple[str, ...]: Normalized markers (case preserved).
    """
    if not value:
        return tuple(default)

    seen = set()
    markers = []
    for raw_item in value.split(","):
        item = raw_item.strip()
        if not item or item in seen:
            continue
        seen.add(item)
        markers.append(item)
    return tuple(markers) or tuple(default)


def _parse_int(value, *, default, minimum=0):
    try:
        return max(minimum, int(value))
    except (TypeError, ValueError):
        return default


class Config:
    # SECRET_KEY is only used by Flask internals here; production must still set it.
    _flask_env = os.environ.get("FLASK_ENV", "development")
    _is_testing = _flask_env == "testing"
    _is_production = _flask_env == "production"

    SECRET_KEY = os.environ.get("SECRET_KEY")

    if not SECRET_KEY and _is_production:
        raise ValueError(
            "SECRET_KEY environment variable is required in production. "
            'Generate with: python -c "import secrets; print(secrets.token_hex(32))"'
        )

    if not SECRET_KEY:
        SECRET_KEY = "dev-secret-key-change-in-production"

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {}

    # Importer configuration
    IMPORTER_ENABLED = _coerce_bool(os.environ.get("IMPORTER_ENABLED"), default=True)
    IMPORTER_DUMP_MAPPING_PATH = os.environ.get(
        "IMPORTER_DUMP_MAPPING_PATH",
        os.path.join(os.path.dirname(__file__), "mappings", "legacy_dump_v1.yaml"),
    )
    # Empty prefix means "discover from the dump".
    IMPORTER_TABLE_PREFIX = os.environ.get("IMPORTER_TABLE_PREFIX", "")
    IMPORTER_BACKUP_DIR = os.environ.get("IMPORTER_BACKUP_DIR")
    IMPORTER_PRODUCTION_EMAIL_DOMAIN = os.environ.get(
        "IMPORTER_PRODUCTION_EMAIL_DOMAIN",
        "@technicaltalent.com.au",
    )
    IMPORTER_PASSWORD_HASH_MARKERS = _parse_marker_list(
        os.environ.get("IMPORTER_PASSWORD_HASH_MARKERS"),
        default=("$P$B", "$wp$"),
    )
    IMPORTER_VERIFY_SAMPLE_SIZE = _parse_int(
        os.environ.get("IMPORTER_VERIFY_SAMPLE_SIZE"),
        default=25,
        minimum=1,
    )
    IMPORTER_JOB_RECORD_TYPE = os.environ.get("IMPORTER_JOB_RECORD_TYPE", "role")
    IMPORTER_DEFAULT_COUNTRY = os.environ.get("IMPORTER_DEFAULT_COUNTRY", "Australia")
    IMPORTER_DEFAULT_LANGUAGE_PROFICIENCY = os.environ.get(
        "IMPORTER_DEFAULT_LANGUAGE_PROFICIENCY",
        "Conversational",
    )
    IMPORTER_DEFAULT_SKILL_PROFICIENCY = os.environ.get("IMPORTER_DEFAULT_SKILL_PROFICIENCY", "Intermediate")
    IMPORTER_METRICS_ENABLED = _coerce_bool(os.environ.get("IMPORTER_METRICS_ENABLED"), default=True)


class DevelopmentConfig(Config):
    DEBUG = True
    # Get the project root directory (parent of config directory)
    _config_dir = os.path.dirname(os.path.abspath(__file__))
    _project_root = os.path.dirname(_config_dir)
    instance_path = os.path.join(_project_root, "instance")

    if not os.path.exists(instance_path):
        os.makedirs(instance_path, exist_ok=True)

    # SQLite URI format: sqlite:///absolute/path (3 slashes for absolute path)
    db_path = os.path.join(instance_path, "legacy_import_dev.db").replace("\\", "/")
    db_uri = f"sqlite:///{db_path}"

    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", db_uri)
    SQLALCHEMY_ECHO = False
    if SQLALCHEMY_DATABASE_URI.startswith("sqlite"):
        SQLALCHEMY_ENGINE_OPTIONS = {
            "connect_args": {
                "check_same_thread": False,
                "timeout": 5,
            }
        }
    else:
        SQLALCHEMY_ENGINE_OPTIONS = {}


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = os.environ.get("SECRET_KEY", "test-secret-key-for-testing-only")
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ECHO = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "connect_args": {
            "check_same_thread": False,
            "timeout": 5,
        }
    }
    IMPORTER_METRICS_ENABLED = False


class ProductionConfig(Config):
    DEBUG = False
    uri = os.environ.get("DATABASE_URL")
    if uri and uri.startswith("postgres://"):
        uri = uri.replace("postgres://", "postgresql://", 1)
    SQLALCHEMY_DATABASE_URI = uri
    SQLALCHEMY_ECHO = False
