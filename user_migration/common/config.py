"""
Configuration loader for the migration tools.

Settings come from four places, in decreasing order of precedence:
1. Explicit overrides (usually CLI flags)
2. Environment variables (`.env` is loaded by the entry point)
3. `config/importer.yml` (non-secret settings only)
4. Built-in defaults

The result is a single immutable `ImporterConfig` that is built once at
process start and passed explicitly to the importer.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

DEFAULT_BUCKET = "time station - data"
DEFAULT_TABLE = "users"
DEFAULT_CONFLICT_KEY = "id"
DEFAULT_UPLOAD_PREFIX = "profiles"
DEFAULT_SOURCE_PATH = "scripts/users.json"
DEFAULT_FILES_DIR = "scripts/profile-files"

# Keys accepted from the YAML file; credentials are environment-only
YAML_KEYS = {"bucket", "table", "conflict_key", "upload_prefix", "source_path", "files_dir"}
PATH_KEYS = {"source_path", "files_dir"}


class ConfigError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


@dataclass(frozen=True)
class ImporterConfig:
    """Immutable settings for one importer run."""

    supabase_url: str
    supabase_key: str
    bucket: str = DEFAULT_BUCKET
    table: str = DEFAULT_TABLE
    conflict_key: str = DEFAULT_CONFLICT_KEY
    upload_prefix: str = DEFAULT_UPLOAD_PREFIX
    source_path: Path = Path(DEFAULT_SOURCE_PATH)
    files_dir: Path = Path(DEFAULT_FILES_DIR)
    database_url: str | None = None

    @property
    def uses_direct_postgres(self) -> bool:
        """True when rows should be written over a direct Postgres connection."""
        return bool(self.database_url)


def _project_root() -> Path:
    """Return the project root path based on this file's location."""
    return Path(__file__).resolve().parent.parent.parent


def _settings_root(config_file: Path) -> Path:
    """Directory that relative paths in a settings file are resolved against."""
    config_dir = config_file.resolve().parent
    return config_dir.parent if config_dir.name == "config" else config_dir


def _resolve_path(value: str | os.PathLike[str], base: Path) -> Path:
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = base / path
    return path


def _load_yaml_settings(config_path: str | None) -> tuple[dict[str, Any], Path | None]:
    """
    Read non-secret settings from the YAML file.

    A missing default file is fine (all keys have defaults); a missing
    file that was explicitly requested is an error.

    Returns:
        The settings and the directory their relative paths are based on,
        or None for the directory when no file is in use
    """
    path = Path(config_path) if config_path else _project_root() / "config" / "importer.yml"
    if not path.exists():
        if config_path:
            raise ConfigError(f"Configuration file not found: {path}")
        logger.debug("No importer configuration file at %s, using defaults", path)
        return {}, None

    root = _settings_root(path)

    try:
        with path.open("r", encoding="utf-8") as handle:
            raw_config = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        logger.error("Failed to parse importer configuration: %s", exc)
        raise ConfigError(f"Invalid YAML in config file {path}: {exc}") from exc

    if raw_config is None:
        logger.warning("Empty configuration file, using defaults")
        return {}, root

    if not isinstance(raw_config, Mapping):
        raise ConfigError(f"Configuration file {path} must contain a mapping at the top level")

    section = raw_config.get("importer", raw_config)
    if not isinstance(section, Mapping):
        raise ConfigError("'importer' section must be a mapping")

    unknown = set(section) - YAML_KEYS
    if unknown:
        logger.warning(
            "Ignoring unknown configuration keys",
            extra={'config_path': str(path), 'keys': sorted(unknown)}
        )

    return {key: section[key] for key in YAML_KEYS if section.get(key) is not None}, root


def load_config(
    config_path: str | None = None,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> ImporterConfig:
    """
    Build the importer configuration.

    Relative paths from overrides are resolved against the working
    directory. Relative paths from the YAML file, and the built-in
    defaults, are resolved against the folder holding `config/` (or the
    YAML file's own folder); with no settings file in use they fall back
    to the working directory.

    Args:
        config_path: Optional YAML file path. When omitted,
            `config/importer.yml` relative to the project root is used if present.
        env: Environment mapping (defaults to `os.environ`)
        overrides: Values that win over everything else (e.g. CLI flags).
            Keys are `ImporterConfig` field names; `None` values are ignored.

    Returns:
        ImporterConfig

    Raises:
        ConfigError: If SUPABASE_URL or SUPABASE_KEY is missing, or the
            YAML file is invalid
    """
    env = os.environ if env is None else env

    supabase_url = (env.get("SUPABASE_URL") or "").strip()
    supabase_key = (env.get("SUPABASE_KEY") or "").strip()
    if not supabase_url or not supabase_key:
        raise ConfigError("Missing SUPABASE_URL or SUPABASE_KEY environment variables")

    yaml_settings, settings_root = _load_yaml_settings(config_path)
    base = settings_root or Path.cwd()

    settings: dict[str, Any] = {
        "source_path": base / DEFAULT_SOURCE_PATH,
        "files_dir": base / DEFAULT_FILES_DIR,
    }
    for key, value in yaml_settings.items():
        settings[key] = _resolve_path(value, base) if key in PATH_KEYS else value

    if env.get("SUPABASE_BUCKET"):
        settings["bucket"] = env["SUPABASE_BUCKET"]

    for key, value in (overrides or {}).items():
        if value is not None:
            settings[key] = _resolve_path(value, Path.cwd()) if key in PATH_KEYS else value

    config = ImporterConfig(
        supabase_url=supabase_url,
        supabase_key=supabase_key,
        bucket=str(settings.get("bucket", DEFAULT_BUCKET)),
        table=str(settings.get("table", DEFAULT_TABLE)),
        conflict_key=str(settings.get("conflict_key", DEFAULT_CONFLICT_KEY)),
        upload_prefix=str(settings.get("upload_prefix", DEFAULT_UPLOAD_PREFIX)).strip("/"),
        source_path=settings["source_path"],
        files_dir=settings["files_dir"],
        database_url=env.get("DATABASE_URL") or None,
    )

    logger.debug(
        "Importer configuration loaded",
        extra={
            'bucket': config.bucket,
            'table': config.table,
            'source_path': str(config.source_path),
            'files_dir': str(config.files_dir),
            'direct_postgres': config.uses_direct_postgres,
        }
    )
    return config
