"""Configuration loading for sessionvault.

Sources, lowest priority first:
    1. model defaults
    2. ~/.sessionvault/config.yaml (or the path given with --config)
    3. environment variables (see ENV_OVERRIDES), including values from a
       .env file in the working directory or in ~/.sessionvault/

The document store URL is resolved separately by get_database_url() so that
a URL carrying credentials can live only in the environment.
"""

import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import ValidationError as PydanticValidationError
import yaml

load_dotenv()
load_dotenv(Path.home() / ".sessionvault" / ".env")

from sessionvault.config.models import (  # noqa: E402
    SessionVaultConfig,
    get_config_dir,
    get_default_config,
)
from sessionvault.core.errors import ConfigError  # noqa: E402

DATABASE_URL_ENV = "SESSIONVAULT_DATABASE_URL"

# environment variable -> (section, key)
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "SESSIONVAULT_SESSION_ID": ("backup", "session_id"),
    "SESSIONVAULT_SESSION_DIR": ("backup", "session_dir"),
    "SESSIONVAULT_LOG_LEVEL": ("logging", "log_level"),
}

_CONFIG_HEADER = """\
# sessionvault configuration
#
# storage.database_url is a SQLAlchemy async URL; leave it null to use
# ~/.sessionvault/data/sessions.db. SESSIONVAULT_DATABASE_URL overrides it.
# Sizes are in bytes, intervals and delays in seconds.

"""


def _default_config_path() -> Path:
    return get_config_dir() / "config.yaml"


def ensure_config_dir(config_dir: Path | None = None) -> Path:
    """Create the configuration directory with its data/ and logs/ subdirectories."""
    config_dir = config_dir or get_config_dir()
    for directory in (config_dir, config_dir / "data", config_dir / "logs"):
        directory.mkdir(parents=True, exist_ok=True)
    return config_dir


def create_default_config(
    config_dir: Path | None = None,
    *,
    overwrite: bool = False,
) -> Path:
    """Write config.yaml with default values and return its path.

    Raises:
        ConfigError: If the file exists and overwrite is False.
    """
    config_path = ensure_config_dir(config_dir) / "config.yaml"
    if config_path.exists() and not overwrite:
        raise ConfigError(
            f"Configuration file already exists: {config_path}",
            config_file=str(config_path),
        )

    defaults = get_default_config().model_dump(mode="json")
    with config_path.open("w") as f:
        f.write(_CONFIG_HEADER)
        yaml.safe_dump(defaults, f, default_flow_style=False, sort_keys=False)
    return config_path


def _read_yaml(config_path: Path) -> dict[str, Any]:
    try:
        with config_path.open() as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Failed to parse configuration file: {e}",
            config_file=str(config_path),
            details={"yaml_error": str(e)},
        ) from e
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(
            "Configuration file must contain a mapping at the top level",
            config_file=str(config_path),
        )
    return raw


def _apply_env_overrides(raw: dict[str, Any], config_path: Path) -> dict[str, Any]:
    merged: dict[str, Any] = {}
    for section, values in raw.items():
        if values is None:
            values = {}
        if not isinstance(values, dict):
            raise ConfigError(
                f"Configuration section '{section}' must be a mapping, "
                f"got {type(values).__name__}",
                config_key=str(section),
                config_file=str(config_path),
            )
        merged[section] = dict(values)
    for env_var, (section, key) in ENV_OVERRIDES.items():
        value = os.environ.get(env_var, "").strip()
        if value:
            merged.setdefault(section, {})[key] = value
    return merged


def _validate(raw: dict[str, Any], config_path: Path) -> SessionVaultConfig:
    try:
        return SessionVaultConfig.model_validate(_apply_env_overrides(raw, config_path))
    except PydanticValidationError as e:
        problems = "\n".join(
            f"  - {'.'.join(str(part) for part in error['loc']) or '<root>'}: {error['msg']}"
            for error in e.errors()
        )
        raise ConfigError(
            "Configuration validation failed:\n" + problems,
            config_file=str(config_path),
            details={"validation_errors": e.errors()},
        ) from e


def load_config(config_path: Path | None = None) -> SessionVaultConfig:
    """Load and validate configuration from YAML plus environment overrides.

    Raises:
        ConfigError: If the file is missing, malformed, or fails validation.
    """
    config_path = config_path or _default_config_path()
    if not config_path.exists():
        raise ConfigError(
            f"Configuration file not found: {config_path}. "
            "Run `sessionvault config init` to create a default configuration.",
            config_file=str(config_path),
        )
    return _validate(_read_yaml(config_path), config_path)


def load_config_or_default(config_path: Path | None = None) -> SessionVaultConfig:
    """Like load_config, but a missing file means defaults (plus environment).

    Malformed files still raise ConfigError.
    """
    config_path = config_path or _default_config_path()
    if not config_path.exists():
        return _validate({}, config_path)
    return load_config(config_path)


def config_exists(config_dir: Path | None = None) -> bool:
    return ((config_dir or get_config_dir()) / "config.yaml").exists()


def get_database_url(config: SessionVaultConfig | None = None) -> str:
    """Resolve the document store URL.

    Priority:
        1. SESSIONVAULT_DATABASE_URL environment variable
        2. storage.database_url in config.yaml
        3. SQLite file at ~/.sessionvault/data/sessions.db
    """
    env_url = os.environ.get(DATABASE_URL_ENV, "").strip()
    if env_url:
        return env_url
    if config is not None and config.storage.database_url:
        return config.storage.database_url

    db_path = get_config_dir() / "data" / "sessions.db"
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite+aiosqlite:///{db_path}"
