"""Configuration module for sessionvault.

Configuration lives in ~/.sessionvault/config.yaml; a .env file in the
working directory or in ~/.sessionvault/ is loaded on import.

Usage:
    from sessionvault.config import load_config, get_database_url

    config = load_config()
    store = SqlDocumentStore(get_database_url(config))
"""

from sessionvault.config.loader import (
    DATABASE_URL_ENV,
    config_exists,
    create_default_config,
    ensure_config_dir,
    get_database_url,
    load_config,
    load_config_or_default,
)
from sessionvault.config.models import (
    BackupConfig,
    RecoveryConfig,
    SessionVaultConfig,
    StorageConfig,
    get_config_dir,
    get_default_config,
)

__all__ = [
    # Models
    "SessionVaultConfig",
    "StorageConfig",
    "BackupConfig",
    "RecoveryConfig",
    # Loader functions
    "load_config",
    "load_config_or_default",
    "create_default_config",
    "ensure_config_dir",
    "config_exists",
    "get_database_url",
    "DATABASE_URL_ENV",
    # Model helpers
    "get_config_dir",
    "get_default_config",
]
