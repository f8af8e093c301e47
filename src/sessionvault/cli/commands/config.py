"""Config command group for sessionvault.

Create, display and validate the configuration file.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer

from sessionvault.cli.context import ConfigOption, load_cli_config, open_document_store
from sessionvault.cli.formatters.panels import (
    print_error,
    print_info,
    print_success,
    print_warning,
)
from sessionvault.cli.formatters.tables import create_key_value_table, format_size, print_table
from sessionvault.config import (
    DATABASE_URL_ENV,
    create_default_config,
    get_config_dir,
    get_database_url,
)
from sessionvault.config.models import SessionVaultConfig
from sessionvault.core.errors import ConfigError, TransportError
from sessionvault.observability.logging import mask_url_credentials
from sessionvault.persistence.document_store import RecordFilter
from sessionvault.persistence.models import Collection

app = typer.Typer(
    name="config",
    help="Manage sessionvault configuration.",
    no_args_is_help=True,
)


def _config_summary(config: SessionVaultConfig, config_path: Path) -> dict[str, object]:
    backup = config.backup
    recovery = config.recovery
    return {
        "config_path": config_path,
        "database_url": mask_url_credentials(get_database_url(config)),
        "session_id": backup.session_id,
        "session_dir": backup.session_dir,
        "backup_interval": f"{backup.interval_seconds:g}s",
        "max_chunk_size": format_size(backup.max_chunk_size),
        "chunk_threshold": format_size(backup.chunk_threshold),
        "exclude_patterns": ", ".join(backup.exclude_patterns) or None,
        "health_check_interval": f"{recovery.health_check_interval_seconds:g}s",
        "reconnect_delay": f"{recovery.reconnect_delay_seconds:g}s",
        "log_mode": config.logging.mode.value,
        "log_level": config.logging.log_level,
    }


async def _check_store(config: SessionVaultConfig) -> int:
    async with open_document_store(config) as document_store:
        return await document_store.count(Collection.SESSIONS, RecordFilter.all())


@app.command()
def init(
    config_dir: Annotated[
        Path | None,
        typer.Option("--dir", help="Directory to create config.yaml in.", file_okay=False),
    ] = None,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Overwrite an existing config.yaml."),
    ] = False,
) -> None:
    """Write a config.yaml with default values."""
    try:
        path = create_default_config(config_dir, overwrite=force)
    except ConfigError as e:
        print_error(e.message, title="Configuration Error")
        print_info("Use --force to overwrite it.")
        raise typer.Exit(1) from e
    print_success(f"Configuration written to {path}")


@app.command()
def show(config_path: ConfigOption = None) -> None:
    """Display the effective configuration (credentials masked)."""
    config = load_cli_config(config_path)
    path = config_path or get_config_dir() / "config.yaml"
    if not path.exists():
        print_info("No configuration file found; showing defaults.")
    print_table(create_key_value_table(_config_summary(config, path), "Current Configuration"))


@app.command()
def validate(config_path: ConfigOption = None) -> None:
    """Validate config.yaml and test the database connection."""
    config = load_cli_config(config_path, require_file=True)
    print_success("Configuration file is valid.")

    if not config.backup.session_dir.is_dir():
        print_warning(
            f"Session directory {config.backup.session_dir} does not exist yet; "
            "it is created on the first login or restore."
        )

    url = mask_url_credentials(get_database_url(config))
    try:
        stored = asyncio.run(_check_store(config))
    except TransportError as e:
        print_error(
            f"Cannot connect to {url}: {e.message}\n"
            f"Check storage.database_url or {DATABASE_URL_ENV}.",
            title="Database Error",
        )
        raise typer.Exit(1) from e
    print_success(f"Connected to {url} ({stored} session record(s) stored).")


__all__ = ["app"]
