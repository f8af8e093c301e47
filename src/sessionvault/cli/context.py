"""Shared setup for CLI commands: configuration, logging and the store."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Annotated

import typer

from sessionvault.cli.formatters.panels import print_error
from sessionvault.config import get_database_url, load_config, load_config_or_default
from sessionvault.config.models import SessionVaultConfig
from sessionvault.core.errors import ConfigError
from sessionvault.observability.logging import configure_logging
from sessionvault.persistence.document_store import SqlDocumentStore

ConfigOption = Annotated[
    Path | None,
    typer.Option(
        "--config",
        "-c",
        help="Path to config.yaml (default: ~/.sessionvault/config.yaml).",
        dir_okay=False,
    ),
]


def load_cli_config(config_path: Path | None, *, require_file: bool = False) -> SessionVaultConfig:
    """Load configuration for a command, exiting with status 1 on errors."""
    try:
        if require_file:
            config = load_config(config_path)
        else:
            config = load_config_or_default(config_path)
    except ConfigError as e:
        print_error(e.message, title="Configuration Error")
        raise typer.Exit(1) from e
    configure_logging(config.logging)
    return config


@asynccontextmanager
async def open_document_store(config: SessionVaultConfig) -> AsyncIterator[SqlDocumentStore]:
    """Yield an initialized SqlDocumentStore, closing it afterwards.

    Raises:
        TransportError: If the store cannot be reached.
    """
    store = SqlDocumentStore(get_database_url(config))
    try:
        await store.initialize()
        yield store
    finally:
        await store.close()
