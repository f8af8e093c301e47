"""Sessions command group for sessionvault.

Inspect stored sessions, remove corrupt records, and run one-shot backups
and restores.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer

from sessionvault.cli.context import ConfigOption, load_cli_config, open_document_store
from sessionvault.cli.formatters import console
from sessionvault.cli.formatters.panels import print_error, print_info, print_success
from sessionvault.cli.formatters.tables import create_sessions_table, print_table
from sessionvault.config.models import SessionVaultConfig
from sessionvault.core.errors import TransportError
from sessionvault.core.session_id import SessionId
from sessionvault.persistence.document_store import DocumentStore
from sessionvault.persistence.models import SessionSummary
from sessionvault.persistence.session_store import SessionStore

app = typer.Typer(
    name="sessions",
    help="Manage stored sessions.",
    no_args_is_help=True,
)

SessionIdOption = Annotated[
    str | None,
    typer.Option("--session-id", "-s", help="Session identifier (default: from config)."),
]
DirOption = Annotated[
    Path | None,
    typer.Option("--dir", "-d", help="Session directory (default: from config).", file_okay=False),
]


def _session_store(
    config: SessionVaultConfig,
    document_store: DocumentStore,
    session_dir: Path | None = None,
) -> SessionStore:
    backup = config.backup
    if session_dir is not None:
        backup = backup.model_copy(update={"session_dir": session_dir.expanduser()})
    return SessionStore.from_config(backup, document_store)


async def _list_sessions(config: SessionVaultConfig) -> list[SessionSummary]:
    async with open_document_store(config) as document_store:
        return await _session_store(config, document_store).list_sessions()


async def _cleanup(
    config: SessionVaultConfig,
) -> tuple[list[SessionSummary], int, list[SessionSummary]]:
    async with open_document_store(config) as document_store:
        store = _session_store(config, document_store)
        before = await store.list_sessions()
        deleted = await store.cleanup_corrupted()
        after = await store.list_sessions()
        return before, deleted, after


async def _save(
    config: SessionVaultConfig, session_id: SessionId, session_dir: Path | None
) -> bool:
    async with open_document_store(config) as document_store:
        return await _session_store(config, document_store, session_dir).save(session_id)


async def _restore(
    config: SessionVaultConfig, session_id: SessionId, session_dir: Path | None
) -> bool:
    async with open_document_store(config) as document_store:
        return await _session_store(config, document_store, session_dir).restore(session_id)


def _resolve_session_id(config: SessionVaultConfig, session_id: str | None) -> SessionId:
    return SessionId.normalize(session_id, default=config.backup.session_id)


@app.command("list")
def list_sessions(config_path: ConfigOption = None) -> None:
    """List stored sessions, including corrupt records."""
    config = load_cli_config(config_path)
    try:
        sessions = asyncio.run(_list_sessions(config))
    except TransportError as e:
        print_error(e.message, title="Store Error")
        raise typer.Exit(1) from e

    if not sessions:
        print_info("No sessions stored.")
        return
    print_table(create_sessions_table(sessions))


@app.command()
def cleanup(config_path: ConfigOption = None) -> None:
    """Delete records whose session identifier is missing or "undefined"."""
    config = load_cli_config(config_path)
    try:
        before, deleted, after = asyncio.run(_cleanup(config))
    except TransportError as e:
        print_error(e.message, title="Store Error")
        raise typer.Exit(1) from e

    if before:
        print_table(create_sessions_table(before, title="Sessions before cleanup"))
    if deleted:
        print_success(f"Deleted {deleted} corrupt record(s).")
    else:
        print_info("No corrupt records found.")
    if after:
        print_table(create_sessions_table(after, title="Remaining sessions"))
    else:
        console.print("[muted]No sessions remain.[/]")


@app.command()
def save(
    session_id: SessionIdOption = None,
    session_dir: DirOption = None,
    config_path: ConfigOption = None,
) -> None:
    """Back up the session directory now."""
    config = load_cli_config(config_path)
    sid = _resolve_session_id(config, session_id)
    try:
        saved = asyncio.run(_save(config, sid, session_dir))
    except TransportError as e:
        print_error(e.message, title="Store Error")
        raise typer.Exit(1) from e

    if not saved:
        print_error(f"Backup of session '{sid}' was not written. See the log for details.")
        raise typer.Exit(1)
    print_success(f"Session '{sid}' backed up.")


@app.command()
def restore(
    session_id: SessionIdOption = None,
    session_dir: DirOption = None,
    config_path: ConfigOption = None,
) -> None:
    """Replace the session directory with the stored backup."""
    config = load_cli_config(config_path)
    sid = _resolve_session_id(config, session_id)
    try:
        restored = asyncio.run(_restore(config, sid, session_dir))
    except TransportError as e:
        print_error(e.message, title="Store Error")
        raise typer.Exit(1) from e

    if not restored:
        print_error(f"Session '{sid}' could not be restored. See the log for details.")
        raise typer.Exit(1)
    print_success(f"Session '{sid}' restored.")


__all__ = ["app"]
