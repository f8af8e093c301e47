"""Status command group for sessionvault.

Report on the stored backup; ``health`` is meant for cron jobs and
container health checks and signals the result through its exit code.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Annotated

import typer

from sessionvault.cli.context import ConfigOption, load_cli_config, open_document_store
from sessionvault.cli.formatters.panels import print_error, print_success, print_warning
from sessionvault.cli.formatters.tables import create_key_value_table, print_table
from sessionvault.config.models import SessionVaultConfig
from sessionvault.core.errors import TransportError
from sessionvault.core.session_id import SessionId
from sessionvault.persistence.session_store import SessionStore

app = typer.Typer(
    name="status",
    help="Check session backup status.",
    no_args_is_help=True,
)


@dataclass(frozen=True, slots=True)
class BackupHealth:
    session_id: str
    exists: bool
    last_backup_at: datetime | None

    def age(self, now: datetime | None = None) -> timedelta | None:
        if self.last_backup_at is None:
            return None
        return (now or datetime.now(UTC)) - self.last_backup_at


async def _check_backup(config: SessionVaultConfig, session_id: SessionId) -> BackupHealth:
    async with open_document_store(config) as document_store:
        store = SessionStore.from_config(config.backup, document_store)
        exists = await store.exists(session_id)
        last_backup_at = await store.refresh_status(session_id)
    return BackupHealth(session_id.value, exists, last_backup_at)


def _format_age(age: timedelta | None) -> str:
    if age is None:
        return "never"
    minutes = int(age.total_seconds() // 60)
    if minutes < 60:
        return f"{minutes} min ago"
    return f"{minutes // 60} h {minutes % 60} min ago"


@app.command()
def health(
    session_id: Annotated[
        str | None,
        typer.Option("--session-id", "-s", help="Session identifier (default: from config)."),
    ] = None,
    max_age_minutes: Annotated[
        float | None,
        typer.Option(
            "--max-age-minutes",
            "-m",
            min=0,
            help="Fail if the latest backup is older than this.",
        ),
    ] = None,
    config_path: ConfigOption = None,
) -> None:
    """Check that a restorable backup exists and is recent.

    Exits 0 when healthy and 1 otherwise.
    """
    config = load_cli_config(config_path)
    sid = SessionId.normalize(session_id, default=config.backup.session_id)
    try:
        report = asyncio.run(_check_backup(config, sid))
    except TransportError as e:
        print_error(e.message, title="Store Unreachable")
        raise typer.Exit(1) from e

    age = report.age()
    print_table(
        create_key_value_table(
            {
                "Session": report.session_id,
                "Backup stored": "yes" if report.exists else "no",
                "Last backup (UTC)": (
                    report.last_backup_at.strftime("%Y-%m-%d %H:%M:%S")
                    if report.last_backup_at
                    else None
                ),
                "Age": _format_age(age),
            },
            title="Backup Health",
        )
    )

    if not report.exists:
        print_error(f"No restorable backup for session '{report.session_id}'.", title="Unhealthy")
        raise typer.Exit(1)
    if max_age_minutes is not None and age is not None and age > timedelta(minutes=max_age_minutes):
        print_warning(
            f"Latest backup is older than {max_age_minutes:g} minutes.", title="Unhealthy"
        )
        raise typer.Exit(1)
    print_success("Backup is healthy.", title="Healthy")


__all__ = ["app"]
