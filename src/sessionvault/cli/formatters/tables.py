"""Rich tables for structured data display."""

from collections.abc import Sequence
from typing import Any

from rich.markup import escape
from rich.table import Table

from sessionvault.cli.formatters import console
from sessionvault.core.session_id import CORRUPT_RAW_IDS
from sessionvault.persistence.models import SessionSummary


def create_table(
    title: str | None = None,
    *,
    show_header: bool = True,
    border_style: str = "blue",
    header_style: str = "bold cyan",
) -> Table:
    """Create a Rich Table with consistent sessionvault styling.

    Example:
        table = create_table("Sessions")
        table.add_column("Session", style="cyan")
        table.add_row("default")
        print_table(table)
    """
    return Table(
        title=title,
        show_header=show_header,
        border_style=border_style,
        header_style=header_style,
        row_styles=["", "dim"],
    )


def create_key_value_table(
    data: dict[str, Any],
    title: str | None = None,
    *,
    key_style: str = "cyan",
) -> Table:
    """Create a two-column table for key-value data."""
    table = create_table(title, show_header=False)
    table.add_column("Key", style=key_style, no_wrap=True)
    table.add_column("Value")
    for key, value in data.items():
        table.add_row(str(key), "-" if value is None else str(value))
    return table


def format_size(size: int) -> str:
    """Render a byte count in the largest unit that keeps it >= 1."""
    value = float(size)
    for unit in ("B", "KiB", "MiB"):
        if value < 1024:
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GiB"


def create_sessions_table(
    sessions: Sequence[SessionSummary],
    title: str | None = "Stored Sessions",
) -> Table:
    """Tabulate stored sessions; rows without a usable identifier are flagged."""
    table = create_table(title)
    table.add_column("Session", style="cyan", no_wrap=True)
    table.add_column("Size", justify="right")
    table.add_column("Storage")
    table.add_column("Backed up (UTC)")

    for summary in sessions:
        if summary.session_id is None:
            name = "[error]<null>[/]"
        elif summary.session_id in CORRUPT_RAW_IDS:
            name = f"[error]{summary.session_id!r}[/]"
        else:
            name = escape(summary.session_id)
        storage = f"{summary.chunk_count} chunks" if summary.is_chunked else "inline"
        table.add_row(
            name,
            format_size(summary.size),
            storage,
            summary.created_at.strftime("%Y-%m-%d %H:%M:%S"),
        )
    return table


def print_table(table: Table) -> None:
    console.print(table)


__all__ = [
    "create_table",
    "create_key_value_table",
    "create_sessions_table",
    "format_size",
    "print_table",
]
