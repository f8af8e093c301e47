"""sessionvault CLI main entry point.

Defines the main Typer application and registers all command groups.
"""

from typing import Annotated

import typer

from sessionvault import __version__
from sessionvault.cli.commands import config, sessions, status
from sessionvault.cli.formatters import console

app = typer.Typer(
    name="sessionvault",
    help="sessionvault - session backup and recovery",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.add_typer(sessions.app, name="sessions")
app.add_typer(status.app, name="status")
app.add_typer(config.app, name="config")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold cyan]sessionvault[/] version [green]{__version__}[/]")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = None,
) -> None:
    """sessionvault - session backup and recovery.

    Backs up a messaging client's session directory to a document store and
    restores it when the session is lost.

    Use [bold cyan]sessionvault COMMAND --help[/] for command-specific help.
    """


__all__ = ["app", "main"]
