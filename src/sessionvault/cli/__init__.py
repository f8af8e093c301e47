"""sessionvault CLI module.

Command-line interface built with Typer, with Rich for output.
"""

from sessionvault.cli.main import app

__all__ = ["app"]
