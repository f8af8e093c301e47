"""Rich formatters for CLI output.

Shared Console instance with the semantic colors used across the
sessionvault CLI:
- green: success
- yellow: warning
- red: error
- blue: info
"""

from rich.console import Console
from rich.theme import Theme

SESSIONVAULT_THEME = Theme(
    {
        "success": "green",
        "warning": "yellow",
        "error": "red",
        "info": "blue",
        "muted": "dim",
        "highlight": "bold cyan",
    }
)

console = Console(theme=SESSIONVAULT_THEME)

__all__ = ["console", "SESSIONVAULT_THEME"]
