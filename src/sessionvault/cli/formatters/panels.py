"""Rich panels for important messages."""

from rich.markup import escape
from rich.panel import Panel

from sessionvault.cli.formatters import console


def _panel(message: str, title: str, style: str, color: str) -> Panel:
    return Panel(
        f"[{style}]{escape(message)}[/]",
        title=f"[bold {color}]{title}[/]",
        border_style=color,
        expand=False,
    )


def info_panel(message: str, title: str = "Info") -> Panel:
    return _panel(message, title, "info", "blue")


def warning_panel(message: str, title: str = "Warning") -> Panel:
    return _panel(message, title, "warning", "yellow")


def error_panel(message: str, title: str = "Error") -> Panel:
    return _panel(message, title, "error", "red")


def success_panel(message: str, title: str = "Success") -> Panel:
    return _panel(message, title, "success", "green")


def print_info(message: str, title: str = "Info") -> None:
    console.print(info_panel(message, title))


def print_warning(message: str, title: str = "Warning") -> None:
    console.print(warning_panel(message, title))


def print_error(message: str, title: str = "Error") -> None:
    console.print(error_panel(message, title))


def print_success(message: str, title: str = "Success") -> None:
    console.print(success_panel(message, title))


__all__ = [
    "info_panel",
    "warning_panel",
    "error_panel",
    "success_panel",
    "print_info",
    "print_warning",
    "print_error",
    "print_success",
]
