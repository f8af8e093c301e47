"""Unit tests for CLI main module."""

import re

from typer.testing import CliRunner

from sessionvault import __version__
from sessionvault.cli.main import app

runner = CliRunner()


def _plain(text: str) -> str:
    return re.sub(r"\x1b\[[0-9;]*m", "", text)


class TestMainApp:
    """Tests for the main Typer application."""

    def test_app_has_help(self) -> None:
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "session backup and recovery" in result.output

    def test_app_version_option(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in _plain(result.output)

    def test_app_version_short_option(self) -> None:
        result = runner.invoke(app, ["-V"])
        assert result.exit_code == 0
        assert __version__ in _plain(result.output)

    def test_no_args_shows_help(self) -> None:
        """no_args_is_help exits with status 2."""
        result = runner.invoke(app, [])
        assert result.exit_code == 2
        assert "sessions" in result.output


class TestCommandGroups:
    """Each command group is registered and documented."""

    def test_groups_listed_in_help(self) -> None:
        output = _plain(runner.invoke(app, ["--help"]).output)
        for group in ("sessions", "status", "config"):
            assert group in output

    def test_sessions_help(self) -> None:
        result = runner.invoke(app, ["sessions", "--help"])
        assert result.exit_code == 0
        output = _plain(result.output)
        for command in ("list", "cleanup", "save", "restore"):
            assert command in output

    def test_status_help(self) -> None:
        result = runner.invoke(app, ["status", "--help"])
        assert result.exit_code == 0
        assert "health" in _plain(result.output)

    def test_config_help(self) -> None:
        result = runner.invoke(app, ["config", "--help"])
        assert result.exit_code == 0
        output = _plain(result.output)
        for command in ("init", "show", "validate"):
            assert command in output
