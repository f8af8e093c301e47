"""Test main entry point."""

import importlib.util
from pathlib import Path
import re
from unittest.mock import patch

import sessionvault
from sessionvault import main


def test_version_exists():
    """__version__ is a semver string."""
    assert re.match(r"^\d+\.\d+\.\d+$", sessionvault.__version__)


def test_main_invokes_cli():
    """main() delegates to the Typer app."""
    with patch("sessionvault.cli.main.app") as mock_app:
        main()

    mock_app.assert_called_once_with()


def test_main_module_execution():
    """__main__ module can be loaded without running the CLI."""
    root = Path(__file__).parent.parent.parent
    main_py = root / "src" / "sessionvault" / "__main__.py"

    assert main_py.exists()
    spec = importlib.util.spec_from_file_location("sessionvault.__main__", main_py)
    assert spec is not None
    assert spec.loader is not None
