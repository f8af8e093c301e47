"""Fixtures for CLI command tests."""

from pathlib import Path

import pytest
import yaml

from sessionvault.config.loader import DATABASE_URL_ENV, ENV_OVERRIDES


@pytest.fixture
def cli_config(tmp_path: Path, session_dir: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """config.yaml pointing at a SQLite file and the sample session directory."""
    for name in (DATABASE_URL_ENV, *ENV_OVERRIDES):
        monkeypatch.delenv(name, raising=False)
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        yaml.safe_dump(
            {
                "storage": {"database_url": f"sqlite+aiosqlite:///{tmp_path / 'sessions.db'}"},
                "backup": {"session_id": "bot-1", "session_dir": str(session_dir)},
                "logging": {"enable_file_logging": False},
            }
        )
    )
    return config_path
