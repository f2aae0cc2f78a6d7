"""Pytest configuration.

Ensures local packages can be imported consistently during test collection.
"""

import sys
from pathlib import Path

import pytest


def _prepend_sys_path(path: Path) -> None:
    resolved = str(path.resolve())
    if resolved not in sys.path:
        sys.path.insert(0, resolved)


REPO_ROOT = Path(__file__).resolve().parent

# Allow importing `src.*` package explicitly.
_prepend_sys_path(REPO_ROOT)

# Scripts are imported by their smoke tests.
_prepend_sys_path(REPO_ROOT / "scripts")


@pytest.fixture
def panel_env(monkeypatch):
    """Environment for the sheet reader and closing bot, pointing nowhere real."""
    values = {
        "SPREADSHEET_ID": "sheet-123",
        "GOOGLE_SERVICE_ACCOUNT_JSON": '{"type": "service_account"}',
        "APPS_SCRIPT_WEBAPP_URL": "https://script.example.test/exec",
        "BOT_API_KEY": "bot-key",
    }
    for name, value in values.items():
        monkeypatch.setenv(name, value)
    return values
