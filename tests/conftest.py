"""Shared fixtures for TurtleHub tests."""
import os
import sys
from pathlib import Path
from unittest.mock import Mock

import pytest

# Ensure src is on path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

# Qt widgets are created without a display
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")


@pytest.fixture(autouse=True)
def isolate_settings(tmp_path, monkeypatch):
    """Use a temp settings file and a fresh Settings singleton."""
    settings_file = tmp_path / "settings.json"
    monkeypatch.setattr("turtlehub.services.settings._SETTINGS_FILE", settings_file)
    from turtlehub.services.settings import Settings
    Settings.reset_instance()
    yield settings_file
    Settings.reset_instance()


@pytest.fixture(autouse=True)
def no_stored_token(monkeypatch):
    """Never read the real keychain; tests opt in to a token explicitly."""
    monkeypatch.setattr("turtlehub.services.browser.get_stored_api_token", lambda base_url: None)


@pytest.fixture
def make_response():
    """Build a stand-in for ``requests.Response``."""
    def _make(status_code=200, json_data=None, headers=None, text=""):
        r = Mock()
        r.status_code = status_code
        r.json.return_value = json_data
        r.headers = headers or {}
        r.text = text
        return r
    return _make
