"""Settings service: read ~/.config/turtlehub/settings.json once per process."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

log = logging.getLogger(__name__)

_SETTINGS_FILE = Path.home() / ".config" / "turtlehub" / "settings.json"

DEFAULTS: dict[str, Any] = {
    # GitHub
    "api_base_url": "https://api.github.com",
    "request_timeout": 30,

    # Issue browser
    "show_prs_by_default": False,
    "check_for_updates": True,

    # Diagnostics
    "strict_credential_check": False,  # validate the stored token before fetching
    "log_rate_limit": False,
}


class Settings:
    """Application settings backed by a JSON file."""

    _instance: Settings | None = None

    def __init__(self):
        self._data: dict[str, Any] = dict(DEFAULTS)
        self._load()

    @classmethod
    def get(cls) -> Settings:
        if cls._instance is None:
            cls._instance = Settings()
        return cls._instance

    @classmethod
    def reset_instance(cls):
        cls._instance = None

    # ── Public API ────────────────────────────────────────────────

    def __getitem__(self, key: str) -> Any:
        return self._data.get(key, DEFAULTS.get(key))

    def __setitem__(self, key: str, value: Any):
        self._data[key] = value

    # ── Convenience properties ────────────────────────────────────

    @property
    def api_base_url(self) -> str:
        return str(self["api_base_url"]).rstrip("/")

    @property
    def strict_credential_check(self) -> bool:
        return bool(self["strict_credential_check"])

    # ── Private ───────────────────────────────────────────────────

    def _load(self):
        if not _SETTINGS_FILE.exists():
            return
        try:
            stored = json.loads(_SETTINGS_FILE.read_text("utf-8"))
        except (OSError, ValueError) as e:
            log.warning("Ignoring unreadable settings file %s: %s", _SETTINGS_FILE, e)
            return
        if isinstance(stored, dict):
            self._data.update(stored)
