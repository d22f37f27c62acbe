"""
Runtime settings.

Settings come from (later wins):
- defaults
- environment variables
    NOTICEBOARD_FIREBASE_CONFIG  inline JSON or path to a JSON file
    NOTICEBOARD_APP_ID
    NOTICEBOARD_AUTH_TOKEN
    NOTICEBOARD_DATA             path of the local JSON store
- command line flags (applied by noticeboard.cli)

The backend is chosen from what is configured: Firebase if the config has a
projectId, else the local store if a data path is set, else none.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

from noticeboard.errors import ConfigurationError

DEFAULT_APP_ID = "default-app-id"

BACKEND_FIREBASE = "firebase"
BACKEND_LOCAL = "local"


def parse_firebase_config(value: str) -> dict[str, Any]:
    """
    Parse a Firebase web config given inline (JSON text) or as a file path.

    Raises ConfigurationError if the text is neither.
    """
    text = value.strip()
    if not text:
        return {}
    if not text.startswith("{"):
        path = Path(text).expanduser()
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(f"cannot read Firebase config {path}: {e}") from e
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Firebase config is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError("Firebase config must be a JSON object")
    return data


@dataclass
class Settings:
    firebase_config: dict[str, Any] = field(default_factory=dict)
    app_id: str = DEFAULT_APP_ID
    auth_token: Optional[str] = None
    local_path: Optional[Path] = None
    allow_anonymous: bool = True
    poll_interval: float = 2.0
    admin: bool = False

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        settings = cls()

        raw_config = env.get("NOTICEBOARD_FIREBASE_CONFIG", "")
        if raw_config.strip():
            settings.firebase_config = parse_firebase_config(raw_config)

        app_id = env.get("NOTICEBOARD_APP_ID", "").strip()
        if app_id:
            settings.app_id = app_id

        token = env.get("NOTICEBOARD_AUTH_TOKEN", "").strip()
        if token:
            settings.auth_token = token

        data = env.get("NOTICEBOARD_DATA", "").strip()
        if data:
            settings.local_path = Path(data).expanduser()

        return settings

    @property
    def backend(self) -> Optional[str]:
        if self.firebase_config.get("projectId"):
            return BACKEND_FIREBASE
        if self.local_path is not None:
            return BACKEND_LOCAL
        return None

    @property
    def project_id(self) -> Optional[str]:
        return self.firebase_config.get("projectId")

    @property
    def api_key(self) -> Optional[str]:
        return self.firebase_config.get("apiKey")
