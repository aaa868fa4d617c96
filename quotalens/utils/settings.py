"""Settings persistence manager.

Settings live in settings.json inside the per-OS config directory. Environment
variables take precedence over the file so that the CLI can be pointed at a
different management API without touching disk.
"""
import json
import logging
import os
import platform
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from ..models.settings import QuotaSettings

logger = logging.getLogger(__name__)

# Registry of persisted config keys
CONFIG_KEYS = {
    "managementUrl",
    "managementKey",
    "requestTimeout",
    "antigravityDefaultProjectId",
    "antigravityQuotaUrls",
}

# settings.json key -> QuotaSettings field
_SETTINGS_FIELDS = {
    "managementUrl": "management_url",
    "managementKey": "management_key",
    "requestTimeout": "request_timeout",
    "antigravityDefaultProjectId": "antigravity_default_project_id",
    "antigravityQuotaUrls": "antigravity_quota_urls",
}

# environment variable -> QuotaSettings field
ENV_OVERRIDES = {
    "QUOTALENS_MANAGEMENT_URL": "management_url",
    "QUOTALENS_MANAGEMENT_KEY": "management_key",
    "QUOTALENS_REQUEST_TIMEOUT": "request_timeout",
    "QUOTALENS_ANTIGRAVITY_PROJECT_ID": "antigravity_default_project_id",
}


def default_config_dir(app_name: str = "QuotaLens") -> Path:
    """Per-OS configuration directory."""
    system = platform.system()
    if system == "Darwin":  # macOS
        return Path.home() / "Library" / "Preferences" / app_name
    elif system == "Windows":
        return Path.home() / "AppData" / "Local" / app_name
    else:  # Linux
        return Path.home() / ".config" / app_name


class SettingsManager:
    """Manages application settings persistence."""

    def __init__(self, app_name: str = "QuotaLens", config_dir: Optional[Path] = None):
        """Initialize settings manager."""
        config_dir = config_dir or default_config_dir(app_name)
        config_dir.mkdir(parents=True, exist_ok=True)
        self.settings_file = config_dir / "settings.json"
        self._settings: dict[str, Any] = {}
        self._load()

    def _load(self):
        """Load settings from file."""
        if not self.settings_file.exists():
            self._settings = {}
            return
        try:
            with open(self.settings_file, "r", encoding="utf-8") as f:
                loaded = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("[Settings] Could not read %s: %s", self.settings_file, e)
            loaded = {}
        self._settings = loaded if isinstance(loaded, dict) else {}

    def _save(self):
        """Save settings to file."""
        # Restrictive permissions: the file may hold the management key
        old_umask = os.umask(0o077)
        try:
            with open(self.settings_file, "w", encoding="utf-8") as f:
                json.dump(self._settings, f, indent=2)
            os.chmod(self.settings_file, 0o600)
        finally:
            os.umask(old_umask)

    def get(self, key: str, default: Any = None) -> Any:
        """Get a setting value."""
        return self._settings.get(key, default)

    def set(self, key: str, value: Any):
        """Set a setting value."""
        if key not in CONFIG_KEYS:
            logger.warning("[Settings] Unknown settings key: %s", key)
        self._settings[key] = value
        self._save()

    def load_quota_settings(self, environ: Optional[dict[str, str]] = None) -> QuotaSettings:
        """Build QuotaSettings from settings.json overlaid with environment variables.

        Invalid values fall back to defaults field by field rather than failing
        the whole load.
        """
        environ = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        for key, field_name in _SETTINGS_FIELDS.items():
            if key in self._settings:
                values[field_name] = self._settings[key]
        for env_name, field_name in ENV_OVERRIDES.items():
            env_value = environ.get(env_name)
            if env_value:
                values[field_name] = env_value

        try:
            return QuotaSettings(**values)
        except ValidationError as e:
            invalid = {str(error["loc"][0]) for error in e.errors() if error.get("loc")}
            logger.warning("[Settings] Ignoring invalid settings: %s", ", ".join(sorted(invalid)))
            return QuotaSettings(**{k: v for k, v in values.items() if k not in invalid})
