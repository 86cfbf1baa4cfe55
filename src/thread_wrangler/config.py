"""Config I/O for wrangler.yaml and the live configuration snapshot.

Priority for the host token (highest wins):
1. WRANGLER_HOST_TOKEN environment variable
2. keys.yaml
"""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path

import yaml
from pydantic import ValidationError

from .conventions import CONFIG_FILENAME, KEYS_FILENAME, WRANGLER_HOME
from .schema import WranglerSettings

logger = logging.getLogger(__name__)


def _wrangler_home() -> Path:
    return Path(WRANGLER_HOME).expanduser()


def config_path() -> Path:
    """Return the path to ~/.wrangler/wrangler.yaml, expanded."""
    return _wrangler_home() / CONFIG_FILENAME


def read_settings(path: Path | None = None) -> WranglerSettings:
    """Parse wrangler.yaml strictly. Raises on invalid values.

    A missing or empty file yields the defaults.
    """
    path = path or config_path()
    if not path.exists():
        return WranglerSettings()
    data = yaml.safe_load(path.read_text())
    if not data:
        return WranglerSettings()
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a mapping, got {type(data).__name__}")
    return WranglerSettings(**data)


def load_settings(path: Path | None = None) -> WranglerSettings:
    """Load wrangler.yaml, returning defaults if missing or invalid.

    Invalid values are logged and replaced by defaults so the server can
    still start; every policy flag defaults to the restrictive setting.
    """
    path = path or config_path()
    try:
        return read_settings(path)
    except (OSError, yaml.YAMLError, ValidationError, ValueError) as exc:
        logger.warning(
            "Invalid %s at %s: %s. Using defaults. "
            "Run 'thread-wrangler config validate' for details.",
            CONFIG_FILENAME,
            path,
            exc,
        )
        return WranglerSettings()


def save_settings(settings: WranglerSettings, path: Path | None = None) -> None:
    """Write settings to ~/.wrangler/wrangler.yaml."""
    path = path or config_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    data = settings.model_dump()
    text = yaml.dump(data, default_flow_style=False, sort_keys=False)
    path.write_text(text)


def load_host_token() -> str:
    """Host API token: env > keys.yaml > ''."""
    env = os.environ.get("WRANGLER_HOST_TOKEN", "")
    if env:
        return env
    path = _wrangler_home() / KEYS_FILENAME
    if not path.exists():
        return ""
    try:
        data = yaml.safe_load(path.read_text())
    except (OSError, yaml.YAMLError):
        logger.warning("Failed to read keys.yaml", exc_info=True)
        return ""
    if isinstance(data, dict):
        return str(data.get("WRANGLER_HOST_TOKEN", "") or "")
    return ""


class ConfigurationStore:
    """Holds the current settings snapshot behind a single reference.

    Readers call get() once per operation and keep the returned object;
    set() swaps in a new frozen snapshot, so an in-flight command never
    sees a half-updated configuration.
    """

    def __init__(self, settings: WranglerSettings | None = None) -> None:
        self._settings = settings or WranglerSettings()
        self._lock = threading.Lock()

    def get(self) -> WranglerSettings:
        with self._lock:
            return self._settings

    def set(self, settings: WranglerSettings) -> WranglerSettings:
        """Install a new snapshot. Returns the previous one."""
        with self._lock:
            previous = self._settings
            self._settings = settings
        return previous

    def reload(self, path: Path | None = None) -> WranglerSettings:
        """Configuration change event: re-read the file and install it."""
        settings = load_settings(path)
        self.set(settings)
        logger.info("Configuration reloaded from %s", path or config_path())
        return settings
