"""Configuration management for DayMark.

This module handles loading and saving application configuration to/from
a JSON file. The config directory can be customized via CLI argument.

Besides ordinary settings, the config file holds the small process-wide
flags of a profile: authentication, theme preference and the sync session
(remote id, last sync timestamp, dirty flag).
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

from .models import SyncSession
from .validation import ValidationError

logger = logging.getLogger(__name__)

__all__ = ["Config", "DEFAULT_SERVER_URL"]

DEFAULT_SERVER_URL = "http://127.0.0.1:8385"
THEMES = ("light", "dark")

# Keys cleared on logout
SESSION_KEYS = ("authenticated", "remote_id", "last_sync_timestamp", "force_pull")


class Config:
    """Manages application configuration stored in JSON format.

    Attributes:
        config_dir: Path to the configuration directory
        config_file: Path to config.json inside config_dir
    """

    def __init__(self, config_dir: Optional[Path] = None) -> None:
        """Initialize configuration manager.

        Args:
            config_dir: Custom config directory path. If None, uses ~/.config/daymark/
        """
        if config_dir is None:
            config_dir = Path.home() / ".config" / "daymark"
        self.config_dir = Path(config_dir)
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.config_file = self.config_dir / "config.json"
        self.config_data = self.load_config()

    def _defaults(self) -> Dict[str, Any]:
        return {
            "database_file": str(self.config_dir / "daymark.db"),
            "snapshot_database_file": str(self.config_dir / "snapshots.db"),
            "server_url": DEFAULT_SERVER_URL,
            "poll_interval_seconds": 12,
            "push_delay_seconds": 1.5,
            "request_timeout_seconds": 5,
            "theme": "light",
            "authenticated": False,
            "remote_id": None,
            "last_sync_timestamp": 0,
            "dirty": False,
            "force_pull": False,
        }

    def load_config(self) -> Dict[str, Any]:
        """Load configuration from file, creating it with defaults if needed.

        Returns:
            Configuration dictionary with defaults filled in
        """
        config = self._defaults()
        if self.config_file.exists():
            try:
                with open(self.config_file, "r", encoding="utf-8") as f:
                    loaded = json.load(f)
                if isinstance(loaded, dict):
                    config.update(loaded)
                else:
                    logger.warning(f"Ignoring malformed config file {self.config_file}")
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"Failed to read config file {self.config_file}: {e}")
        else:
            self.save_config(config)
            logger.info(f"Created default config at {self.config_file}")
        return config

    def save_config(self, config: Dict[str, Any]) -> None:
        """Write configuration to file atomically.

        Args:
            config: Configuration dictionary to save
        """
        fd, tmp_path = tempfile.mkstemp(dir=self.config_dir, prefix=".config-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(config, f, indent=2, sort_keys=True)
            os.replace(tmp_path, self.config_file)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value."""
        value = self.config_data.get(key)
        return value if value is not None else default

    def set(self, key: str, value: Any) -> None:
        """Set a configuration value and save to file."""
        self.config_data[key] = value
        self.save_config(self.config_data)

    def update(self, values: Dict[str, Any]) -> None:
        """Set several values with a single write."""
        self.config_data.update(values)
        self.save_config(self.config_data)

    def get_config_dir(self) -> Path:
        """Get the configuration directory path."""
        return self.config_dir

    # ===== Typed settings =====

    def get_database_file(self) -> Path:
        return Path(self.get("database_file"))

    def get_snapshot_database_file(self) -> Path:
        return Path(self.get("snapshot_database_file"))

    def get_server_url(self) -> str:
        return str(self.get("server_url", DEFAULT_SERVER_URL)).rstrip("/")

    def set_server_url(self, url: str) -> None:
        """Set the remote snapshot server URL."""
        if not isinstance(url, str) or not url.startswith(("http://", "https://")):
            raise ValidationError("server_url", "must start with http:// or https://")
        self.set("server_url", url.rstrip("/"))

    def _get_positive_number(self, key: str) -> float:
        value = self.get(key)
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            raise ValidationError(key, f"must be a positive number, got {value!r}")
        return float(value)

    def get_poll_interval(self) -> float:
        """Seconds between remote polls."""
        return self._get_positive_number("poll_interval_seconds")

    def get_push_delay(self) -> float:
        """Debounce delay in seconds before a scheduled push runs."""
        return self._get_positive_number("push_delay_seconds")

    def get_request_timeout(self) -> float:
        return self._get_positive_number("request_timeout_seconds")

    def get_theme(self) -> str:
        return self.get("theme", "light")

    def set_theme(self, theme: str) -> None:
        if theme not in THEMES:
            raise ValidationError("theme", f"must be one of {', '.join(THEMES)}")
        self.set("theme", theme)

    # ===== Sync session =====

    def load_session(self) -> SyncSession:
        """Build a SyncSession from the persisted flags."""
        return SyncSession(
            remote_id=self.get("remote_id"),
            last_sync_timestamp=int(self.get("last_sync_timestamp", 0)),
            dirty=bool(self.get("dirty", False)),
            force_pull=bool(self.get("force_pull", False)),
            authenticated=bool(self.get("authenticated", False)),
        )

    def save_session(self, session: SyncSession) -> None:
        """Persist every field of a SyncSession."""
        self.update({
            "remote_id": session.remote_id,
            "last_sync_timestamp": session.last_sync_timestamp,
            "dirty": session.dirty,
            "force_pull": session.force_pull,
            "authenticated": session.authenticated,
        })

    def clear_session(self) -> None:
        """Reset the auth-related keys. The dirty flag and theme are kept."""
        defaults = self._defaults()
        self.update({key: defaults[key] for key in SESSION_KEYS})
        logger.info("Cleared sync session")
