"""Configuration management for the RelaySync CLI."""

import json
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional

from common.constants import DEFAULT_CACHE_FILENAME, DEFAULT_CONFIG_DIR
from engine.sync_engine import EngineSettings

logger = logging.getLogger(__name__)


class Config:
    """Manages CLI configuration stored in JSON file."""

    DEFAULT_CONFIG = {
        "relay_host": os.environ.get("RELAY_HOST", "localhost"),
        "relay_port": int(os.environ.get("RELAY_PORT", "8765")),
        "relay_scheme": os.environ.get("RELAY_SCHEME", "http"),
        "auth_token": os.environ.get("RELAY_AUTH_TOKEN") or None,
        "cache_file": None,
        "auto_refresh_interval": None,
    }

    def __init__(self, config_path: Path):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to config JSON file (typically ~/.relaysync/config.json)
        """
        self.config_path = config_path
        self.data = self._load()

    @classmethod
    def default(cls) -> "Config":
        return cls(Path.home() / DEFAULT_CONFIG_DIR / 'config.json')

    def _load(self) -> dict:
        """
        Load configuration from file, creating defaults if necessary.

        Returns:
            Configuration dictionary
        """
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
        except PermissionError:
            self.config_path = Path(tempfile.gettempdir()) / DEFAULT_CONFIG_DIR / 'config.json'
            self.config_path.parent.mkdir(parents=True, exist_ok=True)

        if self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    data = json.load(f)
                if not isinstance(data, dict):
                    raise ValueError("config root must be an object")
                config = self.DEFAULT_CONFIG.copy()
                config.update(data)
                return config
            except (ValueError, OSError) as e:
                logger.warning(f"Config file {self.config_path} is unreadable ({e}), using defaults")
                backup_path = self.config_path.with_suffix('.json.bak')
                try:
                    shutil.copy(self.config_path, backup_path)
                except OSError as copy_error:
                    logger.warning(f"Could not back up config file: {copy_error}")
                return self.DEFAULT_CONFIG.copy()
        else:
            config = self.DEFAULT_CONFIG.copy()
            try:
                with open(self.config_path, 'w') as f:
                    json.dump(config, f, indent=2)
            except OSError as e:
                logger.warning(f"Could not write default config: {e}")
            return config

    def save(self) -> None:
        """Save current configuration to file."""
        try:
            with open(self.config_path, 'w') as f:
                json.dump(self.data, f, indent=2)
        except OSError as e:
            logger.error(f"Failed to save config: {e}")

    def get_auth_token(self) -> Optional[str]:
        """
        Get stored bearer token.

        Returns:
            Token string or None if not set
        """
        return self.data.get('auth_token') or None

    def set_auth_token(self, token: Optional[str]) -> None:
        """
        Set bearer token and save to file.

        Args:
            token: Token obtained from the relay's login flow (None clears it)
        """
        self.data['auth_token'] = token or None
        self.save()

    def get_base_url(self) -> str:
        """
        Get relay base URL.

        Returns:
            Base URL string (e.g., "http://localhost:8765")
        """
        scheme = self.data.get('relay_scheme', 'http')
        host = self.data.get('relay_host', 'localhost')
        port = self.data.get('relay_port', 8765)
        return f"{scheme}://{host}:{port}"

    def get_cache_path(self) -> Path:
        cache_file = self.data.get('cache_file')
        if cache_file:
            return Path(cache_file).expanduser()
        return self.config_path.parent / DEFAULT_CACHE_FILENAME

    def get_engine_settings(self) -> EngineSettings:
        interval = self.data.get('auto_refresh_interval')
        return EngineSettings(
            base_url=self.get_base_url(),
            cache_path=self.get_cache_path(),
            auto_refresh_interval_s=float(interval) if interval else None,
        )
