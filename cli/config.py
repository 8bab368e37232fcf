"""Configuration management for the relaybox uploader."""

import json
import os
import tempfile
from pathlib import Path
from typing import Optional

from common.constants import CHUNK_SIZE_BYTES


class Config:
    """Manages uploader configuration stored in a JSON file."""

    DEFAULT_CONFIG = {
        "server_url": os.environ.get("RELAYBOX_SERVER_URL", "http://localhost:8000"),
        "timeout": 60,
        "max_retries": 3,
        "retry_backoff_multiplier": 2,
        "chunk_size": CHUNK_SIZE_BYTES,
    }

    def __init__(self, config_path: Path):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to config JSON file (typically ~/.relaybox/config.json)
        """
        self.config_path = config_path
        self.data = self._load()

    def _load(self) -> dict:
        """
        Load configuration from file, creating defaults if necessary.

        Returns:
            Configuration dictionary
        """
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
        except PermissionError:
            self.config_path = Path(tempfile.gettempdir()) / '.relaybox' / 'config.json'
            self.config_path.parent.mkdir(parents=True, exist_ok=True)

        config = self.DEFAULT_CONFIG.copy()

        if self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    config.update(json.load(f))
            except (json.JSONDecodeError, IOError):
                pass
            return config

        try:
            with open(self.config_path, 'w') as f:
                json.dump(config, f, indent=2)
        except IOError:
            pass
        return config

    def save(self) -> None:
        """Save current configuration to file."""
        try:
            with open(self.config_path, 'w') as f:
                json.dump(self.data, f, indent=2)
        except IOError:
            pass

    def get_password(self) -> Optional[str]:
        return os.environ.get("RELAYBOX_PASSWORD") or self.data.get('password')

    def set_password(self, password: str) -> None:
        self.data['password'] = password
        self.save()

    def get_base_url(self) -> str:
        """
        Get server base URL without a trailing slash.
        """
        return str(self.data.get('server_url', 'http://localhost:8000')).rstrip('/')

    def set_base_url(self, url: str) -> None:
        self.data['server_url'] = url.rstrip('/')
        self.save()

    def get_timeout(self) -> int:
        return self.data.get('timeout', 60)

    def get_chunk_size(self) -> int:
        return int(self.data.get('chunk_size', CHUNK_SIZE_BYTES))

    def get_retry_config(self) -> dict:
        """
        Get retry configuration.

        Returns:
            Dictionary with 'max_retries' and 'retry_backoff_multiplier'
        """
        return {
            'max_retries': self.data.get('max_retries', 3),
            'retry_backoff_multiplier': self.data.get('retry_backoff_multiplier', 2),
        }
