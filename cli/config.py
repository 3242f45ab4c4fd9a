"""Configuration management for the SheetStore CLI."""

import json
import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional

from common.constants import (
    DEFAULT_CONTAINER_NAME,
    DEFAULT_MAX_WORKERS,
    DEFAULT_SHEET_SIZE_BYTES,
    DRIVE_API_BASE_URL,
    DRIVE_UPLOAD_BASE_URL,
)
from common.logging_config import get_logger

logger = get_logger(__name__)


class Config:
    """Manages CLI configuration stored in JSON file."""

    DEFAULT_CONFIG = {
        "container_name": os.environ.get("SHEETSTORE_CONTAINER", DEFAULT_CONTAINER_NAME),
        "api_base_url": os.environ.get("SHEETSTORE_API_BASE_URL", DRIVE_API_BASE_URL),
        "upload_base_url": os.environ.get("SHEETSTORE_UPLOAD_BASE_URL", DRIVE_UPLOAD_BASE_URL),
        "timeout": 60,
        "max_retries": 3,
        "retry_backoff_multiplier": 2,
        "sheet_size": DEFAULT_SHEET_SIZE_BYTES,
        "max_workers": DEFAULT_MAX_WORKERS,
        "download_dir": ".",
    }

    def __init__(self, config_path: Path):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to config JSON file (typically ~/.sheetstore/config.json)
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
            self.config_path = Path(tempfile.gettempdir()) / '.sheetstore' / 'config.json'
            self.config_path.parent.mkdir(parents=True, exist_ok=True)

        if self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    data = json.load(f)
                config = self.DEFAULT_CONFIG.copy()
                config.update(data)
                return config
            except (json.JSONDecodeError, IOError) as e:
                logger.warning(f"Config file {self.config_path} is unreadable, using defaults: {e}")
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
            except IOError as e:
                logger.warning(f"Could not write default config to {self.config_path}: {e}")
            return config

    def save(self) -> None:
        """Save current configuration to file."""
        try:
            with open(self.config_path, 'w') as f:
                json.dump(self.data, f, indent=2)
        except IOError as e:
            logger.warning(f"Could not save config to {self.config_path}: {e}")

    def get_access_token(self) -> Optional[str]:
        """
        Get the Drive access token.

        The SHEETSTORE_ACCESS_TOKEN environment variable takes precedence over
        the stored value.

        Returns:
            Access token string or None if not set
        """
        return os.environ.get('SHEETSTORE_ACCESS_TOKEN') or self.data.get('access_token')

    def set_access_token(self, token: str) -> None:
        """
        Set access token and save to file.

        Args:
            token: OAuth 2.0 bearer token with Drive scope
        """
        self.data['access_token'] = token
        self.save()

    def get_container_name(self) -> str:
        return self.data.get('container_name', DEFAULT_CONTAINER_NAME)

    def get_api_base_url(self) -> str:
        return self.data.get('api_base_url', DRIVE_API_BASE_URL)

    def get_upload_base_url(self) -> str:
        return self.data.get('upload_base_url', DRIVE_UPLOAD_BASE_URL)

    def get_timeout(self) -> int:
        """
        Get request timeout in seconds.

        Returns:
            Timeout value in seconds
        """
        return self.data.get('timeout', 60)

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

    def get_sheet_size(self) -> int:
        """Maximum bytes stored in a single sheet before encoding."""
        return int(self.data.get('sheet_size', DEFAULT_SHEET_SIZE_BYTES))

    def get_max_workers(self) -> int:
        return int(self.data.get('max_workers', DEFAULT_MAX_WORKERS))

    def get_download_dir(self) -> Path:
        return Path(self.data.get('download_dir', '.'))
