"""
Configuration loader module.

Loads config/dropsync.json into DropSyncSettings with clear error
messages for the common failure scenarios. Relative paths in the file
are anchored to the project root (parent of the config directory).
"""

from __future__ import annotations

import json
import logging
import os
import sys
from pathlib import Path

from pydantic import ValidationError

from dropsync.domain.errors import ConfigurationError
from dropsync.domain.settings import DropSyncSettings

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "dropsync.json"

# Secrets may come from the environment instead of the JSON file
SMTP_PASSWORD_ENV = "DROPSYNC_SMTP_PASSWORD"


class ConfigLoader:
    """
    Load and validate configuration files.

    Usage:
        settings = ConfigLoader("config").load_settings()
    """

    def __init__(self, config_dir: Path | str = "config") -> None:
        """
        Initialize config loader.

        Args:
            config_dir: Directory containing configuration files.
                When frozen into an executable, a relative directory is
                anchored to the executable location.
        """
        if getattr(sys, "frozen", False) and not Path(config_dir).is_absolute():
            self.config_dir = Path(sys.executable).parent / config_dir
        else:
            self.config_dir = Path(config_dir)
        logger.debug("ConfigLoader initialized with directory: %s", self.config_dir)

    def _load_json_file(self, filepath: Path) -> dict:
        """
        Load and parse a JSON file.

        Raises:
            ConfigurationError: If the file is missing, unreadable,
                empty or not valid JSON
        """
        if not filepath.exists():
            raise ConfigurationError(
                f"Configuration file not found: {filepath}\n"
                f"Hint: Copy dropsync.example.json and customize it."
            )
        try:
            content = filepath.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(f"Cannot read config file: {filepath} ({e})") from e

        if not content.strip():
            raise ConfigurationError(f"Configuration file is empty: {filepath}")

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ConfigurationError(
                f"Invalid JSON in config file: {filepath}\n"
                f"Error at line {e.lineno}, column {e.colno}: {e.msg}\n"
                f"Hint: Validate JSON syntax. Note: .json files cannot have comments."
            ) from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config root must be a JSON object: {filepath}")
        return data

    def _anchor(self, path: Path) -> Path:
        if path.is_absolute():
            return path
        return self.config_dir.parent / path

    def load_settings(self, filename: str = DEFAULT_CONFIG_FILE) -> DropSyncSettings:
        """
        Load job settings.

        Returns:
            Validated DropSyncSettings

        Raises:
            ConfigurationError: If the file is missing or invalid
        """
        filepath = self.config_dir / filename
        logger.info("Loading settings from: %s", filepath)
        data = self._load_json_file(filepath)

        try:
            settings = DropSyncSettings.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid settings in {filepath}:\n{e}") from e

        settings.workbook_path = self._anchor(settings.workbook_path)
        settings.state_db_path = self._anchor(settings.state_db_path)

        env_password = os.environ.get(SMTP_PASSWORD_ENV)
        if env_password:
            settings.notifications.smtp_password = env_password

        logger.info(
            "Loaded settings: workbook=%s, chunk_size=%d, max_passes=%d",
            settings.workbook_path,
            settings.cleanup.chunk_size,
            settings.cleanup.max_passes,
        )
        return settings

    def validate_config(self, filename: str = DEFAULT_CONFIG_FILE) -> bool:
        """Check that the settings file loads."""
        try:
            self.load_settings(filename)
            logger.info("Configuration validation passed")
            return True
        except ConfigurationError as e:
            logger.error("Configuration validation failed: %s", e)
            return False
