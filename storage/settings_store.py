"""
Persistent storage for injector settings.

Settings live in a small JSON file:

    {"enabled": true, "csv_file_path": "/path/to/events-1700000000.csv"}

A missing or corrupt file never breaks page rendering; defaults are
returned instead.
"""
import json
import logging
import os
from dataclasses import asdict
from pathlib import Path
from typing import Optional, Union

from processor.models import Settings

logger = logging.getLogger(__name__)


class SettingsStore:
    """JSON-file backed settings store."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> Settings:
        """
        Load settings from disk.

        Returns:
            Stored Settings, or defaults if the file is missing or invalid
        """
        if not self.path.exists():
            return Settings()

        try:
            data = json.loads(self.path.read_text(encoding='utf-8'))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable settings file {self.path}: {e}")
            return Settings()

        if not isinstance(data, dict):
            logger.warning(f"Ignoring malformed settings file {self.path}")
            return Settings()

        csv_file_path = data.get('csv_file_path')
        return Settings(
            enabled=bool(data.get('enabled', True)),
            csv_file_path=csv_file_path if isinstance(csv_file_path, str) else None,
        )

    def save(self, settings: Settings) -> None:
        """Write settings to disk, creating parent directories."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + '.tmp')
        tmp_path.write_text(json.dumps(asdict(settings), indent=2), encoding='utf-8')
        os.replace(tmp_path, self.path)
        logger.info(f"Saved settings to {self.path}")

    def update(
        self,
        enabled: Optional[bool] = None,
        csv_file_path: Optional[str] = None,
    ) -> Settings:
        """
        Change selected settings and persist them.

        Args:
            enabled: New enable flag, or None to keep the current one
            csv_file_path: New CSV path, or None to keep the current one

        Returns:
            Updated Settings
        """
        settings = self.load()
        if enabled is not None:
            settings.enabled = enabled
        if csv_file_path is not None:
            settings.csv_file_path = csv_file_path
        self.save(settings)
        return settings
