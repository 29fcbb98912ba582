"""Configuration service facade for simplified configuration access.

Implements the Facade pattern to provide a clean, simple interface
to the configuration dataclasses.
"""
from __future__ import annotations

from dataclasses import asdict
from pathlib import Path
from typing import Any

from config.config import AppConfig, ConfigLoader


class ConfigurationService:
    """Facade for application configuration management.

    Example:
        config_service = ConfigurationService(config)
        root = config_service.storage_root  # Instead of config.storage.root
    """

    def __init__(self, config: AppConfig):
        self._config = config

    # Storage
    @property
    def storage_root(self) -> Path:
        """Root directory of the storage backend."""
        return Path(self._config.storage.root)

    @property
    def master_path(self) -> str:
        return self._config.storage.master_path

    @property
    def cache_path(self) -> str:
        return self._config.storage.cache_path

    # Write-behind
    @property
    def flush_size_threshold(self) -> int:
        return self._config.write_behind.size_threshold

    @property
    def flush_time_threshold(self) -> float:
        return self._config.write_behind.time_threshold_s

    # Matching
    @property
    def signatures_enabled(self) -> bool:
        return self._config.signatures.enabled

    @property
    def top_n(self) -> int:
        return self._config.matcher.top_n

    # General
    @property
    def debug(self) -> bool:
        return self._config.debug

    @property
    def log_level(self) -> str:
        return self._config.log_level

    @property
    def log_file(self):
        return self._config.log_file

    @property
    def raw_config(self) -> AppConfig:
        """Underlying AppConfig instance for direct access."""
        return self._config

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to a dictionary for logging."""
        return asdict(self._config)


class ConfigurationServiceFactory:
    """Factory for creating ConfigurationService instances."""

    @staticmethod
    def create_from_args(args: list[str]) -> tuple[ConfigurationService, list[str]]:
        """Create configuration service from command-line arguments.

        Returns:
            Tuple of (ConfigurationService, unknown_args)
        """
        loader = ConfigLoader()
        config, unknown_args = loader.load(args)
        return ConfigurationService(config), unknown_args

    @staticmethod
    def create_from_config(config: AppConfig) -> ConfigurationService:
        return ConfigurationService(config)

    @staticmethod
    def create_default() -> ConfigurationService:
        """Create configuration service with defaults."""
        loader = ConfigLoader()
        config, _ = loader.load([])
        return ConfigurationService(config)
