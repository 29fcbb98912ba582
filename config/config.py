"""Configuration system with hierarchical loading and validation.

Implements a hierarchical configuration system with the following precedence:
1. Default values (lowest priority)
2. JSON configuration file (``config/alias_engine.json``)
3. Environment variables
4. Command-line arguments (highest priority)

Configuration is deep-merged across all sources, allowing partial overrides
at any level of the configuration hierarchy.
"""
from __future__ import annotations

import argparse
import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger

from core.exceptions import ConfigurationError

LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "WARNING", "ERROR")


@dataclass(frozen=True)
class StorageConfig:
    """Storage layout below the user-chosen root.

    Attributes:
        root: Root directory of the storage backend
        master_path: Human-readable alias master (source of truth)
        cache_path: Compressed binary fast-load cache
        catalog_path: External species catalog used for bootstrap seeding
        site_species_path: Optional filter of species ids present on site
        exports_dir: Directory for exported alias/phonetic tables
    """
    root: str = "data"
    master_path: str = "assets/alias_master.json"
    cache_path: str = "binaries/aliases_optimized.cbor.gz"
    catalog_path: str = "serverdata/species.json"
    site_species_path: str = "serverdata/site_species.json"
    exports_dir: str = "exports"


@dataclass(frozen=True)
class WriteBehindConfig:
    """Batching thresholds for durable alias persistence.

    Attributes:
        size_threshold: Buffered alias count that triggers an immediate flush
        time_threshold_s: Delay before flushing a smaller batch
    """
    size_threshold: int = 5
    time_threshold_s: float = 30.0

    def __post_init__(self):
        if self.size_threshold < 1:
            raise ConfigurationError(f"Invalid size_threshold: {self.size_threshold}")
        if self.time_threshold_s <= 0:
            raise ConfigurationError(f"Invalid time_threshold_s: {self.time_threshold_s}")


@dataclass(frozen=True)
class SignatureConfig:
    """Approximate-duplicate signature settings.

    Disabling signatures yields the lean Cologne + phoneme configuration.
    """
    enabled: bool = True
    q: int = 3
    minhash_k: int = 64

    def __post_init__(self):
        if self.q < 1:
            raise ConfigurationError(f"Invalid q-gram length: {self.q}")
        if self.minhash_k < 1:
            raise ConfigurationError(f"Invalid minhash_k: {self.minhash_k}")


@dataclass(frozen=True)
class MatcherConfig:
    """Query ranking settings."""
    top_n: int = 5
    fuzzy_fallback: bool = False
    fuzzy_threshold: float = 0.40

    def __post_init__(self):
        if self.top_n < 1:
            raise ConfigurationError(f"Invalid top_n: {self.top_n}")
        if not 0.0 <= self.fuzzy_threshold <= 1.0:
            raise ConfigurationError(f"Invalid fuzzy_threshold: {self.fuzzy_threshold}")


@dataclass(frozen=True)
class CacheConfig:
    """Binary cache encoding.

    Attributes:
        codec: Payload serialization, "cbor" or "json"
        compress: Gzip-compress the payload
    """
    codec: str = "cbor"
    compress: bool = True

    def __post_init__(self):
        if self.codec not in ("cbor", "json"):
            raise ConfigurationError(f"Invalid cache codec: {self.codec}")


@dataclass(frozen=True)
class AppConfig:
    """Complete application configuration."""
    storage: StorageConfig = field(default_factory=StorageConfig)
    write_behind: WriteBehindConfig = field(default_factory=WriteBehindConfig)
    signatures: SignatureConfig = field(default_factory=SignatureConfig)
    matcher: MatcherConfig = field(default_factory=MatcherConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)

    debug: bool = False
    log_level: str = "INFO"
    log_file: Optional[str] = None

    def __post_init__(self):
        if self.log_level not in LOG_LEVELS:
            raise ConfigurationError(f"Invalid log_level: {self.log_level}")


class ConfigLoader:
    """Centralized configuration loader with validation and hierarchy.

    Implements the configuration loading strategy with proper precedence
    and deep merging of nested configuration dictionaries.
    """

    CONFIG_FILE = "alias_engine.json"

    def __init__(self, config_dir: Path = Path("config")):
        self.config_dir = Path(config_dir)

    def load(self, argv: List[str]) -> Tuple[AppConfig, List[str]]:
        """Load configuration with proper hierarchy: defaults → file → env → CLI.

        Args:
            argv: Command-line arguments to parse

        Returns:
            Tuple of (AppConfig instance, unknown CLI arguments)
        """
        config_dict = self._get_defaults()
        self._deep_update(config_dict, self._load_json_config())
        self._deep_update(config_dict, self._load_env_overrides())

        cli_overrides, unknown_args = self._parse_cli_args(argv)
        self._deep_update(config_dict, cli_overrides)

        return self._build_config(config_dict), unknown_args

    def _get_defaults(self) -> Dict[str, Any]:
        """Get default configuration values."""
        return {
            "storage": {"root": "data"},
            "write_behind": {"size_threshold": 5, "time_threshold_s": 30.0},
            "signatures": {"enabled": True, "q": 3, "minhash_k": 64},
            "matcher": {"top_n": 5, "fuzzy_fallback": False, "fuzzy_threshold": 0.40},
            "cache": {"codec": "cbor", "compress": True},
            "debug": False,
            "log_level": "INFO",
            "log_file": None,
        }

    def _load_json_config(self) -> Dict[str, Any]:
        """Load the optional JSON configuration file."""
        file_path = self.config_dir / self.CONFIG_FILE
        if not file_path.exists():
            return {}
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f"Failed to load {file_path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring {file_path}: top-level value is not an object")
            return {}
        return data

    def _load_env_overrides(self) -> Dict[str, Any]:
        """Load configuration overrides from environment variables.

        Supported environment variables:
        - ALIAS_STORAGE_ROOT: Storage backend root directory
        - ALIAS_FLUSH_SIZE: Write-behind size threshold
        - ALIAS_FLUSH_SECONDS: Write-behind time threshold
        - ALIAS_SIGNATURES: Enable MinHash/SimHash signatures
        - DEBUG: Enable debug mode
        - LOG_LEVEL: Set logging level
        """
        overrides: Dict[str, Any] = {}

        root = os.getenv("ALIAS_STORAGE_ROOT")
        if root:
            overrides.setdefault("storage", {})["root"] = root

        flush_size = os.getenv("ALIAS_FLUSH_SIZE")
        if flush_size:
            overrides.setdefault("write_behind", {})["size_threshold"] = self._env_number(
                "ALIAS_FLUSH_SIZE", flush_size, int
            )

        flush_seconds = os.getenv("ALIAS_FLUSH_SECONDS")
        if flush_seconds:
            overrides.setdefault("write_behind", {})["time_threshold_s"] = self._env_number(
                "ALIAS_FLUSH_SECONDS", flush_seconds, float
            )

        if os.getenv("ALIAS_SIGNATURES") is not None:
            overrides.setdefault("signatures", {})["enabled"] = self._env_bool("ALIAS_SIGNATURES")

        if self._env_bool("DEBUG"):
            overrides["debug"] = True

        log_level = os.getenv("LOG_LEVEL")
        if log_level:
            overrides["log_level"] = log_level.upper()

        return overrides

    def _parse_cli_args(self, argv: List[str]) -> Tuple[Dict[str, Any], List[str]]:
        """Parse CLI arguments.

        Args:
            argv: Command-line arguments

        Returns:
            Tuple of (overrides dictionary, unknown arguments)
        """
        parser = argparse.ArgumentParser(description="Field alias engine", add_help=False)
        parser.add_argument("--root", help="Storage root directory")
        parser.add_argument("--flush-size", type=int, help="Write-behind size threshold")
        parser.add_argument("--flush-seconds", type=float, help="Write-behind time threshold")
        parser.add_argument("--no-signatures", action="store_true", help="Skip MinHash/SimHash signatures")
        parser.add_argument("--cache-codec", choices=["cbor", "json"], help="Binary cache payload codec")
        parser.add_argument("--top-n", type=int, help="Number of ranked candidates to return")
        parser.add_argument("--fuzzy", action="store_true", help="Enable fuzzy fallback matching")
        parser.add_argument("--debug", action="store_true", help="Enable debug mode")
        parser.add_argument("--log-level", choices=list(LOG_LEVELS), help="Set logging level")
        parser.add_argument("--log-file", help="Mirror logs to this file")

        known, unknown = parser.parse_known_args(argv)

        overrides: Dict[str, Any] = {}
        if known.root:
            overrides.setdefault("storage", {})["root"] = known.root
        if known.flush_size is not None:
            overrides.setdefault("write_behind", {})["size_threshold"] = known.flush_size
        if known.flush_seconds is not None:
            overrides.setdefault("write_behind", {})["time_threshold_s"] = known.flush_seconds
        if known.no_signatures:
            overrides.setdefault("signatures", {})["enabled"] = False
        if known.cache_codec:
            overrides.setdefault("cache", {})["codec"] = known.cache_codec
        if known.top_n is not None:
            overrides.setdefault("matcher", {})["top_n"] = known.top_n
        if known.fuzzy:
            overrides.setdefault("matcher", {})["fuzzy_fallback"] = True
        if known.debug:
            overrides["debug"] = True
            overrides["log_level"] = "DEBUG"
        if known.log_level:
            overrides["log_level"] = known.log_level
        if known.log_file:
            overrides["log_file"] = known.log_file

        return overrides, unknown

    def _build_config(self, config_dict: Dict[str, Any]) -> AppConfig:
        """Build and validate the final configuration object.

        Raises:
            ConfigurationError: If configuration is invalid
        """
        try:
            return AppConfig(
                storage=StorageConfig(**config_dict.get("storage", {})),
                write_behind=WriteBehindConfig(**config_dict.get("write_behind", {})),
                signatures=SignatureConfig(**config_dict.get("signatures", {})),
                matcher=MatcherConfig(**config_dict.get("matcher", {})),
                cache=CacheConfig(**config_dict.get("cache", {})),
                debug=config_dict.get("debug", False),
                log_level=config_dict.get("log_level", "INFO"),
                log_file=config_dict.get("log_file"),
            )
        except TypeError as e:
            raise ConfigurationError(f"Unknown configuration key: {e}") from e

    @staticmethod
    def _env_bool(name: str, default: bool = False) -> bool:
        """Parse boolean from environment variable ("1", "true", "yes", "y", "on")."""
        val = os.getenv(name)
        if val is None:
            return default
        return val.strip().lower() in {"1", "true", "yes", "y", "on"}

    @staticmethod
    def _env_number(name: str, raw: str, cast):
        try:
            return cast(raw.strip())
        except ValueError as e:
            raise ConfigurationError(f"Invalid value for {name}: {raw!r}") from e

    @staticmethod
    def _deep_update(target: Dict[str, Any], updates: Dict[str, Any]) -> None:
        """Recursively update mapping 'target' with 'updates' without clobbering nested dicts."""
        for key, new_val in updates.items():
            if isinstance(new_val, dict) and isinstance(target.get(key), dict):
                ConfigLoader._deep_update(target[key], new_val)  # type: ignore[index]
            else:
                target[key] = new_val


__all__ = [
    "AppConfig",
    "StorageConfig",
    "WriteBehindConfig",
    "SignatureConfig",
    "MatcherConfig",
    "CacheConfig",
    "ConfigLoader",
]
