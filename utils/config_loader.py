"""
Configuration management for releases-watcher.

This module handles loading and validating configuration from YAML files
with sensible defaults and environment variable support.
"""

import json
import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
from dataclasses import dataclass, field

from utils.exceptions import ConfigurationError

ENV_PREFIX = "RELEASES_WATCHER_"

SUPPORTED_PROVIDERS = ('musicbrainz', 'discogs')


@dataclass
class LibraryConfig:
    root: str = ""
    excluded_path: str = ""
    read_workers: int = 10


@dataclass
class FreshnessConfig:
    """Maximum age in days of cached catalog responses, per entity kind."""
    artist_search: float = 90
    release_groups: float = 10
    release: float = 10


@dataclass
class CatalogConfig:
    provider: str = "musicbrainz"
    requests_per_minute: float = 50
    burst: int = 1
    timeout_seconds: float = 30.0
    user_agent: str = "Releases Watcher/1.0"
    musicbrainz_contact: str = ""
    discogs_token: str = ""
    channel_capacity: int = 100
    freshness_days: FreshnessConfig = field(default_factory=FreshnessConfig)


@dataclass
class StorageConfig:
    database_file: str = "~/.cache/releases-watcher/library.db"
    keep_versions: int = 3


@dataclass
class DiffConfig:
    cutoff_year: int = 2010


@dataclass
class SheetsConfig:
    credentials_file: str = "google-credentials.json"
    spreadsheet_id: str = ""


@dataclass
class SyncConfig:
    progress_every: int = 100


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: str = "releases-watcher.log"


@dataclass
class WatcherConfig:
    """Structured configuration with defaults."""

    library: LibraryConfig = field(default_factory=LibraryConfig)
    catalog: CatalogConfig = field(default_factory=CatalogConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    diff: DiffConfig = field(default_factory=DiffConfig)
    sheets: SheetsConfig = field(default_factory=SheetsConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load configuration from YAML file with defaults and environment variable support.

    Args:
        config_path: Path to configuration file (optional)

    Returns:
        Configuration dictionary

    Raises:
        ConfigurationError: If configuration is invalid
    """
    config_dict = _dataclass_to_dict(WatcherConfig())

    if config_path and config_path.exists():
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                file_config = yaml.safe_load(f)
                if file_config:
                    if not isinstance(file_config, dict):
                        raise ConfigurationError(
                            f"Config file {config_path} must contain a mapping"
                        )
                    config_dict = _merge_configs(config_dict, file_config)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config file: {e}")
        except IOError as e:
            raise ConfigurationError(f"Cannot read config file {config_path}: {e}")

    config_dict = _apply_env_overrides(config_dict)

    _validate_config(config_dict)

    return config_dict


def _dataclass_to_dict(obj) -> Dict[str, Any]:
    """Convert dataclass to dictionary recursively."""
    if hasattr(obj, '__dataclass_fields__'):
        result = {}
        for field_name in obj.__dataclass_fields__:
            value = getattr(obj, field_name)
            result[field_name] = _dataclass_to_dict(value)
        return result
    elif isinstance(obj, dict):
        return {k: _dataclass_to_dict(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [_dataclass_to_dict(item) for item in obj]
    else:
        return obj


def _merge_configs(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Recursively merge configuration dictionaries.

    Args:
        base: Base configuration dictionary
        override: Override configuration dictionary

    Returns:
        Merged configuration dictionary
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _merge_configs(result[key], value)
        else:
            result[key] = value

    return result


def _apply_env_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Apply environment variable overrides to configuration.

    Environment variables should be prefixed with RELEASES_WATCHER_ and use
    double underscores to represent nested keys.

    Examples:
        RELEASES_WATCHER_LIBRARY__ROOT=/music
        RELEASES_WATCHER_CATALOG__FRESHNESS_DAYS__RELEASE=30
    """
    for env_var, value in os.environ.items():
        if not env_var.startswith(ENV_PREFIX):
            continue

        key_path = env_var[len(ENV_PREFIX):].lower().split('__')
        _set_nested_value(config, key_path, _convert_env_value(value))

    return config


def _convert_env_value(value: str) -> Any:
    """Convert environment variable string to appropriate Python type."""
    if value.lower() in ('true', 'yes', 'on'):
        return True
    elif value.lower() in ('false', 'no', 'off'):
        return False

    try:
        return int(value)
    except ValueError:
        pass

    try:
        return float(value)
    except ValueError:
        pass

    if value.startswith(('[', '{')):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            pass

    return value


def _set_nested_value(config: Dict[str, Any], key_path: list, value: Any):
    """Set a value in a nested dictionary using a list of keys."""
    current = config

    for key in key_path[:-1]:
        if not isinstance(current.get(key), dict):
            current[key] = {}
        current = current[key]

    current[key_path[-1]] = value


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _validate_config(config: Dict[str, Any]):
    """
    Validate configuration values.

    Args:
        config: Configuration dictionary to validate

    Raises:
        ConfigurationError: If configuration is invalid
    """
    library_config = config.get('library', {})

    read_workers = library_config.get('read_workers', 10)
    if not isinstance(read_workers, int) or isinstance(read_workers, bool) or read_workers < 1:
        raise ConfigurationError("library.read_workers must be a positive integer")

    catalog_config = config.get('catalog', {})

    provider = catalog_config.get('provider', 'musicbrainz')
    if provider not in SUPPORTED_PROVIDERS:
        raise ConfigurationError(f"catalog.provider must be one of {list(SUPPORTED_PROVIDERS)}")

    rate = catalog_config.get('requests_per_minute', 50)
    if not _is_number(rate) or rate <= 0:
        raise ConfigurationError("catalog.requests_per_minute must be a positive number")

    burst = catalog_config.get('burst', 1)
    if not isinstance(burst, int) or isinstance(burst, bool) or burst < 1:
        raise ConfigurationError("catalog.burst must be a positive integer")

    timeout_seconds = catalog_config.get('timeout_seconds', 30.0)
    if not _is_number(timeout_seconds) or timeout_seconds <= 0:
        raise ConfigurationError("catalog.timeout_seconds must be a positive number")

    capacity = catalog_config.get('channel_capacity', 100)
    if not isinstance(capacity, int) or isinstance(capacity, bool) or capacity < 1:
        raise ConfigurationError("catalog.channel_capacity must be a positive integer")

    freshness = catalog_config.get('freshness_days', {})
    if not isinstance(freshness, dict):
        raise ConfigurationError("catalog.freshness_days must be a mapping")
    for kind, days in freshness.items():
        if not _is_number(days) or days < 0:
            raise ConfigurationError(f"catalog.freshness_days.{kind} must be a non-negative number")

    storage_config = config.get('storage', {})

    keep_versions = storage_config.get('keep_versions', 3)
    if not isinstance(keep_versions, int) or isinstance(keep_versions, bool) or keep_versions < 1:
        raise ConfigurationError("storage.keep_versions must be a positive integer")

    cutoff_year = config.get('diff', {}).get('cutoff_year', 0)
    if cutoff_year is not None and (not isinstance(cutoff_year, int) or isinstance(cutoff_year, bool)):
        raise ConfigurationError("diff.cutoff_year must be an integer")

    progress_every = config.get('sync', {}).get('progress_every', 100)
    if not isinstance(progress_every, int) or isinstance(progress_every, bool) or progress_every < 1:
        raise ConfigurationError("sync.progress_every must be a positive integer")

    log_level = config.get('logging', {}).get('level', 'INFO')
    valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
    if not isinstance(log_level, str) or log_level.upper() not in valid_levels:
        raise ConfigurationError(f"logging.level must be one of {valid_levels}")


def get_config_template() -> str:
    """
    Get a YAML template for the configuration file.

    Returns:
        YAML configuration template as string
    """
    return """# Configuration for releases-watcher
library:
  root: "/path/to/Music"
  excluded_path: "/path/to/Music/Incoming"  # skipped with its whole subtree
  read_workers: 10

catalog:
  provider: musicbrainz            # or discogs
  requests_per_minute: 50
  burst: 1
  timeout_seconds: 30
  user_agent: "Releases Watcher/1.0"
  musicbrainz_contact: "you@example.com"
  discogs_token: ""                # or RELEASES_WATCHER_CATALOG__DISCOGS_TOKEN
  channel_capacity: 100
  freshness_days:
    artist_search: 90
    release_groups: 10
    release: 10

storage:
  database_file: "~/.cache/releases-watcher/library.db"
  keep_versions: 3

diff:
  cutoff_year: 2010

sheets:
  credentials_file: "google-credentials.json"
  spreadsheet_id: ""

sync:
  progress_every: 100

logging:
  level: INFO
  file: "releases-watcher.log"
"""
