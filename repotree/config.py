#!/usr/bin/env python3

import os
import json
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import logging
import sys

import toml
import yaml

from .paths import expand_root

# Configure logging
logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s: %(message)s",
    handlers=[
        logging.StreamHandler(sys.stderr) # Default to stderr
    ]
)
logger = logging.getLogger("repotree")

CONFIG_FILENAMES = ['config.json', 'config.toml', 'config.yaml', 'config.yml']
CLONE_SCHEMES = ('ssh', 'https')


def get_config_path():
    """Get the path to the configuration file.

    Checks in order:
    1. REPOTREE_CONFIG environment variable
    2. ~/.repotree/config.{json,toml,yaml,yml}
    """
    # An explicit path wins, even before the file is created
    if os.environ.get('REPOTREE_CONFIG'):
        return Path(os.environ['REPOTREE_CONFIG']).expanduser()

    repotree_dir = Path.home() / '.repotree'
    for filename in CONFIG_FILENAMES:
        path = repotree_dir / filename
        if path.exists() and path.stat().st_size > 0:
            return path

    # If no file exists, return default path for saving
    return repotree_dir / 'config.json'


def get_default_config():
    """Get default configuration."""
    return {
        "general": {
            "root": "~/repositories",      # Where repositories are stored
            "default_host": "github.com",  # Host for bare owner/name references
            "default_scheme": "ssh",       # Clone URL scheme when none is given
            "concurrency_limit": None,     # None = number of CPUs
            "task_timeout": None,          # Seconds per clone/update, None = no limit
        },
        "logging": {
            "level": "WARNING",
            "format": "%(levelname)s: %(message)s"
        },
    }


def _read_config_file(config_path: Path) -> Dict[str, Any]:
    suffix = config_path.suffix.lower()
    if suffix == '.toml':
        with open(config_path, 'rb') as f:
            return tomllib.load(f)
    if suffix in ('.yaml', '.yml'):
        with open(config_path, 'r') as f:
            return yaml.safe_load(f) or {}
    # Default to JSON format
    with open(config_path, 'r') as f:
        return json.load(f)


def load_config():
    """Load configuration from file."""
    config_path = get_config_path()

    # Start with default config
    config = get_default_config()

    # Load from file if it exists
    if config_path.exists():
        try:
            file_config = _read_config_file(config_path)
            if not isinstance(file_config, dict):
                raise ValueError("top level must be a mapping")
            # Merge file config with defaults
            config = merge_configs(config, file_config)
        except (OSError, ValueError, yaml.YAMLError) as e:
            logger.error(f"Error loading config from {config_path}: {e}")

    # Apply environment variable overrides
    config = apply_env_overrides(config)

    return config


def save_config(config, config_path: Optional[Path] = None):
    """Save configuration to file."""
    config_path = config_path or get_config_path()

    # Create directory if it doesn't exist
    config_path.parent.mkdir(parents=True, exist_ok=True)

    suffix = config_path.suffix.lower()
    if suffix == '.toml':
        # tomllib is read-only; drop None values TOML cannot represent
        with open(config_path, 'w') as f:
            toml.dump(_without_none(config), f)
    elif suffix in ('.yaml', '.yml'):
        with open(config_path, 'w') as f:
            yaml.safe_dump(config, f, default_flow_style=False)
    else:
        with open(config_path, 'w') as f:
            json.dump(config, f, indent=2)

    logger.info(f"Configuration saved to {config_path}")
    return config_path


def _without_none(value):
    if isinstance(value, dict):
        return {k: _without_none(v) for k, v in value.items() if v is not None}
    return value


def merge_configs(base_config, override_config):
    """
    Recursively merge two configuration dictionaries.

    Args:
        base_config (dict): Base configuration
        override_config (dict): Configuration to merge/override with

    Returns:
        dict: Merged configuration
    """
    merged = base_config.copy()

    for key, value in override_config.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            # Recursively merge nested dictionaries
            merged[key] = merge_configs(merged[key], value)
        else:
            # Override or add new key
            merged[key] = value

    return merged


def apply_env_overrides(config):
    """
    Apply environment variable overrides to configuration.
    Environment variables follow the pattern: REPOTREE_SECTION_KEY
    For example: REPOTREE_GENERAL_DEFAULT_HOST=gitlab.com

    GIT_PATH, the variable git-get and git-list have always read, sets
    the repository root unless REPOTREE_GENERAL_ROOT is also set.
    """
    env_prefix = "REPOTREE_"

    if os.environ.get('GIT_PATH'):
        config.setdefault("general", {})["root"] = os.environ['GIT_PATH']

    for env_key, value in os.environ.items():
        if not env_key.startswith(env_prefix):
            continue

        key_parts = env_key[len(env_prefix):].lower().split('_')

        # Convert value
        if value.lower() in ('true', 'yes', 'on'):
            typed_value = True
        elif value.lower() in ('false', 'no', 'off'):
            typed_value = False
        elif value.lower() in ('null', 'none', ''):
            typed_value = None
        elif value.isdigit():
            typed_value = int(value)
        else:
            typed_value = value

        current_level = config
        i = 0
        while i < len(key_parts):
            # Find the longest key in current_level that is a prefix of the remaining key_parts
            best_match_len = 0
            matched_key = None

            for config_key in current_level.keys():
                config_key_parts_from_key = config_key.split('_')
                if key_parts[i : i + len(config_key_parts_from_key)] == config_key_parts_from_key:
                    if len(config_key_parts_from_key) > best_match_len:
                        best_match_len = len(config_key_parts_from_key)
                        matched_key = config_key

            if matched_key:
                # If we are at the end of the env var, we have found the key to set
                if i + best_match_len == len(key_parts):
                    current_level[matched_key] = typed_value
                    break

                # Otherwise, we descend into the dictionary
                if isinstance(current_level[matched_key], dict):
                    current_level = current_level[matched_key]
                    i += best_match_len
                else:
                    # Path conflict, e.g., env var is longer but we found a non-dict value
                    break
            else:
                # No match found
                break

    return config


def configure_logging(config, verbose: bool = False) -> None:
    """Apply the [logging] section (and -v) to the repotree logger."""
    log_config = config.get("logging", {})
    level_name = "DEBUG" if verbose else str(log_config.get("level", "WARNING")).upper()
    level = getattr(logging, level_name, logging.WARNING)
    logger.setLevel(level)

    fmt = log_config.get("format")
    if fmt:
        for handler in logging.getLogger().handlers:
            handler.setFormatter(logging.Formatter(fmt))


@dataclass(frozen=True)
class Settings:
    """
    Typed view of the [general] section used by the sync service and lister.

    Fields left as None in the config resolve to defaults here:
    concurrency_limit falls back to the CPU count, task_timeout stays None.
    An empty default_host is kept, so bare owner/name references fail to parse.
    """
    root: Path
    default_host: str = "github.com"
    default_scheme: str = "ssh"
    concurrency_limit: int = 1
    task_timeout: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'root': str(self.root),
            'default_host': self.default_host,
            'default_scheme': self.default_scheme,
            'concurrency_limit': self.concurrency_limit,
            'task_timeout': self.task_timeout,
        }


def default_concurrency() -> int:
    return os.cpu_count() or 1


def get_settings(config: Optional[Dict[str, Any]] = None, **overrides) -> Settings:
    """
    Build Settings from a config dict plus command-line overrides.

    Args:
        config: Loaded configuration (loads it if None)
        **overrides: root, default_host, default_scheme, concurrency_limit,
            task_timeout; None values are ignored

    Raises:
        ValueError: for an unknown scheme or a non-positive limit/timeout
    """
    if config is None:
        config = load_config()
    general = dict(config.get("general", {}))
    general.update({k: v for k, v in overrides.items() if v is not None})

    scheme = str(general.get("default_scheme") or "ssh").lower()
    if scheme not in CLONE_SCHEMES:
        raise ValueError(f"default_scheme must be one of {', '.join(CLONE_SCHEMES)}, got '{scheme}'")

    limit = general.get("concurrency_limit")
    limit = int(limit) if limit is not None else default_concurrency()
    if limit < 1:
        raise ValueError(f"concurrency_limit must be at least 1, got {limit}")

    default_host = general.get("default_host")
    default_host = "github.com" if default_host is None else str(default_host).strip().lower()

    timeout = general.get("task_timeout")
    timeout = float(timeout) if timeout is not None else None
    if timeout is not None and timeout <= 0:
        raise ValueError(f"task_timeout must be positive, got {timeout}")

    return Settings(
        root=expand_root(general.get("root") or "~/repositories"),
        default_host=default_host,
        default_scheme=scheme,
        concurrency_limit=limit,
        task_timeout=timeout,
    )
