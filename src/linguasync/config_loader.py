"""Configuration loading and merging for linguasync.

Handles TOML loading, config discovery, deep merging, and environment overlay.

Discovery order (later sources override earlier):
1. Built-in defaults
2. User config (~/.linguasync/config.toml)
3. Project config (nearest .linguasync/config.toml, searching upward)
   or an explicit config file
4. Environment variables
"""

from __future__ import annotations

import os
import sys
import warnings
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

# TOML loading: tomllib (3.11+) with tomli fallback
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib  # type: ignore

from pydantic import ValidationError

from .config_schema import LinguasyncConfig
from .errors import ConfigurationError


# Config file names
CONFIG_FILENAME = "config.toml"
CREDENTIALS_FILENAME = "credentials.toml"

# Directory names
USER_CONFIG_DIR = ".linguasync"
PROJECT_CONFIG_DIR = ".linguasync"


class ConfigError(ConfigurationError):
    """Configuration loading or validation error."""

    pass


# Environment variable -> (section path, key)
ENV_MAPPING: Dict[str, Tuple[list[str], str]] = {
    "LINGUASYNC_PROJECT": (["project"], "identifier"),
    "LINGUASYNC_ROOT_BRANCH": (["project"], "root_branch"),
    "LINGUASYNC_BRANCH": (["project"], "branch"),
    "LINGUASYNC_DOWNLOAD_FOLDER": (["project"], "download_folder"),
    "LINGUASYNC_API_URL": (["api"], "url"),
    "LINGUASYNC_API_TIMEOUT": (["api"], "timeout"),
    "LINGUASYNC_LOG_LEVEL": (["logging"], "level"),
    "LINGUASYNC_LOG_DIR": (["logging"], "dir"),
    "LINGUASYNC_LOG_DISABLE_FILE": (["logging"], "disable_file"),
}


def _get_user_config_dir() -> Path:
    """Get user-level config directory (~/.linguasync/)."""
    return Path.home() / USER_CONFIG_DIR


def _get_project_config_dir(project_path: Optional[Path] = None) -> Optional[Path]:
    """Get project-level config directory (.linguasync/).

    Searches upward from project_path to find .linguasync/ directory.
    The user-level directory is never treated as a project directory.
    """
    if project_path is None:
        project_path = Path.cwd()

    if not project_path.is_absolute():
        project_path = project_path.resolve()

    user_dir = _get_user_config_dir()
    current = project_path
    while current != current.parent:
        config_dir = current / PROJECT_CONFIG_DIR
        if config_dir.is_dir() and config_dir != user_dir:
            return config_dir
        current = current.parent

    return None


def _load_toml(path: Path) -> Dict[str, Any]:
    """Load a TOML file.

    Raises:
        ConfigError: If file cannot be loaded or parsed
    """
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except FileNotFoundError:
        raise ConfigError(f"Config file not found: {path}")
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {path}: {e}")


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge two dictionaries.

    Override values take precedence. Nested dicts are merged recursively.
    Lists are replaced, not merged (so [[file_sets]] never mix between files).
    """
    result = base.copy()

    for key, value in override.items():
        if (
            key in result
            and isinstance(result[key], dict)
            and isinstance(value, dict)
        ):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def _apply_env_overlay(config_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Apply environment variable overrides to config dict."""
    result = config_dict.copy()

    for env_var, (section_path, key_name) in ENV_MAPPING.items():
        value = os.getenv(env_var)
        if value is None:
            continue

        # Navigate to correct section, copying so the source dicts stay untouched
        current = result
        for section in section_path:
            current[section] = dict(current.get(section) or {})
            current = current[section]

        # Set value (type conversion happens during Pydantic validation)
        current[key_name] = value

    return result


def load_config(
    project_path: Optional[Path] = None,
    config_file: Optional[Path] = None,
    skip_env: bool = False,
) -> LinguasyncConfig:
    """Load and merge linguasync configuration.

    Args:
        project_path: Project directory for config discovery
        config_file: Explicit project config file (skips discovery)
        skip_env: Skip environment variable overlay

    Returns:
        Merged LinguasyncConfig with ``project.base_dir`` resolved

    Raises:
        ConfigError: If config files are invalid
    """
    config_dict: Dict[str, Any] = {}

    # 1. User config
    user_config_path = _get_user_config_dir() / CONFIG_FILENAME
    if user_config_path.exists():
        try:
            config_dict = _deep_merge(config_dict, _load_toml(user_config_path))
        except ConfigError as e:
            # User config is optional, warn but continue
            warnings.warn(
                f"Skipping invalid user config at {user_config_path}: {e}",
                UserWarning,
            )

    # 2. Project config
    base_dir: Optional[Path] = None
    if config_file is not None:
        config_file = config_file.expanduser().resolve()
        config_dict = _deep_merge(config_dict, _load_toml(config_file))
        base_dir = config_file.parent
        if base_dir.name == PROJECT_CONFIG_DIR:
            base_dir = base_dir.parent
    else:
        project_config_dir = _get_project_config_dir(project_path)
        if project_config_dir:
            project_config_path = project_config_dir / CONFIG_FILENAME
            if project_config_path.exists():
                try:
                    config_dict = _deep_merge(config_dict, _load_toml(project_config_path))
                except ConfigError as e:
                    # Project config errors should be reported
                    raise ConfigError(f"Invalid project config: {e}")
            base_dir = project_config_dir.parent

    # 3. Environment overlay
    if not skip_env:
        config_dict = _apply_env_overlay(config_dict)

    # 4. Validate and create config object
    try:
        config = LinguasyncConfig.model_validate(config_dict)
    except ValidationError as e:
        raise ConfigError(f"Config validation failed:\n{e}")

    if not config.project.base_dir:
        fallback = base_dir or (project_path or Path.cwd())
        config.project.base_dir = str(fallback.resolve())
    return config


def get_config_paths(project_path: Optional[Path] = None) -> Dict[str, Optional[Path]]:
    """Get paths to all config files.

    Returns dict with keys: user_config, project_config, user_credentials
    """
    user_dir = _get_user_config_dir()
    project_dir = _get_project_config_dir(project_path)

    return {
        "user_config": user_dir / CONFIG_FILENAME,
        "project_config": project_dir / CONFIG_FILENAME if project_dir else None,
        "user_credentials": user_dir / CREDENTIALS_FILENAME,
    }
