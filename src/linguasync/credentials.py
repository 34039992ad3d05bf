"""Credentials management for linguasync.

The project API key is read from ``LINGUASYNC_API_KEY`` or, failing that,
from ``~/.linguasync/credentials.toml``::

    [api]
    key = "..."

The credentials file is written with owner-only permissions.
"""

from __future__ import annotations

import os
import stat
import sys
import warnings
from pathlib import Path
from typing import Any, Dict, Optional

import tomlkit
from pydantic import BaseModel, Field

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib  # type: ignore

from .errors import ConfigurationError


CREDENTIALS_FILENAME = "credentials.toml"
USER_CONFIG_DIR = ".linguasync"
API_KEY_ENV = "LINGUASYNC_API_KEY"


class ApiCredentials(BaseModel):
    """Remote service credentials."""

    key: str = Field(
        default="",
        description="Project API key",
    )


class Credentials(BaseModel):
    """All linguasync credentials."""

    api: ApiCredentials = Field(default_factory=ApiCredentials)


def _get_user_credentials_path() -> Path:
    """Get path to user credentials file."""
    return Path.home() / USER_CONFIG_DIR / CREDENTIALS_FILENAME


def _secure_file_permissions(path: Path) -> None:
    """Set secure file permissions (owner read/write only).

    On Windows, this is a no-op as permissions work differently.
    """
    if os.name == "posix":
        try:
            os.chmod(path, stat.S_IRUSR | stat.S_IWUSR)  # 0o600
        except OSError as e:
            warnings.warn(
                f"Could not set secure permissions on {path}: {e}. "
                "Credentials file may be readable by other users.",
                UserWarning,
            )


def _load_toml_credentials(path: Path) -> Dict[str, Any]:
    with open(path, "rb") as f:
        return tomllib.load(f)


def load_credentials(path: Optional[Path] = None) -> Credentials:
    """Load credentials from the TOML file, empty credentials if absent or broken."""
    toml_path = path or _get_user_credentials_path()
    if not toml_path.exists():
        return Credentials()
    try:
        return Credentials.model_validate(_load_toml_credentials(toml_path))
    except Exception as e:
        warnings.warn(f"Error loading credentials: {e}", UserWarning)
        return Credentials()


def save_credentials(creds: Credentials, path: Optional[Path] = None) -> Path:
    """Save credentials to TOML file with owner-only permissions."""
    toml_path = path or _get_user_credentials_path()
    toml_path.parent.mkdir(parents=True, exist_ok=True)

    doc = tomlkit.document()
    doc.add(tomlkit.comment(" linguasync credentials"))
    doc.add(tomlkit.comment(" Keep this file secure - do not commit to version control"))
    doc.add(tomlkit.nl())

    api = tomlkit.table()
    api.add("key", creds.api.key)
    doc.add("api", api)

    with open(toml_path, "w", encoding="utf-8") as f:
        f.write(tomlkit.dumps(doc))

    _secure_file_permissions(toml_path)
    return toml_path


def get_api_key(path: Optional[Path] = None) -> str:
    """Get the API key from the environment or credentials file.

    Priority: Environment > Credentials file

    Raises:
        ConfigurationError: If no key is configured anywhere
    """
    env_key = os.getenv(API_KEY_ENV)
    if env_key and env_key.strip():
        return env_key.strip()

    key = load_credentials(path).api.key.strip()
    if not key:
        raise ConfigurationError(
            f"No API key configured. Set {API_KEY_ENV} or run 'linguasync credentials set'"
        )
    return key
