"""linguasync: keep translation resource files in sync with a remote translation service."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("linguasync")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"  # Fallback for editable installs without metadata

from .errors import (  # noqa: F401
    BranchNotFoundError,
    ConfigurationError,
    ConsistencyError,
    LocalIOError,
    RemoteProtocolError,
    SyncError,
)
from .namespace import NamespaceSnapshot, NodeKind, resolve  # noqa: F401

__all__ = [
    "BranchNotFoundError",
    "ConfigurationError",
    "ConsistencyError",
    "LocalIOError",
    "NamespaceSnapshot",
    "NodeKind",
    "RemoteProtocolError",
    "SyncError",
    "resolve",
    "__version__",
]
