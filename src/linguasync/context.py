"""Immutable run context shared by the build, fetch, deploy and push stages."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .client import NamespaceClient
from .config_schema import FileSetConfig, LinguasyncConfig
from .errors import ConfigurationError
from .namespace import NamespaceSnapshot
from .path_resolver import current_branch, source_file, staging_dir


@dataclass(frozen=True)
class SyncContext:
    """Everything a stage needs, passed explicitly to each entry point.

    Attributes:
        config: Validated configuration
        client: Remote namespace client (None for offline stages such as deploy)
        base_dir: Directory relative config paths resolve against
        branch_name: Local VCS branch (None if it could not be determined)
    """

    config: LinguasyncConfig
    client: Optional[NamespaceClient]
    base_dir: Path
    branch_name: Optional[str]

    @classmethod
    def from_config(
        cls,
        config: LinguasyncConfig,
        client: Optional[NamespaceClient],
        *,
        branch_name: Optional[str] = None,
    ) -> "SyncContext":
        """Build a context, detecting the git branch unless one is given."""
        base_dir = Path(config.project.base_dir or ".").expanduser().resolve()
        name = current_branch(base_dir, branch_name or config.project.branch)
        return cls(config=config, client=client, base_dir=base_dir, branch_name=name)

    @property
    def root_branch(self) -> str:
        return self.config.project.root_branch

    @property
    def staging_dir(self) -> Path:
        return staging_dir(self.base_dir, self.config.project.download_folder)

    def source_file(self, file_set: FileSetConfig) -> Path:
        return source_file(self.base_dir, file_set)

    def describe(self) -> NamespaceSnapshot:
        """Fetch a fresh snapshot of the remote namespace."""
        if self.client is None:
            raise ConfigurationError("This operation needs a remote client")
        return NamespaceSnapshot.from_response(self.client.describe_project())
