"""Branch resolution.

Maps the local VCS branch name onto a remote namespace scope:

* the configured root branch means "use the unbranched namespace root";
* an existing remote Branch node is used as is;
* a missing Branch node is created on push and is an error on pull.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .client import NamespaceClient
from .errors import BranchNotFoundError
from .namespace import BRANCH_ONLY, NamespaceSnapshot, resolve
from .observability import log_action, log_debug


@dataclass(frozen=True)
class BranchHandle:
    """Remote scope a sync runs in.

    ``name`` is None for the namespace root. ``created`` is True when the
    branch was created by this resolution; the snapshot it was resolved
    against is stale in that case and must be re-fetched before scoping.
    """

    name: Optional[str]
    created: bool = False

    @property
    def is_root(self) -> bool:
        return self.name is None

    def __str__(self) -> str:
        return self.name if self.name is not None else "<root>"


ROOT = BranchHandle(None)


def resolve_branch(
    client: NamespaceClient,
    snapshot: NamespaceSnapshot,
    branch_name: Optional[str],
    root_branch: str,
    create: bool = False,
) -> BranchHandle:
    """Resolve ``branch_name`` to a handle, creating the remote branch if allowed.

    Raises:
        BranchNotFoundError: If the branch name is blank, or the branch is
            missing remotely and ``create`` is False.
    """
    if branch_name is None or not branch_name.strip():
        raise BranchNotFoundError("Could not determine current git branch")
    branch_name = branch_name.strip()

    if branch_name == root_branch:
        log_debug("Using namespace root for root branch", branch=branch_name)
        return ROOT

    if resolve(snapshot, branch_name, BRANCH_ONLY) is not None:
        log_debug("Found remote branch", branch=branch_name)
        return BranchHandle(branch_name)

    if not create:
        raise BranchNotFoundError(
            f'Branch "{branch_name}" does not exist in the remote project. Please push this branch first.'
        )

    client.create_directory(branch_name, as_branch=True)
    log_action("create_branch", branch=branch_name)
    return BranchHandle(branch_name, created=True)
