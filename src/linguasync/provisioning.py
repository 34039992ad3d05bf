"""Folder provisioning.

``FolderProvisioner.create_folders`` makes sure a chain of folders exists
below a starting container (the namespace root, a branch or a folder).
Existing segments are descended without any remote call. Each missing
segment is created with its full path from the namespace root, after which
the whole tree is described again and the segment is looked up in the fresh
snapshot; the old snapshot is never patched.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from .client import NamespaceClient
from .errors import ConsistencyError
from .namespace import (
    BRANCH_OR_FOLDER,
    Container,
    FileNode,
    NamespaceSnapshot,
    join_path,
    lookup,
    resolve,
    split_path,
)
from .observability import log_action, log_debug


@dataclass(frozen=True)
class ProvisionResult:
    """Leaf container plus the snapshot it belongs to.

    ``snapshot`` is the input snapshot when nothing was created, otherwise
    the snapshot fetched after the last creation. ``created`` lists the
    created folder paths in order.
    """

    node: Container
    snapshot: NamespaceSnapshot
    created: Tuple[str, ...] = ()


class FolderProvisioner:
    """Creates missing folders through a namespace client."""

    def __init__(
        self,
        client: NamespaceClient,
        describe: Optional[Callable[[], NamespaceSnapshot]] = None,
    ) -> None:
        self.client = client
        self._describe = describe or (lambda: NamespaceSnapshot.from_response(client.describe_project()))

    def refresh(self) -> NamespaceSnapshot:
        return self._describe()

    def create_folders(
        self,
        snapshot: NamespaceSnapshot,
        start: Container,
        relative_path: Optional[str],
    ) -> ProvisionResult:
        """Ensure ``relative_path`` exists below ``start``.

        ``start`` must belong to ``snapshot``. A blank ``relative_path``
        returns ``start`` unchanged.

        Raises:
            ConsistencyError: If a segment can't be found as a branch or
                folder right after it was created.
            RemoteProtocolError: If a creation call fails.
        """
        if relative_path is None or not relative_path.strip():
            return ProvisionResult(start, snapshot)
        if start.kind is not None and start.kind not in BRANCH_OR_FOLDER:
            raise ValueError("start must be the namespace root, a branch or a folder")

        current: Container = start
        cumulative = start.path
        created = []
        for segment in split_path(relative_path):
            cumulative = join_path(cumulative, segment)
            existing = resolve(current, segment, BRANCH_OR_FOLDER)
            if existing is not None:
                current = existing  # type: ignore[assignment]
                continue

            log_debug("Creating missing folder", path=cumulative)
            self.client.create_directory(cumulative, as_branch=False)
            created.append(cumulative)
            snapshot = self.refresh()
            found = resolve(snapshot, cumulative, BRANCH_OR_FOLDER)
            if found is None:
                collision = lookup(snapshot, cumulative)
                if isinstance(collision, FileNode):
                    raise ConsistencyError(
                        f'Internal error, "{cumulative}" was created as a folder but resolves to a file'
                    )
                raise ConsistencyError(
                    f'Internal error, couldn\'t find recently created branch or folder "{cumulative}"'
                )
            current = found  # type: ignore[assignment]

        if created:
            log_action("create_folders", path=cumulative, created=len(created))
        return ProvisionResult(current, snapshot, tuple(created))
