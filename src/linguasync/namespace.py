"""In-memory model of the remote project namespace.

A ``NamespaceSnapshot`` is built from exactly one "describe project" response
and is never patched afterwards. Anything that mutates the remote tree makes
the snapshot stale; callers fetch a new one instead of editing this one.

Nodes form a closed tagged variant:

* ``BranchNode`` - a namespace partition mirroring a VCS branch (root level only)
* ``FolderNode`` - a plain folder under the root or inside a branch
* ``FileNode``   - a leaf, never has children

Lookups go through ``resolve()``, which walks a slash-delimited path and
applies a kind filter on the final segment only. Intermediate segments must
always be a branch or a folder.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, FrozenSet, Iterable, Iterator, List, Mapping, Optional, Tuple, Union

from .errors import BranchNotFoundError, RemoteProtocolError
from .observability import log_debug, log_warning


class NodeKind(Enum):
    """Node kinds, valued with the service's ``node_type`` strings."""

    BRANCH = "branch"
    FOLDER = "directory"
    FILE = "file"

    @property
    def label(self) -> str:
        return self.name.lower()


ANY_KIND: FrozenSet[NodeKind] = frozenset()
BRANCH_OR_FOLDER: FrozenSet[NodeKind] = frozenset({NodeKind.BRANCH, NodeKind.FOLDER})
FILE_ONLY: FrozenSet[NodeKind] = frozenset({NodeKind.FILE})
BRANCH_ONLY: FrozenSet[NodeKind] = frozenset({NodeKind.BRANCH})


@dataclass(frozen=True)
class FileNode:
    name: str
    path: str

    kind: ClassVar[NodeKind] = NodeKind.FILE


@dataclass(frozen=True)
class FolderNode:
    name: str
    path: str
    children: Tuple["NamespaceNode", ...] = ()

    kind: ClassVar[NodeKind] = NodeKind.FOLDER


@dataclass(frozen=True)
class BranchNode:
    name: str
    path: str
    children: Tuple["NamespaceNode", ...] = ()

    kind: ClassVar[NodeKind] = NodeKind.BRANCH


NamespaceNode = Union[BranchNode, FolderNode, FileNode]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class NamespaceSnapshot:
    """The whole remote tree as returned by one describe call.

    The snapshot itself acts as the root container: its ``children`` are the
    top-level items and its ``path`` is the empty string.
    """

    children: Tuple[NamespaceNode, ...] = ()
    project_name: Optional[str] = None
    project_identifier: Optional[str] = None
    fetched_at: datetime = field(default_factory=_utcnow)

    path: ClassVar[str] = ""
    name: ClassVar[str] = ""
    kind: ClassVar[Optional[NodeKind]] = None

    @classmethod
    def from_response(cls, data: Mapping[str, Any]) -> "NamespaceSnapshot":
        """Parse a describe response into a snapshot.

        Expected shape::

            {"details": {"name": ..., "identifier": ...},
             "files": [{"node_type": "branch", "name": "dev", "files": [...]}, ...]}
        """
        if not isinstance(data, Mapping):
            raise RemoteProtocolError("Project description is not a JSON object")
        details = data.get("details") or {}
        items = data.get("files")
        if items is None:
            items = []
        if not isinstance(items, list):
            raise RemoteProtocolError("Project description has an invalid 'files' collection")
        return cls(
            children=_parse_items(items, ""),
            project_name=details.get("name"),
            project_identifier=details.get("identifier"),
        )

    @property
    def branches(self) -> Tuple[BranchNode, ...]:
        return tuple(node for node in self.children if isinstance(node, BranchNode))

    def scope(self, branch: Optional[str]) -> "Container":
        """Return the container addressed by ``branch`` (``None`` = namespace root)."""
        if branch is None:
            return self
        node = resolve(self, branch, BRANCH_ONLY)
        if node is None:
            raise BranchNotFoundError(f'Can\'t find branch "{branch}" in the remote project')
        return node

    def iter_nodes(self) -> Iterator[NamespaceNode]:
        return iter_nodes(self)


Container = Union[NamespaceSnapshot, BranchNode, FolderNode]


def _parse_items(items: Iterable[Any], parent_path: str) -> Tuple[NamespaceNode, ...]:
    nodes: List[NamespaceNode] = []
    seen: set[str] = set()
    for item in items:
        if not isinstance(item, Mapping):
            raise RemoteProtocolError(f'Invalid item in project description under "{parent_path or "/"}"')
        name = item.get("name")
        if not isinstance(name, str) or not name:
            raise RemoteProtocolError(f'Nameless item in project description under "{parent_path or "/"}"')
        path = f"{parent_path}/{name}" if parent_path else name
        try:
            kind = NodeKind(item.get("node_type"))
        except ValueError:
            log_warning("Ignoring item with unknown node type", path=path, node_type=item.get("node_type"))
            continue
        if name in seen:
            log_warning("Ignoring duplicate sibling in project description", path=path)
            continue
        seen.add(name)

        if kind is NodeKind.FILE:
            nodes.append(FileNode(name=name, path=path))
            continue
        children = _parse_items(item.get("files") or [], path)
        if kind is NodeKind.BRANCH:
            if parent_path:
                log_warning("Branch found below the namespace root", path=path)
            nodes.append(BranchNode(name=name, path=path, children=children))
        else:
            nodes.append(FolderNode(name=name, path=path, children=children))
    return tuple(nodes)


def split_path(path: str) -> List[str]:
    """Split a remote path into segments, accepting ``/`` and ``\\`` separators."""
    if path is None or not path.strip():
        raise ValueError("path cannot be blank")
    segments = [segment for segment in path.replace("\\", "/").split("/") if segment]
    if not segments:
        raise ValueError(f"path {path!r} has no segments")
    return segments


def join_path(*parts: Optional[str]) -> str:
    """Join remote path fragments, ignoring empty ones."""
    segments: List[str] = []
    for part in parts:
        if part:
            segments.extend(s for s in part.replace("\\", "/").split("/") if s)
    return "/".join(segments)


def children_of(container: Union[Container, NamespaceNode]) -> Tuple[NamespaceNode, ...]:
    return getattr(container, "children", ())


def _child(container: Union[Container, NamespaceNode], name: str) -> Optional[NamespaceNode]:
    for node in children_of(container):
        if node.name == name:
            return node
    return None


def _describe_filter(kinds: FrozenSet[NodeKind]) -> str:
    labels = sorted(kind.label for kind in kinds)
    if len(labels) == 1:
        return f"the expected type: {labels[0]}"
    return f"among the expected types: {', '.join(labels)}"


def resolve(
    container: Union[Container, NamespaceNode],
    path: str,
    kinds: Iterable[NodeKind] = ANY_KIND,
) -> Optional[NamespaceNode]:
    """Find the node at ``path`` below ``container``.

    Only the last segment is checked against ``kinds``; every intermediate
    segment has to be a branch or folder. A same-named node of the wrong kind
    is reported as ``None``, exactly like a missing one.

    Raises:
        ValueError: If ``path`` is blank.
    """
    segments = split_path(path)
    kinds = frozenset(kinds)
    log_debug("Resolving remote path", path=path, base=container.path or "/")
    return _resolve(container, segments, kinds)


def _resolve(
    container: Union[Container, NamespaceNode],
    segments: List[str],
    kinds: FrozenSet[NodeKind],
) -> Optional[NamespaceNode]:
    head, rest = segments[0], segments[1:]
    node = _child(container, head)
    if rest:
        if node is None or node.kind not in BRANCH_OR_FOLDER:
            return None
        return _resolve(node, rest, kinds)

    if node is None:
        return None
    if kinds and node.kind not in kinds:
        log_warning(
            f'Found {node.kind.label} "{node.path}" but it isn\'t {_describe_filter(kinds)}'
        )
        return None
    return node


def lookup(container: Union[Container, NamespaceNode], path: str) -> Optional[NamespaceNode]:
    """Unfiltered ``resolve``; tells "wrong kind" apart from "missing"."""
    return resolve(container, path, ANY_KIND)


def contains(container: Union[Container, NamespaceNode], path: str, kinds: Iterable[NodeKind]) -> bool:
    return resolve(container, path, kinds) is not None


def iter_nodes(container: Union[Container, NamespaceNode]) -> Iterator[NamespaceNode]:
    """Depth-first walk in document order, parents before children."""
    for node in children_of(container):
        yield node
        yield from iter_nodes(node)
