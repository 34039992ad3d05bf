"""In-memory stand-in for the remote translation service.

``FakeNamespaceService`` implements the ``NamespaceClient`` surface over a
plain nested tree and records every call, so tests can assert on the exact
sequence of remote operations a push or pull performed.

Usage:
    from linguasync.testing import FakeNamespaceService

    service = FakeNamespaceService(project_name="demo")
    service.add_branch("dev")
    service.add_file("dev/app/messages.properties")

    snapshot = NamespaceSnapshot.from_response(service.describe_project())
"""

from __future__ import annotations

import io
import zipfile
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Dict, List, Mapping, Optional, Tuple

from .client import ExportStatus
from .errors import RemoteProtocolError
from .file_sets import FileType, UpdateOption
from .namespace import NodeKind, split_path


@dataclass
class _Node:
    kind: NodeKind
    children: Dict[str, "_Node"] = field(default_factory=dict)
    content: bytes = b""
    options: Dict[str, Any] = field(default_factory=dict)


def build_archive(files: Mapping[str, bytes]) -> bytes:
    """Zip ``{archive path: content}`` in memory."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, content in files.items():
            zf.writestr(name, content)
    return buffer.getvalue()


class FakeNamespaceService:
    """Remote namespace kept in memory, with a call log.

    Attributes:
        calls: ``(operation, *arguments)`` tuples in call order
        export_states: States returned by ``request_export`` then
            ``export_status``; the last one repeats
        archives: Archive bytes per branch name (None = root)
        status_documents: Raw status responses per language (None = all)
        apply_creates: When False, ``create_directory`` acknowledges without
            changing the tree (simulates a service that lost the write)
    """

    def __init__(self, project_name: str = "demo", identifier: str = "demo") -> None:
        self.project_name = project_name
        self.identifier = identifier
        self.root = _Node(NodeKind.FOLDER)
        self.calls: List[Tuple[Any, ...]] = []
        self.export_states: List[ExportStatus] = [ExportStatus.built]
        self.archives: Dict[Optional[str], bytes] = {}
        self.status_documents: Dict[Optional[str], bytes] = {}
        self.apply_creates = True
        self.fail_on: Dict[str, RemoteProtocolError] = {}

    # ------------------------------------------------------------------ #
    # Seeding helpers
    # ------------------------------------------------------------------ #

    def _walk(self, segments: List[str], create_missing: bool = False) -> _Node:
        node = self.root
        for segment in segments:
            child = node.children.get(segment)
            if child is None:
                if not create_missing:
                    raise KeyError("/".join(segments))
                child = node.children[segment] = _Node(NodeKind.FOLDER)
            node = child
        return node

    def add_branch(self, name: str) -> None:
        self.root.children[name] = _Node(NodeKind.BRANCH)

    def add_folder(self, path: str) -> None:
        self._walk(split_path(path), create_missing=True)

    def add_file(self, path: str, content: bytes = b"") -> None:
        segments = split_path(path)
        parent = self._walk(segments[:-1], create_missing=True)
        parent.children[segments[-1]] = _Node(NodeKind.FILE, content=content)

    def set_archive(self, files: Mapping[str, bytes], branch: Optional[str] = None) -> None:
        self.archives[branch] = build_archive(files)

    def node(self, path: str) -> Optional[_Node]:
        try:
            return self._walk(split_path(path))
        except KeyError:
            return None

    def operations(self, name: str) -> List[Tuple[Any, ...]]:
        return [call for call in self.calls if call[0] == name]

    @property
    def describe_count(self) -> int:
        return len(self.operations("describe_project"))

    @property
    def mutations(self) -> List[Tuple[Any, ...]]:
        return [call for call in self.calls if call[0] in ("create_directory", "create_file", "update_file")]

    # ------------------------------------------------------------------ #
    # NamespaceClient
    # ------------------------------------------------------------------ #

    def _fail(self, operation: str) -> None:
        error = self.fail_on.get(operation)
        if error is not None:
            raise error

    def _describe(self, node: _Node) -> List[Dict[str, Any]]:
        items = []
        for name, child in node.children.items():
            item: Dict[str, Any] = {"node_type": child.kind.value, "name": name}
            if child.kind is not NodeKind.FILE:
                item["files"] = self._describe(child)
            items.append(item)
        return items

    def describe_project(self) -> Dict[str, Any]:
        self.calls.append(("describe_project",))
        self._fail("describe_project")
        return {
            "details": {"name": self.project_name, "identifier": self.identifier},
            "files": self._describe(self.root),
        }

    def create_directory(self, path: str, as_branch: bool = False) -> None:
        self.calls.append(("create_directory", path, as_branch))
        self._fail("create_directory")
        segments = split_path(path)
        try:
            parent = self._walk(segments[:-1])
        except KeyError:
            raise RemoteProtocolError(f'Directory "{path}" has no parent', code="17", remote_message="Specified directory was not found") from None
        if segments[-1] in parent.children:
            raise RemoteProtocolError(f'"{path}" already exists', code="50", remote_message="Name is already taken")
        if self.apply_creates:
            parent.children[segments[-1]] = _Node(NodeKind.BRANCH if as_branch else NodeKind.FOLDER)

    def _scoped(self, path: str, branch: Optional[str]) -> List[str]:
        return split_path(f"{branch}/{path}" if branch else path)

    def create_file(
        self,
        path: str,
        content: bytes,
        file_type: FileType,
        *,
        branch: Optional[str] = None,
        title: Optional[str] = None,
        export_pattern: Optional[str] = None,
        escape_quotes: Optional[int] = None,
        escape_special_characters: Optional[int] = None,
    ) -> None:
        self.calls.append(("create_file", path, branch))
        self._fail("create_file")
        segments = self._scoped(path, branch)
        try:
            parent = self._walk(segments[:-1])
        except KeyError:
            raise RemoteProtocolError(f'Folder for "{path}" not found', code="17", remote_message="Specified directory was not found") from None
        if segments[-1] in parent.children:
            raise RemoteProtocolError(f'"{path}" already exists', code="5", remote_message="File already exists")
        parent.children[segments[-1]] = _Node(
            NodeKind.FILE,
            content=content,
            options={
                "type": file_type,
                "title": title,
                "export_pattern": export_pattern,
                "escape_quotes": escape_quotes,
                "escape_special_characters": escape_special_characters,
            },
        )

    def update_file(
        self,
        path: str,
        content: bytes,
        *,
        update_option: Optional[UpdateOption] = None,
        branch: Optional[str] = None,
        title: Optional[str] = None,
        export_pattern: Optional[str] = None,
        escape_quotes: Optional[int] = None,
        escape_special_characters: Optional[int] = None,
    ) -> None:
        self.calls.append(("update_file", path, branch))
        self._fail("update_file")
        try:
            node = self._walk(self._scoped(path, branch))
        except KeyError:
            raise RemoteProtocolError(f'"{path}" not found', code="8", remote_message="File was not found") from None
        if node.kind is not NodeKind.FILE:
            raise RemoteProtocolError(f'"{path}" is not a file', code="8", remote_message="File was not found") from None
        node.content = content
        node.options = {
            "update_option": update_option,
            "title": title,
            "export_pattern": export_pattern,
            "escape_quotes": escape_quotes,
            "escape_special_characters": escape_special_characters,
        }

    def _next_export_state(self) -> ExportStatus:
        if len(self.export_states) > 1:
            return self.export_states.pop(0)
        return self.export_states[0]

    def request_export(self, branch: Optional[str], options: Mapping[str, bool]) -> ExportStatus:
        self.calls.append(("request_export", branch, dict(options)))
        self._fail("request_export")
        return self._next_export_state()

    def export_status(self, branch: Optional[str]) -> ExportStatus:
        self.calls.append(("export_status", branch))
        return self._next_export_state()

    def download_archive(self, branch: Optional[str], destination: BinaryIO) -> int:
        self.calls.append(("download_archive", branch))
        self._fail("download_archive")
        archive = self.archives.get(branch)
        if archive is None:
            raise RemoteProtocolError("Not found", status_code=404)
        destination.write(archive)
        return len(archive)

    def get_status(self, language: Optional[str] = None) -> bytes:
        self.calls.append(("get_status", language))
        self._fail("get_status")
        return self.status_documents.get(language, b"[]")
