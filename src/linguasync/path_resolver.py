"""Local path resolution and VCS branch detection.

Computes where a file set lives on disk, where it is pushed to remotely, and
which git branch the working tree is on.

Uses GitPython for git operations (avoids Windows subprocess stdio hangs).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

# GitPython for in-process git operations (avoids Windows subprocess stdio hangs)
from git import Repo, InvalidGitRepositoryError, NoSuchPathError, GitCommandError

from .config_schema import FileSetConfig
from .observability import log_debug


@dataclass(frozen=True)
class GitInfo:
    """Git repository information.

    Attributes:
        root: Repository root directory (resolved path)
        branch: Current branch name (None if detached HEAD)
        commit: Short commit hash (7 chars)
    """
    root: Optional[Path]
    branch: Optional[str]
    commit: Optional[str]


def _expand_path(value: str) -> Path:
    """Expand environment variables and user home directory in path."""
    return Path(os.path.expanduser(os.path.expandvars(value)))


def _resolve_path(path: Path) -> Path:
    """Safely resolve path, handling errors gracefully."""
    try:
        return path.resolve(strict=False)
    except (OSError, RuntimeError, ValueError):
        return path


def discover_git_info(code_root: Optional[Path]) -> GitInfo:
    """Discover git repository information using GitPython.

    Args:
        code_root: Directory to search from (searches parent dirs)

    Returns:
        GitInfo with repository details (all None if not a git repo)
    """
    if code_root is None or not code_root.exists():
        return GitInfo(None, None, None)

    try:
        repo = Repo(code_root, search_parent_directories=True)

        root = Path(repo.working_dir) if repo.working_dir else None

        # Get current branch (None if detached HEAD)
        try:
            branch = repo.active_branch.name
        except TypeError:
            branch = None

        # No commits yet on a fresh repository
        try:
            commit = repo.head.commit.hexsha[:7]
        except (ValueError, AttributeError):
            commit = None

        return GitInfo(root=root, branch=branch, commit=commit)

    except (InvalidGitRepositoryError, NoSuchPathError, GitCommandError):
        return GitInfo(None, None, None)


def current_branch(base_dir: Optional[Path], override: Optional[str] = None) -> Optional[str]:
    """Name of the VCS branch the push or pull runs for.

    An explicit override (config ``project.branch`` / ``LINGUASYNC_BRANCH``)
    wins over git detection. Returns None when the branch cannot be determined.
    """
    if override and override.strip():
        return override.strip()
    info = discover_git_info(base_dir)
    log_debug("Detected git branch", root=info.root, branch=info.branch, commit=info.commit)
    return info.branch


def format_path(value: Optional[str]) -> str:
    """Normalize a remote path: forward slashes, no leading or trailing slash."""
    if not value:
        return ""
    return "/".join(segment for segment in value.replace("\\", "/").split("/") if segment)


def _segments(value: Optional[str]) -> List[str]:
    path = format_path(value)
    return path.split("/") if path else []


def push_folder(file_set: FileSetConfig) -> str:
    """Remote folder the file set's base file is pushed into.

    ``remote_path`` segments followed by the folder segments of
    ``base_file_name`` (its last segment, the file name itself, dropped).
    Empty string means the scope root.
    """
    segments = _segments(file_set.remote_path) + _segments(file_set.base_file_name)
    return "/".join(segments[:-1])


def push_name(file_set: FileSetConfig) -> str:
    """Remote path of the pushed file, ``remote_path/base_file_name``."""
    return "/".join(_segments(file_set.remote_path) + _segments(file_set.base_file_name))


def resolve_local(base_dir: Path, value: str) -> Path:
    """Resolve a configured local path against the project base directory."""
    path = _expand_path(value)
    if not path.is_absolute():
        path = base_dir / path
    return _resolve_path(path)


def source_file(base_dir: Path, file_set: FileSetConfig) -> Path:
    """Local file pushed for a file set."""
    folder = resolve_local(base_dir, file_set.language_files_folder)
    return folder.joinpath(*_segments(file_set.base_file_name))


def staging_dir(base_dir: Path, download_folder: str) -> Path:
    """Directory the translation archive is unpacked into."""
    return resolve_local(base_dir, download_folder)
