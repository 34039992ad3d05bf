"""Tests for linguasync.path_resolver module."""

from __future__ import annotations

from pathlib import Path

import pytest
from git import Repo

from linguasync.config_schema import FileSetConfig
from linguasync.path_resolver import (
    GitInfo,
    current_branch,
    discover_git_info,
    format_path,
    push_folder,
    push_name,
    resolve_local,
    source_file,
    staging_dir,
)


def _file_set(**overrides):
    data = {
        "language_files_folder": "src/lang",
        "base_file_name": "messages.properties",
        "export_pattern": "messages_%locale%.properties",
    }
    data.update(overrides)
    return FileSetConfig.model_validate(data)


@pytest.fixture
def git_repo(tmp_path):
    """A repository with one commit, checked out on ``feature``."""
    repo = Repo.init(tmp_path / "repo")
    readme = Path(repo.working_dir) / "README"
    readme.write_text("hello")
    repo.index.add(["README"])
    repo.index.commit("initial")
    repo.create_head("feature").checkout()
    return repo


class TestGitInfo:
    """Tests for GitInfo dataclass."""

    def test_git_info_immutable(self):
        """GitInfo is a frozen dataclass."""
        git_info = GitInfo(Path("/repo"), "main", "abc1234")
        with pytest.raises(AttributeError):
            git_info.root = Path("/other")  # type: ignore


class TestDiscoverGitInfo:
    """Tests for discover_git_info function."""

    def test_none_code_root(self):
        assert discover_git_info(None) == GitInfo(None, None, None)

    def test_nonexistent_path(self, tmp_path):
        assert discover_git_info(tmp_path / "does-not-exist") == GitInfo(None, None, None)

    def test_not_a_repo(self, tmp_path):
        plain = tmp_path / "plain"
        plain.mkdir()
        assert discover_git_info(plain).root is None

    def test_real_repo(self, git_repo):
        """Branch and short commit are read from a subdirectory too."""
        sub = Path(git_repo.working_dir) / "src"
        sub.mkdir()
        info = discover_git_info(sub)
        assert info.root == Path(git_repo.working_dir)
        assert info.branch == "feature"
        assert info.commit == git_repo.head.commit.hexsha[:7]

    def test_detached_head(self, git_repo):
        git_repo.head.reference = git_repo.head.commit
        info = discover_git_info(Path(git_repo.working_dir))
        assert info.branch is None
        assert info.commit is not None


class TestCurrentBranch:
    """Tests for current_branch function."""

    def test_override_wins(self, git_repo):
        assert current_branch(Path(git_repo.working_dir), " release ") == "release"

    def test_detected(self, git_repo):
        assert current_branch(Path(git_repo.working_dir)) == "feature"

    def test_blank_override_ignored(self, git_repo):
        assert current_branch(Path(git_repo.working_dir), "  ") == "feature"

    def test_outside_repo(self, tmp_path):
        plain = tmp_path / "plain"
        plain.mkdir()
        assert current_branch(plain) is None


class TestRemotePaths:
    """Tests for push_folder, push_name and format_path."""

    def test_format_path(self):
        assert format_path("\\a//b/") == "a/b"
        assert format_path(None) == ""

    def test_plain_file(self):
        file_set = _file_set()
        assert push_folder(file_set) == ""
        assert push_name(file_set) == "messages.properties"

    def test_remote_path_and_sub_folders(self):
        file_set = _file_set(remote_path="web/app", base_file_name="i18n/messages.properties")
        assert push_folder(file_set) == "web/app/i18n"
        assert push_name(file_set) == "web/app/i18n/messages.properties"


class TestLocalPaths:
    """Tests for local path resolution."""

    def test_relative(self, tmp_path):
        assert resolve_local(tmp_path, "a/b") == (tmp_path / "a" / "b").resolve()

    def test_absolute_kept(self, tmp_path):
        other = tmp_path / "elsewhere"
        assert resolve_local(tmp_path / "base", str(other)) == other.resolve()

    def test_env_and_home_expanded(self, tmp_path, monkeypatch):
        monkeypatch.setenv("LANG_ROOT", str(tmp_path / "langs"))
        assert resolve_local(Path("/unused"), "$LANG_ROOT/de") == (tmp_path / "langs" / "de").resolve()
        assert resolve_local(Path("/unused"), "~/x") == (Path.home() / "x").resolve()

    def test_source_file(self, tmp_path):
        file_set = _file_set(base_file_name="values/strings.xml", language_files_folder="res")
        assert source_file(tmp_path, file_set) == (tmp_path / "res").resolve() / "values" / "strings.xml"

    def test_staging_dir(self, tmp_path):
        assert staging_dir(tmp_path, "build/linguasync") == (tmp_path / "build" / "linguasync").resolve()
