from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest


def pytest_sessionstart(session):  # type: ignore[override]
    root = Path(__file__).resolve().parents[1]
    src = root / "src"
    if str(src) not in sys.path:
        sys.path.insert(0, str(src))
    # Ensure console scripts load in editable style as well
    os.environ.setdefault("PYTHONPATH", str(src))
    # Tests never write session log files
    os.environ["LINGUASYNC_LOG_DISABLE_FILE"] = "1"


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Point HOME at a temp dir and drop LINGUASYNC_* overrides from the environment."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    for name in list(os.environ):
        if name.startswith("LINGUASYNC_") and name != "LINGUASYNC_LOG_DISABLE_FILE":
            monkeypatch.delenv(name, raising=False)
    return home


@pytest.fixture
def service():
    from linguasync.testing import FakeNamespaceService

    return FakeNamespaceService(project_name="demo")


@pytest.fixture
def workspace(tmp_path):
    path = tmp_path / "project"
    path.mkdir()
    return path


@pytest.fixture
def make_context(service, workspace):
    """Factory for a SyncContext over the fake service.

    Keyword arguments are config sections (``file_sets=[...]``, ``build={...}``);
    ``branch`` is the local branch name the run pretends to be on.
    """
    from linguasync.config_schema import LinguasyncConfig
    from linguasync.context import SyncContext

    def _make(branch: str | None = "master", client=None, **sections):
        data = {"project": {"identifier": "demo"}}
        data.update(sections)
        config = LinguasyncConfig.model_validate(data)
        return SyncContext(
            config=config,
            client=service if client is None else client,
            base_dir=workspace,
            branch_name=branch,
        )

    return _make


@pytest.fixture
def snapshot_of(service):
    """Parse the fake service's current tree without logging a describe call."""
    from linguasync.namespace import NamespaceSnapshot

    def _snapshot():
        data = service.describe_project()
        service.calls.pop()
        return NamespaceSnapshot.from_response(data)

    return _snapshot
