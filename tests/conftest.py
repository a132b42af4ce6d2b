"""
Shared pytest fixtures for Commit Version tests.

Every test runs with HOME pointed at a temporary directory, so git never
reads the developer's global configuration and the exception log never
lands in the real home directory.
"""

from pathlib import Path

import pytest

from commit_version.utils.exception_logger import ExceptionLogger

from tests.fixtures.git_repository import GitRepository


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path: Path, monkeypatch):
    """Isolate HOME, global git config and the exception logger singleton."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.delenv("GIT_CONFIG_COUNT", raising=False)
    monkeypatch.delenv("GIT_DIR", raising=False)
    monkeypatch.delenv("GIT_WORK_TREE", raising=False)

    ExceptionLogger._instance = None
    yield
    ExceptionLogger._instance = None


@pytest.fixture
def git_repo(tmp_path: Path) -> GitRepository:
    """An empty real git repository on branch main."""
    return GitRepository(tmp_path / "repo").setup()
