from __future__ import annotations

import subprocess
from unittest.mock import patch

import pytest

from stashtriage.models import StashEntry
from stashtriage.stash import StashNotFoundError, stash_ref


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path):
    """Keep tests away from the user's ~/.config/stashtriage."""
    config_dir = tmp_path / "config"
    with patch("stashtriage.config.CONFIG_DIR", config_dir), \
         patch("stashtriage.config.CONFIG_FILE", config_dir / "config.toml"):
        yield


class FakeBackend:
    """In-memory stash list; stashes are plain names, index 0 first."""

    def __init__(
        self,
        stashes: list[str],
        applied: bool = True,
        local_changes: bool = False,
        conflict: bool = False,
    ) -> None:
        self.stashes = list(stashes)
        self.applied = applied
        self.local_changes = local_changes
        self.conflict = conflict
        self.branch_errors: list[Exception] = []
        self.apply_errors: list[Exception] = []
        self.show_errors: list[Exception] = []
        self.shown: list[str] = []
        self.dropped: list[int] = []
        self.applied_names: list[str] = []
        self.counts: list[int] = []

    def _check(self, index: int) -> None:
        if index < 0 or index >= len(self.stashes):
            raise StashNotFoundError(index)

    def count(self) -> int:
        self.counts.append(len(self.stashes))
        return len(self.stashes)

    def entries(self) -> list[StashEntry]:
        return [
            StashEntry(index=i, ref=stash_ref(i), subject=name)
            for i, name in enumerate(self.stashes)
        ]

    def show(self, index: int) -> str:
        if self.show_errors:
            raise self.show_errors.pop(0)
        self._check(index)
        self.shown.append(self.stashes[index])
        return f"diff --git a/{self.stashes[index]}\n"

    def drop(self, index: int) -> None:
        self._check(index)
        self.stashes.pop(index)
        self.dropped.append(index)

    def branch(self, index: int, prefix: str = "stash", edit_message: bool = False) -> str:
        self._check(index)
        if self.branch_errors:
            raise self.branch_errors.pop(0)
        return f"{prefix}/{self.stashes.pop(index)}"

    def apply(self, index: int) -> bool:
        self._check(index)
        if self.apply_errors:
            raise self.apply_errors.pop(0)
        self.applied_names.append(self.stashes[index])
        return self.conflict

    def is_applied(self, index: int) -> bool:
        self._check(index)
        return self.applied

    def has_local_changes(self) -> bool:
        return self.local_changes


@pytest.fixture
def fake_backend():
    return FakeBackend


def _git(repo, *args):
    return subprocess.run(
        ["git", "-C", str(repo), *args], check=True, capture_output=True, text=True
    )


@pytest.fixture
def git_repo(tmp_path):
    repo = tmp_path / "myrepo"
    repo.mkdir()
    subprocess.run(["git", "init", str(repo)], check=True, capture_output=True)
    _git(repo, "config", "user.email", "test@example.com")
    _git(repo, "config", "user.name", "Test")
    _git(repo, "config", "commit.gpgsign", "false")
    (repo / "file.txt").write_text("base\n")
    _git(repo, "add", "file.txt")
    _git(repo, "commit", "-m", "init")
    return repo


@pytest.fixture
def make_stash():
    """Write file.txt (or another file) and stash it with a message."""

    def _make(repo, content: str, message: str, filename: str = "file.txt") -> None:
        (repo / filename).write_text(content)
        _git(repo, "add", filename)
        _git(repo, "stash", "push", "-m", message)

    return _make


@pytest.fixture
def git():
    return _git
