"""
Pytest configuration and shared fixtures.

Provides ``FakeGit``, an in-memory ``VersionControl`` backed by a real
temporary working tree, plus helpers to build two-folder repositories.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from dualver.core.errors import GitError, TagCollisionError
from dualver.core.logsink import LogSink
from dualver.core.models import HooksConfig
from dualver.vcs.git import INDEX, VersionControl


class FakeGit(VersionControl):
    """In-memory Git: HEAD and index are dicts, the working tree is on disk."""

    def __init__(self, root: Path) -> None:
        self._root = root
        self.head: dict[str, str] = {}
        self.index: dict[str, str] = {}
        self.staged: set[str] = set()
        self.local_tags: dict[str, str] = {}
        self.remote_tags: set[str] = set()
        self.pushed: list[str] = []
        self.push_failures: list[Exception] = []
        self.list_failures: list[Exception] = []
        self.staged_failure: Exception | None = None
        self.branch = "main"
        self.message = ""

    # -- helpers -----------------------------------------------------------

    def commit_file(self, path: str, content: str) -> None:
        """Make *path* part of HEAD, the index and the working tree."""
        self.head[path] = content
        self.index[path] = content
        self.write_worktree(path, content)

    def stage_content(self, path: str, content: str) -> None:
        """Write *path* to the working tree and stage it."""
        self.write_worktree(path, content)
        self.stage_file(path)

    def write_worktree(self, path: str, content: str) -> None:
        target = self._root / path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")

    # -- VersionControl ----------------------------------------------------

    @property
    def repo_root(self) -> Path:
        return self._root

    def show_file(self, revision: str, path: str) -> str:
        source = self.index if revision == INDEX else self.head
        if revision not in (INDEX, "HEAD") or path not in source:
            raise GitError(f"fatal: path '{path}' does not exist in '{revision}'")
        return source[path]

    def staged_files(self) -> list[str]:
        if self.staged_failure is not None:
            raise self.staged_failure
        return sorted(self.staged)

    def stage_file(self, path: str) -> None:
        self.index[path] = (self._root / path).read_text(encoding="utf-8")
        self.staged.add(path)

    def tag_exists(self, name: str) -> bool:
        return name in self.local_tags

    def create_tag(self, name: str, message: str) -> None:
        if name in self.local_tags:
            raise TagCollisionError(f"fatal: tag '{name}' already exists")
        self.local_tags[name] = message

    def delete_tag(self, name: str) -> None:
        if name not in self.local_tags:
            raise GitError(f"error: tag '{name}' not found.")
        del self.local_tags[name]

    def push_tag(self, remote: str, name: str) -> None:
        if self.push_failures:
            raise self.push_failures.pop(0)
        if name in self.remote_tags:
            raise TagCollisionError(f"! [rejected] {name} -> {name} (already exists)")
        self.remote_tags.add(name)
        self.pushed.append(name)

    def list_remote_tags(self, remote: str) -> set[str]:
        if self.list_failures:
            raise self.list_failures.pop(0)
        return set(self.remote_tags)

    def current_branch(self) -> str:
        return self.branch

    def commit_message(self, revision: str = "HEAD") -> str:
        return self.message


def metadata(version: str, **extra) -> str:
    """Render a metadata file the way the hooks write it."""
    data = {"name": "app", "version": version, **extra}
    return json.dumps(data, indent=2) + "\n"


@pytest.fixture
def fake_git(tmp_path):
    root = tmp_path / "repo"
    root.mkdir()
    return FakeGit(root)


@pytest.fixture
def config(fake_git):
    return HooksConfig(repo_root=fake_git.repo_root, folder_a="frontend", folder_b="backend")


@pytest.fixture
def frozen_clock():
    return lambda: datetime(2024, 3, 1, 12, 30, 45, tzinfo=timezone.utc)


@pytest.fixture
def sink(config, frozen_clock):
    with LogSink(config.log_path, max_lines=config.log_max_lines, clock=frozen_clock) as s:
        yield s


@pytest.fixture
def two_folder_repo(fake_git):
    """frontend at 2.5.1 and backend at 1.0.9, both committed and clean."""
    fake_git.commit_file("frontend/package.json", metadata("2.5.1"))
    fake_git.commit_file("backend/package.json", metadata("1.0.9"))
    fake_git.commit_file("frontend/src/app.js", "console.log('hi');\n")
    fake_git.commit_file("backend/main.py", "print('hi')\n")
    return fake_git
