"""
dualver.vcs.git — The version-control capability used by every component.

``VersionControl`` is the interface the reader, reconciler and publisher
depend on; ``GitCLI`` implements it by shelling out to ``git``.  Tests swap
in an in-memory implementation.
"""

from __future__ import annotations

import logging
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path

from dualver.core.errors import GitError, TagCollisionError, TransientGitError

logger = logging.getLogger("dualver.vcs.git")

INDEX = ":"

_COLLISION_MARKERS = ("already exists", "would clobber existing tag")


class VersionControl(ABC):
    """
    Interface contract for the version-control collaborator.

    Every method either returns text/data or raises :class:`GitError`.
    """

    @property
    @abstractmethod
    def repo_root(self) -> Path:
        """Working-tree root of the repository."""
        ...

    @abstractmethod
    def show_file(self, revision: str, path: str) -> str:
        """Content of *path* at *revision*; ``":"`` means the index."""
        ...

    @abstractmethod
    def staged_files(self) -> list[str]:
        """Repository-relative paths staged for the next commit."""
        ...

    @abstractmethod
    def stage_file(self, path: str) -> None:
        ...

    @abstractmethod
    def tag_exists(self, name: str) -> bool:
        ...

    @abstractmethod
    def create_tag(self, name: str, message: str) -> None:
        """Create an annotated tag; :class:`TagCollisionError` if taken."""
        ...

    @abstractmethod
    def delete_tag(self, name: str) -> None:
        ...

    @abstractmethod
    def push_tag(self, remote: str, name: str) -> None:
        """Push a tag; collisions and transient failures raise distinct errors."""
        ...

    @abstractmethod
    def list_remote_tags(self, remote: str) -> set[str]:
        ...

    @abstractmethod
    def current_branch(self) -> str:
        ...

    @abstractmethod
    def commit_message(self, revision: str = "HEAD") -> str:
        ...


class GitCLI(VersionControl):
    """``VersionControl`` backed by the ``git`` command-line tool."""

    def __init__(self, repo_root: Path, timeout: float = 30.0) -> None:
        self._repo_root = Path(repo_root)
        self.timeout = timeout

    @classmethod
    def discover(cls, cwd: Path | None = None, timeout: float = 30.0) -> "GitCLI":
        """Locate the enclosing repository via ``git rev-parse --show-toplevel``."""
        try:
            result = subprocess.run(
                ["git", "rev-parse", "--show-toplevel"],
                capture_output=True,
                text=True,
                cwd=str(cwd) if cwd else None,
                timeout=timeout,
            )
        except (FileNotFoundError, subprocess.TimeoutExpired) as exc:
            raise GitError(f"Cannot run git: {exc}") from exc
        if result.returncode != 0:
            raise GitError(
                "Not inside a Git repository",
                command=result.args,
                returncode=result.returncode,
                stderr=result.stderr,
            )
        return cls(Path(result.stdout.strip()), timeout=timeout)

    @property
    def repo_root(self) -> Path:
        return self._repo_root

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def show_file(self, revision: str, path: str) -> str:
        spec = f":{path}" if revision == INDEX else f"{revision}:{path}"
        return self._git("show", spec, errors="strict")

    def staged_files(self) -> list[str]:
        out = self._git("diff", "--cached", "--name-only", "-z")
        return [p for p in out.split("\0") if p]

    def current_branch(self) -> str:
        return self._git("rev-parse", "--abbrev-ref", "HEAD").strip()

    def commit_message(self, revision: str = "HEAD") -> str:
        return self._git("log", "-1", "--format=%B", revision)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def stage_file(self, path: str) -> None:
        self._git("add", "--", path)

    def tag_exists(self, name: str) -> bool:
        result = self._run("rev-parse", "--verify", "--quiet", f"refs/tags/{name}")
        return result.returncode == 0

    def create_tag(self, name: str, message: str) -> None:
        result = self._run("tag", "-a", name, "-m", message)
        if result.returncode != 0:
            if _is_collision(result.stderr):
                raise TagCollisionError(
                    f"Tag {name} already exists",
                    command=result.args, returncode=result.returncode, stderr=result.stderr,
                )
            raise GitError(
                f"git tag {name} failed: {result.stderr.strip()}",
                command=result.args, returncode=result.returncode, stderr=result.stderr,
            )

    def delete_tag(self, name: str) -> None:
        self._git("tag", "-d", name)

    def push_tag(self, remote: str, name: str) -> None:
        result = self._run("push", remote, f"refs/tags/{name}")
        if result.returncode == 0:
            return
        error_cls = TagCollisionError if _is_collision(result.stderr) else TransientGitError
        raise error_cls(
            f"git push {remote} {name} failed: {result.stderr.strip()}",
            command=result.args, returncode=result.returncode, stderr=result.stderr,
        )

    def list_remote_tags(self, remote: str) -> set[str]:
        try:
            out = self._git("ls-remote", "--tags", remote)
        except GitError as exc:
            raise TransientGitError(
                f"Cannot list tags on {remote}: {exc}",
                command=exc.command, returncode=exc.returncode, stderr=exc.stderr,
            ) from exc
        return parse_ls_remote_tags(out)

    # ------------------------------------------------------------------
    # Git helpers
    # ------------------------------------------------------------------

    def _run(self, *args: str, errors: str = "replace") -> subprocess.CompletedProcess[str]:
        """
        Run a Git command in the repo root without checking the exit code.

        Output is decoded as UTF-8. With ``errors="strict"`` undecodable
        output raises :class:`GitError` instead of being replaced.
        """
        cmd = ["git", *args]
        logger.debug("Running %s", " ".join(cmd))
        try:
            return subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors=errors,
                cwd=str(self._repo_root),
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as exc:
            raise TransientGitError(f"{' '.join(cmd)} timed out after {self.timeout}s", command=cmd) from exc
        except FileNotFoundError as exc:
            raise GitError("git executable not found", command=cmd) from exc
        except UnicodeDecodeError as exc:
            raise GitError(f"{' '.join(cmd)} output is not valid UTF-8: {exc}", command=cmd) from exc

    def _git(self, *args: str, errors: str = "replace") -> str:
        """Run a Git command and return stdout, raising :class:`GitError` on failure."""
        result = self._run(*args, errors=errors)
        if result.returncode != 0:
            raise GitError(
                f"git {' '.join(args)} failed: {result.stderr.strip()}",
                command=result.args,
                returncode=result.returncode,
                stderr=result.stderr,
            )
        return result.stdout


def parse_ls_remote_tags(output: str) -> set[str]:
    """Extract tag names from ``git ls-remote --tags`` output."""
    tags: set[str] = set()
    for line in output.splitlines():
        parts = line.split("\t", 1)
        if len(parts) != 2 or not parts[1].startswith("refs/tags/"):
            continue
        name = parts[1][len("refs/tags/"):]
        if name.endswith("^{}"):
            name = name[:-3]
        tags.add(name)
    return tags


def _is_collision(stderr: str) -> bool:
    text = stderr.lower()
    return any(marker in text for marker in _COLLISION_MARKERS)
