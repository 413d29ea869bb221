"""
dualver.core.models — Pydantic schemas for versions, folder state and config.

A ``SemanticVersion`` is the (major, minor, patch) triple stored in each
tracked folder's metadata file.  Every hook invocation rebuilds a
``FolderState`` per folder from the Git index and HEAD, and the reconciler
turns it into a ``Decision``.
"""

from __future__ import annotations

import functools
import json
import os
import re
from enum import StrEnum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from dualver.core.errors import ConfigError

VERSION_PATTERN = re.compile(r"^(\d+)\.(\d+)\.(\d+)$")

CONFIG_FILENAME = ".dualver.json"


# ---------------------------------------------------------------------------
# Semantic versions
# ---------------------------------------------------------------------------

@functools.total_ordering
class SemanticVersion(BaseModel):
    """An immutable ``major.minor.patch`` triple."""
    model_config = ConfigDict(frozen=True)

    major: int = Field(default=0, ge=0)
    minor: int = Field(default=0, ge=0)
    patch: int = Field(default=0, ge=0)

    @classmethod
    def try_parse(cls, text: Any) -> "SemanticVersion | None":
        """Parse ``text`` strictly; return ``None`` when it is not ``\\d+.\\d+.\\d+``."""
        if not isinstance(text, str):
            return None
        match = VERSION_PATTERN.match(text.strip())
        if match is None:
            return None
        major, minor, patch = (int(g) for g in match.groups())
        return cls(major=major, minor=minor, patch=patch)

    @classmethod
    def parse(cls, text: Any) -> "SemanticVersion":
        """Parse ``text``, normalising malformed or missing input to ``0.0.0``."""
        return cls.try_parse(text) or cls()

    def as_tuple(self) -> tuple[int, int, int]:
        return (self.major, self.minor, self.patch)

    def bump_patch(self) -> "SemanticVersion":
        return self.model_copy(update={"patch": self.patch + 1})

    def reset_patch(self) -> "SemanticVersion":
        return self.model_copy(update={"patch": 0})

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, SemanticVersion):
            return NotImplemented
        return self.as_tuple() < other.as_tuple()

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


ZERO_VERSION = SemanticVersion()


# ---------------------------------------------------------------------------
# Reconciliation state
# ---------------------------------------------------------------------------

class FolderState(BaseModel):
    """Everything the reconciler needs to know about one tracked folder."""
    folder: str
    staged: SemanticVersion | None = None       # From the index; None if absent
    head: SemanticVersion = ZERO_VERSION        # From the last commit
    changed: bool = False                       # Non-metadata files staged


class Outcome(StrEnum):
    """The four mutually exclusive reconciliation results."""
    MINOR_RESET = "minor_reset"     # Manual minor bump, patch forced to 0
    MANUAL = "manual"               # Manual override accepted as-is
    PATCH_BUMP = "patch_bump"       # Automatic patch increment
    NOOP = "noop"                   # Nothing to do


class Decision(BaseModel):
    """The reconciler's verdict for a single folder."""
    folder: str
    outcome: Outcome
    version: SemanticVersion
    previous: SemanticVersion = ZERO_VERSION

    @property
    def rewrites_metadata(self) -> bool:
        return self.outcome in (Outcome.MINOR_RESET, Outcome.PATCH_BUMP)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

def discover_git_root(start: Path | None = None) -> Path | None:
    """
    Walk up from *start* (default: CWD) looking for a ``.git`` entry.

    ``.git`` may be a directory or, inside worktrees and submodules, a file.
    Returns the repository root or ``None``.
    """
    current = (start or Path.cwd()).resolve()
    while True:
        if (current / ".git").exists():
            return current
        parent = current.parent
        if parent == current:
            break
        current = parent
    return None


class HooksConfig(BaseModel):
    """Runtime configuration shared by every hook."""
    repo_root: Path = Path(".")
    folder_a: str = "frontend"
    folder_b: str = "backend"
    metadata_file: str = "package.json"
    env_file: Path = Path("build/.env")
    log_dir: Path = Path("build/logs")
    log_max_lines: int = Field(default=500, ge=1)

    # Tag publishing
    remote: str = "origin"
    tag_prefix: str = "v"
    max_attempts: int = Field(default=100, ge=1)
    push_retries: int = Field(default=3, ge=1)
    backoff_base: float = Field(default=0.5, ge=0)
    backoff_max: float = Field(default=8.0, ge=0)
    clear_debug_on_publish: bool = True

    # Post-commit trigger
    deploy_marker: str = "[deploy]"
    release_branches: list[str] = Field(default_factory=lambda: ["main", "master"])

    git_timeout: float = Field(default=30.0, gt=0)

    @property
    def folders(self) -> tuple[str, str]:
        return (self.folder_a, self.folder_b)

    @property
    def env_path(self) -> Path:
        return self._resolve(self.env_file)

    @property
    def log_path(self) -> Path:
        return self._resolve(self.log_dir)

    def metadata_path(self, folder: str) -> str:
        """Repository-relative POSIX path of a folder's metadata file."""
        prefix = folder.strip("/")
        return f"{prefix}/{self.metadata_file}" if prefix else self.metadata_file

    def _resolve(self, path: Path) -> Path:
        return path if path.is_absolute() else self.repo_root / path

    @staticmethod
    def _load_file(repo_root: Path) -> dict[str, Any]:
        """Read ``.dualver.json`` from the repository root, if present."""
        path = repo_root / CONFIG_FILENAME
        if not path.exists():
            return {}
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigError(f"Cannot read {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"{path} must contain a JSON object")
        return data

    @staticmethod
    def _from_env() -> dict[str, Any]:
        env_map = {
            "DUALVER_FOLDER_A": "folder_a",
            "DUALVER_FOLDER_B": "folder_b",
            "DUALVER_METADATA_FILE": "metadata_file",
            "DUALVER_ENV_FILE": "env_file",
            "DUALVER_LOG_DIR": "log_dir",
            "DUALVER_LOG_MAX_LINES": "log_max_lines",
            "DUALVER_REMOTE": "remote",
            "DUALVER_TAG_PREFIX": "tag_prefix",
            "DUALVER_MAX_ATTEMPTS": "max_attempts",
            "DUALVER_PUSH_RETRIES": "push_retries",
            "DUALVER_DEPLOY_MARKER": "deploy_marker",
            "DUALVER_GIT_TIMEOUT": "git_timeout",
        }
        values: dict[str, Any] = {}
        for env_key, field in env_map.items():
            val = os.getenv(env_key)
            if val is not None and val != "":
                values[field] = val
        branches = os.getenv("DUALVER_RELEASE_BRANCHES")
        if branches:
            values["release_branches"] = [b.strip() for b in branches.split(",") if b.strip()]
        return values

    @classmethod
    def for_project(cls, project_root: Path | None = None, **overrides: Any) -> "HooksConfig":
        """
        Build a config anchored to a repository.

        Resolution order (highest priority first):
          1. Explicit ``overrides`` keyword arguments
          2. Environment variables (DUALVER_FOLDER_A, DUALVER_REMOTE, …)
          3. Project config file (``.dualver.json`` in the repo root)
          4. Built-in defaults

        If *project_root* is ``None``, :func:`discover_git_root` walks up
        from CWD.  If still not found, CWD is used.
        """
        if project_root is None:
            project_root = discover_git_root()
        if project_root is None:
            project_root = Path.cwd()

        data = cls._load_file(project_root)
        data.update(cls._from_env())
        data.update({k: v for k, v in overrides.items() if v is not None})
        data["repo_root"] = project_root

        try:
            return cls(**data)
        except ValidationError as exc:
            raise ConfigError(f"Invalid dualver configuration: {exc}") from exc
