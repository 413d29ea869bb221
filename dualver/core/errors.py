"""
dualver.core.errors — Exception taxonomy.

Reconciliation-path errors (``ReadError``, ``GitError``) are absorbed by the
pre-commit hook.  Publish-path errors (``ConfigError``,
``ExhaustedRetriesError``) reach the CLI and produce a non-zero exit.
"""

from __future__ import annotations

from typing import Sequence


class DualverError(Exception):
    """Base class for every error raised by dualver."""


class ReadError(DualverError):
    """A metadata file could not be read or parsed."""


class ConfigError(DualverError):
    """A required setting is missing or the configuration is invalid."""


class GitError(DualverError):
    """A ``git`` invocation failed."""

    def __init__(
        self,
        message: str,
        *,
        command: Sequence[str] = (),
        returncode: int | None = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr


class TagCollisionError(GitError):
    """The tag name is already taken locally or on the remote."""


class TransientGitError(GitError):
    """A git operation failed for a reason that may go away on retry."""


class ExhaustedRetriesError(DualverError):
    """No tag name could be published within the attempt bound."""

    def __init__(self, base_tag: str, attempts: int) -> None:
        super().__init__(f"Failed to create tag {base_tag} after {attempts} attempts")
        self.base_tag = base_tag
        self.attempts = attempts
