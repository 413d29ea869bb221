"""
dualver.operations.reader — Version Reader and Change Detector.

Both are advisory: any failure to read Git state or parse a metadata file
degrades to an absent/default result and a debug log line.
"""

from __future__ import annotations

import json
from enum import StrEnum
from typing import Any

from dualver.core.errors import GitError, ReadError
from dualver.core.logsink import LogSink
from dualver.core.models import ZERO_VERSION, FolderState, SemanticVersion
from dualver.vcs.git import INDEX, VersionControl


class Revision(StrEnum):
    WORKTREE = "worktree"
    INDEX = INDEX
    HEAD = "HEAD"


def parse_metadata(text: str) -> dict[str, Any]:
    """Decode a metadata file, raising :class:`ReadError` if it is not a JSON object."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ReadError(f"Invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ReadError("Metadata must be a JSON object")
    return data


def load_metadata(vcs: VersionControl, path: str, revision: str = Revision.WORKTREE) -> dict[str, Any]:
    """Load a metadata file from the working tree, the index or a commit."""
    if revision == Revision.WORKTREE:
        try:
            text = (vcs.repo_root / path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ReadError(f"Cannot read {path}: {exc}") from exc
    else:
        try:
            text = vcs.show_file(str(revision), path)
        except (GitError, UnicodeDecodeError) as exc:
            raise ReadError(f"Cannot read {path} at {revision}: {exc}") from exc
    return parse_metadata(text)


def read_version(
    vcs: VersionControl,
    path: str,
    revision: str = Revision.WORKTREE,
    sink: LogSink | None = None,
) -> SemanticVersion | None:
    """Return the ``version`` of *path* at *revision*, or ``None`` if unavailable."""
    try:
        data = load_metadata(vcs, path, revision)
    except ReadError as exc:
        if sink is not None:
            sink.debug(f"No version for {path} at {revision}: {exc}")
        return None

    version = SemanticVersion.try_parse(data.get("version"))
    if version is None and sink is not None:
        sink.debug(f"Malformed version in {path} at {revision}: {data.get('version')!r}")
    return version


def read_version_or_default(
    vcs: VersionControl,
    path: str,
    revision: str = Revision.WORKTREE,
    sink: LogSink | None = None,
) -> SemanticVersion:
    return read_version(vcs, path, revision, sink) or ZERO_VERSION


def folder_has_changes(
    vcs: VersionControl,
    folder: str,
    metadata_path: str,
    sink: LogSink | None = None,
) -> bool:
    """True when a staged path lies under *folder* and is not its metadata file."""
    prefix = folder.strip("/") + "/"
    try:
        staged = vcs.staged_files()
    except GitError as exc:
        if sink is not None:
            sink.debug(f"Cannot list staged files: {exc}")
        return False
    return any(p.startswith(prefix) and p != metadata_path for p in staged)


def read_folder_state(
    vcs: VersionControl,
    folder: str,
    metadata_path: str,
    sink: LogSink | None = None,
) -> FolderState:
    state = FolderState(
        folder=folder,
        staged=read_version(vcs, metadata_path, Revision.INDEX, sink),
        head=read_version_or_default(vcs, metadata_path, Revision.HEAD, sink),
        changed=folder_has_changes(vcs, folder, metadata_path, sink),
    )
    if sink is not None:
        sink.debug(
            f"{folder}: staged={state.staged or 'absent'} head={state.head} changed={state.changed}"
        )
    return state
