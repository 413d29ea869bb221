"""
dualver.operations.reconciler — Version-state reconciliation.

Given a folder's staged version, its HEAD version and whether other files
in the folder are staged, pick exactly one outcome (first match wins):

    1. MINOR_RESET  staged minor > head minor, same major → x.y.0
    2. MANUAL       staged differs from head in any other way → keep it
    3. PATCH_BUMP   folder has staged changes → head patch + 1
    4. NOOP         nothing to do

Only MINOR_RESET and PATCH_BUMP touch the metadata file, which is rewritten
with 2-space indentation and a trailing newline and then re-staged.
"""

from __future__ import annotations

import json
import logging

from dualver.core.errors import DualverError, ReadError
from dualver.core.logsink import LogSink
from dualver.core.models import Decision, FolderState, HooksConfig, Outcome, SemanticVersion
from dualver.operations.reader import Revision, load_metadata, read_folder_state, read_version_or_default
from dualver.vcs.git import VersionControl

logger = logging.getLogger("dualver.reconciler")


def decide(state: FolderState) -> Decision:
    """Pure decision function over a ``FolderState``."""
    staged, head = state.staged, state.head

    if staged is not None and staged.major == head.major and staged.minor > head.minor:
        return Decision(
            folder=state.folder, outcome=Outcome.MINOR_RESET,
            version=staged.reset_patch(), previous=head,
        )

    if staged is not None and staged != head:
        return Decision(folder=state.folder, outcome=Outcome.MANUAL, version=staged, previous=head)

    if state.changed:
        return Decision(
            folder=state.folder, outcome=Outcome.PATCH_BUMP,
            version=head.bump_patch(), previous=head,
        )

    return Decision(folder=state.folder, outcome=Outcome.NOOP, version=head, previous=head)


def write_version(vcs: VersionControl, path: str, version: SemanticVersion) -> None:
    """Rewrite the ``version`` field of a working-tree metadata file in place."""
    data = load_metadata(vcs, path, Revision.WORKTREE)
    data["version"] = str(version)
    target = vcs.repo_root / path
    try:
        target.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    except OSError as exc:
        raise ReadError(f"Cannot write {path}: {exc}") from exc


def apply(decision: Decision, vcs: VersionControl, metadata_path: str, sink: LogSink) -> None:
    """
    Carry out a decision: rewrite and stage, or just record it.

    The rewrite starts from the working-tree file and ``git add`` stages all
    of it, so unstaged edits to other fields of the metadata file are
    committed together with the new version.
    """
    folder = decision.folder
    match decision.outcome:
        case Outcome.MINOR_RESET:
            write_version(vcs, metadata_path, decision.version)
            vcs.stage_file(metadata_path)
            sink.history(
                f"{folder}: minor bump {decision.previous} -> {decision.version} (patch reset)"
            )
        case Outcome.PATCH_BUMP:
            write_version(vcs, metadata_path, decision.version)
            vcs.stage_file(metadata_path)
            sink.history(f"{folder}: patch bump {decision.previous} -> {decision.version}")
        case Outcome.MANUAL:
            sink.history(f"{folder}: manual version change {decision.previous} -> {decision.version}")
        case Outcome.NOOP:
            sink.debug(f"{folder}: no version change needed ({decision.version})")


def reconcile_folder(
    vcs: VersionControl,
    folder: str,
    metadata_path: str,
    sink: LogSink,
) -> Decision:
    state = read_folder_state(vcs, folder, metadata_path, sink)
    decision = decide(state)
    sink.debug(f"{folder}: outcome={decision.outcome} version={decision.version}")
    apply(decision, vcs, metadata_path, sink)
    return decision


def reconcile_all(
    vcs: VersionControl,
    config: HooksConfig,
    sink: LogSink,
) -> dict[str, SemanticVersion]:
    """
    Reconcile both tracked folders in order.

    A failure in one folder is logged and does not stop the other; that
    folder then reports its working-tree version.  Returns folder → version.
    """
    versions: dict[str, SemanticVersion] = {}
    for folder in config.folders:
        metadata_path = config.metadata_path(folder)
        try:
            decision = reconcile_folder(vcs, folder, metadata_path, sink)
            versions[folder] = decision.version
        except DualverError as exc:
            msg = f"Failed to reconcile {folder}: {exc}"
            sink.debug(msg)
            sink.error(msg)
            logger.debug("Reconcile failure in %s", folder, exc_info=True)
            versions[folder] = read_version_or_default(vcs, metadata_path, Revision.WORKTREE, sink)
    return versions
