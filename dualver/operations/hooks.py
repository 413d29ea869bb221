"""
dualver.operations.hooks — Pre-commit and post-commit orchestration.

The pre-commit runner swallows every failure so a commit is never blocked.
The post-commit runner only publishes on release branches for commits
whose message carries the deployment marker, and lets publish failures
propagate to the CLI.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from dualver.core.errors import GitError
from dualver.core.logsink import LogSink
from dualver.core.models import HooksConfig
from dualver.operations.publisher import TagPublisher
from dualver.operations.reconciler import reconcile_all
from dualver.operations.tags import compose_tag_version, write_tag_version
from dualver.vcs.git import VersionControl

logger = logging.getLogger("dualver.hooks")


def run_pre_commit(vcs: VersionControl, config: HooksConfig, sink: LogSink) -> str | None:
    """Reconcile both folders and record ``TAG_VERSION``; returns it, or ``None`` on failure."""
    sink.debug("Pre-commit: reconciling versions")
    try:
        versions = reconcile_all(vcs, config, sink)
        tag_version = compose_tag_version(versions[config.folder_a], versions[config.folder_b])
        write_tag_version(config.env_path, tag_version)
    except Exception as exc:  # the commit must go through
        msg = f"Pre-commit failed: {exc}"
        sink.debug(msg)
        sink.error(msg)
        logger.debug("Pre-commit failure", exc_info=True)
        return None
    sink.debug(f"TAG_VERSION set to {tag_version}")
    return tag_version


def should_publish(vcs: VersionControl, config: HooksConfig, sink: LogSink) -> bool:
    """True when HEAD is a deployment commit on a release branch."""
    message = vcs.commit_message("HEAD")
    if config.deploy_marker not in message:
        sink.debug(f"No {config.deploy_marker} marker in commit message, skipping tag")
        return False

    branch = vcs.current_branch()
    if branch not in config.release_branches:
        sink.debug(f"Branch {branch} is not a release branch, skipping tag")
        return False

    sink.history(f"Deployment commit on {branch}, publishing tag")
    return True


def run_post_commit(
    vcs: VersionControl,
    config: HooksConfig,
    sink: LogSink,
    sleep: Callable[[float], None] = time.sleep,
) -> str | None:
    """Publish the release tag when triggered; returns the tag name or ``None``."""
    try:
        triggered = should_publish(vcs, config, sink)
    except GitError as exc:
        sink.error(f"Cannot inspect HEAD commit: {exc}")
        return None
    if not triggered:
        return None
    return TagPublisher(vcs, config, sink, sleep=sleep).publish()


def run_deploy(
    vcs: VersionControl,
    config: HooksConfig,
    sink: LogSink,
    sleep: Callable[[float], None] = time.sleep,
) -> str:
    """Publish the release tag unconditionally."""
    return TagPublisher(vcs, config, sink, sleep=sleep).publish()
