"""
dualver.operations.publisher — Unique release tag creation and push.

Candidate names are ``{prefix}{TAG_VERSION}``, then ``-1``, ``-2`` … up to
``max_attempts`` candidates.  Each candidate walks

    CHECK_EXISTS → CREATE → PUSH → VERIFY → DONE

and success means the annotated tag exists locally, was pushed and shows
up in the remote's tag listing.

Name collisions advance to the next candidate straight away.  Transient
push/verify failures are retried on the same name with exponential
backoff; once those retries are spent the local tag is removed and the
candidate is abandoned like a collision.
"""

from __future__ import annotations

import logging
import time
from enum import StrEnum
from typing import Callable

from dualver.core.errors import (
    DualverError,
    ExhaustedRetriesError,
    GitError,
    TagCollisionError,
    TransientGitError,
)
from dualver.core.logsink import Channel, LogSink
from dualver.core.models import HooksConfig
from dualver.operations.tags import read_tag_version
from dualver.vcs.git import VersionControl

logger = logging.getLogger("dualver.publisher")


class PublishState(StrEnum):
    CHECK_EXISTS = "check_exists"
    CREATE = "create"
    PUSH = "push"
    VERIFY = "verify"
    DONE = "done"


def candidate_name(base: str, counter: int) -> str:
    return base if counter == 0 else f"{base}-{counter}"


class TagPublisher:
    """Creates, pushes and verifies the release tag for the current commit."""

    def __init__(
        self,
        vcs: VersionControl,
        config: HooksConfig,
        sink: LogSink,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.vcs = vcs
        self.config = config
        self.sink = sink
        self._sleep = sleep
        self._remote_tags: set[str] = set()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def publish(self) -> str:
        """
        Publish the next free tag name and return it.

        Raises :class:`ConfigError` when ``TAG_VERSION`` is missing and
        :class:`ExhaustedRetriesError` when no candidate succeeds.  Both are
        written to the debug and error logs before propagating.
        """
        if self.config.clear_debug_on_publish:
            self.sink.clear(Channel.DEBUG)
        self.sink.debug("Starting tag creation process")
        try:
            return self._publish()
        except DualverError as exc:
            self.sink.error(f"Fatal error in tag creation: {exc}")
            self.sink.debug(f"Process failed: {exc}")
            raise

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _publish(self) -> str:
        self.sink.debug(f"Reading TAG_VERSION from {self.config.env_path}")
        tag_version = read_tag_version(self.config.env_path)
        self.sink.debug(f"Found TAG_VERSION: {tag_version}")

        base = f"{self.config.tag_prefix}{tag_version}"
        max_attempts = self.config.max_attempts
        self.sink.debug(f"Base tag name: {base}")
        self.sink.debug(f"Maximum attempts: {max_attempts}")

        self._refresh_remote_tags()

        for counter in range(max_attempts):
            name = candidate_name(base, counter)
            self.sink.debug(f"Attempting with tag: {name}")

            if self._exists(name):
                self.sink.debug(f"Tag {name} exists, incrementing counter")
                continue

            try:
                self._create_push_verify(name)
            except GitError as exc:
                msg = f"Error processing tag {name}: {exc}"
                self.sink.error(msg)
                self.sink.debug(msg)
                if isinstance(exc, TagCollisionError):
                    self._remote_tags.add(name)
                continue

            msg = f"Successfully created and pushed tag: {name}"
            self.sink.debug(msg)
            self.sink.history(msg)
            return name

        raise ExhaustedRetriesError(base, max_attempts)

    def _exists(self, name: str) -> bool:
        self.sink.debug(f"[{PublishState.CHECK_EXISTS}] Checking if tag exists: {name}")
        return name in self._remote_tags or self.vcs.tag_exists(name)

    def _create_push_verify(self, name: str) -> None:
        self.sink.debug(f"[{PublishState.CREATE}] Creating annotated tag: {name}")
        self.vcs.create_tag(name, name)

        delay = self.config.backoff_base
        retries = self.config.push_retries
        for attempt in range(1, retries + 1):
            try:
                self.sink.debug(f"[{PublishState.PUSH}] Pushing tag to {self.config.remote}: {name}")
                self.vcs.push_tag(self.config.remote, name)
                self._verify(name)
            except TagCollisionError:
                self._drop_local(name)
                raise
            except TransientGitError as exc:
                self.sink.debug(f"Transient failure for {name} (attempt {attempt}/{retries}): {exc}")
                if attempt == retries:
                    self._drop_local(name)
                    raise
                self._sleep(min(delay, self.config.backoff_max))
                delay *= 2
            else:
                self.sink.debug(f"[{PublishState.DONE}] Tag {name} confirmed on {self.config.remote}")
                return

    def _verify(self, name: str) -> None:
        self.sink.debug(f"[{PublishState.VERIFY}] Checking remote tag listing for {name}")
        self._remote_tags = self.vcs.list_remote_tags(self.config.remote)
        if name not in self._remote_tags:
            raise TransientGitError(f"Tag {name} not listed on {self.config.remote} after push")

    def _refresh_remote_tags(self) -> None:
        try:
            self._remote_tags = self.vcs.list_remote_tags(self.config.remote)
        except TransientGitError as exc:
            # Local checks still apply; collisions surface on push.
            self.sink.debug(f"Cannot list remote tags: {exc}")

    def _drop_local(self, name: str) -> None:
        try:
            self.vcs.delete_tag(name)
            self.sink.debug(f"Removed local tag {name}")
        except GitError as exc:
            logger.warning("Could not remove local tag %s: %s", name, exc)
