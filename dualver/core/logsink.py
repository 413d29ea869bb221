"""
dualver.core.logsink — Timestamped flat-file logs (debug / history / error).

One ``LogSink`` is created per hook invocation and handed to every
component.  File handles are opened on first write and flushed after every
line; leaving the ``with`` block closes them, whatever the exit path.

Each write cycle starts by rotating: any log holding more than
``max_lines`` lines is truncated to empty.  Messages are mirrored to the
``logging`` module so ``-v`` shows them on the console as well.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import StrEnum
from pathlib import Path
from typing import Callable, TextIO

logger = logging.getLogger("dualver.logsink")

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class Channel(StrEnum):
    DEBUG = "debug"
    HISTORY = "history"
    ERROR = "error"


LOG_FILENAMES: dict[Channel, str] = {
    Channel.DEBUG: "tag_debug.log",
    Channel.HISTORY: "tag_history.log",
    Channel.ERROR: "tag_error.log",
}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class LogSink:
    """Append-only writer for the three dualver log files."""

    def __init__(
        self,
        log_dir: Path,
        max_lines: int = 500,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.log_dir = Path(log_dir)
        self.max_lines = max_lines
        self._clock = clock
        self._handles: dict[Channel, TextIO] = {}
        self._opened = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def __enter__(self) -> "LogSink":
        self.open()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def open(self) -> None:
        """Start a write cycle: create the log directory and rotate."""
        self.log_dir.mkdir(parents=True, exist_ok=True)
        for channel in Channel:
            self.rotate(channel)
        self._opened = True

    def close(self) -> None:
        """Flush and close every open handle."""
        handles, self._handles = self._handles, {}
        for handle in handles.values():
            try:
                handle.flush()
            finally:
                handle.close()
        self._opened = False

    def path(self, channel: Channel) -> Path:
        return self.log_dir / LOG_FILENAMES[channel]

    # ------------------------------------------------------------------
    # Rotation
    # ------------------------------------------------------------------

    def rotate(self, channel: Channel) -> bool:
        """
        Truncate the channel's file when it holds more than ``max_lines``.

        Returns ``True`` if the file was truncated.  I/O errors propagate.
        """
        path = self.path(channel)
        if not path.exists():
            return False
        try:
            with path.open("r", encoding="utf-8", errors="replace") as fh:
                line_count = sum(1 for _ in fh)
            if line_count <= self.max_lines:
                return False
            self._release(channel)
            path.write_text("", encoding="utf-8")
        except OSError as exc:
            logger.error("Log rotation failed for %s: %s", path, exc)
            raise
        logger.debug("Rotated %s (%d lines > %d)", path, line_count, self.max_lines)
        return True

    def clear(self, channel: Channel) -> None:
        """Empty a log file outright (used for the per-run debug log)."""
        self._release(channel)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.path(channel).write_text("", encoding="utf-8")

    # ------------------------------------------------------------------
    # Writers
    # ------------------------------------------------------------------

    def timestamp(self) -> str:
        return self._clock().strftime(TIMESTAMP_FORMAT)

    def debug(self, message: str) -> None:
        logger.debug(message)
        self._write(Channel.DEBUG, f"[DEBUG {self.timestamp()}] {message}")

    def history(self, message: str) -> None:
        logger.info(message)
        self._write(Channel.HISTORY, f"{self.timestamp()} - {message}")

    def error(self, message: str) -> None:
        logger.error(message)
        self._write(Channel.ERROR, f"[ERROR {self.timestamp()}] {message}")

    def _write(self, channel: Channel, line: str) -> None:
        if not self._opened:
            self.open()
        handle = self._handles.get(channel)
        if handle is None:
            handle = self.path(channel).open("a", encoding="utf-8")
            self._handles[channel] = handle
        handle.write(line + "\n")
        handle.flush()

    def _release(self, channel: Channel) -> None:
        handle = self._handles.pop(channel, None)
        if handle is not None:
            handle.close()
