"""
dualver.operations.tags — Tag Composer and the ``TAG_VERSION`` env entry.

The composite build tag is ``{A.minor}.{A.patch}.{B.minor}.{B.patch}``.
It is stored as ``TAG_VERSION=`` in a local env file that is never staged.
"""

from __future__ import annotations

from pathlib import Path

from dotenv import dotenv_values, set_key

from dualver.core.errors import ConfigError
from dualver.core.models import SemanticVersion

TAG_VERSION_KEY = "TAG_VERSION"


def compose_tag_version(a: SemanticVersion, b: SemanticVersion) -> str:
    return f"{a.minor}.{a.patch}.{b.minor}.{b.patch}"


def write_tag_version(env_file: Path, tag_version: str) -> None:
    """Create or replace the ``TAG_VERSION`` line, leaving other lines untouched."""
    env_file = Path(env_file)
    env_file.parent.mkdir(parents=True, exist_ok=True)
    env_file.touch(exist_ok=True)
    set_key(env_file, TAG_VERSION_KEY, tag_version, quote_mode="never")


def read_tag_version(env_file: Path) -> str:
    """Return ``TAG_VERSION`` from *env_file*; :class:`ConfigError` if missing."""
    env_file = Path(env_file)
    if not env_file.exists():
        raise ConfigError(f"{TAG_VERSION_KEY} not found: {env_file} does not exist")
    try:
        value = dotenv_values(env_file).get(TAG_VERSION_KEY)
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Cannot read {env_file}: {exc}") from exc
    if value is None or not value.strip():
        raise ConfigError(f"{TAG_VERSION_KEY} not found in {env_file}")
    return value.strip()
