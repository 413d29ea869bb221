"""
dualver.vcs.hooks — Git hook script installation.

Writes ``pre-commit`` and ``post-commit`` scripts into ``.git/hooks`` that
call back into the dualver CLI.  Existing hooks are preserved by chaining;
scripts already carrying the ``# DUALVER-HOOK`` marker are left alone.
"""

from __future__ import annotations

import logging
import stat
from pathlib import Path
from textwrap import dedent

logger = logging.getLogger("dualver.vcs.hooks")

HOOK_MARKER = "# DUALVER-HOOK"


def hook_scripts(python_cmd: str = "python -m dualver") -> dict[str, str]:
    """Generate the shell scripts for the Git hooks."""
    pre_commit = dedent(f"""\
        #!/bin/sh
        {HOOK_MARKER}: pre-commit — reconcile folder versions, never blocks the commit
        {python_cmd} pre-commit || true
    """)

    post_commit = dedent(f"""\
        #!/bin/sh
        {HOOK_MARKER}: post-commit — publish the release tag on deployment commits
        {python_cmd} post-commit
    """)

    return {
        "pre-commit": pre_commit,
        "post-commit": post_commit,
    }


def install_hooks(repo_root: Path, python_cmd: str = "python -m dualver") -> dict[str, str]:
    """
    Install the dualver hooks into *repo_root*.

    Returns a mapping of hook name → path for every hook written.
    """
    hooks_dir = Path(repo_root) / ".git" / "hooks"
    hooks_dir.mkdir(parents=True, exist_ok=True)
    installed: dict[str, str] = {}

    for hook_name, script in hook_scripts(python_cmd).items():
        hook_path = hooks_dir / hook_name
        if hook_path.exists():
            existing = hook_path.read_text(encoding="utf-8")
            if HOOK_MARKER in existing:
                continue
            # Chain after the existing hook, dropping our shebang
            body = script.split("\n", 1)[1]
            script = existing.rstrip() + "\n\n" + body

        hook_path.write_text(script, encoding="utf-8")
        hook_path.chmod(hook_path.stat().st_mode | stat.S_IEXEC)
        installed[hook_name] = str(hook_path)
        logger.info("Installed Git hook: %s", hook_path)

    return installed
