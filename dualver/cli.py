"""
dualver.cli — Command-line interface for the dualver Git hooks.

Usage:
    dualver pre-commit         Reconcile folder versions and record TAG_VERSION
    dualver post-commit        Publish the release tag on deployment commits
    dualver deploy             Publish the release tag unconditionally
    dualver install-hooks      Install the pre-commit and post-commit Git hooks
    dualver status             Show staged, HEAD and working-tree versions
"""

from __future__ import annotations

import logging
import sys

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from dualver import __version__
from dualver.core.errors import DualverError

console = Console()


def _setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(name)s] %(levelname)s — %(message)s",
        datefmt="%H:%M:%S",
    )


def _get_context():
    from dualver.core.models import HooksConfig
    from dualver.vcs.git import GitCLI
    config = HooksConfig.for_project()
    return config, GitCLI(config.repo_root, timeout=config.git_timeout)


def _get_sink(config):
    from dualver.core.logsink import LogSink
    return LogSink(config.log_path, max_lines=config.log_max_lines)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.version_option(__version__, prog_name="dualver")
def main(verbose: bool) -> None:
    """dualver — semantic-version bookkeeping hooks for two sibling folders."""
    _setup_logging(verbose)


# ---------------------------------------------------------------------------
# pre-commit
# ---------------------------------------------------------------------------

@main.command("pre-commit")
def pre_commit() -> None:
    """Reconcile both folders' versions (never blocks the commit)."""
    from dualver.operations.hooks import run_pre_commit
    try:
        config, vcs = _get_context()
        with _get_sink(config) as sink:
            tag_version = run_pre_commit(vcs, config, sink)
    except Exception as exc:  # the commit must go through
        console.print(f"[yellow]![/yellow] dualver pre-commit skipped: {escape(str(exc))}")
        return
    if tag_version:
        console.print(f"[green]✓[/green] TAG_VERSION={tag_version}")
    else:
        console.print("[yellow]![/yellow] Version reconciliation failed, see the error log")


# ---------------------------------------------------------------------------
# post-commit / deploy
# ---------------------------------------------------------------------------

@main.command("post-commit")
def post_commit() -> None:
    """Publish the release tag if HEAD is a deployment commit on a release branch."""
    from dualver.operations.hooks import run_post_commit
    try:
        config, vcs = _get_context()
        with _get_sink(config) as sink:
            tag = run_post_commit(vcs, config, sink)
    except DualverError as exc:
        console.print(f"[red]✗[/red] Error: {escape(str(exc))}")
        sys.exit(1)
    if tag:
        console.print(f"[green]✓[/green] Successfully created and pushed tag: [bold]{tag}[/bold]")


@main.command()
def deploy() -> None:
    """Create and push the next free release tag."""
    from dualver.operations.hooks import run_deploy
    try:
        config, vcs = _get_context()
        with _get_sink(config) as sink:
            tag = run_deploy(vcs, config, sink)
    except DualverError as exc:
        console.print(f"[red]✗[/red] Error: {escape(str(exc))}")
        sys.exit(1)
    console.print(f"[green]✓[/green] Successfully created and pushed tag: [bold]{tag}[/bold]")


# ---------------------------------------------------------------------------
# install-hooks
# ---------------------------------------------------------------------------

@main.command("install-hooks")
@click.option(
    "--python-cmd",
    default="python -m dualver",
    help="Command the hook scripts use to invoke dualver.",
)
def install_hooks(python_cmd: str) -> None:
    """Install the pre-commit and post-commit Git hooks."""
    from dualver.vcs.hooks import install_hooks as _install
    try:
        config, _ = _get_context()
    except DualverError as exc:
        console.print(f"[red]✗[/red] {escape(str(exc))}")
        sys.exit(1)
    result = _install(config.repo_root, python_cmd)
    if not result:
        console.print("[dim]Hooks already installed[/dim]")
    for hook, path in result.items():
        console.print(f"[green]✓[/green] {hook}: {path}")


# ---------------------------------------------------------------------------
# status
# ---------------------------------------------------------------------------

@main.command()
def status() -> None:
    """Show staged, HEAD and working-tree versions of both folders."""
    from dualver.operations.reader import Revision, folder_has_changes, read_version
    from dualver.operations.tags import read_tag_version

    try:
        config, vcs = _get_context()
    except DualverError as exc:
        console.print(f"[red]✗[/red] {escape(str(exc))}")
        sys.exit(1)

    table = Table(title="dualver Status")
    table.add_column("Folder", style="cyan")
    table.add_column("Staged")
    table.add_column("HEAD")
    table.add_column("Worktree")
    table.add_column("Changes", width=7)
    for folder in config.folders:
        path = config.metadata_path(folder)
        row = [
            read_version(vcs, path, rev)
            for rev in (Revision.INDEX, Revision.HEAD, Revision.WORKTREE)
        ]
        changed = folder_has_changes(vcs, folder, path)
        table.add_row(folder, *(str(v) if v is not None else "—" for v in row), "●" if changed else "")
    console.print(table)

    try:
        console.print(f"TAG_VERSION: [bold]{read_tag_version(config.env_path)}[/bold]")
    except DualverError:
        console.print("TAG_VERSION: [dim]not set[/dim]")


if __name__ == "__main__":
    main()
