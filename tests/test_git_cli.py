"""
Tests for dualver.vcs.git.GitCLI.

``subprocess.run`` is mocked; these tests check the commands issued and
how failures are classified.
"""

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from dualver.core.errors import GitError, TagCollisionError, TransientGitError
from dualver.vcs.git import INDEX, GitCLI, parse_ls_remote_tags


def _completed(args=(), returncode=0, stdout="", stderr=""):
    return subprocess.CompletedProcess(list(args), returncode, stdout=stdout, stderr=stderr)


@pytest.fixture
def git():
    return GitCLI(Path("/repo"), timeout=5)


class TestCommands:
    @patch("dualver.vcs.git.subprocess.run")
    def test_show_index_and_commit(self, mock_run, git):
        mock_run.return_value = _completed(stdout='{"version": "1.0.0"}')

        git.show_file(INDEX, "frontend/package.json")
        git.show_file("HEAD", "frontend/package.json")

        assert mock_run.call_args_list[0].args[0] == ["git", "show", ":frontend/package.json"]
        assert mock_run.call_args_list[1].args[0] == ["git", "show", "HEAD:frontend/package.json"]
        assert mock_run.call_args.kwargs["cwd"] == str(Path("/repo"))
        assert mock_run.call_args.kwargs["timeout"] == 5

    @patch("dualver.vcs.git.subprocess.run")
    def test_staged_files_splits_nul(self, mock_run, git):
        mock_run.return_value = _completed(stdout="frontend/a.js\0backend/b py.py\0")
        assert git.staged_files() == ["frontend/a.js", "backend/b py.py"]
        assert mock_run.call_args.args[0] == ["git", "diff", "--cached", "--name-only", "-z"]

    @patch("dualver.vcs.git.subprocess.run")
    def test_tag_exists(self, mock_run, git):
        mock_run.return_value = _completed(returncode=1)
        assert git.tag_exists("v1.0.0") is False
        mock_run.return_value = _completed(stdout="abc123\n")
        assert git.tag_exists("v1.0.0") is True
        assert mock_run.call_args.args[0][-1] == "refs/tags/v1.0.0"

    @patch("dualver.vcs.git.subprocess.run")
    def test_branch_and_message(self, mock_run, git):
        mock_run.side_effect = [_completed(stdout="main\n"), _completed(stdout="Ship [deploy]\n\n")]
        assert git.current_branch() == "main"
        assert "[deploy]" in git.commit_message()


class TestFailures:
    @patch("dualver.vcs.git.subprocess.run")
    def test_nonzero_exit_raises_git_error(self, mock_run, git):
        mock_run.return_value = _completed(returncode=128, stderr="fatal: path does not exist")
        with pytest.raises(GitError) as excinfo:
            git.show_file("HEAD", "missing.json")
        assert excinfo.value.returncode == 128
        assert "does not exist" in excinfo.value.stderr

    @patch("dualver.vcs.git.subprocess.run")
    def test_create_tag_collision(self, mock_run, git):
        mock_run.return_value = _completed(returncode=128, stderr="fatal: tag 'v1.0.0' already exists")
        with pytest.raises(TagCollisionError):
            git.create_tag("v1.0.0", "v1.0.0")

    @patch("dualver.vcs.git.subprocess.run")
    def test_push_rejected_is_collision(self, mock_run, git):
        mock_run.return_value = _completed(
            returncode=1,
            stderr=" ! [rejected]        v1.0.0 -> v1.0.0 (already exists)\n",
        )
        with pytest.raises(TagCollisionError):
            git.push_tag("origin", "v1.0.0")

    @patch("dualver.vcs.git.subprocess.run")
    def test_push_network_error_is_transient(self, mock_run, git):
        mock_run.return_value = _completed(returncode=128, stderr="fatal: unable to access: Could not resolve host")
        with pytest.raises(TransientGitError):
            git.push_tag("origin", "v1.0.0")

    @patch("dualver.vcs.git.subprocess.run")
    def test_timeout_is_transient(self, mock_run, git):
        mock_run.side_effect = subprocess.TimeoutExpired(cmd="git", timeout=5)
        with pytest.raises(TransientGitError):
            git.list_remote_tags("origin")

    @patch("dualver.vcs.git.subprocess.run")
    def test_missing_git_binary(self, mock_run, git):
        mock_run.side_effect = FileNotFoundError("git")
        with pytest.raises(GitError):
            git.stage_file("frontend/package.json")

    @patch("dualver.vcs.git.subprocess.run")
    def test_undecodable_show_output_is_git_error(self, mock_run, git):
        mock_run.side_effect = UnicodeDecodeError("utf-8", b"caf\xe9", 3, 4, "unexpected end of data")
        with pytest.raises(GitError, match="not valid UTF-8"):
            git.show_file(INDEX, "frontend/package.json")
        assert mock_run.call_args.kwargs["errors"] == "strict"

    @patch("dualver.vcs.git.subprocess.run")
    def test_other_commands_replace_undecodable_output(self, mock_run, git):
        mock_run.return_value = _completed(stdout="main\n")
        git.current_branch()
        assert mock_run.call_args.kwargs["encoding"] == "utf-8"
        assert mock_run.call_args.kwargs["errors"] == "replace"

    @patch("dualver.vcs.git.subprocess.run")
    def test_discover_outside_repo(self, mock_run):
        mock_run.return_value = _completed(returncode=128, stderr="fatal: not a git repository")
        with pytest.raises(GitError):
            GitCLI.discover(Path("/tmp"))


def test_parse_ls_remote_tags():
    output = (
        "1111111111111111111111111111111111111111\trefs/tags/v1.0.0\n"
        "2222222222222222222222222222222222222222\trefs/tags/v1.0.0^{}\n"
        "3333333333333333333333333333333333333333\trefs/tags/v1.0.0-1\n"
        "4444444444444444444444444444444444444444\trefs/heads/main\n"
    )
    assert parse_ls_remote_tags(output) == {"v1.0.0", "v1.0.0-1"}
