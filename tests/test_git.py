"""Tests for git command classification and gated execution."""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from conftest import scripted_approvals
from vibecode.git import GitRunner, TrustTier, classify, is_destructive, mentions_program


def _completed(stdout="", stderr="", returncode=0):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


class TestClassify:
    """classify() returns exactly one trust tier."""

    @pytest.mark.parametrize("sub", ["status", "diff", "log", "branch", "remote", "fetch", "pull"])
    def test_read_only_subcommands_safe(self, sub):
        assert classify(["git", sub]) is TrustTier.SAFE

    @pytest.mark.parametrize("words", [
        ["git", "commit", "-m", "msg"],
        ["git", "push", "origin", "main"],
        ["git", "add", "."],
        ["git", "reset", "--hard"],
        ["git", "frobnicate"],
        ["git"],
    ])
    def test_everything_else_under_git_confirm(self, words):
        assert classify(words) is TrustTier.CONFIRM

    @pytest.mark.parametrize("words", [["rm", "-rf", "/"], ["ls"], ["gitk"], []])
    def test_other_programs_rejected(self, words):
        assert classify(words) is TrustTier.REJECTED

    def test_custom_program(self):
        assert classify(["hg", "status"], program="hg") is TrustTier.SAFE
        assert classify(["git", "status"], program="hg") is TrustTier.REJECTED


class TestHelpers:
    """Keyword gate and destructive-command detection."""

    @pytest.mark.parametrize("text", ["commit with git", "Git status please", "run git."])
    def test_mentions_git(self, text):
        assert mentions_program(text)

    @pytest.mark.parametrize("text", ["digital clock", "legit script", "git-lfs setup", "gitignore"])
    def test_does_not_mention_git(self, text):
        assert not mentions_program(text)

    def test_destructive(self):
        assert is_destructive("git push --force origin main")
        assert is_destructive("git reset --hard HEAD~1")
        assert is_destructive("git branch -D feature")
        assert is_destructive("git remote remove origin")
        assert not is_destructive("git status")


@pytest.fixture
def in_repo():
    """Patch subprocess.run so the repository check passes and commands succeed."""
    with patch("vibecode.git.subprocess.run") as mock_run:
        def fake_run(argv, **kwargs):
            if argv[1:] == ["rev-parse", "--is-inside-work-tree"]:
                return _completed(stdout="true\n")
            return _completed(stdout="ok\n")
        mock_run.side_effect = fake_run
        yield mock_run


class TestGitRunner:
    """GitRunner.run() honors the trust tiers."""

    def test_safe_runs_without_asking(self, workspace, renderer, in_repo):
        approvals = MagicMock()
        result = GitRunner(workspace, approvals, renderer).run("git status")
        assert result.ok
        assert result.stdout == "ok\n"
        approvals.confirm.assert_not_called()
        argv, kwargs = in_repo.call_args
        assert argv[0] == ["git", "status"]
        assert kwargs["cwd"] == str(workspace.resolve())
        assert kwargs["env"]["GIT_TERMINAL_PROMPT"] == "0"

    def test_confirm_approved_runs(self, workspace, renderer, in_repo):
        result = GitRunner(workspace, scripted_approvals(True), renderer).run('git commit -m "msg here"')
        assert result.ok
        assert in_repo.call_args[0][0] == ["git", "commit", "-m", "msg here"]

    def test_confirm_declined_does_not_run(self, workspace, renderer, output, in_repo):
        result = GitRunner(workspace, scripted_approvals(False), renderer).run("git push")
        assert result.skipped
        assert result.reason == "declined by user"
        assert in_repo.call_count == 1  # only the repository check
        assert "Command cancelled." in output.getvalue()

    def test_rejected_never_spawns(self, workspace, renderer):
        with patch("vibecode.git.subprocess.run") as mock_run:
            result = GitRunner(workspace, MagicMock(), renderer).run("rm -rf .")
        assert result.skipped
        mock_run.assert_not_called()

    def test_refused_outside_repository(self, workspace, renderer):
        with patch("vibecode.git.subprocess.run", return_value=_completed(returncode=128)) as mock_run:
            result = GitRunner(workspace, MagicMock(), renderer).run("git status")
        assert result.skipped
        assert "not inside a git repository" in result.reason
        assert mock_run.call_count == 1

    def test_unparseable_command_refused(self, workspace, renderer):
        result = GitRunner(workspace, MagicMock(), renderer).run('git commit -m "unterminated')
        assert result.skipped

    def test_timeout_reported(self, workspace, renderer, in_repo):
        def fake_run(argv, **kwargs):
            if argv[1:] == ["rev-parse", "--is-inside-work-tree"]:
                return _completed(stdout="true\n")
            raise subprocess.TimeoutExpired(argv, 5)
        in_repo.side_effect = fake_run
        result = GitRunner(workspace, MagicMock(), renderer, timeout=5).run("git fetch")
        assert result.exit_status is None
        assert not result.skipped
        assert "timed out" in result.reason

    def test_nonzero_exit_shown(self, workspace, renderer, output, in_repo):
        def fake_run(argv, **kwargs):
            if argv[1:] == ["rev-parse", "--is-inside-work-tree"]:
                return _completed(stdout="true\n")
            return _completed(stderr="fatal: bad revision\n", returncode=128)
        in_repo.side_effect = fake_run
        result = GitRunner(workspace, MagicMock(), renderer).run("git log nope")
        assert result.exit_status == 128
        assert "fatal: bad revision" in output.getvalue()

    @pytest.mark.parametrize("command", [
        "git branch -D feature",
        "git branch --delete --force feature",
        "git diff --output=../outside.patch",
        "git log --output ../log.txt",
    ])
    def test_read_only_subcommand_that_writes_asks(self, workspace, renderer, output, in_repo, command):
        result = GitRunner(workspace, scripted_approvals(False), renderer).run(command)
        assert result.skipped
        assert result.reason == "declined by user"
        assert in_repo.call_count == 1  # only the repository check
        assert "unrecognized subcommand" not in output.getvalue()

    def test_plain_branch_listing_does_not_ask(self, workspace, renderer, in_repo):
        approvals = MagicMock()
        result = GitRunner(workspace, approvals, renderer).run("git branch -a")
        assert result.ok
        approvals.confirm.assert_not_called()
