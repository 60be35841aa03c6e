"""
Tests for the git client.

Unit tests mock subprocess.Popen; the integration tests at the bottom run
the real git binary against local repositories and are skipped without it.
"""

import shutil
import subprocess
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from repotree.domain.ref import RepoRef
from repotree.domain.sync import SyncStatus
from repotree.config import Settings
from repotree.errors import (
    CloneFailedError,
    FetchFailedError,
    GitInterruptedError,
    GitTimeoutError,
    NotARepositoryError,
)
from repotree.infra.git_client import GitClient, GitResult
from repotree.services.lister import RepositoryLister
from repotree.services.sync_service import SyncService


def make_process(returncode=0, stdout="", stderr=""):
    proc = MagicMock()
    proc.communicate.return_value = (stdout, stderr)
    proc.returncode = returncode
    proc.poll.return_value = returncode
    return proc


class TestGitResult(unittest.TestCase):

    def test_message_prefers_stderr(self):
        result = GitResult(stdout="out", stderr="fatal: nope\n", returncode=128)
        self.assertFalse(result.ok)
        self.assertEqual(result.message, "fatal: nope")

    def test_message_falls_back_to_status(self):
        result = GitResult(stdout="", stderr="", returncode=1)
        self.assertEqual(result.message, "git exited with status 1")


class TestGitClientCommands(unittest.TestCase):
    """Command construction and error mapping with Popen mocked."""

    @patch("repotree.infra.git_client.subprocess.Popen")
    def test_clone_command(self, mock_popen):
        mock_popen.return_value = make_process()
        GitClient().clone("git@github.com:grdl/git-get.git", "/repos/github.com/grdl/git-get")

        cmd = mock_popen.call_args[0][0]
        self.assertEqual(cmd, ["git", "clone", "--", "git@github.com:grdl/git-get.git",
                               "/repos/github.com/grdl/git-get"])
        env = mock_popen.call_args[1]["env"]
        self.assertEqual(env["GIT_TERMINAL_PROMPT"], "0")

    @patch("repotree.infra.git_client.subprocess.Popen")
    def test_clone_with_branch(self, mock_popen):
        mock_popen.return_value = make_process()
        GitClient().clone("url", "/dest", branch="develop")

        cmd = mock_popen.call_args[0][0]
        self.assertEqual(cmd[:4], ["git", "clone", "--branch", "develop"])

    @patch("repotree.infra.git_client.subprocess.Popen")
    def test_clone_failure_keeps_stderr(self, mock_popen):
        stderr = "ERROR: Repository not found.\nfatal: Could not read from remote repository.\n"
        mock_popen.return_value = make_process(128, stderr=stderr)

        with self.assertRaises(CloneFailedError) as ctx:
            GitClient().clone("url", "/dest")
        self.assertEqual(ctx.exception.reason, stderr.strip())
        self.assertEqual(ctx.exception.kind, "CloneFailed")
        self.assertEqual(ctx.exception.path, "/dest")

    @patch("repotree.infra.git_client.subprocess.Popen")
    def test_git_missing(self, mock_popen):
        mock_popen.side_effect = FileNotFoundError("git")
        with self.assertRaises(CloneFailedError):
            GitClient().clone("url", "/dest")

    @patch("repotree.infra.git_client.subprocess.Popen")
    def test_timeout_kills_process(self, mock_popen):
        proc = make_process()
        proc.communicate.side_effect = [subprocess.TimeoutExpired("git", 5), ("", "")]
        mock_popen.return_value = proc

        with self.assertRaises(GitTimeoutError) as ctx:
            GitClient(timeout=5).clone("url", "/dest")
        proc.kill.assert_called_once()
        self.assertEqual(ctx.exception.timeout, 5)
        self.assertEqual(ctx.exception.kind, "Timeout")

    @patch("repotree.infra.git_client.subprocess.Popen")
    def test_call_timeout_overrides_client_timeout(self, mock_popen):
        proc = make_process()
        mock_popen.return_value = proc

        GitClient(timeout=300).clone("url", "/dest", timeout=2)
        proc.communicate.assert_called_with(timeout=2)

        GitClient(timeout=300).clone("url", "/dest")
        proc.communicate.assert_called_with(timeout=300)

    @patch("repotree.infra.git_client.subprocess.Popen")
    def test_terminated_command_is_interrupted(self, mock_popen):
        client = GitClient()
        proc = make_process(returncode=-15)

        def communicate(timeout=None):
            client.terminate_all()
            return ("", "")

        proc.communicate.side_effect = communicate
        mock_popen.return_value = proc

        with self.assertRaises(GitInterruptedError):
            client.clone("url", "/dest")

    @patch("repotree.infra.git_client.subprocess.Popen")
    def test_no_new_commands_after_terminate(self, mock_popen):
        client = GitClient()
        client.terminate_all()
        with self.assertRaises(GitInterruptedError):
            client.clone("url", "/dest")
        mock_popen.assert_not_called()


class TestGitClientRepositories:
    """Tests that need a directory on disk."""

    def _fake_repo(self, path):
        (path / ".git").mkdir(parents=True)
        (path / ".git" / "HEAD").write_text("ref: refs/heads/main\n")
        return path

    def test_is_repository(self, tmp_path):
        client = GitClient()
        assert not client.is_repository(tmp_path)
        (tmp_path / ".git").mkdir()
        assert not client.is_repository(tmp_path)
        (tmp_path / ".git" / "HEAD").write_text("ref: refs/heads/main\n")
        assert client.is_repository(tmp_path)

    def test_git_file_is_not_a_repository(self, tmp_path):
        (tmp_path / ".git").write_text("gitdir: elsewhere")
        assert not GitClient().is_repository(tmp_path)

    def test_update_non_repository(self, tmp_path):
        with pytest.raises(NotARepositoryError):
            GitClient().update(tmp_path)

    @patch("repotree.infra.git_client.subprocess.Popen")
    def test_update_runs_ff_only_pull(self, mock_popen, tmp_path):
        repo = self._fake_repo(tmp_path / "repo")
        mock_popen.return_value = make_process()
        GitClient().update(repo)

        assert mock_popen.call_args[0][0] == ["git", "pull", "--ff-only"]
        assert mock_popen.call_args[1]["cwd"] == repo

    @patch("repotree.infra.git_client.subprocess.Popen")
    def test_update_failure(self, mock_popen, tmp_path):
        repo = self._fake_repo(tmp_path / "repo")
        mock_popen.return_value = make_process(1, stderr="fatal: Not possible to fast-forward, aborting.")
        with pytest.raises(FetchFailedError) as exc_info:
            GitClient().update(repo)
        assert exc_info.value.reason == "fatal: Not possible to fast-forward, aborting."

    @patch("repotree.infra.git_client.subprocess.Popen")
    def test_status(self, mock_popen, tmp_path):
        outputs = {
            ("rev-parse", "--abbrev-ref", "HEAD"): make_process(stdout="main\n"),
            ("status", "--porcelain"): make_process(stdout=" M a.py\n?? new.txt\nA  b.py\n"),
            ("rev-parse", "--abbrev-ref", "@{upstream}"): make_process(stdout="origin/main\n"),
            ("rev-list", "--left-right", "--count", "HEAD...@{upstream}"): make_process(stdout="2\t1\n"),
        }
        mock_popen.side_effect = lambda cmd, **kwargs: outputs[tuple(cmd[1:])]

        status = GitClient().status(tmp_path)
        assert status.branch == "main"
        assert status.uncommitted == 2
        assert status.untracked == 1
        assert (status.ahead, status.behind) == (2, 1)
        assert status.has_upstream
        assert not status.clean

    @patch("repotree.infra.git_client.subprocess.Popen")
    def test_remote_url(self, mock_popen, tmp_path):
        mock_popen.return_value = make_process(stdout="git@github.com:a/b.git\n")
        assert GitClient().remote_url(tmp_path) == "git@github.com:a/b.git"

        mock_popen.return_value = make_process(1)
        assert GitClient().remote_url(tmp_path) is None


# Integration tests against the real git binary

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


def git(*args, cwd=None):
    subprocess.run(
        ["git", "-c", "user.name=Test", "-c", "user.email=test@example.com",
         "-c", "commit.gpgsign=false", *args],
        cwd=cwd, check=True, capture_output=True,
    )


@pytest.fixture
def upstream(tmp_path):
    """A local repository with one commit, usable as a clone URL."""
    src = tmp_path / "upstream" / "proj"
    src.mkdir(parents=True)
    git("init", cwd=src)
    (src / "README").write_text("hello\n")
    git("add", "README", cwd=src)
    git("commit", "-m", "initial", cwd=src)
    return src


@requires_git
class TestRealGit:

    def test_clone_then_update(self, tmp_path, upstream):
        root = tmp_path / "repos"
        ref = RepoRef("example.com", "me", "proj", url=str(upstream))
        service = SyncService(Settings(root=root, concurrency_limit=2), GitClient())

        list(service.sync_repos([ref]))
        first = service.last_report
        assert first.cloned == 1, first.outcomes[0].reason
        clone = root / "example.com" / "me" / "proj"
        assert (clone / "README").read_text() == "hello\n"

        (upstream / "NEWS").write_text("news\n")
        git("add", "NEWS", cwd=upstream)
        git("commit", "-m", "second", cwd=upstream)

        list(service.sync_repos([ref]))
        second = service.last_report
        assert second.updated == 1, second.outcomes[0].reason
        assert (clone / "NEWS").is_file()

    def test_clone_of_missing_repository_fails_cleanly(self, tmp_path):
        root = tmp_path / "repos"
        ref = RepoRef("example.com", "me", "gone", url=str(tmp_path / "does-not-exist"))
        service = SyncService(Settings(root=root), GitClient())

        list(service.sync_repos([ref]))
        outcome = service.last_report.outcomes[0]
        assert outcome.status == SyncStatus.FAILED
        assert outcome.error_kind == "CloneFailed"
        assert outcome.reason
        assert not (root / "example.com" / "me" / "gone").exists()

    def test_lister_sees_clone_with_status(self, tmp_path, upstream):
        root = tmp_path / "repos"
        ref = RepoRef("example.com", "me", "proj", url=str(upstream))
        list(SyncService(Settings(root=root), GitClient()).sync_repos([ref]))

        entries = list(RepositoryLister(root).entries(with_status=True, with_remote=True))
        assert [e.ref for e in entries] == [ref]
        assert entries[0].status.has_upstream
        assert entries[0].status.label == "ok"
        assert Path(entries[0].remote_url) == upstream
