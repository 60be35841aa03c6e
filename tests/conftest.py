"""Shared fixtures for repotree tests."""

import os
import threading
import time
from pathlib import Path

import pytest

from repotree.domain.ref import GitStatus
from repotree.errors import CloneFailedError, GitInterruptedError, GitTimeoutError, NotARepositoryError


class FakeGit:
    """
    In-memory git backend.

    clone() creates root/.../.git/HEAD so the result looks like a repository
    to is_repository(); failures are chosen by repository name. A delay
    longer than the timeout passed to clone() ends in GitTimeoutError.
    """

    def __init__(self, fail=(), timeout=(), block=(), delays=None):
        self.fail = set(fail)
        self.timeout = set(timeout)
        self.block = set(block)
        self.delays = delays or {}
        self.cloned = []
        self.updated = []
        self.branches = {}
        self.timeouts = []
        self.terminated = False
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()
        self._stop = threading.Event()

    def _enter(self):
        with self._lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)

    def _leave(self):
        with self._lock:
            self.active -= 1

    def clone(self, url, dest, branch=None, timeout=None):
        dest = Path(dest)
        name = dest.name
        delay = self.delays.get(name, 0)
        expired = timeout is not None and delay > timeout
        self._enter()
        try:
            with self._lock:
                self.timeouts.append(timeout)
            time.sleep(timeout if expired else delay)
            if expired or name in self.fail or name in self.timeout or name in self.block:
                # Leave something behind, as an aborted git clone would
                (dest / ".git").mkdir(parents=True, exist_ok=True)
                (dest / "partial").write_text("x")
            if name in self.fail:
                raise CloneFailedError(f"fatal: repository '{url}' not found", str(dest))
            if expired:
                raise GitTimeoutError(f"git clone timed out after {timeout}s", str(dest), timeout)
            if name in self.timeout:
                raise GitTimeoutError("git clone timed out after 1s", str(dest), 1)
            if name in self.block:
                self._stop.wait(5)
                raise GitInterruptedError("git clone was interrupted", str(dest))

            (dest / ".git").mkdir(parents=True, exist_ok=True)
            (dest / ".git" / "HEAD").write_text("ref: refs/heads/main\n")
            with self._lock:
                self.cloned.append(url)
                self.branches[name] = branch
        finally:
            self._leave()

    def update(self, path, timeout=None):
        if not self.is_repository(path):
            raise NotARepositoryError(f"{path} exists but is not a git repository", str(path))
        with self._lock:
            self.updated.append(str(path))
            self.timeouts.append(timeout)

    def is_repository(self, path):
        git_dir = Path(path) / ".git"
        return git_dir.is_dir() and (git_dir / "HEAD").is_file()

    def status(self, path):
        return GitStatus(branch="main", has_upstream=True)

    def remote_url(self, path, remote="origin"):
        parts = Path(path).parts
        return f"git@{parts[-3]}:{parts[-2]}/{parts[-1]}.git"

    def terminate_all(self):
        self.terminated = True
        self._stop.set()


@pytest.fixture
def fake_git():
    return FakeGit()


@pytest.fixture
def make_fake_git():
    """Factory for a FakeGit with chosen failures."""
    return FakeGit


@pytest.fixture
def isolated_config(tmp_path, monkeypatch):
    """Point configuration at an empty location and clear overrides."""
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.setenv("REPOTREE_CONFIG", str(tmp_path / "home" / ".repotree" / "config.json"))
    monkeypatch.delenv("GIT_PATH", raising=False)
    monkeypatch.delenv("REPOTREE_FORMAT", raising=False)
    for key in list(os.environ):
        if key.startswith("REPOTREE_GENERAL_") or key.startswith("REPOTREE_LOGGING_"):
            monkeypatch.delenv(key, raising=False)
    return tmp_path / "home" / ".repotree" / "config.json"
