"""
Git client infrastructure for repotree.

Provides a clean abstraction over git command execution.
All git operations go through this client, making them:
- Easy to mock for testing
- Consistent in error handling
- Isolated from business logic

The sync service only depends on the GitBackend protocol, so tests can
swap in a fake backend that never spawns a process.
"""

import logging
import os
import subprocess
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, List, Protocol, Set, Tuple, Union

from ..domain.ref import GitStatus
from ..errors import (
    CloneFailedError,
    FetchFailedError,
    GitInterruptedError,
    GitTimeoutError,
    NotARepositoryError,
)

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]

# Name of the repository metadata directory inside a working tree
GIT_DIR = ".git"


class GitBackend(Protocol):
    """
    Contract the sync service and lister need from a git implementation.

    clone() and update() receive the per-task timeout on every call and must
    raise GitTimeoutError, leaving no process behind, when it runs out.
    """

    def clone(self, url: str, dest: PathLike, branch: Optional[str] = None,
              timeout: Optional[float] = None) -> None: ...

    def update(self, path: PathLike, timeout: Optional[float] = None) -> None: ...

    def is_repository(self, path: PathLike) -> bool: ...

    def status(self, path: PathLike) -> GitStatus: ...

    def remote_url(self, path: PathLike, remote: str = "origin") -> Optional[str]: ...

    def terminate_all(self) -> None: ...


@dataclass
class GitResult:
    """Captured output of one git invocation."""
    stdout: str
    stderr: str
    returncode: int

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def message(self) -> str:
        """Best diagnostic text: stderr verbatim, else stdout, else exit code."""
        text = (self.stderr or "").strip() or (self.stdout or "").strip()
        return text or f"git exited with status {self.returncode}"


class GitClient:
    """
    Abstraction over git commands.

    Blocking calls with no internal concurrency. Several threads may use one
    client at the same time; every running subprocess is tracked so that
    terminate_all() can stop them when a run is interrupted.

    Example:
        client = GitClient(timeout=300)
        client.clone("git@github.com:grdl/git-get.git", "/repos/github.com/grdl/git-get")
        client.update("/repos/github.com/grdl/git-get")
    """

    def __init__(self, timeout: Optional[float] = None, git: str = "git"):
        """
        Initialize GitClient.

        Args:
            timeout: Per-command timeout in seconds for clone and update
                (None = no timeout)
            git: git executable to run
        """
        self.timeout = timeout
        self.git = git
        self._processes: Set[subprocess.Popen] = set()
        self._lock = threading.Lock()
        self._cancelled = threading.Event()

    def _run(
        self,
        args: List[str],
        cwd: Optional[PathLike] = None,
        timeout: Optional[float] = None,
    ) -> GitResult:
        """
        Run a git command.

        Args:
            args: Arguments after the git executable
            cwd: Working directory
            timeout: Seconds before the process is killed (None = wait)

        Returns:
            GitResult with captured output

        Raises:
            GitTimeoutError: the command ran longer than timeout
            GitInterruptedError: terminate_all() stopped the command
            OSError: git could not be started
        """
        cmd = [self.git] + list(args)
        env = dict(os.environ, GIT_TERMINAL_PROMPT="0")
        logger.debug(f"Running in '{cwd or '.'}': {' '.join(cmd)}")

        if self._cancelled.is_set():
            raise GitInterruptedError("Cancelled before start", str(cwd) if cwd else None)

        proc = subprocess.Popen(
            cmd,
            cwd=cwd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            env=env,
        )
        with self._lock:
            self._processes.add(proc)
        try:
            try:
                stdout, stderr = proc.communicate(timeout=timeout)
            except subprocess.TimeoutExpired:
                proc.kill()
                proc.communicate()
                logger.warning(f"Git command timed out after {timeout}s: {' '.join(cmd)}")
                raise GitTimeoutError(
                    f"git {args[0]} timed out after {timeout}s",
                    str(cwd) if cwd else None,
                    timeout,
                )
        finally:
            with self._lock:
                self._processes.discard(proc)

        if self._cancelled.is_set() and proc.returncode != 0:
            raise GitInterruptedError(
                f"git {args[0]} was interrupted", str(cwd) if cwd else None
            )

        return GitResult(stdout=stdout or "", stderr=stderr or "", returncode=proc.returncode)

    def _timeout(self, timeout: Optional[float]) -> Optional[float]:
        return timeout if timeout is not None else self.timeout

    def _query(self, args: List[str], cwd: PathLike) -> Tuple[Optional[str], int]:
        """Run a read-only git command; failures yield (None, -1)."""
        try:
            result = self._run(args, cwd=cwd, timeout=30)
        except (OSError, GitTimeoutError, GitInterruptedError) as e:
            logger.debug(f"git {' '.join(args)} failed in {cwd}: {e}")
            return None, -1
        output = result.stdout.strip()
        return (output if output else None), result.returncode

    def is_repository(self, path: PathLike) -> bool:
        """Check if path holds a repository metadata directory with a HEAD."""
        git_dir = Path(path) / GIT_DIR
        return git_dir.is_dir() and (git_dir / "HEAD").is_file()

    def clone(self, url: str, dest: PathLike, branch: Optional[str] = None,
              timeout: Optional[float] = None) -> None:
        """
        Clone url into dest.

        Args:
            url: Clone URL
            dest: Target directory (must not exist or be empty)
            branch: Optional branch or tag to check out
            timeout: Seconds before git is killed (default: the client timeout)

        Raises:
            CloneFailedError: git clone exited non-zero or could not run
            GitTimeoutError: clone ran longer than the timeout
        """
        args = ["clone"]
        if branch:
            args += ["--branch", branch]
        args += ["--", url, str(dest)]

        try:
            result = self._run(args, timeout=self._timeout(timeout))
        except OSError as e:
            raise CloneFailedError(f"Could not run git: {e}", str(dest)) from e

        if not result.ok:
            raise CloneFailedError(result.message, str(dest))
        logger.info(f"Cloned {url} into {dest}")

    def update(self, path: PathLike, timeout: Optional[float] = None) -> None:
        """
        Fast-forward an existing repository from its upstream.

        Raises:
            NotARepositoryError: path has no valid repository metadata
            FetchFailedError: git pull exited non-zero or could not run
            GitTimeoutError: pull ran longer than the timeout
        """
        if not self.is_repository(path):
            raise NotARepositoryError(
                f"{path} exists but is not a git repository", str(path)
            )

        try:
            result = self._run(["pull", "--ff-only"], cwd=path, timeout=self._timeout(timeout))
        except OSError as e:
            raise FetchFailedError(f"Could not run git: {e}", str(path)) from e

        if not result.ok:
            raise FetchFailedError(result.message, str(path))
        logger.info(f"Updated {path}")

    def current_branch(self, path: PathLike) -> Optional[str]:
        """Get current branch name."""
        output, code = self._query(["rev-parse", "--abbrev-ref", "HEAD"], cwd=path)
        if code == 0 and output:
            return output
        return None

    def remote_url(self, path: PathLike, remote: str = "origin") -> Optional[str]:
        """
        Get remote URL.

        Args:
            path: Path to git repository
            remote: Remote name (default: "origin")

        Returns:
            Remote URL or None if not found
        """
        output, code = self._query(["config", "--get", f"remote.{remote}.url"], cwd=path)
        if code == 0 and output:
            return output
        return None

    def status(self, path: PathLike) -> GitStatus:
        """
        Get repository status.

        Args:
            path: Path to git repository

        Returns:
            GitStatus with branch, change counts and upstream tracking
        """
        branch = self.current_branch(path) or "HEAD"
        uncommitted = 0
        untracked = 0

        output, code = self._query(["status", "--porcelain"], cwd=path)
        if code == 0 and output:
            for line in output.split("\n"):
                if line.startswith("??"):
                    untracked += 1
                elif len(line) >= 2 and line[:2] != "  ":
                    uncommitted += 1

        ahead = behind = 0
        _, code = self._query(["rev-parse", "--abbrev-ref", "@{upstream}"], cwd=path)
        has_upstream = code == 0
        if has_upstream:
            output, code = self._query(
                ["rev-list", "--left-right", "--count", "HEAD...@{upstream}"], cwd=path
            )
            if code == 0 and output:
                parts = output.split()
                if len(parts) == 2:
                    try:
                        ahead, behind = int(parts[0]), int(parts[1])
                    except ValueError:
                        pass

        return GitStatus(
            branch=branch,
            clean=uncommitted == 0 and untracked == 0,
            ahead=ahead,
            behind=behind,
            has_upstream=has_upstream,
            uncommitted=uncommitted,
            untracked=untracked,
        )

    def terminate_all(self) -> None:
        """Stop every git process this client started and refuse new ones."""
        self._cancelled.set()
        with self._lock:
            processes = list(self._processes)
        for proc in processes:
            if proc.poll() is None:
                logger.debug(f"Terminating git process {proc.pid}")
                proc.terminate()
