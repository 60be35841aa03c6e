"""
Sync service for repotree.

Clones or updates many repositories under the root in parallel.
Used by the `repotree get` command.

Each reference becomes one SyncTask. Tasks touch disjoint directories
(root/host/owner/name), so they run without locking; one task failing never
stops the others. The report lists outcomes in input order.
"""

import logging
import os
import shutil
import stat
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Generator, List, Optional, Sequence

from ..config import Settings, get_settings, default_concurrency
from ..domain.ref import RepoRef
from ..domain.sync import SyncAction, SyncOutcome, SyncReport, SyncStatus, SyncTask
from ..errors import GitError, GitInterruptedError
from ..infra.git_client import GitBackend, GitClient
from ..parser import clone_url
from ..paths import ensure_root, expand_root, resolve

logger = logging.getLogger(__name__)


@dataclass
class SyncOptions:
    """Options for a sync run."""
    branch: Optional[str] = None  # Branch to check out on clone
    branches: Dict[RepoRef, str] = field(default_factory=dict)  # Per-ref branch (dump files)
    dry_run: bool = False


def _remove_readonly(func, path, _exc_info):
    """rmtree error handler: clear the read-only bit git sets on objects, retry."""
    os.chmod(path, stat.S_IWRITE)
    func(path)


class SyncService:
    """
    Service for cloning and updating repositories under the root.

    Decides clone vs update per reference, runs the tasks on a bounded
    thread pool and collects one outcome per reference.

    Example:
        service = SyncService(settings)

        for message in service.sync_repos(refs, SyncOptions()):
            print(message)  # "  ✓ github.com/grdl/git-get: cloned"

        report = service.last_report
        print(f"{report.failed} failed")
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        git_client: Optional[GitBackend] = None
    ):
        """
        Initialize SyncService.

        Args:
            settings: Root, scheme, concurrency and timeout (loads config if None)
            git_client: Git backend (creates a GitClient if None); receives
                settings.task_timeout on every clone and update
        """
        self.settings = settings or get_settings()
        self.git = git_client or GitClient()
        self.last_report: Optional[SyncReport] = None

    def decide_action(self, path: Path) -> SyncAction:
        """
        Pick clone or update for a target path.

        A missing path or an empty directory is cloned into. Anything else is
        an update; if it turns out not to be a repository the update fails
        with NotARepository rather than overwriting what is there.
        """
        if not os.path.lexists(path):
            return SyncAction.CLONE
        if path.is_dir() and not path.is_symlink() and not any(path.iterdir()):
            return SyncAction.CLONE
        return SyncAction.UPDATE

    def plan(self, refs: Sequence[RepoRef], options: Optional[SyncOptions] = None) -> List[SyncTask]:
        """
        Turn references into tasks, dropping duplicates.

        Duplicates (case-insensitive) keep the position of their first
        occurrence so no two workers ever write to the same directory.
        """
        options = options or SyncOptions()
        tasks = []
        seen = set()
        for ref in refs:
            if ref in seen:
                logger.debug(f"Skipping duplicate reference {ref}")
                continue
            seen.add(ref)

            path = resolve(self.settings.root, ref)
            tasks.append(SyncTask(
                ref=ref,
                path=str(path),
                action=self.decide_action(path),
                url=clone_url(ref, self.settings.default_scheme),
                branch=options.branches.get(ref) or options.branch,
                index=len(tasks),
            ))
        return tasks

    def sync_repos(
        self,
        refs: Sequence[RepoRef],
        options: Optional[SyncOptions] = None
    ) -> Generator[str, None, SyncReport]:
        """
        Clone or update every reference.

        Args:
            refs: References in the order the user gave them
            options: Sync options

        Yields:
            Progress messages

        Returns:
            SyncReport with one outcome per unique reference, in input order

        Raises:
            ConfigError: the root is unusable (checked before any task runs)
            KeyboardInterrupt: after in-flight tasks were stopped and their
                partial clones removed; last_report holds what finished
        """
        options = options or SyncOptions()
        report = SyncReport(dry_run=options.dry_run)
        self.last_report = report

        if not refs:
            yield "No repositories to sync"
            return report

        tasks = self.plan(refs, options)
        duplicates = len(refs) - len(tasks)
        if duplicates:
            yield f"Skipping {duplicates} duplicate reference(s)"

        if options.dry_run:
            for task in tasks:
                report.outcomes.append(SyncOutcome(
                    ref=task.ref,
                    path=task.path,
                    action=task.action,
                    status=SyncStatus.DRY_RUN,
                ))
                yield f"Would {task.action.value} {task.ref} -> {task.path}"
            return report

        ensure_root(self.settings.root)

        workers = min(self.settings.concurrency_limit or default_concurrency(), len(tasks))
        yield f"Syncing {len(tasks)} repositories (parallel={workers})..."

        outcomes: List[Optional[SyncOutcome]] = [None] * len(tasks)
        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="repotree-sync")
        futures = {executor.submit(self._run_task, task): task for task in tasks}

        try:
            for future in as_completed(futures):
                task = futures[future]
                outcome = future.result()
                outcomes[task.index] = outcome
                yield self._describe(outcome)
        except (KeyboardInterrupt, GeneratorExit):
            logger.warning("Interrupted, stopping running git processes")
            self.git.terminate_all()
            executor.shutdown(wait=True, cancel_futures=True)
            for future, task in futures.items():
                if outcomes[task.index] is not None or not future.done() or future.cancelled():
                    continue
                if future.exception() is None:
                    outcomes[task.index] = future.result()
            report.outcomes = [
                outcome or self._failed(task, GitInterruptedError("Cancelled before start", task.path))
                for outcome, task in zip(outcomes, tasks)
            ]
            raise
        else:
            executor.shutdown(wait=True)

        report.outcomes = [outcome for outcome in outcomes if outcome is not None]
        return report

    def _run_task(self, task: SyncTask) -> SyncOutcome:
        """Execute one task; every error becomes a failed outcome."""
        started = time.monotonic()
        try:
            if task.action == SyncAction.CLONE:
                self._clone(task)
            else:
                self.git.update(task.path, timeout=self.settings.task_timeout)
        except GitError as e:
            logger.info(f"{task.action.value} {task.ref} failed: {e.kind}: {e.reason}")
            return self._failed(task, e, time.monotonic() - started)
        except OSError as e:
            logger.info(f"{task.action.value} {task.ref} failed: {e}")
            return SyncOutcome(
                ref=task.ref,
                path=task.path,
                action=task.action,
                status=SyncStatus.FAILED,
                reason=str(e),
                error_kind="IOError",
                duration=time.monotonic() - started,
            )
        except Exception as e:
            logger.exception(f"Unexpected error during {task.action.value} of {task.ref}")
            return SyncOutcome(
                ref=task.ref,
                path=task.path,
                action=task.action,
                status=SyncStatus.FAILED,
                reason=str(e) or type(e).__name__,
                error_kind=type(e).__name__,
                duration=time.monotonic() - started,
            )

        return SyncOutcome(
            ref=task.ref,
            path=task.path,
            action=task.action,
            status=SyncStatus.SUCCESS,
            duration=time.monotonic() - started,
        )

    def _clone(self, task: SyncTask) -> None:
        """
        Clone into the task path.

        Parent directories are created as needed and may stay behind on
        failure. The target directory itself never does: a failed clone is
        removed so the next run starts clean.
        """
        dest = Path(task.path)
        existed = dest.is_dir()
        dest.parent.mkdir(parents=True, exist_ok=True)

        try:
            self.git.clone(task.url, dest, task.branch, timeout=self.settings.task_timeout)
        except Exception:
            self._discard_partial_clone(dest, keep_dir=existed)
            raise

    def _discard_partial_clone(self, dest: Path, keep_dir: bool) -> None:
        """Remove whatever a failed clone left; restore an empty dir if one was there."""
        if os.path.lexists(dest):
            logger.debug(f"Removing partial clone at {dest}")
            try:
                shutil.rmtree(dest, onerror=_remove_readonly)
            except OSError as e:
                logger.error(f"Could not remove partial clone at {dest}: {e}")
                return
        if keep_dir:
            dest.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def _failed(task: SyncTask, error: GitError, duration: float = 0.0) -> SyncOutcome:
        return SyncOutcome(
            ref=task.ref,
            path=task.path,
            action=task.action,
            status=SyncStatus.FAILED,
            reason=error.reason,
            error_kind=error.kind,
            duration=duration,
        )

    @staticmethod
    def _describe(outcome: SyncOutcome) -> str:
        if outcome.status == SyncStatus.SUCCESS:
            done = "cloned" if outcome.action == SyncAction.CLONE else "updated"
            return f"  ✓ {outcome.ref}: {done}"
        first_line = (outcome.reason or "").strip().splitlines()
        detail = first_line[-1] if first_line else "failed"
        return f"  ✗ {outcome.ref}: {outcome.error_kind}: {detail}"


def interrupt(run: Generator[str, None, SyncReport]) -> None:
    """
    Hand a KeyboardInterrupt caught by the consumer to a sync_repos() run.

    Ctrl-C usually lands while the consumer prints a message, outside the
    generator. Throwing it in stops the running git processes, cancels
    queued tasks and fills last_report. A run that already finished or
    already handled the interrupt is left as it is.
    """
    try:
        run.throw(KeyboardInterrupt)
    except (KeyboardInterrupt, StopIteration):
        pass


def sync(
    refs: Sequence[RepoRef],
    root,
    concurrency_limit: Optional[int] = None,
    *,
    git_client: Optional[GitBackend] = None,
    default_scheme: str = "ssh",
    task_timeout: Optional[float] = None,
    options: Optional[SyncOptions] = None,
) -> SyncReport:
    """
    Clone or update refs under root and return the report.

    Functional front end to SyncService for callers that do not want
    progress messages. Never raises for per-repository failures.

    Args:
        refs: References in input order
        root: Repository root
        concurrency_limit: Worker count (None = number of CPUs)
        git_client: Git backend (GitClient if None)
        default_scheme: 'ssh' or 'https' for refs without an explicit URL
        task_timeout: Seconds per clone/update (None = no limit)
        options: Branch and dry-run options
    """
    settings = Settings(
        root=expand_root(root),
        default_scheme=default_scheme,
        concurrency_limit=concurrency_limit or default_concurrency(),
        task_timeout=task_timeout,
    )
    service = SyncService(settings, git_client)
    run = service.sync_repos(refs, options)
    try:
        for _ in run:
            pass
    except KeyboardInterrupt:
        interrupt(run)
        raise
    return service.last_report
