"""
Sync domain objects for repotree.

Provides the task and result types used by the sync service when cloning
or updating repositories under the root.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, List, Optional

from .ref import RepoRef


class SyncAction(Enum):
    """What the sync service decided to do for one reference."""
    CLONE = "clone"
    UPDATE = "update"


class SyncStatus(Enum):
    """Status of an individual sync task."""
    SUCCESS = "success"
    FAILED = "failed"
    DRY_RUN = "dry_run"


@dataclass(frozen=True)
class SyncTask:
    """
    One unit of work for the worker pool.

    Created per unique reference when a sync is planned and consumed once.
    """
    ref: RepoRef
    path: str
    action: SyncAction
    url: str
    branch: Optional[str] = None
    index: int = 0  # Position in the de-duplicated input


@dataclass
class SyncOutcome:
    """
    Result of one sync task.

    error_kind is the GitError/ParseError kind ("CloneFailed",
    "NotARepository", "Timeout", ...) and reason holds the underlying
    message verbatim.
    """
    ref: RepoRef
    path: str
    action: SyncAction
    status: SyncStatus
    reason: Optional[str] = None
    error_kind: Optional[str] = None
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status != SyncStatus.FAILED

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = {
            'ref': str(self.ref),
            'path': self.path,
            'action': self.action.value,
            'status': self.status.value,
        }
        if self.error_kind:
            result['error_kind'] = self.error_kind
        if self.reason:
            result['reason'] = self.reason
        result['duration'] = round(self.duration, 3)
        return result


@dataclass
class SyncReport:
    """
    Outcomes of a sync run, in input order.

    Every unique reference handed to the sync service appears exactly once,
    regardless of the order in which its task completed.
    """
    outcomes: List[SyncOutcome] = field(default_factory=list)
    dry_run: bool = False

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def cloned(self) -> int:
        return sum(1 for o in self.outcomes
                   if o.status == SyncStatus.SUCCESS and o.action == SyncAction.CLONE)

    @property
    def updated(self) -> int:
        return sum(1 for o in self.outcomes
                   if o.status == SyncStatus.SUCCESS and o.action == SyncAction.UPDATE)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if o.status == SyncStatus.FAILED)

    @property
    def succeeded(self) -> int:
        return self.total - self.failed

    @property
    def success(self) -> bool:
        """True if no failures occurred."""
        return self.failed == 0

    @property
    def failures(self) -> List[SyncOutcome]:
        return [o for o in self.outcomes if o.status == SyncStatus.FAILED]

    def to_dict(self) -> Dict[str, Any]:
        """Convert the summary (not the outcomes) to a dictionary."""
        return {
            'type': 'summary',
            'total': self.total,
            'cloned': self.cloned,
            'updated': self.updated,
            'failed': self.failed,
            'dry_run': self.dry_run,
        }
