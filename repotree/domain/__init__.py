"""
Domain layer for repotree.

Contains pure domain objects with no I/O or side effects:
- RepoRef: Canonical host/owner/name reference to a repository
- RepoEntry: A managed repository found under the root
- SyncTask / SyncOutcome / SyncReport: Units and results of a sync run

These objects provide serialization methods for JSONL output.
"""

from .ref import RepoRef, RepoEntry, GitStatus
from .sync import SyncAction, SyncStatus, SyncTask, SyncOutcome, SyncReport

__all__ = [
    'RepoRef',
    'RepoEntry',
    'GitStatus',
    'SyncAction',
    'SyncStatus',
    'SyncTask',
    'SyncOutcome',
    'SyncReport',
]
