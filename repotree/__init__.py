"""
repotree - Keep git repositories organized as ROOT/HOST/OWNER/NAME.

Every repository lives at a path derived from where it is hosted, so the
directory tree itself is the index: nothing is stored besides the clones.

Quick Start:
    import repotree

    # Parse any common way of writing a repository reference
    ref = repotree.parse("git@github.com:grdl/git-get.git")
    str(ref)  # "github.com/grdl/git-get"

    # Where it lives on disk, and back
    root = Path.home() / "repositories"
    path = repotree.resolve(root, ref)  # root/github.com/grdl/git-get
    repotree.invert(root, path) == ref  # True

    # Clone or update many repositories in parallel
    report = repotree.sync([ref], "~/repositories", concurrency_limit=4)
    for outcome in report.outcomes:
        print(outcome.ref, outcome.status.value)

    # Everything already under the root, in sorted order
    for ref in repotree.list_repos("~/repositories"):
        print(ref)
"""

__version__ = "0.3.0"

from .domain import RepoRef, RepoEntry, GitStatus, SyncOutcome, SyncReport
from .errors import ParseError, MalformedReferenceError, InvalidSegmentError, GitError
from .parser import parse, clone_url
from .paths import resolve, invert
from .services import SyncService, SyncOptions, sync, RepositoryLister, list_repos

__all__ = [
    '__version__',
    'RepoRef',
    'RepoEntry',
    'GitStatus',
    'SyncOutcome',
    'SyncReport',
    'ParseError',
    'MalformedReferenceError',
    'InvalidSegmentError',
    'GitError',
    'parse',
    'clone_url',
    'resolve',
    'invert',
    'SyncService',
    'SyncOptions',
    'sync',
    'RepositoryLister',
    'list_repos',
]
