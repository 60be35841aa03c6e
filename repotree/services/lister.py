"""
Repository lister for repotree.

Walks root/host/owner/name and yields a RepoRef for every directory at the
third level that holds a repository. Directories without repository
metadata are skipped silently, so stray folders under the root are
tolerated.

Every level is visited in sorted name order, which makes the output the
same from one run to the next and across platforms.
"""

import logging
import os
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

from ..domain.ref import RepoEntry, RepoRef
from ..infra.git_client import GIT_DIR, GitBackend, GitClient
from ..paths import PathLike, LAYOUT_DEPTH, expand_root, invert

logger = logging.getLogger(__name__)


def _subdirectories(path: Path) -> List[Path]:
    """Child directories of path, sorted by name; unreadable dirs yield none."""
    try:
        with os.scandir(path) as it:
            entries = [e for e in it if e.name != GIT_DIR and e.is_dir()]
    except OSError as e:
        logger.debug(f"Skipping unreadable directory {path}: {e}")
        return []
    return [Path(e.path) for e in sorted(entries, key=lambda e: e.name)]


class RepositoryLister:
    """
    Restartable, lazy inventory of the repositories under a root.

    Iterating walks the filesystem afresh each time; nothing is cached.

    Example:
        for ref in RepositoryLister("~/repositories"):
            print(ref)  # github.com/grdl/git-get
    """

    def __init__(self, root: PathLike, git_client: Optional[GitBackend] = None):
        self.root = expand_root(root)
        self.git = git_client or GitClient()

    def walk(self) -> Iterator[Tuple[RepoRef, Path]]:
        """Yield (ref, path) for each repository, in walk order."""
        if not self.root.is_dir():
            logger.debug(f"Repository root {self.root} does not exist")
            return

        def descend(path: Path, depth: int) -> Iterator[Path]:
            for child in _subdirectories(path):
                if depth + 1 == LAYOUT_DEPTH:
                    yield child
                else:
                    yield from descend(child, depth + 1)

        for path in descend(self.root, 0):
            if not self.git.is_repository(path):
                logger.debug(f"Skipping {path}: no repository metadata")
                continue
            host = path.relative_to(self.root).parts[0]
            if host != host.lower():
                logger.warning(f"Skipping {path}: host directory '{host}' is not lower-case")
                continue
            ref = invert(self.root, path)
            if ref is None:
                logger.debug(f"Skipping {path}: not a valid host/owner/name path")
                continue
            yield ref, path

    def __iter__(self) -> Iterator[RepoRef]:
        for ref, _ in self.walk():
            yield ref

    def entries(self, with_status: bool = False, with_remote: bool = False) -> Iterator[RepoEntry]:
        """
        Yield RepoEntry objects, optionally enriched from git.

        Args:
            with_status: Include branch and working tree status
            with_remote: Include the origin remote URL
        """
        for ref, path in self.walk():
            yield RepoEntry(
                ref=ref,
                path=str(path),
                status=self.git.status(path) if with_status else None,
                remote_url=self.git.remote_url(path) if with_remote else None,
            )


def list_repos(root: PathLike, git_client: Optional[GitBackend] = None) -> Iterator[RepoRef]:
    """Lazily yield the RepoRef of every repository under root."""
    return iter(RepositoryLister(root, git_client))
