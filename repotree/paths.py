"""
Path resolution for repotree.

Maps a RepoRef to its place under the root and back:

    resolve(root, RepoRef("github.com", "grdl", "git-get"))
        -> root/github.com/grdl/git-get

    invert(root, root/github.com/grdl/git-get)
        -> RepoRef("github.com", "grdl", "git-get")

resolve() and invert() never touch the filesystem. The directory tree under
the root is the only index repotree keeps.
"""

import logging
import os
from pathlib import Path
from typing import Optional, Union

from .domain.ref import RepoRef
from .errors import InvalidSegmentError
from .exit_codes import ConfigError
from .parser import validate_segment

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]

# host/owner/name
LAYOUT_DEPTH = 3


def expand_root(root: PathLike) -> Path:
    """Expand ~ and environment variables in a configured root."""
    return Path(os.path.expandvars(os.path.expanduser(str(root))))


def resolve(root: PathLike, ref: RepoRef) -> Path:
    """
    Get the directory a repository lives in.

    Args:
        root: Root directory where repositories are stored
        ref: Repository reference

    Returns:
        root/host/owner/name
    """
    return Path(root).joinpath(*ref.segments)


def invert(root: PathLike, path: PathLike) -> Optional[RepoRef]:
    """
    Reconstruct the RepoRef for a directory under the root.

    Args:
        root: Root directory where repositories are stored
        path: Repository directory

    Returns:
        RepoRef, or None when the path is not a valid host/owner/name
        below the root. Host directories must be lower-case, because
        resolve() only ever produces lower-case hosts.
    """
    try:
        relative = Path(path).relative_to(Path(root))
    except ValueError:
        return None

    parts = relative.parts
    if len(parts) != LAYOUT_DEPTH:
        return None

    host, owner, name = parts
    try:
        for segment, role in zip(parts, ("host", "owner", "name")):
            validate_segment(segment, role, str(relative))
    except InvalidSegmentError:
        return None

    if host != host.lower():
        return None

    return RepoRef(host=host, owner=owner, name=name)


def ensure_root(root: PathLike) -> Path:
    """
    Make sure the root exists and is a writable directory.

    Called once before any sync task is dispatched, so a bad root stops the
    run instead of failing every task.

    Raises:
        ConfigError: if the root cannot be created or written to
    """
    path = expand_root(root)
    if path.exists() and not path.is_dir():
        raise ConfigError(f"Repository root is not a directory: {path}")

    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ConfigError(f"Cannot create repository root {path}: {e}") from e

    if not os.access(path, os.W_OK | os.X_OK):
        raise ConfigError(f"Repository root is not writable: {path}")

    logger.debug(f"Using repository root {path}")
    return path
