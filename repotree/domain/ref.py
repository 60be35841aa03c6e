"""
Repository reference domain objects for repotree.

RepoRef is the canonical host/owner/name triple that identifies a repository
within repotree. It is an immutable value: recomputed from user input or from
the directory tree on every invocation, never persisted.
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, Any, Tuple


@dataclass(frozen=True, eq=False)
class RepoRef:
    """
    Canonical reference to a hosted git repository.

    Hosts are stored lower-cased. Owner and name keep the case the user gave
    them, but two refs that differ only in case compare equal and hash the
    same, so duplicates collapse when refs are put in a set or dict.

    The optional url is the clone URL the user typed (https, ssh, ...). It is
    not part of the identity of the ref.

    Example:
        ref = RepoRef("github.com", "grdl", "git-get")
        str(ref)  # "github.com/grdl/git-get"
    """

    host: str
    owner: str
    name: str
    url: Optional[str] = field(default=None, compare=False)

    @property
    def key(self) -> Tuple[str, str, str]:
        """Case-insensitive identity used for equality and de-duplication."""
        return (self.host.lower(), self.owner.lower(), self.name.lower())

    @property
    def segments(self) -> Tuple[str, str, str]:
        """Directory names under the root, outermost first."""
        return (self.host, self.owner, self.name)

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'ref': str(self),
            'host': self.host,
            'owner': self.owner,
            'name': self.name,
        }
        if self.url:
            result['url'] = self.url
        return result

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RepoRef):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)

    def __str__(self) -> str:
        return f"{self.host}/{self.owner}/{self.name}"

    def __repr__(self) -> str:
        return f"RepoRef(host={self.host!r}, owner={self.owner!r}, name={self.name!r})"


@dataclass(frozen=True)
class GitStatus:
    """Working tree and upstream status of a managed repository."""
    branch: str = "HEAD"
    clean: bool = True
    ahead: int = 0
    behind: int = 0
    has_upstream: bool = False
    uncommitted: int = 0
    untracked: int = 0

    @property
    def label(self) -> str:
        """Short status text as shown by `list --output tree`."""
        if not self.has_upstream:
            sync = "no upstream"
        elif self.ahead and self.behind:
            sync = f"{self.ahead} ahead {self.behind} behind"
        elif self.ahead:
            sync = f"{self.ahead} ahead"
        elif self.behind:
            sync = f"{self.behind} behind"
        else:
            sync = "ok"

        parts = [sync]
        if self.uncommitted:
            parts.append(f"[ {self.uncommitted} uncommitted ]")
        if self.untracked:
            parts.append(f"[ {self.untracked} untracked ]")
        return " ".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'branch': self.branch,
            'clean': self.clean,
            'ahead': self.ahead,
            'behind': self.behind,
            'has_upstream': self.has_upstream,
            'uncommitted': self.uncommitted,
            'untracked': self.untracked,
        }


@dataclass(frozen=True)
class RepoEntry:
    """A repository found under the root by the lister."""
    ref: RepoRef
    path: str
    status: Optional[GitStatus] = None
    remote_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = self.ref.to_dict()
        result['path'] = self.path
        if self.remote_url:
            result['remote_url'] = self.remote_url
        if self.status:
            result['status'] = self.status.to_dict()
        return result
