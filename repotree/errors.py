"""
Error taxonomy for repotree.

Two families:
- ParseError: a user-supplied reference could not be turned into a RepoRef.
  Raised by the parser and surfaced immediately for that reference only.
- GitError: a clone or update of one repository failed. Raised by the git
  backend and captured per task by the sync service, never propagated as a
  crash of the whole run.

Configuration-level problems use ConfigError from exit_codes, since they
map directly to a process exit status.
"""

from typing import Optional


class ParseError(ValueError):
    """A remote reference could not be parsed."""

    kind = "ParseError"

    def __init__(self, message: str, reference: Optional[str] = None):
        super().__init__(message)
        self.reference = reference


class MalformedReferenceError(ParseError):
    """Too few segments, unsupported scheme, or otherwise unparseable input."""

    kind = "Malformed"


class InvalidSegmentError(ParseError):
    """A host/owner/name segment is empty, a relative token, or unsafe."""

    kind = "InvalidSegment"

    def __init__(self, message: str, reference: Optional[str] = None,
                 segment: Optional[str] = None):
        super().__init__(message, reference)
        self.segment = segment


class GitError(Exception):
    """
    A git operation on one repository failed.

    Attributes:
        path: Target path of the operation
        reason: Underlying git output (stderr), kept verbatim for diagnosis
    """

    kind = "GitError"

    def __init__(self, reason: str, path: Optional[str] = None):
        super().__init__(reason)
        self.reason = reason
        self.path = path


class CloneFailedError(GitError):
    kind = "CloneFailed"


class FetchFailedError(GitError):
    kind = "FetchFailed"


class NotARepositoryError(GitError):
    """The target path exists but holds no valid repository metadata."""

    kind = "NotARepository"


class GitTimeoutError(GitError):
    """The git subprocess exceeded the per-task timeout and was killed."""

    kind = "Timeout"

    def __init__(self, reason: str, path: Optional[str] = None,
                 timeout: Optional[float] = None):
        super().__init__(reason, path)
        self.timeout = timeout


class GitInterruptedError(GitError):
    """The git subprocess was terminated because the run was cancelled."""

    kind = "Interrupted"
