"""
Reference parser for repotree.

Turns the many ways people write down a remote repository into a canonical
RepoRef:

    github.com/grdl/git-get
    grdl/git-get                           (host from configuration)
    https://github.com/grdl/git-get.git
    ssh://git@github.com:22/grdl/git-get
    git@github.com:grdl/git-get.git

Parsing happens in two steps. classify() decides which form the input is
in, then one handler per form extracts the segments. Each handler is a
plain function so every form can be tested on its own.
"""

import os
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Tuple, Union
from urllib.parse import urlsplit, urlunsplit

from .domain.ref import RepoRef
from .errors import ParseError, MalformedReferenceError, InvalidSegmentError

DEFAULT_HOST = "github.com"
SUPPORTED_SCHEMES = ("https", "http", "ssh", "git", "git+ssh")

_SCHEME_RE = re.compile(r"^(?P<scheme>[A-Za-z][A-Za-z0-9+.\-]*)://")
# [user@]host:path, where the colon comes before any slash
_SCP_RE = re.compile(r"^(?:(?P<user>[^@/:\s]+)@)?(?P<host>[^@/:\s]+):(?P<path>.+)$")
_HOST_RE = re.compile(r"^[A-Za-z0-9_.\-]+$")
_RESERVED_SEGMENTS = (".", "..")
_FORBIDDEN_CHARS = {"\\", "\0"} | {s for s in (os.sep, os.altsep) if s}


class RefForm(Enum):
    """Input forms understood by the parser."""
    URL = "url"              # scheme://[user@]host[:port]/owner/name
    SCP = "scp"              # [user@]host:owner/name
    HOST_PATH = "host_path"  # host/owner/name
    SHORTHAND = "shorthand"  # owner/name


def _normalize(text: str) -> str:
    """Strip whitespace and trailing slashes.

    A trailing .git belongs to the name segment and is removed by the
    handlers, so it never changes how many segments the input has.
    """
    return text.strip().rstrip("/")


def classify(text: str) -> RefForm:
    """
    Decide which form a reference is written in.

    Raises:
        MalformedReferenceError: for empty input or a single bare segment
    """
    normalized = _normalize(text)
    if not normalized:
        raise MalformedReferenceError("Empty repository reference", text)

    if _SCHEME_RE.match(normalized):
        return RefForm.URL
    if _SCP_RE.match(normalized):
        return RefForm.SCP
    if "/" in normalized:
        if len(normalized.split("/")) == 2:
            return RefForm.SHORTHAND
        return RefForm.HOST_PATH

    raise MalformedReferenceError(
        f"Invalid repository reference '{text}': expected owner/name, "
        f"host/owner/name or a URL",
        text,
    )


def validate_segment(segment: str, role: str, reference: Optional[str] = None) -> str:
    """
    Check that a segment is safe to use as a single directory name.

    Args:
        segment: The host, owner or name value
        role: Which segment this is, used in the error message
        reference: The original input, for error reporting

    Returns:
        The segment unchanged

    Raises:
        InvalidSegmentError: if the segment is empty, '.', '..', or contains a
            path separator or NUL byte
    """
    if not segment:
        raise InvalidSegmentError(f"Empty {role} in '{reference}'", reference, segment)
    if segment in _RESERVED_SEGMENTS:
        raise InvalidSegmentError(
            f"Invalid {role} '{segment}' in '{reference}'", reference, segment
        )
    if any(ch in segment for ch in _FORBIDDEN_CHARS) or "/" in segment:
        raise InvalidSegmentError(
            f"{role.capitalize()} '{segment}' in '{reference}' contains a path separator",
            reference, segment,
        )
    return segment


def _strip_git_suffix(name: str) -> str:
    return name[:-4] if name.endswith(".git") else name


def _drop_root(path: str) -> str:
    return path[1:] if path.startswith("/") else path


def _split_path(path: str, reference: str) -> Tuple[str, str]:
    """Return (owner, name) from a relative path; extra segments are ignored."""
    if not path:
        raise MalformedReferenceError(f"Missing owner/name in '{reference}'", reference)
    segments = path.split("/")
    if len(segments) < 2:
        raise MalformedReferenceError(
            f"Missing repository name in '{reference}'", reference
        )
    return segments[0], _strip_git_suffix(segments[1])


def _build_ref(host: str, owner: str, name: str, reference: str,
               url: Optional[str] = None) -> RepoRef:
    host = validate_segment(host, "host", reference).lower()
    if not _HOST_RE.match(host):
        raise InvalidSegmentError(f"Invalid host '{host}' in '{reference}'", reference, host)
    owner = validate_segment(owner, "owner", reference)
    name = validate_segment(name, "name", reference)
    return RepoRef(host=host, owner=owner, name=name, url=url)


def _parse_url(text: str, reference: str, default_host: str) -> RepoRef:
    parts = urlsplit(text)
    scheme = parts.scheme.lower()
    if scheme not in SUPPORTED_SCHEMES:
        raise MalformedReferenceError(
            f"Unsupported URL scheme '{parts.scheme}' in '{reference}'", reference
        )
    try:
        host = parts.hostname
    except ValueError as e:
        raise MalformedReferenceError(f"Invalid URL '{reference}': {e}", reference) from e
    if not host:
        raise MalformedReferenceError(f"Missing host in '{reference}'", reference)

    owner, name = _split_path(_drop_root(parts.path), reference)
    url = urlunsplit((scheme, parts.netloc, f"/{owner}/{name}.git", "", ""))
    return _build_ref(host, owner, name, reference, url)


def _parse_scp(text: str, reference: str, default_host: str) -> RepoRef:
    match = _SCP_RE.match(text)
    if match is None:  # classify() guarantees a match
        raise MalformedReferenceError(f"Invalid SSH reference '{reference}'", reference)
    user, host, path = match.group("user"), match.group("host"), match.group("path")

    owner, name = _split_path(_drop_root(path), reference)
    prefix = f"{user}@" if user else ""
    url = f"{prefix}{host}:{owner}/{name}.git"
    return _build_ref(host, owner, name, reference, url)


def _parse_host_path(text: str, reference: str, default_host: str) -> RepoRef:
    host, rest = text.split("/", 1)
    owner, name = _split_path(rest, reference)
    return _build_ref(host, owner, name, reference)


def _parse_shorthand(text: str, reference: str, default_host: str) -> RepoRef:
    if not default_host:
        raise MalformedReferenceError(
            f"'{reference}' has no host and no default host is configured", reference
        )
    owner, name = text.split("/", 1)
    return _build_ref(default_host, owner, _strip_git_suffix(name), reference)


_HANDLERS: Dict[RefForm, Callable[[str, str, str], RepoRef]] = {
    RefForm.URL: _parse_url,
    RefForm.SCP: _parse_scp,
    RefForm.HOST_PATH: _parse_host_path,
    RefForm.SHORTHAND: _parse_shorthand,
}


def parse(text: str, default_host: str = DEFAULT_HOST) -> RepoRef:
    """
    Parse a remote reference into a RepoRef.

    Args:
        text: Reference as typed by the user
        default_host: Host used for bare owner/name input

    Returns:
        Canonical RepoRef. For URL and SSH input, ref.url holds the clone URL
        derived from the input.

    Raises:
        MalformedReferenceError: too few segments or unsupported scheme
        InvalidSegmentError: a segment is empty, '.', '..' or has a separator
    """
    form = classify(text)
    return _HANDLERS[form](_normalize(text), text, default_host)


def parse_many(texts: Iterable[str],
               default_host: str = DEFAULT_HOST) -> Iterator[Tuple[str, Union[RepoRef, ParseError]]]:
    """
    Parse several references without stopping at the first bad one.

    Yields:
        (text, RepoRef) for good input, (text, ParseError) for bad input
    """
    for text in texts:
        try:
            yield text, parse(text, default_host)
        except ParseError as e:
            yield text, e


def clone_url(ref: RepoRef, scheme: str = "ssh") -> str:
    """
    Build the URL to clone a repository from.

    An explicit URL from the user wins. Otherwise the URL is built from the
    triple using the preferred scheme ('ssh' or 'https').
    """
    if ref.url:
        return ref.url
    if scheme == "ssh":
        return f"git@{ref.host}:{ref.owner}/{ref.name}.git"
    if scheme == "https":
        return f"https://{ref.host}/{ref.owner}/{ref.name}.git"
    raise ValueError(f"Unknown clone scheme: {scheme}")


@dataclass(frozen=True)
class DumpEntry:
    """One line of a dump file: a reference and an optional branch."""
    line_no: int
    reference: str
    branch: Optional[str] = None


def parse_dump(lines: Iterable[str]) -> List[DumpEntry]:
    """
    Read repository references from dump file lines.

    Each non-empty line holds a reference, optionally followed by a branch
    name. Lines starting with '#' are comments. This is the format
    `list --output dump` writes.

    Returns:
        List of DumpEntry in file order, with 1-based line numbers
    """
    entries = []
    for line_no, line in enumerate(lines, 1):
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        parts = line.split()
        branch = parts[1] if len(parts) > 1 else None
        entries.append(DumpEntry(line_no=line_no, reference=parts[0], branch=branch))
    return entries
