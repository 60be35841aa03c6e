"""Tests for the domain layer."""

import pytest

from repotree.domain import (
    GitStatus,
    RepoEntry,
    RepoRef,
    SyncAction,
    SyncOutcome,
    SyncReport,
    SyncStatus,
)


class TestRepoRef:
    """Tests for RepoRef domain object."""

    def test_str(self):
        assert str(RepoRef("github.com", "grdl", "git-get")) == "github.com/grdl/git-get"

    def test_case_insensitive_equality(self):
        assert RepoRef("github.com", "Foo", "Bar") == RepoRef("github.com", "foo", "bar")
        assert len({RepoRef("github.com", "Foo", "Bar"), RepoRef("github.com", "foo", "bar")}) == 1

    def test_url_not_part_of_identity(self):
        plain = RepoRef("github.com", "a", "b")
        with_url = RepoRef("github.com", "a", "b", url="https://github.com/a/b.git")
        assert plain == with_url
        assert with_url.url == "https://github.com/a/b.git"
        assert plain.url is None

    def test_immutable(self):
        ref = RepoRef("github.com", "a", "b")
        with pytest.raises(AttributeError):
            ref.name = "c"

    def test_to_dict(self):
        data = RepoRef("github.com", "a", "b").to_dict()
        assert data == {'ref': 'github.com/a/b', 'host': 'github.com', 'owner': 'a', 'name': 'b'}


class TestGitStatus:

    def test_labels(self):
        assert GitStatus(has_upstream=True).label == "ok"
        assert GitStatus().label == "no upstream"
        assert GitStatus(has_upstream=True, ahead=2).label == "2 ahead"
        assert GitStatus(has_upstream=True, behind=1).label == "1 behind"
        assert GitStatus(has_upstream=True, ahead=1, behind=3).label == "1 ahead 3 behind"

    def test_label_with_changes(self):
        status = GitStatus(has_upstream=True, clean=False, uncommitted=2, untracked=1)
        assert status.label == "ok [ 2 uncommitted ] [ 1 untracked ]"


class TestRepoEntry:

    def test_to_dict_with_status(self):
        entry = RepoEntry(
            ref=RepoRef("github.com", "a", "b"),
            path="/repos/github.com/a/b",
            status=GitStatus(branch="main", has_upstream=True),
            remote_url="git@github.com:a/b.git",
        )
        data = entry.to_dict()
        assert data['path'] == "/repos/github.com/a/b"
        assert data['remote_url'] == "git@github.com:a/b.git"
        assert data['status']['branch'] == "main"


class TestSyncReport:

    def _outcome(self, name, action, status, kind=None):
        return SyncOutcome(
            ref=RepoRef("github.com", "o", name),
            path=f"/repos/github.com/o/{name}",
            action=action,
            status=status,
            error_kind=kind,
            reason="boom" if kind else None,
        )

    def test_counts(self):
        report = SyncReport(outcomes=[
            self._outcome("a", SyncAction.CLONE, SyncStatus.SUCCESS),
            self._outcome("b", SyncAction.UPDATE, SyncStatus.SUCCESS),
            self._outcome("c", SyncAction.CLONE, SyncStatus.FAILED, "CloneFailed"),
        ])
        assert report.total == 3
        assert report.cloned == 1
        assert report.updated == 1
        assert report.failed == 1
        assert report.succeeded == 2
        assert not report.success
        assert [o.ref.name for o in report.failures] == ["c"]

    def test_outcome_to_dict(self):
        data = self._outcome("c", SyncAction.CLONE, SyncStatus.FAILED, "CloneFailed").to_dict()
        assert data['status'] == "failed"
        assert data['action'] == "clone"
        assert data['error_kind'] == "CloneFailed"
        assert data['reason'] == "boom"

    def test_summary_dict(self):
        assert SyncReport(dry_run=True).to_dict() == {
            'type': 'summary', 'total': 0, 'cloned': 0, 'updated': 0, 'failed': 0, 'dry_run': True,
        }
