"""
Tests for repotree/render.py rendering functions.

These tests verify that render functions handle empty data, calculate
summaries correctly, and produce the expected output patterns.
"""
from repotree import render
from repotree.domain.ref import GitStatus, RepoEntry, RepoRef
from repotree.domain.sync import SyncAction, SyncOutcome, SyncReport, SyncStatus


def outcome(name, action=SyncAction.CLONE, status=SyncStatus.SUCCESS, kind=None):
    return SyncOutcome(
        ref=RepoRef("github.com", "o", name),
        path=f"/r/github.com/o/{name}",
        action=action,
        status=status,
        error_kind=kind,
    )


class TestRenderSyncTable:

    def test_empty_report(self, capsys):
        render.render_sync_table(SyncReport())
        assert "No operations performed" in capsys.readouterr().out

    def test_summary_counts(self, capsys):
        report = SyncReport(outcomes=[
            outcome("a"),
            outcome("b", SyncAction.UPDATE),
            outcome("c", status=SyncStatus.FAILED, kind="CloneFailed"),
        ])
        render.render_sync_table(report)
        out = capsys.readouterr().out
        assert "Total repositories: 3" in out
        assert "Cloned: 1" in out
        assert "Updated: 1" in out
        assert "Failed: 1" in out

    def test_dry_run_title(self, capsys):
        report = SyncReport(outcomes=[outcome("a", status=SyncStatus.DRY_RUN)], dry_run=True)
        render.render_sync_table(report)
        assert "Dry Run" in capsys.readouterr().out


class TestPrintSyncSummary:

    def test_nothing_for_empty_report(self, capsys):
        render.print_sync_summary(SyncReport())
        assert capsys.readouterr().out == ""


class TestRenderTree:

    def test_tree_groups_by_host_and_owner(self, capsys):
        entries = [
            RepoEntry(RepoRef("github.com", "alpha", "lib"), "/r/github.com/alpha/lib"),
            RepoEntry(RepoRef("github.com", "alpha", "tool"), "/r/github.com/alpha/tool"),
            RepoEntry(RepoRef("gitlab.com", "group", "project"), "/r/gitlab.com/group/project"),
        ]
        render.render_tree(entries, "/r")
        out = capsys.readouterr().out
        assert out.count("github.com") == 1
        assert out.count("alpha") == 1
        assert "project" in out

    def test_tree_with_status(self, capsys):
        entry = RepoEntry(
            RepoRef("github.com", "a", "b"), "/r/github.com/a/b",
            status=GitStatus(branch="main", has_upstream=True, clean=False, uncommitted=1),
        )
        render.render_tree([entry], "/r")
        out = capsys.readouterr().out
        assert "main" in out
        assert "[ 1 uncommitted ]" in out

    def test_empty_tree_prints_nothing(self, capsys):
        render.render_tree([], "/r")
        assert capsys.readouterr().out == ""
