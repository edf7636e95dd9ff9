"""Tests for review session state transitions."""

import pytest

from reviewsync.diff_hunk import MalformedDiffError, parse_diff_hunks
from reviewsync.models import NO_POSITION, Comment, FileChange, GitChangeType, PullRequest, ResourceId
from reviewsync.session import ReviewSession

APP_PATCH = "@@ -1,2 +1,2 @@\n a\n-b\n+B\n@@ -10,2 +10,3 @@\n x\n+y\n z"
LINES_ADDED_AT_TOP = "@@ -0,0 +1,2 @@\n+h1\n+h2"


def make_pr(**overrides) -> PullRequest:
    base = {
        "number": 42,
        "title": "Add y",
        "author_login": "octocat",
        "state": "open",
        "head_sha": "head111",
        "head_ref": "feature",
        "base_sha": "base000",
        "base_ref": "main",
    }
    base.update(overrides)
    return PullRequest(**base)


def make_comment(**overrides) -> Comment:
    base = {
        "id": 1,
        "path": "app.py",
        "position": 5,
        "original_position": 5,
        "original_commit_id": "head111",
        "diff_hunk": "@@ -10,1 +10,1 @@\n x",
        "body": "why x?",
        "author": "reviewer",
    }
    base.update(overrides)
    return Comment(**base)


def make_file_change(**overrides) -> FileChange:
    base = {
        "file_name": "app.py",
        "status": GitChangeType.MODIFY,
        "diff_hunks": tuple(parse_diff_hunks(APP_PATCH)),
        "base_ref": "base000",
        "head_ref": "head111",
    }
    base.update(overrides)
    return FileChange(**base)


OUTDATED = {
    "id": 9,
    "position": None,
    "original_position": 3,
    "original_commit_id": "old999",
    "diff_hunk": "@@ -1,3 +1,3 @@\n a\n b\n c",
}


class TestReviewSession:
    @pytest.fixture
    def session(self):
        session = ReviewSession()
        session.load(make_pr(), [make_file_change()], [make_comment(), make_comment(**OUTDATED)])
        return session

    def test_inactive_until_loaded(self):
        session = ReviewSession()
        assert session.is_active is False
        assert session.threads() == []

    def test_load(self, session):
        assert session.is_active
        assert session.last_commit_sha == "head111"
        classification = session.classification()
        assert [c.id for c in classification.active_comments] == [1]
        assert [c.id for c in classification.outdated_comments] == [9]
        assert [fc.head_ref for fc in session.obsolete_file_changes] == ["old999"]

    def test_load_other_pull_request_clears(self, session):
        session.update_message_shown = True
        session.load(make_pr(number=7), [], [])
        assert session.comments == []
        assert session.update_message_shown is False
        assert session.pull_request.number == 7

    def test_clear(self, session):
        session.clear()
        assert not session.is_active
        assert session.file_changes == {}

    def test_sync_without_changes(self, session):
        comments = session.comments
        result = session.sync(make_pr(), list(comments))
        assert not result.delta
        assert result.update_available is False
        assert session.comments == comments

    def test_sync_new_comment(self, session):
        current = [*session.comments, make_comment(id=10, position=6, body="and y?")]
        result = session.sync(make_pr(), current)
        assert [t.thread_id for t in result.delta.added] == [10]
        assert result.delta.added[0].collapsed is True
        assert [c.id for c in session.comments] == [1, 9, 10]

    def test_update_notice_shown_once(self, session):
        moved = make_pr(head_sha="head222")
        assert session.sync(moved, session.comments).update_available is True
        assert session.sync(moved, session.comments).update_available is False

        session.acknowledge_update()
        assert session.sync(moved, session.comments).update_available is True

    def test_reload_resets_synced_commit(self, session):
        moved = make_pr(head_sha="head222")
        session.sync(moved, session.comments)
        session.load(moved, [make_file_change(head_ref="head222")], session.comments)
        assert session.last_commit_sha == "head222"
        assert session.sync(moved, session.comments).update_available is False

    def test_working_file_view(self, session):
        view = session.working_file_view("app.py", LINES_ADDED_AT_TOP)
        assert [(t.thread_id, t.anchor_line) for t in view.threads] == [(1, 12)]
        assert view.threads[0].resource == ResourceId(scheme="file", path="app.py")
        assert view.threads[0].collapsed is True
        assert view.commenting_ranges == [(3, 4), (12, 14)]

    def test_working_file_view_unknown_path(self, session):
        view = session.working_file_view("README.md", "")
        assert view.threads == []
        assert view.commenting_ranges == []

    def test_working_file_view_malformed_transition(self, session):
        with pytest.raises(MalformedDiffError):
            session.working_file_view("app.py", "not a diff")

    def test_position_for_new_comment(self, session):
        assert session.position_for_new_comment("app.py", 11) == 6
        assert session.position_for_new_comment("app.py", 13, LINES_ADDED_AT_TOP) == 6
        assert session.position_for_new_comment("app.py", 5) == NO_POSITION
        assert session.position_for_new_comment("other.py", 1) == NO_POSITION

    def test_files_with_comments(self, session):
        assert session.files_with_comments() == {"app.py"}

    def test_file_content(self, session):
        assert session.file_content("app.py", "head111") == "a\nB\nx\ny\nz"
        assert session.file_content("app.py", "base000") == "a\nb\nx\nz"
        assert session.file_content("app.py", "old999") == "a\nb\nc"
        assert session.file_content("app.py", "unknown") is None
        assert session.file_content("app.py", "old999^") == "a\nb\nc"

    def test_sync_stores_moved_positions(self, session):
        moved = [make_comment(position=6), make_comment(**OUTDATED)]
        result = session.sync(make_pr(), moved)
        assert not result.delta
        assert [c.position for c in session.comments] == [6, None]
        view = session.working_file_view("app.py", "")
        assert [(t.thread_id, t.anchor_line) for t in view.threads] == [(1, 11)]

    def test_sync_skips_file_with_broken_hunk(self, session):
        broken = make_comment(id=20, path="g.py", position=None, diff_hunk="not a diff")
        current = [make_comment(body="why not x?"), make_comment(**OUTDATED), broken]
        result = session.sync(make_pr(), current)
        assert [t.thread_id for t in result.delta.changed] == [1]
        assert result.delta.skipped_paths == ["g.py"]
        assert [c.id for c in session.comments] == [1, 9]
        assert session.comments[0].body == "why not x?"

    def test_load_with_broken_hunk(self):
        session = ReviewSession()
        broken = make_comment(id=20, path="g.py", position=None, diff_hunk="not a diff")
        classification = session.load(make_pr(), [make_file_change()], [make_comment(), broken])
        assert [c.id for c in classification.active_comments] == [1]
        assert classification.outdated == []
        assert [t.thread_id for t in session.threads()] == [1]

    def test_outdated_file_content_joins_threads(self):
        session = ReviewSession()
        outdated = [
            make_comment(**{**OUTDATED, "id": 30, "original_position": 8, "diff_hunk": "@@ -20,1 +20,1 @@\n second"}),
            make_comment(**{**OUTDATED, "id": 31, "original_position": 2, "diff_hunk": "@@ -1,2 +1,1 @@\n first\n-gone"}),
        ]
        session.load(make_pr(), [make_file_change()], outdated)
        assert len(session.obsolete_file_changes) == 1
        assert session.file_content("app.py", "old999") == "first\nsecond"
        assert session.file_content("app.py", "old999^") == "first\ngone\nsecond"
        assert session.classification().line_for(30) == 20
        assert session.classification().line_for(31) == 1
