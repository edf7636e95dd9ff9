"""Tests for Pydantic models."""

import pytest
from pydantic import ValidationError

from reviewsync.models import (
    DELETED_LINE,
    NO_POSITION,
    Comment,
    DiffChangeType,
    DiffHunk,
    DiffLine,
    FileChange,
    GitChangeType,
    ResourceId,
)


class TestDiffLine:
    def test_context_line(self):
        line = DiffLine(type=DiffChangeType.CONTEXT, text="x = 1", old_line_number=3, new_line_number=4)
        assert line.raw == " x = 1"

    def test_added_line(self):
        line = DiffLine(type=DiffChangeType.ADD, text="y", new_line_number=5)
        assert line.raw == "+y"
        assert line.old_line_number is None

    def test_deleted_line_with_new_number_rejected(self):
        with pytest.raises(ValidationError):
            DiffLine(type=DiffChangeType.DELETE, text="z", old_line_number=2, new_line_number=2)

    def test_added_line_with_old_number_rejected(self):
        with pytest.raises(ValidationError):
            DiffLine(type=DiffChangeType.ADD, text="z", old_line_number=2, new_line_number=2)

    def test_context_line_needs_both(self):
        with pytest.raises(ValidationError):
            DiffLine(type=DiffChangeType.CONTEXT, text="z", old_line_number=2)

    def test_frozen(self):
        line = DiffLine(type=DiffChangeType.ADD, text="y", new_line_number=5)
        with pytest.raises(ValidationError):
            line.text = "changed"


class TestDiffHunk:
    def test_ends(self):
        hunk = DiffHunk(old_start=10, old_length=3, new_start=10, new_length=4)
        assert hunk.old_end == 12
        assert hunk.new_end == 13
        assert hunk.lines == ()


class TestComment:
    def make(self, **overrides) -> Comment:
        base = {
            "id": 1,
            "path": "app.py",
            "position": 4,
            "original_position": 2,
            "original_commit_id": "abc123",
            "diff_hunk": "@@ -1 +1 @@\n a",
            "body": "nit",
            "author": "octocat",
        }
        base.update(overrides)
        return Comment(**base)

    def test_anchor_position(self):
        assert self.make().anchor_position == 4
        assert self.make(position=None).anchor_position == 2

    def test_outdated(self):
        assert self.make(position=None).is_outdated
        assert not self.make().is_outdated

    def test_position_required(self):
        with pytest.raises(ValidationError):
            Comment(
                id=1,
                path="a",
                original_position=1,
                original_commit_id="c",
                diff_hunk="",
                body="",
                author="a",
            )


class TestFileChange:
    def test_defaults(self):
        fc = FileChange(file_name="a.py", status=GitChangeType.ADD, base_ref="", head_ref="h")
        assert fc.diff_hunks == ()
        assert fc.previous_file_name is None


class TestResourceId:
    def test_equality_and_hash(self):
        a = ResourceId(scheme="review", path="a.py", commit="c1")
        b = ResourceId(scheme="review", path="a.py", commit="c1")
        assert a == b
        assert len({a, b}) == 1
        assert not a.is_working_file

    def test_invalid_scheme(self):
        with pytest.raises(ValidationError):
            ResourceId(scheme="http", path="a.py")


def test_sentinels():
    assert NO_POSITION == -1
    assert DELETED_LINE == 0
