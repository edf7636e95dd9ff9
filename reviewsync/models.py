"""Pydantic models for diffs, review comments and coordinate spaces.

Line numbers on each axis get their own NewType so a head line is never
passed where a diff position or a buffer line is expected:

- DiffPosition: 1-based ordinal over a file's diff, assigned by the host
- HeadLine: line in the commit the pull request diff describes
- BufferLine: line in the local working copy (possibly dirty)
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal, NewType

from pydantic import BaseModel, ConfigDict, model_validator

DiffPosition = NewType("DiffPosition", int)
HeadLine = NewType("HeadLine", int)
BufferLine = NewType("BufferLine", int)

# Sentinels for "no anchor". Callers must check before using as editor lines.
NO_POSITION = DiffPosition(-1)
DELETED_LINE = 0


class DiffChangeType(str, Enum):
    CONTEXT = "context"
    ADD = "add"
    DELETE = "delete"


class GitChangeType(str, Enum):
    ADD = "add"
    DELETE = "delete"
    MODIFY = "modify"
    RENAME = "rename"


DIFF_MARKERS = {
    DiffChangeType.CONTEXT: " ",
    DiffChangeType.ADD: "+",
    DiffChangeType.DELETE: "-",
}


class DiffLine(BaseModel):
    """One line of a hunk, with its line numbers on both sides."""

    model_config = ConfigDict(frozen=True)

    type: DiffChangeType
    text: str
    old_line_number: int | None = None
    new_line_number: int | None = None

    @model_validator(mode="after")
    def _check_line_numbers(self) -> DiffLine:
        has_old = self.old_line_number is not None
        has_new = self.new_line_number is not None
        if self.type == DiffChangeType.CONTEXT and not (has_old and has_new):
            raise ValueError("context lines need both old and new line numbers")
        if self.type == DiffChangeType.ADD and (has_old or not has_new):
            raise ValueError("added lines only have a new line number")
        if self.type == DiffChangeType.DELETE and (has_new or not has_old):
            raise ValueError("deleted lines only have an old line number")
        return self

    @property
    def raw(self) -> str:
        """The line as it appears in a unified diff."""
        return DIFF_MARKERS[self.type] + self.text


class DiffHunk(BaseModel):
    """A contiguous block of a unified diff."""

    model_config = ConfigDict(frozen=True)

    old_start: int
    old_length: int
    new_start: int
    new_length: int
    lines: tuple[DiffLine, ...] = ()

    @property
    def old_end(self) -> int:
        """Last old-side line covered by this hunk."""
        return self.old_start + self.old_length - 1

    @property
    def new_end(self) -> int:
        """Last new-side line covered by this hunk."""
        return self.new_start + self.new_length - 1


class Comment(BaseModel):
    """Inline review comment as delivered by the comment source.

    `position` is None once the host no longer finds the commented line in
    the current diff. `original_position` and `diff_hunk` describe the file
    when the comment was written and never change.
    """

    model_config = ConfigDict(frozen=True)

    id: int
    path: str
    position: int | None
    original_position: int
    original_commit_id: str
    diff_hunk: str
    body: str
    author: str
    commit_id: str | None = None
    in_reply_to_id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_outdated(self) -> bool:
        return self.position is None

    @property
    def anchor_position(self) -> int:
        """Position used to place the comment: current if any, else original."""
        return self.position if self.position is not None else self.original_position


class FileChange(BaseModel):
    """A file touched by the pull request, with its base..head hunks."""

    model_config = ConfigDict(frozen=True)

    file_name: str
    status: GitChangeType
    diff_hunks: tuple[DiffHunk, ...] = ()
    base_ref: str
    head_ref: str
    previous_file_name: str | None = None
    blob_url: str | None = None


class ResourceId(BaseModel):
    """Default file identity token used as a thread's resource.

    `file` resources are the live working copy; `review` resources are a
    file at a given commit.
    """

    model_config = ConfigDict(frozen=True)

    scheme: Literal["file", "review"]
    path: str
    commit: str | None = None

    @property
    def is_working_file(self) -> bool:
        return self.scheme == "file"


class PullRequest(BaseModel):
    """Pull request summary."""

    number: int
    title: str
    author_login: str
    state: str
    head_sha: str
    head_ref: str
    base_sha: str
    base_ref: str
    html_url: str | None = None
    draft: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None
