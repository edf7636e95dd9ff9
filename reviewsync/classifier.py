"""Split review comments into active and outdated groups and find their lines."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum

from .diff_hunk import MalformedDiffError, parse_patch_cached
from .models import DELETED_LINE, Comment, DiffHunk, FileChange, HeadLine
from .position_mapping import hunk_position_to_last_line, hunk_position_to_new_line


class OutdatedReason(Enum):
    POSITION_CLEARED = "position_cleared"  # host reports position=None
    LINE_DELETED = "line_deleted"  # host still has a position, current diff does not
    UNKNOWN_FILE = "unknown_file"  # path not in the current file change set


@dataclass(frozen=True)
class ActiveComment:
    """Comment anchored on the current head."""

    comment: Comment
    line: HeadLine


@dataclass
class OutdatedThread:
    """Outdated comments written at one original position, with their own anchor."""

    original_position: int
    comments: list[Comment] = field(default_factory=list)
    anchor_line: int = DELETED_LINE


@dataclass
class OutdatedGroup:
    """Outdated comments of one file as of one original commit.

    They can only be shown against their frozen diff_hunks, so comments are
    sub-grouped by original position, each anchored on the last line of its
    own hunk.
    """

    commit_id: str
    path: str
    threads: list[OutdatedThread] = field(default_factory=list)
    reasons: set[OutdatedReason] = field(default_factory=set)

    @property
    def comments(self) -> list[Comment]:
        return [c for thread in self.threads for c in thread.comments]

    @property
    def is_unknown_file(self) -> bool:
        return OutdatedReason.UNKNOWN_FILE in self.reasons

    @property
    def diff_hunks(self) -> list[DiffHunk]:
        """Frozen hunks of every thread, ordered by original position."""
        ordered = sorted(self.threads, key=lambda t: t.original_position)
        return [hunk for thread in ordered for hunk in parse_patch_cached(thread.comments[0].diff_hunk)]

    def add(self, comment: Comment, reason: OutdatedReason) -> None:
        """Raises MalformedDiffError if a new thread's frozen hunk cannot be parsed."""
        for thread in self.threads:
            if thread.original_position == comment.original_position:
                break
        else:
            thread = OutdatedThread(
                original_position=comment.original_position,
                anchor_line=frozen_anchor_line(comment),
            )
            self.threads.append(thread)
        thread.comments.append(comment)
        self.reasons.add(reason)


@dataclass
class Classification:
    active: list[ActiveComment] = field(default_factory=list)
    outdated: list[OutdatedGroup] = field(default_factory=list)

    @property
    def active_comments(self) -> list[Comment]:
        return [a.comment for a in self.active]

    @property
    def outdated_comments(self) -> list[Comment]:
        return [c for group in self.outdated for c in group.comments]

    @property
    def unknown_file(self) -> list[OutdatedGroup]:
        return [group for group in self.outdated if group.is_unknown_file]

    def line_for(self, comment_id: int) -> int:
        """Display line of a comment, DELETED_LINE if it is unknown."""
        for active in self.active:
            if active.comment.id == comment_id:
                return active.line
        for group in self.outdated:
            for thread in group.threads:
                if any(c.id == comment_id for c in thread.comments):
                    return thread.anchor_line
        return DELETED_LINE


def frozen_anchor_line(comment: Comment) -> int:
    """Line a comment pointed at when written, from its frozen diff_hunk.

    Falls back to the nearest preceding head-side line when the commented
    line is a deletion. DELETED_LINE if the hunk has no head-side line.

    Raises:
        MalformedDiffError: if the frozen diff_hunk cannot be parsed.
    """
    hunks = parse_patch_cached(comment.diff_hunk)
    last = hunk_position_to_last_line(hunks)
    if last is None:
        return DELETED_LINE
    if last.new_line_number is not None:
        return last.new_line_number

    for hunk in reversed(hunks):
        for line in reversed(hunk.lines):
            if line.new_line_number is not None:
                return line.new_line_number
    return DELETED_LINE


def index_file_changes(file_changes: Mapping[str, FileChange] | Iterable[FileChange]) -> Mapping[str, FileChange]:
    if isinstance(file_changes, Mapping):
        return file_changes
    return {fc.file_name: fc for fc in file_changes}


def classify_comments(
    comments: Iterable[Comment],
    file_changes: Mapping[str, FileChange] | Iterable[FileChange],
) -> Classification:
    """Partition comments into active and outdated.

    Every comment ends up in exactly one of the two. Active comments whose
    position no longer resolves on the current hunks are treated as
    outdated for this pass, even if the host has not cleared position yet.
    Outdated groups keep first-seen order by commit, then by path.
    """
    changes = index_file_changes(file_changes)
    result = Classification()
    groups: dict[tuple[str, str], OutdatedGroup] = {}

    for comment in comments:
        file_change = changes.get(comment.path)
        if file_change is None:
            reason = OutdatedReason.UNKNOWN_FILE
        elif comment.position is None:
            reason = OutdatedReason.POSITION_CLEARED
        else:
            line = hunk_position_to_new_line(file_change.diff_hunks, comment.position)
            if line is not None:
                result.active.append(ActiveComment(comment=comment, line=line))
                continue
            reason = OutdatedReason.LINE_DELETED

        key = (comment.original_commit_id, comment.path)
        group = groups.get(key)
        if group is None:
            group = OutdatedGroup(commit_id=comment.original_commit_id, path=comment.path)
            groups[key] = group
        group.add(comment, reason)

    # Order groups by commit first, keeping each commit's paths in first-seen order.
    by_commit: dict[str, list[OutdatedGroup]] = {}
    for group in groups.values():
        by_commit.setdefault(group.commit_id, []).append(group)
    result.outdated = [group for commit_groups in by_commit.values() for group in commit_groups]

    return result


def classify_by_file(
    comments: Iterable[Comment],
    file_changes: Mapping[str, FileChange] | Iterable[FileChange],
) -> tuple[Classification, dict[str, MalformedDiffError]]:
    """classify_comments, leaving out files whose frozen hunks cannot be parsed.

    A broken diff_hunk only takes its own file out of the result; the
    skipped paths come back with their errors.
    """
    comments = list(comments)
    changes = index_file_changes(file_changes)
    errors: dict[str, MalformedDiffError] = {}
    for path in dict.fromkeys(c.path for c in comments):
        try:
            classify_comments([c for c in comments if c.path == path], changes)
        except MalformedDiffError as e:
            errors[path] = e
    usable = [c for c in comments if c.path not in errors]
    return classify_comments(usable, changes), errors
