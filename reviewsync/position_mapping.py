"""Mapping between diff positions, head lines and working buffer lines.

Two diffs are involved:

- the review diff (base..head of the pull request), whose positions are the
  coordinates the host uses to anchor comments;
- a transition diff (last synced head commit..working buffer), used only to
  follow local edits.

All functions are pure. Unmappable inputs return a sentinel
(None, NO_POSITION or DELETED_LINE) rather than raising.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from operator import attrgetter
from typing import Literal

from .models import (
    DELETED_LINE,
    NO_POSITION,
    BufferLine,
    Comment,
    DiffChangeType,
    DiffHunk,
    DiffLine,
    DiffPosition,
    HeadLine,
)

Axis = Literal["old", "new"]

_LINE_NUMBER = {
    "old": attrgetter("old_line_number"),
    "new": attrgetter("new_line_number"),
}


def iter_positions(hunks: Iterable[DiffHunk]) -> Iterator[tuple[DiffPosition, DiffLine]]:
    """Yield (position, line) over all hunks of a file.

    The first hunk header sits at position 0; every later header takes one
    position of its own, as on GitHub. Headers are not yielded.
    """
    position = 0
    for index, hunk in enumerate(hunks):
        if index > 0:
            position += 1
        for line in hunk.lines:
            position += 1
            yield DiffPosition(position), line


def get_diff_line_by_position(hunks: Iterable[DiffHunk], position: int) -> DiffLine | None:
    """Return the diff line at a position, or None if it is a header or out of range."""
    if position < 1:
        return None
    for current, line in iter_positions(hunks):
        if current == position:
            return line
        if current > position:
            break
    return None


def hunk_position_to_new_line(hunks: Iterable[DiffHunk], position: int) -> HeadLine | None:
    """Head-side line number at a diff position.

    None means the position cannot be anchored on current content: a
    deleted line, a hunk header, or a position past the end of the diff.
    """
    line = get_diff_line_by_position(hunks, position)
    if line is None or line.new_line_number is None:
        return None
    return HeadLine(line.new_line_number)


def hunk_position_to_last_line(hunks: Sequence[DiffHunk]) -> DiffLine | None:
    """Final line of the last non-empty hunk.

    A comment's frozen diff_hunk ends at the commented line, so this is how
    outdated comments are anchored.
    """
    for hunk in reversed(hunks):
        if hunk.lines:
            return hunk.lines[-1]
    return None


def _span(hunk: DiffHunk, axis: Axis) -> tuple[int, int]:
    if axis == "old":
        return hunk.old_start, hunk.old_length
    return hunk.new_start, hunk.new_length


def _remap_within_hunk(hunk: DiffHunk, line: int, source: Axis, target: Axis, snap: bool) -> int:
    source_number = _LINE_NUMBER[source]
    target_number = _LINE_NUMBER[target]
    target_start, target_length = _span(hunk, target)

    for index, diff_line in enumerate(hunk.lines):
        if source_number(diff_line) != line:
            continue
        if diff_line.type == DiffChangeType.CONTEXT:
            return target_number(diff_line)
        if not snap:
            return DELETED_LINE
        for following in hunk.lines[index + 1:]:
            if following.type == DiffChangeType.CONTEXT:
                return target_number(following)
        # Nothing survives after the line: land on the first line past the hunk.
        # A zero-length side starts on the line before the change.
        if target_length == 0:
            return target_start + 1
        return target_start + target_length

    # Inside the declared range but missing from a truncated hunk.
    source_start, _ = _span(hunk, source)
    return target_start + (line - source_start)


def _remap(hunks: Iterable[DiffHunk], line: int, source: Axis, snap: bool) -> int:
    target: Axis = "new" if source == "old" else "old"
    delta = 0

    for hunk in hunks:
        start, length = _span(hunk, source)
        _, target_length = _span(hunk, target)

        if length == 0:
            # Pure insertion after `start` (or pure deletion seen from the other side).
            if line <= start:
                return line + delta
            delta += target_length
            continue

        if line < start:
            return line + delta

        if line > start + length - 1:
            delta += target_length - length
            continue

        return _remap_within_hunk(hunk, line, source, target, snap)

    return line + delta


def old_line_to_new_line(
    transition_hunks: Iterable[DiffHunk],
    old_line: HeadLine,
    snap: bool = False,
) -> BufferLine:
    """Follow a head line through the transition diff into the buffer.

    Returns DELETED_LINE when the line was removed locally. With snap=True a
    removed line anchors to the nearest following surviving line instead.
    """
    return BufferLine(_remap(transition_hunks, old_line, "old", snap))


def new_line_to_old_line(transition_hunks: Iterable[DiffHunk], new_line: BufferLine) -> HeadLine:
    """Inverse of old_line_to_new_line. DELETED_LINE for locally added lines."""
    return HeadLine(_remap(transition_hunks, new_line, "new", False))


def new_line_to_hunk_position(
    review_hunks: Iterable[DiffHunk],
    transition_hunks: Iterable[DiffHunk],
    new_line: BufferLine,
) -> DiffPosition:
    """Diff position to submit for a new comment on a buffer line.

    NO_POSITION if the line was added locally or lies outside every hunk of
    the review diff. Callers must refuse to create the comment then.
    """
    head_line = new_line_to_old_line(transition_hunks, new_line)
    if head_line <= 0:
        return NO_POSITION

    for position, line in iter_positions(review_hunks):
        if line.new_line_number == head_line:
            return position
    return NO_POSITION


def map_comments_to_buffer(
    review_hunks: Sequence[DiffHunk],
    transition_hunks: Sequence[DiffHunk],
    comments: Iterable[Comment],
) -> list[tuple[Comment, BufferLine]]:
    """Buffer line for each active comment, DELETED_LINE if it cannot be placed.

    Outdated comments are skipped: their original position refers to a diff
    other than review_hunks.
    """
    mapped = []
    for comment in comments:
        if comment.position is None:
            continue
        head_line = hunk_position_to_new_line(review_hunks, comment.position)
        if head_line is None:
            mapped.append((comment, BufferLine(DELETED_LINE)))
        else:
            mapped.append((comment, old_line_to_new_line(transition_hunks, head_line)))
    return mapped


def commenting_ranges(
    review_hunks: Iterable[DiffHunk],
    transition_hunks: Sequence[DiffHunk],
) -> list[tuple[BufferLine, BufferLine]]:
    """Buffer line ranges (inclusive) covered by the review diff's hunks.

    The start of a range snaps forward past local deletions; ranges whose
    last line was deleted locally are dropped.
    """
    ranges = []
    for hunk in review_hunks:
        if hunk.new_length == 0:
            continue
        start = old_line_to_new_line(transition_hunks, HeadLine(hunk.new_start), snap=True)
        end = old_line_to_new_line(transition_hunks, HeadLine(hunk.new_end))
        if start > 0 and end >= start:
            ranges.append((start, end))
    return ranges
