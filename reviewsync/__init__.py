"""Pull request review comments anchored to a local working copy.

Philosophy: the server only knows diff positions; the editor only knows
lines. Everything here translates between the two and keeps comment
threads stable while both sides move.

This package provides:
- Unified diff hunk parsing and rendering
- Position <-> line mapping across review and working-copy diffs
- Active/outdated comment classification
- Thread reconciliation between sync cycles
- Per-repository pull request paging
"""

from .classifier import Classification, OutdatedGroup, OutdatedReason, OutdatedThread, classify_comments
from .diff_hunk import MalformedDiffError, format_hunk_header, parse_diff_hunks, parse_hunk_header
from .models import (
    DELETED_LINE,
    NO_POSITION,
    BufferLine,
    Comment,
    DiffChangeType,
    DiffHunk,
    DiffLine,
    DiffPosition,
    FileChange,
    GitChangeType,
    HeadLine,
    PullRequest,
    ResourceId,
)
from .paging import PageCursorTracker, PageInformation, PageResult
from .position_mapping import (
    commenting_ranges,
    get_diff_line_by_position,
    hunk_position_to_new_line,
    map_comments_to_buffer,
    new_line_to_hunk_position,
    new_line_to_old_line,
    old_line_to_new_line,
)
from .reconciler import CommentThread, ThreadDelta, build_threads, diff_threads, reconcile
from .session import ReviewSession

__all__ = [
    # Models
    "Comment",
    "DiffChangeType",
    "DiffHunk",
    "DiffLine",
    "FileChange",
    "GitChangeType",
    "PullRequest",
    "ResourceId",
    "DiffPosition",
    "HeadLine",
    "BufferLine",
    "NO_POSITION",
    "DELETED_LINE",
    # Diff parsing
    "MalformedDiffError",
    "parse_diff_hunks",
    "parse_hunk_header",
    "format_hunk_header",
    # Position mapping
    "get_diff_line_by_position",
    "hunk_position_to_new_line",
    "new_line_to_hunk_position",
    "old_line_to_new_line",
    "new_line_to_old_line",
    "map_comments_to_buffer",
    "commenting_ranges",
    # Classification and threads
    "Classification",
    "OutdatedGroup",
    "OutdatedReason",
    "OutdatedThread",
    "classify_comments",
    "CommentThread",
    "ThreadDelta",
    "build_threads",
    "diff_threads",
    "reconcile",
    "ReviewSession",
    # Paging
    "PageCursorTracker",
    "PageInformation",
    "PageResult",
]
