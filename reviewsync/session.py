"""Review session state for one pull request checked out locally.

Holds what the sync loop needs between cycles: the last synced head
commit, whether the "updates available" notice was already raised, and the
current comment and file change snapshots. All transitions are explicit
methods (load, sync, acknowledge_update, clear).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Literal

from .classifier import Classification, classify_by_file
from .diff_hunk import get_side_content, parse_diff_hunks
from .models import (
    NO_POSITION,
    BufferLine,
    Comment,
    DiffPosition,
    FileChange,
    GitChangeType,
    PullRequest,
)
from .position_mapping import commenting_ranges, map_comments_to_buffer, new_line_to_hunk_position
from .reconciler import (
    CommentThread,
    FileIdentityResolver,
    ThreadDelta,
    build_file_threads,
    build_threads,
    diff_file_threads,
    resolve_resource,
)

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Outcome of one sync cycle."""

    delta: ThreadDelta
    update_available: bool = False


@dataclass
class WorkingFileView:
    """Threads and commentable ranges for a file open in the working copy."""

    threads: list[CommentThread] = field(default_factory=list)
    commenting_ranges: list[tuple[BufferLine, BufferLine]] = field(default_factory=list)


class ReviewSession:
    """State of the review of one pull request."""

    def __init__(self, resolve: FileIdentityResolver = resolve_resource):
        self.resolve = resolve
        self.clear()

    def clear(self) -> None:
        """Forget everything (branch switched or review mode left)."""
        self.pull_request: PullRequest | None = None
        self.last_commit_sha: str | None = None
        self.update_message_shown = False
        self.comments: list[Comment] = []
        self.file_changes: dict[str, FileChange] = {}
        self.obsolete_file_changes: list[FileChange] = []

    @property
    def is_active(self) -> bool:
        return self.pull_request is not None

    def load(
        self,
        pull_request: PullRequest,
        file_changes: list[FileChange],
        comments: list[Comment],
    ) -> Classification:
        """Full refresh from freshly fetched data. Resets the synced commit to head."""
        if self.pull_request and self.pull_request.number != pull_request.number:
            self.clear()

        self.pull_request = pull_request
        self.last_commit_sha = pull_request.head_sha
        self.update_message_shown = False
        self.file_changes = {fc.file_name: fc for fc in file_changes}
        self.comments = list(comments)

        classification = self.classification()
        self.obsolete_file_changes = [
            FileChange(
                file_name=group.path,
                status=GitChangeType.MODIFY,
                diff_hunks=tuple(group.diff_hunks),
                base_ref=f"{group.commit_id}^",
                head_ref=group.commit_id,
            )
            for group in classification.outdated
        ]
        logger.info(
            f"Loaded PR #{pull_request.number} at {pull_request.head_sha[:8]}: "
            f"{len(self.file_changes)} files, {len(classification.active)} active and "
            f"{len(classification.outdated_comments)} outdated comments"
        )
        return classification

    def sync(self, pull_request: PullRequest, comments: list[Comment]) -> SyncResult:
        """Reconcile a new comment snapshot against the current one.

        update_available is True the first time a new head commit is seen,
        until acknowledge_update(). The new snapshot is always stored so
        positions stay fresh, except for files whose diff_hunks cannot be
        parsed: those keep their previous comments and are listed in
        delta.skipped_paths.
        """
        update_available = False
        if pull_request.head_sha != self.last_commit_sha and not self.update_message_shown:
            self.update_message_shown = True
            update_available = True
            logger.info(f"PR #{pull_request.number} head moved to {pull_request.head_sha[:8]}")

        self.pull_request = pull_request
        old_threads, _ = build_file_threads(self.comments, self.file_changes, self.resolve)
        new_threads, errors = build_file_threads(comments, self.file_changes, self.resolve)
        delta = diff_file_threads(old_threads, new_threads, errors)

        kept = [c for c in self.comments if c.path in errors]
        self.comments = [c for c in comments if c.path not in errors] + kept
        if delta:
            logger.info(
                f"Threads: {len(delta.added)} added, {len(delta.removed)} removed, "
                f"{len(delta.changed)} changed"
            )
        return SyncResult(delta=delta, update_available=update_available)

    def acknowledge_update(self) -> None:
        """The user pulled (or dismissed) the update; allow a new notice."""
        self.update_message_shown = False

    def classification(self) -> Classification:
        """Active and outdated comments. Files with unparseable diff_hunks are left out."""
        classification, errors = classify_by_file(self.comments, self.file_changes)
        for path, error in errors.items():
            logger.warning(f"Skipping comments on {path}: {error}")
        return classification

    def threads(self) -> list[CommentThread]:
        """All threads of the current snapshot (workspace view)."""
        threads, _ = build_file_threads(self.comments, self.file_changes, self.resolve)
        return [thread for file_threads in threads.values() for thread in file_threads]

    def working_file_view(self, path: str, transition_patch: str) -> WorkingFileView:
        """Threads and commenting ranges for a file in the working copy.

        transition_patch is the diff from last_commit_sha to the buffer
        (`git diff <sha> -- path`, or a blob-to-blob diff for dirty buffers).
        Comments whose line was deleted locally are left out.

        Raises:
            MalformedDiffError: if transition_patch cannot be parsed.
        """
        file_change = self.file_changes.get(path)
        if file_change is None:
            return WorkingFileView()

        transition_hunks = parse_diff_hunks(transition_patch)
        comments = [c for c in self.comments if c.path == path]
        mapped = map_comments_to_buffer(file_change.diff_hunks, transition_hunks, comments)
        buffer_lines = {comment.id: line for comment, line in mapped}

        threads = []
        for thread in build_threads(comments, self.file_changes, self.resolve, collapsed=True):
            line = buffer_lines.get(thread.thread_id, 0)
            if line > 0:
                threads.append(replace(thread, resource=self.resolve(path, None), anchor_line=line))

        return WorkingFileView(
            threads=threads,
            commenting_ranges=commenting_ranges(file_change.diff_hunks, transition_hunks),
        )

    def position_for_new_comment(self, path: str, line: BufferLine, transition_patch: str = "") -> DiffPosition:
        """Diff position for a new comment on a buffer line, NO_POSITION if not allowed."""
        file_change = self.file_changes.get(path)
        if file_change is None:
            return NO_POSITION
        return new_line_to_hunk_position(file_change.diff_hunks, parse_diff_hunks(transition_patch), line)

    def files_with_comments(self) -> set[str]:
        """Paths that carry at least one comment (for file decorations)."""
        return {c.path for c in self.comments}

    def file_content(self, path: str, commit: str) -> str | None:
        """Text of a review document rebuilt from the diff.

        The head commit gives the head side of the file's hunks; the base
        commit or `<head>^` gives the base side. Outdated files are rebuilt
        from the frozen hunks of all their threads, the same way against
        their original commit. None if nothing matches.
        """
        candidates = []
        file_change = self.file_changes.get(path)
        if file_change is not None:
            candidates.append(file_change)
        candidates.extend(fc for fc in self.obsolete_file_changes if fc.file_name == path)

        side: Literal["base", "head"]
        for candidate in candidates:
            if commit == candidate.head_ref:
                side = "head"
            elif commit in (candidate.base_ref, f"{candidate.head_ref}^"):
                side = "base"
            else:
                continue
            return get_side_content(candidate.diff_hunks, side)
        return None
