"""Build comment threads and diff two comment snapshots into thread changes."""

from __future__ import annotations

import logging
from collections.abc import Callable, Hashable, Iterable, Mapping
from dataclasses import dataclass, field, replace

from .classifier import Classification, classify_comments, frozen_anchor_line, index_file_changes
from .diff_hunk import MalformedDiffError
from .models import Comment, FileChange, ResourceId

logger = logging.getLogger(__name__)

# (path, commit) -> opaque, equality-comparable resource token.
# commit is None for the live working copy.
FileIdentityResolver = Callable[[str, str | None], Hashable]


def resolve_resource(path: str, commit: str | None) -> ResourceId:
    """Default resolver: working copy for None, review document otherwise."""
    if commit is None:
        return ResourceId(scheme="file", path=path)
    return ResourceId(scheme="review", path=path, commit=commit)


def is_working_file(resource: Hashable) -> bool:
    return isinstance(resource, ResourceId) and resource.is_working_file


@dataclass(frozen=True)
class CommentThread:
    """Comments sharing one anchor, shown together."""

    thread_id: int
    resource: Hashable
    anchor_line: int
    comments: tuple[Comment, ...]
    collapsed: bool = False


@dataclass
class ThreadDelta:
    added: list[CommentThread] = field(default_factory=list)
    removed: list[CommentThread] = field(default_factory=list)
    changed: list[CommentThread] = field(default_factory=list)
    # files left out because their diff_hunks could not be parsed
    skipped_paths: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.added or self.removed or self.changed)


def thread_key(comment: Comment) -> tuple:
    """Grouping key: (path, position) while active, else frozen coordinates."""
    if comment.position is not None:
        return ("active", comment.path, comment.position)
    return ("outdated", comment.original_commit_id, comment.path, comment.original_position)


def group_threads(comments: Iterable[Comment]) -> list[list[Comment]]:
    """Group comments by thread key, in order of first appearance."""
    sections: dict[tuple, list[Comment]] = {}
    for comment in comments:
        sections.setdefault(thread_key(comment), []).append(comment)
    return list(sections.values())


def build_threads(
    comments: Iterable[Comment],
    file_changes: Mapping[str, FileChange] | Iterable[FileChange] = (),
    resolve: FileIdentityResolver = resolve_resource,
    collapsed: bool = False,
) -> list[CommentThread]:
    """Turn a comment snapshot into threads.

    The first comment of each group is the thread's identity. Threads whose
    comments resolve on the current head live on the working file; the rest
    are anchored to their original commit.
    """
    comments = list(comments)
    classification: Classification = classify_comments(comments, file_changes)
    active_lines = {a.comment.id: a.line for a in classification.active}

    threads = []
    for section in group_threads(comments):
        root = section[0]
        if root.id in active_lines:
            resource = resolve(root.path, None)
            anchor_line = active_lines[root.id]
        else:
            resource = resolve(root.path, root.original_commit_id)
            anchor_line = frozen_anchor_line(root)

        threads.append(
            CommentThread(
                thread_id=root.id,
                resource=resource,
                anchor_line=anchor_line,
                comments=tuple(section),
                collapsed=collapsed,
            )
        )
    return threads


def comments_edited(old_comments: Iterable[Comment], new_comments: Iterable[Comment]) -> bool:
    """True if the set of comment ids differs or any shared comment's body changed."""
    old_bodies = {c.id: c.body for c in old_comments}
    new_bodies = {c.id: c.body for c in new_comments}
    if old_bodies.keys() != new_bodies.keys():
        return True
    return any(new_bodies[comment_id] != body for comment_id, body in old_bodies.items())


def diff_threads(
    old_threads: Iterable[CommentThread],
    new_threads: Iterable[CommentThread],
    is_live: Callable[[Hashable], bool] = is_working_file,
) -> ThreadDelta:
    """Compare two thread lists by thread id.

    Removed threads keep the old list's order, added and changed threads the
    new list's order. Added threads on the live working file start collapsed.
    """
    old_by_id = {t.thread_id: t for t in old_threads}
    new_by_id = {t.thread_id: t for t in new_threads}
    delta = ThreadDelta()

    for thread_id, thread in old_by_id.items():
        if thread_id not in new_by_id:
            delta.removed.append(thread)

    for thread_id, thread in new_by_id.items():
        previous = old_by_id.get(thread_id)
        if previous is None:
            delta.added.append(replace(thread, collapsed=True) if is_live(thread.resource) else thread)
            continue
        if len(previous.comments) != len(thread.comments) or comments_edited(
            previous.comments, thread.comments
        ):
            delta.changed.append(thread)

    return delta


def build_file_threads(
    comments: Iterable[Comment],
    file_changes: Mapping[str, FileChange] | Iterable[FileChange] = (),
    resolve: FileIdentityResolver = resolve_resource,
    collapsed: bool = False,
) -> tuple[dict[str, list[CommentThread]], dict[str, MalformedDiffError]]:
    """build_threads one file at a time.

    A file whose frozen diff_hunks cannot be parsed is left out of the
    threads and reported in the errors instead, so it cannot block the
    other files.
    """
    file_changes = index_file_changes(file_changes)
    by_path: dict[str, list[Comment]] = {}
    for comment in comments:
        by_path.setdefault(comment.path, []).append(comment)

    threads: dict[str, list[CommentThread]] = {}
    errors: dict[str, MalformedDiffError] = {}
    for path, path_comments in by_path.items():
        try:
            threads[path] = build_threads(path_comments, file_changes, resolve, collapsed)
        except MalformedDiffError as e:
            logger.warning(f"Skipping threads of {path}: {e}")
            errors[path] = e
    return threads, errors


def diff_file_threads(
    old_threads: Mapping[str, list[CommentThread]],
    new_threads: Mapping[str, list[CommentThread]],
    skipped_paths: Iterable[str] = (),
    is_live: Callable[[Hashable], bool] = is_working_file,
) -> ThreadDelta:
    """diff_threads per file. Skipped files report nothing, their old threads stand."""
    skipped = list(dict.fromkeys(skipped_paths))
    delta = ThreadDelta(skipped_paths=skipped)
    for path in dict.fromkeys([*old_threads, *new_threads]):
        if path in skipped:
            continue
        file_delta = diff_threads(old_threads.get(path, []), new_threads.get(path, []), is_live)
        delta.added.extend(file_delta.added)
        delta.removed.extend(file_delta.removed)
        delta.changed.extend(file_delta.changed)
    return delta


def reconcile(
    previous: Iterable[Comment],
    current: Iterable[Comment],
    file_changes: Mapping[str, FileChange] | Iterable[FileChange] = (),
    resolve: FileIdentityResolver = resolve_resource,
    is_live: Callable[[Hashable], bool] = is_working_file,
) -> ThreadDelta:
    """Diff two complete comment snapshots of the same scope into thread changes.

    Threads are matched by id, never by position, so editing a thread's first
    comment reports the thread as changed rather than removed and re-added.
    Files are reconciled independently: one whose current diff_hunks cannot
    be parsed lands in skipped_paths and the rest are still reported.
    """
    file_changes = index_file_changes(file_changes)
    old_threads, _ = build_file_threads(previous, file_changes, resolve)
    new_threads, errors = build_file_threads(current, file_changes, resolve)
    return diff_file_threads(old_threads, new_threads, errors, is_live)
