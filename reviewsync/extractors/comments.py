"""Review comment extractor."""

from ..models import Comment
from .prs import parse_datetime


def extract_comment(comment_data: dict) -> Comment:
    """Extract inline review comment from GitHub API response.

    `position` is kept as-is, including None for comments the host has
    marked outdated.
    """
    user = comment_data.get("user") or {}
    original_position = comment_data.get("original_position")
    if original_position is None:
        original_position = comment_data.get("position") or 0

    return Comment(
        id=comment_data["id"],
        path=comment_data.get("path", ""),
        position=comment_data.get("position"),
        original_position=original_position,
        original_commit_id=comment_data.get("original_commit_id") or comment_data.get("commit_id", ""),
        commit_id=comment_data.get("commit_id"),
        diff_hunk=comment_data.get("diff_hunk") or "",
        body=comment_data.get("body") or "",
        author=user.get("login", "unknown"),
        in_reply_to_id=comment_data.get("in_reply_to_id"),
        created_at=parse_datetime(comment_data.get("created_at")),
        updated_at=parse_datetime(comment_data.get("updated_at")),
    )


def extract_comments(comments_data: list[dict]) -> list[Comment]:
    return [extract_comment(c) for c in comments_data]
