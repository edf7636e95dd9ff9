"""Pull request data extractor."""

from datetime import datetime

from ..models import PullRequest


def parse_datetime(dt_str: str | None) -> datetime | None:
    """Parse ISO datetime string, returns None if input is empty."""
    if not dt_str:
        return None
    return datetime.fromisoformat(dt_str.replace("Z", "+00:00"))


def extract_pull_request(pr_data: dict) -> PullRequest:
    """Extract PR data from GitHub API response."""
    user = pr_data.get("user") or {}
    head = pr_data.get("head") or {}
    base = pr_data.get("base") or {}

    return PullRequest(
        number=pr_data["number"],
        title=pr_data.get("title", ""),
        author_login=user.get("login", "unknown"),
        state=pr_data.get("state", "open"),
        head_sha=head.get("sha", ""),
        head_ref=head.get("ref", ""),
        base_sha=base.get("sha", ""),
        base_ref=base.get("ref", ""),
        html_url=pr_data.get("html_url"),
        draft=pr_data.get("draft", False),
        created_at=parse_datetime(pr_data.get("created_at")),
        updated_at=parse_datetime(pr_data.get("updated_at")),
    )
