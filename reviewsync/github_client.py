"""GitHub API client with rate limiting and retry logic.

Uses httpx.AsyncClient with trio. Supplies pull requests, changed files
(diff source) and review comments (comment source), and posts new review
comments by diff position.
"""

import logging
import time
from collections.abc import AsyncGenerator
from typing import Any

import httpx
import trio

from .config import GITHUB_API_URL, GITHUB_TOKEN, PER_PAGE
from .paging import PageResult
from .repo import RepoInfo

logger = logging.getLogger(__name__)

PENDING_REVIEW_MESSAGE = (
    "There is already a pending review for this pull request on GitHub. "
    "Please finish or dismiss this review to be able to leave more comments"
)


class PendingReviewError(Exception):
    """GitHub refused a review comment (HTTP 422), usually due to a pending review."""


class GitHubClient:
    """Async GitHub REST API client with automatic rate limit handling."""

    def __init__(self, token: str | None = None, base_url: str = GITHUB_API_URL):
        """Initialize the client.

        Args:
            token: Personal access token (PAT). Falls back to GITHUB_TOKEN.
            base_url: API root, for GitHub Enterprise.
        """
        self.token = token or GITHUB_TOKEN
        if not self.token:
            raise ValueError("GitHub auth required. Set GITHUB_TOKEN")

        self.base_url = base_url
        self.client: httpx.AsyncClient | None = None
        self._request_count = 0

    async def __aenter__(self):
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
                "Authorization": f"Bearer {self.token}",
            },
            timeout=30.0,
            http2=True,
        )
        return self

    async def __aexit__(self, *args):
        if self.client:
            await self.client.aclose()

    @property
    def request_count(self) -> int:
        return self._request_count

    async def _handle_rate_limit(self, response: httpx.Response) -> bool:
        """Handle rate limiting. Returns True if request should be retried."""
        if response.status_code == 403:
            remaining = int(response.headers.get("X-RateLimit-Remaining", 1))
            if remaining == 0:
                reset_time = int(response.headers.get("X-RateLimit-Reset", 0))
                wait_seconds = max(reset_time - time.time(), 60)
                logger.warning(f"Rate limited (primary). Waiting {wait_seconds:.0f}s until reset...")
                await trio.sleep(wait_seconds + 1)
                return True
            if "Retry-After" in response.headers:
                retry_after = int(response.headers["Retry-After"])
                logger.warning(f"Rate limited (secondary). Waiting {retry_after}s...")
                await trio.sleep(retry_after)
                return True

        if response.status_code == 429:
            retry_after = int(response.headers.get("Retry-After", 60))
            logger.warning(f"Rate limited (secondary). Waiting {retry_after}s...")
            await trio.sleep(retry_after)
            return True

        return False

    async def _request(
        self,
        method: str,
        path: str,
        params: dict | None = None,
        json: dict | None = None,
        max_retries: int = 3,
    ) -> httpx.Response:
        """Make request with automatic rate limit handling."""
        if not self.client:
            raise RuntimeError("Client not initialized. Use async context manager.")

        for attempt in range(max_retries):
            response = await self.client.request(method, path, params=params, json=json)
            self._request_count += 1

            if await self._handle_rate_limit(response):
                continue

            if response.status_code >= 500:
                wait = 2**attempt
                logger.warning(f"Server error {response.status_code}. Retrying in {wait}s...")
                await trio.sleep(wait)
                continue

            response.raise_for_status()
            return response

        raise Exception(f"Max retries exceeded for {path}")

    async def get(self, path: str, params: dict | None = None) -> Any:
        """GET request returning JSON."""
        response = await self._request("GET", path, params=params)
        return response.json()

    async def paginate(
        self,
        path: str,
        params: dict | None = None,
        max_pages: int | None = None,
    ) -> AsyncGenerator[Any]:
        """Paginate through results, yielding each item."""
        params = params.copy() if params else {}
        params["per_page"] = PER_PAGE
        page = 1

        while True:
            params["page"] = page
            response = await self._request("GET", path, params=params)
            items = response.json()

            if not items:
                break

            for item in items:
                yield item

            if len(items) < PER_PAGE:
                break

            if max_pages and page >= max_pages:
                break

            page += 1

    async def paginate_all(self, path: str, params: dict | None = None) -> list[dict]:
        """Paginate through all results, returning a list."""
        results = []
        async for item in self.paginate(path, params):
            results.append(item)
        return results

    async def get_pull_request(self, repo: RepoInfo, pr_number: int) -> dict:
        return await self.get(f"/repos/{repo.full_name}/pulls/{pr_number}")

    async def get_pull_requests_page(
        self,
        repo: RepoInfo,
        page: int,
        state: str = "open",
        per_page: int | None = None,
    ) -> PageResult:
        """One page of pull requests. has_more_pages follows the Link header."""
        response = await self._request(
            "GET",
            f"/repos/{repo.full_name}/pulls",
            params={"state": state, "page": page, "per_page": per_page or PER_PAGE},
        )
        return PageResult(items=response.json(), has_more_pages="next" in response.links)

    async def get_pr_files(self, repo: RepoInfo, pr_number: int) -> list[dict]:
        """Get files changed in a PR, with their patches."""
        return await self.paginate_all(f"/repos/{repo.full_name}/pulls/{pr_number}/files")

    async def get_pr_review_comments(self, repo: RepoInfo, pr_number: int) -> list[dict]:
        """Get inline code review comments."""
        return await self.paginate_all(f"/repos/{repo.full_name}/pulls/{pr_number}/comments")

    async def _post_review_comment(self, repo: RepoInfo, pr_number: int, payload: dict) -> dict:
        try:
            response = await self._request(
                "POST", f"/repos/{repo.full_name}/pulls/{pr_number}/comments", json=payload
            )
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 422:
                raise PendingReviewError(PENDING_REVIEW_MESSAGE) from e
            raise
        return response.json()

    async def create_review_comment(
        self,
        repo: RepoInfo,
        pr_number: int,
        body: str,
        commit_id: str,
        path: str,
        position: int,
    ) -> dict:
        """Start a new review thread at a diff position."""
        return await self._post_review_comment(
            repo,
            pr_number,
            {"body": body, "commit_id": commit_id, "path": path, "position": position},
        )

    async def create_review_comment_reply(
        self, repo: RepoInfo, pr_number: int, body: str, in_reply_to: int
    ) -> dict:
        """Reply to an existing review thread."""
        return await self._post_review_comment(
            repo, pr_number, {"body": body, "in_reply_to": in_reply_to}
        )

    async def get_rate_limit(self) -> dict:
        """Get current rate limit status."""
        return await self.get("/rate_limit")
