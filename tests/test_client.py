"""Tests for GitHub client."""

import time

import httpx
import pytest
import respx

from reviewsync.github_client import PENDING_REVIEW_MESSAGE, GitHubClient, PendingReviewError
from reviewsync.repo import RepoInfo

REPO = RepoInfo(owner="myorg", name="myrepo")
API = "https://api.github.com/repos/myorg/myrepo"


class TestGitHubClient:
    """Test GitHubClient with mocked HTTP."""

    @pytest.fixture
    async def github_client(self):
        """Create async GitHubClient for tests."""
        client = GitHubClient(token="fake-token")
        async with client:
            yield client

    @pytest.mark.trio
    @respx.mock
    async def test_get_request(self, github_client):
        route = respx.get("https://api.github.com/repos/test/repo").mock(
            return_value=httpx.Response(200, json={"id": 123, "name": "repo"})
        )
        result = await github_client.get("/repos/test/repo")
        assert result["id"] == 123
        assert github_client.request_count == 1
        assert route.calls.last.request.headers["Authorization"] == "Bearer fake-token"

    @pytest.mark.trio
    @respx.mock
    async def test_pagination(self, github_client, monkeypatch):
        monkeypatch.setattr("reviewsync.github_client.PER_PAGE", 2)
        respx.get("https://api.github.com/items").mock(
            side_effect=[
                httpx.Response(200, json=[{"id": 1}, {"id": 2}]),
                httpx.Response(200, json=[{"id": 3}]),
                httpx.Response(200, json=[]),
            ]
        )
        results = []
        async for item in github_client.paginate("/items"):
            results.append(item)
        assert len(results) == 3

    @pytest.mark.trio
    @respx.mock
    async def test_rate_limit_handling(self, github_client, autojump_clock):
        respx.get("https://api.github.com/test").mock(
            side_effect=[
                httpx.Response(403, json={"message": "rate limit"}, headers={"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": str(int(time.time()) + 1)}),
                httpx.Response(200, json={"ok": True}),
            ]
        )
        result = await github_client.get("/test")
        assert result["ok"] is True

    @pytest.mark.trio
    @respx.mock
    async def test_server_error_retry(self, github_client, autojump_clock):
        respx.get("https://api.github.com/flaky").mock(
            side_effect=[
                httpx.Response(502, text="Bad Gateway"),
                httpx.Response(200, json={"recovered": True}),
            ]
        )
        result = await github_client.get("/flaky")
        assert result["recovered"] is True

    @pytest.mark.trio
    @respx.mock
    async def test_max_retries_exceeded(self, github_client, autojump_clock):
        respx.get("https://api.github.com/down").mock(return_value=httpx.Response(503))
        with pytest.raises(Exception, match="Max retries exceeded"):
            await github_client.get("/down")

    @pytest.mark.trio
    @respx.mock
    async def test_client_error_raises(self, github_client):
        respx.get("https://api.github.com/missing").mock(return_value=httpx.Response(404))
        with pytest.raises(httpx.HTTPStatusError):
            await github_client.get("/missing")

    def test_missing_auth_raises(self, monkeypatch):
        monkeypatch.setattr("reviewsync.github_client.GITHUB_TOKEN", None)
        with pytest.raises(ValueError, match="GitHub auth required"):
            GitHubClient()

    @pytest.mark.trio
    async def test_request_before_enter(self, github_client_uninit):
        with pytest.raises(RuntimeError, match="not initialized"):
            await github_client_uninit.get("/x")

    @pytest.mark.trio
    async def test_handle_rate_limit_returns_false_for_success(self, github_client):
        response = httpx.Response(200, json={})
        assert await github_client._handle_rate_limit(response) is False

    @pytest.mark.trio
    async def test_handle_rate_limit_returns_false_for_other_403(self, github_client):
        response = httpx.Response(403, json={"message": "forbidden"}, headers={"X-RateLimit-Remaining": "100"})
        assert await github_client._handle_rate_limit(response) is False

    @pytest.mark.trio
    @respx.mock
    async def test_secondary_rate_limit_429_with_retry_after(self, github_client, autojump_clock):
        respx.get("https://api.github.com/test").mock(
            side_effect=[
                httpx.Response(429, json={"message": "too many requests"}, headers={"Retry-After": "3"}),
                httpx.Response(200, json={"ok": True}),
            ]
        )
        result = await github_client.get("/test")
        assert result["ok"] is True


class TestPullRequestEndpoints:
    """Pull request, files and review comment endpoints."""

    @pytest.fixture
    async def github_client(self):
        async with GitHubClient(token="fake-token") as client:
            yield client

    @pytest.mark.trio
    @respx.mock
    async def test_pull_requests_page_with_next(self, github_client):
        route = respx.get(f"{API}/pulls").mock(
            return_value=httpx.Response(
                200,
                json=[{"number": 1}, {"number": 2}],
                headers={"Link": f'<{API}/pulls?page=3>; rel="next", <{API}/pulls?page=9>; rel="last"'},
            )
        )
        page = await github_client.get_pull_requests_page(REPO, 2, per_page=2)

        assert [item["number"] for item in page.items] == [1, 2]
        assert page.has_more_pages is True
        params = route.calls.last.request.url.params
        assert params["page"] == "2"
        assert params["per_page"] == "2"
        assert params["state"] == "open"

    @pytest.mark.trio
    @respx.mock
    async def test_pull_requests_last_page(self, github_client):
        respx.get(f"{API}/pulls").mock(return_value=httpx.Response(200, json=[{"number": 1}]))
        page = await github_client.get_pull_requests_page(REPO, 1, state="all")
        assert page.has_more_pages is False

    @pytest.mark.trio
    @respx.mock
    async def test_review_comments(self, github_client):
        respx.get(f"{API}/pulls/42/comments").mock(
            return_value=httpx.Response(200, json=[{"id": 1}, {"id": 2}])
        )
        comments = await github_client.get_pr_review_comments(REPO, 42)
        assert [c["id"] for c in comments] == [1, 2]

    @pytest.mark.trio
    @respx.mock
    async def test_create_review_comment(self, github_client):
        route = respx.post(f"{API}/pulls/42/comments").mock(
            return_value=httpx.Response(201, json={"id": 9})
        )
        result = await github_client.create_review_comment(
            REPO, 42, body="nit", commit_id="head111", path="app.py", position=3
        )
        assert result == {"id": 9}
        assert route.calls.last.request.method == "POST"

    @pytest.mark.trio
    @respx.mock
    async def test_comment_rejected_with_pending_review(self, github_client):
        respx.post(f"{API}/pulls/42/comments").mock(return_value=httpx.Response(422, json={}))
        with pytest.raises(PendingReviewError) as excinfo:
            await github_client.create_review_comment_reply(REPO, 42, body="+1", in_reply_to=1)
        assert str(excinfo.value) == PENDING_REVIEW_MESSAGE

    @pytest.mark.trio
    @respx.mock
    async def test_other_errors_propagate(self, github_client):
        respx.post(f"{API}/pulls/42/comments").mock(return_value=httpx.Response(404, json={}))
        with pytest.raises(httpx.HTTPStatusError):
            await github_client.create_review_comment_reply(REPO, 42, body="+1", in_reply_to=1)
