"""Shared test fixtures."""

import pytest


@pytest.fixture
def github_client_uninit():
    """Create an uninitialized GitHubClient with a fake PAT token.

    Use this for sync tests that don't need the async context manager.
    """
    from reviewsync.github_client import GitHubClient

    return GitHubClient(token="fake-token")


@pytest.fixture(autouse=True)
def clear_patch_cache():
    """Parsed patches are memoized process-wide; start every test cold."""
    from reviewsync.diff_hunk import parse_patch_cached

    parse_patch_cached.cache_clear()
    yield
