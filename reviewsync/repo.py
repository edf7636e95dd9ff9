"""Repository identification and cache paths.

Repositories come from environment variables or reviewsync.yaml, written
either as `owner/name` or as a git remote URL.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class RepoInfo:
    """Repository information."""

    owner: str
    name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    @property
    def data_dir(self) -> Path:
        """Cache directory for this repo."""
        return get_cache_dir() / self.owner / self.name


def get_cache_dir() -> Path:
    """Get the global cache directory for reviewsync data."""
    # Use XDG_CACHE_HOME if set, otherwise ~/.cache
    xdg_cache = os.environ.get("XDG_CACHE_HOME")
    if xdg_cache:
        return Path(xdg_cache) / "reviewsync"
    return Path.home() / ".cache" / "reviewsync"


def parse_git_remote_url(url: str) -> RepoInfo | None:
    """Parse owner/repo from git remote URL.

    Supports:
    - git@github.com:owner/repo.git
    - https://github.com/owner/repo.git
    - https://github.com/owner/repo
    - ssh://git@github.com/owner/repo.git
    """
    # SSH format: git@github.com:owner/repo.git
    ssh_match = re.match(r"git@[\w.-]+:([^/]+)/([^/]+?)(?:\.git)?$", url)
    if ssh_match:
        return RepoInfo(owner=ssh_match.group(1), name=ssh_match.group(2))

    # HTTPS format: https://github.com/owner/repo.git
    https_match = re.match(r"https?://[\w.-]+/([^/]+)/([^/]+?)(?:\.git)?$", url)
    if https_match:
        return RepoInfo(owner=https_match.group(1), name=https_match.group(2))

    # SSH with ssh:// prefix
    ssh_url_match = re.match(r"ssh://git@[\w.-]+/([^/]+)/([^/]+?)(?:\.git)?$", url)
    if ssh_url_match:
        return RepoInfo(owner=ssh_url_match.group(1), name=ssh_url_match.group(2))

    return None


def parse_repo(spec: str) -> RepoInfo:
    """Parse `owner/name` or a remote URL. Raises ValueError otherwise."""
    spec = spec.strip()
    repo = parse_git_remote_url(spec)
    if repo:
        return repo

    m = re.match(r"^([\w.-]+)/([\w.-]+)$", spec)
    if m:
        return RepoInfo(owner=m.group(1), name=m.group(2))

    raise ValueError(f"Not a repository: {spec!r} (expected owner/name or a remote URL)")


def get_repos_from_env() -> list[RepoInfo]:
    """Repositories from REPO_OWNER/REPO_NAME or a comma-separated REPOSITORIES."""
    repos = []
    owner = os.environ.get("REPO_OWNER")
    name = os.environ.get("REPO_NAME")
    if owner and name:
        repos.append(RepoInfo(owner=owner, name=name))

    for spec in os.environ.get("REPOSITORIES", "").split(","):
        if spec.strip():
            repo = parse_repo(spec)
            if repo not in repos:
                repos.append(repo)
    return repos


def get_repos_from_config() -> list[RepoInfo]:
    """Repositories listed in reviewsync.yaml."""
    from .review_config import ReviewConfig

    config = ReviewConfig.load()
    return [parse_repo(spec) for spec in config.repositories]


def get_repos() -> list[RepoInfo]:
    """Get repositories with fallback chain.

    Priority:
    1. Environment variables (REPO_OWNER + REPO_NAME, REPOSITORIES)
    2. reviewsync.yaml (repositories)

    Raises ValueError if no repository is configured.
    """
    repos = get_repos_from_env()
    if repos:
        return repos

    repos = get_repos_from_config()
    if repos:
        return repos

    raise ValueError(
        "Could not determine repository. Either:\n"
        "  1. Set REPO_OWNER and REPO_NAME env vars, or\n"
        "  2. Set REPOSITORIES=owner/name,other/name, or\n"
        "  3. Add repositories to reviewsync.yaml:\n"
        "     repositories:\n"
        "       - your-org/your-repo"
    )
