"""Tests for repository detection and path management."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from reviewsync.repo import (
    RepoInfo,
    get_cache_dir,
    get_repos,
    get_repos_from_config,
    get_repos_from_env,
    parse_git_remote_url,
    parse_repo,
)

REPO_ENV_VARS = ("REPO_OWNER", "REPO_NAME", "REPOSITORIES")


@pytest.fixture
def clean_env(monkeypatch):
    for var in REPO_ENV_VARS:
        monkeypatch.delenv(var, raising=False)


class TestParseGitRemoteUrl:
    """Tests for parsing git remote URLs."""

    def test_ssh_format(self):
        """Parse SSH format: git@github.com:owner/repo.git"""
        result = parse_git_remote_url("git@github.com:myorg/myrepo.git")
        assert result == RepoInfo(owner="myorg", name="myrepo")

    def test_ssh_format_no_git_suffix(self):
        result = parse_git_remote_url("git@github.com:myorg/myrepo")
        assert result == RepoInfo(owner="myorg", name="myrepo")

    def test_https_format(self):
        result = parse_git_remote_url("https://github.com/myorg/myrepo.git")
        assert result == RepoInfo(owner="myorg", name="myrepo")

    def test_ssh_url_format(self):
        """Parse ssh:// format: ssh://git@github.com/owner/repo.git"""
        result = parse_git_remote_url("ssh://git@github.com/myorg/myrepo.git")
        assert result == RepoInfo(owner="myorg", name="myrepo")

    def test_enterprise_github(self):
        result = parse_git_remote_url("https://github.mycompany.com/team/repo.git")
        assert result == RepoInfo(owner="team", name="repo")

    def test_invalid_url(self):
        assert parse_git_remote_url("not-a-url") is None
        assert parse_git_remote_url("") is None
        assert parse_git_remote_url("ftp://github.com/foo/bar") is None


class TestParseRepo:
    def test_owner_name(self):
        assert parse_repo("myorg/myrepo") == RepoInfo(owner="myorg", name="myrepo")

    def test_strips_whitespace(self):
        assert parse_repo("  myorg/my.repo ") == RepoInfo(owner="myorg", name="my.repo")

    def test_remote_url(self):
        assert parse_repo("git@github.com:myorg/myrepo.git").full_name == "myorg/myrepo"

    @pytest.mark.parametrize("spec", ["myrepo", "a/b/c", ""])
    def test_invalid(self, spec):
        with pytest.raises(ValueError, match="Not a repository"):
            parse_repo(spec)


class TestRepoInfo:
    def test_full_name(self):
        assert RepoInfo(owner="myorg", name="myrepo").full_name == "myorg/myrepo"

    def test_data_dir(self):
        repo = RepoInfo(owner="myorg", name="myrepo")
        assert repo.data_dir == get_cache_dir() / "myorg" / "myrepo"

    def test_hashable(self):
        assert len({RepoInfo("a", "b"), RepoInfo("a", "b")}) == 1


class TestGetCacheDir:
    """Tests for cache directory resolution."""

    def test_default_cache_dir(self):
        with patch.dict(os.environ, {}, clear=True):
            assert get_cache_dir() == Path.home() / ".cache" / "reviewsync"

    def test_xdg_cache_home(self):
        with patch.dict(os.environ, {"XDG_CACHE_HOME": "/custom/cache"}):
            assert get_cache_dir() == Path("/custom/cache/reviewsync")


class TestGetReposFromEnv:
    def test_owner_and_name(self, clean_env, monkeypatch):
        monkeypatch.setenv("REPO_OWNER", "envorg")
        monkeypatch.setenv("REPO_NAME", "envrepo")
        assert get_repos_from_env() == [RepoInfo(owner="envorg", name="envrepo")]

    def test_repositories_list(self, clean_env, monkeypatch):
        monkeypatch.setenv("REPOSITORIES", "a/one, b/two,,a/one")
        assert [r.full_name for r in get_repos_from_env()] == ["a/one", "b/two"]

    def test_partial(self, clean_env, monkeypatch):
        monkeypatch.setenv("REPO_OWNER", "myorg")
        assert get_repos_from_env() == []


class TestGetReposFromConfig:
    def test_config_repositories(self, tmp_path, monkeypatch):
        (tmp_path / "reviewsync.yaml").write_text("""
repositories:
  - configorg/configrepo
  - git@github.com:configorg/other.git
""")
        monkeypatch.chdir(tmp_path)
        assert [r.full_name for r in get_repos_from_config()] == ["configorg/configrepo", "configorg/other"]

    def test_no_config_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert get_repos_from_config() == []


class TestGetRepos:
    """Tests for the fallback chain."""

    def test_env_takes_precedence(self, tmp_path, monkeypatch, clean_env):
        (tmp_path / "reviewsync.yaml").write_text("repositories: [configorg/configrepo]\n")
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("REPOSITORIES", "envorg/envrepo")
        assert [r.full_name for r in get_repos()] == ["envorg/envrepo"]

    def test_config_fallback(self, tmp_path, monkeypatch, clean_env):
        (tmp_path / "reviewsync.yaml").write_text("repositories: [configorg/configrepo]\n")
        monkeypatch.chdir(tmp_path)
        assert [r.full_name for r in get_repos()] == ["configorg/configrepo"]

    def test_raises_when_no_repo_found(self, tmp_path, monkeypatch, clean_env):
        monkeypatch.chdir(tmp_path)
        with pytest.raises(ValueError, match="Could not determine repository"):
            get_repos()
