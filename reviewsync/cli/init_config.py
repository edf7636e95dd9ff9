"""CLI tool to generate reviewsync.yaml from the checkout's git remotes.

Reads remote URLs from:
- .git/config (all [remote "..."] sections, origin first)
"""

from __future__ import annotations

import configparser
import re
from pathlib import Path

from ..repo import RepoInfo, parse_git_remote_url
from ..review_config import ReviewConfig

REMOTE_SECTION_RE = re.compile(r'^remote "(?P<name>[^"]+)"$')


def find_git_remotes(root: Path) -> dict[str, str]:
    """Map remote name -> URL from .git/config. Empty if not a git checkout."""
    git_config = root / ".git" / "config"
    if not git_config.exists():
        return {}

    parser = configparser.ConfigParser(strict=False, interpolation=None)
    parser.read(git_config)

    remotes = {}
    for section in parser.sections():
        m = REMOTE_SECTION_RE.match(section)
        if m and parser.has_option(section, "url"):
            remotes[m.group("name")] = parser.get(section, "url").strip()
    return remotes


def detect_repositories(root: Path) -> list[RepoInfo]:
    """Repositories behind the checkout's remotes, origin then upstream then the rest."""
    remotes = find_git_remotes(root)
    order = sorted(remotes, key=lambda name: {"origin": 0, "upstream": 1}.get(name, 2))

    repos: list[RepoInfo] = []
    for name in order:
        repo = parse_git_remote_url(remotes[name])
        if repo and repo not in repos:
            repos.append(repo)
    return repos


def generate_config(root: Path) -> ReviewConfig:
    """Generate ReviewConfig listing the detected repositories."""
    return ReviewConfig(repositories=[repo.full_name for repo in detect_repositories(root)])


def init_config(root: Path | None = None, output: Path | None = None) -> str:
    """Initialize reviewsync.yaml from the checkout's remotes.

    Args:
        root: Repository root (defaults to cwd)
        output: Output file path (defaults to reviewsync.yaml)

    Returns:
        YAML config string
    """
    if root is None:
        root = Path.cwd()
    if output is None:
        output = root / "reviewsync.yaml"

    print(f"Scanning {root} for git remotes...")

    config = generate_config(root)
    if not config.repositories:
        print("No GitHub remotes found.")
        print("\nGenerating minimal config with defaults...")

    for full_name in config.repositories:
        print(f"  - {full_name}")

    header = """# reviewsync.yaml - pull request review sync settings
# Generated by: reviewsync init
#
# repositories are listed in `reviewsync prs` in this order.

"""

    full_content = header + config.to_yaml()

    print(f"\nWriting config to {output}")
    with open(output, "w") as f:
        f.write(full_content)

    print(f"\nConfigured {len(config.repositories)} repositories.")
    return full_content
