"""Project settings loaded from reviewsync.yaml.

Example:

    repositories:
      - my-org/api
      - git@github.com:my-org/web.git
    sync:
      interval: 10
    pull_requests:
      page_size: 20
      state: open
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .config import PULL_REQUEST_PAGE_SIZE, SYNC_INTERVAL_SECONDS

CONFIG_CANDIDATES = ["reviewsync.yaml", ".reviewsync.yaml", "reviewsync.yml", ".reviewsync.yml"]
PULL_REQUEST_STATES = {"open", "closed", "all"}


@dataclass
class ReviewConfig:
    """Settings for syncing and listing pull requests."""

    repositories: list[str] = field(default_factory=list)
    sync_interval: float = SYNC_INTERVAL_SECONDS
    page_size: int = PULL_REQUEST_PAGE_SIZE
    pull_request_state: str = "open"

    def __post_init__(self):
        if self.sync_interval <= 0:
            raise ValueError(f"sync interval must be positive, got {self.sync_interval}")
        if self.page_size < 1:
            raise ValueError(f"page size must be at least 1, got {self.page_size}")
        if self.pull_request_state not in PULL_REQUEST_STATES:
            raise ValueError(
                f"pull request state must be one of {sorted(PULL_REQUEST_STATES)}, "
                f"got {self.pull_request_state!r}"
            )

    @classmethod
    def load(cls, path: Path | str | None = None) -> ReviewConfig:
        """Load config from YAML file or return defaults."""
        if path is None:
            for candidate in CONFIG_CANDIDATES:
                if Path(candidate).exists():
                    path = candidate
                    break

        if path is None or not Path(path).exists():
            return cls.default()

        with open(path) as f:
            data = yaml.safe_load(f)

        return cls.from_dict(data or {})

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReviewConfig:
        """Create config from dictionary (e.g., parsed YAML)."""
        sync = data.get("sync", {}) or {}
        pull_requests = data.get("pull_requests", {}) or {}

        return cls(
            repositories=[str(r) for r in data.get("repositories", []) or []],
            sync_interval=float(sync.get("interval", SYNC_INTERVAL_SECONDS)),
            page_size=int(pull_requests.get("page_size", PULL_REQUEST_PAGE_SIZE)),
            pull_request_state=pull_requests.get("state", "open"),
        )

    @classmethod
    def default(cls) -> ReviewConfig:
        return cls()

    def to_yaml(self) -> str:
        """Serialize config to YAML."""
        data: dict[str, Any] = {
            "repositories": self.repositories,
            "sync": {"interval": self.sync_interval},
            "pull_requests": {
                "page_size": self.page_size,
                "state": self.pull_request_state,
            },
        }
        return yaml.dump(data, default_flow_style=False, sort_keys=False)
