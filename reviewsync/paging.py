"""Per-repository pagination state for listing pull requests across remotes.

Several repositories share one page-size budget per batch: the first
repository is paged until it runs out or the budget is spent, then the next,
and so on. Repositories known to be exhausted are skipped until restart().
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from .config import PULL_REQUEST_PAGE_SIZE

logger = logging.getLogger(__name__)


@dataclass
class PageInformation:
    """Cursor for one repository. has_more_pages is None until the first page."""

    next_page: int = 1
    has_more_pages: bool | None = None


@dataclass
class PageResult:
    items: list[Any] = field(default_factory=list)
    has_more_pages: bool = False


# (repository, page) -> one page of results, or None if the repository
# could not be listed (stops that repository for the current batch).
PageFetcher = Callable[[str, int], Awaitable[PageResult | None]]


class PageCursorTracker:
    """Tracks the next page to request for each repository, in a fixed order."""

    def __init__(self, repositories: Iterable[str] = (), page_size: int = PULL_REQUEST_PAGE_SIZE):
        self.page_size = page_size
        self._pages: dict[str, PageInformation] = {}
        self._in_flight = False
        self.track(repositories)

    @property
    def repositories(self) -> list[str]:
        return list(self._pages)

    def track(self, repositories: Iterable[str]) -> None:
        """Start tracking repositories. Known repositories keep their cursor."""
        for repository in repositories:
            if repository not in self._pages:
                self._pages[repository] = PageInformation()

    def state(self, repository: str) -> PageInformation:
        return self._pages[repository]

    def restart(self) -> None:
        """Go back to page 1 for every repository."""
        for repository in self._pages:
            self._pages[repository] = PageInformation()

    @property
    def may_have_more_pages(self) -> bool:
        return any(info.has_more_pages is not False for info in self._pages.values())

    def _eligible(self) -> list[str]:
        return [repo for repo, info in self._pages.items() if info.has_more_pages is not False]

    async def fetch_batch(self, fetch_page: PageFetcher, budget: int | None = None) -> tuple[list[Any], bool]:
        """Fetch up to `budget` items across repositories, continuing where the last batch stopped.

        Returns (items, has_more) where has_more is True if any repository may
        still have pages. Only one batch may run at a time.
        """
        if self._in_flight:
            raise RuntimeError("A page batch is already being fetched")

        budget = self.page_size if budget is None else budget
        items: list[Any] = []
        self._in_flight = True
        try:
            for repository in self._eligible():
                if len(items) >= budget:
                    break

                info = self._pages[repository]
                while len(items) < budget and info.has_more_pages is not False:
                    result = await fetch_page(repository, info.next_page)
                    if result is None:
                        logger.warning(f"No page {info.next_page} for {repository}, skipping for this batch")
                        break

                    items.extend(result.items)
                    info.has_more_pages = result.has_more_pages
                    info.next_page += 1
        finally:
            self._in_flight = False

        return items, self.may_have_more_pages
