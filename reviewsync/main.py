"""Review sync orchestrator with live dashboard.

Polls a pull request's comments on a timer, reconciles each snapshot
against the previous one, and submits new comments by diff position.
Uses trio for concurrent API requests.
"""

import logging
import os
import signal
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

import httpx
import trio
from rich.console import Console
from rich.live import Live
from rich.table import Table

from .config import LOG_FILE
from .extractors.comments import extract_comment, extract_comments
from .extractors.files import extract_file_change
from .extractors.prs import extract_pull_request
from .github_client import GitHubClient
from .models import NO_POSITION, BufferLine, Comment, FileChange, PullRequest
from .paging import PageCursorTracker, PageResult
from .reconciler import CommentThread, ThreadDelta
from .repo import RepoInfo, get_cache_dir, parse_repo
from .review_config import ReviewConfig
from .session import ReviewSession

logger = logging.getLogger(__name__)


def setup_logging(log_file: str | None = None) -> str:
    """Setup file logging for debugging. Returns the log file path."""
    path = log_file or LOG_FILE or str(get_cache_dir() / "reviewsync.log")
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)s | %(message)s",
        handlers=[
            logging.FileHandler(path, mode="a"),
        ],
    )
    return path


class CannotCommentHereError(ValueError):
    """The requested line is outside the pull request's diff (or was added locally)."""


class WatchState(Enum):
    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"


@dataclass
class SyncStats:
    """Live sync statistics."""

    cycles: int = 0
    failed_cycles: int = 0
    skipped_files: int = 0
    added: int = 0
    removed: int = 0
    changed: int = 0
    api_requests: int = 0
    last_sync: str = ""
    last_error: str = ""
    head_sha: str = ""
    update_available: bool = False
    state: WatchState = WatchState.RUNNING


class ReviewWatcher:
    """Keeps a ReviewSession in step with one pull request on GitHub."""

    def __init__(self, client: GitHubClient, console: Console, repo: RepoInfo, pr_number: int):
        self.client = client
        self.console = console
        self.repo = repo
        self.pr_number = pr_number
        self.session = ReviewSession()
        self.stats = SyncStats()
        self._stop_requested = False

    async def _signal_watcher(self, nursery: trio.Nursery) -> None:
        """Watch for interrupt signals and cancel the nursery gracefully."""
        with trio.open_signal_receiver(signal.SIGINT, signal.SIGTERM) as signal_aiter:
            async for sig in signal_aiter:
                self._stop_requested = True
                self.stats.state = WatchState.PAUSED
                logger.info(f"Signal {sig} received, stopping gracefully...")
                nursery.cancel_scope.cancel()
                break

    async def _fetch_snapshot(self, with_files: bool) -> tuple[PullRequest, list[FileChange], list[Comment]]:
        """Fetch the PR, its review comments and optionally its files, concurrently.

        The comment set is fetched whole so the reconciler never sees a
        partially refreshed snapshot.
        """
        results: dict[str, list[dict] | dict] = {}

        async def fetch_pr():
            results["pr"] = await self.client.get_pull_request(self.repo, self.pr_number)

        async def fetch_comments():
            results["comments"] = await self.client.get_pr_review_comments(self.repo, self.pr_number)

        async def fetch_files():
            results["files"] = await self.client.get_pr_files(self.repo, self.pr_number)

        async with trio.open_nursery() as nursery:
            nursery.start_soon(fetch_pr)
            nursery.start_soon(fetch_comments)
            if with_files:
                nursery.start_soon(fetch_files)

        pr = extract_pull_request(results["pr"])
        comments = extract_comments(results["comments"])
        files = [
            extract_file_change(file_data, pr.base_sha, pr.head_sha)
            for file_data in results.get("files", [])
        ]
        self.stats.api_requests = self.client.request_count
        return pr, files, comments

    async def refresh(self) -> None:
        """Full reload: PR, changed files and comments."""
        pr, files, comments = await self._fetch_snapshot(with_files=True)
        self.session.load(pr, files, comments)
        self.stats.head_sha = pr.head_sha
        self.stats.update_available = False

    async def poll_once(self) -> ThreadDelta:
        """One sync cycle. Returns the thread changes.

        Files whose comment diff_hunks cannot be parsed keep their previous
        threads; they are counted and reported instead of failing the cycle.
        """
        if not self.session.is_active:
            await self.refresh()

        pr, _, comments = await self._fetch_snapshot(with_files=False)
        result = self.session.sync(pr, comments)

        self.stats.cycles += 1
        self.stats.last_sync = datetime.now(UTC).isoformat(timespec="seconds")
        self.stats.added += len(result.delta.added)
        self.stats.removed += len(result.delta.removed)
        self.stats.changed += len(result.delta.changed)

        if result.delta.skipped_paths:
            # Anchors on these files would be wrong; their previous threads stay.
            self.stats.skipped_files += len(result.delta.skipped_paths)
            self.stats.last_error = f"Malformed diff in {', '.join(result.delta.skipped_paths)}"
            logger.error(f"PR #{self.pr_number} skipped files: {result.delta.skipped_paths}")

        if result.update_available:
            self.stats.update_available = True
            self.console.print(
                f"[yellow]There are updates available for PR #{self.pr_number} "
                f"({pr.head_sha[:8]}). Pull, then refresh.[/]"
            )
        return result.delta

    async def pull_completed(self) -> None:
        """Call after the local branch was updated to the new head."""
        self.session.acknowledge_update()
        await self.refresh()

    async def create_comment(
        self, path: str, line: BufferLine, body: str, transition_patch: str = ""
    ) -> Comment:
        """Start a thread on a working copy line.

        Raises:
            CannotCommentHereError: if the line has no position in the diff.
            PendingReviewError: if GitHub rejects the comment.
        """
        if not self.session.is_active:
            await self.refresh()

        position = self.session.position_for_new_comment(path, line, transition_patch)
        if position == NO_POSITION:
            raise CannotCommentHereError(f"{path}:{line} is not part of the pull request diff")

        data = await self.client.create_review_comment(
            self.repo,
            self.pr_number,
            body=body,
            commit_id=self.session.pull_request.head_sha,
            path=path,
            position=position,
        )
        comment = extract_comment(data)
        self.session.comments.append(comment)
        logger.info(f"Created comment {comment.id} on {path} at position {position}")
        return comment

    async def reply(self, thread_id: int, body: str) -> Comment:
        """Reply to an existing thread."""
        data = await self.client.create_review_comment_reply(
            self.repo, self.pr_number, body=body, in_reply_to=thread_id
        )
        comment = extract_comment(data)
        self.session.comments.append(comment)
        return comment

    def build_threads_table(self, threads: list[CommentThread] | None = None) -> Table:
        """Table of threads: where they are shown and what they say."""
        table = Table(title=f"{self.repo.full_name} #{self.pr_number}", expand=True)
        table.add_column("Thread", style="cyan")
        table.add_column("Location", style="green")
        table.add_column("Comments")
        table.add_column("Latest")

        for thread in self.session.threads() if threads is None else threads:
            resource = thread.resource
            path = getattr(resource, "path", str(resource))
            commit = getattr(resource, "commit", None)
            line = str(thread.anchor_line) if thread.anchor_line > 0 else "?"
            location = f"{path}:{line}" + (f" [dim]@{commit[:8]}[/]" if commit else "")
            latest = thread.comments[-1]
            table.add_row(
                str(thread.thread_id),
                location,
                str(len(thread.comments)),
                f"{latest.author}: {latest.body[:60]}",
            )
        return table

    def build_dashboard(self) -> Table:
        """Build the live dashboard display."""
        table = Table(title="Review Sync", expand=True)
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="green")
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="green")

        state_color = {
            WatchState.RUNNING: "green",
            WatchState.PAUSED: "yellow",
            WatchState.STOPPED: "blue",
        }
        state_str = f"[{state_color[self.stats.state]}]{self.stats.state.value}[/]"
        update_str = "[yellow]yes[/]" if self.stats.update_available else "no"

        table.add_row("State", state_str, "Pull Request", f"{self.repo.full_name} #{self.pr_number}")
        table.add_row("Head", self.stats.head_sha[:8] or "-", "Update Available", update_str)
        table.add_row("Cycles", str(self.stats.cycles), "Failed", str(self.stats.failed_cycles))
        table.add_row("Added", str(self.stats.added), "Removed", str(self.stats.removed))
        table.add_row("Changed", str(self.stats.changed), "API Requests", str(self.stats.api_requests))
        table.add_row("Last Sync", self.stats.last_sync or "-", "Skipped Files", str(self.stats.skipped_files))

        if self.stats.last_error:
            table.add_row("[red]Last Error[/]", f"[red]{self.stats.last_error[:80]}[/]", "", "")

        return table

    async def _poll_task(self, interval: float) -> None:
        while not self._stop_requested:
            try:
                await self.poll_once()
            except Exception as e:
                self.stats.failed_cycles += 1
                self.stats.last_error = f"{type(e).__name__}: {str(e)[:100]}"
                logger.exception(f"PR #{self.pr_number} sync failed")
            await trio.sleep(interval)

    async def _dashboard_task(self, live: Live) -> None:
        while not self._stop_requested:
            await trio.sleep(0.5)
            live.update(self.build_dashboard())

    async def run(self, interval: float) -> None:
        """Poll until interrupted."""
        logger.info("=" * 60)
        logger.info(f"Watching {self.repo.full_name} #{self.pr_number} every {interval}s")
        await self.refresh()

        self.console.print("\n[dim]Press Ctrl+C to stop[/]\n")
        with Live(self.build_dashboard(), console=self.console, refresh_per_second=2) as live:
            try:
                async with trio.open_nursery() as nursery:
                    nursery.start_soon(self._signal_watcher, nursery)
                    nursery.start_soon(self._poll_task, interval)
                    nursery.start_soon(self._dashboard_task, live)
            except trio.Cancelled:
                pass

        self.stats.state = WatchState.STOPPED
        logger.info(
            f"Stopped after {self.stats.cycles} cycles: {self.stats.added} added, "
            f"{self.stats.removed} removed, {self.stats.changed} changed"
        )
        self.console.print(self.build_threads_table())


async def list_pull_requests(
    client: GitHubClient,
    tracker: PageCursorTracker,
    state: str = "open",
) -> tuple[list[tuple[str, PullRequest]], bool]:
    """Fetch the next batch of pull requests across the tracked repositories.

    Returns ((repository, pull request) pairs, has_more).
    """

    async def fetch_page(repository: str, page: int) -> PageResult | None:
        try:
            result = await client.get_pull_requests_page(
                parse_repo(repository), page, state=state, per_page=tracker.page_size
            )
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Could not list pull requests of {repository}: {e}")
            return None
        result.items = [(repository, item) for item in result.items]
        return result

    items, has_more = await tracker.fetch_batch(fetch_page)
    return [(repository, extract_pull_request(item)) for repository, item in items], has_more


async def watch(repo: RepoInfo, pr_number: int, interval: float | None = None):
    """Entry point for `reviewsync watch`."""
    console = Console()
    config = ReviewConfig.load()
    log_file = setup_logging()
    console.print(f"[dim]Log file: {log_file}[/]")

    async with GitHubClient() as client:
        watcher = ReviewWatcher(client, console, repo, pr_number)
        await watcher.run(interval or config.sync_interval)


async def _loaded_watcher(client: GitHubClient, console: Console, repo: RepoInfo, pr_number: int) -> ReviewWatcher:
    watcher = ReviewWatcher(client, console, repo, pr_number)
    await watcher.refresh()
    return watcher


async def show_threads(repo: RepoInfo, pr_number: int, path: str | None = None, transition_patch: str | None = None):
    """Entry point for `reviewsync threads`.

    With a path and a transition patch, shows the threads as placed in the
    working copy of that file, together with its commentable ranges.
    """
    console = Console()
    async with GitHubClient() as client:
        watcher = await _loaded_watcher(client, console, repo, pr_number)

    session = watcher.session
    if path is None:
        console.print(watcher.build_threads_table())
        classification = session.classification()
        for group in classification.outdated:
            reasons = ", ".join(sorted(r.value for r in group.reasons))
            lines = ", ".join(str(thread.anchor_line) for thread in group.threads)
            console.print(
                f"[dim]{group.path} @{group.commit_id[:8]}: "
                f"{len(group.comments)} outdated at lines {lines} ({reasons})[/]"
            )
        return

    if transition_patch is None:
        threads = [t for t in session.threads() if getattr(t.resource, "path", None) == path]
        console.print(watcher.build_threads_table(threads))
        return

    view = session.working_file_view(path, transition_patch)
    console.print(watcher.build_threads_table(view.threads))
    ranges = ", ".join(f"{start}-{end}" for start, end in view.commenting_ranges) or "none"
    console.print(f"Commentable lines in {path}: {ranges}")


async def show_position(repo: RepoInfo, pr_number: int, path: str, line: int, transition_patch: str = "") -> int:
    """Entry point for `reviewsync position`. Returns the diff position."""
    console = Console()
    async with GitHubClient() as client:
        watcher = await _loaded_watcher(client, console, repo, pr_number)

    position = watcher.session.position_for_new_comment(path, BufferLine(line), transition_patch)
    if position == NO_POSITION:
        console.print(f"[red]{path}:{line} cannot be commented on[/]")
    else:
        console.print(f"{path}:{line} -> position {position}")
    return position


async def show_content(repo: RepoInfo, pr_number: int, path: str, commit: str) -> str | None:
    """Entry point for `reviewsync content`."""
    console = Console()
    async with GitHubClient() as client:
        watcher = await _loaded_watcher(client, console, repo, pr_number)

    content = watcher.session.file_content(path, commit)
    if content is None:
        console.print(f"[red]No review content for {path} at {commit[:8]}[/]")
    else:
        console.print(content, markup=False, highlight=False)
    return content


async def submit_comment(
    repo: RepoInfo, pr_number: int, path: str, line: int, body: str, transition_patch: str = ""
) -> Comment:
    """Entry point for `reviewsync comment`."""
    console = Console()
    setup_logging()
    async with GitHubClient() as client:
        watcher = await _loaded_watcher(client, console, repo, pr_number)
        comment = await watcher.create_comment(path, BufferLine(line), body, transition_patch)

    console.print(f"[green]Created comment {comment.id}[/]")
    return comment


async def submit_reply(repo: RepoInfo, pr_number: int, thread_id: int, body: str) -> Comment:
    """Entry point for `reviewsync reply`."""
    console = Console()
    setup_logging()
    async with GitHubClient() as client:
        watcher = ReviewWatcher(client, console, repo, pr_number)
        comment = await watcher.reply(thread_id, body)

    console.print(f"[green]Replied with comment {comment.id}[/]")
    return comment


async def show_pull_requests(repos: list[RepoInfo], state: str | None = None, batches: int = 1):
    """Entry point for `reviewsync prs`: list pull requests batch by batch."""
    console = Console()
    config = ReviewConfig.load()
    tracker = PageCursorTracker([repo.full_name for repo in repos], page_size=config.page_size)

    table = Table(title="Pull Requests", expand=True)
    table.add_column("Repository", style="cyan")
    table.add_column("#", justify="right")
    table.add_column("Title")
    table.add_column("Author", style="green")
    table.add_column("Head")

    async with GitHubClient() as client:
        has_more = True
        for _ in range(batches):
            if not has_more:
                break
            pull_requests, has_more = await list_pull_requests(
                client, tracker, state or config.pull_request_state
            )
            for repository, pr in pull_requests:
                table.add_row(repository, str(pr.number), pr.title, pr.author_login, pr.head_sha[:8])

    console.print(table)
    if has_more:
        console.print("[dim]More pull requests available (use --batches to load more)[/]")
