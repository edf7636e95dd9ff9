"""Main CLI entry point for reviewsync - pull request review comment sync."""

import argparse
import sys
from pathlib import Path

from ..repo import RepoInfo, get_repos, parse_repo
from .init_config import init_config


def _resolve_repo(spec: str | None) -> RepoInfo:
    """--repo if given, else the first configured repository."""
    if spec:
        return parse_repo(spec)
    return get_repos()[0]


def _read_patch(path: Path | None) -> str | None:
    if path is None:
        return None
    if str(path) == "-":
        return sys.stdin.read()
    return path.read_text()


def _add_repo_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--repo",
        "-R",
        type=str,
        default=None,
        help="Repository as owner/name or remote URL (default: first configured repository)",
    )


def _add_transition_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--transition-diff",
        "-d",
        type=Path,
        default=None,
        help="Diff from the PR head to the working file (e.g. output of `git diff <head> -- path`), '-' for stdin",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reviewsync",
        description="Keep pull request review comments anchored to your working copy",
        epilog="Run 'reviewsync <command> --help' for more information on a command.",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # init command - generate config
    init_parser = subparsers.add_parser(
        "init",
        help="Generate reviewsync.yaml from git remotes",
        description="Detect GitHub remotes of the checkout and write reviewsync.yaml.",
    )
    init_parser.add_argument(
        "--root",
        type=Path,
        default=Path.cwd(),
        help="Repository root directory (default: current directory)",
    )
    init_parser.add_argument(
        "--output",
        "-o",
        type=Path,
        default=None,
        help="Output file path (default: reviewsync.yaml in root)",
    )

    # threads command - one-shot thread listing
    threads_parser = subparsers.add_parser(
        "threads",
        help="List the comment threads of a pull request",
        description="Fetch a pull request and show where each comment thread is anchored.",
    )
    threads_parser.add_argument("pr", type=int, help="Pull request number")
    _add_repo_argument(threads_parser)
    threads_parser.add_argument(
        "--path",
        "-p",
        type=str,
        default=None,
        help="Only show threads on this file",
    )
    _add_transition_argument(threads_parser)

    # watch command - live sync
    watch_parser = subparsers.add_parser(
        "watch",
        help="Watch a pull request and report comment changes (recommended)",
        description="Poll a pull request, reconcile comment threads and show a live dashboard.",
    )
    watch_parser.add_argument("pr", type=int, help="Pull request number")
    _add_repo_argument(watch_parser)
    watch_parser.add_argument(
        "--interval",
        "-i",
        type=float,
        default=None,
        help="Seconds between sync cycles (default: reviewsync.yaml or SYNC_INTERVAL_SECONDS)",
    )

    # prs command - list pull requests across repositories
    prs_parser = subparsers.add_parser(
        "prs",
        help="List pull requests across configured repositories",
        description="Page through pull requests of all configured repositories in order.",
    )
    prs_parser.add_argument(
        "--repo",
        "-R",
        action="append",
        default=None,
        help="Repository to list (repeatable, default: configured repositories)",
    )
    prs_parser.add_argument(
        "--state",
        "-s",
        choices=["open", "closed", "all"],
        default=None,
        help="Pull request state (default: reviewsync.yaml or open)",
    )
    prs_parser.add_argument(
        "--batches",
        "-n",
        type=int,
        default=1,
        help="Number of page-size batches to load (default: 1)",
    )

    # position command - diff position of a working copy line
    position_parser = subparsers.add_parser(
        "position",
        help="Show the diff position a new comment on a line would get",
        description="Map a working copy line to the pull request's diff position.",
    )
    position_parser.add_argument("pr", type=int, help="Pull request number")
    position_parser.add_argument("path", type=str, help="File path in the repository")
    position_parser.add_argument("line", type=int, help="1-based line in the working copy")
    _add_repo_argument(position_parser)
    _add_transition_argument(position_parser)

    # content command - review document content
    content_parser = subparsers.add_parser(
        "content",
        help="Print a file as reconstructed from the pull request diff",
        description="Rebuild the base or head side of a file from the diff hunks at a commit.",
    )
    content_parser.add_argument("pr", type=int, help="Pull request number")
    content_parser.add_argument("path", type=str, help="File path in the repository")
    content_parser.add_argument("commit", type=str, help="Commit sha (head, base or an outdated comment's commit)")
    _add_repo_argument(content_parser)

    # comment command - start a thread
    comment_parser = subparsers.add_parser(
        "comment",
        help="Comment on a working copy line",
        description="Start a review thread on a line of the working copy.",
    )
    comment_parser.add_argument("pr", type=int, help="Pull request number")
    comment_parser.add_argument("path", type=str, help="File path in the repository")
    comment_parser.add_argument("line", type=int, help="1-based line in the working copy")
    comment_parser.add_argument("body", type=str, help="Comment text")
    _add_repo_argument(comment_parser)
    _add_transition_argument(comment_parser)

    # reply command - answer a thread
    reply_parser = subparsers.add_parser(
        "reply",
        help="Reply to a comment thread",
        description="Add a reply to an existing review thread.",
    )
    reply_parser.add_argument("pr", type=int, help="Pull request number")
    reply_parser.add_argument("thread", type=int, help="Thread id (id of its first comment)")
    reply_parser.add_argument("body", type=str, help="Reply text")
    _add_repo_argument(reply_parser)

    return parser


def main(argv: list[str] | None = None):
    """Main CLI entry point for reviewsync."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "init":
        output = args.output or args.root / "reviewsync.yaml"
        init_config(args.root, output)
        return

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    # Import here to avoid slow startup
    import trio

    from .. import main as app
    from ..github_client import PendingReviewError

    try:
        if args.command == "threads":
            trio.run(
                app.show_threads,
                _resolve_repo(args.repo),
                args.pr,
                args.path,
                _read_patch(args.transition_diff),
            )

        elif args.command == "watch":
            trio.run(app.watch, _resolve_repo(args.repo), args.pr, args.interval)

        elif args.command == "prs":
            repos = [parse_repo(spec) for spec in args.repo] if args.repo else get_repos()
            trio.run(app.show_pull_requests, repos, args.state, args.batches)

        elif args.command == "position":
            position = trio.run(
                app.show_position,
                _resolve_repo(args.repo),
                args.pr,
                args.path,
                args.line,
                _read_patch(args.transition_diff) or "",
            )
            if position < 0:
                sys.exit(1)

        elif args.command == "content":
            content = trio.run(app.show_content, _resolve_repo(args.repo), args.pr, args.path, args.commit)
            if content is None:
                sys.exit(1)

        elif args.command == "comment":
            trio.run(
                app.submit_comment,
                _resolve_repo(args.repo),
                args.pr,
                args.path,
                args.line,
                args.body,
                _read_patch(args.transition_diff) or "",
            )

        elif args.command == "reply":
            trio.run(app.submit_reply, _resolve_repo(args.repo), args.pr, args.thread, args.body)

    except (ValueError, PendingReviewError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
